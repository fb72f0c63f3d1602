import os
from typing import List, Optional

from fastapi import (APIRouter, Depends, HTTPException, UploadFile, File,
                     Form, status)
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.config import settings
from edurecords.core.authorization import Principal, is_self_or_admin, teacher_has_batch
from edurecords.dependencies import (
    get_db, get_current_user, get_current_principal,
    get_current_teacher_profile, get_current_student_profile
)
from edurecords.utils import file_utils

# ===================================================================
# Router and Configuration
# ===================================================================

router = APIRouter(prefix="/api/assignments", tags=["Assignments & Submissions"])


def _own_assignment_or_404(db: Session, assignment_id: int, teacher: models.Teacher) -> models.Assignment:
    """Teachers may only manage assignments they created."""
    assignment = crud.get_assignment(db, assignment_id)
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    if assignment.teacher_id != teacher.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return assignment

def _require_batch(db: Session, teacher: models.Teacher, batch_id: int) -> None:
    if not teacher_has_batch(db, teacher.id, batch_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


# ===================================================================
# Teacher: Assignment Management (CRUD)
# ===================================================================

@router.post(
    "",
    response_model=schemas.AssignmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create New Assignment",
)
def create_assignment(
    assignment_data: schemas.AssignmentCreate,
    db: Session = Depends(get_db),
    current_teacher: models.Teacher = Depends(get_current_teacher_profile),
):
    """Creates an assignment for one of the teacher's assigned batches."""
    _require_batch(db, current_teacher, assignment_data.batch_id)
    return crud.create_assignment(db, assignment_data, teacher_id=current_teacher.id)

@router.get(
    "/teacher/{teacher_id}",
    response_model=List[schemas.TeacherAssignmentOut],
    summary="Assignments created by a teacher",
)
def list_teacher_assignments(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if not is_self_or_admin(principal, teacher_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return crud.get_teacher_assignments(db, teacher_id)

@router.put("/{assignment_id}", response_model=schemas.AssignmentOut, summary="Update an Assignment")
def update_assignment(
    assignment_id: int,
    assignment_data: schemas.AssignmentUpdate,
    db: Session = Depends(get_db),
    current_teacher: models.Teacher = Depends(get_current_teacher_profile),
):
    assignment = _own_assignment_or_404(db, assignment_id, current_teacher)
    if assignment_data.batch_id != assignment.batch_id:
        _require_batch(db, current_teacher, assignment_data.batch_id)
    return crud.update_assignment(db, assignment, assignment_data)

@router.delete("/{assignment_id}", response_model=schemas.MessageResponse, summary="Delete an Assignment")
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_teacher: models.Teacher = Depends(get_current_teacher_profile),
):
    crud.delete_assignment(db, _own_assignment_or_404(db, assignment_id, current_teacher))
    return {"message": "Assignment deleted"}

@router.get(
    "/{assignment_id}/submissions",
    response_model=List[schemas.SubmissionRowOut],
    summary="Submission status of every student in the batch",
)
def list_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_teacher: models.Teacher = Depends(get_current_teacher_profile),
):
    assignment = _own_assignment_or_404(db, assignment_id, current_teacher)
    return crud.get_submission_rows(db, assignment)

@router.put(
    "/submissions/{submission_id}/review",
    response_model=schemas.MessageResponse,
    summary="Grade a submission (0-10) and leave feedback",
)
def review_submission(
    submission_id: int,
    review: schemas.SubmissionReview,
    db: Session = Depends(get_db),
    current_teacher: models.Teacher = Depends(get_current_teacher_profile),
):
    submission = crud.get_submission(db, submission_id)
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    _own_assignment_or_404(db, submission.assignment_id, current_teacher)
    crud.review_submission(db, submission, review)
    return {"message": "Review saved"}


# ===================================================================
# Student: Assignments and Submissions
# ===================================================================

@router.get(
    "/student",
    response_model=List[schemas.StudentAssignmentOut],
    summary="Get All Assignments for a Student",
)
def get_student_assignments(
    db: Session = Depends(get_db),
    current_student: models.Student = Depends(get_current_student_profile),
):
    """
    Assignments of the student's batch, each with the student's own
    submission state.
    """
    return crud.get_student_assignments(db, current_student)

@router.post(
    "/{assignment_id}/submit",
    response_model=schemas.MessageResponse,
    summary="Submit text and/or a file (PDF, DOC, DOCX)",
)
async def submit_assignment(
    assignment_id: int,
    submission_text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_student: models.Student = Depends(get_current_student_profile),
):
    """A resubmission replaces the previous text and file."""
    assignment = crud.get_assignment(db, assignment_id)
    if not assignment or assignment.batch_id != current_student.batch_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")

    has_file = file is not None and bool(file.filename)
    if not has_file and not (submission_text and submission_text.strip()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File or text submission required")

    file_path = None
    if has_file:
        if not file_utils.is_allowed_file(file.filename):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF, DOC or DOCX files are allowed")

        os.makedirs(settings.upload_dir, exist_ok=True)
        stored_name = file_utils.submission_filename(assignment_id, current_student.id, file.filename)
        file_path = os.path.join(settings.upload_dir, stored_name)
        try:
            await file_utils.save_upload_file(file, file_path, settings.max_upload_bytes)
        except file_utils.UploadTooLargeError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    crud.upsert_submission(db, assignment_id, current_student.id, submission_text, file_path)
    return {"message": "Assignment submitted"}

@router.get(
    "/submissions/{submission_id}/file",
    response_class=FileResponse,
    summary="Download a submitted file",
)
def download_submission_file(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """The submitting student and the assignment's teacher may download."""
    submission = crud.get_submission(db, submission_id)
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")

    is_owner_student = current_user.student_profile is not None and current_user.student_profile.id == submission.student_id
    is_owner_teacher = current_user.teacher_profile is not None and current_user.teacher_profile.id == submission.assignment.teacher_id
    if not (is_owner_student or is_owner_teacher or current_user.role == models.UserRole.admin):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if not submission.file_path or not os.path.exists(submission.file_path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path=submission.file_path, filename=os.path.basename(submission.file_path))

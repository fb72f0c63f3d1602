from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.dependencies import (
    get_db, get_current_admin_user, get_current_student_profile
)

router = APIRouter(prefix="/api/students", tags=["Students"])


# ===================================================================
# Student: own profile and records
# ===================================================================

@router.get("/me/profile", response_model=schemas.StudentOut, summary="Current student's profile")
def my_profile(current_student: models.Student = Depends(get_current_student_profile)):
    return current_student

@router.post("/me/change-password", response_model=schemas.MessageResponse, summary="Change own password")
def change_my_password(
    request: schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_student: models.Student = Depends(get_current_student_profile)
):
    if not crud.change_password(db, current_student.user, request.old_password, request.new_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Old password is incorrect")
    return {"message": "Password updated"}

@router.get("/me/attendance", response_model=List[schemas.StudentAttendanceOut], summary="Own attendance history")
def my_attendance(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: Session = Depends(get_db),
    current_student: models.Student = Depends(get_current_student_profile)
):
    return crud.get_student_attendance(db, current_student.id, date_from, date_to)

@router.get("/me/marks", response_model=List[schemas.StudentMarksOut], summary="Own marks")
def my_marks(
    semester: Optional[int] = None,
    db: Session = Depends(get_db),
    current_student: models.Student = Depends(get_current_student_profile)
):
    return crud.get_student_marks(db, current_student.id, semester)


# ===================================================================
# Admin: Student Management (CRUD)
# ===================================================================

def _get_student_or_404(db: Session, student_id: int) -> models.Student:
    db_student = crud.get_student(db, student_id)
    if not db_student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return db_student

@router.get(
    "",
    response_model=List[schemas.StudentOut],
    summary="List students, ordered by roll number",
    dependencies=[Depends(get_current_admin_user)]
)
def list_students(batch_id: Optional[int] = None, db: Session = Depends(get_db)):
    return crud.get_students(db, batch_id)

@router.post(
    "",
    response_model=schemas.StudentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a student",
    dependencies=[Depends(get_current_admin_user)]
)
def create_student(student_data: schemas.StudentCreate, db: Session = Depends(get_db)):
    """
    Either batch_id (must exist) or a textual batch name may be given; a
    name is matched against (course, batch, year) and created when missing.
    """
    return crud.create_student(db, student_data)

@router.get(
    "/{student_id}",
    response_model=schemas.StudentOut,
    summary="Get one student",
    dependencies=[Depends(get_current_admin_user)]
)
def get_student(student_id: int, db: Session = Depends(get_db)):
    return _get_student_or_404(db, student_id)

@router.put(
    "/{student_id}",
    response_model=schemas.StudentOut,
    summary="Update a student",
    dependencies=[Depends(get_current_admin_user)]
)
def update_student(student_id: int, student_data: schemas.StudentUpdate, db: Session = Depends(get_db)):
    return crud.update_student(db, _get_student_or_404(db, student_id), student_data)

@router.delete(
    "/{student_id}",
    response_model=schemas.MessageResponse,
    summary="Delete a student",
    dependencies=[Depends(get_current_admin_user)]
)
def delete_student(student_id: int, db: Session = Depends(get_db)):
    crud.delete_student(db, _get_student_or_404(db, student_id))
    return {"message": "Student deleted"}

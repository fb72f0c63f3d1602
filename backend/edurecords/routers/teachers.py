from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.core import recording
from edurecords.core.authorization import Principal, authorize_batch_write, is_self_or_admin
from edurecords.core.errors import AuthorizationError
from edurecords.dependencies import get_db, get_current_admin_user, get_current_principal
from edurecords.routers.attendance import parse_date_query

router = APIRouter(
    prefix="/api/teachers",
    tags=["Teachers"]
)


def _get_teacher_or_404(db: Session, teacher_id: int) -> models.Teacher:
    db_teacher = crud.get_teacher(db, teacher_id)
    if not db_teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    return db_teacher

def _self_or_admin(db: Session, principal: Principal, teacher_id: int) -> models.Teacher:
    """Teachers may only see their own records; admins see every teacher."""
    if not is_self_or_admin(principal, teacher_id):
        raise AuthorizationError()
    return _get_teacher_or_404(db, teacher_id)


# ===================================================================
# Admin: Teacher Management (CRUD)
# ===================================================================

@router.get(
    "",
    response_model=List[schemas.TeacherOut],
    summary="List all teachers",
    dependencies=[Depends(get_current_admin_user)]
)
def list_teachers(db: Session = Depends(get_db)):
    return crud.get_teachers(db)

@router.post(
    "",
    response_model=schemas.TeacherOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a teacher account",
    dependencies=[Depends(get_current_admin_user)]
)
def create_teacher(teacher_data: schemas.TeacherCreate, db: Session = Depends(get_db)):
    db_teacher = crud.create_teacher(db, teacher_data)
    if not db_teacher:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists."
        )
    return db_teacher

@router.get("/{teacher_id}", response_model=schemas.TeacherOut, summary="Get one teacher")
def get_teacher(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    return _self_or_admin(db, principal, teacher_id)

@router.put(
    "/{teacher_id}",
    response_model=schemas.TeacherOut,
    summary="Update a teacher",
    dependencies=[Depends(get_current_admin_user)]
)
def update_teacher(teacher_id: int, teacher_data: schemas.TeacherUpdate, db: Session = Depends(get_db)):
    db_teacher = _get_teacher_or_404(db, teacher_id)
    updated = crud.update_teacher(db, db_teacher, teacher_data)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists."
        )
    return updated

@router.delete(
    "/{teacher_id}",
    response_model=schemas.MessageResponse,
    summary="Delete a teacher",
    dependencies=[Depends(get_current_admin_user)]
)
def delete_teacher(teacher_id: int, db: Session = Depends(get_db)):
    crud.delete_teacher(db, _get_teacher_or_404(db, teacher_id))
    return {"message": "Teacher deleted"}


# ===================================================================
# Batch assignments
# ===================================================================

@router.post(
    "/{teacher_id}/batches",
    response_model=schemas.BatchIdsOut,
    summary="Assign several batches to a teacher"
)
def assign_batches(
    teacher_id: int,
    request: schemas.BatchIdsRequest,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin_user)
):
    _get_teacher_or_404(db, teacher_id)
    crud.assign_batches_to_teacher(db, teacher_id, request.batch_ids, assigned_by=admin.id)
    return {"batch_ids": crud.get_teacher_batch_ids(db, teacher_id)}

@router.get("/{teacher_id}/batches", response_model=List[schemas.BatchOut], summary="Batches assigned to a teacher")
def list_teacher_batches(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    _self_or_admin(db, principal, teacher_id)
    return crud.get_teacher_batches(db, teacher_id)

@router.delete(
    "/{teacher_id}/batches/{batch_id}",
    response_model=schemas.MessageResponse,
    summary="Unassign a batch from a teacher",
    dependencies=[Depends(get_current_admin_user)]
)
def unassign_batch(teacher_id: int, batch_id: int, db: Session = Depends(get_db)):
    crud.unassign_teacher_from_batch(db, teacher_id, batch_id)
    return {"message": "Batch unassigned"}


# ===================================================================
# Teacher home: summary, dashboard, students, XP
# ===================================================================

@router.get("/{teacher_id}/summary", response_model=schemas.TeacherSummaryOut, summary="Teacher with assigned batches")
def teacher_summary(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    return crud.get_teacher_summary(db, _self_or_admin(db, principal, teacher_id))

@router.get("/{teacher_id}/dashboard", response_model=schemas.TeacherDashboardOut, summary="Teacher dashboard data")
def teacher_dashboard(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Students count, the last 7 days of attendance for the first assigned
    batch, today's presents, the latest notifications and XP progress.
    """
    return crud.get_teacher_dashboard(db, _self_or_admin(db, principal, teacher_id))

@router.get("/{teacher_id}/students", response_model=List[schemas.StudentOut], summary="Students of assigned batches")
def teacher_students(
    teacher_id: int,
    batch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    _self_or_admin(db, principal, teacher_id)
    return crud.get_teacher_students(db, teacher_id, batch_id)

@router.get("/{teacher_id}/xp", response_model=schemas.TeacherXPOut, summary="Teacher XP and level")
def teacher_xp(
    teacher_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    return _self_or_admin(db, principal, teacher_id)


# ===================================================================
# Attendance and marks recorded by a teacher
# ===================================================================

@router.get(
    "/{teacher_id}/attendance",
    response_model=List[schemas.AttendanceRowOut],
    summary="Attendance of an assigned batch on one day"
)
def teacher_attendance(
    teacher_id: int,
    batch_id: int,
    date: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    attendance_date = parse_date_query(date)
    # reading follows the same rule as writing: admin, or self and assigned
    authorize_batch_write(db, principal, batch_id, teacher_id)
    return crud.get_attendance(db, attendance_date, batch_id)

@router.post(
    "/{teacher_id}/attendance",
    response_model=schemas.BulkWriteOut,
    summary="Bulk upsert attendance for an assigned batch"
)
def save_teacher_attendance(
    teacher_id: int,
    payload: schemas.AttendanceBulkIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Records are keyed by (student, date); re-posting the same day overwrites.
    The teacher in the path is stored as recorder and earns the XP.
    """
    if principal.is_admin:
        _get_teacher_or_404(db, teacher_id)
    result = recording.record_attendance(
        db, principal,
        batch_id=payload.batch_id,
        date_value=payload.date,
        records=[r.model_dump() for r in payload.records],
        teacher_id=teacher_id,
    )
    return {"message": "Attendance saved", "count": result.written}

@router.get(
    "/{teacher_id}/marks",
    response_model=List[schemas.MarksRowOut],
    summary="Marks recorded by a teacher"
)
def teacher_marks(
    teacher_id: int,
    batch_id: Optional[int] = None,
    assessment: Optional[str] = None,
    date: Optional[str] = None,
    student_id: Optional[int] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    if not is_self_or_admin(principal, teacher_id):
        raise AuthorizationError()
    return crud.get_marks(
        db,
        batch_id=batch_id,
        assessment=assessment,
        exam_date=date,
        student_id=student_id,
        recorded_by=teacher_id,
    )

@router.post(
    "/{teacher_id}/marks",
    response_model=schemas.BulkWriteOut,
    summary="Bulk upsert marks for an assigned batch"
)
def save_teacher_marks(
    teacher_id: int,
    payload: schemas.MarksBulkIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    if principal.is_admin:
        _get_teacher_or_404(db, teacher_id)
    result = recording.record_marks(
        db, principal,
        batch_id=payload.batch_id,
        assessment=payload.assessment,
        date_value=payload.date,
        max_marks=payload.max_marks,
        records=[r.model_dump() for r in payload.records],
        teacher_id=teacher_id,
    )
    return {"message": "Marks saved", "count": result.written}

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from sqlalchemy.orm import Session

from edurecords import models, schemas, crud
from edurecords.dependencies import get_db, get_current_user, get_current_admin_user

router = APIRouter(prefix="/api/batches", tags=["Batches"])


@router.get(
    "",
    response_model=List[schemas.BatchOut],
    summary="List all batches",
    dependencies=[Depends(get_current_user)]
)
def list_batches(db: Session = Depends(get_db)):
    return crud.get_batches(db)

@router.post(
    "",
    response_model=schemas.BatchOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a batch"
)
def create_batch(
    batch: schemas.BatchCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin_user)
):
    return crud.create_batch(db, batch)

@router.post(
    "/{batch_id}/assign-teacher",
    response_model=schemas.MessageResponse,
    summary="Assign a teacher to a batch"
)
def assign_teacher(
    batch_id: int,
    request: schemas.AssignTeacherRequest,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin_user)
):
    if not crud.get_batch(db, batch_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    if not crud.get_teacher(db, request.teacher_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")

    crud.assign_teacher_to_batch(db, request.teacher_id, batch_id, assigned_by=admin.id)
    return {"message": "Teacher assigned"}

@router.delete(
    "/{batch_id}/unassign-teacher/{teacher_id}",
    response_model=schemas.MessageResponse,
    summary="Remove a teacher from a batch"
)
def unassign_teacher(
    batch_id: int,
    teacher_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin_user)
):
    crud.unassign_teacher_from_batch(db, teacher_id, batch_id)
    return {"message": "Teacher unassigned"}

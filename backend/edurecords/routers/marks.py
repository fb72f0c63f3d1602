from fastapi import APIRouter, Depends
from typing import List, Optional
from sqlalchemy.orm import Session

from edurecords import schemas, crud
from edurecords.core import recording
from edurecords.core.authorization import Principal
from edurecords.dependencies import get_db, get_current_admin_user, get_current_principal

router = APIRouter(
    prefix="/api/marks",
    tags=["Marks"],
    dependencies=[Depends(get_current_admin_user)]
)


@router.get(
    "",
    response_model=List[schemas.MarksRowOut],
    summary="Search marks by batch, assessment, exam date or student"
)
def list_marks(
    batch_id: Optional[int] = None,
    assessment: Optional[str] = None,
    date: Optional[str] = None,
    student_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return crud.get_marks(db, batch_id=batch_id, assessment=assessment, exam_date=date, student_id=student_id)

@router.post(
    "",
    response_model=schemas.BulkWriteOut,
    summary="Bulk upsert marks for a batch (admin)"
)
def save_marks(
    payload: schemas.MarksBulkIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    result = recording.record_marks(
        db, principal,
        batch_id=payload.batch_id,
        assessment=payload.assessment,
        date_value=payload.date,
        max_marks=payload.max_marks,
        records=[r.model_dump() for r in payload.records],
    )
    return {"message": "Marks saved", "count": result.written}

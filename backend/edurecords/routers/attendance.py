from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.orm import Session

from edurecords import schemas, crud
from edurecords.core import recording
from edurecords.core.authorization import Principal
from edurecords.core.errors import ValidationError
from edurecords.core.validation import parse_iso_date
from edurecords.dependencies import get_db, get_current_admin_user, get_current_principal

router = APIRouter(
    prefix="/api/attendance",
    tags=["Attendance"],
    dependencies=[Depends(get_current_admin_user)]
)


def parse_date_query(value: Optional[str]):
    attendance_date = parse_iso_date(value)
    if attendance_date is None:
        raise ValidationError({"date": "Invalid date"})
    return attendance_date


@router.get(
    "",
    response_model=List[schemas.AttendanceRowOut],
    summary="Attendance of one day, optionally for one batch"
)
def list_attendance(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    batch_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return crud.get_attendance(db, parse_date_query(date), batch_id)

@router.post(
    "",
    response_model=schemas.BulkWriteOut,
    summary="Bulk upsert attendance for a batch (admin)"
)
def save_attendance(
    payload: schemas.AttendanceBulkIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Admin writes are not attributed to a teacher: recorded_by stays empty
    and no XP is awarded.
    """
    result = recording.record_attendance(
        db, principal,
        batch_id=payload.batch_id,
        date_value=payload.date,
        records=[r.model_dump() for r in payload.records],
    )
    return {"message": "Attendance saved", "count": result.written}

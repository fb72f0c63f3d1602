"""
Attendance and marks bulk writes.

Order of operations: authorize the principal for the batch, validate and
clean the records, upsert them in one transaction, then run post-commit hooks
(the recording teacher's XP award). A hook failure never changes the result.
"""
import logging
from functools import partial
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from edurecords.core import upsert, validation, xp
from edurecords.core.authorization import Principal, authorize_batch_write
from edurecords.core.hooks import PostCommitHooks
from edurecords.core.upsert import UpsertResult

logger = logging.getLogger(__name__)


def _xp_hooks(teacher_id: Optional[int], amount: int) -> PostCommitHooks:
    hooks = PostCommitHooks()
    if teacher_id is not None:
        hooks.add(partial(_award, teacher_id=teacher_id, amount=amount))
    return hooks


def _award(db: Session, teacher_id: int, amount: int) -> None:
    logger.info("awarding %s xp to teacher %s", amount, teacher_id)
    xp.award_xp(db, teacher_id, amount)


def record_attendance(
    db: Session,
    principal: Principal,
    batch_id: Any,
    date_value: Any,
    records: Optional[Sequence[Mapping[str, Any]]],
    teacher_id: Optional[int] = None,
) -> UpsertResult:
    """
    teacher_id is the teacher the write is made for (the path parameter on
    teacher routes). It is stored as the recorder and receives the XP award.
    """
    batch_id = validation.coerce_id(batch_id)
    authorize_batch_write(db, principal, batch_id, teacher_id)
    attendance_date, cleaned = validation.validate_attendance(db, batch_id, date_value, records)

    hooks = _xp_hooks(teacher_id, xp.XP_ATTENDANCE)
    result = upsert.upsert_attendance(db, cleaned, attendance_date, recorded_by=teacher_id)
    hooks.run(db)
    return result


def record_marks(
    db: Session,
    principal: Principal,
    batch_id: Any,
    assessment: Any,
    date_value: Any,
    max_marks: Any,
    records: Optional[Sequence[Mapping[str, Any]]],
    teacher_id: Optional[int] = None,
) -> UpsertResult:
    batch_id = validation.coerce_id(batch_id)
    authorize_batch_write(db, principal, batch_id, teacher_id)
    assessment, exam_date, max_marks, cleaned = validation.validate_marks(
        db, batch_id, assessment, date_value, max_marks, records
    )

    hooks = _xp_hooks(teacher_id, xp.XP_MARKS)
    result = upsert.upsert_marks(
        db, cleaned,
        batch_id=batch_id,
        assessment=assessment,
        exam_date=exam_date,
        max_marks=max_marks,
        recorded_by=teacher_id,
    )
    hooks.run(db)
    return result

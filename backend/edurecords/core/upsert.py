"""
Insert-or-update writes for attendance and marks.

Each call issues one multi-row statement keyed by the table's natural unique
constraint and commits it as a single transaction.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from edurecords import models
from edurecords.core.errors import StoreError
from edurecords.core.validation import CleanAttendance, CleanMarks

logger = logging.getLogger(__name__)

ATTENDANCE_KEY = ["student_id", "attendance_date"]
ATTENDANCE_OVERWRITE = ["status", "recorded_by", "updated_at"]

MARKS_KEY = ["student_id", "batch_id", "assessment"]
MARKS_OVERWRITE = ["subject", "marks", "semester", "max_marks", "exam_date", "recorded_by", "updated_at"]


@dataclass(frozen=True)
class UpsertResult:
    written: int


def _build_upsert(db: Session, table, rows: List[Dict[str, Any]], key: Sequence[str], overwrite: Sequence[str]):
    dialect = db.get_bind().dialect.name

    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(rows)
        return stmt.on_duplicate_key_update({col: stmt.inserted[col] for col in overwrite})

    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(rows)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(rows)
    else:
        raise StoreError(f"Upsert not supported for dialect {dialect!r}")

    return stmt.on_conflict_do_update(
        index_elements=list(key),
        set_={col: stmt.excluded[col] for col in overwrite},
    )


def _execute(db: Session, stmt, written: int, what: str) -> UpsertResult:
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s upsert failed", what, exc_info=True)
        raise StoreError() from exc
    return UpsertResult(written=written)


def upsert_attendance(
    db: Session, records: Sequence[CleanAttendance], attendance_date: date, recorded_by: Optional[int]
) -> UpsertResult:
    if not records:
        return UpsertResult(written=0)

    now = datetime.utcnow()
    rows = [
        {
            "student_id": record.student_id,
            "attendance_date": attendance_date,
            "status": record.status,
            "recorded_by": recorded_by,
            "created_at": now,
            "updated_at": now,
        }
        for record in records
    ]
    stmt = _build_upsert(db, models.AttendanceRecord.__table__, rows, ATTENDANCE_KEY, ATTENDANCE_OVERWRITE)
    return _execute(db, stmt, len(rows), "attendance")


def upsert_marks(
    db: Session,
    records: Sequence[CleanMarks],
    batch_id: int,
    assessment: str,
    exam_date: Optional[date],
    max_marks: Optional[float],
    recorded_by: Optional[int],
) -> UpsertResult:
    if not records:
        return UpsertResult(written=0)

    now = datetime.utcnow()
    rows = [
        {
            "student_id": record.student_id,
            "batch_id": batch_id,
            "assessment": assessment,
            "exam_date": exam_date,
            "subject": record.subject,
            "marks": record.marks,
            "semester": record.semester,
            "max_marks": max_marks,
            "recorded_by": recorded_by,
            "created_at": now,
            "updated_at": now,
        }
        for record in records
    ]
    stmt = _build_upsert(db, models.MarksRecord.__table__, rows, MARKS_KEY, MARKS_OVERWRITE)
    return _execute(db, stmt, len(rows), "marks")

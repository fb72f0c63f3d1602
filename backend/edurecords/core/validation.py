"""
Shape checks for bulk attendance and marks payloads.

Both validators are all-or-nothing: a single bad record rejects the whole
payload, so callers never see a partially cleaned list.
"""
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from edurecords import models
from edurecords.core.errors import ValidationError

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DMY_DATE_RE = re.compile(r"^\d{2}-\d{2}-\d{4}$")


@dataclass(frozen=True)
class CleanAttendance:
    student_id: int
    status: models.AttendanceStatus


@dataclass(frozen=True)
class CleanMarks:
    student_id: int
    marks: Optional[float]
    subject: Optional[str]
    semester: Optional[int]


def parse_iso_date(value: Any) -> Optional[date]:
    """Strict YYYY-MM-DD. Returns None for anything else, including 2024-02-30."""
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_flexible_date(value: Any) -> Optional[date]:
    """YYYY-MM-DD or DD-MM-YYYY, canonicalized to a date."""
    parsed = parse_iso_date(value)
    if parsed is not None:
        return parsed
    if not isinstance(value, str) or not DMY_DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%d-%m-%Y").date()
    except ValueError:
        return None


def normalize_status(raw: Any) -> models.AttendanceStatus:
    if str(raw) == models.AttendanceStatus.Present.value:
        return models.AttendanceStatus.Present
    if raw is not None and str(raw) != models.AttendanceStatus.Absent.value:
        logger.debug("coercing attendance status %r to Absent", raw)
    return models.AttendanceStatus.Absent


def coerce_id(raw: Any) -> Optional[int]:
    """Positive integer id from a loosely typed payload value, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return value if value > 0 else None


def _student_id(record: Mapping[str, Any]) -> Optional[int]:
    return coerce_id(record.get("student_id"))


def _finite_number(raw: Any) -> Optional[float]:
    """float(raw) when it is a finite number; None for NaN, infinities and non-numbers."""
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _require_records(records: Optional[Sequence[Mapping[str, Any]]]) -> Sequence[Mapping[str, Any]]:
    if not records:
        raise ValidationError({"records": "records must be non-empty array"})
    return records


def _collect_student_ids(records: Iterable[Mapping[str, Any]]) -> List[int]:
    ids = []
    for record in records:
        sid = _student_id(record)
        if sid is None:
            raise ValidationError({"records": "student_id required"})
        ids.append(sid)
    return ids


def ensure_students_in_batch(db: Session, batch_id: int, student_ids: Iterable[int]) -> None:
    wanted = set(student_ids)
    rows = db.query(models.Student.id).filter(
        models.Student.id.in_(wanted),
        models.Student.batch_id == batch_id,
    ).all()
    found = {row.id for row in rows}
    if wanted - found:
        raise ValidationError({"records": "Some student(s) not in selected batch"})


def _last_wins(items: Iterable[Any]) -> List[Any]:
    """Collapse duplicate student ids, keeping the last value in first-seen order."""
    by_student: Dict[int, Any] = {}
    for item in items:
        by_student[item.student_id] = item
    return list(by_student.values())


def _require_batch(batch_id: Optional[int]) -> int:
    if batch_id is None:
        raise ValidationError({"batch_id": "batch_id required"})
    return batch_id


def validate_attendance(
    db: Session,
    batch_id: Optional[int],
    date_value: Any,
    records: Optional[Sequence[Mapping[str, Any]]],
) -> Tuple[date, List[CleanAttendance]]:
    """
    Returns (attendance_date, [CleanAttendance, ...]) or raises ValidationError.
    """
    batch_id = _require_batch(batch_id)
    attendance_date = parse_iso_date(date_value)
    if attendance_date is None:
        raise ValidationError({"date": "Invalid date"})

    records = _require_records(records)
    student_ids = _collect_student_ids(records)
    ensure_students_in_batch(db, batch_id, student_ids)

    cleaned = [
        CleanAttendance(student_id=sid, status=normalize_status(record.get("status")))
        for sid, record in zip(student_ids, records)
    ]
    return attendance_date, _last_wins(cleaned)


def validate_marks(
    db: Session,
    batch_id: Optional[int],
    assessment: Any,
    date_value: Any,
    max_marks: Any,
    records: Optional[Sequence[Mapping[str, Any]]],
) -> Tuple[str, Optional[date], Optional[float], List[CleanMarks]]:
    """
    Returns (assessment, exam_date, max_marks, [CleanMarks, ...]) or raises
    ValidationError. exam_date and max_marks are None when not supplied.
    """
    batch_id = _require_batch(batch_id)
    fields: Dict[str, str] = {}

    assessment = (assessment or "").strip() if isinstance(assessment, str) else ""
    if not assessment:
        fields["assessment"] = "assessment required"

    exam_date = None
    if date_value not in (None, ""):
        exam_date = parse_flexible_date(date_value)
        if exam_date is None:
            fields["date"] = "Invalid date"

    if max_marks is not None:
        max_marks = _finite_number(max_marks)
        if max_marks is None or max_marks <= 0:
            fields["max_marks"] = "max_marks must be a positive number"

    if fields:
        raise ValidationError(fields)

    records = _require_records(records)
    student_ids = _collect_student_ids(records)

    cleaned = []
    for sid, record in zip(student_ids, records):
        score = record.get("marks")
        if score is not None:
            score = _finite_number(score)
            if score is None or score < 0 or (max_marks is not None and score > max_marks):
                raise ValidationError({"records": f"marks out of range for student {sid}"})

        semester = record.get("semester")
        if semester is not None:
            semester = coerce_id(semester)
            if semester is None:
                raise ValidationError({"records": f"invalid semester for student {sid}"})

        subject = record.get("subject")
        cleaned.append(CleanMarks(
            student_id=sid,
            marks=score,
            subject=str(subject) if subject is not None else None,
            semester=semester,
        ))

    ensure_students_in_batch(db, batch_id, student_ids)
    return assessment, exam_date, max_marks, _last_wins(cleaned)


ROLL_NUMBER_RE = re.compile(r"^[A-Za-z0-9-]{2,30}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_YEAR, MAX_YEAR = 2000, 2100


def validate_student_fields(payload: Mapping[str, Any], partial: bool = False) -> None:
    """
    Field checks for student create/update. On update (partial=True) only the
    fields present in the payload are checked.
    """
    fields: Dict[str, str] = {}

    roll = payload.get("roll_number")
    if roll is not None or not partial:
        if not roll or not ROLL_NUMBER_RE.match(str(roll).strip()):
            fields["roll_number"] = "Roll number must be 2-30 letters, digits or dashes"

    name = payload.get("name")
    if name is not None or not partial:
        if not name or len(str(name).strip()) < 3:
            fields["name"] = "Name must be at least 3 characters"

    course = payload.get("course")
    if not partial and not (course and str(course).strip()):
        fields["course"] = "Course is required"

    email = payload.get("email")
    if email and not EMAIL_RE.match(str(email)):
        fields["email"] = "Invalid email"

    year = payload.get("year")
    if year is not None and not MIN_YEAR <= int(year) <= MAX_YEAR:
        fields["year"] = f"Year must be between {MIN_YEAR} and {MAX_YEAR}"

    if fields:
        raise ValidationError(fields)

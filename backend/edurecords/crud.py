import logging
import os
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from edurecords import models, schemas
from edurecords.core.errors import ValidationError
from edurecords.core.security import get_password_hash, verify_password
from edurecords.core.validation import parse_flexible_date, validate_student_fields

logger = logging.getLogger(__name__)

DASHBOARD_NOTIFICATION_LIMIT = 10


def _remove_file(file_path: Optional[str]) -> None:
    """Removes a stored upload; a file that cannot be removed is only logged."""
    if file_path and os.path.exists(file_path):
        try:
            os.remove(file_path)
        except OSError:
            logger.warning("could not remove upload %s", file_path, exc_info=True)

def _roll_sort_key(roll_number: Optional[str]) -> Tuple[int, int, str]:
    """Numeric roll numbers sort by value and come before alphanumeric ones."""
    roll = (roll_number or "").strip()
    if roll.isdigit():
        return (0, int(roll), roll)
    return (1, 0, roll)


# --- User and Auth CRUD ---

def get_user_by_email(db: Session, email: str) -> models.User | None:
    """Fetches a user account by email from the central User table."""
    return db.query(models.User).filter(models.User.email == email).first()

def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    """
    Authenticates a user by checking their email and password.
    Returns the user object on success, None on failure.
    """
    user = get_user_by_email(db, email=email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user

def create_admin_user(db: Session, email: str, password: str, name: str) -> models.Admin:
    """Creates a User account with the admin role and its Admin profile."""
    db_user = models.User(
        email=email,
        hashed_password=get_password_hash(password),
        role=models.UserRole.admin
    )
    db_admin = models.Admin(name=name, user=db_user)
    db.add(db_admin)
    db.commit()
    db.refresh(db_admin)
    return db_admin

def get_profile(user: models.User):
    """Returns the role profile (Admin, Teacher or Student) behind a user account."""
    if user.role == models.UserRole.admin:
        return user.admin_profile
    if user.role == models.UserRole.teacher:
        return user.teacher_profile
    return user.student_profile

def update_profile(db: Session, user: models.User, data: schemas.ProfileUpdate):
    """
    Applies only the provided fields to the caller's profile.
    A new password is re-hashed onto the account.
    """
    profile = get_profile(user)
    changes = data.model_dump(exclude_unset=True)

    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    for field, value in changes.items():
        if hasattr(profile, field):
            setattr(profile, field, value)

    db.commit()
    db.refresh(profile)
    return profile

def change_password(db: Session, user: models.User, old_password: str, new_password: str) -> bool:
    if not verify_password(old_password, user.hashed_password):
        return False
    user.hashed_password = get_password_hash(new_password)
    db.commit()
    return True


# --- Batch CRUD ---

def get_batches(db: Session) -> List[models.Batch]:
    return db.query(models.Batch).order_by(models.Batch.course, models.Batch.name).all()

def get_batch(db: Session, batch_id: int) -> models.Batch | None:
    return db.query(models.Batch).filter(models.Batch.id == batch_id).first()

def create_batch(db: Session, batch: schemas.BatchCreate) -> models.Batch:
    db_batch = models.Batch(**batch.model_dump())
    db.add(db_batch)
    db.commit()
    db.refresh(db_batch)
    return db_batch

def find_or_create_batch(db: Session, course: Optional[str], name: str, year: Optional[int]) -> models.Batch:
    """Looks a batch up by (course, name, year) and creates it when missing. Does not commit."""
    db_batch = db.query(models.Batch).filter(
        models.Batch.course == course,
        models.Batch.name == name,
        models.Batch.year.is_(None) if year is None else models.Batch.year == year
    ).first()
    if db_batch:
        return db_batch

    db_batch = models.Batch(course=course, name=name, year=year)
    db.add(db_batch)
    db.flush()  # need the id before the student row references it
    return db_batch

def assign_teacher_to_batch(db: Session, teacher_id: int, batch_id: int, assigned_by: Optional[int] = None) -> bool:
    """
    Inserts the (teacher, batch) assignment if it does not exist yet.
    Returns True when a new row was created.
    """
    existing = db.query(models.TeacherBatchAssignment).filter(
        models.TeacherBatchAssignment.teacher_id == teacher_id,
        models.TeacherBatchAssignment.batch_id == batch_id
    ).first()
    if existing:
        return False

    db.add(models.TeacherBatchAssignment(
        teacher_id=teacher_id,
        batch_id=batch_id,
        assigned_by=assigned_by
    ))
    db.commit()
    return True

def unassign_teacher_from_batch(db: Session, teacher_id: int, batch_id: int) -> int:
    deleted = db.query(models.TeacherBatchAssignment).filter(
        models.TeacherBatchAssignment.teacher_id == teacher_id,
        models.TeacherBatchAssignment.batch_id == batch_id
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


# --- Teacher CRUD ---

def get_teachers(db: Session) -> List[models.Teacher]:
    return db.query(models.Teacher).order_by(models.Teacher.id.desc()).all()

def get_teacher(db: Session, teacher_id: int) -> models.Teacher | None:
    return db.query(models.Teacher).filter(models.Teacher.id == teacher_id).first()

def create_teacher(db: Session, teacher_data: schemas.TeacherCreate) -> models.Teacher | None:
    """
    Creates a new User account and its associated Teacher profile in a single transaction.
    Returns None if the email is already taken.
    """
    if get_user_by_email(db, email=teacher_data.email):
        return None

    db_user = models.User(
        email=teacher_data.email,
        hashed_password=get_password_hash(teacher_data.password),
        role=models.UserRole.teacher  # Force role to teacher
    )
    db_teacher = models.Teacher(
        name=teacher_data.name,
        subject=teacher_data.subject,
        specialization=teacher_data.specialization,
        phone=teacher_data.phone,
        user=db_user
    )
    db.add(db_teacher)
    db.commit()
    db.refresh(db_teacher)
    return db_teacher

def update_teacher(db: Session, db_teacher: models.Teacher, teacher_data: schemas.TeacherUpdate) -> models.Teacher | None:
    """Updates provided fields only. Returns None if the new email belongs to someone else."""
    changes = teacher_data.model_dump(exclude_unset=True)

    email = changes.pop("email", None)
    if email and email != db_teacher.user.email:
        if get_user_by_email(db, email=email):
            return None
        db_teacher.user.email = email

    password = changes.pop("password", None)
    if password:
        db_teacher.user.hashed_password = get_password_hash(password)

    for field, value in changes.items():
        setattr(db_teacher, field, value)

    db.commit()
    db.refresh(db_teacher)
    return db_teacher

def delete_teacher(db: Session, db_teacher: models.Teacher) -> None:
    """Deletes the teacher profile together with its login account."""
    db_user = db_teacher.user
    db.delete(db_teacher)
    if db_user:
        db.delete(db_user)
    db.commit()

def get_teacher_batches(db: Session, teacher_id: int) -> List[models.Batch]:
    return db.query(models.Batch).join(
        models.TeacherBatchAssignment,
        models.TeacherBatchAssignment.batch_id == models.Batch.id
    ).filter(
        models.TeacherBatchAssignment.teacher_id == teacher_id
    ).order_by(models.TeacherBatchAssignment.created_at, models.Batch.id).all()

def get_teacher_batch_ids(db: Session, teacher_id: int) -> List[int]:
    return [batch.id for batch in get_teacher_batches(db, teacher_id)]

def assign_batches_to_teacher(db: Session, teacher_id: int, batch_ids: List[int], assigned_by: Optional[int]) -> List[int]:
    """Bulk insert-if-absent. Unknown batch ids are skipped. Returns the ids newly assigned."""
    known = {
        row.id for row in db.query(models.Batch.id).filter(models.Batch.id.in_(batch_ids)).all()
    }
    added = []
    for batch_id in dict.fromkeys(batch_ids):
        if batch_id in known and assign_teacher_to_batch(db, teacher_id, batch_id, assigned_by):
            added.append(batch_id)
    return added

def get_teacher_summary(db: Session, db_teacher: models.Teacher) -> dict:
    batches = get_teacher_batches(db, db_teacher.id)
    batch_display = f"{batches[0].course} {batches[0].name}".strip() if batches else None
    return {
        "teacher": db_teacher,
        "batch_ids": [b.id for b in batches],
        "assigned_batches": batches,
        "batch_display": batch_display,
    }

def get_teacher_students(db: Session, teacher_id: int, batch_id: Optional[int] = None) -> List[models.Student]:
    """Students of the teacher's assigned batches (or one of them), ordered by numeric roll number."""
    query = db.query(models.Student).join(
        models.TeacherBatchAssignment,
        models.TeacherBatchAssignment.batch_id == models.Student.batch_id
    ).filter(models.TeacherBatchAssignment.teacher_id == teacher_id)
    if batch_id is not None:
        query = query.filter(models.Student.batch_id == batch_id)
    return sorted(query.all(), key=lambda s: _roll_sort_key(s.roll_number))

def _attendance_last_days(db: Session, batch_id: int, today: date, days: int = 7) -> List[dict]:
    start = today - timedelta(days=days - 1)
    rows = db.query(
        models.AttendanceRecord.attendance_date,
        models.AttendanceRecord.status
    ).join(
        models.Student, models.Student.id == models.AttendanceRecord.student_id
    ).filter(
        models.Student.batch_id == batch_id,
        models.AttendanceRecord.attendance_date >= start,
        models.AttendanceRecord.attendance_date <= today
    ).all()

    by_date = {start + timedelta(days=i): [0, 0] for i in range(days)}
    for row in rows:
        bucket = by_date[row.attendance_date]
        bucket[0] += 1
        if row.status == models.AttendanceStatus.Present:
            bucket[1] += 1

    return [
        {
            "date": day,
            "total": total,
            "presents": presents,
            "pct": round(presents * 100 / total) if total else 0,
        }
        for day, (total, presents) in by_date.items()
    ]

def get_teacher_dashboard(db: Session, db_teacher: models.Teacher, today: Optional[date] = None) -> dict:
    """
    Combined teacher home data: assigned batches, students count, last 7 days
    of attendance and today's presents for the first assigned batch, latest
    visible notifications with read flags, and XP progress.
    """
    today = today or date.today()
    batches = get_teacher_batches(db, db_teacher.id)
    first_batch = batches[0] if batches else None

    students_count = db.query(func.count(models.Student.id)).select_from(models.Student).join(
        models.TeacherBatchAssignment,
        models.TeacherBatchAssignment.batch_id == models.Student.batch_id
    ).filter(models.TeacherBatchAssignment.teacher_id == db_teacher.id).scalar() or 0

    attendance7 = []
    today_presents = 0
    today_total = 0
    if first_batch:
        attendance7 = _attendance_last_days(db, first_batch.id, today)
        today_presents = attendance7[-1]["presents"]
        today_total = db.query(func.count(models.Student.id)).filter(
            models.Student.batch_id == first_batch.id
        ).scalar() or 0

    notifications = get_user_notifications(
        db, models.UserRole.teacher, db_teacher.id, limit=DASHBOARD_NOTIFICATION_LIMIT
    )

    return {
        "assigned_batches": batches,
        "students_count": students_count,
        "attendance7": attendance7,
        "today_attendance_count": today_presents,
        "today_total": today_total,
        "notifications": notifications,
        "unread_count": sum(1 for n in notifications if not n["is_read"]),
        "xp": db_teacher.xp,
        "level": db_teacher.level,
        "next_xp_target": db_teacher.next_xp_target,
    }


# --- Student CRUD ---

def get_students(db: Session, batch_id: Optional[int] = None) -> List[models.Student]:
    query = db.query(models.Student)
    if batch_id is not None:
        query = query.filter(models.Student.batch_id == batch_id)
    return sorted(query.all(), key=lambda s: _roll_sort_key(s.roll_number))

def get_student(db: Session, student_id: int) -> models.Student | None:
    return db.query(models.Student).filter(models.Student.id == student_id).first()

def get_student_by_roll(db: Session, roll_number: str) -> models.Student | None:
    return db.query(models.Student).filter(models.Student.roll_number == roll_number).first()

def _resolve_batch_id(db: Session, data: Dict[str, Any]) -> Optional[int]:
    """A batch_id must exist; a textual batch name is found or created under (course, name, year)."""
    if data.get("batch_id"):
        if not get_batch(db, data["batch_id"]):
            raise ValidationError({"batch": "Invalid batch selected"})
        return data["batch_id"]
    if data.get("batch"):
        return find_or_create_batch(db, data.get("course"), data["batch"].strip(), data.get("year")).id
    return None

def _set_student_account(db: Session, db_student: models.Student, email: Optional[str], password: Optional[str]) -> None:
    """
    Creates or updates the student's login account. A student given an email
    without a password gets an account that cannot log in until one is set.
    """
    if db_student.user is None:
        if not email:
            return
        db_student.user = models.User(
            email=email,
            hashed_password=get_password_hash(password) if password else "",
            role=models.UserRole.student
        )
        return
    if email:
        db_student.user.email = email
    if password:
        db_student.user.hashed_password = get_password_hash(password)

def _email_taken(db: Session, email: Optional[str], owner: Optional[models.User] = None) -> bool:
    if not email:
        return False
    existing = get_user_by_email(db, email=email)
    return existing is not None and existing is not owner

def create_student(db: Session, student_data: schemas.StudentCreate) -> models.Student:
    """
    Validates and creates a student. Raises ValidationError (field map) for
    bad fields, a duplicate roll number, a taken email or an unknown batch.
    """
    data = student_data.model_dump()
    validate_student_fields(data)
    roll_number = (data.get("roll_number") or "").strip()
    if get_student_by_roll(db, roll_number):
        raise ValidationError({"roll_number": "Roll number already exists"})
    if _email_taken(db, data.get("email")):
        raise ValidationError({"email": "Email already exists"})

    batch_id = _resolve_batch_id(db, data)
    db_student = models.Student(
        roll_number=roll_number,
        name=data["name"].strip(),
        course=data.get("course"),
        year=data.get("year"),
        semester=data.get("semester"),
        phone=data.get("phone"),
        batch_id=batch_id
    )
    _set_student_account(db, db_student, data.get("email"), data.get("password"))

    db.add(db_student)
    db.commit()
    db.refresh(db_student)
    return db_student

def update_student(db: Session, db_student: models.Student, student_data: schemas.StudentUpdate) -> models.Student:
    changes = student_data.model_dump(exclude_unset=True)
    validate_student_fields(changes, partial=True)

    roll_number = changes.get("roll_number")
    if roll_number is not None:
        roll_number = roll_number.strip()
        other = get_student_by_roll(db, roll_number)
        if other and other.id != db_student.id:
            raise ValidationError({"roll_number": "Roll number already exists"})
        changes["roll_number"] = roll_number

    email = changes.pop("email", None)
    if _email_taken(db, email, owner=db_student.user):
        raise ValidationError({"email": "Email already exists"})

    if "batch_id" in changes or "batch" in changes:
        lookup = {"course": db_student.course, "year": db_student.year, **changes}
        db_student.batch_id = _resolve_batch_id(db, lookup)
    changes.pop("batch_id", None)
    changes.pop("batch", None)

    password = changes.pop("password", None)
    _set_student_account(db, db_student, email, password)

    for field, value in changes.items():
        if field == "name" and value:
            value = value.strip()
        setattr(db_student, field, value)

    db.commit()
    db.refresh(db_student)
    return db_student

def delete_student(db: Session, db_student: models.Student) -> None:
    """Deletes the student with its attendance, marks and submissions, and its login account."""
    db_user = db_student.user
    uploads = [sub.file_path for sub in db_student.submissions]
    db.delete(db_student)
    if db_user:
        db.delete(db_user)
    db.commit()
    for file_path in uploads:
        _remove_file(file_path)

def get_student_attendance(
    db: Session, student_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> List[models.AttendanceRecord]:
    query = db.query(models.AttendanceRecord).filter(models.AttendanceRecord.student_id == student_id)
    if date_from:
        query = query.filter(models.AttendanceRecord.attendance_date >= date_from)
    if date_to:
        query = query.filter(models.AttendanceRecord.attendance_date <= date_to)
    return query.order_by(models.AttendanceRecord.attendance_date.desc()).all()

def get_student_marks(db: Session, student_id: int, semester: Optional[int] = None) -> List[models.MarksRecord]:
    query = db.query(models.MarksRecord).filter(models.MarksRecord.student_id == student_id)
    if semester is not None:
        query = query.filter(models.MarksRecord.semester == semester)
    return query.order_by(models.MarksRecord.exam_date.desc(), models.MarksRecord.id).all()


# --- Attendance and Marks reads ---

def get_attendance(db: Session, attendance_date: date, batch_id: Optional[int] = None) -> List[dict]:
    """Attendance rows for one date, joined with student and batch details."""
    query = db.query(models.AttendanceRecord, models.Student, models.Batch).join(
        models.Student, models.Student.id == models.AttendanceRecord.student_id
    ).outerjoin(
        models.Batch, models.Batch.id == models.Student.batch_id
    ).filter(models.AttendanceRecord.attendance_date == attendance_date)
    if batch_id is not None:
        query = query.filter(models.Student.batch_id == batch_id)

    rows = [
        {
            "student_id": record.student_id,
            "attendance_date": record.attendance_date,
            "status": record.status,
            "recorded_by": record.recorded_by,
            "roll_number": student.roll_number,
            "name": student.name,
            "email": student.email,
            "course": student.course,
            "batch_name": batch.name if batch else None,
            "batch_year": batch.year if batch else None,
        }
        for record, student, batch in query.all()
    ]
    return sorted(rows, key=lambda r: _roll_sort_key(r["roll_number"]))

def get_marks(
    db: Session,
    batch_id: Optional[int] = None,
    assessment: Optional[str] = None,
    exam_date: Optional[str] = None,
    student_id: Optional[int] = None,
    recorded_by: Optional[int] = None,
) -> List[dict]:
    """
    Marks rows joined with student and recording teacher. The date filter
    accepts YYYY-MM-DD or DD-MM-YYYY; an unparseable date matches nothing.
    """
    query = db.query(models.MarksRecord, models.Student).outerjoin(
        models.Student, models.Student.id == models.MarksRecord.student_id
    )
    if batch_id is not None:
        query = query.filter(models.MarksRecord.batch_id == batch_id)
    if student_id is not None:
        query = query.filter(models.MarksRecord.student_id == student_id)
    if assessment:
        query = query.filter(models.MarksRecord.assessment == assessment)
    if recorded_by is not None:
        query = query.filter(models.MarksRecord.recorded_by == recorded_by)
    if exam_date:
        parsed = parse_flexible_date(exam_date)
        if parsed is None:
            return []
        query = query.filter(models.MarksRecord.exam_date == parsed)

    rows = []
    for record, student in query.all():
        rows.append({
            "id": record.id,
            "student_id": record.student_id,
            "batch_id": record.batch_id,
            "assessment": record.assessment,
            "subject": record.subject,
            "marks": record.marks,
            "max_marks": record.max_marks,
            "semester": record.semester,
            "exam_date": record.exam_date,
            "recorded_by": record.recorded_by,
            "student_roll_number": student.roll_number if student else None,
            "student_name": student.name if student else None,
            "student_email": student.email if student else None,
            "teacher_name": record.teacher.name if record.teacher else None,
        })

    # Most recent exam first within a student
    rows.sort(key=lambda r: r["exam_date"] or date.min, reverse=True)
    rows.sort(key=lambda r: _roll_sort_key(r["student_roll_number"]))
    return rows


# --- Notification CRUD ---

AUDIENCE_ALIASES = {
    "teacher": models.NotificationAudience.teachers,
    "teachers": models.NotificationAudience.teachers,
    "student": models.NotificationAudience.students,
    "students": models.NotificationAudience.students,
}

def normalize_audience(raw: Optional[str]) -> models.NotificationAudience:
    """Unknown or empty audiences address everyone."""
    return AUDIENCE_ALIASES.get((raw or "").strip().lower(), models.NotificationAudience.both)

def _audiences_for(role: models.UserRole) -> List[models.NotificationAudience]:
    if role == models.UserRole.teacher:
        return [models.NotificationAudience.teachers, models.NotificationAudience.both]
    return [models.NotificationAudience.students, models.NotificationAudience.both]

def get_notifications(db: Session) -> List[models.Notification]:
    return db.query(models.Notification).order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).all()

def get_notification(db: Session, notification_id: int) -> models.Notification | None:
    return db.query(models.Notification).filter(models.Notification.id == notification_id).first()

def create_notification(db: Session, data: schemas.NotificationCreate, created_by: Optional[int]) -> models.Notification:
    db_notification = models.Notification(
        created_by=created_by,
        type=data.type or "notice",
        title=data.title,
        message=data.message,
        audience=normalize_audience(data.audience),
        send_at=data.send_at
    )
    db.add(db_notification)
    db.commit()
    db.refresh(db_notification)
    return db_notification

def delete_notification(db: Session, db_notification: models.Notification) -> None:
    db.delete(db_notification)  # receipts cascade
    db.commit()

def get_receipts(db: Session, notification_id: int) -> List[models.NotificationReceipt]:
    return db.query(models.NotificationReceipt).filter(
        models.NotificationReceipt.notification_id == notification_id
    ).order_by(models.NotificationReceipt.id).all()

def get_user_notifications(
    db: Session, role: models.UserRole, user_id: int, limit: Optional[int] = None
) -> List[dict]:
    """
    Notifications visible to a teacher or student (matching audience, already
    sent), newest first, each with the reader's is_read/read_at.
    """
    query = db.query(models.Notification, models.NotificationReceipt).outerjoin(
        models.NotificationReceipt,
        (models.NotificationReceipt.notification_id == models.Notification.id)
        & (models.NotificationReceipt.user_type == role)
        & (models.NotificationReceipt.user_id == user_id)
    ).filter(
        models.Notification.audience.in_(_audiences_for(role)),
        (models.Notification.send_at.is_(None)) | (models.Notification.send_at <= datetime.utcnow())
    ).order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
    if limit:
        query = query.limit(limit)

    return [
        {
            "id": n.id,
            "type": n.type,
            "title": n.title,
            "message": n.message,
            "audience": n.audience.value,
            "send_at": n.send_at,
            "created_at": n.created_at,
            "created_by": n.created_by,
            "is_read": bool(receipt and receipt.is_read),
            "read_at": receipt.read_at if receipt else None,
        }
        for n, receipt in query.all()
    ]

def _mark_read(db: Session, notification_id: int, role: models.UserRole, user_id: int, now: datetime) -> None:
    receipt = db.query(models.NotificationReceipt).filter(
        models.NotificationReceipt.notification_id == notification_id,
        models.NotificationReceipt.user_type == role,
        models.NotificationReceipt.user_id == user_id
    ).first()
    if receipt is None:
        receipt = models.NotificationReceipt(notification_id=notification_id, user_type=role, user_id=user_id)
        db.add(receipt)
    if not receipt.is_read:
        receipt.is_read = True
        receipt.read_at = now

def mark_notification_read(db: Session, notification_id: int, role: models.UserRole, user_id: int) -> None:
    _mark_read(db, notification_id, role, user_id, datetime.utcnow())
    db.commit()

def mark_all_notifications_read(db: Session, role: models.UserRole, user_id: int) -> int:
    now = datetime.utcnow()
    visible = get_user_notifications(db, role, user_id)
    unread = [n["id"] for n in visible if not n["is_read"]]
    for notification_id in unread:
        _mark_read(db, notification_id, role, user_id, now)
    db.commit()
    return len(unread)


# --- School settings ---

SCHOOL_INFO_ID = 1

def get_school_info(db: Session) -> models.SchoolInfo | None:
    return db.query(models.SchoolInfo).filter(models.SchoolInfo.id == SCHOOL_INFO_ID).first()

def upsert_school_info(db: Session, data: schemas.SchoolInfoIn) -> models.SchoolInfo:
    db_info = get_school_info(db)
    if db_info is None:
        db_info = models.SchoolInfo(id=SCHOOL_INFO_ID)
        db.add(db_info)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(db_info, field, value)
    db.commit()
    db.refresh(db_info)
    return db_info


# --- Assignment CRUD ---

def create_assignment(db: Session, data: schemas.AssignmentCreate, teacher_id: int) -> models.Assignment:
    db_assignment = models.Assignment(**data.model_dump(), teacher_id=teacher_id)
    db.add(db_assignment)
    db.commit()
    db.refresh(db_assignment)
    return db_assignment

def get_assignment(db: Session, assignment_id: int) -> models.Assignment | None:
    return db.query(models.Assignment).filter(models.Assignment.id == assignment_id).first()

def get_teacher_assignments(db: Session, teacher_id: int) -> List[dict]:
    assignments = db.query(models.Assignment).filter(
        models.Assignment.teacher_id == teacher_id
    ).order_by(models.Assignment.created_at.desc(), models.Assignment.id.desc()).all()

    return [
        {
            **schemas.AssignmentOut.model_validate(a).model_dump(),
            "course": a.batch.course if a.batch else None,
            "batch_name": a.batch.name if a.batch else None,
            "batch_year": a.batch.year if a.batch else None,
        }
        for a in assignments
    ]

def update_assignment(db: Session, db_assignment: models.Assignment, data: schemas.AssignmentUpdate) -> models.Assignment:
    for field, value in data.model_dump().items():
        setattr(db_assignment, field, value)
    db.commit()
    db.refresh(db_assignment)
    return db_assignment

def delete_assignment(db: Session, db_assignment: models.Assignment) -> None:
    uploads = [sub.file_path for sub in db_assignment.submissions]
    db.delete(db_assignment)  # submissions cascade
    db.commit()
    for file_path in uploads:
        _remove_file(file_path)

def get_submission_rows(db: Session, db_assignment: models.Assignment) -> List[dict]:
    """Every student of the assignment's batch, with their submission if any."""
    students = get_students(db, batch_id=db_assignment.batch_id)
    by_student = {s.student_id: s for s in db_assignment.submissions}

    rows = []
    for student in students:
        sub = by_student.get(student.id)
        rows.append({
            "student_id": student.id,
            "roll_number": student.roll_number,
            "name": student.name,
            "submission_id": sub.id if sub else None,
            "submitted_at": sub.submitted_at if sub else None,
            "file_path": sub.file_path if sub else None,
            "submission_text": sub.submission_text if sub else None,
            "marks": sub.marks if sub else None,
            "feedback": sub.feedback if sub else None,
        })
    return rows

def get_submission(db: Session, submission_id: int) -> models.AssignmentSubmission | None:
    return db.query(models.AssignmentSubmission).filter(models.AssignmentSubmission.id == submission_id).first()

def review_submission(db: Session, db_submission: models.AssignmentSubmission, review: schemas.SubmissionReview) -> models.AssignmentSubmission:
    db_submission.marks = review.marks
    db_submission.feedback = review.feedback
    db_submission.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(db_submission)
    return db_submission

def get_student_assignments(db: Session, db_student: models.Student) -> List[dict]:
    if not db_student.batch_id:
        return []

    query = db.query(models.Assignment, models.AssignmentSubmission).outerjoin(
        models.AssignmentSubmission,
        (models.AssignmentSubmission.assignment_id == models.Assignment.id)
        & (models.AssignmentSubmission.student_id == db_student.id)
    ).filter(
        models.Assignment.batch_id == db_student.batch_id
    ).order_by(models.Assignment.created_at.desc(), models.Assignment.id.desc())

    return [
        {
            "id": a.id,
            "title": a.title,
            "subject": a.subject,
            "description": a.description,
            "due_date": a.due_date,
            "submission_id": sub.id if sub else None,
            "submitted_at": sub.submitted_at if sub else None,
            "marks": sub.marks if sub else None,
            "feedback": sub.feedback if sub else None,
            "file_path": sub.file_path if sub else None,
            "submission_text": sub.submission_text if sub else None,
        }
        for a, sub in query.all()
    ]

def upsert_submission(
    db: Session, assignment_id: int, student_id: int, submission_text: Optional[str], file_path: Optional[str]
) -> models.AssignmentSubmission:
    """
    A resubmission overwrites text, file and submitted_at of the existing row.
    The previously stored file is removed once the new row is committed.
    """
    db_submission = db.query(models.AssignmentSubmission).filter(
        models.AssignmentSubmission.assignment_id == assignment_id,
        models.AssignmentSubmission.student_id == student_id
    ).first()
    previous_file = None
    if db_submission is None:
        db_submission = models.AssignmentSubmission(assignment_id=assignment_id, student_id=student_id)
        db.add(db_submission)
    else:
        previous_file = db_submission.file_path

    db_submission.submission_text = submission_text
    db_submission.file_path = file_path
    db_submission.submitted_at = datetime.utcnow()
    db.commit()
    db.refresh(db_submission)

    if previous_file and previous_file != file_path:
        _remove_file(previous_file)
    return db_submission

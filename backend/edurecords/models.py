from sqlalchemy import (
    Column, Integer, String, Enum as SQLAlchemyEnum, ForeignKey,
    Float, Date, DateTime, Boolean, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum
from datetime import datetime

from edurecords.db import Base

# --- ENUMS for consistent data types ---

class UserRole(str, enum.Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class AttendanceStatus(str, enum.Enum):
    Present = "Present"
    Absent = "Absent"


class NotificationAudience(str, enum.Enum):
    teachers = "teachers"
    students = "students"
    both = "both"


# XP progression starts every teacher at level 1 with this target
INITIAL_XP_TARGET = 250


# --- Central Authentication and Profile Models ---

class User(Base):
    """The central account model for authentication."""
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(SQLAlchemyEnum(UserRole), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # One-to-one relationships to role-specific profiles
    admin_profile = relationship("Admin", back_populates="user", uselist=False, cascade="all, delete-orphan")
    student_profile = relationship("Student", back_populates="user", uselist=False)
    teacher_profile = relationship("Teacher", back_populates="user", uselist=False)


class ProfileMixin:
    """Exposes the login email of a role profile, if it has an account."""

    @property
    def email(self):
        return self.user.email if self.user else None


class Admin(ProfileMixin, Base):
    __tablename__ = "admins"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)

    user = relationship("User", back_populates="admin_profile")


class Teacher(ProfileMixin, Base):
    """Profile model for teachers, including their XP progression."""
    __tablename__ = "teachers"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    name = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    specialization = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    next_xp_target = Column(Integer, nullable=False, default=INITIAL_XP_TARGET)
    # Bumped on every XP write; guards the read-modify-write in core.xp
    xp_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="teacher_profile")
    batch_assignments = relationship("TeacherBatchAssignment", back_populates="teacher", cascade="all, delete-orphan")
    assignments_created = relationship("Assignment", back_populates="teacher", cascade="all, delete-orphan")


class Student(ProfileMixin, Base):
    """Profile model for students. A student may exist without a login account."""
    __tablename__ = "students"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    roll_number = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    course = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    semester = Column(Integer, nullable=True)
    phone = Column(String, nullable=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="student_profile")
    batch = relationship("Batch", back_populates="students")

    attendance_records = relationship("AttendanceRecord", back_populates="student", cascade="all, delete-orphan")
    marks_records = relationship("MarksRecord", back_populates="student", cascade="all, delete-orphan")
    submissions = relationship("AssignmentSubmission", back_populates="student", cascade="all, delete-orphan")


# --- Core Academic Structure Models ---

class Batch(Base):
    __tablename__ = "batches"
    id = Column(Integer, primary_key=True, index=True)
    course = Column(String, nullable=False)
    name = Column(String, nullable=False)
    year = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    students = relationship("Student", back_populates="batch")
    teacher_assignments = relationship("TeacherBatchAssignment", back_populates="batch", cascade="all, delete-orphan")


class TeacherBatchAssignment(Base):
    __tablename__ = "teacher_batches"
    teacher_id = Column(Integer, ForeignKey("teachers.id"), primary_key=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), primary_key=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    teacher = relationship("Teacher", back_populates="batch_assignments")
    batch = relationship("Batch", back_populates="teacher_assignments")


# --- Attendance and Marks ---

class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "attendance_date", name="uq_attendance_student_date"),
    )
    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(SQLAlchemyEnum(AttendanceStatus), nullable=False)
    recorded_by = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student", back_populates="attendance_records")


class MarksRecord(Base):
    __tablename__ = "marks"
    __table_args__ = (
        UniqueConstraint("student_id", "batch_id", "assessment", name="uq_marks_student_batch_assessment"),
    )
    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False)
    assessment = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    marks = Column(Float, nullable=True)
    max_marks = Column(Float, nullable=True)
    semester = Column(Integer, nullable=True)
    exam_date = Column(Date, nullable=True)
    recorded_by = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student", back_populates="marks_records")
    batch = relationship("Batch")
    teacher = relationship("Teacher")


# --- Assignments ---

class Assignment(Base):
    __tablename__ = "assignments"
    id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False)
    subject = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    teacher = relationship("Teacher", back_populates="assignments_created")
    batch = relationship("Batch")
    submissions = relationship(
        "AssignmentSubmission",
        back_populates="assignment",
        cascade="all, delete-orphan"
    )


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )
    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)

    submission_text = Column(Text, nullable=True)
    file_path = Column(String, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow)
    marks = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("Student", back_populates="submissions")


# --- Notifications and Settings ---

class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    type = Column(String, nullable=False, default="notice")
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    audience = Column(SQLAlchemyEnum(NotificationAudience), nullable=False, default=NotificationAudience.both)
    send_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    receipts = relationship("NotificationReceipt", back_populates="notification", cascade="all, delete-orphan")


class NotificationReceipt(Base):
    __tablename__ = "notification_receipts"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_type", "user_id", name="uq_receipt_notification_user"),
    )
    id = Column(Integer, primary_key=True)
    notification_id = Column(Integer, ForeignKey("notifications.id"), nullable=False)
    user_type = Column(SQLAlchemyEnum(UserRole), nullable=False)
    user_id = Column(Integer, nullable=False)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)

    notification = relationship("Notification", back_populates="receipts")


class SchoolInfo(Base):
    """Single-row table (id = 1) holding institution details."""
    __tablename__ = "school_info"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    academic_year = Column(String, nullable=True)
    timezone = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)

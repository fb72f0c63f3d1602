from pydantic import BaseModel, EmailStr, Field
from enum import Enum
from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

# --- ENUMS (Consistent with models.py) ---

class UserRole(str, Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"

class AttendanceStatus(str, Enum):
    Present = "Present"
    Absent = "Absent"

class NotificationAudience(str, Enum):
    teachers = "teachers"
    students = "students"
    both = "both"


# --- Generic responses ---

class ErrorResponse(BaseModel):
    message: str
    fields: Optional[Dict[str, str]] = None

class MessageResponse(BaseModel):
    message: str

class BulkWriteOut(BaseModel):
    message: str
    count: int


# --- 1. Auth ---

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class UserOut(BaseModel):
    id: int
    email: EmailStr
    role: UserRole
    class Config:
        from_attributes = True

class AdminOut(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    class Config:
        from_attributes = True

class LoginResponse(BaseModel):
    token: str
    admin: Optional[AdminOut] = None
    teacher: Optional["TeacherOut"] = None
    student: Optional["StudentOut"] = None


# --- 2. Batches ---

class BatchCreate(BaseModel):
    course: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    year: Optional[int] = None

class BatchOut(BaseModel):
    id: int
    course: str
    name: str
    year: Optional[int] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class AssignTeacherRequest(BaseModel):
    teacher_id: int

class BatchIdsRequest(BaseModel):
    batch_ids: List[int] = Field(default_factory=list)

class BatchIdsOut(BaseModel):
    batch_ids: List[int]


# --- 3. Teachers ---

class TeacherBase(BaseModel):
    name: str
    subject: Optional[str] = None
    specialization: Optional[str] = None
    phone: Optional[str] = None

class TeacherCreate(TeacherBase):
    email: EmailStr
    password: str = Field(..., min_length=6)

class TeacherUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    subject: Optional[str] = None
    specialization: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)

class TeacherOut(TeacherBase):
    id: int
    email: Optional[str] = None
    class Config:
        from_attributes = True

class TeacherXPOut(BaseModel):
    xp: int
    level: int
    next_xp_target: int
    class Config:
        from_attributes = True

class TeacherSummaryOut(BaseModel):
    teacher: TeacherOut
    batch_ids: List[int]
    assigned_batches: List[BatchOut]
    batch_display: Optional[str] = None


# --- 4. Students ---

class StudentCreate(BaseModel):
    roll_number: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    course: Optional[str] = None
    year: Optional[int] = None
    semester: Optional[int] = None
    phone: Optional[str] = None
    batch_id: Optional[int] = None
    batch: Optional[str] = None

class StudentUpdate(StudentCreate):
    pass

class StudentOut(BaseModel):
    id: int
    roll_number: str
    name: str
    email: Optional[str] = None
    course: Optional[str] = None
    year: Optional[int] = None
    semester: Optional[int] = None
    phone: Optional[str] = None
    batch_id: Optional[int] = None
    class Config:
        from_attributes = True

class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


# --- 5. Attendance and Marks ---

# Bulk payload fields are loosely typed; core.validation checks them after
# the batch guard has run.

class AttendanceRecordIn(BaseModel):
    student_id: Optional[Any] = None
    # Anything other than "Present" is stored as Absent
    status: Optional[Any] = None

class AttendanceBulkIn(BaseModel):
    date: Optional[Any] = None
    batch_id: Optional[Any] = None
    records: List[AttendanceRecordIn] = Field(default_factory=list)

class MarksRecordIn(BaseModel):
    student_id: Optional[Any] = None
    marks: Optional[Any] = None
    subject: Optional[Any] = None
    semester: Optional[Any] = None

class MarksBulkIn(BaseModel):
    date: Optional[Any] = None
    batch_id: Optional[Any] = None
    assessment: Optional[Any] = None
    max_marks: Optional[Any] = None
    records: List[MarksRecordIn] = Field(default_factory=list)

class StudentAttendanceOut(BaseModel):
    attendance_date: date_type
    status: AttendanceStatus
    class Config:
        from_attributes = True

class StudentMarksOut(BaseModel):
    subject: Optional[str] = None
    assessment: str
    marks: Optional[float] = None
    max_marks: Optional[float] = None
    exam_date: Optional[date_type] = None
    semester: Optional[int] = None
    class Config:
        from_attributes = True

class AttendanceRowOut(BaseModel):
    student_id: int
    attendance_date: date_type
    status: AttendanceStatus
    recorded_by: Optional[int] = None
    roll_number: str
    name: str
    email: Optional[str] = None
    course: Optional[str] = None
    batch_name: Optional[str] = None
    batch_year: Optional[int] = None

class MarksRowOut(BaseModel):
    id: int
    student_id: int
    batch_id: int
    assessment: str
    subject: Optional[str] = None
    marks: Optional[float] = None
    max_marks: Optional[float] = None
    semester: Optional[int] = None
    exam_date: Optional[date_type] = None
    recorded_by: Optional[int] = None
    student_roll_number: Optional[str] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    teacher_name: Optional[str] = None


# --- 6. Notifications and Settings ---

class NotificationCreate(BaseModel):
    type: str = "notice"
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    audience: str = "both"
    send_at: Optional[datetime] = None

class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    audience: NotificationAudience
    send_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None
    class Config:
        from_attributes = True

class UserNotificationOut(NotificationOut):
    is_read: bool = False
    read_at: Optional[datetime] = None

class UserNotificationsOut(BaseModel):
    notifications: List[UserNotificationOut]
    unread_count: int

class ReceiptOut(BaseModel):
    notification_id: int
    user_type: UserRole
    user_id: int
    is_read: bool
    read_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class CreatedOut(BaseModel):
    message: str
    id: int

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    subject: Optional[str] = None
    specialization: Optional[str] = None

class SchoolInfoIn(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    academic_year: Optional[str] = None
    timezone: Optional[str] = None
    logo_url: Optional[str] = None

class SchoolInfoOut(SchoolInfoIn):
    id: int
    class Config:
        from_attributes = True


# --- 7. Assignments ---

class AssignmentCreate(BaseModel):
    batch_id: int
    subject: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    due_date: Optional[date_type] = None

class AssignmentUpdate(AssignmentCreate):
    pass

class AssignmentOut(AssignmentCreate):
    id: int
    teacher_id: int
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class TeacherAssignmentOut(AssignmentOut):
    course: Optional[str] = None
    batch_name: Optional[str] = None
    batch_year: Optional[int] = None

class SubmissionReview(BaseModel):
    marks: Optional[float] = Field(None, ge=0, le=10)
    feedback: Optional[str] = None

class SubmissionRowOut(BaseModel):
    student_id: int
    roll_number: str
    name: str
    submission_id: Optional[int] = None
    submitted_at: Optional[datetime] = None
    file_path: Optional[str] = None
    submission_text: Optional[str] = None
    marks: Optional[float] = None
    feedback: Optional[str] = None

class StudentAssignmentOut(BaseModel):
    id: int
    title: str
    subject: str
    description: Optional[str] = None
    due_date: Optional[date_type] = None
    submission_id: Optional[int] = None
    submitted_at: Optional[datetime] = None
    marks: Optional[float] = None
    feedback: Optional[str] = None
    file_path: Optional[str] = None
    submission_text: Optional[str] = None


LoginResponse.model_rebuild()


# --- 8. Teacher dashboard ---

class AttendanceDayOut(BaseModel):
    date: date_type
    total: int
    presents: int
    pct: int

class TeacherDashboardOut(TeacherXPOut):
    assigned_batches: List[BatchOut]
    students_count: int
    attendance7: List[AttendanceDayOut]
    today_attendance_count: int
    today_total: int
    notifications: List[UserNotificationOut]
    unread_count: int

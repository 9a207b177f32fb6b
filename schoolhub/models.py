import enum
from datetime import date
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _check_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError("Date must be in YYYY-MM-DD format")
    return value


DateStr = Annotated[str, AfterValidator(_check_date)]
OptionalDateStr = Annotated[str, AfterValidator(lambda v: _check_date(v) if v else v)]
Term = Literal[1, 2, 3]


class RoleEnum(str, enum.Enum):
    admin = "ADMIN"
    teacher = "TEACHER"


class CamelModel(BaseModel):
    """JSON field names are camelCase, both on the wire and in stored documents."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# -----------------------------
# Documents
# -----------------------------

class User(CamelModel):
    id: str
    name: str
    email: str
    role: RoleEnum
    assigned_class_ids: list[str] = Field(default_factory=list)


class Student(CamelModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    gender: Literal["Male", "Female"]
    dob: OptionalDateStr = ""
    class_id: str
    guardian_name: str = ""
    guardian_phone: str = ""


class AttendanceRecord(CamelModel):
    id: Optional[str] = None
    class_id: str
    date: DateStr
    present_student_ids: list[str] = Field(default_factory=list)
    is_holiday: bool = False


class TeacherAttendanceRecord(CamelModel):
    id: Optional[str] = None
    teacher_id: str
    date: DateStr
    status: Literal["present", "absent"]
    approval_status: Literal["pending", "approved", "rejected"] = "approved"
    approved_by: Optional[str] = None
    approved_at: Optional[int] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[int] = None
    is_holiday: bool = False
    holiday_reason: str = ""


class Assessment(CamelModel):
    id: Optional[str] = None
    student_id: str
    class_id: str
    term: Term
    academic_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    subject: str
    test_score: float = Field(0, ge=0)
    homework_score: float = Field(0, ge=0)
    project_score: float = Field(0, ge=0)
    exam_score: float = Field(0, ge=0)
    total: Optional[int] = None


class Notice(CamelModel):
    id: Optional[str] = None
    message: str = Field(..., min_length=1)
    date: str
    type: Literal["info", "urgent"] = "info"


class StudentRemark(CamelModel):
    id: str
    student_id: str
    class_id: str
    term: Term
    academic_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    remark: str = ""
    behavior_tag: Optional[str] = None
    teacher_id: Optional[str] = None


class StudentSkills(CamelModel):
    id: str
    student_id: str
    class_id: str
    term: Term
    academic_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    ratings: dict[str, str] = Field(default_factory=dict)


class AdminRemark(CamelModel):
    id: str
    student_id: str
    class_id: str
    term: Term
    academic_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    remark: str = ""


class TimeSlot(CamelModel):
    id: str
    start_time: str
    end_time: str
    subject: str
    type: Literal["lesson", "break", "worship", "closing"] = "lesson"


class ClassTimetable(CamelModel):
    class_id: str
    schedule: dict[str, list[TimeSlot]] = Field(default_factory=dict)


class HolidayDate(CamelModel):
    date: DateStr
    reason: Optional[str] = None


class SchoolConfig(CamelModel):
    school_name: str = "New School"
    academic_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    current_term: str
    head_teacher_remark: str = "Keep it up."
    term_end_date: OptionalDateStr = ""
    school_reopen_date: OptionalDateStr = ""
    vacation_date: OptionalDateStr = ""
    next_term_begins: OptionalDateStr = ""
    term_transition_processed: bool = False
    holiday_dates: list[HolidayDate] = Field(default_factory=list)


# -----------------------------
# Requests
# -----------------------------

class LoginRequest(CamelModel):
    email: str
    password: str


class CreateUserRequest(CamelModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=4)
    role: RoleEnum = RoleEnum.teacher
    assigned_class_ids: list[str] = Field(default_factory=list)


class UpdateUserRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=4)


class AssignClassesRequest(CamelModel):
    assigned_class_ids: list[str]


class MarkTeacherAttendanceRequest(CamelModel):
    date: DateStr
    status: Literal["present", "absent"]
    pending: bool = False


class SubjectRequest(CamelModel):
    name: str = Field(..., min_length=1)


class RenameSubjectRequest(CamelModel):
    old_name: str
    new_name: str = Field(..., min_length=1)


class BackupRequest(CamelModel):
    term: Optional[str] = None
    academic_year: Optional[str] = None

import logging
import uuid
from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException, Request, status

from schoolhub import grading, stats
from schoolhub.db import hash_password
from schoolhub.models import (
    AdminRemark,
    AssignClassesRequest,
    BackupRequest,
    ClassTimetable,
    CreateUserRequest,
    HolidayDate,
    Notice,
    RenameSubjectRequest,
    SchoolConfig,
    Student,
    SubjectRequest,
    UpdateUserRequest,
    User,
)
from schoolhub.repository import public_user
from schoolhub.routes.auth import ADMIN_ONLY, get_token_payload, repo, require_role
from schoolhub.term import check_term_transition, create_term_backup, reset_for_new_term, save_school_config

router = APIRouter()
logger = logging.getLogger(__name__)


def _admin(request: Request) -> dict:
    payload = get_token_payload(request)
    require_role(payload, ADMIN_ONLY)
    return payload


def _check_class(class_id: str) -> None:
    if class_id not in grading.CLASSES_BY_ID:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")


def _check_classes(class_ids: list[str]) -> None:
    for class_id in class_ids:
        if class_id not in grading.CLASSES_BY_ID:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid classId")


# -----------------------------
# Users
# -----------------------------

@router.get("/users")
def get_users(request: Request, role: str | None = None):
    _admin(request)
    return [public_user(user) for user in repo.get_users(role)]


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(request: Request, payload: CreateUserRequest):
    _admin(request)
    _check_classes(payload.assigned_class_ids)
    if repo.get_user_by_email(payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    user_id = payload.id or f"usr_{uuid.uuid4().hex[:10]}"
    if repo.get_user(user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    user = User(
        id=user_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        assigned_class_ids=payload.assigned_class_ids,
    ).to_doc()
    user["passwordHash"] = hash_password(payload.password)
    repo.save_user(user)
    logger.info("Created %s user %s", user["role"], user_id)
    return public_user(user)


@router.patch("/users/{id}")
def update_user(id: str, request: Request, payload: UpdateUserRequest):
    _admin(request)
    if payload.name is None and payload.email is None and payload.password is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No update fields provided")
    user = repo.get_user(id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    fields = {}
    if payload.name is not None:
        fields["name"] = payload.name
    if payload.email is not None and payload.email != user.get("email"):
        if repo.get_user_by_email(payload.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
        fields["email"] = payload.email
    if payload.password is not None:
        fields["passwordHash"] = hash_password(payload.password)
    repo.update_user(id, fields)
    return {"message": "Updated"}


@router.put("/users/{id}/classes")
def assign_classes(id: str, request: Request, payload: AssignClassesRequest):
    _admin(request)
    _check_classes(payload.assigned_class_ids)
    if not repo.update_user_assigned_classes(id, payload.assigned_class_ids):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"message": "Updated"}


@router.delete("/users/{id}")
def delete_user(id: str, request: Request):
    token_payload = _admin(request)
    if id == token_payload["sub"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete yourself")
    if not repo.delete_user(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"message": "Deleted"}


# -----------------------------
# Students
# -----------------------------

@router.get("/students")
def get_students(request: Request, classId: str | None = None):
    _admin(request)
    return repo.get_students(classId)


@router.post("/students", status_code=status.HTTP_201_CREATED)
def create_student(request: Request, payload: Student):
    _admin(request)
    _check_class(payload.class_id)
    if payload.id and repo.get_student(payload.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Student already exists")
    return repo.save_student(payload.to_doc())


@router.put("/students/{id}")
def update_student(id: str, request: Request, payload: Student):
    _admin(request)
    _check_class(payload.class_id)
    if not repo.get_student(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return repo.save_student({**payload.to_doc(), "id": id})


@router.delete("/students/{id}")
def delete_student(id: str, request: Request):
    _admin(request)
    if not repo.delete_student(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return {"message": "Deleted"}


# -----------------------------
# Attendance and statistics
# -----------------------------

@router.get("/attendance/by-date")
def get_attendance_by_date(date: date, request: Request):
    _admin(request)
    return repo.get_attendance_by_date(date.isoformat())


@router.get("/statistics/dashboard")
def get_dashboard_stats(request: Request):
    _admin(request)
    return stats.dashboard_stats(repo)


@router.get("/statistics/summary")
def get_dashboard_summary(request: Request):
    _admin(request)
    return stats.dashboard_summary(repo)


@router.get("/statistics/classes/{classId}/attendance")
def get_class_attendance_stats(classId: str, request: Request):
    _admin(request)
    _check_class(classId)
    holidays = stats.holiday_dates(check_term_transition(repo))
    records = [r for r in repo.get_class_attendance(classId) if not r.get("isHoliday") and r["date"] not in holidays]
    roster = repo.get_students(classId)
    return {
        "classId": classId,
        "daysMarked": len(records),
        "rosterSize": len(roster),
        "percentage": stats.class_attendance_percentage(records, len(roster)),
        "records": records,
    }


@router.get("/statistics/students/{id}/performance")
def get_student_performance(id: str, request: Request):
    _admin(request)
    student = repo.get_student(id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return stats.student_performance(repo, id, student["classId"])


@router.get("/statistics/teacher-attendance")
def get_teacher_attendance_analytics(
    request: Request, termStartDate: date | None = None, vacationDate: date | None = None
):
    _admin(request)
    return stats.teacher_attendance_analytics(
        repo,
        termStartDate.isoformat() if termStartDate else None,
        vacationDate.isoformat() if vacationDate else None,
    )


@router.get("/statistics/grades")
def get_grade_distribution(classId: str, subject: str, request: Request, term: int | None = None):
    _admin(request)
    _check_class(classId)
    return grading.grade_distribution(repo.get_assessments(classId, subject, term))


@router.get("/alerts/missed-attendance")
def get_missed_attendance(request: Request):
    _admin(request)
    return {
        "teachers": stats.missed_teacher_attendance(repo),
        "students": stats.missed_student_attendance(repo),
    }


# -----------------------------
# Teacher attendance review
# -----------------------------

@router.get("/teacher-attendance")
def get_teacher_attendance(request: Request, date: date | None = None, teacherId: str | None = None):
    _admin(request)
    if date is not None:
        records = repo.get_teacher_attendance_by_date(date.isoformat())
        return [r for r in records if teacherId is None or r.get("teacherId") == teacherId]
    return repo.get_all_teacher_attendance(teacherId)


@router.get("/teacher-attendance/pending")
def get_pending_teacher_attendance(request: Request, date: date | None = None):
    _admin(request)
    return repo.get_pending_teacher_attendance(date.isoformat() if date else None)


@router.post("/teacher-attendance/{id}/approve")
def approve_teacher_attendance(id: str, request: Request):
    token_payload = _admin(request)
    if not repo.approve_teacher_attendance(id, token_payload["sub"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance record not found")
    return {"message": "Approved"}


@router.post("/teacher-attendance/{id}/reject")
def reject_teacher_attendance(id: str, request: Request):
    token_payload = _admin(request)
    if not repo.reject_teacher_attendance(id, token_payload["sub"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance record not found")
    return {"message": "Rejected"}


# -----------------------------
# Notices and notifications
# -----------------------------

@router.post("/notices", status_code=status.HTTP_201_CREATED)
def create_notice(request: Request, payload: Notice):
    _admin(request)
    return repo.add_notice(payload.to_doc())


@router.delete("/notices/{id}")
def delete_notice(id: str, request: Request):
    _admin(request)
    if not repo.delete_notice(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notice not found")
    return {"message": "Deleted"}


@router.get("/notifications")
def get_notifications(request: Request, limit: int = 20):
    _admin(request)
    return repo.get_system_notifications(limit)


@router.post("/notifications/{id}/read")
def mark_notification_read(id: str, request: Request):
    _admin(request)
    if not repo.mark_notification_as_read(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"message": "Updated"}


@router.delete("/notifications/{id}")
def delete_notification(id: str, request: Request):
    _admin(request)
    if not repo.delete_system_notification(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"message": "Deleted"}


# -----------------------------
# Settings, subjects, timetables, remarks
# -----------------------------

@router.put("/settings")
def update_settings(request: Request, payload: SchoolConfig):
    _admin(request)
    return save_school_config(repo, payload.to_doc())


@router.post("/settings/holidays", status_code=status.HTTP_201_CREATED)
def add_holiday(request: Request, payload: HolidayDate):
    _admin(request)
    config = repo.get_school_config()
    holidays = config.get("holidayDates") or []
    if any(h["date"] == payload.date for h in holidays):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Holiday date already exists")
    return save_school_config(repo, {**config, "holidayDates": [*holidays, payload.to_doc()]})


@router.delete("/settings/holidays/{day}")
def remove_holiday(day: str, request: Request):
    _admin(request)
    config = repo.get_school_config()
    holidays = [h for h in config.get("holidayDates") or [] if h["date"] != day]
    return save_school_config(repo, {**config, "holidayDates": holidays})


@router.post("/classes/{classId}/subjects", status_code=status.HTTP_201_CREATED)
def add_subject(classId: str, request: Request, payload: SubjectRequest):
    _admin(request)
    _check_class(classId)
    return repo.add_subject(classId, payload.name)


@router.patch("/classes/{classId}/subjects")
def rename_subject(classId: str, request: Request, payload: RenameSubjectRequest):
    _admin(request)
    _check_class(classId)
    subjects = repo.rename_subject(classId, payload.old_name, payload.new_name)
    if subjects is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subjects


@router.delete("/classes/{classId}/subjects/{name}")
def delete_subject(classId: str, name: str, request: Request):
    _admin(request)
    _check_class(classId)
    return repo.delete_subject(classId, name)


@router.delete("/subjects")
def reset_subjects(request: Request):
    _admin(request)
    return {"deleted": repo.reset_all_class_subjects()}


@router.put("/timetables/{classId}")
def save_timetable(classId: str, request: Request, payload: ClassTimetable):
    _admin(request)
    _check_class(classId)
    timetable = {**payload.to_doc(), "classId": classId}
    repo.save_timetable(timetable)
    return timetable


@router.get("/admin-remarks/{id}")
def get_admin_remark(id: str, request: Request):
    _admin(request)
    remark = repo.get_admin_remark(id)
    if not remark:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Remark not found")
    return remark


@router.put("/admin-remarks")
def save_admin_remark(request: Request, payload: AdminRemark):
    _admin(request)
    _check_class(payload.class_id)
    remark = payload.to_doc()
    repo.save_admin_remark(remark)
    return remark


# -----------------------------
# Backups and term transition
# -----------------------------

def _day_bounds_ms(day: date) -> tuple[int, int]:
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000) - 1


@router.get("/backups")
def get_backups(request: Request, term: str | None = None, academicYear: str | None = None, date: date | None = None):
    _admin(request)
    backups = repo.get_backups(term, academicYear)
    if date is not None:
        start, end = _day_bounds_ms(date)
        backups = [b for b in backups if start <= b.get("timestamp", 0) <= end]
    return [{key: value for key, value in b.items() if key != "data"} for b in backups]


@router.post("/backups", status_code=status.HTTP_201_CREATED)
def create_backup(request: Request, payload: BackupRequest):
    _admin(request)
    config = repo.get_school_config()
    backup = create_term_backup(
        repo,
        config,
        payload.term or config["currentTerm"],
        payload.academic_year or config["academicYear"],
    )
    return {key: value for key, value in backup.items() if key != "data"}


@router.get("/backups/{id}")
def get_backup(id: str, request: Request):
    _admin(request)
    backup = repo.get_backup(id)
    if not backup:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Backup not found")
    return backup


@router.delete("/backups/{id}")
def delete_backup(id: str, request: Request):
    _admin(request)
    if not repo.delete_backup(id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Backup not found")
    return {"message": "Deleted"}


@router.delete("/backups")
def delete_all_backups(request: Request):
    _admin(request)
    return {"deleted": repo.delete_all_backups()}


@router.post("/term/reset")
def reset_term(request: Request):
    token_payload = _admin(request)
    logger.info("Manual term reset requested by %s", token_payload["sub"])
    return reset_for_new_term(repo, repo.get_school_config())

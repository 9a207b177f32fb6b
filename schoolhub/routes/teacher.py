import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Request, status

from schoolhub import grading, stats
from schoolhub.models import (
    AttendanceRecord,
    Assessment,
    MarkTeacherAttendanceRequest,
    RoleEnum,
    StudentRemark,
    StudentSkills,
    TeacherAttendanceRecord,
)
from schoolhub.routes.auth import STAFF, get_current_user, get_token_payload, repo, require_role
from schoolhub.term import check_term_transition

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_class_access(payload: dict, class_id: str) -> None:
    if class_id not in grading.CLASSES_BY_ID:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    if payload["role"] == RoleEnum.admin.value:
        return
    user = get_current_user(payload)
    if class_id not in (user.get("assignedClassIds") or []):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def _staff(request: Request) -> dict:
    payload = get_token_payload(request)
    require_role(payload, STAFF)
    return payload


def _attendance_for_class(class_id: str, day: str) -> dict:
    record = repo.get_attendance(class_id, day)
    if record:
        return {**record, "isFilled": True}
    return {
        "id": None,
        "classId": class_id,
        "date": day,
        "presentStudentIds": [],
        "isHoliday": False,
        "isFilled": False,
    }


@router.get("/classes")
def get_classes(request: Request):
    payload = _staff(request)
    if payload["role"] == RoleEnum.admin.value:
        allowed = set(grading.CLASSES_BY_ID)
    else:
        allowed = set(get_current_user(payload).get("assignedClassIds") or [])
    return [{"id": c.id, "name": c.name, "level": c.level} for c in grading.CLASSES if c.id in allowed]


@router.get("/classes/{classId}/students")
def get_class_students(classId: str, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_students(classId)


@router.get("/classes/{classId}/subjects")
def get_class_subjects(classId: str, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_subjects(classId)


@router.get("/attendance")
def get_attendance(classId: str, date: date, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return _attendance_for_class(classId, date.isoformat())


@router.put("/attendance")
def put_attendance(request: Request, payload: AttendanceRecord):
    token_payload = _staff(request)
    _require_class_access(token_payload, payload.class_id)
    roster = {student["id"] for student in repo.get_students(payload.class_id)}
    for student_id in payload.present_student_ids:
        if student_id not in roster:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid studentId")
    record = payload.to_doc()
    record["presentStudentIds"] = sorted(set(payload.present_student_ids))
    saved = repo.save_attendance(record)
    logger.info("Attendance saved for %s on %s by %s", payload.class_id, payload.date, token_payload["sub"])
    class_name = grading.CLASSES_BY_ID[payload.class_id].name
    repo.add_system_notification(f"Attendance marked for {class_name} on {payload.date}", "attendance")
    return saved


@router.get("/teacher-attendance/me")
def get_my_attendance(request: Request, date: date | None = None):
    payload = _staff(request)
    if date is None:
        return repo.get_all_teacher_attendance(payload["sub"])
    return repo.get_teacher_attendance(payload["sub"], date.isoformat())


@router.put("/teacher-attendance/me")
def mark_my_attendance(request: Request, payload: MarkTeacherAttendanceRequest):
    token_payload = _staff(request)
    config = check_term_transition(repo)
    if payload.date in stats.holiday_dates(config):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date is a holiday")
    record = TeacherAttendanceRecord(
        teacher_id=token_payload["sub"],
        date=payload.date,
        status=payload.status,
        approval_status="pending" if payload.pending else "approved",
    )
    return repo.save_teacher_attendance(record.to_doc())


@router.get("/teacher-attendance/me/missed")
def get_my_missed_attendance(request: Request):
    payload = _staff(request)
    return {"date": stats.own_missed_attendance(repo, payload["sub"])}


@router.get("/assessments")
def get_assessments(classId: str, subject: str, request: Request, term: int | None = None):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_assessments(classId, subject, term)


@router.put("/assessments")
def put_assessments(request: Request, payload: list[Assessment]):
    token_payload = _staff(request)
    saved = []
    rosters: dict[str, set[str]] = {}
    for assessment in payload:
        _require_class_access(token_payload, assessment.class_id)
        if assessment.class_id not in rosters:
            rosters[assessment.class_id] = {s["id"] for s in repo.get_students(assessment.class_id)}
        if assessment.student_id not in rosters[assessment.class_id]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid studentId")
        saved.append(repo.save_assessment(assessment.to_doc()))
    if saved:
        first = saved[0]
        repo.add_system_notification(
            f"Scores updated for {first['subject']} in {grading.CLASSES_BY_ID[first['classId']].name}",
            "assessment",
        )
    return saved


@router.get("/remarks")
def get_remarks(classId: str, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_student_remarks(classId)


@router.put("/remarks")
def put_remark(request: Request, payload: StudentRemark):
    token_payload = _staff(request)
    _require_class_access(token_payload, payload.class_id)
    remark = payload.to_doc()
    remark["teacherId"] = remark.get("teacherId") or token_payload["sub"]
    repo.save_student_remark(remark)
    return remark


@router.get("/skills")
def get_skills(classId: str, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_student_skills(classId)


@router.put("/skills")
def put_skills(request: Request, payload: StudentSkills):
    token_payload = _staff(request)
    _require_class_access(token_payload, payload.class_id)
    skills = payload.to_doc()
    repo.save_student_skills(skills)
    return skills


@router.get("/notices")
def get_notices(request: Request):
    _staff(request)
    return repo.get_notices()


@router.get("/settings")
def get_settings(request: Request):
    _staff(request)
    return check_term_transition(repo)


@router.get("/timetables/{classId}")
def get_timetable(classId: str, request: Request):
    payload = _staff(request)
    _require_class_access(payload, classId)
    return repo.get_timetable(classId) or {"classId": classId, "schedule": {}}

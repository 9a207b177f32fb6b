"""Client-side aggregation over attendance and assessment documents."""
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from schoolhub import grading
from schoolhub.repository import SchoolRepository
from schoolhub.term import check_term_transition, term_number

logger = logging.getLogger(__name__)

TREND_THRESHOLD = 5


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def holiday_dates(config: dict) -> set[str]:
    return {h["date"] for h in config.get("holidayDates") or [] if h.get("date")}


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return grading.round_half_up(part / whole * 100)


def class_attendance_percentage(records: Iterable[dict], roster_size: int) -> int:
    """Share of present marks among the days that actually have a record.

    Days without a record are not counted as absences.
    """
    records = list(records)
    if not records or roster_size <= 0:
        return 0
    total_present = sum(len(r.get("presentStudentIds") or []) for r in records)
    return percentage(total_present, len(records) * roster_size)


def _school_day_records(records: Iterable[dict], holidays: set[str]) -> list[dict]:
    return [r for r in records if not r.get("isHoliday") and r.get("date") not in holidays]


def dashboard_stats(repo: SchoolRepository) -> dict:
    students = repo.get_students()
    users = repo.get_users()
    attendance = repo.get_all_attendance()
    config = check_term_transition(repo)
    attendance = _school_day_records(attendance, holiday_dates(config))

    records_by_class = defaultdict(list)
    for record in attendance:
        records_by_class[record.get("classId")].append(record)
    roster_by_class = defaultdict(int)
    for student in students:
        roster_by_class[student.get("classId")] += 1

    class_attendance = [
        {
            "id": cls.id,
            "className": cls.name,
            "percentage": class_attendance_percentage(records_by_class[cls.id], roster_by_class[cls.id]),
        }
        for cls in grading.CLASSES
    ]
    return {
        "studentsCount": len(students),
        "teachersCount": sum(1 for u in users if u.get("role") == "TEACHER"),
        "gender": {
            "male": sum(1 for s in students if s.get("gender") == "Male"),
            "female": sum(1 for s in students if s.get("gender") == "Female"),
        },
        "classAttendance": class_attendance,
    }


def dashboard_summary(repo: SchoolRepository) -> dict:
    return {
        "studentsCount": repo.store.count("students"),
        "teachersCount": repo.store.count("users", {"role": "TEACHER"}),
    }


def school_days(start: date, end: date, holidays: set[str]) -> list[str]:
    days = []
    current = start
    while current <= end:
        key = current.isoformat()
        if not is_weekend(current) and key not in holidays:
            days.append(key)
        current += timedelta(days=1)
    return days


def student_performance(
    repo: SchoolRepository, student_id: str, class_id: str, today: Optional[date] = None
) -> dict:
    today = today or date.today()
    config = check_term_transition(repo, today)
    records = repo.get_class_attendance(class_id)
    holidays = holiday_dates(config) | {r["date"] for r in records if r.get("isHoliday")}
    valid_records = _school_day_records(records, holidays)

    dates: list[str] = []
    reopen = parse_date(config.get("schoolReopenDate"))
    if reopen:
        vacation = parse_date(config.get("vacationDate"))
        end = vacation if vacation and vacation < today else today
        dates = school_days(reopen, end, holidays)
    if not dates:
        dates = sorted(r["date"] for r in valid_records)

    present_dates = sorted(r["date"] for r in valid_records if student_id in (r.get("presentStudentIds") or []))

    term = term_number(config.get("currentTerm", ""))
    academic_year = config.get("academicYear")
    assessments = repo.get_student_assessments(student_id)
    grades = []
    for subject in repo.get_subjects(class_id):
        matching = [a for a in assessments if a.get("subject") == subject]
        current = [a for a in matching if a.get("term") == term and a.get("academicYear") == academic_year]
        found = (current or matching or [None])[0]
        if found:
            grades.append({**found, **grading.calculate_grade(found.get("total") or 0)})
        else:
            grades.append({"subject": subject, "total": 0})

    return {
        "attendance": {
            "total": len(dates),
            "present": len(present_dates),
            "percentage": percentage(len(present_dates), len(dates)),
            "schoolDates": dates,
            "presentDates": present_dates,
        },
        "grades": grades,
    }


def _trend(current: int, previous: int) -> str:
    if current > previous + TREND_THRESHOLD:
        return "improving"
    if current < previous - TREND_THRESHOLD:
        return "declining"
    return "stable"


def monthly_breakdown(teacher: dict, records: Iterable[dict]) -> list[dict]:
    monthly = defaultdict(lambda: {"total": 0, "present": 0})
    for record in records:
        month = record["date"][:7]
        monthly[month]["total"] += 1
        if record.get("status") == "present" and record.get("approvalStatus", "approved") == "approved":
            monthly[month]["present"] += 1

    breakdown = []
    for month in sorted(monthly):
        data = monthly[month]
        breakdown.append(
            {
                "teacherId": teacher["id"],
                "teacherName": teacher.get("name"),
                "month": month,
                "year": int(month[:4]),
                "totalWorkingDays": data["total"],
                "presentDays": data["present"],
                "absentDays": data["total"] - data["present"],
                "attendanceRate": percentage(data["present"], data["total"]),
                "trend": "stable",
            }
        )
    for previous, current in zip(breakdown, breakdown[1:]):
        current["trend"] = _trend(current["attendanceRate"], previous["attendanceRate"])
    return breakdown


def teacher_attendance_analytics(
    repo: SchoolRepository,
    term_start_date: Optional[str] = None,
    vacation_date: Optional[str] = None,
    today: Optional[date] = None,
) -> list[dict]:
    today = today or date.today()
    config = check_term_transition(repo, today)
    if not term_start_date and not config.get("schoolReopenDate"):
        return []

    academic_year = config.get("academicYear") or grading.ACADEMIC_YEAR
    default_start = f"{academic_year.split('-')[0]}-09-01"
    start = term_start_date or config.get("schoolReopenDate") or default_start
    end = vacation_date or today.isoformat()

    records_by_teacher = defaultdict(list)
    for record in repo.get_all_teacher_attendance():
        if record.get("approvalStatus") == "pending" or record.get("isHoliday"):
            continue
        if start <= record.get("date", "") <= end:
            records_by_teacher[record.get("teacherId")].append(record)

    analytics = []
    for teacher in repo.get_teachers():
        breakdown = monthly_breakdown(teacher, records_by_teacher[teacher["id"]])
        total_days = sum(m["totalWorkingDays"] for m in breakdown)
        total_present = sum(m["presentDays"] for m in breakdown)
        analytics.append(
            {
                "teacherId": teacher["id"],
                "teacherName": teacher.get("name"),
                "overallAttendance": percentage(total_present, total_days),
                "monthlyBreakdown": breakdown,
                "termStartDate": start,
                "vacationDate": end if end != today.isoformat() else None,
            }
        )
    return analytics


def previous_school_day(today: date) -> date:
    day = today - timedelta(days=1)
    while is_weekend(day):
        day -= timedelta(days=1)
    return day


def _in_vacation(day: date, config: dict) -> bool:
    vacation = parse_date(config.get("vacationDate"))
    next_term = parse_date(config.get("nextTermBegins"))
    return bool(vacation and next_term and vacation <= day < next_term)


def recent_school_days(
    config: dict, today: date, max_days_back: int = 5, extra_holidays: Iterable[str] = ()
) -> list[str]:
    """Up to ``max_days_back`` previous school days to check, most recent first.

    Empty before the reopen date or during the vacation window. The walk stops
    at the first day before reopening or inside the vacation window. Holidays
    are passed over and do not count toward ``max_days_back``.
    """
    reopen = parse_date(config.get("schoolReopenDate"))
    if not reopen or today < reopen or _in_vacation(today, config):
        return []
    vacation = parse_date(config.get("vacationDate"))
    holidays = holiday_dates(config) | set(extra_holidays)

    days = []
    check = today
    while len(days) < max_days_back:
        check = previous_school_day(check)
        while vacation and check == vacation:
            check = previous_school_day(check)
        if check < reopen or _in_vacation(check, config):
            break
        if check.isoformat() in holidays:
            continue
        days.append(check.isoformat())
    return days


def _days_to_check(repo: SchoolRepository, today: date, max_days_back: int) -> list[str]:
    config = check_term_transition(repo, today)
    return recent_school_days(config, today, max_days_back, repo.get_class_holiday_dates())


def _class_names(class_ids: Iterable[str]) -> str:
    names = [grading.CLASSES_BY_ID[c].name for c in class_ids if c in grading.CLASSES_BY_ID]
    return ", ".join(names) or "Not Assigned"


def missed_teacher_attendance(repo: SchoolRepository, today: Optional[date] = None, max_days_back: int = 5) -> list[dict]:
    today = today or date.today()
    days = _days_to_check(repo, today, max_days_back)
    if not days:
        return []

    records = {(r.get("teacherId"), r.get("date")): r for r in repo.get_all_teacher_attendance()}
    teachers = repo.get_teachers()
    alerts = []
    for day in days:
        for teacher in teachers:
            record = records.get((teacher["id"], day))
            if not record or record.get("isHoliday"):
                alerts.append(
                    {
                        "teacherId": teacher["id"],
                        "teacherName": teacher.get("name"),
                        "date": day,
                        "classes": _class_names(teacher.get("assignedClassIds") or []),
                    }
                )
    if alerts:
        logger.info("Found %d missed teacher attendance entries", len(alerts))
    return alerts


def missed_student_attendance(repo: SchoolRepository, today: Optional[date] = None, max_days_back: int = 5) -> list[dict]:
    today = today or date.today()
    days = _days_to_check(repo, today, max_days_back)
    if not days:
        return []

    marked = {(r.get("classId"), r.get("date")) for r in repo.get_all_attendance()}
    teachers = repo.get_teachers()
    alerts = []
    for day in days:
        for teacher in teachers:
            missing = [c for c in teacher.get("assignedClassIds") or [] if (c, day) not in marked]
            if missing:
                alerts.append(
                    {
                        "teacherId": teacher["id"],
                        "teacherName": teacher.get("name"),
                        "date": day,
                        "classIds": missing,
                        "classes": _class_names(missing),
                    }
                )
    return alerts


def own_missed_attendance(repo: SchoolRepository, teacher_id: str, today: Optional[date] = None) -> Optional[str]:
    """The previous school day if the teacher has not marked it, else None."""
    today = today or date.today()
    days = _days_to_check(repo, today, max_days_back=1)
    if not days:
        return None
    if repo.get_teacher_attendance(teacher_id, days[0]) is None:
        return days[0]
    return None

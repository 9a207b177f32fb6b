"""Term rollover: back up the finished term, clear per-term data, move config on.

None of this is transactional. Each collection is cleared with its own
commit and assessments are re-seeded class by class, so a failure part way
through leaves whatever was already done in place.
"""
import logging
import re
from datetime import date
from typing import Optional

from schoolhub import grading
from schoolhub import repository as r
from schoolhub.repository import SchoolRepository

logger = logging.getLogger(__name__)

# Collection name -> key inside Backup.data
BACKUP_COLLECTIONS = {
    r.STUDENTS: "students",
    r.USERS: "users",
    r.ATTENDANCE: "attendanceRecords",
    r.TEACHER_ATTENDANCE: "teacherAttendanceRecords",
    r.ASSESSMENTS: "assessments",
    r.STUDENT_REMARKS: "studentRemarks",
    r.ADMIN_REMARKS: "adminRemarks",
    r.STUDENT_SKILLS: "studentSkills",
    r.TIMETABLES: "timetables",
    r.CLASS_SUBJECTS: "classSubjects",
    r.NOTICES: "notices",
    r.NOTIFICATIONS: "adminNotifications",
}

PER_TERM_COLLECTIONS = [
    r.ATTENDANCE,
    r.TEACHER_ATTENDANCE,
    r.STUDENT_REMARKS,
    r.STUDENT_SKILLS,
    r.ADMIN_REMARKS,
    r.NOTIFICATIONS,
    r.NOTICES,
]


def term_number(label: str) -> Optional[int]:
    match = re.search(r"\d+", label or "")
    if not match:
        return None
    number = int(match.group())
    return number if 1 <= number <= 3 else None


def next_academic_year(academic_year: str) -> str:
    first, second = (int(part) for part in academic_year.split("-"))
    return f"{first + 1}-{second + 1}"


def next_term(current_term: str, academic_year: str) -> tuple[int, str]:
    """Term number and academic year that follow ``current_term``.

    Term 3 wraps to term 1 of the next academic year. A label without a valid
    term number starts over at term 1 of the same year.
    """
    number = term_number(current_term)
    if number is None:
        return 1, academic_year
    if number == 3:
        return 1, next_academic_year(academic_year)
    return number + 1, academic_year


def create_term_backup(repo: SchoolRepository, config: dict, term: str, academic_year: str) -> dict:
    logger.info("Creating backup for %s, %s", term, academic_year)
    try:
        data = {"schoolConfig": dict(config)}
        for collection, key in BACKUP_COLLECTIONS.items():
            data[key] = repo.get_collection(collection)
        timestamp = r.now_ms()
        backup = {
            "id": f"backup_{timestamp}",
            "timestamp": timestamp,
            "term": term,
            "academicYear": academic_year,
            "data": data,
        }
        repo.save_backup(backup)
    except Exception:
        logger.exception("Error creating backup for %s, %s", term, academic_year)
        raise
    logger.info("Backup created successfully: %s", backup["id"])
    return backup


def reset_for_new_term(repo: SchoolRepository, config: dict) -> dict:
    """Archive the current term and roll the school forward to the next one.

    Returns the config that was saved.
    """
    current_term = config.get("currentTerm", "")
    academic_year = config.get("academicYear") or grading.ACADEMIC_YEAR
    logger.info("Initiating term transition for %s %s", current_term, academic_year)

    new_term, new_academic_year = next_term(current_term, academic_year)

    create_term_backup(repo, config, current_term, academic_year)

    for collection in PER_TERM_COLLECTIONS:
        cleared = repo.clear_collection(collection)
        logger.info("Cleared %d documents from %s", cleared, collection)

    for classroom in grading.CLASSES:
        seeded = repo.reset_assessments_for_class(
            classroom.id, seed_defaults=True, new_term=new_term, academic_year=new_academic_year
        )
        logger.info("Re-seeded %d assessments for class %s with term %d", seeded, classroom.id, new_term)

    updated = {
        **config,
        "currentTerm": f"Term {new_term}",
        "academicYear": new_academic_year,
        "termTransitionProcessed": True,
        "schoolReopenDate": config.get("nextTermBegins") or config.get("schoolReopenDate") or "",
        "vacationDate": "",
        "nextTermBegins": "",
    }
    repo.save_school_config(updated)
    logger.info("School config updated for new term: Term %d %s", new_term, new_academic_year)
    return updated


def check_term_transition(repo: SchoolRepository, today: Optional[date] = None) -> dict:
    """Return the school config, running the term reset first if the next term has begun."""
    today = today or date.today()
    config = repo.get_school_config()
    next_term_begins = config.get("nextTermBegins")
    if not next_term_begins or config.get("termTransitionProcessed"):
        return config
    try:
        begins = date.fromisoformat(next_term_begins)
    except ValueError:
        logger.warning("Ignoring invalid nextTermBegins %r", next_term_begins)
        return config
    if today < begins:
        return config

    reset_for_new_term(repo, config)
    return repo.get_school_config()


def save_school_config(repo: SchoolRepository, config: dict) -> dict:
    """Persist config; a changed next-term date arms the automatic transition again."""
    stored = repo.get_school_config()
    if config.get("nextTermBegins") != stored.get("nextTermBegins"):
        config = {**config, "termTransitionProcessed": False}
    config = {**config, "holidayDates": sorted(config.get("holidayDates") or [], key=lambda h: h["date"])}
    repo.save_school_config(config)
    return config

from datetime import date

import pytest

from schoolhub import grading, stats, term
from schoolhub.repository import ASSESSMENTS, BACKUPS


@pytest.mark.parametrize(
    "current, year, expected",
    [
        ("Term 1", "2024-2025", (2, "2024-2025")),
        ("Term 2", "2024-2025", (3, "2024-2025")),
        ("Term 3", "2024-2025", (1, "2025-2026")),
        ("Holiday", "2024-2025", (1, "2024-2025")),
    ],
)
def test_next_term(current, year, expected):
    assert term.next_term(current, year) == expected


def test_term_number():
    assert term.term_number("Term 2") == 2
    assert term.term_number("term 3") == 3
    assert term.term_number("Term 4") is None
    assert term.term_number("") is None


def _seed_term(repo, config):
    repo.save_school_config(config)
    repo.save_user({"id": "t1", "name": "Ama", "email": "ama@school.local", "role": "TEACHER"})
    repo.save_student({"id": "s1", "name": "Kofi", "gender": "Male", "classId": "c_p1"})
    repo.save_student({"id": "s2", "name": "Esi", "gender": "Female", "classId": "c_kg1"})
    repo.save_attendance({"classId": "c_p1", "date": "2025-05-05", "presentStudentIds": ["s1"]})
    repo.save_teacher_attendance({"teacherId": "t1", "date": "2025-05-05", "status": "present"})
    repo.add_notice({"message": "Sports day", "date": "May 5", "type": "info"})
    repo.add_system_notification("Attendance marked", "attendance")
    repo.save_student_remark(
        {"id": "r1", "studentId": "s1", "classId": "c_p1", "term": 3, "academicYear": "2024-2025", "remark": "Good"}
    )
    repo.save_student_skills({"id": "k1", "studentId": "s1", "classId": "c_p1", "term": 3, "academicYear": "2024-2025"})
    repo.save_admin_remark(
        {"id": "ar1", "studentId": "s1", "classId": "c_p1", "term": 3, "academicYear": "2024-2025", "remark": "Ok"}
    )
    repo.save_assessment(
        {
            "studentId": "s1",
            "classId": "c_p1",
            "term": 3,
            "academicYear": "2024-2025",
            "subject": "Mathematics",
            "testScore": 15,
            "examScore": 80,
        }
    )


def test_reset_for_new_term_from_term_three(repo):
    config = {
        **repo.get_school_config(),
        "academicYear": "2024-2025",
        "currentTerm": "Term 3",
        "schoolReopenDate": "2025-04-28",
        "vacationDate": "2025-07-25",
        "nextTermBegins": "2025-09-08",
    }
    _seed_term(repo, config)

    updated = term.reset_for_new_term(repo, config)

    backups = repo.get_backups()
    assert len(backups) == 1
    backup = backups[0]
    assert backup["term"] == "Term 3"
    assert backup["academicYear"] == "2024-2025"
    assert len(backup["data"]["attendanceRecords"]) == 1
    assert len(backup["data"]["teacherAttendanceRecords"]) == 1
    assert len(backup["data"]["assessments"]) == 1
    assert len(backup["data"]["notices"]) == 1
    assert backup["data"]["schoolConfig"]["currentTerm"] == "Term 3"

    assert repo.get_all_attendance() == []
    assert repo.get_all_teacher_attendance() == []
    assert repo.get_notices() == []
    assert repo.get_system_notifications() == []
    assert repo.get_student_remarks("c_p1") == []
    assert repo.get_student_skills("c_p1") == []
    assert repo.get_admin_remark("ar1") is None
    assert len(repo.get_students()) == 2
    assert len(repo.get_users()) == 1

    assessments = repo.store.query(ASSESSMENTS)
    expected = len(grading.default_subjects("c_p1")) + len(grading.default_subjects("c_kg1"))
    assert len(assessments) == expected
    assert all(a["term"] == 1 and a["academicYear"] == "2025-2026" for a in assessments)
    assert all(a["total"] == 0 for a in assessments)

    stored = repo.get_school_config()
    assert stored == updated
    assert stored["currentTerm"] == "Term 1"
    assert stored["academicYear"] == "2025-2026"
    assert stored["termTransitionProcessed"] is True
    assert stored["schoolReopenDate"] == "2025-09-08"
    assert stored["vacationDate"] == ""
    assert stored["nextTermBegins"] == ""


def test_reset_for_new_term_from_term_one_keeps_year(repo):
    config = {**repo.get_school_config(), "academicYear": "2024-2025", "currentTerm": "Term 1"}
    repo.save_school_config(config)

    updated = term.reset_for_new_term(repo, config)

    assert updated["currentTerm"] == "Term 2"
    assert updated["academicYear"] == "2024-2025"


def test_backup_failure_stops_the_reset(repo, monkeypatch):
    repo.save_attendance({"classId": "c_p1", "date": "2025-05-05", "presentStudentIds": []})

    def fail(_backup):
        raise RuntimeError("write failed")

    monkeypatch.setattr(repo, "save_backup", fail)
    with pytest.raises(RuntimeError):
        term.reset_for_new_term(repo, repo.get_school_config())

    assert len(repo.get_all_attendance()) == 1
    assert repo.store.query(BACKUPS) == []


def test_automatic_transition_waits_for_next_term_date(repo):
    config = {
        **repo.get_school_config(),
        "academicYear": "2024-2025",
        "currentTerm": "Term 1",
        "vacationDate": "2024-12-13",
        "nextTermBegins": "2025-01-06",
    }
    repo.save_school_config(config)

    before = term.check_term_transition(repo, today=date(2025, 1, 5))
    assert before["currentTerm"] == "Term 1"
    assert repo.get_backups() == []

    after = term.check_term_transition(repo, today=date(2025, 1, 6))
    assert after["currentTerm"] == "Term 2"
    assert after["schoolReopenDate"] == "2025-01-06"
    assert after["termTransitionProcessed"] is True
    assert len(repo.get_backups()) == 1

    again = term.check_term_transition(repo, today=date(2025, 1, 7))
    assert again["currentTerm"] == "Term 2"
    assert len(repo.get_backups()) == 1


def test_changing_next_term_date_rearms_transition(repo):
    repo.save_school_config({**repo.get_school_config(), "termTransitionProcessed": True})

    saved = term.save_school_config(
        repo,
        {
            **repo.get_school_config(),
            "nextTermBegins": "2025-04-28",
            "holidayDates": [{"date": "2025-03-06"}, {"date": "2025-03-01"}],
        },
    )

    assert saved["termTransitionProcessed"] is False
    assert [h["date"] for h in saved["holidayDates"]] == ["2025-03-01", "2025-03-06"]
    assert repo.get_school_config()["termTransitionProcessed"] is False

    unchanged = term.save_school_config(repo, {**repo.get_school_config(), "termTransitionProcessed": True})
    assert unchanged["termTransitionProcessed"] is True


def test_manual_reset_moves_reopen_date_to_next_term(repo):
    config = {
        **repo.get_school_config(),
        "academicYear": "2024-2025",
        "currentTerm": "Term 1",
        "schoolReopenDate": "2024-09-02",
        "vacationDate": "2024-12-13",
        "nextTermBegins": "2025-01-06",
    }
    repo.save_school_config(config)
    repo.save_user({"id": "t1", "name": "Ama", "email": "ama@school.local", "role": "TEACHER"})

    updated = term.reset_for_new_term(repo, config)

    assert updated["schoolReopenDate"] == "2025-01-06"
    assert updated["nextTermBegins"] == ""
    assert stats.missed_teacher_attendance(repo, today=date(2024, 12, 20)) == []


def test_bad_academic_year_fails_before_anything_is_written(repo):
    config = {**repo.get_school_config(), "academicYear": "2024/25", "currentTerm": "Term 3"}
    repo.save_school_config(config)
    repo.save_attendance({"classId": "c_p1", "date": "2025-05-05", "presentStudentIds": []})

    with pytest.raises(ValueError):
        term.reset_for_new_term(repo, config)

    assert len(repo.get_all_attendance()) == 1
    assert repo.store.query(BACKUPS) == []

"""Typed access to the school's document collections.

Every method is a thin pass-through to :class:`DocumentStore`; documents go
in and come out as camelCase dicts. Ids that identify a natural key
(class/day attendance, teacher/day attendance, student/subject/term
assessments) are derived here, so saving the same key twice overwrites.
"""
import time
import uuid
from typing import Optional

from schoolhub import grading
from schoolhub.store import DocumentStore, store as default_store


USERS = "users"
STUDENTS = "students"
ATTENDANCE = "attendance"
TEACHER_ATTENDANCE = "teacher_attendance"
ASSESSMENTS = "assessments"
NOTICES = "notices"
NOTIFICATIONS = "admin_notifications"
STUDENT_REMARKS = "student_remarks"
STUDENT_SKILLS = "student_skills"
ADMIN_REMARKS = "admin_remarks"
CLASS_SUBJECTS = "class_subjects"
TIMETABLES = "timetables"
SETTINGS = "settings"
BACKUPS = "backups"

CONFIG_ID = "school_config"


def now_ms() -> int:
    return int(time.time() * 1000)


def attendance_id(class_id: str, date: str) -> str:
    return f"{class_id}_{date}"


def teacher_attendance_id(teacher_id: str, date: str) -> str:
    return f"{teacher_id}_{date}"


def assessment_id(student_id: str, subject: str, term: int, academic_year: str) -> str:
    return f"{student_id}_{subject}_{term}_{academic_year}"


def default_school_config() -> dict:
    return {
        "schoolName": "New School",
        "academicYear": grading.ACADEMIC_YEAR,
        "currentTerm": f"Term {grading.CURRENT_TERM}",
        "headTeacherRemark": "Keep it up.",
        "termEndDate": "",
        "schoolReopenDate": "",
        "vacationDate": "",
        "nextTermBegins": "",
        "termTransitionProcessed": False,
        "holidayDates": [],
    }


def public_user(user: dict) -> dict:
    return {key: value for key, value in user.items() if key != "passwordHash"}


class SchoolRepository:
    def __init__(self, store: Optional[DocumentStore] = None):
        self.store = store or default_store

    # --- Config ---
    def get_school_config(self) -> dict:
        stored = self.store.get(SETTINGS, CONFIG_ID)
        if stored is None:
            return default_school_config()
        return {**default_school_config(), **stored}

    def save_school_config(self, config: dict) -> None:
        self.store.set(SETTINGS, CONFIG_ID, config)

    # --- Users ---
    def get_users(self, role: Optional[str] = None) -> list[dict]:
        where = {"role": role} if role else None
        return self.store.query(USERS, where, order_by="name")

    def get_teachers(self) -> list[dict]:
        return self.get_users("TEACHER")

    def get_user(self, user_id: str) -> Optional[dict]:
        return self.store.get(USERS, user_id)

    def get_user_by_email(self, email: str) -> Optional[dict]:
        users = self.store.query(USERS, {"email": email}, limit=1)
        return users[0] if users else None

    def save_user(self, user: dict) -> None:
        self.store.set(USERS, user["id"], user)

    def update_user(self, user_id: str, fields: dict) -> bool:
        return self.store.update(USERS, user_id, fields)

    def update_user_assigned_classes(self, user_id: str, class_ids: list[str]) -> bool:
        return self.store.update(USERS, user_id, {"assignedClassIds": class_ids})

    def delete_user(self, user_id: str) -> bool:
        return self.store.delete(USERS, user_id)

    # --- Students ---
    def get_students(self, class_id: Optional[str] = None) -> list[dict]:
        where = {"classId": class_id} if class_id else None
        return self.store.query(STUDENTS, where, order_by="name")

    def get_student(self, student_id: str) -> Optional[dict]:
        return self.store.get(STUDENTS, student_id)

    def save_student(self, student: dict) -> dict:
        if not student.get("id"):
            student = {**student, "id": f"stu_{uuid.uuid4().hex[:10]}"}
        self.store.set(STUDENTS, student["id"], student)
        return student

    def delete_student(self, student_id: str) -> bool:
        return self.store.delete(STUDENTS, student_id)

    # --- Subjects ---
    def get_subjects(self, class_id: str) -> list[str]:
        """Subjects configured for a class, or the level defaults if none were saved."""
        stored = self.store.get(CLASS_SUBJECTS, class_id)
        if stored is None:
            return grading.default_subjects(class_id)
        return list(stored.get("subjects", []))

    def seed_class_subjects(self, class_id: str, subjects: list[str]) -> None:
        self.store.set(CLASS_SUBJECTS, class_id, {"classId": class_id, "subjects": list(subjects)})

    def add_subject(self, class_id: str, name: str) -> list[str]:
        current = self.get_subjects(class_id)
        if name not in current:
            current.append(name)
            self.seed_class_subjects(class_id, current)
        return current

    def rename_subject(self, class_id: str, old_name: str, new_name: str) -> Optional[list[str]]:
        current = self.get_subjects(class_id)
        if old_name not in current:
            return None
        current[current.index(old_name)] = new_name
        self.seed_class_subjects(class_id, current)
        return current

    def delete_subject(self, class_id: str, name: str) -> list[str]:
        updated = [s for s in self.get_subjects(class_id) if s != name]
        self.seed_class_subjects(class_id, updated)
        return updated

    def reset_all_class_subjects(self) -> int:
        return self.store.delete_where(CLASS_SUBJECTS)

    # --- Attendance ---
    def get_attendance(self, class_id: str, date: str) -> Optional[dict]:
        return self.store.get(ATTENDANCE, attendance_id(class_id, date))

    def get_class_attendance(self, class_id: str) -> list[dict]:
        return self.store.query(ATTENDANCE, {"classId": class_id}, order_by="date")

    def get_attendance_by_date(self, date: str) -> list[dict]:
        return self.store.query(ATTENDANCE, {"date": date})

    def get_all_attendance(self) -> list[dict]:
        return self.store.query(ATTENDANCE, order_by="date")

    def get_class_holiday_dates(self) -> set[str]:
        """Dates some class marked as a holiday on its attendance sheet."""
        return {rec["date"] for rec in self.store.query(ATTENDANCE, {"isHoliday": True})}

    def save_attendance(self, record: dict) -> dict:
        record_id = attendance_id(record["classId"], record["date"])
        record = {**record, "id": record_id}
        self.store.set(ATTENDANCE, record_id, record)
        return record

    # --- Teacher attendance ---
    def get_teacher_attendance(self, teacher_id: str, date: str) -> Optional[dict]:
        return self.store.get(TEACHER_ATTENDANCE, teacher_attendance_id(teacher_id, date))

    def get_teacher_attendance_by_date(self, date: str) -> list[dict]:
        return self.store.query(TEACHER_ATTENDANCE, {"date": date})

    def get_all_teacher_attendance(self, teacher_id: Optional[str] = None) -> list[dict]:
        where = {"teacherId": teacher_id} if teacher_id else None
        return self.store.query(TEACHER_ATTENDANCE, where, order_by="date")

    def get_pending_teacher_attendance(self, date: Optional[str] = None) -> list[dict]:
        where = {"approvalStatus": "pending"}
        if date:
            where["date"] = date
        return self.store.query(TEACHER_ATTENDANCE, where, order_by="date")

    def save_teacher_attendance(self, record: dict) -> dict:
        record_id = teacher_attendance_id(record["teacherId"], record["date"])
        record = {"approvalStatus": "approved", **record, "id": record_id}
        self.store.set(TEACHER_ATTENDANCE, record_id, record)
        return record

    def approve_teacher_attendance(self, record_id: str, admin_id: str) -> bool:
        return self.store.update(
            TEACHER_ATTENDANCE,
            record_id,
            {
                "approvalStatus": "approved",
                "approvedBy": admin_id,
                "approvedAt": now_ms(),
                "rejectedBy": None,
                "rejectedAt": None,
            },
        )

    def reject_teacher_attendance(self, record_id: str, admin_id: str) -> bool:
        return self.store.update(
            TEACHER_ATTENDANCE,
            record_id,
            {
                "approvalStatus": "rejected",
                "status": "absent",
                "rejectedBy": admin_id,
                "rejectedAt": now_ms(),
            },
        )

    # --- Assessments ---
    def get_assessments(self, class_id: str, subject: str, term: Optional[int] = None) -> list[dict]:
        where = {"classId": class_id, "subject": subject}
        if term is not None:
            where["term"] = term
        return self.store.query(ASSESSMENTS, where, order_by="studentId")

    def get_student_assessments(self, student_id: str) -> list[dict]:
        return self.store.query(ASSESSMENTS, {"studentId": student_id})

    def save_assessment(self, assessment: dict) -> dict:
        record_id = assessment.get("id") or assessment_id(
            assessment["studentId"], assessment["subject"], assessment["term"], assessment["academicYear"]
        )
        assessment = {**assessment, "id": record_id, "total": grading.calculate_total_score(assessment)}
        self.store.set(ASSESSMENTS, record_id, assessment)
        return assessment

    def reset_assessments_for_class(
        self,
        class_id: str,
        seed_defaults: bool = False,
        new_term: int = grading.CURRENT_TERM,
        academic_year: str = grading.ACADEMIC_YEAR,
    ) -> int:
        """Drop a class's assessments and optionally seed blank ones for the given term.

        Returns the number of seeded documents.
        """
        self.store.delete_where(ASSESSMENTS, {"classId": class_id})
        if not seed_defaults:
            return 0
        students = self.get_students(class_id)
        subjects = self.get_subjects(class_id)
        seeded = 0
        for student in students:
            for subject in subjects:
                self.save_assessment(
                    {
                        "studentId": student["id"],
                        "classId": class_id,
                        "term": new_term,
                        "academicYear": academic_year,
                        "subject": subject,
                        "testScore": 0,
                        "homeworkScore": 0,
                        "projectScore": 0,
                        "examScore": 0,
                    }
                )
                seeded += 1
        return seeded

    # --- Notices ---
    def get_notices(self) -> list[dict]:
        return self.store.query(NOTICES, order_by="createdAt", descending=True)

    def add_notice(self, notice: dict) -> dict:
        notice = {**notice, "id": notice.get("id") or f"notice_{uuid.uuid4().hex[:10]}", "createdAt": now_ms()}
        self.store.set(NOTICES, notice["id"], notice)
        return notice

    def delete_notice(self, notice_id: str) -> bool:
        return self.store.delete(NOTICES, notice_id)

    # --- Remarks and skills ---
    def get_student_remarks(self, class_id: str) -> list[dict]:
        return self.store.query(STUDENT_REMARKS, {"classId": class_id})

    def save_student_remark(self, remark: dict) -> None:
        self.store.set(STUDENT_REMARKS, remark["id"], remark)

    def get_student_skills(self, class_id: str) -> list[dict]:
        return self.store.query(STUDENT_SKILLS, {"classId": class_id})

    def save_student_skills(self, skills: dict) -> None:
        self.store.set(STUDENT_SKILLS, skills["id"], skills)

    def get_admin_remark(self, remark_id: str) -> Optional[dict]:
        return self.store.get(ADMIN_REMARKS, remark_id)

    def save_admin_remark(self, remark: dict) -> None:
        self.store.set(ADMIN_REMARKS, remark["id"], remark)

    # --- Notifications ---
    def add_system_notification(self, message: str, type: str) -> dict:
        notification = {
            "id": f"notif_{now_ms()}_{uuid.uuid4().hex[:6]}",
            "message": message,
            "createdAt": now_ms(),
            "isRead": False,
            "type": type,
        }
        self.store.set(NOTIFICATIONS, notification["id"], notification)
        return notification

    def get_system_notifications(self, limit: int = 20) -> list[dict]:
        return self.store.query(NOTIFICATIONS, order_by="createdAt", descending=True, limit=limit)

    def mark_notification_as_read(self, notification_id: str) -> bool:
        return self.store.update(NOTIFICATIONS, notification_id, {"isRead": True})

    def delete_system_notification(self, notification_id: str) -> bool:
        return self.store.delete(NOTIFICATIONS, notification_id)

    # --- Timetables ---
    def get_timetable(self, class_id: str) -> Optional[dict]:
        return self.store.get(TIMETABLES, class_id)

    def save_timetable(self, timetable: dict) -> None:
        self.store.set(TIMETABLES, timetable["classId"], timetable)

    # --- Backups ---
    def save_backup(self, backup: dict) -> None:
        self.store.set(BACKUPS, backup["id"], backup)

    def get_backups(self, term: Optional[str] = None, academic_year: Optional[str] = None) -> list[dict]:
        where = {}
        if term:
            where["term"] = term
        if academic_year:
            where["academicYear"] = academic_year
        return self.store.query(BACKUPS, where, order_by="timestamp", descending=True)

    def get_backup(self, backup_id: str) -> Optional[dict]:
        return self.store.get(BACKUPS, backup_id)

    def delete_backup(self, backup_id: str) -> bool:
        return self.store.delete(BACKUPS, backup_id)

    def delete_all_backups(self) -> int:
        return self.store.delete_where(BACKUPS)

    # --- Bulk ---
    def get_collection(self, collection: str) -> list[dict]:
        return self.store.query(collection)

    def clear_collection(self, collection: str) -> int:
        return self.store.delete_where(collection)

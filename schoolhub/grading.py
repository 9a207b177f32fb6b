import math
from typing import Iterable, NamedTuple

ACADEMIC_YEAR = "2024-2025"
CURRENT_TERM = 1


class ClassRoom(NamedTuple):
    id: str
    name: str
    level: str


CLASSES = [
    ClassRoom("c_n1", "Nursery 1", "NURSERY"),
    ClassRoom("c_n2", "Nursery 2", "NURSERY"),
    ClassRoom("c_kg1", "KG 1", "KG"),
    ClassRoom("c_kg2", "KG 2", "KG"),
    ClassRoom("c_p1", "Class 1", "PRIMARY"),
    ClassRoom("c_p2", "Class 2", "PRIMARY"),
    ClassRoom("c_p3", "Class 3", "PRIMARY"),
    ClassRoom("c_p4", "Class 4", "PRIMARY"),
    ClassRoom("c_p5", "Class 5", "PRIMARY"),
    ClassRoom("c_p6", "Class 6", "PRIMARY"),
    ClassRoom("c_jhs1", "JHS 1", "JHS"),
    ClassRoom("c_jhs2", "JHS 2", "JHS"),
    ClassRoom("c_jhs3", "JHS 3", "JHS"),
]
CLASSES_BY_ID = {c.id: c for c in CLASSES}

SUBJECTS_BY_LEVEL = {
    "NURSERY": [
        "Language & Literacy",
        "Numeracy",
        "Environmental Studies",
        "Creative Arts",
        "Physical Development",
        "Social & Emotional Development",
        "Rhymes, Songs & Storytelling",
    ],
    "KG": [
        "Literacy & Language",
        "Numeracy",
        "OWOP",
        "Creative Art",
        "Physical Education",
    ],
    "PRIMARY": [
        "English Language",
        "Mathematics",
        "Science",
        "ICT",
        "Religious & Moral Education (RME)",
        "Ghanaian Language",
        "Our World Our People (OWOP)",
        "Creative Arts",
        "Physical Education",
    ],
    "JHS": [
        "English Language",
        "Mathematics",
        "Integrated Science",
        "Social Studies",
        "Religious & Moral Education (RME)",
        "ICT",
        "French",
        "Ghanaian Language",
        "Creative Arts & Design",
        "Physical Education",
        "Career Technology",
        "Computing / Coding",
    ],
}

GRADE_BANDS = [
    (80, "A", "Excellent"),
    (70, "B", "Very Good"),
    (60, "C", "Good"),
    (45, "D", "Pass"),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def default_subjects(class_id: str) -> list[str]:
    classroom = CLASSES_BY_ID.get(class_id)
    if not classroom:
        return []
    return list(SUBJECTS_BY_LEVEL[classroom.level])


def calculate_total_score(assessment: dict) -> int:
    # CA is out of 50, the exam out of 100 and weighted at half.
    ca = (
        (assessment.get("testScore") or 0)
        + (assessment.get("homeworkScore") or 0)
        + (assessment.get("projectScore") or 0)
    )
    exam_scaled = (assessment.get("examScore") or 0) * 0.5
    return round_half_up(ca + exam_scaled)


def calculate_grade(total: float) -> dict:
    for threshold, grade, remark in GRADE_BANDS:
        if total >= threshold:
            return {"total": total, "grade": grade, "remark": remark}
    return {"total": total, "grade": "F", "remark": "Fail"}


def grade_distribution(assessments: Iterable[dict]) -> dict[str, int]:
    buckets = {"A": 0, "B": 0, "C": 0, "D": 0, "F": 0}
    for assessment in assessments:
        total = assessment.get("total")
        if total is None:
            total = calculate_total_score(assessment)
        buckets[calculate_grade(total)["grade"]] += 1
    return buckets

# portal/grade_aggregation.py
from __future__ import annotations

import math

import pandas as pd

from portal.attendance_utils import compute_stats, round_half_up
from portal.placeholders import fallback_course, fallback_student
from portal.roster_utils import normalize_course

GRADE_COLUMNS = ["id", "studentId", "courseId", "courseName", "examType", "score", "maxScore", "date"]

LETTER_BANDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]
PERFORMANCE_BANDS = [(90, "Excellent"), (80, "Strong"), (70, "Watchlist")]


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def grades_frame(grades) -> pd.DataFrame:
    """Grades as a DataFrame with numeric score / maxScore (bad values read as 0)."""
    rows = [{c: (g or {}).get(c) for c in GRADE_COLUMNS} for g in grades or []]
    if not rows:
        return pd.DataFrame(columns=GRADE_COLUMNS)
    df = pd.DataFrame(rows, columns=GRADE_COLUMNS)
    df["score"] = pd.to_numeric(df["score"], errors="coerce").fillna(0)
    df["maxScore"] = pd.to_numeric(df["maxScore"], errors="coerce").fillna(0)
    return df


def percent_of(score, max_score) -> float:
    try:
        score, max_score = float(score or 0), float(max_score or 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(score):
        score = 0.0
    if not math.isfinite(max_score) or max_score <= 0:
        return 0.0
    return score / max_score * 100


def aggregate(grades) -> list[dict]:
    """
    Cumulative percentage per (student, course): total points scored over total
    points available, so 10/10 and 40/100 give 50/110 = 45, not 70.

    Rows without a studentId or courseId are not grouped.
    """
    df = grades_frame(grades)
    if df.empty:
        return []
    df = df[df["studentId"].notna() & df["courseId"].notna()]
    if df.empty:
        return []

    totals = (
        df.groupby(["studentId", "courseId"], sort=False)
        .agg(score=("score", "sum"), maxScore=("maxScore", "sum"),
             courseName=("courseName", lambda s: next((v for v in s if isinstance(v, str) and v), None)))
        .reset_index()
    )

    rows = []
    for r in totals.itertuples(index=False):
        cumulative = round_half_up(r.score / r.maxScore * 100) if r.maxScore > 0 else 0
        rows.append({
            "studentId": r.studentId,
            "courseId": r.courseId,
            "courseName": r.courseName if isinstance(r.courseName, str) else None,
            "cumulativePercent": cumulative,
        })
    return rows


def average_percentage(grades) -> float:
    """
    Mean of the per-assessment percentages, as on a student's own results page.
    Not the same number as `aggregate`.
    """
    grades = list(grades or [])
    if not grades:
        return 0.0
    total = sum(percent_of(g.get("score"), g.get("maxScore")) for g in grades)
    return total / len(grades)


def course_averages(grades) -> dict:
    """studentId -> courseId -> average of percentages."""
    buckets = {}
    for g in grades or []:
        sid, cid = g.get("studentId"), g.get("courseId")
        if not sid or not cid:
            continue
        bucket = buckets.setdefault(sid, {}).setdefault(cid, [0.0, 0])
        bucket[0] += percent_of(g.get("score"), g.get("maxScore"))
        bucket[1] += 1
    return {
        sid: {cid: (s / n if n else 0.0) for cid, (s, n) in per_course.items()}
        for sid, per_course in buckets.items()
    }


def letter_grade(percent) -> str:
    if not _is_number(percent):
        return "F"
    for floor, letter in LETTER_BANDS:
        if percent >= floor:
            return letter
    return "F"


def performance_band(percent) -> str:
    if not _is_number(percent):
        return "At Risk"
    for floor, label in PERFORMANCE_BANDS:
        if percent >= floor:
            return label
    return "At Risk"


def department_key(code) -> str:
    """First two characters of a course code, upper-cased ("cs101" -> "CS")."""
    prefix = str(code or "").strip()[:2].upper()
    return prefix or "GEN"


def department_summary(courses, students=(), attendance=()) -> list[dict]:
    """
    Per-department rollup for the admin views. Each row carries distinct
    students (declared roster union), distinct teachers, course count, mean GPA
    of roster members and the weighted attendance rate of that department's
    attendance rows (joined by course name).
    """
    student_map = {s.get("id"): s for s in students or [] if s}
    buckets = {}
    for course in courses or []:
        course = normalize_course(course)
        key = department_key(course.get("code"))
        bucket = buckets.setdefault(key, {"students": {}, "teachers": {}, "courses": 0, "names": set()})
        for sid in course["studentIds"]:
            bucket["students"].setdefault(sid, None)
        if course.get("teacherId"):
            bucket["teachers"].setdefault(course["teacherId"], None)
        bucket["courses"] += 1
        if course.get("name"):
            bucket["names"].add(course["name"])

    summary = []
    for key in sorted(buckets):
        bucket = buckets[key]
        gpas = [student_map[sid].get("gpa") for sid in bucket["students"] if sid in student_map]
        gpas = [g for g in gpas if _is_number(g)]
        records = [r for r in attendance or [] if r and r.get("courseName") in bucket["names"]]
        summary.append({
            "name": key,
            "students": len(bucket["students"]),
            "teachers": len(bucket["teachers"]),
            "courses": bucket["courses"],
            "avgGPA": sum(gpas) / len(gpas) if gpas else 0.0,
            "attendance": compute_stats(records)["rate"],
        })
    return summary


def grade_rows(grades, students=(), courses=()) -> list[dict]:
    """
    Admin class table: one row per (student, course) with the cumulative grade,
    the student and course profiles (placeholders when unknown) and a band label.
    """
    student_map = {s.get("id"): s for s in students or [] if s}
    course_map = {c.get("id"): c for c in courses or [] if c}
    rows = []
    for agg in aggregate(grades):
        sid, cid = agg["studentId"], agg["courseId"]
        rows.append({
            "id": f"{sid}|{cid}",
            "student": student_map.get(sid) or fallback_student(sid),
            "course": course_map.get(cid) or fallback_course(cid, agg["courseName"]),
            "cumulative": agg["cumulativePercent"],
            "band": performance_band(agg["cumulativePercent"]),
        })
    return rows


def grade_table_stats(rows) -> dict:
    rows = list(rows or [])
    return {
        "records": len(rows),
        "courses": len({r["course"]["id"] for r in rows}),
        "average": round(sum(r["cumulative"] for r in rows) / (len(rows) or 1), 1),
    }

# portal/reports.py
# View models for the student / teacher / parent / admin dashboards.
# Each builder reads through a SchoolRepository and returns plain dicts.
# A failing store never reaches the view: the builder logs the error and
# returns the empty state for that dashboard instead.
from __future__ import annotations

from datetime import date
from functools import wraps

from app_logger import get_logger
from db import RecordStoreError
from portal.attendance_utils import compute_stats, round_half_up, stats_by_course
from portal.finance import filter_finance_rows, finance_rows, finance_totals, net_due
from portal.grade_aggregation import (
    average_percentage,
    course_averages,
    department_summary,
    grade_rows,
    grade_table_stats,
    letter_grade,
)
from portal.placeholders import fallback_student, with_course_defaults
from portal.roster_reconciliation import (
    courses_for_teacher,
    pending_grade_count,
    reconcile_rosters,
    relevant_records,
)

logger = get_logger(__name__)

TOP_PERFORMER_GPA = 3.8
AT_RISK_GPA = 2.5


def _zero_stats():
    return compute_stats([])


def _empty_student():
    return {"student": None, "gpa": 0.0, "attendance": _zero_stats(), "attendanceByCourse": {},
            "averageScore": 0.0, "letter": "F", "assessments": 0, "grades": [], "due": 0.0}


def _empty_teacher():
    return {"courses": [], "rosters": {}, "students": [], "records": [], "attendance": _zero_stats(),
            "courseAverages": {}, "pendingGrades": 0, "totalStudents": 0, "upcomingLessons": []}


def _empty_parent():
    return {"parent": None, "children": [], "avgGPA": 0.0, "avgAttendance": 0.0, "outstanding": 0.0}


def _empty_admin():
    return {"studentCount": 0, "teacherCount": 0, "courseCount": 0, "totalCollected": 0.0,
            "outstanding": 0.0, "totalScholarship": 0.0, "departments": []}


def _empty_reports():
    return {"academic": {"totalStudents": 0, "averageGPA": 0.0, "attendanceRate": 0, "courseCompletionRate": 0,
                         "topPerformers": 0, "atRiskStudents": 0},
            "financial": finance_totals([]), "enrollment": [], "departments": []}


def _empty_table():
    return {"rows": [], "stats": grade_table_stats([])}


def _empty_finance_table():
    return {"rows": [], "totals": {"totalFee": 0.0, "scholarship": 0.0, "paid": 0.0, "balance": 0.0}}


def empty_state(view: str) -> dict:
    """The "no data available" payload of a dashboard."""
    state = EMPTY_STATES[view]()
    state["available"] = False
    return state


def with_empty_state(view):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                result = fn(*args, **kwargs)
            except RecordStoreError as e:
                logger.error("Could not load %s view: %s", view, e)
                return empty_state(view)
            result.setdefault("available", True)
            return result
        return wrapper
    return decorator


def _numeric_gpa(student):
    gpa = (student or {}).get("gpa")
    if isinstance(gpa, bool) or not isinstance(gpa, (int, float)):
        return None
    return gpa


def _mean(values):
    values = list(values)
    return sum(values) / len(values) if values else 0.0


# -------------------------
# Student
# -------------------------
@with_empty_state("student")
def student_summary(repo, student_id) -> dict:
    student = repo.get_student(student_id)
    grades = repo.get_grades(student_id)
    attendance = repo.get_attendance(student_id)
    finance = repo.get_finance_for_student(student_id)

    average = average_percentage(grades)
    return {
        "student": student or fallback_student(student_id),
        "gpa": _numeric_gpa(student) or 0.0,
        "attendance": compute_stats(attendance),
        "attendanceByCourse": stats_by_course(attendance),
        "averageScore": average,
        "letter": letter_grade(average),
        "assessments": len(grades),
        "grades": grades,
        "due": net_due(finance) if finance else 0.0,
    }


# -------------------------
# Teacher
# -------------------------
@with_empty_state("teacher")
def teacher_overview(repo, teacher_id, today=None) -> dict:
    """
    The teacher's courses with reconciled rosters: declared students plus anyone
    who has attendance or grades in those courses.
    """
    courses = courses_for_teacher(repo.get_courses(), teacher_id)
    if not courses:
        return _empty_teacher()

    students = repo.get_students()
    attendance = relevant_records(courses, repo.get_attendance())
    grades = repo.get_grades_by_course_ids([c["id"] for c in courses])

    roster = reconcile_rosters(courses, attendance + grades, students, repo.get_students_by_ids)

    today = (today or date.today()).isoformat()
    upcoming = sorted(
        (lesson for lesson in repo.get_lessons(teacher_id) if (lesson.get("date") or "") >= today),
        key=lambda lesson: lesson.get("date") or "",
    )[:4]

    return {
        "courses": [with_course_defaults(c) for c in courses],
        "rosters": roster["rosters"],
        "students": roster["my_students"],
        "records": attendance,
        "attendance": compute_stats(attendance),
        "courseAverages": course_averages(grades),
        "pendingGrades": pending_grade_count(courses, grades),
        "totalStudents": len(roster["my_students"]),
        "upcomingLessons": upcoming,
    }


# -------------------------
# Parent
# -------------------------
@with_empty_state("parent")
def parent_summary(repo, parent_id) -> dict:
    parent = repo.get_parent(parent_id)
    if not parent:
        return _empty_parent()

    children = repo.get_students_by_ids(parent["children"])
    child_ids = {c["id"] for c in children}
    attendance = [r for r in repo.get_attendance() if r.get("studentId") in child_ids]
    grades = [g for g in repo.get_grades() if g.get("studentId") in child_ids]
    finances = [f for f in repo.get_finances() if f.get("studentId") in child_ids]

    rows = []
    for child in children:
        own_attendance = [r for r in attendance if r.get("studentId") == child["id"]]
        own_grades = [g for g in grades if g.get("studentId") == child["id"]]
        average = average_percentage(own_grades)
        rows.append({
            "student": child,
            "attendanceRate": compute_stats(own_attendance)["rate"],
            "averageScore": average,
            "letter": letter_grade(average),
            "due": sum(net_due(f) for f in finances if f.get("studentId") == child["id"]),
        })

    return {
        "parent": parent,
        "children": rows,
        "avgGPA": _mean(_numeric_gpa(c) or 0 for c in children),
        "avgAttendance": _mean(r["attendanceRate"] for r in rows),
        "outstanding": sum(net_due(f) for f in finances),
    }


# -------------------------
# Admin
# -------------------------
@with_empty_state("admin")
def admin_dashboard(repo) -> dict:
    students = repo.get_students()
    teachers = repo.get_teachers()
    courses = repo.get_courses()
    finances = repo.get_finances()
    attendance = repo.get_attendance()

    totals = finance_totals(finances)
    return {
        "studentCount": len(students),
        "teacherCount": len({t.get("id") for t in teachers}),
        "courseCount": len(courses),
        "totalCollected": totals["collected"],
        "outstanding": totals["outstanding"],
        "totalScholarship": totals["scholarships"],
        "departments": department_summary(courses, students, attendance),
    }


def enrollment_distribution(students) -> list[dict]:
    """Students per grade level, with change relative to the previous level."""
    counts = {}
    for s in students or []:
        key = s.get("gradeLevel") or "Unassigned"
        counts[key] = counts.get(key, 0) + 1
    entries = sorted(counts.items())
    top = max(counts.values()) if counts else 0

    out = []
    for i, (level, count) in enumerate(entries):
        prev = count if i == 0 else entries[i - 1][1]
        out.append({
            "level": level,
            "students": count,
            "change": round((count - prev) / prev * 100, 1) if prev else 0.0,
            "percent": round_half_up(count / top * 100) if top else 0,
        })
    return out


@with_empty_state("reports")
def admin_reports(repo) -> dict:
    students = repo.get_students()
    courses = repo.get_courses()
    attendance = repo.get_attendance()
    finances = repo.get_finances()

    gpas = [g for g in (_numeric_gpa(s) for s in students) if g is not None]
    with_roster = sum(1 for c in courses if c["studentIds"])
    academic = {
        "totalStudents": len(students),
        "averageGPA": _mean(gpas),
        "attendanceRate": compute_stats(attendance)["rate"],
        "courseCompletionRate": round_half_up(with_roster / len(courses) * 100) if courses else 0,
        "topPerformers": sum(1 for g in gpas if g >= TOP_PERFORMER_GPA),
        "atRiskStudents": sum(1 for s in students if (_numeric_gpa(s) or 0) < AT_RISK_GPA),
    }
    return {
        "academic": academic,
        "financial": finance_totals(finances),
        "enrollment": enrollment_distribution(students),
        "departments": department_summary(courses, students, attendance),
    }


@with_empty_state("grade_table")
def admin_grade_table(repo) -> dict:
    """Cumulative grade per (student, course) across the whole school."""
    students = repo.get_students()
    courses = repo.get_courses()
    grades = repo.get_grades()

    known = {s["id"] for s in students}
    missing = list(dict.fromkeys(g["studentId"] for g in grades if g.get("studentId") and g["studentId"] not in known))
    if missing:
        students = students + repo.get_students_by_ids(missing)

    rows = grade_rows(grades, students, [with_course_defaults(c) for c in courses])
    return {"rows": rows, "stats": grade_table_stats(rows)}


@with_empty_state("finance_table")
def admin_finance_table(repo, search="", balance_filter="all", min_balance=None) -> dict:
    finances = repo.get_finances()
    students = repo.get_students_by_ids([f.get("studentId") for f in finances if f.get("studentId")])
    rows = filter_finance_rows(finance_rows(finances, students), search, balance_filter, min_balance)

    totals = {"totalFee": 0.0, "scholarship": 0.0, "paid": 0.0, "balance": 0.0}
    for row in rows:
        totals["totalFee"] += row["total"]
        totals["scholarship"] += row["scholarship"]
        totals["paid"] += row["paid"]
        totals["balance"] += row["balance"]
    return {"rows": rows, "totals": totals}


EMPTY_STATES = {
    "student": _empty_student,
    "teacher": _empty_teacher,
    "parent": _empty_parent,
    "admin": _empty_admin,
    "reports": _empty_reports,
    "grade_table": _empty_table,
    "finance_table": _empty_finance_table,
}

# portal/placeholders.py
# Stand-ins for entities that a grade, attendance or finance row points at
# but the store could not resolve.

UNKNOWN_STUDENT = "Unknown Student"
UNNAMED_COURSE = "Unnamed Course"
NOT_AVAILABLE = "N/A"
DASH = "—"


def fallback_student(student_id) -> dict:
    return {
        "id": student_id,
        "name": UNKNOWN_STUDENT,
        "email": NOT_AVAILABLE,
        "role": "student",
        "gradeLevel": NOT_AVAILABLE,
        "gpa": 0,
        "attendance": 0,
    }


def fallback_course(course_id, name=None) -> dict:
    return {
        "id": course_id,
        "name": name or UNNAMED_COURSE,
        "code": str(course_id)[:6].upper() if course_id else "NOCODE",
        "teacherId": "unknown",
        "teacherName": DASH,
        "credits": 0,
        "schedule": DASH,
        "studentIds": [],
    }


def with_course_defaults(course: dict) -> dict:
    """Fill optional course fields that would otherwise reach a view as None."""
    course = dict(course)
    if not course.get("name"):
        course["name"] = UNNAMED_COURSE
    for field in ("teacherName", "schedule"):
        if not course.get(field):
            course[field] = DASH
    if course.get("credits") is None:
        course["credits"] = 0
    return course

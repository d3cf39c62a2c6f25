# portal/roster_reconciliation.py
from __future__ import annotations

from app_logger import get_logger
from portal.roster_utils import as_list, normalize_course, unique_ids

logger = get_logger(__name__)


def _course_indexes(courses):
    by_id, by_name = {}, {}
    for course in courses:
        cid = course.get("id")
        if cid is None:
            continue
        by_id.setdefault(cid, course)
        if course.get("name"):
            by_name.setdefault(course["name"], cid)
    return by_id, by_name


def resolve_course_id(record, by_id, by_name):
    """
    Course a dependent record belongs to: its courseId when that names a known
    course, otherwise the first known course with the same courseName.
    """
    cid = (record or {}).get("courseId")
    if cid and cid in by_id:
        return cid
    name = (record or {}).get("courseName")
    if name and name in by_name:
        return by_name[name]
    return None


def relevant_records(courses, records) -> list:
    """Records that belong to one of `courses`, by id or by course name."""
    by_id, by_name = _course_indexes(courses)
    return [r for r in records or [] if resolve_course_id(r, by_id, by_name)]


def courses_for_teacher(courses, teacher_id, fallback_to_all=False) -> list:
    owned = [c for c in courses or [] if teacher_id and c.get("teacherId") == teacher_id]
    if not owned and fallback_to_all:
        return list(courses or [])
    return owned


def reconcile_rosters(courses, records=(), known_students=(), fetch_students_by_ids=None) -> dict:
    """
    Build each course's effective roster from its declared studentIds plus every
    student seen in attendance or grade rows for that course.

    Profiles missing from `known_students` are resolved with a single call to
    `fetch_students_by_ids(ids)`; ids that still have no profile are dropped.

    Returns a dict with:
      course_ids        course id -> ordered unique student ids (declared first)
      rosters           course id -> student profiles
      my_students       union of all rosters, unique by id
      students          id -> profile for every resolved student
      records           dependent records matched to a course
      unmatched_records dependent records matched to no known course
    """
    courses = [normalize_course(c) for c in courses or []]
    by_id, by_name = _course_indexes(courses)

    course_ids = {}
    for cid, course in by_id.items():
        course_ids[cid] = unique_ids(course["studentIds"])

    matched, unmatched = [], []
    for record in records or []:
        cid = resolve_course_id(record, by_id, by_name)
        if cid is None:
            unmatched.append(record)
            continue
        matched.append(record)
        sid = record.get("studentId")
        if sid and sid not in course_ids[cid]:
            course_ids[cid].append(sid)

    all_ids = unique_ids(sid for ids in course_ids.values() for sid in ids)

    lookup = {}
    for student in known_students or []:
        if student and student.get("id") is not None:
            lookup.setdefault(student["id"], student)

    missing = [sid for sid in all_ids if sid not in lookup]
    if missing and fetch_students_by_ids is not None:
        logger.debug("Fetching %d student profile(s) missing from roster lookup", len(missing))
        for student in as_list(fetch_students_by_ids(missing), "students"):
            if student and student.get("id") is not None:
                lookup.setdefault(student["id"], student)

    rosters = {}
    for cid, ids in course_ids.items():
        rosters[cid] = [lookup[sid] for sid in ids if sid in lookup]

    my_students = {}
    for roster in rosters.values():
        for student in roster:
            my_students.setdefault(student["id"], student)

    stale = [sid for sid in all_ids if sid not in lookup]
    if stale:
        logger.debug("Dropping %d roster id(s) with no student profile", len(stale))

    return {
        "course_ids": course_ids,
        "rosters": rosters,
        "my_students": list(my_students.values()),
        "students": {sid: lookup[sid] for sid in all_ids if sid in lookup},
        "records": matched,
        "unmatched_records": unmatched,
    }


def pending_grade_count(courses, grades) -> int:
    """Declared roster members that have no grade yet in that course."""
    graded = {}
    for grade in grades or []:
        graded.setdefault(grade.get("courseId"), set()).add(grade.get("studentId"))
    pending = 0
    for course in courses or []:
        roster = unique_ids(normalize_course(course)["studentIds"])
        done = graded.get(course.get("id"), set())
        pending += sum(1 for sid in roster if sid not in done)
    return pending

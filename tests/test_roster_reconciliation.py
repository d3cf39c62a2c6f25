# tests/test_roster_reconciliation.py
from portal.roster_reconciliation import (
    courses_for_teacher,
    pending_grade_count,
    reconcile_rosters,
    relevant_records,
    resolve_course_id,
)


def _student(sid, **extra):
    return {"id": sid, "name": f"Student {sid}", "gpa": 3.0, **extra}


class FakeLookup:
    """Stands in for the store's fetch-students-by-id capability."""

    def __init__(self, students):
        self.students = {s["id"]: s for s in students}
        self.calls = []

    def __call__(self, ids):
        self.calls.append(list(ids))
        return [self.students[i] for i in ids if i in self.students]


def test_attendance_adds_students_after_declared_roster():
    courses = [{"id": "C1", "name": "Maths", "studentIds": ["s1"]}]
    records = [{"courseId": "C1", "studentId": "s2"}]
    result = reconcile_rosters(courses, records, [_student("s1"), _student("s2")])
    assert result["course_ids"]["C1"] == ["s1", "s2"]
    assert [s["id"] for s in result["rosters"]["C1"]] == ["s1", "s2"]


def test_duplicates_are_collapsed():
    courses = [{"id": "C1", "name": "Maths", "studentIds": '["s1","s1","s2"]'}]
    records = [{"courseId": "C1", "studentId": "s2"}, {"courseId": "C1", "studentId": "s1"}]
    result = reconcile_rosters(courses, records, [_student("s1"), _student("s2")])
    assert result["course_ids"]["C1"] == ["s1", "s2"]


def test_course_name_is_the_fallback_join_key():
    courses = [
        {"id": "C1", "name": "Maths", "studentIds": []},
        {"id": "C2", "name": "Physics", "studentIds": []},
    ]
    records = [
        {"courseName": "Physics", "studentId": "s3"},
        {"courseId": "gone", "courseName": "Maths", "studentId": "s4"},
    ]
    result = reconcile_rosters(courses, records, [_student("s3"), _student("s4")])
    assert result["course_ids"] == {"C1": ["s4"], "C2": ["s3"]}


def test_unmatched_records_are_kept_aside_not_rostered():
    courses = [{"id": "C1", "name": "Maths", "studentIds": ["s1"]}]
    stray = {"courseId": "X9", "courseName": "Art", "studentId": "s9"}
    result = reconcile_rosters(courses, [stray], [_student("s1"), _student("s9")])
    assert result["course_ids"]["C1"] == ["s1"]
    assert result["unmatched_records"] == [stray]
    assert result["records"] == []
    assert "s9" not in result["students"]


def test_missing_profiles_are_fetched_in_one_batch():
    courses = [
        {"id": "C1", "name": "Maths", "studentIds": "s1,s2"},
        {"id": "C2", "name": "Physics", "studentIds": ["s3"]},
    ]
    records = [{"courseId": "C2", "studentId": "s4"}, {"courseName": "Maths", "studentId": "s5"}]
    lookup = FakeLookup([_student("s2"), _student("s3"), _student("s4"), _student("s5")])

    result = reconcile_rosters(courses, records, [_student("s1")], lookup)

    assert lookup.calls == [["s2", "s5", "s3", "s4"]]
    assert [s["id"] for s in result["rosters"]["C1"]] == ["s1", "s2", "s5"]
    assert [s["id"] for s in result["rosters"]["C2"]] == ["s3", "s4"]


def test_no_lookup_when_every_profile_is_known():
    lookup = FakeLookup([])
    courses = [{"id": "C1", "name": "Maths", "studentIds": ["s1"]}]
    reconcile_rosters(courses, [], [_student("s1")], lookup)
    assert lookup.calls == []


def test_lookup_may_return_an_object_with_students_field():
    courses = [{"id": "C1", "name": "Maths", "studentIds": ["s1"]}]
    result = reconcile_rosters(courses, [], [], lambda ids: {"students": [_student("s1")]})
    assert [s["id"] for s in result["rosters"]["C1"]] == ["s1"]


def test_stale_ids_are_dropped():
    courses = [{"id": "C1", "name": "Maths", "studentIds": ["s1", "ghost"]}]
    result = reconcile_rosters(courses, [], [_student("s1")], FakeLookup([]))
    assert result["course_ids"]["C1"] == ["s1", "ghost"]
    assert [s["id"] for s in result["rosters"]["C1"]] == ["s1"]


def test_my_students_is_the_deduplicated_union():
    courses = [
        {"id": "C1", "name": "Maths", "studentIds": ["s1", "s2"]},
        {"id": "C2", "name": "Physics", "studentIds": ["s2", "s3"]},
    ]
    students = [_student(s) for s in ("s1", "s2", "s3")]
    result = reconcile_rosters(courses, [], students)
    assert [s["id"] for s in result["my_students"]] == ["s1", "s2", "s3"]


def test_empty_course_gives_empty_roster():
    result = reconcile_rosters([{"id": "C1", "name": "Empty", "studentIds": None}])
    assert result["rosters"] == {"C1": []}
    assert result["my_students"] == []


def test_resolve_course_id_prefers_id():
    by_id = {"C1": {}, "C2": {}}
    by_name = {"Maths": "C1"}
    assert resolve_course_id({"courseId": "C2", "courseName": "Maths"}, by_id, by_name) == "C2"
    assert resolve_course_id({"courseName": "Maths"}, by_id, by_name) == "C1"
    assert resolve_course_id({"courseName": "Art"}, by_id, by_name) is None


def test_relevant_records_and_teacher_courses():
    courses = [
        {"id": "C1", "name": "Maths", "teacherId": "t1"},
        {"id": "C2", "name": "Physics", "teacherId": "t2"},
    ]
    mine = courses_for_teacher(courses, "t1")
    assert [c["id"] for c in mine] == ["C1"]
    assert courses_for_teacher(courses, "t9") == []
    assert len(courses_for_teacher(courses, "t9", fallback_to_all=True)) == 2

    records = [{"courseId": "C1"}, {"courseName": "Maths"}, {"courseId": "C2"}, {"courseName": "Art"}]
    assert relevant_records(mine, records) == records[:2]


def test_pending_grade_count():
    courses = [{"id": "C1", "studentIds": "s1,s2,s3"}, {"id": "C2", "studentIds": []}]
    grades = [{"courseId": "C1", "studentId": "s1"}, {"courseId": "C2", "studentId": "s2"}]
    assert pending_grade_count(courses, grades) == 2

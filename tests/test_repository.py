# tests/test_repository.py
import pytest

import db
from portal.repository import NotFoundError, SchoolRepository


def test_courses_come_back_with_clean_rosters(seeded_db):
    repo = SchoolRepository()
    courses = {c["id"]: c for c in repo.get_courses()}
    assert courses["c1"]["studentIds"] == ["s1", "s2", "s3", "s4"]
    assert courses["c2"]["studentIds"] == ["s3", "s5", "s6"]
    assert courses["c3"]["studentIds"] == ["s7", "s8", "s9"]
    assert courses["c4"]["studentIds"] == []


def test_parents_children_are_normalised(seeded_db):
    repo = SchoolRepository()
    assert repo.get_parent("p1")["children"] == ["s1", "s2"]
    assert repo.get_parent("p2")["children"] == ["s3"]
    assert repo.get_parent("nobody") is None


def test_students_by_ids_is_one_store_call(seeded_db, monkeypatch):
    calls = []
    real = db.fetch_by_ids

    def counting(table, ids, column="id"):
        calls.append((table, list(ids)))
        return real(table, ids, column)

    monkeypatch.setattr(db, "fetch_by_ids", counting)
    students = SchoolRepository().get_students_by_ids(["s1", "s2", "s11"])
    assert sorted(s["id"] for s in students) == ["s1", "s11", "s2"]
    assert calls == [("students", ["s1", "s2", "s11"])]
    assert SchoolRepository().get_students_by_ids([]) == []
    assert len(calls) == 1


def test_grade_and_attendance_lookups(seeded_db):
    repo = SchoolRepository()
    grades = repo.get_grades_by_course_ids(["c4"])
    assert {g["studentId"] for g in grades} == {"s10", "s11"}
    attendance = repo.get_attendance_by_course_names(["Calculus I"])
    assert {a["studentId"] for a in attendance} == {"s7", "s8", "s9"}
    assert repo.get_grades_by_course_ids([]) == []
    assert all(g["studentId"] == "s1" for g in repo.get_grades("s1"))


def test_pay_fee_updates_balance_and_records_payment(repo):
    db.insert_row("finance", {"id": "f1", "studentId": "s1", "totalFee": 1000, "scholarship": 200,
                              "paid": 100, "due": 700, "semester": "Fall"})
    updated = repo.pay_fee("s1", 1000)
    assert updated["paid"] == 800
    assert updated["due"] == 0

    stored = repo.get_finance_for_student("s1")
    assert stored["paid"] == 800
    assert stored["due"] == 0
    payments = repo.get_payments("s1")
    assert [p["amount"] for p in payments] == [700]


def test_pay_fee_without_finance_record(repo):
    with pytest.raises(NotFoundError):
        repo.pay_fee("nobody", 10)


def test_pay_fee_on_settled_account_records_nothing(repo):
    db.insert_row("finance", {"id": "f1", "studentId": "s1", "totalFee": 100, "paid": 100, "due": 0})
    updated = repo.pay_fee("s1", 50)
    assert updated["paid"] == 100
    assert updated["due"] == 0
    assert repo.get_payments("s1") == []
    assert repo.get_finance_for_student("s1")["paid"] == 100


def test_pay_fee_leaves_balance_alone_when_payment_write_fails(repo, monkeypatch):
    db.insert_row("finance", {"id": "f1", "studentId": "s1", "totalFee": 100, "paid": 0, "due": 100})
    db.insert_row("payments", {"id": "dup", "studentId": "s9", "amount": 1})
    monkeypatch.setattr("portal.repository._new_id", lambda: "dup")
    with pytest.raises(db.RecordStoreError):
        repo.pay_fee("s1", 30)
    assert repo.get_finance_for_student("s1")["paid"] == 0
    assert repo.get_payments("s1") == []


def test_grade_mutations(repo):
    grade = repo.add_grade({"studentId": "s1", "courseId": "c1", "courseName": "Maths",
                            "examType": "Quiz", "score": 8, "maxScore": 10})
    assert grade["id"]
    assert grade["date"]
    updated = repo.update_grade(grade["id"], {"score": 9})
    assert updated["score"] == 9
    with pytest.raises(NotFoundError):
        repo.update_grade("missing", {"score": 1})


def test_give_attendance_inserts_all_entries(repo):
    records = repo.give_attendance([
        {"studentId": "s1", "status": "present", "courseName": "Maths"},
        {"studentId": "s2", "status": "late", "date": "2025-02-01", "courseId": "c1"},
    ])
    assert len(records) == 2
    assert records[1]["date"] == "2025-02-01"
    assert len(repo.get_attendance()) == 2

    changed = repo.update_attendance_record(records[0]["id"], {"status": "absent"})
    assert changed["status"] == "absent"
    with pytest.raises(NotFoundError):
        repo.update_attendance_record("missing", {"status": "absent"})


def test_add_user_creates_role_row(repo):
    user = repo.add_user({"name": "New Kid", "email": "kid@school.com", "role": "Student"})
    assert user["role"] == "student"
    student = repo.get_student(user["id"])
    assert student["gradeLevel"] == "Unassigned"
    assert student["gpa"] == 0
    assert [u["id"] for u in repo.get_users()] == [user["id"]]

    with pytest.raises(ValueError):
        repo.add_user({"name": "X", "role": "janitor"})


def test_add_user_with_blank_id_uses_one_generated_id(repo):
    user = repo.add_user({"id": None, "name": "Kid", "role": "student"})
    assert user["id"]
    assert [u["id"] for u in repo.get_users()] == [user["id"]]
    assert [s["id"] for s in repo.get_students()] == [user["id"]]

    course = repo.add_course({"id": None, "code": "CS101", "name": "Programming"})
    assert course["id"]
    grade = repo.add_grade({"id": None, "studentId": user["id"], "courseId": course["id"], "score": 1, "maxScore": 2})
    lesson = repo.add_lesson({"id": "", "courseId": course["id"], "title": "Intro"})
    assert grade["id"] and lesson["id"]


def test_course_mutations_normalise_rosters(repo):
    course = repo.add_course({"code": "CS101", "name": "Programming", "teacherId": "t1", "studentIds": "s1, s2"})
    assert course["studentIds"] == ["s1", "s2"]
    updated = repo.update_course(course["id"], {"studentIds": '["s3"]'})
    assert updated["studentIds"] == ["s3"]
    with pytest.raises(NotFoundError):
        repo.update_course("missing", {"name": "x"})


def test_lessons_and_announcements(repo):
    repo.add_lesson({"courseId": "c1", "courseName": "Maths", "title": "Limits", "date": "2030-01-01",
                     "teacherId": "t1"})
    assert len(repo.get_lessons("t1")) == 1
    assert repo.get_lessons("t2") == []
    assert len(repo.get_lessons_by_course("c1")) == 1

    db.insert_rows("announcements", [
        {"title": "All", "date": "2025-01-01"},
        {"title": "Parents only", "date": "2025-01-02", "targetRole": "parent"},
    ])
    assert [a["title"] for a in repo.get_announcements("student")] == ["All"]
    assert len(repo.get_announcements()) == 2

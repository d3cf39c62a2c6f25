# portal/repository.py
from __future__ import annotations

import uuid
from datetime import date

import db as record_store
from app_logger import get_logger
from portal.finance import apply_payment
from portal.roster_utils import as_list, normalize_course, normalize_roster_ids

logger = get_logger(__name__)

ROLE_TABLES = {"student": "students", "teacher": "teachers", "parent": "parents", "admin": "admins"}


class NotFoundError(LookupError):
    """The row a mutation targets does not exist."""


def _today() -> str:
    return date.today().isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class SchoolRepository:
    """
    Read/write access to the portal's records.

    Every fetch goes through one shape boundary (`as_list`, roster
    normalisation) so callers always get lists of plain dicts. Mutations
    write to the store first and return the stored row.
    """

    def __init__(self, store=None):
        self.store = store if store is not None else record_store

    def _rows(self, table, **kwargs) -> list:
        return as_list(self.store.fetch_all(table, **kwargs), table)

    def _one(self, table, **kwargs):
        rows = self._rows(table, limit=1, **kwargs)
        return rows[0] if rows else None

    # -------------------------
    # People
    # -------------------------
    def get_users(self) -> list:
        return self._rows("users", order="name")

    def get_students(self) -> list:
        return self._rows("students", order="name")

    def count_students(self) -> int:
        return len(self.get_students())

    def get_students_by_ids(self, ids) -> list:
        """Batched profile lookup; one store call however many ids."""
        if not ids:
            return []
        return as_list(self.store.fetch_by_ids("students", ids), "students")

    def get_student(self, student_id):
        return self._one("students", eq=[("id", student_id)])

    def get_teachers(self) -> list:
        teachers = self._rows("teachers", order="name")
        for t in teachers:
            t["subjects"] = normalize_roster_ids(t.get("subjects"))
        return teachers

    def get_parents(self) -> list:
        return [self._parent(p) for p in self._rows("parents", order="name")]

    def get_parent(self, parent_id):
        parent = self._one("parents", eq=[("id", parent_id)])
        return self._parent(parent) if parent else None

    @staticmethod
    def _parent(parent):
        parent = dict(parent)
        parent["children"] = normalize_roster_ids(parent.get("children"))
        return parent

    # -------------------------
    # Courses / lessons
    # -------------------------
    def get_courses(self) -> list:
        return [normalize_course(c) for c in self._rows("courses", order="code")]

    def get_lessons(self, teacher_id=None) -> list:
        if teacher_id:
            return self._rows("lessons", eq=[("teacherId", teacher_id)], order="date")
        return self._rows("lessons", order="date")

    def get_lessons_by_course(self, course_id) -> list:
        return self._rows("lessons", eq=[("courseId", course_id)], order="date")

    # -------------------------
    # Grades / attendance
    # -------------------------
    def get_grades(self, student_id=None) -> list:
        if student_id:
            return self._rows("grades", eq=[("studentId", student_id)], order="date")
        return self._rows("grades", order="date", ascending=False)

    def get_grades_by_course_ids(self, course_ids) -> list:
        if not course_ids:
            return []
        return as_list(self.store.fetch_by_ids("grades", course_ids, column="courseId"))

    def get_attendance(self, student_id=None) -> list:
        if student_id:
            return self._rows("attendance", eq=[("studentId", student_id)], order="date")
        return self._rows("attendance", order="date", ascending=False)

    def get_attendance_by_course_names(self, course_names) -> list:
        if not course_names:
            return []
        return as_list(self.store.fetch_by_ids("attendance", course_names, column="courseName"))

    # -------------------------
    # Finance / notices
    # -------------------------
    def get_finances(self) -> list:
        return self._rows("finance", order="studentId")

    def get_finance_for_student(self, student_id):
        return self._one("finance", eq=[("studentId", student_id)])

    def get_payments(self, student_id=None) -> list:
        if student_id:
            return self._rows("payments", eq=[("studentId", student_id)], order="date", ascending=False)
        return self._rows("payments", order="date", ascending=False)

    def get_announcements(self, role=None) -> list:
        rows = self._rows("announcements", order="date", ascending=False)
        if role:
            rows = [a for a in rows if not a.get("targetRole") or a["targetRole"] == role]
        return rows

    def get_events(self) -> list:
        return self._rows("events", order="date")

    # -------------------------
    # Mutations
    # -------------------------
    def pay_fee(self, student_id, amount, method="Online") -> dict:
        """
        Pay towards a student's balance. Only the outstanding amount is applied;
        the payment is recorded with the applied amount. A settled account is
        returned unchanged and no payment is recorded.
        """
        finance = self.get_finance_for_student(student_id)
        if not finance:
            raise NotFoundError(f"finance record not found for student {student_id}")
        updated, applied = apply_payment(finance, amount)
        if applied <= 0:
            logger.info("Nothing due for student %s, payment not recorded", student_id)
            return updated
        payment = {
            "id": _new_id(), "studentId": student_id, "amount": applied,
            "date": _today(), "method": method, "status": "completed",
        }
        self.store.write_batch(
            updates=[("finance", finance["id"], {"paid": updated["paid"], "due": updated["due"]})],
            inserts=[("payments", [payment])],
        )
        logger.info("Payment of %.2f applied for student %s (due now %.2f)", applied, student_id, updated["due"])
        return updated

    def add_grade(self, grade: dict) -> dict:
        record = {"date": _today(), **{k: v for k, v in grade.items() if v is not None}}
        record["id"] = grade.get("id") or _new_id()
        return self.store.insert_row("grades", record)

    def update_grade(self, grade_id, patch: dict) -> dict:
        updated = self.store.update_row("grades", grade_id, patch)
        if updated is None:
            raise NotFoundError(f"grade {grade_id} not found")
        return updated

    def add_attendance_record(self, record: dict) -> dict:
        entry = {"date": _today(), **{k: v for k, v in record.items() if v is not None}}
        entry["id"] = record.get("id") or _new_id()
        return self.store.insert_row("attendance", entry)

    def give_attendance(self, entries) -> list:
        """Mark attendance for several students at once (one insert)."""
        records = []
        for e in entries or []:
            records.append({
                "id": _new_id(),
                "studentId": e["studentId"],
                "status": e["status"],
                "date": e.get("date") or _today(),
                "courseId": e.get("courseId"),
                "courseName": e.get("courseName"),
                "lessonId": e.get("lessonId"),
            })
        return self.store.insert_rows("attendance", records)

    def update_attendance_record(self, record_id, patch: dict) -> dict:
        updated = self.store.update_row("attendance", record_id, patch)
        if updated is None:
            raise NotFoundError(f"attendance record {record_id} not found")
        return updated

    def add_lesson(self, lesson: dict) -> dict:
        record = {k: v for k, v in lesson.items() if v is not None}
        record["id"] = lesson.get("id") or _new_id()
        return self.store.insert_row("lessons", record)

    def add_course(self, course: dict) -> dict:
        record = {**course, "id": course.get("id") or _new_id()}
        record["studentIds"] = normalize_roster_ids(record.get("studentIds"))
        return normalize_course(self.store.insert_row("courses", record))

    def update_course(self, course_id, patch: dict) -> dict:
        patch = dict(patch)
        if "studentIds" in patch:
            patch["studentIds"] = normalize_roster_ids(patch["studentIds"])
        updated = self.store.update_row("courses", course_id, patch)
        if updated is None:
            raise NotFoundError(f"course {course_id} not found")
        return normalize_course(updated)

    def add_user(self, user: dict) -> dict:
        """
        Create a user; students, teachers, parents and admins also get their role row.
        """
        role = (user.get("role") or "").lower()
        if role not in ROLE_TABLES:
            raise ValueError(f"unknown role: {user.get('role')}")
        new_user = {**user, "id": user.get("id") or _new_id(), "role": role}
        base = {k: new_user.get(k) for k in ("id", "name", "email", "role", "avatar", "phone", "address")}

        profile = {k: new_user.get(k) for k in ("id", "name", "email", "role", "phone")}
        if role == "student":
            profile.update(gradeLevel=new_user.get("gradeLevel") or "Unassigned", gpa=0, attendance=0,
                           parentId=new_user.get("parentId"))
        elif role == "teacher":
            profile.update(department=new_user.get("department"), subjects=new_user.get("subjects") or [])
        elif role == "parent":
            profile.update(children=new_user.get("children") or [])
        else:
            profile.update(department=new_user.get("department"))
        self.store.write_batch(inserts=[("users", [base]), (ROLE_TABLES[role], [profile])])
        return new_user

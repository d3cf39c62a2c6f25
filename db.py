# db.py — SQLite record store for the school portal
# - One table per entity kind (users, students, teachers, courses, grades, ...)
# - camelCase column names so rows come back in the shape the portal uses
# - List-valued fields (course rosters, parent children) are stored as given:
#   JSON text, comma separated text, whatever the writer sent. Readers normalize.
# - Every sqlite3 failure surfaces as RecordStoreError

import json
import os
import random
import sqlite3
import uuid
from datetime import date, timedelta

from app_logger import get_logger

logger = get_logger("db")

BASE_DIR = os.path.dirname(__file__)
DATA_DIR = os.path.join(BASE_DIR, "data")

DB_PATH = os.getenv("SCHOOL_DB_PATH", os.path.join(DATA_DIR, "school.db"))


class RecordStoreError(Exception):
    """A read or write against the record store failed."""


# -------------------------
# Schema
# -------------------------
# table -> [(column, sql type)]; the first column is always the text primary key
SCHEMA = {
    "users": [
        ("id", "TEXT PRIMARY KEY"), ("name", "TEXT"), ("email", "TEXT"), ("role", "TEXT"),
        ("avatar", "TEXT"), ("phone", "TEXT"), ("address", "TEXT"),
    ],
    "students": [
        ("id", "TEXT PRIMARY KEY"), ("name", "TEXT"), ("email", "TEXT"), ("role", "TEXT"),
        ("phone", "TEXT"), ("address", "TEXT"), ("gradeLevel", "TEXT"), ("gpa", "REAL"),
        ("attendance", "REAL"), ("parentId", "TEXT"),
    ],
    "teachers": [
        ("id", "TEXT PRIMARY KEY"), ("name", "TEXT"), ("email", "TEXT"), ("role", "TEXT"),
        ("phone", "TEXT"), ("department", "TEXT"), ("subjects", "TEXT"),
    ],
    "parents": [
        ("id", "TEXT PRIMARY KEY"), ("name", "TEXT"), ("email", "TEXT"), ("role", "TEXT"),
        ("phone", "TEXT"), ("children", "TEXT"),
    ],
    "admins": [
        ("id", "TEXT PRIMARY KEY"), ("name", "TEXT"), ("email", "TEXT"), ("role", "TEXT"),
        ("phone", "TEXT"), ("department", "TEXT"),
    ],
    "courses": [
        ("id", "TEXT PRIMARY KEY"), ("code", "TEXT"), ("name", "TEXT"), ("teacherId", "TEXT"),
        ("teacherName", "TEXT"), ("credits", "INTEGER"), ("schedule", "TEXT"), ("studentIds", "TEXT"),
    ],
    "lessons": [
        ("id", "TEXT PRIMARY KEY"), ("courseId", "TEXT"), ("courseName", "TEXT"), ("title", "TEXT"),
        ("description", "TEXT"), ("date", "TEXT"), ("time", "TEXT"), ("room", "TEXT"),
        ("teacherId", "TEXT"), ("studentIds", "TEXT"),
    ],
    "grades": [
        ("id", "TEXT PRIMARY KEY"), ("studentId", "TEXT"), ("courseId", "TEXT"), ("courseName", "TEXT"),
        ("examType", "TEXT"), ("score", "REAL"), ("maxScore", "REAL"), ("date", "TEXT"),
    ],
    "attendance": [
        ("id", "TEXT PRIMARY KEY"), ("studentId", "TEXT"), ("courseId", "TEXT"), ("lessonId", "TEXT"),
        ("courseName", "TEXT"), ("date", "TEXT"), ("status", "TEXT"),
    ],
    "finance": [
        ("id", "TEXT PRIMARY KEY"), ("studentId", "TEXT"), ("totalFee", "REAL"), ("scholarship", "REAL"),
        ("paid", "REAL"), ("due", "REAL"), ("semester", "TEXT"),
    ],
    "payments": [
        ("id", "TEXT PRIMARY KEY"), ("studentId", "TEXT"), ("amount", "REAL"), ("date", "TEXT"),
        ("method", "TEXT"), ("status", "TEXT"),
    ],
    "announcements": [
        ("id", "TEXT PRIMARY KEY"), ("title", "TEXT"), ("content", "TEXT"), ("author", "TEXT"),
        ("date", "TEXT"), ("priority", "TEXT"), ("targetRole", "TEXT"),
    ],
    "events": [
        ("id", "TEXT PRIMARY KEY"), ("title", "TEXT"), ("description", "TEXT"), ("date", "TEXT"),
        ("time", "TEXT"), ("location", "TEXT"), ("type", "TEXT"),
    ],
}

INDEXES = [
    ("idx_grades_student", "grades", "studentId"),
    ("idx_grades_course", "grades", "courseId"),
    ("idx_attendance_student", "attendance", "studentId"),
    ("idx_attendance_course_name", "attendance", "courseName"),
    ("idx_finance_student", "finance", "studentId"),
    ("idx_lessons_teacher", "lessons", "teacherId"),
]

# SQLite caps bound parameters per statement
_IN_CHUNK = 500


# -------------------------
# Connection
# -------------------------
def get_connection():
    """
    Open a connection to DB_PATH with rows addressable by column name.
    """
    folder = os.path.dirname(DB_PATH)
    if folder:
        os.makedirs(folder, exist_ok=True)
    try:
        conn = sqlite3.connect(DB_PATH)
    except sqlite3.Error as e:
        raise RecordStoreError(f"cannot open {DB_PATH}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn


def _columns(table):
    if table not in SCHEMA:
        raise RecordStoreError(f"unknown table: {table}")
    return [c for c, _ in SCHEMA[table]]


def _check_columns(table, names):
    known = set(_columns(table))
    unknown = [n for n in names if n not in known]
    if unknown:
        raise RecordStoreError(f"unknown column(s) for {table}: {', '.join(unknown)}")


def _encode(value):
    # list/dict fields are written as JSON text
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(list(value) if isinstance(value, tuple) else value)
    return value


def _run(sql, params=(), many=False):
    conn = get_connection()
    try:
        cur = conn.cursor()
        if many:
            cur.executemany(sql, params)
        else:
            cur.execute(sql, params)
        rows = cur.fetchall()
        conn.commit()
        return [dict(r) for r in rows]
    except sqlite3.Error as e:
        raise RecordStoreError(str(e)) from e
    finally:
        conn.close()


# -------------------------
# Schema setup / migration
# -------------------------
def safe_add_column(cur, table, column_defs):
    # column_defs is list of (colname, sql_type); PRIMARY KEY columns are never added late
    cur.execute(f"PRAGMA table_info({table})")
    existing = {r[1] for r in cur.fetchall()}
    for col, coldef in column_defs:
        if col not in existing and "PRIMARY KEY" not in coldef:
            cur.execute(f'ALTER TABLE {table} ADD COLUMN "{col}" {coldef}')
            logger.info("Added column %s.%s", table, col)


def init_db():
    """
    Create every table and index; add columns that older databases lack.
    """
    conn = get_connection()
    try:
        cur = conn.cursor()
        for table, cols in SCHEMA.items():
            defs = ", ".join(f'"{c}" {t}' for c, t in cols)
            cur.execute(f"CREATE TABLE IF NOT EXISTS {table} ({defs})")
            safe_add_column(cur, table, cols)
        for name, table, column in INDEXES:
            cur.execute(f'CREATE INDEX IF NOT EXISTS {name} ON {table}("{column}")')
        conn.commit()
    except sqlite3.Error as e:
        raise RecordStoreError(f"schema setup failed: {e}") from e
    finally:
        conn.close()


# -------------------------
# Reads
# -------------------------
def fetch_all(table, eq=None, order=None, ascending=True, limit=None):
    """
    Fetch rows of `table`.

    eq: mapping or list of (column, value) pairs, all must match.
    order: column to sort by.
    """
    cols = _columns(table)
    pairs = list(eq.items()) if isinstance(eq, dict) else list(eq or [])
    _check_columns(table, [c for c, _ in pairs] + ([order] if order else []))

    quoted = ", ".join(f'"{c}"' for c in cols)
    sql = f"SELECT {quoted} FROM {table}"
    params = []
    if pairs:
        sql += " WHERE " + " AND ".join(f'"{c}" = ?' for c, _ in pairs)
        params.extend(_encode(v) for _, v in pairs)
    if order:
        sql += f' ORDER BY "{order}" {"ASC" if ascending else "DESC"}'
    if limit:
        sql += " LIMIT ?"
        params.append(int(limit))
    return _run(sql, tuple(params))


def fetch_by_ids(table, ids, column="id"):
    """
    Batched lookup: rows whose `column` is in `ids`.
    Duplicate and empty ids are ignored; an empty id list costs no query.
    """
    _check_columns(table, [column])
    wanted = list(dict.fromkeys(str(i) for i in (ids or []) if i not in (None, "")))
    if not wanted:
        return []
    rows = []
    for start in range(0, len(wanted), _IN_CHUNK):
        chunk = wanted[start:start + _IN_CHUNK]
        marks = ", ".join("?" for _ in chunk)
        rows.extend(_run(f'SELECT * FROM {table} WHERE "{column}" IN ({marks})', tuple(chunk)))
    return rows


def fetch_one(table, row_id):
    rows = fetch_all(table, eq=[("id", row_id)], limit=1)
    return rows[0] if rows else None


# -------------------------
# Writes
# -------------------------
def _insert_statement(table, rows):
    cols = _columns(table)
    prepared = []
    for row in rows:
        row = dict(row)
        if not row.get("id"):
            row["id"] = str(uuid.uuid4())
        _check_columns(table, row.keys())
        prepared.append(row)
    quoted = ", ".join(f'"{c}"' for c in cols)
    marks = ", ".join("?" for _ in cols)
    params = [tuple(_encode(r.get(c)) for c in cols) for r in prepared]
    return f"INSERT INTO {table} ({quoted}) VALUES ({marks})", params, prepared


def _update_statement(table, row_id, patch):
    patch = {k: v for k, v in dict(patch).items() if k != "id"}
    _check_columns(table, patch.keys())
    if not patch:
        return None
    sets = ", ".join(f'"{c}" = ?' for c in patch)
    return f"UPDATE {table} SET {sets} WHERE id = ?", tuple(_encode(v) for v in patch.values()) + (row_id,)


def insert_row(table, row):
    """
    Insert one row; an id is generated when the row has none. Returns the stored row.
    """
    return insert_rows(table, [row])[0]


def insert_rows(table, rows):
    sql, params, prepared = _insert_statement(table, rows)
    if prepared:
        _run(sql, params, many=True)
    return prepared


def update_row(table, row_id, patch):
    """
    Update fields of one row. Returns the updated row, or None when no row has that id.
    """
    statement = _update_statement(table, row_id, patch)
    if statement:
        _run(*statement)
    return fetch_one(table, row_id)


def write_batch(updates=(), inserts=()):
    """
    Apply several writes on one connection with a single commit.

    updates: iterable of (table, row_id, patch)
    inserts: iterable of (table, rows)
    Either every write lands or none does. Returns the inserted rows.
    """
    statements = []
    for table, row_id, patch in updates:
        statement = _update_statement(table, row_id, patch)
        if statement:
            statements.append((*statement, False))
    stored = []
    for table, rows in inserts:
        sql, params, prepared = _insert_statement(table, rows)
        if prepared:
            statements.append((sql, params, True))
            stored.extend(prepared)

    conn = get_connection()
    try:
        cur = conn.cursor()
        for sql, params, many in statements:
            if many:
                cur.executemany(sql, params)
            else:
                cur.execute(sql, params)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise RecordStoreError(str(e)) from e
    finally:
        conn.close()
    return stored


def count_rows(table):
    _columns(table)
    return _run(f"SELECT COUNT(*) AS n FROM {table}")[0]["n"]


# -------------------------
# Demo data
# -------------------------
def seed_demo_data(seed=7):
    """
    Seed a small demo school when the courses table is empty:
      - 1 admin, 3 teachers, 2 parents, 12 students
      - 4 courses whose rosters are stored in mixed shapes (JSON, CSV, noisy text)
      - grades and attendance for the last 5 days, with legacy status spellings
      - one finance row per student
    """
    if count_rows("courses"):
        logger.info("Demo data already present, skipping seed.")
        return False

    rnd = random.Random(seed)
    today = date.today()

    insert_row("admins", {"id": "a1", "name": "Admin User", "email": "admin@school.com",
                          "role": "admin", "department": "Office"})
    teachers = [
        {"id": "t1", "name": "Ravi Kumar", "email": "ravi@school.com", "role": "teacher",
         "department": "Computer Science", "subjects": ["CS101", "CS201"]},
        {"id": "t2", "name": "Anita Rao", "email": "anita@school.com", "role": "teacher",
         "department": "Mathematics", "subjects": ["MA110"]},
        {"id": "t3", "name": "Joseph D", "email": "joseph@school.com", "role": "teacher",
         "department": "Physics", "subjects": ["PH120"]},
    ]
    insert_rows("teachers", teachers)

    students = []
    for i in range(1, 13):
        students.append({
            "id": f"s{i}",
            "name": f"Student {i:02d}",
            "email": f"student{i}@school.com",
            "role": "student",
            "gradeLevel": f"Grade {9 + (i % 4)}",
            "gpa": round(rnd.uniform(2.0, 4.0), 2),
            "attendance": 0,
            "parentId": "p1" if i <= 2 else ("p2" if i == 3 else None),
        })
    insert_rows("students", students)
    insert_rows("parents", [
        {"id": "p1", "name": "Lakshmi", "email": "lakshmi@home.com", "role": "parent", "children": ["s1", "s2"]},
        {"id": "p2", "name": "Suresh", "email": "suresh@home.com", "role": "parent", "children": "s3"},
    ])
    insert_rows("users", [
        {"id": u["id"], "name": u["name"], "email": u["email"], "role": u["role"]}
        for u in [{"id": "a1", "name": "Admin User", "email": "admin@school.com", "role": "admin"}] + teachers + students
    ])

    courses = [
        {"id": "c1", "code": "CS101", "name": "Intro to Programming", "teacherId": "t1", "teacherName": "Ravi Kumar",
         "credits": 4, "schedule": "Mon/Wed 09:00", "studentIds": json.dumps(["s1", "s2", "s3", "s4"])},
        {"id": "c2", "code": "CS201", "name": "Data Structures", "teacherId": "t1", "teacherName": "Ravi Kumar",
         "credits": 4, "schedule": "Tue/Thu 11:00", "studentIds": "s3, s5, s6"},
        {"id": "c3", "code": "MA110", "name": "Calculus I", "teacherId": "t2", "teacherName": "Anita Rao",
         "credits": 3, "schedule": "Mon/Fri 14:00", "studentIds": '{"s7","s8","s9"}'},
        {"id": "c4", "code": "PH120", "name": "Mechanics", "teacherId": "t3", "teacherName": None,
         "credits": 3, "schedule": "Wed 10:00", "studentIds": None},
    ]
    insert_rows("courses", courses)

    # who actually shows up in dependent rows; c4 has no declared roster at all
    # and s12 only appears in grades of c1
    taking = {
        "c1": ["s1", "s2", "s3", "s4"],
        "c2": ["s3", "s5", "s6"],
        "c3": ["s7", "s8", "s9"],
        "c4": ["s10", "s11"],
    }
    statuses = ["Present", "present", "P", "Late", "tardy", "Absent", "excused", "1", "0", "unknown"]
    attendance, grades = [], []
    for course in courses:
        for sid in taking[course["id"]]:
            for back in range(5):
                rec = {"studentId": sid, "courseName": course["name"],
                       "lessonId": f"{course['id']}-L{back}",
                       "date": (today - timedelta(days=back)).isoformat(),
                       "status": rnd.choice(statuses)}
                if back % 2 == 0:
                    rec["courseId"] = course["id"]
                attendance.append(rec)
            for exam, max_score in (("Quiz", 10), ("Midterm", 50), ("Final", 100)):
                grades.append({"studentId": sid, "courseId": course["id"], "courseName": course["name"],
                               "examType": exam, "score": rnd.randint(max_score // 2, max_score),
                               "maxScore": max_score, "date": (today - timedelta(days=rnd.randint(1, 30))).isoformat()})
    grades.append({"studentId": "s12", "courseId": "c1", "courseName": "Intro to Programming",
                   "examType": "Makeup", "score": 35, "maxScore": 50, "date": today.isoformat()})
    insert_rows("attendance", attendance)
    insert_rows("grades", grades)

    finances = []
    for s in students:
        total = 12000
        scholarship = rnd.choice([0, 1000, 2500])
        paid = rnd.choice([0, 4000, 9500])
        finances.append({"studentId": s["id"], "totalFee": total, "scholarship": scholarship, "paid": paid,
                         "due": max(0, total - scholarship - paid), "semester": "Fall"})
    insert_rows("finance", finances)

    insert_rows("announcements", [
        {"title": "Exam timetable published", "content": "Check the events page.", "author": "Admin User",
         "date": today.isoformat(), "priority": "high"},
        {"title": "Sports day", "content": "All students assemble at 8am.", "author": "Admin User",
         "date": (today - timedelta(days=3)).isoformat(), "priority": "medium", "targetRole": "student"},
    ])
    insert_rows("events", [
        {"title": "Midterm exams", "description": "All courses", "date": (today + timedelta(days=10)).isoformat(),
         "time": "09:00", "location": "Main hall", "type": "exam"},
    ])
    logger.info("✅ Demo school seeded: %d students, %d courses, %d attendance rows, %d grades.",
                len(students), len(courses), len(attendance), len(grades))
    return True


if __name__ == "__main__":
    init_db()
    seed_demo_data()

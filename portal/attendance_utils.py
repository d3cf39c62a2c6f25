# portal/attendance_utils.py
from __future__ import annotations

import math

import pandas as pd

STATUSES = ("present", "late", "absent")

STATUS_MAP = {
    "present": "present",
    "attended": "present",
    "on-time": "present",
    "ontime": "present",
    "p": "present",
    "1": "present",
    "true": "present",
    "late": "late",
    "tardy": "late",
    "l": "late",
    "absent": "absent",
    "missed": "absent",
    "excused": "absent",
    "a": "absent",
    "0": "absent",
    "false": "absent",
}

# Weighted score: present=100%, late=75%, absent=0%
STATUS_WEIGHTS = {"present": 1.0, "late": 0.75, "absent": 0.0}

FRAME_COLUMNS = ["id", "studentId", "courseId", "courseName", "lessonId", "date", "status", "rawStatus"]


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (68.5 -> 69, -0.5 -> 0)."""
    return int(math.floor(value + 0.5))


def normalize_status(raw) -> str | None:
    """
    Map a raw attendance status onto "present" / "late" / "absent".
    Returns None for anything unrecognised or empty.
    """
    if raw is None:
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)  # 1.0 reads as "1"
    text = str(raw).strip().lower()
    if not text:
        return None
    return STATUS_MAP.get(text)


def display_status(raw) -> str:
    status = normalize_status(raw)
    if status:
        return status.capitalize()
    if raw is None or str(raw).strip() == "":
        return "Unknown"
    return str(raw)


def _empty_stats() -> dict:
    return {"total": 0, "present": 0, "late": 0, "absent": 0, "rate": 0}


def compute_stats(records) -> dict:
    """
    Summary stats for a list of attendance records, as shown on every dashboard.

    Records whose status does not normalise are skipped entirely; they count
    neither towards the total nor as absences.
    """
    stats = _empty_stats()
    for record in records or []:
        status = normalize_status((record or {}).get("status"))
        if not status:
            continue
        stats["total"] += 1
        stats[status] += 1

    if not stats["total"]:
        return stats

    weighted = sum(stats[s] * STATUS_WEIGHTS[s] for s in STATUSES)
    stats["rate"] = round_half_up(weighted / stats["total"] * 100)
    return stats


def student_attendance_rate(records) -> int:
    return compute_stats(records)["rate"]


def group_by_course(records) -> dict:
    """
    Partition records by course name. Records without a course name are left out.
    """
    grouped = {}
    for record in records or []:
        name = (record or {}).get("courseName")
        if not name:
            continue
        grouped.setdefault(name, []).append(record)
    return grouped


def stats_by_course(records) -> dict:
    return {name: compute_stats(recs) for name, recs in group_by_course(records).items()}


def attendance_frame(records) -> pd.DataFrame:
    """
    Tabular view of attendance rows with a normalised `status` column and the
    original value kept in `rawStatus`. Unknown statuses stay in the frame as None.
    """
    rows = []
    for record in records or []:
        record = record or {}
        rows.append({
            "id": record.get("id"),
            "studentId": record.get("studentId"),
            "courseId": record.get("courseId"),
            "courseName": record.get("courseName"),
            "lessonId": record.get("lessonId"),
            "date": record.get("date"),
            "status": normalize_status(record.get("status")),
            "rawStatus": record.get("status"),
        })
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.date
    return df

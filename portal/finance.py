# portal/finance.py
from __future__ import annotations

from portal.attendance_utils import round_half_up
from portal.placeholders import DASH, UNKNOWN_STUDENT


def _num(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def net_due(finance: dict) -> float:
    """
    Balance still owed: totalFee - scholarship - paid, never below zero.
    Missing fields count as zero.
    """
    finance = finance or {}
    return max(0.0, _num(finance.get("totalFee")) - _num(finance.get("scholarship")) - _num(finance.get("paid")))


def apply_payment(finance: dict, amount) -> tuple[dict, float]:
    """
    Apply a payment to a finance record. Only the outstanding balance can be
    paid; the rest of `amount` is not applied.

    Returns (updated copy, amount applied).
    """
    amount = _num(amount)
    if amount <= 0:
        raise ValueError("payment amount must be positive")
    updated = dict(finance)
    applied = min(amount, net_due(finance))
    updated["paid"] = _num(finance.get("paid")) + applied
    updated["due"] = net_due(updated)
    return updated, applied


def finance_rows(finances, students=()) -> list[dict]:
    """Admin finance table rows, balance computed with net_due."""
    student_map = {s.get("id"): s for s in students or [] if s}
    rows = []
    for fin in finances or []:
        student = student_map.get(fin.get("studentId")) or {}
        rows.append({
            "id": fin.get("id"),
            "studentId": fin.get("studentId"),
            "name": student.get("name") or UNKNOWN_STUDENT,
            "email": student.get("email") or DASH,
            "total": _num(fin.get("totalFee")),
            "paid": _num(fin.get("paid")),
            "scholarship": _num(fin.get("scholarship")),
            "balance": net_due(fin),
            "semester": fin.get("semester") or DASH,
        })
    return rows


def filter_finance_rows(rows, search="", balance_filter="all", min_balance=None) -> list[dict]:
    """
    balance_filter: "all", "due" (balance > 0) or "settled" (balance == 0).
    min_balance: ignored when empty or not a number.
    """
    term = (search or "").strip().lower()
    try:
        floor = float(min_balance) if min_balance not in (None, "") else None
    except (TypeError, ValueError):
        floor = None

    out = []
    for row in rows or []:
        if term and term not in row["name"].lower() and term not in row["email"].lower():
            continue
        if balance_filter == "due" and not row["balance"] > 0:
            continue
        if balance_filter == "settled" and row["balance"] != 0:
            continue
        if floor is not None and row["balance"] < floor:
            continue
        out.append(row)
    return out


def finance_totals(finances) -> dict:
    """Sums over raw finance records; outstanding uses net_due for every row."""
    totals = {"totalFee": 0.0, "collected": 0.0, "scholarships": 0.0, "outstanding": 0.0}
    for fin in finances or []:
        totals["totalFee"] += _num(fin.get("totalFee"))
        totals["collected"] += _num(fin.get("paid"))
        totals["scholarships"] += _num(fin.get("scholarship"))
        totals["outstanding"] += net_due(fin)
    totals["collectionRate"] = collection_rate(finances)
    return totals


def collection_rate(finances) -> int:
    total = sum(_num(f.get("totalFee")) for f in finances or [])
    if not total:
        return 0
    return round_half_up(sum(_num(f.get("paid")) for f in finances or []) / total * 100)

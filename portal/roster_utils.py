# portal/roster_utils.py
from __future__ import annotations

import json
import re

_NOISE = re.compile(r'[\[\]{}"]')


def _reject_constant(name):
    raise ValueError(f"not a JSON value: {name}")


def _clean_list(values) -> list[str]:
    out = []
    for value in values:
        text = _scalar_text(value).strip()
        if text:
            out.append(text)
    return out


def _scalar_text(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_roster_ids(value) -> list[str]:
    """
    Normalise a course's studentIds field, which can arrive as a list,
    a JSON array string, or comma separated text with bracket/quote noise.

    Order is preserved and duplicates are kept. Never raises.
    """
    if isinstance(value, (list, tuple)):
        return _clean_list(value)

    if not isinstance(value, str):
        return []

    text = value.strip()
    if not text:
        return []

    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return _clean_list(parsed)

    # not a JSON array, fall back to delimiter parsing
    pieces = (_NOISE.sub("", piece).strip() for piece in text.split(","))
    return [p for p in pieces if p]


def unique_ids(ids) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


def normalize_course(course: dict) -> dict:
    """Copy of `course` with studentIds as a clean list."""
    course = dict(course or {})
    course["studentIds"] = normalize_roster_ids(course.get("studentIds"))
    return course


def as_list(response, key: str | None = None) -> list:
    """
    Single shape boundary for fetch results: a bare list passes through,
    an object carrying the list under `key` is unwrapped, anything else is [].
    """
    if response is None:
        return []
    if isinstance(response, (list, tuple)):
        return list(response)
    if isinstance(response, dict) and key:
        inner = response.get(key)
        if isinstance(inner, (list, tuple)):
            return list(inner)
    return []

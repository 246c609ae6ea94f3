from __future__ import annotations

import math
from datetime import date, datetime, timedelta


def parse_iso_date(value: date | datetime | str) -> date:
    """Coerce a date, datetime or ISO-8601 string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    # Stores sometimes return e.g. 2024-01-01T00:00:00Z
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "T" in text or " " in text:
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def end_of_iso_week(d: date) -> date:
    """Sunday of the ISO week containing d."""
    return d + timedelta(days=7 - d.isoweekday())


def add_days(d: date, n: float) -> date:
    # Fractional days fall within the same calendar day.
    return d + timedelta(days=math.floor(n))


def add_weeks(d: date, n: float) -> date:
    return d + timedelta(days=math.floor(n * 7))

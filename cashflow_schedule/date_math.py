from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta

SATURDAY = 5
SUNDAY = 6
SUPPORTED_WEEKEND_POLICIES = {"on", "before", "after"}
# Largest distance any policy can move a date.
MAX_WEEKEND_SHIFT = timedelta(days=2)


def last_day_of(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def clamp_day_of_month(year: int, month: int, day: int) -> int:
    """Clamp ``day`` to the last valid day of the given month."""
    return min(day, last_day_of(year, month))


def add_months(from_date: date, months: int, anchor_day: int) -> date:
    # Land on day 1 of the target month first so a short month never rolls over.
    total_month = from_date.month - 1 + months
    year = from_date.year + total_month // 12
    month = total_month % 12 + 1
    return date(year, month, clamp_day_of_month(year, month, anchor_day))


def is_weekend(value: date) -> bool:
    return value.weekday() in (SATURDAY, SUNDAY)


def apply_weekend_policy(value: date, policy: str) -> date:
    normalized = normalize_weekend_policy(policy)
    if normalized == "on" or not is_weekend(value):
        return value
    if normalized == "before":
        return value - timedelta(days=value.weekday() - 4)
    return value + timedelta(days=7 - value.weekday())


def normalize_weekend_policy(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_WEEKEND_POLICIES:
        raise ValueError("Weekend policy must be one of on, before, or after.")
    return normalized

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import TYPE_CHECKING

from cashflow_schedule.date_math import add_months

if TYPE_CHECKING:
    from cashflow_schedule.schedule_models import RecurrenceRule

MONTHS_PER_YEAR = 12
DAYS_PER_WEEK = 7


def advance_once(rule: RecurrenceRule, from_date: date) -> date:
    """Return the next raw occurrence strictly after ``from_date``.

    The result is always computed from the unadjusted date; weekend policies
    are applied by consumers and never feed back into stepping.
    """
    if rule.frequency == "daily":
        return from_date + timedelta(days=1)
    if rule.frequency == "weekly":
        return from_date + timedelta(days=DAYS_PER_WEEK * rule.interval)
    if rule.frequency == "monthly":
        return add_months(from_date, rule.interval, rule.anchor_day)
    if rule.frequency == "yearly":
        # Yearly rules stay in the month of start_date.
        anchor_month = date(from_date.year, rule.start_date.month, 1)
        return add_months(anchor_month, MONTHS_PER_YEAR * rule.interval, rule.anchor_day)
    raise ValueError(f"Unsupported frequency: {rule.frequency}")


def first_due_date(start_date: date, frequency: str, anchor_day: int | None) -> date:
    """Initial cursor for a freshly created rule.

    An explicit anchor on a monthly/yearly rule moves the first occurrence to
    that day of the start month, or one period later when the anchored day
    has already passed.
    """
    if anchor_day is None or frequency not in {"monthly", "yearly"}:
        return start_date
    candidate = add_months(start_date, 0, anchor_day)
    if candidate < start_date:
        period = 1 if frequency == "monthly" else MONTHS_PER_YEAR
        candidate = add_months(start_date, period, anchor_day)
    return candidate


def advance_after_posting(rule: RecurrenceRule, posted_date: date) -> RecurrenceRule:
    """Move the cursor past an occurrence the user posted as a real transaction."""
    next_due = advance_once(rule, posted_date)
    if next_due <= rule.next_due_date:
        return rule
    return replace(rule, next_due_date=next_due)

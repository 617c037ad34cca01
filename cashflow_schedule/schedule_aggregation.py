"""Merging and rollups over projected schedule occurrences.

Everything here works on snapshots handed in by the caller and returns new
values. Converting amounts into the reporting currency is delegated to the
``convert`` callable supplied by the caller (see
``currency_conversion.reporting_converter``).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from cashflow_schedule.currency_conversion import Converter
from cashflow_schedule.logging_setup import get_logger
from cashflow_schedule.occurrence_projection import occurrence_on, occurrences_for_rule
from cashflow_schedule.override_resolution import OverrideIndex, resolve
from cashflow_schedule.schedule_models import (
    AccountInfo,
    OneOffItem,
    Override,
    RecurrenceRule,
    ScheduledOccurrence,
)

logger = get_logger(__name__)

ZERO = Decimal("0")
EXTERNAL_ACCOUNT_LABEL = "External"
HORIZON_GROUPS = ("Overdue", "Today", "Next 7 Days", "Next 30 Days", "Later")
RECENT_PAID_LIMIT = 10


@dataclass(frozen=True)
class ForecastSummary:
    income: Decimal
    expense: Decimal
    net: Decimal


@dataclass(frozen=True)
class AccountSummary:
    income: Decimal
    expense: Decimal
    net: Decimal
    currency: str | None = None


@dataclass(frozen=True)
class DayActivity:
    income_count: int = 0
    expense_count: int = 0
    transfer_count: int = 0


@dataclass(frozen=True)
class BalancePoint:
    date: date
    balance: Decimal


@dataclass(frozen=True)
class BalanceProjection:
    points: List[BalancePoint]
    final_balance: Decimal
    lowest: BalancePoint


def merge_all(
    rules: Iterable[RecurrenceRule],
    overrides: Iterable[Override],
    one_offs: Iterable[OneOffItem],
    window_start: date,
    window_end: date,
    accounts: Mapping[str, AccountInfo] | None = None,
) -> List[ScheduledOccurrence]:
    """Project every rule over the window, apply overrides, add unpaid one-offs.

    The result is sorted by display date; items on the same day keep the
    order in which they were produced (rules first, in input order, then
    one-offs). Overrides are applied before filtering, so an occurrence
    moved into the window from outside it is included. A rule that fails to
    project is logged and left out.
    """
    if window_start > window_end:
        raise ValueError("window_start must be on or before window_end.")
    index = overrides if isinstance(overrides, OverrideIndex) else OverrideIndex(overrides)

    merged: List[ScheduledOccurrence] = []
    for rule in rules:
        try:
            projected = occurrences_for_rule(rule, window_start, window_end, accounts)
            projected += _moved_into_window(
                rule, index, projected, window_start, window_end, accounts
            )
        except (ValueError, ArithmeticError) as exc:
            logger.warning("Skipping recurrence rule %s: %s", rule.id, exc)
            continue
        for occurrence in projected:
            resolved = resolve(occurrence, index)
            if resolved is not None and window_start <= resolved.date <= window_end:
                merged.append(resolved)

    for item in one_offs:
        if item.status != "unpaid" or not window_start <= item.due_date <= window_end:
            continue
        merged.append(one_off_occurrence(item))

    merged.sort(key=lambda occurrence: occurrence.date)
    logger.debug(
        "Merged %d occurrences between %s and %s",
        len(merged),
        window_start.isoformat(),
        window_end.isoformat(),
    )
    return merged


def _moved_into_window(
    rule: RecurrenceRule,
    index: OverrideIndex,
    projected: List[ScheduledOccurrence],
    window_start: date,
    window_end: date,
    accounts: Mapping[str, AccountInfo] | None,
) -> List[ScheduledOccurrence]:
    """Occurrences due outside the window that an override moves into it."""
    seen = {occurrence.original_date for occurrence in projected}
    moved: List[ScheduledOccurrence] = []
    for override in index.for_rule(rule.id):
        if override.is_skipped or override.date is None or override.original_date in seen:
            continue
        if not window_start <= override.date <= window_end:
            continue
        occurrence = occurrence_on(rule, override.original_date, accounts)
        if occurrence is not None:
            moved.append(occurrence)
    moved.sort(key=lambda occurrence: occurrence.original_date)
    return moved


def one_off_occurrence(item: OneOffItem) -> ScheduledOccurrence:
    return ScheduledOccurrence(
        source_id=item.id,
        is_recurring=False,
        date=item.due_date,
        signed_amount=item.amount,
        description=item.description,
        account_label=EXTERNAL_ACCOUNT_LABEL,
        kind=item.kind,
        original_date=item.due_date,
        currency=item.currency,
    )


def forecast_summary(
    occurrences: Iterable[ScheduledOccurrence],
    horizon_days: int,
    today: date,
    convert: Converter,
) -> ForecastSummary:
    """Sum income and expense over ``[today, today + horizon_days]``.

    Transfers move money between the user's own accounts and are left out of
    the global totals.
    """
    if horizon_days < 0:
        raise ValueError("horizon_days must not be negative.")
    horizon_end = today + timedelta(days=horizon_days)
    income = ZERO
    expense = ZERO
    for occurrence in occurrences:
        if not today <= occurrence.date <= horizon_end or occurrence.kind == "transfer":
            continue
        amount = convert(abs(occurrence.signed_amount), occurrence.currency)
        if occurrence.signed_amount > ZERO:
            income += amount
        else:
            expense += amount
    return ForecastSummary(income=income, expense=expense, net=income - expense)


def account_summaries(
    occurrences: Iterable[ScheduledOccurrence],
    horizon_days: int,
    today: date,
    convert: Converter,
    accounts: Mapping[str, AccountInfo] | None = None,
) -> Dict[str, AccountSummary]:
    """Per-account income/expense over the horizon for recurring occurrences.

    A transfer counts as an expense of its source account and as income of
    its destination account.
    """
    accounts = accounts or {}
    horizon_end = today + timedelta(days=horizon_days)
    totals: Dict[str, List[Decimal]] = {}

    def credit(account_id: str, amount: Decimal) -> None:
        totals.setdefault(account_id, [ZERO, ZERO])[0] += amount

    def debit(account_id: str, amount: Decimal) -> None:
        totals.setdefault(account_id, [ZERO, ZERO])[1] += amount

    for occurrence in occurrences:
        if not occurrence.is_recurring or occurrence.source_account_id is None:
            continue
        if not today <= occurrence.date <= horizon_end:
            continue
        amount = convert(abs(occurrence.signed_amount), occurrence.currency)
        if occurrence.kind == "transfer" and occurrence.destination_account_id:
            debit(occurrence.source_account_id, amount)
            credit(occurrence.destination_account_id, amount)
        elif occurrence.signed_amount > ZERO:
            credit(occurrence.source_account_id, amount)
        else:
            debit(occurrence.source_account_id, amount)

    summaries: Dict[str, AccountSummary] = {}
    for account_id, (income, expense) in totals.items():
        info = accounts.get(account_id)
        summaries[account_id] = AccountSummary(
            income=income,
            expense=expense,
            net=income - expense,
            currency=info.currency if info else None,
        )
    return summaries


def bucket_by_day(
    occurrences: Iterable[ScheduledOccurrence],
    range_start: date,
    range_end: date,
) -> Dict[date, DayActivity]:
    """Count activity per day for heatmap rendering.

    Only counts are produced; deciding how a day with both income and
    expense is shown is left to the consumer.
    """
    if range_start > range_end:
        raise ValueError("range_start must be on or before range_end.")
    buckets: Dict[date, DayActivity] = {}
    for occurrence in occurrences:
        if not range_start <= occurrence.date <= range_end:
            continue
        current = buckets.get(occurrence.date, DayActivity())
        if occurrence.kind == "transfer":
            current = replace(current, transfer_count=current.transfer_count + 1)
        elif occurrence.signed_amount > ZERO:
            current = replace(current, income_count=current.income_count + 1)
        else:
            current = replace(current, expense_count=current.expense_count + 1)
        buckets[occurrence.date] = current
    return buckets


def group_by_horizon(
    occurrences: Iterable[ScheduledOccurrence],
    today: date,
) -> Dict[str, List[ScheduledOccurrence]]:
    next_week = today + timedelta(days=7)
    next_month = today + timedelta(days=30)
    groups: Dict[str, List[ScheduledOccurrence]] = {name: [] for name in HORIZON_GROUPS}
    for occurrence in occurrences:
        if occurrence.date < today:
            groups["Overdue"].append(occurrence)
        elif occurrence.date == today:
            groups["Today"].append(occurrence)
        elif occurrence.date <= next_week:
            groups["Next 7 Days"].append(occurrence)
        elif occurrence.date <= next_month:
            groups["Next 30 Days"].append(occurrence)
        else:
            groups["Later"].append(occurrence)
    return groups


def mark_one_off_paid(
    item: OneOffItem,
    account_id: str,
    paid_date: Optional[date] = None,
) -> OneOffItem:
    if item.status == "paid":
        raise ValueError(f"One-off item {item.id} is already paid.")
    return replace(
        item,
        status="paid",
        settled_account_id=account_id,
        settled_date=paid_date or item.due_date,
    )


def recent_paid(
    one_offs: Iterable[OneOffItem],
    limit: int = RECENT_PAID_LIMIT,
) -> List[OneOffItem]:
    paid = [item for item in one_offs if item.status == "paid"]
    paid.sort(key=lambda item: item.settled_date or item.due_date, reverse=True)
    return paid[:limit]


def project_balance(
    opening_balance: Decimal,
    occurrences: Iterable[ScheduledOccurrence],
    start: date,
    end: date,
    convert: Converter,
) -> BalanceProjection:
    """Daily running balance from ``start`` to ``end`` inclusive.

    Transfers are internal and do not change the combined balance.
    """
    if start > end:
        raise ValueError("start must be on or before end.")
    daily_change: Dict[date, Decimal] = {}
    for occurrence in occurrences:
        if occurrence.kind == "transfer" or not start <= occurrence.date <= end:
            continue
        magnitude = convert(abs(occurrence.signed_amount), occurrence.currency)
        change = magnitude if occurrence.signed_amount > ZERO else -magnitude
        daily_change[occurrence.date] = daily_change.get(occurrence.date, ZERO) + change

    points: List[BalancePoint] = []
    balance = opening_balance
    lowest = BalancePoint(date=start, balance=opening_balance)
    current = start
    while current <= end:
        balance += daily_change.get(current, ZERO)
        point = BalancePoint(date=current, balance=balance)
        points.append(point)
        if balance < lowest.balance:
            lowest = point
        current += timedelta(days=1)
    return BalanceProjection(points=points, final_balance=balance, lowest=lowest)

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from cashflow_schedule.config import settings
from cashflow_schedule.currency_conversion import normalize_currency
from cashflow_schedule.date_math import normalize_weekend_policy

SUPPORTED_FREQUENCIES = {"daily", "weekly", "monthly", "yearly"}
SUPPORTED_KINDS = {"income", "expense", "transfer"}
ONE_OFF_STATUSES = {"unpaid", "paid"}
ZERO = Decimal("0")


class InvalidRecurrenceRule(ValueError):
    """Raised when a recurrence rule cannot produce a well-formed schedule."""


@dataclass(frozen=True)
class AccountInfo:
    label: str
    currency: str | None = None


@dataclass(frozen=True)
class RecurrenceRule:
    """A repeating scheduled cash flow.

    Construction validates and normalizes every field; an invalid rule never
    exists. ``next_due_date`` defaults to the first due date derived from
    ``start_date`` and is only moved forward by the projection helpers, which
    return new rule values instead of mutating this one.
    """

    id: str
    source_account_id: str
    kind: str
    amount: Decimal
    frequency: str
    start_date: date
    interval: int = 1
    destination_account_id: str | None = None
    category: str | None = None
    description: str = ""
    currency: str | None = None
    end_date: date | None = None
    day_of_month_anchor: int | None = None
    weekend_policy: str = "on"
    next_due_date: date | None = None

    def __post_init__(self) -> None:
        # Late import: the advancer only needs this module for type hints.
        from cashflow_schedule.recurrence_advancer import first_due_date

        kind = _validate_kind(self.kind)
        frequency = _validate_frequency(self.frequency)
        amount = _coerce_amount(self.amount)
        if amount <= ZERO:
            raise InvalidRecurrenceRule("Recurring amount must be greater than zero.")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRecurrenceRule("Interval must be a whole number.")
        if self.interval < 1:
            raise InvalidRecurrenceRule("Interval must be at least 1.")
        if self.end_date is not None and self.start_date > self.end_date:
            raise InvalidRecurrenceRule("start_date must be on or before end_date.")
        anchor = self.day_of_month_anchor
        if anchor is not None:
            if not 1 <= anchor <= 31:
                raise InvalidRecurrenceRule("day_of_month_anchor must be between 1 and 31.")
            if frequency not in {"monthly", "yearly"}:
                anchor = None
        try:
            weekend_policy = normalize_weekend_policy(self.weekend_policy)
            currency = normalize_currency(self.currency or settings.reporting_currency)
        except ValueError as exc:
            raise InvalidRecurrenceRule(str(exc)) from exc

        category = self.category.strip() if self.category else None
        destination = self.destination_account_id
        if kind == "transfer":
            if not destination:
                raise InvalidRecurrenceRule("Transfers require a destination account.")
            if destination == self.source_account_id:
                raise InvalidRecurrenceRule("Transfers require two different accounts.")
            category = None
        else:
            if not category:
                raise InvalidRecurrenceRule("Income and expense rules require a category.")
            destination = None

        next_due = self.next_due_date
        if next_due is None:
            next_due = first_due_date(self.start_date, frequency, anchor)
        elif next_due < self.start_date:
            raise InvalidRecurrenceRule("next_due_date cannot precede start_date.")

        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "frequency", frequency)
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "interval", 1 if frequency == "daily" else self.interval)
        object.__setattr__(self, "day_of_month_anchor", anchor)
        object.__setattr__(self, "weekend_policy", weekend_policy)
        object.__setattr__(self, "currency", currency)
        object.__setattr__(self, "category", category)
        object.__setattr__(self, "destination_account_id", destination)
        object.__setattr__(self, "description", (self.description or "").strip())
        object.__setattr__(self, "next_due_date", next_due)

    @property
    def anchor_day(self) -> int:
        return self.day_of_month_anchor or self.start_date.day

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.kind == "expense" else self.amount


@dataclass(frozen=True)
class Override:
    rule_id: str
    original_date: date
    is_skipped: bool = False
    date: date | None = None
    amount: Decimal | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if self.amount is not None:
            object.__setattr__(self, "amount", _coerce_amount(self.amount))

    @property
    def key(self) -> tuple[str, date]:
        return (self.rule_id, self.original_date)


@dataclass(frozen=True)
class OneOffItem:
    id: str
    description: str
    amount: Decimal
    due_date: date
    status: str = "unpaid"
    currency: str | None = None
    settled_account_id: str | None = None
    settled_date: date | None = None

    def __post_init__(self) -> None:
        amount = _coerce_amount(self.amount)
        if amount == ZERO:
            raise ValueError("One-off amount must be non-zero.")
        status = self.status.strip().lower()
        if status not in ONE_OFF_STATUSES:
            raise ValueError("One-off status must be unpaid or paid.")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "status", status)
        object.__setattr__(
            self, "currency", normalize_currency(self.currency or settings.reporting_currency)
        )

    @property
    def kind(self) -> str:
        return "deposit" if self.amount > ZERO else "payment"


@dataclass(frozen=True)
class ScheduledOccurrence:
    source_id: str
    is_recurring: bool
    date: date
    signed_amount: Decimal
    description: str
    account_label: str
    kind: str
    original_date: date
    currency: str
    is_override: bool = False
    source_account_id: str | None = None
    destination_account_id: str | None = None

    @property
    def occurrence_id(self) -> str:
        if not self.is_recurring:
            return self.source_id
        prefix = "override-" if self.is_override else ""
        return f"{prefix}{self.source_id}-{self.original_date.isoformat()}"


def _validate_frequency(frequency: str) -> str:
    normalized = "".join(ch for ch in frequency.strip().lower() if ch.isalnum())
    if normalized not in SUPPORTED_FREQUENCIES:
        raise InvalidRecurrenceRule(
            "Only daily, weekly, monthly, or yearly schedules are supported."
        )
    return normalized


def _validate_kind(kind: str) -> str:
    normalized = kind.strip().lower()
    if normalized not in SUPPORTED_KINDS:
        raise InvalidRecurrenceRule("Only income, expense, or transfer schedules are supported.")
    return normalized


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))

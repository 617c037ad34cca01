from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Iterator, List, Mapping, Optional

from cashflow_schedule.date_math import MAX_WEEKEND_SHIFT, apply_weekend_policy
from cashflow_schedule.recurrence_advancer import advance_once
from cashflow_schedule.schedule_models import (
    AccountInfo,
    RecurrenceRule,
    ScheduledOccurrence,
)

UNKNOWN_ACCOUNT_LABEL = "Unknown account"


@dataclass(frozen=True)
class ProjectedDate:
    original_date: date
    display_date: date


def is_exhausted(rule: RecurrenceRule) -> bool:
    return rule.end_date is not None and rule.next_due_date > rule.end_date


def fast_forward(rule: RecurrenceRule, reference_date: date) -> RecurrenceRule:
    """Return ``rule`` with its cursor moved to the first occurrence on or after
    ``reference_date``.

    Intermediate occurrences are skipped, not materialized. If stepping runs
    past ``end_date`` the returned rule is exhausted. The input rule is never
    modified; persisting the new cursor is up to the caller.
    """
    current = rule.next_due_date
    while current < reference_date:
        if rule.end_date is not None and current > rule.end_date:
            break
        current = advance_once(rule, current)
    if current == rule.next_due_date:
        return rule
    return replace(rule, next_due_date=current)


def project_window(
    rule: RecurrenceRule,
    window_start: date,
    window_end: date,
) -> Iterator[ProjectedDate]:
    """Yield the rule's occurrences whose display date falls in the window.

    Stepping starts at the cursor, even when it lies before ``window_start``,
    so the phase of weekly/interval rules is preserved. Each item carries the
    raw date (override key, stepping basis) and the weekend-adjusted display
    date. Neither date may pass ``end_date``.
    """
    if window_start > window_end:
        raise ValueError("window_start must be on or before window_end.")
    # A raw date just past the window can be pulled back into it.
    limit = window_end + MAX_WEEKEND_SHIFT
    if rule.end_date is not None and rule.end_date < limit:
        limit = rule.end_date

    current = rule.next_due_date
    while current <= limit:
        display = apply_weekend_policy(current, rule.weekend_policy)
        if window_start <= display <= window_end and _before_end(rule, display):
            yield ProjectedDate(original_date=current, display_date=display)
        current = advance_once(rule, current)


def project_date(rule: RecurrenceRule, original_date: date) -> Optional[ProjectedDate]:
    """Return the occurrence on raw date ``original_date``, if the rule has one."""
    current = rule.next_due_date
    while current < original_date:
        current = advance_once(rule, current)
    if current != original_date or not _before_end(rule, current):
        return None
    display = apply_weekend_policy(current, rule.weekend_policy)
    if not _before_end(rule, display):
        return None
    return ProjectedDate(original_date=current, display_date=display)


def occurrences_for_rule(
    rule: RecurrenceRule,
    window_start: date,
    window_end: date,
    accounts: Mapping[str, AccountInfo] | None = None,
) -> List[ScheduledOccurrence]:
    label = _account_label(rule, accounts or {})
    return [
        _build_occurrence(rule, projected, label)
        for projected in project_window(rule, window_start, window_end)
    ]


def occurrence_on(
    rule: RecurrenceRule,
    original_date: date,
    accounts: Mapping[str, AccountInfo] | None = None,
) -> Optional[ScheduledOccurrence]:
    projected = project_date(rule, original_date)
    if projected is None:
        return None
    return _build_occurrence(rule, projected, _account_label(rule, accounts or {}))


def _before_end(rule: RecurrenceRule, value: date) -> bool:
    return rule.end_date is None or value <= rule.end_date


def _build_occurrence(
    rule: RecurrenceRule,
    projected: ProjectedDate,
    label: str,
) -> ScheduledOccurrence:
    return ScheduledOccurrence(
        source_id=rule.id,
        is_recurring=True,
        date=projected.display_date,
        signed_amount=rule.signed_amount,
        description=rule.description,
        account_label=label,
        kind=rule.kind,
        original_date=projected.original_date,
        currency=rule.currency,
        source_account_id=rule.source_account_id,
        destination_account_id=rule.destination_account_id,
    )


def _account_label(rule: RecurrenceRule, accounts: Mapping[str, AccountInfo]) -> str:
    source = _label_for(rule.source_account_id, accounts)
    if rule.kind == "transfer":
        destination = _label_for(rule.destination_account_id, accounts)
        return f"{source} → {destination}"
    return source


def _label_for(account_id: str | None, accounts: Mapping[str, AccountInfo]) -> str:
    info = accounts.get(account_id) if account_id is not None else None
    return info.label if info else UNKNOWN_ACCOUNT_LABEL

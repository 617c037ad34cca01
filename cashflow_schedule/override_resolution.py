from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from cashflow_schedule.schedule_models import Override, ScheduledOccurrence

OverrideKey = Tuple[str, date]


class OverrideIndex(Mapping[OverrideKey, Override]):
    """Read-only lookup of overrides keyed by ``(rule_id, original_date)``."""

    def __init__(self, overrides: Iterable[Override] = ()) -> None:
        self._by_key: Dict[OverrideKey, Override] = {}
        for override in overrides:
            if override.key in self._by_key:
                raise ValueError(
                    f"Duplicate override for rule {override.rule_id} on "
                    f"{override.original_date.isoformat()}."
                )
            self._by_key[override.key] = override

    def __getitem__(self, key: OverrideKey) -> Override:
        return self._by_key[key]

    def __iter__(self):
        return iter(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)

    def for_occurrence(self, occurrence: ScheduledOccurrence) -> Optional[Override]:
        if not occurrence.is_recurring:
            return None
        return self._by_key.get((occurrence.source_id, occurrence.original_date))

    def for_rule(self, rule_id: str) -> List[Override]:
        return [override for override in self._by_key.values() if override.rule_id == rule_id]


def resolve(
    occurrence: ScheduledOccurrence,
    overrides: OverrideIndex | Iterable[Override],
) -> Optional[ScheduledOccurrence]:
    """Apply the stored override for ``occurrence``, if any.

    Returns ``None`` for a skipped occurrence. Fields present on the override
    replace the computed values; absent fields keep them. A missing override
    is not an error: the occurrence passes through unchanged.
    """
    index = overrides if isinstance(overrides, OverrideIndex) else OverrideIndex(overrides)
    override = index.for_occurrence(occurrence)
    if override is None:
        return occurrence
    if override.is_skipped:
        return None
    return replace(
        occurrence,
        date=override.date if override.date is not None else occurrence.date,
        signed_amount=(
            override.amount if override.amount is not None else occurrence.signed_amount
        ),
        description=override.description or occurrence.description,
        is_override=True,
    )


def save_override(overrides: Iterable[Override], override: Override) -> List[Override]:
    """Insert or replace the override with the same key."""
    saved = [existing for existing in overrides if existing.key != override.key]
    saved.append(override)
    return saved


def revert_override(
    overrides: Iterable[Override],
    rule_id: str,
    original_date: date,
) -> List[Override]:
    """Drop the override so the occurrence goes back to rule-computed values."""
    return [
        existing
        for existing in overrides
        if existing.key != (rule_id, original_date)
    ]


def toggle_skip(
    overrides: Iterable[Override],
    occurrence: ScheduledOccurrence,
) -> Tuple[List[Override], Override]:
    """Flip the skip flag for one occurrence.

    Amend values already stored on the override are kept as they are, so
    un-skipping brings back the earlier edits rather than the rule defaults.
    A first-time skip records the occurrence's current values.
    """
    if not occurrence.is_recurring:
        raise ValueError("Only recurring occurrences can be skipped.")
    overrides = list(overrides)
    existing = OverrideIndex(overrides).for_occurrence(occurrence)
    if existing is not None:
        updated = replace(existing, is_skipped=not existing.is_skipped)
    else:
        updated = Override(
            rule_id=occurrence.source_id,
            original_date=occurrence.original_date,
            is_skipped=True,
            date=occurrence.date,
            amount=occurrence.signed_amount,
            description=occurrence.description,
        )
    return save_override(overrides, updated), updated

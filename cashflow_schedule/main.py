import datetime
from datetime import date, timedelta
from decimal import Decimal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from cashflow_schedule.config import settings
from cashflow_schedule.currency_conversion import reporting_converter
from cashflow_schedule.date_math import add_months
from cashflow_schedule.logging_setup import configure_logging, get_logger
from cashflow_schedule.occurrence_projection import fast_forward, is_exhausted
from cashflow_schedule.override_resolution import toggle_skip
from cashflow_schedule.recurrence_advancer import advance_after_posting
from cashflow_schedule.schedule_aggregation import (
    account_summaries,
    bucket_by_day,
    forecast_summary,
    merge_all,
)
from cashflow_schedule.schedule_models import (
    AccountInfo,
    OneOffItem,
    Override,
    RecurrenceRule,
    ScheduledOccurrence,
)

logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def init_logging() -> None:
    configure_logging()


class RecurrenceRulePayload(BaseModel):
    id: str
    source_account_id: str
    destination_account_id: str | None = None
    kind: str
    amount: Decimal
    category: str | None = None
    description: str = ""
    currency: str | None = None
    frequency: str
    interval: int = 1
    start_date: date
    end_date: date | None = None
    day_of_month_anchor: int | None = None
    weekend_policy: str = "on"
    next_due_date: date | None = None


class OverridePayload(BaseModel):
    rule_id: str
    original_date: date
    is_skipped: bool = False
    # Qualified so the field name does not shadow the type.
    date: datetime.date | None = None
    amount: Decimal | None = None
    description: str | None = None


class OneOffPayload(BaseModel):
    id: str
    description: str
    amount: Decimal
    due_date: date
    status: str = "unpaid"
    currency: str | None = None
    settled_account_id: str | None = None
    settled_date: date | None = None


class AccountPayload(BaseModel):
    label: str
    currency: str | None = None


class ScheduleSnapshotPayload(BaseModel):
    rules: list[RecurrenceRulePayload] = Field(default_factory=list)
    overrides: list[OverridePayload] = Field(default_factory=list)
    one_offs: list[OneOffPayload] = Field(default_factory=list)
    accounts: dict[str, AccountPayload] = Field(default_factory=dict)


class OccurrenceWindowPayload(ScheduleSnapshotPayload):
    window_start: date | None = None
    window_end: date | None = None


class ForecastPayload(ScheduleSnapshotPayload):
    today: date | None = None
    horizon_days: int | None = None
    reporting_currency: str | None = None


class HeatmapPayload(ScheduleSnapshotPayload):
    range_start: date | None = None
    range_end: date | None = None


class FastForwardPayload(BaseModel):
    rule: RecurrenceRulePayload
    reference_date: date | None = None


class PostOccurrencePayload(BaseModel):
    rule: RecurrenceRulePayload
    posted_date: date


class ToggleSkipPayload(BaseModel):
    overrides: list[OverridePayload] = Field(default_factory=list)
    rule_id: str
    original_date: date
    date: date
    amount: Decimal
    description: str = ""


class OccurrenceEntry(BaseModel):
    id: str
    source_id: str
    is_recurring: bool
    date: date
    original_date: date
    amount: Decimal
    currency: str
    description: str
    account_label: str
    kind: str
    is_override: bool


class ForecastSummaryResponse(BaseModel):
    income: Decimal
    expense: Decimal
    net: Decimal


class AccountSummaryResponse(BaseModel):
    income: Decimal
    expense: Decimal
    net: Decimal
    currency: str | None = None


class ForecastResponse(BaseModel):
    reporting_currency: str
    start_date: date
    end_date: date
    summary: ForecastSummaryResponse
    accounts: dict[str, AccountSummaryResponse]


class HeatmapDayResponse(BaseModel):
    date: date
    income_count: int
    expense_count: int
    transfer_count: int


class RuleCursorResponse(BaseModel):
    rule: RecurrenceRulePayload
    exhausted: bool


class ToggleSkipResponse(BaseModel):
    override: OverridePayload
    overrides: list[OverridePayload]


def _rule_from_payload(payload: RecurrenceRulePayload) -> RecurrenceRule:
    return RecurrenceRule(**payload.model_dump())


def _rule_to_payload(rule: RecurrenceRule) -> RecurrenceRulePayload:
    return RecurrenceRulePayload(
        id=rule.id,
        source_account_id=rule.source_account_id,
        destination_account_id=rule.destination_account_id,
        kind=rule.kind,
        amount=rule.amount,
        category=rule.category,
        description=rule.description,
        currency=rule.currency,
        frequency=rule.frequency,
        interval=rule.interval,
        start_date=rule.start_date,
        end_date=rule.end_date,
        day_of_month_anchor=rule.day_of_month_anchor,
        weekend_policy=rule.weekend_policy,
        next_due_date=rule.next_due_date,
    )


def _override_to_payload(override: Override) -> OverridePayload:
    return OverridePayload(
        rule_id=override.rule_id,
        original_date=override.original_date,
        is_skipped=override.is_skipped,
        date=override.date,
        amount=override.amount,
        description=override.description,
    )


def _occurrence_entry(occurrence: ScheduledOccurrence) -> OccurrenceEntry:
    return OccurrenceEntry(
        id=occurrence.occurrence_id,
        source_id=occurrence.source_id,
        is_recurring=occurrence.is_recurring,
        date=occurrence.date,
        original_date=occurrence.original_date,
        amount=occurrence.signed_amount,
        currency=occurrence.currency,
        description=occurrence.description,
        account_label=occurrence.account_label,
        kind=occurrence.kind,
        is_override=occurrence.is_override,
    )


def _merge_snapshot(
    payload: ScheduleSnapshotPayload,
    window_start: date,
    window_end: date,
) -> tuple[list[ScheduledOccurrence], dict[str, AccountInfo]]:
    accounts = {
        account_id: AccountInfo(label=account.label, currency=account.currency)
        for account_id, account in payload.accounts.items()
    }
    try:
        rules = [_rule_from_payload(rule) for rule in payload.rules]
        overrides = [Override(**override.model_dump()) for override in payload.overrides]
        one_offs = [OneOffItem(**item.model_dump()) for item in payload.one_offs]
        occurrences = merge_all(rules, overrides, one_offs, window_start, window_end, accounts)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return occurrences, accounts


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/schedule/occurrences", response_model=list[OccurrenceEntry])
def schedule_occurrences(payload: OccurrenceWindowPayload) -> list[OccurrenceEntry]:
    window_start = payload.window_start or date.today()
    window_end = payload.window_end or add_months(
        window_start, 12 * settings.lookahead_years, window_start.day
    )
    if window_start > window_end:
        raise HTTPException(status_code=400, detail="Window start must be on or before window end.")
    occurrences, _ = _merge_snapshot(payload, window_start, window_end)
    return [_occurrence_entry(occurrence) for occurrence in occurrences]


@app.post("/schedule/forecast", response_model=ForecastResponse)
def schedule_forecast(payload: ForecastPayload) -> ForecastResponse:
    today = payload.today or date.today()
    horizon_days = payload.horizon_days
    if horizon_days is None:
        horizon_days = settings.forecast_horizon_days
    if horizon_days < 0:
        raise HTTPException(status_code=400, detail="Horizon must not be negative.")
    end_date = today + timedelta(days=horizon_days)
    try:
        convert = reporting_converter(payload.reporting_currency or settings.reporting_currency)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    occurrences, accounts = _merge_snapshot(payload, today, end_date)
    try:
        summary = forecast_summary(occurrences, horizon_days, today, convert)
        per_account = account_summaries(occurrences, horizon_days, today, convert, accounts)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return ForecastResponse(
        reporting_currency=payload.reporting_currency or settings.reporting_currency,
        start_date=today,
        end_date=end_date,
        summary=ForecastSummaryResponse(
            income=summary.income, expense=summary.expense, net=summary.net
        ),
        accounts={
            account_id: AccountSummaryResponse(
                income=account.income,
                expense=account.expense,
                net=account.net,
                currency=account.currency,
            )
            for account_id, account in per_account.items()
        },
    )


@app.post("/schedule/heatmap", response_model=list[HeatmapDayResponse])
def schedule_heatmap(payload: HeatmapPayload) -> list[HeatmapDayResponse]:
    today = date.today()
    range_start = payload.range_start or today.replace(day=1)
    range_end = payload.range_end or _months_later(range_start, settings.heatmap_months)
    if range_start > range_end:
        raise HTTPException(status_code=400, detail="Range start must be on or before range end.")

    occurrences, _ = _merge_snapshot(payload, range_start, range_end)
    buckets = bucket_by_day(occurrences, range_start, range_end)
    return [
        HeatmapDayResponse(
            date=day,
            income_count=activity.income_count,
            expense_count=activity.expense_count,
            transfer_count=activity.transfer_count,
        )
        for day, activity in sorted(buckets.items())
    ]


@app.post("/recurring/fast-forward", response_model=RuleCursorResponse)
def recurring_fast_forward(payload: FastForwardPayload) -> RuleCursorResponse:
    try:
        rule = _rule_from_payload(payload.rule)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    advanced = fast_forward(rule, payload.reference_date or date.today())
    logger.info(
        "Fast-forwarded rule %s from %s to %s",
        rule.id,
        rule.next_due_date.isoformat(),
        advanced.next_due_date.isoformat(),
    )
    return RuleCursorResponse(rule=_rule_to_payload(advanced), exhausted=is_exhausted(advanced))


@app.post("/recurring/post-occurrence", response_model=RuleCursorResponse)
def recurring_post_occurrence(payload: PostOccurrencePayload) -> RuleCursorResponse:
    try:
        rule = _rule_from_payload(payload.rule)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    advanced = advance_after_posting(rule, payload.posted_date)
    return RuleCursorResponse(rule=_rule_to_payload(advanced), exhausted=is_exhausted(advanced))


@app.post("/overrides/toggle-skip", response_model=ToggleSkipResponse)
def overrides_toggle_skip(payload: ToggleSkipPayload) -> ToggleSkipResponse:
    occurrence = ScheduledOccurrence(
        source_id=payload.rule_id,
        is_recurring=True,
        date=payload.date,
        signed_amount=payload.amount,
        description=payload.description,
        account_label="",
        kind="",
        original_date=payload.original_date,
        currency=settings.reporting_currency,
    )
    try:
        overrides = [Override(**override.model_dump()) for override in payload.overrides]
        saved, updated = toggle_skip(overrides, occurrence)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ToggleSkipResponse(
        override=_override_to_payload(updated),
        overrides=[_override_to_payload(override) for override in saved],
    )


def _months_later(start: date, months: int) -> date:
    # Last day of the month before ``start`` shifted by ``months``.
    total_month = start.month - 1 + months
    first_of_next = date(start.year + total_month // 12, total_month % 12 + 1, 1)
    return first_of_next - timedelta(days=1)

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_REPORTING_CURRENCY = "EUR"
DEFAULT_FORECAST_HORIZON_DAYS = 30
DEFAULT_LOOKAHEAD_YEARS = 2
DEFAULT_HEATMAP_MONTHS = 12


@dataclass(frozen=True)
class Settings:
    reporting_currency: str = DEFAULT_REPORTING_CURRENCY
    forecast_horizon_days: int = DEFAULT_FORECAST_HORIZON_DAYS
    lookahead_years: int = DEFAULT_LOOKAHEAD_YEARS
    heatmap_months: int = DEFAULT_HEATMAP_MONTHS
    frontend_origin: str = "http://localhost:3000"
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        reporting_currency=_currency_setting(
            env.get("CASHFLOW_REPORTING_CURRENCY"), DEFAULT_REPORTING_CURRENCY
        ),
        forecast_horizon_days=_positive_int_setting(
            env.get("CASHFLOW_FORECAST_HORIZON_DAYS"), DEFAULT_FORECAST_HORIZON_DAYS
        ),
        lookahead_years=_positive_int_setting(
            env.get("CASHFLOW_LOOKAHEAD_YEARS"), DEFAULT_LOOKAHEAD_YEARS
        ),
        heatmap_months=_positive_int_setting(
            env.get("CASHFLOW_HEATMAP_MONTHS"), DEFAULT_HEATMAP_MONTHS
        ),
        frontend_origin=env.get("FRONTEND_ORIGIN", "http://localhost:3000"),
        log_level=env.get("CASHFLOW_LOG_LEVEL", "INFO"),
    )


def _currency_setting(raw: str | None, default: str) -> str:
    if not raw:
        return default
    normalized = raw.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        return default
    return normalized


def _positive_int_setting(raw: str | None, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


settings = load_settings()

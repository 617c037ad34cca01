import logging
import unittest

from cashflow_schedule.config import Settings, load_settings
from cashflow_schedule.logging_setup import _parse_level


class LoadSettingsTests(unittest.TestCase):
    def test_defaults_when_environment_is_empty(self) -> None:
        self.assertEqual(load_settings({}), Settings())

    def test_reads_environment(self) -> None:
        loaded = load_settings(
            {
                "CASHFLOW_REPORTING_CURRENCY": " usd ",
                "CASHFLOW_FORECAST_HORIZON_DAYS": "45",
                "CASHFLOW_LOOKAHEAD_YEARS": "3",
                "CASHFLOW_HEATMAP_MONTHS": "6",
                "FRONTEND_ORIGIN": "http://example.test",
                "CASHFLOW_LOG_LEVEL": "debug",
            }
        )

        self.assertEqual(loaded.reporting_currency, "USD")
        self.assertEqual(loaded.forecast_horizon_days, 45)
        self.assertEqual(loaded.lookahead_years, 3)
        self.assertEqual(loaded.heatmap_months, 6)
        self.assertEqual(loaded.frontend_origin, "http://example.test")
        self.assertEqual(loaded.log_level, "debug")

    def test_invalid_values_fall_back_to_defaults(self) -> None:
        loaded = load_settings(
            {
                "CASHFLOW_REPORTING_CURRENCY": "dollars",
                "CASHFLOW_FORECAST_HORIZON_DAYS": "soon",
                "CASHFLOW_HEATMAP_MONTHS": "-2",
            }
        )

        self.assertEqual(loaded.reporting_currency, "EUR")
        self.assertEqual(loaded.forecast_horizon_days, 30)
        self.assertEqual(loaded.heatmap_months, 12)


class LogLevelTests(unittest.TestCase):
    def test_parses_names_numbers_and_unknowns(self) -> None:
        self.assertEqual(_parse_level("warning"), logging.WARNING)
        self.assertEqual(_parse_level(" 10 "), 10)
        self.assertEqual(_parse_level(logging.ERROR), logging.ERROR)
        self.assertEqual(_parse_level("chatty"), logging.INFO)


if __name__ == "__main__":
    unittest.main()

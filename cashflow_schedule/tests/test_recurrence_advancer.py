import unittest
from datetime import date, timedelta
from decimal import Decimal

from cashflow_schedule.recurrence_advancer import (
    advance_after_posting,
    advance_once,
    first_due_date,
)
from cashflow_schedule.schedule_models import RecurrenceRule


def make_rule(**fields) -> RecurrenceRule:
    values = dict(
        id="rule",
        source_account_id="checking",
        kind="expense",
        amount=Decimal("50"),
        category="Bills",
        frequency="monthly",
        start_date=date(2024, 1, 1),
        currency="EUR",
    )
    values.update(fields)
    return RecurrenceRule(**values)


class AdvanceOnceTests(unittest.TestCase):
    def test_daily_steps_one_day(self) -> None:
        rule = make_rule(frequency="daily")

        self.assertEqual(advance_once(rule, date(2024, 2, 28)), date(2024, 2, 29))
        self.assertEqual(advance_once(rule, date(2024, 12, 31)), date(2025, 1, 1))

    def test_weekly_uses_interval(self) -> None:
        rule = make_rule(frequency="weekly", interval=2)

        first = rule.next_due_date
        second = advance_once(rule, first)
        third = advance_once(rule, second)

        self.assertEqual(
            [first, second, third],
            [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)],
        )

    def test_monthly_anchor_31_survives_february(self) -> None:
        rule = make_rule(start_date=date(2023, 1, 31), day_of_month_anchor=31)

        dates = [rule.next_due_date]
        for _ in range(3):
            dates.append(advance_once(rule, dates[-1]))

        self.assertEqual(
            dates,
            [date(2023, 1, 31), date(2023, 2, 28), date(2023, 3, 31), date(2023, 4, 30)],
        )

    def test_monthly_anchor_clamps_to_leap_day(self) -> None:
        rule = make_rule(start_date=date(2024, 1, 31))

        february = advance_once(rule, date(2024, 1, 31))
        march = advance_once(rule, february)

        self.assertEqual(february, date(2024, 2, 29))
        self.assertEqual(march, date(2024, 3, 31))

    def test_monthly_interval_crosses_year(self) -> None:
        rule = make_rule(start_date=date(2024, 11, 15), interval=3)

        self.assertEqual(advance_once(rule, date(2024, 11, 15)), date(2025, 2, 15))

    def test_yearly_keeps_start_month_and_restores_leap_day(self) -> None:
        rule = make_rule(frequency="yearly", start_date=date(2024, 2, 29))

        dates = [rule.next_due_date]
        for _ in range(4):
            dates.append(advance_once(rule, dates[-1]))

        self.assertEqual(
            dates,
            [
                date(2024, 2, 29),
                date(2025, 2, 28),
                date(2026, 2, 28),
                date(2027, 2, 28),
                date(2028, 2, 29),
            ],
        )

    def test_yearly_interval(self) -> None:
        rule = make_rule(frequency="yearly", start_date=date(2024, 7, 4), interval=2)

        self.assertEqual(advance_once(rule, date(2024, 7, 4)), date(2026, 7, 4))

    def test_result_is_always_strictly_later(self) -> None:
        rules = [
            make_rule(frequency="daily"),
            make_rule(frequency="weekly", interval=3),
            make_rule(frequency="monthly", start_date=date(2024, 1, 31)),
            make_rule(frequency="monthly", day_of_month_anchor=1, interval=5),
            make_rule(frequency="yearly", start_date=date(2024, 2, 29)),
            make_rule(frequency="yearly", start_date=date(2024, 12, 31)),
        ]
        day = date(2024, 1, 1)
        while day <= date(2025, 12, 31):
            for rule in rules:
                self.assertGreater(advance_once(rule, day), day)
            day += timedelta(days=11)


class FirstDueDateTests(unittest.TestCase):
    def test_without_anchor_uses_start_date(self) -> None:
        self.assertEqual(first_due_date(date(2024, 1, 20), "monthly", None), date(2024, 1, 20))
        self.assertEqual(first_due_date(date(2024, 1, 20), "weekly", 5), date(2024, 1, 20))

    def test_anchor_later_in_start_month(self) -> None:
        self.assertEqual(first_due_date(date(2024, 1, 3), "monthly", 5), date(2024, 1, 5))

    def test_anchor_already_passed_moves_one_period(self) -> None:
        self.assertEqual(first_due_date(date(2024, 1, 20), "monthly", 5), date(2024, 2, 5))
        self.assertEqual(first_due_date(date(2024, 3, 10), "yearly", 5), date(2025, 3, 5))

    def test_anchor_is_clamped(self) -> None:
        self.assertEqual(first_due_date(date(2024, 2, 10), "monthly", 31), date(2024, 2, 29))


class AdvanceAfterPostingTests(unittest.TestCase):
    def test_moves_cursor_past_posted_date(self) -> None:
        rule = make_rule(start_date=date(2024, 1, 15))

        advanced = advance_after_posting(rule, date(2024, 1, 17))

        self.assertEqual(advanced.next_due_date, date(2024, 2, 15))
        self.assertEqual(rule.next_due_date, date(2024, 1, 15))

    def test_never_moves_cursor_backwards(self) -> None:
        rule = make_rule(start_date=date(2024, 1, 15), next_due_date=date(2024, 3, 15))

        advanced = advance_after_posting(rule, date(2024, 1, 15))

        self.assertIs(advanced, rule)


if __name__ == "__main__":
    unittest.main()

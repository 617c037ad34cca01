import unittest
from dataclasses import replace
from datetime import date
from decimal import Decimal

from cashflow_schedule.schedule_models import (
    InvalidRecurrenceRule,
    OneOffItem,
    Override,
    RecurrenceRule,
)


def make_rule(**fields) -> RecurrenceRule:
    values = dict(
        id="rent",
        source_account_id="checking",
        kind="expense",
        amount=Decimal("1200"),
        category="Housing",
        frequency="monthly",
        start_date=date(2024, 1, 1),
        currency="EUR",
    )
    values.update(fields)
    return RecurrenceRule(**values)


class RecurrenceRuleTests(unittest.TestCase):
    def test_normalizes_strings_and_defaults_cursor(self) -> None:
        rule = make_rule(kind=" Expense ", frequency="Monthly", weekend_policy="AFTER")

        self.assertEqual(rule.kind, "expense")
        self.assertEqual(rule.frequency, "monthly")
        self.assertEqual(rule.weekend_policy, "after")
        self.assertEqual(rule.next_due_date, date(2024, 1, 1))
        self.assertEqual(rule.anchor_day, 1)

    def test_amount_is_coerced_and_signed_by_kind(self) -> None:
        expense = make_rule(amount="45.50")
        income = make_rule(kind="income", category="Salary", amount=3000)

        self.assertEqual(expense.amount, Decimal("45.50"))
        self.assertEqual(expense.signed_amount, Decimal("-45.50"))
        self.assertEqual(income.signed_amount, Decimal("3000"))

    def test_rejects_invalid_interval(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(interval=0)
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(interval=-2)

    def test_rejects_unknown_frequency(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(frequency="fortnightly")

    def test_rejects_reversed_date_range(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(start_date=date(2024, 5, 1), end_date=date(2024, 4, 30))

    def test_rejects_non_positive_amount(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(amount=Decimal("0"))
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(amount=Decimal("-10"))

    def test_rejects_anchor_out_of_range(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(day_of_month_anchor=32)

    def test_rejects_unknown_weekend_policy(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(weekend_policy="nearest")

    def test_income_and_expense_require_category(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(category=None)

    def test_transfer_requires_distinct_destination_and_drops_category(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(kind="transfer", category=None)
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(kind="transfer", destination_account_id="checking")

        rule = make_rule(kind="transfer", destination_account_id="savings")
        self.assertIsNone(rule.category)
        self.assertEqual(rule.destination_account_id, "savings")

    def test_daily_interval_is_fixed_to_one(self) -> None:
        rule = make_rule(frequency="daily", interval=3)

        self.assertEqual(rule.interval, 1)

    def test_anchor_ignored_for_weekly_rules(self) -> None:
        rule = make_rule(frequency="weekly", day_of_month_anchor=15)

        self.assertIsNone(rule.day_of_month_anchor)

    def test_cursor_cannot_precede_start(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(next_due_date=date(2023, 12, 1))

    def test_replace_revalidates(self) -> None:
        rule = make_rule()

        with self.assertRaises(InvalidRecurrenceRule):
            replace(rule, interval=0)

    def test_invalid_currency_is_a_configuration_error(self) -> None:
        with self.assertRaises(InvalidRecurrenceRule):
            make_rule(currency="EURO")


class OverrideAndOneOffTests(unittest.TestCase):
    def test_override_key_and_amount_coercion(self) -> None:
        override = Override(
            rule_id="rent",
            original_date=date(2024, 3, 1),
            amount="-1100",
        )

        self.assertEqual(override.key, ("rent", date(2024, 3, 1)))
        self.assertEqual(override.amount, Decimal("-1100"))
        self.assertFalse(override.is_skipped)

    def test_one_off_kind_follows_sign(self) -> None:
        bill = OneOffItem(
            id="bill-1",
            description="Car insurance",
            amount=Decimal("-320"),
            due_date=date(2024, 3, 5),
            currency="EUR",
        )
        refund = replace(bill, id="refund-1", amount=Decimal("80"))

        self.assertEqual(bill.kind, "payment")
        self.assertEqual(refund.kind, "deposit")
        self.assertEqual(bill.status, "unpaid")

    def test_one_off_rejects_zero_amount_and_unknown_status(self) -> None:
        with self.assertRaises(ValueError):
            OneOffItem(id="x", description="x", amount=0, due_date=date(2024, 1, 1))
        with self.assertRaises(ValueError):
            OneOffItem(
                id="x",
                description="x",
                amount=10,
                due_date=date(2024, 1, 1),
                status="overdue",
            )


if __name__ == "__main__":
    unittest.main()

import unittest
from datetime import date
from decimal import Decimal

from centsei.entries import MasterEntry
from centsei.materializer import materialize
from centsei.weekly_balances import (
    WeeklyBalance,
    aggregate,
    balances_from_dict,
    balances_to_dict,
    weekly_totals,
)


def salary_and_groceries() -> list[MasterEntry]:
    # 2023-10-01 is a Sunday, so both entries start in the same week.
    return [
        MasterEntry(
            id="salary",
            date=date(2023, 10, 1),
            name="Salary",
            amount=Decimal("2000"),
            type="income",
            recurrence="monthly",
        ),
        MasterEntry(
            id="groceries",
            date=date(2023, 10, 1),
            name="Groceries",
            amount=Decimal("500"),
            type="bill",
            recurrence="weekly",
            category="groceries",
        ),
    ]


class AggregateTests(unittest.TestCase):
    def test_carryover_propagates_week_end(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 10, 1), date(2023, 10, 31))

        balances = aggregate(instances, "carryover")

        self.assertEqual(
            balances,
            {
                "2023-10-01": WeeklyBalance(start=Decimal("0"), end=Decimal("1500")),
                "2023-10-08": WeeklyBalance(start=Decimal("1500"), end=Decimal("1000")),
                "2023-10-15": WeeklyBalance(start=Decimal("1000"), end=Decimal("500")),
                "2023-10-22": WeeklyBalance(start=Decimal("500"), end=Decimal("0")),
                "2023-10-29": WeeklyBalance(start=Decimal("0"), end=Decimal("-500")),
            },
        )

    def test_reset_starts_every_week_from_zero(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 10, 1), date(2023, 10, 31))

        balances = aggregate(instances, "reset")

        self.assertEqual(balances["2023-10-01"], WeeklyBalance(Decimal("0"), Decimal("1500")))
        for key in ("2023-10-08", "2023-10-15", "2023-10-22", "2023-10-29"):
            self.assertEqual(balances[key], WeeklyBalance(Decimal("0"), Decimal("-500")))

    def test_balance_conservation(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 9, 1), date(2024, 3, 31))

        balances = aggregate(instances, "carryover")
        keys = sorted(balances)

        for previous, current in zip(keys, keys[1:]):
            self.assertEqual(balances[current].start, balances[previous].end)
        for key in keys:
            bucket = date.fromisoformat(key)
            income = sum(
                (i.amount for i in instances if i.type == "income" and 0 <= (i.date - bucket).days < 7),
                Decimal("0"),
            )
            bills = sum(
                (i.amount for i in instances if i.type == "bill" and 0 <= (i.date - bucket).days < 7),
                Decimal("0"),
            )
            self.assertEqual(balances[key].end, balances[key].start + income - bills)

    def test_empty_weeks_inside_span_are_kept(self) -> None:
        entries = [
            MasterEntry(id="a", date=date(2024, 1, 1), name="Gift", amount=Decimal("50"), type="income"),
            MasterEntry(id="b", date=date(2024, 1, 20), name="Fees", amount=Decimal("20"), type="bill"),
        ]

        balances = aggregate(materialize(entries, date(2024, 1, 1), date(2024, 1, 31)), "carryover")

        self.assertEqual(list(balances), ["2023-12-31", "2024-01-07", "2024-01-14"])
        self.assertEqual(balances["2024-01-07"], WeeklyBalance(Decimal("50"), Decimal("50")))
        self.assertEqual(balances["2024-01-14"], WeeklyBalance(Decimal("50"), Decimal("30")))

    def test_is_idempotent(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 10, 1), date(2023, 12, 31))

        self.assertEqual(aggregate(instances, "carryover"), aggregate(list(reversed(instances)), "carryover"))

    def test_empty_input(self) -> None:
        self.assertEqual(aggregate([], "carryover"), {})

    def test_unknown_rollover(self) -> None:
        with self.assertRaises(ValueError):
            aggregate([], "monthly")

    def test_snapshot_round_trip(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 10, 1), date(2023, 10, 31))
        balances = aggregate(instances, "carryover")

        self.assertEqual(balances_from_dict(balances_to_dict(balances)), balances)


class WeeklyTotalsTests(unittest.TestCase):
    def test_totals_for_selected_day(self) -> None:
        instances = materialize(salary_and_groceries(), date(2023, 10, 1), date(2023, 10, 31))
        balances = aggregate(instances, "carryover")

        totals = weekly_totals(instances, balances, date(2023, 10, 11))

        self.assertEqual(totals.income, Decimal("0"))
        self.assertEqual(totals.bills, Decimal("500"))
        self.assertEqual(totals.status, Decimal("-500"))
        self.assertEqual(totals.start_of_week_balance, Decimal("1500"))
        self.assertEqual(totals.net, Decimal("1000"))

    def test_totals_outside_span_are_zero(self) -> None:
        totals = weekly_totals([], {}, "2023-10-11")

        self.assertEqual(totals.net, Decimal("0"))
        self.assertEqual(totals.start_of_week_balance, Decimal("0"))


if __name__ == "__main__":
    unittest.main()

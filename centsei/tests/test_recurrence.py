import unittest
from datetime import date, timedelta
from decimal import Decimal

from centsei.dates import InvalidDateError
from centsei.entries import MasterEntry, UnknownRecurrenceError
from centsei.recurrence import is_occurrence, occurrences


def make_entry(**overrides) -> MasterEntry:
    values = {
        "id": "rent",
        "date": date(2024, 1, 31),
        "name": "Rent",
        "amount": Decimal("100"),
        "type": "bill",
        "recurrence": "monthly",
    }
    values.update(overrides)
    return MasterEntry(**values)


class MonthlyRecurrenceTests(unittest.TestCase):
    def test_anchor_on_31st_clamps_to_month_end(self) -> None:
        entry = make_entry()

        dates = occurrences(entry, date(2024, 1, 1), date(2024, 3, 31))

        self.assertEqual(
            dates,
            [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)],
        )

    def test_february_clamp_in_non_leap_year(self) -> None:
        entry = make_entry(date=date(2023, 1, 31))

        dates = occurrences(entry, date(2023, 2, 1), date(2023, 2, 28))

        self.assertEqual(dates, [date(2023, 2, 28)])

    def test_clamped_day_does_not_shorten_later_months(self) -> None:
        entry = make_entry()

        dates = occurrences(entry, date(2024, 4, 1), date(2024, 5, 31))

        self.assertEqual(dates, [date(2024, 4, 30), date(2024, 5, 31)])

    def test_fast_forwards_over_long_gaps(self) -> None:
        entry = make_entry(date=date(2000, 2, 29), recurrence="annual")

        dates = occurrences(entry, date(2023, 1, 1), date(2025, 12, 31))

        self.assertEqual(
            dates,
            [date(2023, 2, 28), date(2024, 2, 29), date(2025, 2, 28)],
        )

    def test_every_three_months_steps_from_anchor(self) -> None:
        entry = make_entry(date=date(2024, 1, 15), recurrence="every-3-months")

        dates = occurrences(entry, date(2024, 5, 1), date(2024, 12, 31))

        self.assertEqual(dates, [date(2024, 7, 15), date(2024, 10, 15)])

    def test_every_six_months_clamps(self) -> None:
        entry = make_entry(date=date(2024, 8, 31), recurrence="every-6-months")

        dates = occurrences(entry, date(2025, 1, 1), date(2025, 12, 31))

        self.assertEqual(dates, [date(2025, 2, 28), date(2025, 8, 31)])

    def test_bimonthly_skips_alternate_months(self) -> None:
        entry = make_entry(date=date(2024, 1, 10), recurrence="bimonthly")

        dates = occurrences(entry, date(2024, 2, 1), date(2024, 7, 31))

        self.assertEqual(
            dates,
            [date(2024, 3, 10), date(2024, 5, 10), date(2024, 7, 10)],
        )

    def test_window_start_on_clamped_occurrence(self) -> None:
        entry = make_entry()

        dates = occurrences(entry, date(2024, 2, 29), date(2024, 2, 29))

        self.assertEqual(dates, [date(2024, 2, 29)])


class WeeklyRecurrenceTests(unittest.TestCase):
    def test_weekly_keeps_anchor_weekday(self) -> None:
        entry = make_entry(date=date(2024, 1, 3), recurrence="weekly")

        dates = occurrences(entry, date(2024, 2, 1), date(2024, 2, 29))

        self.assertEqual(
            dates,
            [date(2024, 2, 7), date(2024, 2, 14), date(2024, 2, 21), date(2024, 2, 28)],
        )

    def test_biweekly_alternates_weeks(self) -> None:
        entry = make_entry(date=date(2024, 1, 5), recurrence="bi-weekly")

        dates = occurrences(entry, date(2024, 1, 10), date(2024, 2, 15))

        self.assertEqual(dates, [date(2024, 1, 19), date(2024, 2, 2)])

    def test_weekly_count_tracks_window_length(self) -> None:
        entry = make_entry(date=date(2023, 6, 6), recurrence="weekly")
        window_start = date(2024, 1, 1)
        for length in (0, 1, 6, 7, 13, 30, 31, 90, 365):
            window_end = window_start + timedelta(days=length)
            expected = length // 7

            dates = occurrences(entry, window_start, window_end)

            self.assertLessEqual(abs(len(dates) - expected), 1, length)

    def test_weekly_includes_anchor_inside_window(self) -> None:
        entry = make_entry(date=date(2024, 3, 10), recurrence="weekly")

        dates = occurrences(entry, date(2024, 3, 1), date(2024, 3, 20))

        self.assertEqual(dates, [date(2024, 3, 10), date(2024, 3, 17)])


class OneOffAndWindowTests(unittest.TestCase):
    def test_one_off_inside_window(self) -> None:
        entry = make_entry(date=date(2024, 5, 5), recurrence="none", is_paid=True)

        self.assertEqual(
            occurrences(entry, date(2024, 5, 1), date(2024, 5, 31)),
            [date(2024, 5, 5)],
        )

    def test_one_off_outside_window(self) -> None:
        entry = make_entry(date=date(2024, 4, 30), recurrence="none")

        self.assertEqual(occurrences(entry, date(2024, 5, 1), date(2024, 5, 31)), [])

    def test_anchor_after_window_is_empty(self) -> None:
        entry = make_entry(date=date(2025, 1, 1), recurrence="weekly")

        self.assertEqual(occurrences(entry, date(2024, 1, 1), date(2024, 12, 31)), [])

    def test_inverted_window_is_empty(self) -> None:
        entry = make_entry()

        self.assertEqual(occurrences(entry, date(2024, 3, 1), date(2024, 2, 1)), [])

    def test_accepts_iso_strings_for_window(self) -> None:
        entry = make_entry()

        self.assertEqual(
            occurrences(entry, "2024-02-01", "2024-02-29"),
            [date(2024, 2, 29)],
        )

    def test_is_occurrence(self) -> None:
        entry = make_entry(date=date(2024, 1, 3), recurrence="weekly")

        self.assertTrue(is_occurrence(entry, date(2024, 1, 17)))
        self.assertFalse(is_occurrence(entry, date(2024, 1, 18)))


class RecurrenceErrorTests(unittest.TestCase):
    def test_unknown_recurrence_is_rejected(self) -> None:
        with self.assertRaises(UnknownRecurrenceError):
            make_entry(recurrence="fortnightly")

    def test_unknown_recurrence_is_not_defaulted(self) -> None:
        entry = make_entry()
        object.__setattr__(entry, "recurrence", "sometimes")

        with self.assertRaises(UnknownRecurrenceError):
            occurrences(entry, date(2024, 1, 1), date(2024, 12, 31))

    def test_malformed_anchor_date(self) -> None:
        with self.assertRaises(InvalidDateError):
            make_entry(date="2024-02-30")

    def test_malformed_window_date(self) -> None:
        with self.assertRaises(InvalidDateError):
            occurrences(make_entry(), "2024-13-01", "2024-12-31")

    def test_recurrence_aliases(self) -> None:
        self.assertEqual(make_entry(recurrence="3months").recurrence, "every-3-months")
        self.assertEqual(make_entry(recurrence="6months").recurrence, "every-6-months")
        self.assertEqual(make_entry(recurrence="12months").recurrence, "annual")
        self.assertEqual(make_entry(recurrence="biweekly").recurrence, "bi-weekly")
        self.assertEqual(make_entry(recurrence=None).recurrence, "none")


if __name__ == "__main__":
    unittest.main()

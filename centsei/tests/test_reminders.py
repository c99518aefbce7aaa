import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from centsei.entries import MasterEntry
from centsei.exception_overlay import move_occurrence, set_occurrence_paid
from centsei.reminders import due_reminders, format_currency, resolve_timezone


def entries() -> list[MasterEntry]:
    return [
        MasterEntry(
            id="rent",
            date=date(2024, 1, 1),
            name="Rent",
            amount=Decimal("1234.5"),
            type="bill",
            recurrence="monthly",
        ),
        MasterEntry(
            id="salary",
            date=date(2024, 1, 1),
            name="Salary",
            amount=Decimal("3000"),
            type="income",
            recurrence="monthly",
        ),
    ]


class DueRemindersTests(unittest.TestCase):
    def test_bills_fire_at_eight_local_time(self) -> None:
        # 09:00 UTC is 04:00 in New York, before the morning reminder.
        now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

        reminders = due_reminders(entries(), now, "America/New_York")

        self.assertEqual(
            [reminder.tag for reminder in reminders],
            ["centsei-bill-rent-2024-03-01", "centsei-bill-rent-2024-04-01", "centsei-bill-rent-2024-05-01"],
        )
        first = reminders[0]
        self.assertEqual(first.title, "Bill Due Today")
        self.assertEqual(first.body, "Rent ($1,234.50) is due.")
        self.assertEqual(first.entry_id, "rent")
        self.assertEqual(first.due_at, datetime(2024, 3, 1, 8, 0, tzinfo=ZoneInfo("America/New_York")))

    def test_reminder_already_past_today_is_skipped(self) -> None:
        now = datetime(2024, 3, 1, 14, 0, tzinfo=timezone.utc)

        reminders = due_reminders(entries(), now, "America/New_York")

        self.assertEqual(reminders[0].tag, "centsei-bill-rent-2024-04-01")

    def test_window_length_is_configurable(self) -> None:
        now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

        reminders = due_reminders(entries(), now, "America/New_York", window_days=10)

        self.assertEqual(len(reminders), 1)

    def test_paid_and_moved_occurrences_follow_their_exceptions(self) -> None:
        bill = set_occurrence_paid(entries()[0], "2024-04-01", True)
        bill = move_occurrence(bill, "2024-05-01", "2024-05-03")
        now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

        reminders = due_reminders([bill], now, "America/New_York")

        self.assertEqual(
            [reminder.tag for reminder in reminders],
            ["centsei-bill-rent-2024-03-01", "centsei-bill-rent-2024-05-03"],
        )
        self.assertEqual(
            reminders[1].due_at,
            datetime(2024, 5, 3, 8, 0, tzinfo=ZoneInfo("America/New_York")),
        )

    def test_naive_now_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            due_reminders(entries(), datetime(2024, 3, 1, 9, 0), "UTC")

    def test_unknown_timezone(self) -> None:
        with self.assertRaises(ValueError):
            resolve_timezone("Mars/Olympus_Mons")


class FormatCurrencyTests(unittest.TestCase):
    def test_formats_dollars(self) -> None:
        self.assertEqual(format_currency(Decimal("1234567.891")), "$1,234,567.89")
        self.assertEqual(format_currency(Decimal("60")), "$60.00")


if __name__ == "__main__":
    unittest.main()

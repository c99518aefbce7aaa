from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from centsei.dates import format_date
from centsei.entries import MasterEntry
from centsei.materializer import materialize

REMINDER_TAG_PREFIX = "centsei-bill-"
REMINDER_WINDOW_DAYS = 90
REMINDER_TITLE = "Bill Due Today"
REMINDER_TIME = time(hour=8)


@dataclass(frozen=True)
class Reminder:
    tag: str
    title: str
    body: str
    due_at: datetime
    entry_id: str


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def due_reminders(
    entries: Iterable[MasterEntry],
    now: datetime,
    timezone: str,
    window_days: int = REMINDER_WINDOW_DAYS,
) -> List[Reminder]:
    """Bill reminders at 08:00 local time for the next ``window_days``.

    ``now`` must be timezone-aware. Dates come from the same materialized
    instances the calendar shows, so paid occurrences are skipped and moved
    ones fire on their new date.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware.")
    zone = resolve_timezone(timezone)
    local_now = now.astimezone(zone)
    schedule_until = local_now + timedelta(days=window_days)

    bills = [entry for entry in entries if entry.type == "bill"]
    reminders: List[Reminder] = []
    for instance in materialize(bills, local_now.date(), schedule_until.date()):
        # Paid and moved occurrences follow their exception.
        if instance.is_paid:
            continue
        due_at = datetime.combine(instance.date, REMINDER_TIME, tzinfo=zone)
        if not local_now < due_at < schedule_until:
            continue
        reminders.append(
            Reminder(
                tag=f"{REMINDER_TAG_PREFIX}{instance.master_id}-{format_date(instance.date)}",
                title=REMINDER_TITLE,
                body=f"{instance.name} ({format_currency(instance.amount)}) is due.",
                due_at=due_at,
                entry_id=instance.master_id,
            )
        )
    reminders.sort(key=lambda reminder: (reminder.due_at, reminder.tag))
    return reminders


def format_currency(amount: Decimal) -> str:
    return f"${amount:,.2f}"

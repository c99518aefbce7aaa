from __future__ import annotations

from datetime import date, timedelta
from typing import List

from centsei.dates import add_months, months_between, parse_date
from centsei.entries import (
    RECURRENCE_INTERVAL_MONTHS,
    RECURRENCE_NONE,
    RECURRENCE_WEEKS,
    MasterEntry,
    UnknownRecurrenceError,
)

WEEKLY_DAYS = 7


def occurrences(
    entry: MasterEntry,
    window_start: date | str,
    window_end: date | str,
) -> List[date]:
    """Dates on which ``entry`` occurs inside ``[window_start, window_end]``.

    Exceptions are not applied here; every date returned is an original
    occurrence date, suitable as an exception key.
    """
    range_start = parse_date(window_start)
    range_end = parse_date(window_end)
    if range_start > range_end:
        return []
    anchor = entry.date
    if anchor > range_end:
        return []

    if entry.recurrence == RECURRENCE_NONE:
        return [anchor] if anchor >= range_start else []
    if entry.recurrence in RECURRENCE_WEEKS:
        interval_days = WEEKLY_DAYS * RECURRENCE_WEEKS[entry.recurrence]
        return _weekly_occurrences(anchor, range_start, range_end, interval_days)
    if entry.recurrence in RECURRENCE_INTERVAL_MONTHS:
        return _monthly_occurrences(
            anchor,
            range_start,
            range_end,
            RECURRENCE_INTERVAL_MONTHS[entry.recurrence],
        )
    raise UnknownRecurrenceError(f"Unsupported recurrence: {entry.recurrence!r}")


def is_occurrence(entry: MasterEntry, candidate: date) -> bool:
    return candidate in occurrences(entry, candidate, candidate)


def _weekly_occurrences(
    anchor: date, range_start: date, range_end: date, interval_days: int
) -> List[date]:
    # The anchor's weekday is the week-start convention for this entry, so
    # the week containing the anchor starts on the anchor itself.
    step = timedelta(days=interval_days)
    current_date = anchor
    while current_date < range_start:
        current_date += step

    dates: List[date] = []
    while current_date <= range_end:
        dates.append(current_date)
        current_date += step
    return dates


def _monthly_occurrences(
    anchor: date, range_start: date, range_end: date, interval_months: int
) -> List[date]:
    month_offset = _first_offset_on_or_after(anchor, range_start, interval_months)

    dates: List[date] = []
    candidate = add_months(anchor, month_offset, anchor.day)
    while candidate <= range_end:
        target_month = add_months(anchor, month_offset, 1)
        if (candidate.year, candidate.month) == (target_month.year, target_month.month):
            dates.append(candidate)
        month_offset += interval_months
        candidate = add_months(anchor, month_offset, anchor.day)
    return dates


def _first_offset_on_or_after(
    anchor: date, minimum_date: date, interval_months: int
) -> int:
    if anchor >= minimum_date:
        return 0
    intervals = max(0, months_between(minimum_date, anchor) // interval_months)
    month_offset = intervals * interval_months
    while add_months(anchor, month_offset, anchor.day) < minimum_date:
        month_offset += interval_months
    return month_offset

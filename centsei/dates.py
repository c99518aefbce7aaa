from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta

DATE_FORMAT = "%Y-%m-%d"
COMPACT_DATE_FORMAT = "%Y%m%d"
SUNDAY = 6


class InvalidDateError(ValueError):
    """Raised when a calendar date cannot be parsed."""


def parse_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateError(f"Invalid date: {value!r}. Use YYYY-MM-DD.")
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidDateError(f"Invalid date: {value!r}. Use YYYY-MM-DD.") from exc


def parse_month(value: date | str) -> date:
    if isinstance(value, (date, datetime)):
        return month_start(parse_date(value))
    try:
        return datetime.strptime(value.strip(), "%Y-%m").date()
    except ValueError:
        try:
            return month_start(parse_date(value))
        except InvalidDateError as exc:
            raise InvalidDateError("Invalid month format. Use YYYY-MM.") from exc


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_compact_date(value: date) -> str:
    return value.strftime(COMPACT_DATE_FORMAT)


def parse_compact_date(value: str) -> date:
    try:
        return datetime.strptime(value, COMPACT_DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidDateError(f"Invalid occurrence date: {value!r}.") from exc


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=monthrange(value.year, value.month)[1])


def shift_month(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def add_months(start_date: date, months: int, anchor_day: int) -> date:
    """Move ``months`` calendar months and clamp ``anchor_day`` to that month."""
    total_month = start_date.month - 1 + months
    year = start_date.year + total_month // 12
    month = total_month % 12 + 1
    last_day = monthrange(year, month)[1]
    day = min(anchor_day, last_day)
    return date(year, month, day)


def months_between(later: date, earlier: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def week_start(value: date) -> date:
    # Weeks start on Sunday.
    return value - timedelta(days=(value.weekday() - SUNDAY) % 7)


def week_end(value: date) -> date:
    return week_start(value) + timedelta(days=6)


def iter_week_starts(first: date, last: date) -> list[date]:
    weeks: list[date] = []
    cursor = week_start(first)
    while cursor <= last:
        weeks.append(cursor)
        cursor += timedelta(days=7)
    return weeks

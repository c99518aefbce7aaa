from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from centsei.dates import parse_date
from centsei.entries import MasterEntry, OccurrenceException
from centsei.recurrence import is_occurrence


class UnknownOccurrenceError(ValueError):
    """Raised when an edit targets a date the entry does not occur on."""


@dataclass(frozen=True)
class ResolvedOccurrence:
    effective_date: date
    is_paid: bool
    order: Optional[float]


def resolve(
    entry: MasterEntry,
    occurrence_date: date | str,
    as_of: date | str | None = None,
) -> ResolvedOccurrence:
    """Layer the occurrence's exception, if any, over the master defaults.

    ``as_of`` is the caller's "today". When given, past occurrences of a
    recurring income or auto-pay entry count as paid unless an exception says
    otherwise.
    """
    original_date = parse_date(occurrence_date)
    exception = entry.exception_for(original_date)

    effective_date = original_date
    order = entry.order
    is_paid = entry.is_paid
    explicit_paid = False
    if exception is not None:
        if exception.moved_to is not None:
            effective_date = exception.moved_to
        if exception.order is not None:
            order = exception.order
        if exception.is_paid is not None:
            is_paid = exception.is_paid
            explicit_paid = True

    if not explicit_paid and as_of is not None and entry.is_recurring:
        if original_date < parse_date(as_of) and _settles_automatically(entry):
            is_paid = True

    return ResolvedOccurrence(
        effective_date=effective_date,
        is_paid=is_paid,
        order=order,
    )


def set_occurrence_paid(
    entry: MasterEntry, occurrence_date: date | str, is_paid: bool
) -> MasterEntry:
    original_date = parse_date(occurrence_date)
    _require_occurrence(entry, original_date)
    if not entry.is_recurring:
        return replace(entry, is_paid=is_paid)

    exception = entry.exception_for(original_date) or OccurrenceException()
    if is_paid:
        updated = replace(exception, is_paid=True)
    else:
        # Unchecking drops the override and keeps any move or order.
        updated = replace(exception, is_paid=None)
    return entry.with_exception(original_date, updated)


def move_occurrence(
    entry: MasterEntry,
    occurrence_date: date | str,
    target_date: date | str,
    order: Optional[float] = None,
) -> MasterEntry:
    original_date = parse_date(occurrence_date)
    destination = parse_date(target_date)
    _require_occurrence(entry, original_date)
    if not entry.is_recurring:
        if order is None:
            return replace(entry, date=destination)
        return replace(entry, date=destination, order=order)

    exception = entry.exception_for(original_date) or OccurrenceException()
    moved_to = None if destination == original_date else destination
    updated = replace(
        exception,
        moved_to=moved_to,
        order=exception.order if order is None else order,
    )
    return entry.with_exception(original_date, updated)


def _require_occurrence(entry: MasterEntry, original_date: date) -> None:
    # Keys left behind by an anchor edit stay editable.
    if original_date in entry.exceptions or is_occurrence(entry, original_date):
        return
    raise UnknownOccurrenceError(
        f"{entry.name} does not occur on {original_date.isoformat()}."
    )


def _settles_automatically(entry: MasterEntry) -> bool:
    return entry.type == "income" or entry.is_auto_pay

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Tuple

from centsei.dates import format_compact_date, parse_compact_date, parse_date
from centsei.entries import EntryInstance, MasterEntry
from centsei.exception_overlay import ResolvedOccurrence, resolve
from centsei.recurrence import occurrences


def materialize(
    entries: Iterable[MasterEntry],
    window_start: date | str,
    window_end: date | str,
    as_of: date | str | None = None,
) -> List[EntryInstance]:
    range_start = parse_date(window_start)
    range_end = parse_date(window_end)
    if range_start > range_end:
        return []
    today = parse_date(as_of) if as_of is not None else None

    instances: List[EntryInstance] = []
    for entry in entries:
        instances.extend(_materialize_entry(entry, range_start, range_end, today))
    return instances


def sort_instances(instances: Iterable[EntryInstance]) -> List[EntryInstance]:
    return sorted(
        instances,
        key=lambda instance: (
            instance.date,
            instance.order if instance.order is not None else 0,
            instance.id,
        ),
    )


def instance_id(master_id: str, occurrence_date: date) -> str:
    return f"{master_id}-{format_compact_date(occurrence_date)}"


def parse_instance_id(value: str) -> Tuple[str, date]:
    master_id, separator, suffix = value.rpartition("-")
    if not separator or not master_id or len(suffix) != 8 or not suffix.isdigit():
        raise ValueError(f"Invalid instance id: {value!r}")
    return master_id, parse_compact_date(suffix)


def _materialize_entry(
    entry: MasterEntry,
    range_start: date,
    range_end: date,
    as_of: date | None,
) -> List[EntryInstance]:
    instances: List[EntryInstance] = []
    seen: set[date] = set()
    for occurrence_date in occurrences(entry, range_start, range_end):
        seen.add(occurrence_date)
        resolved = resolve(entry, occurrence_date, as_of=as_of)
        if range_start <= resolved.effective_date <= range_end:
            instances.append(_build_instance(entry, occurrence_date, resolved))

    # Exception keys the rule did not generate in the window: occurrences
    # moved in from outside it, and keys left behind by an anchor edit.
    for occurrence_date in sorted(entry.exceptions):
        if occurrence_date in seen:
            continue
        resolved = resolve(entry, occurrence_date, as_of=as_of)
        if range_start <= resolved.effective_date <= range_end:
            instances.append(_build_instance(entry, occurrence_date, resolved))
    return instances


def _build_instance(
    entry: MasterEntry, occurrence_date: date, resolved: ResolvedOccurrence
) -> EntryInstance:
    return EntryInstance(
        id=instance_id(entry.id, occurrence_date),
        master_id=entry.id,
        occurrence_date=occurrence_date,
        date=resolved.effective_date,
        name=entry.name,
        amount=entry.amount,
        type=entry.type,
        recurrence=entry.recurrence,
        category=entry.category,
        is_paid=resolved.is_paid,
        is_auto_pay=entry.is_auto_pay,
        order=resolved.order,
    )

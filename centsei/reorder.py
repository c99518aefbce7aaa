from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence

from centsei.dates import parse_date
from centsei.entries import MasterEntry
from centsei.exception_overlay import move_occurrence, set_occurrence_paid
from centsei.materializer import parse_instance_id


class EntryNotFoundError(LookupError):
    """Raised when an instance id refers to a master entry that does not exist."""


def reorder(
    entries: Sequence[MasterEntry],
    moved_instance_id: str,
    target_date: date | str,
    target_order: float,
) -> List[MasterEntry]:
    """Return new master entries with one instance moved to ``target_date``.

    A one-off entry moves its anchor date. A recurring entry records the move
    as an exception keyed by the occurrence's original date, so moving the
    same instance twice rewrites one exception instead of stacking them.
    """
    master_id, occurrence_date = parse_instance_id(moved_instance_id)
    destination = parse_date(target_date)
    index = _index_of(entries, master_id)

    updated = list(entries)
    updated[index] = move_occurrence(
        entries[index], occurrence_date, destination, order=target_order
    )
    return updated


def order_between(previous: Optional[float], following: Optional[float]) -> float:
    """Sort position for an entry dropped between two neighbours."""
    if previous is not None and following is not None:
        return (previous + following) / 2
    if previous is not None:
        return previous + 1
    if following is not None:
        return following - 1
    return 0


def mark_instances_paid(
    entries: Sequence[MasterEntry], instance_ids: Iterable[str]
) -> List[MasterEntry]:
    updated = list(entries)
    for value in instance_ids:
        master_id, occurrence_date = parse_instance_id(value)
        index = _index_of(updated, master_id)
        updated[index] = set_occurrence_paid(updated[index], occurrence_date, True)
    return updated


def delete_instances(
    entries: Sequence[MasterEntry], instance_ids: Iterable[str]
) -> List[MasterEntry]:
    # Deleting an instance deletes its master, as the calendar does.
    master_ids = {parse_instance_id(value)[0] for value in instance_ids}
    return [entry for entry in entries if entry.id not in master_ids]


def _index_of(entries: Sequence[MasterEntry], master_id: str) -> int:
    for index, entry in enumerate(entries):
        if entry.id == master_id:
            return index
    raise EntryNotFoundError(f"Entry not found: {master_id}")

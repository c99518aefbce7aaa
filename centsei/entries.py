from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from centsei.dates import InvalidDateError, format_date, parse_date

ENTRY_TYPES = {"bill", "income"}

RECURRENCE_NONE = "none"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_BIWEEKLY = "bi-weekly"

# Months between occurrences for month-based cadences.
RECURRENCE_INTERVAL_MONTHS = {
    "monthly": 1,
    "bimonthly": 2,
    "every-3-months": 3,
    "every-6-months": 6,
    "annual": 12,
}
RECURRENCE_WEEKS = {
    RECURRENCE_WEEKLY: 1,
    RECURRENCE_BIWEEKLY: 2,
}
RECURRENCE_OPTIONS = (
    RECURRENCE_NONE,
    RECURRENCE_WEEKLY,
    RECURRENCE_BIWEEKLY,
    *RECURRENCE_INTERVAL_MONTHS,
)

_RECURRENCE_ALIASES = {
    "": RECURRENCE_NONE,
    "none": RECURRENCE_NONE,
    "weekly": RECURRENCE_WEEKLY,
    "biweekly": RECURRENCE_BIWEEKLY,
    "byweekly": RECURRENCE_BIWEEKLY,
    "monthly": "monthly",
    "bimonthly": "bimonthly",
    "3months": "every-3-months",
    "every3months": "every-3-months",
    "quarterly": "every-3-months",
    "6months": "every-6-months",
    "every6months": "every-6-months",
    "12months": "annual",
    "annual": "annual",
    "yearly": "annual",
}

BILL_CATEGORIES = (
    "rent",
    "utilities",
    "phone bill",
    "vehicles",
    "loans",
    "credit cards",
    "groceries",
    "day care",
    "subscriptions",
    "recreations",
    "necessities",
    "vices",
    "personal maintenance",
    "other",
)
DEBT_CATEGORIES = {"loans", "credit cards"}


class UnknownRecurrenceError(ValueError):
    """Raised for a recurrence tag the evaluator does not understand."""


def normalize_recurrence(value: str | None) -> str:
    if value is None:
        return RECURRENCE_NONE
    normalized = "".join(ch for ch in str(value).strip().lower() if ch.isalnum())
    try:
        return _RECURRENCE_ALIASES[normalized]
    except KeyError as exc:
        raise UnknownRecurrenceError(f"Unsupported recurrence: {value!r}") from exc


def normalize_entry_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in ENTRY_TYPES:
        raise ValueError("Entry type must be 'bill' or 'income'.")
    return normalized


@dataclass(frozen=True)
class OccurrenceException:
    is_paid: Optional[bool] = None
    moved_to: Optional[date] = None
    order: Optional[float] = None

    def __post_init__(self) -> None:
        if self.moved_to is not None:
            object.__setattr__(self, "moved_to", parse_date(self.moved_to))

    def is_empty(self) -> bool:
        return self.is_paid is None and self.moved_to is None and self.order is None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "OccurrenceException":
        return cls(
            is_paid=payload.get("isPaid"),
            moved_to=payload.get("movedTo") or None,
            order=payload.get("order"),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.is_paid is not None:
            payload["isPaid"] = self.is_paid
        if self.moved_to is not None:
            payload["movedTo"] = format_date(self.moved_to)
        if self.order is not None:
            payload["order"] = self.order
        return payload


@dataclass(frozen=True)
class MasterEntry:
    """A stored, user-edited bill or income record.

    Every dated instance shown on the calendar is derived from one of these.
    ``exceptions`` is keyed by the date an occurrence would have fallen on
    without any override, so a key stays valid however often the entry is
    re-expanded.
    """

    id: str
    date: date
    name: str
    amount: Decimal
    type: str
    recurrence: str = RECURRENCE_NONE
    category: Optional[str] = None
    is_paid: bool = False
    is_auto_pay: bool = False
    order: Optional[float] = None
    exceptions: Mapping[date, OccurrenceException] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "amount", _coerce_amount(self.amount))
        object.__setattr__(self, "type", normalize_entry_type(self.type))
        object.__setattr__(self, "recurrence", normalize_recurrence(self.recurrence))
        object.__setattr__(self, "is_paid", bool(self.is_paid))
        object.__setattr__(self, "is_auto_pay", bool(self.is_auto_pay))
        exceptions: dict[date, OccurrenceException] = {}
        for key, value in (self.exceptions or {}).items():
            if isinstance(value, Mapping):
                value = OccurrenceException.from_dict(value)
            exceptions[parse_date(key)] = value
        object.__setattr__(self, "exceptions", exceptions)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != RECURRENCE_NONE

    def exception_for(self, occurrence_date: date) -> Optional[OccurrenceException]:
        return self.exceptions.get(occurrence_date)

    def with_exception(
        self, occurrence_date: date, exception: Optional[OccurrenceException]
    ) -> "MasterEntry":
        exceptions = dict(self.exceptions)
        if exception is None or exception.is_empty():
            exceptions.pop(occurrence_date, None)
        else:
            exceptions[occurrence_date] = exception
        return replace(self, exceptions=exceptions)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MasterEntry":
        try:
            raw_date = payload["date"]
        except KeyError as exc:
            raise InvalidDateError("Entry is missing its date.") from exc
        return cls(
            id=str(payload["id"]),
            date=raw_date,
            name=str(payload.get("name", "")),
            amount=payload.get("amount", 0),
            type=str(payload.get("type", "bill")),
            recurrence=payload.get("recurrence") or RECURRENCE_NONE,
            category=payload.get("category") or None,
            is_paid=bool(payload.get("isPaid", False)),
            is_auto_pay=bool(payload.get("isAutoPay", False)),
            order=payload.get("order"),
            exceptions=payload.get("exceptions") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "date": format_date(self.date),
            "name": self.name,
            "amount": amount_to_number(self.amount),
            "type": self.type,
            "recurrence": self.recurrence,
            "isPaid": self.is_paid,
        }
        if self.category is not None:
            payload["category"] = self.category
        if self.is_auto_pay:
            payload["isAutoPay"] = True
        if self.order is not None:
            payload["order"] = self.order
        if self.exceptions:
            payload["exceptions"] = {
                format_date(key): value.to_dict()
                for key, value in sorted(self.exceptions.items())
            }
        return payload


@dataclass(frozen=True)
class EntryInstance:
    id: str
    master_id: str
    occurrence_date: date
    date: date
    name: str
    amount: Decimal
    type: str
    recurrence: str
    category: Optional[str] = None
    is_paid: bool = False
    is_auto_pay: bool = False
    order: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "masterId": self.master_id,
            "occurrenceDate": format_date(self.occurrence_date),
            "date": format_date(self.date),
            "name": self.name,
            "amount": amount_to_number(self.amount),
            "type": self.type,
            "recurrence": self.recurrence,
            "category": self.category,
            "isPaid": self.is_paid,
            "isAutoPay": self.is_auto_pay,
            "order": self.order,
        }


def amount_to_number(amount: Decimal) -> int | float:
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    try:
        return Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Mapping

from centsei.dates import format_date, iter_week_starts, parse_date, week_end, week_start
from centsei.entries import EntryInstance

ZERO = Decimal("0")
ROLLOVER_CARRYOVER = "carryover"
ROLLOVER_RESET = "reset"
ROLLOVER_PREFERENCES = {ROLLOVER_CARRYOVER, ROLLOVER_RESET}


@dataclass(frozen=True)
class WeeklyBalance:
    start: Decimal
    end: Decimal


@dataclass(frozen=True)
class WeeklyTotals:
    income: Decimal
    bills: Decimal
    net: Decimal
    start_of_week_balance: Decimal
    status: Decimal


def normalize_rollover(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in ROLLOVER_PREFERENCES:
        raise ValueError("Rollover preference must be 'carryover' or 'reset'.")
    return normalized


def aggregate(
    instances: Iterable[EntryInstance],
    rollover: str,
) -> Dict[str, WeeklyBalance]:
    """Running balance per Sunday-start week, keyed by the week's first day.

    Every week between the first and last instance is present, including
    weeks without entries. Under ``reset`` each week starts from zero.
    """
    preference = normalize_rollover(rollover)
    ordered = sorted(instances, key=lambda instance: instance.date)
    if not ordered:
        return {}

    income_by_week: Dict[date, Decimal] = {}
    bills_by_week: Dict[date, Decimal] = {}
    for instance in ordered:
        bucket = week_start(instance.date)
        if instance.type == "income":
            income_by_week[bucket] = income_by_week.get(bucket, ZERO) + instance.amount
        else:
            bills_by_week[bucket] = bills_by_week.get(bucket, ZERO) + instance.amount

    balances: Dict[str, WeeklyBalance] = {}
    last_balance = ZERO
    for bucket in iter_week_starts(ordered[0].date, ordered[-1].date):
        start = last_balance
        end = start + income_by_week.get(bucket, ZERO) - bills_by_week.get(bucket, ZERO)
        balances[format_date(bucket)] = WeeklyBalance(start=start, end=end)
        last_balance = end if preference == ROLLOVER_CARRYOVER else ZERO
    return balances


def weekly_totals(
    instances: Iterable[EntryInstance],
    weekly_balances: Mapping[str, WeeklyBalance],
    day: date | str,
) -> WeeklyTotals:
    selected = parse_date(day)
    first_day = week_start(selected)
    last_day = week_end(selected)
    income = ZERO
    bills = ZERO
    for instance in instances:
        if not first_day <= instance.date <= last_day:
            continue
        if instance.type == "income":
            income += instance.amount
        else:
            bills += instance.amount

    balance = weekly_balances.get(format_date(first_day))
    return WeeklyTotals(
        income=income,
        bills=bills,
        net=balance.end if balance else ZERO,
        start_of_week_balance=balance.start if balance else ZERO,
        status=income - bills,
    )


def balances_to_dict(balances: Mapping[str, WeeklyBalance]) -> dict[str, dict[str, str]]:
    return {
        key: {"start": str(value.start), "end": str(value.end)}
        for key, value in balances.items()
    }


def balances_from_dict(payload: Mapping[str, Mapping[str, object]]) -> Dict[str, WeeklyBalance]:
    return {
        key: WeeklyBalance(
            start=Decimal(str(value["start"])),
            end=Decimal(str(value["end"])),
        )
        for key, value in payload.items()
    }

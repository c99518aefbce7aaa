from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Tuple

from centsei.dates import format_date, month_end, parse_month, week_start
from centsei.entries import EntryInstance
from centsei.weekly_balances import WeeklyBalance

ZERO = Decimal("0")
UNCATEGORIZED = "other"


@dataclass(frozen=True)
class MonthlySummary:
    income: Decimal
    bills: Decimal
    net: Decimal
    start_of_month_balance: Decimal
    end_of_month_balance: Decimal


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal
    instances: Tuple[EntryInstance, ...]


def summarize(
    instances: Iterable[EntryInstance],
    weekly_balances: Mapping[str, WeeklyBalance],
    target_month: date | str,
) -> MonthlySummary:
    first_day = parse_month(target_month)
    last_day = month_end(first_day)

    income = ZERO
    bills = ZERO
    for instance in _in_month(instances, first_day, last_day):
        if instance.type == "income":
            income += instance.amount
        else:
            bills += instance.amount

    first_week = weekly_balances.get(format_date(week_start(first_day)))
    start_balance = first_week.start if first_week else ZERO
    return MonthlySummary(
        income=income,
        bills=bills,
        net=income - bills,
        start_of_month_balance=start_balance,
        end_of_month_balance=start_balance + income - bills,
    )


def category_breakdown(
    instances: Iterable[EntryInstance],
    target_month: date | str,
) -> List[CategoryTotal]:
    first_day = parse_month(target_month)
    last_day = month_end(first_day)

    totals: dict[str, Decimal] = {}
    grouped: dict[str, list[EntryInstance]] = {}
    for instance in _in_month(instances, first_day, last_day):
        if instance.type != "bill":
            continue
        category = instance.category or UNCATEGORIZED
        totals[category] = totals.get(category, ZERO) + instance.amount
        grouped.setdefault(category, []).append(instance)

    breakdown = [
        CategoryTotal(
            category=category,
            total=total,
            instances=tuple(sorted(grouped[category], key=lambda item: (item.date, item.id))),
        )
        for category, total in totals.items()
        if total > ZERO
    ]
    breakdown.sort(key=lambda item: (-item.total, item.category))
    return breakdown


def _in_month(
    instances: Iterable[EntryInstance], first_day: date, last_day: date
) -> List[EntryInstance]:
    return [
        instance
        for instance in instances
        if first_day <= instance.date <= last_day
    ]

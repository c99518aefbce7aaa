from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Sequence

from centsei.dates import format_date, parse_date
from centsei.entries import DEBT_CATEGORIES, EntryInstance, MasterEntry
from centsei.materializer import materialize

ZERO = Decimal("0")
SCORE_WINDOW_DAYS = 30
INSUFFICIENT_DATA_COMMENTARY = (
    "No income recorded in the last 30 days. Cannot calculate score."
)

SPENDING_WEIGHT = Decimal("0.40")
SAVINGS_WEIGHT = Decimal("0.35")
DEBT_WEIGHT = Decimal("0.25")

# (upper bound, sub-score); ratios above every bound score the fallback.
SPENDING_STEPS = ((Decimal("0.5"), 100), (Decimal("0.7"), 75), (Decimal("0.9"), 50))
DEBT_STEPS = ((Decimal("0.15"), 100), (Decimal("0.25"), 75), (Decimal("0.35"), 50))
# (lower bound, sub-score)
SAVINGS_STEPS = (
    (Decimal("0.2"), 100),
    (Decimal("0.1"), 75),
    (Decimal("0.05"), 50),
    (Decimal("0"), 25),
)

COMMENTARY_BANDS = (
    (90, "Masterful control! Your financial discipline is legendary."),
    (80, "Excellent! You move like a shadow in the market."),
    (70, "You have trained well. Your focus is strong."),
    (60, "A solid stance, but there is room for improvement."),
    (50, "Your form is adequate, but lacks conviction. More training is needed."),
    (40, "Your spending is swift like the wind... slow it down."),
    (30, "Beware, young grasshoppa... your wallet is out of balance."),
)
DEFAULT_COMMENTARY = "Much to learn, you still have. The path to financial peace is long."

RANK_BANDS = (
    (90, "Sensei"),
    (80, "Master"),
    (60, "Adept"),
    (40, "Apprentice"),
)
DEFAULT_RANK = "Novice"


@dataclass(frozen=True)
class BudgetScore:
    score: int
    commentary: str
    date: date

    @property
    def rank(self) -> str:
        return get_rank(self.score)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "commentary": self.commentary,
            "date": format_date(self.date),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "BudgetScore":
        return cls(
            score=int(payload["score"]),
            commentary=str(payload["commentary"]),
            date=parse_date(payload["date"]),
        )


def calculate_score(
    instances: Iterable[EntryInstance],
    as_of: date | str,
) -> BudgetScore:
    """Score the trailing 30 days of actual occurrences ending on ``as_of``."""
    end_date = parse_date(as_of)
    start_date = end_date - timedelta(days=SCORE_WINDOW_DAYS)
    relevant = [
        instance
        for instance in instances
        if start_date <= instance.date <= end_date
    ]

    total_income = _sum_amounts(relevant, entry_type="income")
    total_spending = _sum_amounts(relevant, entry_type="bill")
    debt_payments = _sum_amounts(relevant, entry_type="bill", debt_only=True)

    if total_income == ZERO:
        return BudgetScore(
            score=0,
            commentary=INSUFFICIENT_DATA_COMMENTARY,
            date=end_date,
        )

    spending_score = _step_at_most(total_spending / total_income, SPENDING_STEPS)
    savings_score = _step_at_least(
        (total_income - total_spending) / total_income, SAVINGS_STEPS
    )
    debt_score = _step_at_most(debt_payments / total_income, DEBT_STEPS)

    weighted = (
        spending_score * SPENDING_WEIGHT
        + savings_score * SAVINGS_WEIGHT
        + debt_score * DEBT_WEIGHT
    )
    final_score = max(0, min(100, int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))))
    return BudgetScore(
        score=final_score,
        commentary=get_commentary(final_score),
        date=end_date,
    )


def score_entries(entries: Iterable[MasterEntry], as_of: date | str) -> BudgetScore:
    end_date = parse_date(as_of)
    start_date = end_date - timedelta(days=SCORE_WINDOW_DAYS)
    return calculate_score(materialize(entries, start_date, end_date), end_date)


def get_commentary(score: int) -> str:
    for threshold, commentary in COMMENTARY_BANDS:
        if score >= threshold:
            return commentary
    return DEFAULT_COMMENTARY


def get_rank(score: int) -> str:
    for threshold, title in RANK_BANDS:
        if score >= threshold:
            return title
    return DEFAULT_RANK


def record_score(history: Sequence[BudgetScore], score: BudgetScore) -> List[BudgetScore]:
    """Keep one score per day, replacing an earlier score from the same day."""
    updated = [item for item in history if item.date != score.date]
    updated.append(score)
    updated.sort(key=lambda item: item.date)
    return updated


def _step_at_most(ratio: Decimal, steps) -> int:
    for bound, points in steps:
        if ratio <= bound:
            return points
    return 25


def _step_at_least(ratio: Decimal, steps) -> int:
    for bound, points in steps:
        if ratio >= bound:
            return points
    return 0


def _sum_amounts(
    instances: Iterable[EntryInstance],
    *,
    entry_type: str,
    debt_only: bool = False,
) -> Decimal:
    total = ZERO
    for instance in instances:
        if instance.type != entry_type:
            continue
        if debt_only and instance.category not in DEBT_CATEGORIES:
            continue
        total += instance.amount
    return total

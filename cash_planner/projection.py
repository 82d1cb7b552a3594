# cash_planner/projection.py
"""Multi-record projection and cash-flow aggregation."""
from __future__ import annotations

from collections import OrderedDict
from datetime import date
from typing import Callable, Dict, Iterable, List, Literal

from cash_planner.core.models import Occurrence, TransactionRecord
from cash_planner.core.recurrence import expand
from cash_planner.errors import ValidationError

Period = Literal["month", "quarter", "year"]

_PERIOD_KEYS: Dict[str, Callable[[date], str]] = {
    "month": lambda d: d.strftime("%Y-%m"),
    "quarter": lambda d: f"{d.year}-Q{(d.month - 1) // 3 + 1}",
    "year": lambda d: str(d.year),
}


def project(
    records: Iterable[TransactionRecord], window_start: date, window_end: date
) -> List[Occurrence]:
    """Expand every record and merge the results into one date-ordered list."""
    occurrences: List[Occurrence] = []
    for record in records:
        occurrences.extend(expand(record, window_start, window_end))
    occurrences.sort(key=lambda o: (o.date, o.transaction_id))
    return occurrences


def summarize_by_period(occurrences: Iterable[Occurrence], period: Period = "month") -> List[Dict[str, object]]:
    """Aggregate income, expense and net totals per period."""
    if period not in _PERIOD_KEYS:
        raise ValidationError("period must be month, quarter, or year")
    key_for = _PERIOD_KEYS[period]

    buckets: "OrderedDict[str, Dict[str, object]]" = OrderedDict()
    for occ in sorted(occurrences, key=lambda o: o.date):
        bucket = buckets.setdefault(
            key_for(occ.date),
            {"period": key_for(occ.date), "income": 0.0, "expense": 0.0, "net": 0.0, "occurrences": 0},
        )
        if occ.type == "income":
            bucket["income"] += abs(occ.amount)
        else:
            bucket["expense"] += abs(occ.amount)
        bucket["net"] += occ.signed_amount
        bucket["occurrences"] += 1
    for bucket in buckets.values():
        for key in ("income", "expense", "net"):
            bucket[key] = round(bucket[key], 2)
    return list(buckets.values())


def cash_flow_summary(
    occurrences: Iterable[Occurrence],
    *,
    period: Period = "month",
    opening_balance: float = 0.0,
) -> Dict[str, object]:
    """Return per-period totals with a running balance and overall totals."""
    periods = summarize_by_period(occurrences, period)
    balance = float(opening_balance)
    for row in periods:
        balance += row["net"]
        row["balance"] = round(balance, 2)

    income = sum(row["income"] for row in periods)
    expense = sum(row["expense"] for row in periods)
    return {
        "period": period,
        "opening_balance": float(opening_balance),
        "closing_balance": round(balance, 2),
        "income": round(income, 2),
        "expense": round(expense, 2),
        "net": round(income - expense, 2),
        "occurrences": sum(row["occurrences"] for row in periods),
        "periods": periods,
    }


def occurrence_to_line(occ: Occurrence) -> str:
    return f"{occ.date.isoformat()} | {occ.name} | {occ.type} | {occ.signed_amount:.2f}"


def occurrence_lines(occurrences: Iterable[Occurrence]) -> List[str]:
    """Compact one-line-per-occurrence text, suitable for LLM context."""
    return [occurrence_to_line(o) for o in occurrences]

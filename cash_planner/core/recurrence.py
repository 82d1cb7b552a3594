# cash_planner/core/recurrence.py
from __future__ import annotations

from calendar import monthrange
from datetime import MAXYEAR, MINYEAR, date, timedelta
from typing import Iterator, List, Optional

from cash_planner.core.models import Occurrence, TransactionRecord
from cash_planner.errors import ValidationError

_DAYS_PER_UNIT = {"days": 1, "weeks": 7}


def add_months(original_date: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length.

    Raises ``OverflowError`` when the target lies outside ``date``'s range.
    """
    month_index = original_date.month - 1 + months
    year = original_date.year + month_index // 12
    month = month_index % 12 + 1
    if not MINYEAR <= year <= MAXYEAR:
        raise OverflowError("date value out of range")
    day = min(original_date.day, monthrange(year, month)[1])
    return date(year, month, day)


def _nth_date(record: TransactionRecord, index: int) -> date:
    # Always derived from start_date so that month clamping never drifts
    # (Jan 31 -> Feb 29 -> Mar 31, not Mar 29).
    units = index * record.interval
    if record.frequency == "months":
        return add_months(record.start_date, units)
    if record.frequency in _DAYS_PER_UNIT:
        return record.start_date + timedelta(days=units * _DAYS_PER_UNIT[record.frequency])
    raise ValueError(f"Unsupported frequency '{record.frequency}'.")


def _candidate(record: TransactionRecord, index: int) -> Optional[date]:
    """The ``index``-th candidate, or ``None`` once it would pass ``date.max``."""
    try:
        return _nth_date(record, index)
    except OverflowError:
        return None


def _first_index(record: TransactionRecord, window_start: date) -> Optional[int]:
    """Index of the first candidate on or after ``window_start``.

    ``None`` when no such candidate is representable.
    """
    if window_start <= record.start_date:
        return 0
    if record.frequency == "months":
        months_between = (
            (window_start.year - record.start_date.year) * 12
            + window_start.month
            - record.start_date.month
        )
        index = months_between // record.interval
    else:
        stride = record.interval * _DAYS_PER_UNIT[record.frequency]
        index = (window_start - record.start_date).days // stride
    while True:
        current = _candidate(record, index)
        if current is None:
            return None
        if current >= window_start:
            return index
        index += 1


def occurrence_dates(
    record: TransactionRecord, window_start: date, window_end: date
) -> Iterator[date]:
    """Yield candidate dates in ``[window_start, window_end]`` before exceptions."""
    upper = window_end
    if record.end_date is not None and record.end_date < upper:
        upper = record.end_date

    if not record.is_recurring:
        if window_start <= record.start_date <= upper:
            yield record.start_date
        return

    index = _first_index(record, window_start)
    if index is None:
        return
    while True:
        current = _candidate(record, index)
        if current is None or current > upper:
            return
        yield current
        index += 1


def expand(
    record: TransactionRecord, window_start: date, window_end: date
) -> List[Occurrence]:
    """Expand one record into its occurrences within a closed date window.

    Skip dates remove an occurrence outright, even when the same date also
    carries a modification. Modified occurrences keep their computed date and
    take only the overridden fields from the modification. The result is
    ordered by date and depends on nothing but the arguments.
    """
    if window_start > window_end:
        raise ValidationError("start must be on or before end")

    occurrences = []
    for when in occurrence_dates(record, window_start, window_end):
        if when in record.skip_dates:
            continue
        override = record.modifications.get(when)
        if override is None:
            occurrences.append(
                Occurrence(
                    transaction_id=record.id,
                    date=when,
                    name=record.name,
                    amount=record.amount,
                    type=record.type,
                )
            )
            continue
        occurrences.append(
            Occurrence(
                transaction_id=record.id,
                date=when,
                name=override.name if override.name is not None else record.name,
                amount=override.amount if override.amount is not None else record.amount,
                type=override.type if override.type is not None else record.type,
                modified=True,
            )
        )
    return occurrences

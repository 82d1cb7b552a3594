from datetime import date, timedelta

import pytest

from cash_planner.core.models import Modification, TransactionRecord
from cash_planner.core.recurrence import add_months, expand
from cash_planner.core.validation import parse_transaction
from cash_planner.database import record_to_dict
from cash_planner.errors import ValidationError


def make_record(**overrides):
    fields = dict(
        id="tx-1",
        name="Rent",
        amount=1200.0,
        type="expense",
        start_date=date(2024, 1, 1),
        frequency="months",
        interval=1,
    )
    fields.update(overrides)
    return TransactionRecord(**fields)


def dates(occurrences):
    return [o.date for o in occurrences]


def test_expand_days_weeks_months():
    daily = make_record(frequency="days", start_date=date(2025, 1, 1))
    assert dates(expand(daily, date(2025, 1, 1), date(2025, 1, 3))) == [
        date(2025, 1, 1),
        date(2025, 1, 2),
        date(2025, 1, 3),
    ]

    weekly = make_record(frequency="weeks", start_date=date(2025, 1, 1))
    assert dates(expand(weekly, date(2025, 1, 1), date(2025, 1, 15))) == [
        date(2025, 1, 1),
        date(2025, 1, 8),
        date(2025, 1, 15),
    ]

    monthly = make_record(frequency="months", start_date=date(2025, 1, 31))
    assert dates(expand(monthly, date(2025, 1, 1), date(2025, 3, 31))) == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
    ]


def test_month_end_clamps_and_recovers_in_leap_year():
    record = make_record(start_date=date(2024, 1, 31), end_date=date(2024, 4, 30))
    assert dates(expand(record, date(2024, 1, 1), date(2024, 12, 31))) == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
    ]


def test_add_months_crosses_year_boundary():
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)


@pytest.mark.parametrize(
    "frequency, unit_days",
    [("days", 1), ("weeks", 7)],
)
@pytest.mark.parametrize("interval", [1, 2, 5])
def test_open_ended_expansion_yields_n_plus_one_evenly_spaced(frequency, unit_days, interval):
    n = 6
    start = date(2024, 3, 10)
    record = make_record(frequency=frequency, interval=interval, start_date=start)
    end = start + timedelta(days=n * interval * unit_days)

    result = dates(expand(record, start, end))

    assert len(result) == n + 1
    gaps = {(b - a).days for a, b in zip(result, result[1:])}
    assert gaps == {interval * unit_days}


def test_monthly_interval_counts():
    record = make_record(start_date=date(2024, 1, 15), interval=3)
    result = dates(expand(record, date(2024, 1, 15), add_months(date(2024, 1, 15), 12)))
    assert result == [
        date(2024, 1, 15),
        date(2024, 4, 15),
        date(2024, 7, 15),
        date(2024, 10, 15),
        date(2025, 1, 15),
    ]


def test_skip_keeps_stride_alignment():
    record = make_record(
        frequency="weeks",
        interval=2,
        start_date=date(2024, 5, 1),
        skip_dates=frozenset({date(2024, 5, 15)}),
    )
    assert dates(expand(record, date(2024, 5, 1), date(2024, 6, 1))) == [
        date(2024, 5, 1),
        date(2024, 5, 29),
    ]


def test_window_start_after_start_date_keeps_original_stride():
    record = make_record(frequency="weeks", interval=2, start_date=date(2024, 5, 1))
    assert dates(expand(record, date(2024, 5, 2), date(2024, 6, 30))) == [
        date(2024, 5, 15),
        date(2024, 5, 29),
        date(2024, 6, 12),
        date(2024, 6, 26),
    ]

    monthly = make_record(start_date=date(2024, 1, 31))
    assert dates(expand(monthly, date(2024, 3, 1), date(2024, 5, 31))) == [
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_skipped_date_never_appears_even_with_modification():
    skipped = date(2024, 3, 1)
    record = make_record(
        skip_dates=frozenset({skipped}),
        modifications={skipped: Modification(amount=10.0)},
    )
    for window in [
        (date(2024, 1, 1), date(2024, 12, 31)),
        (skipped, skipped),
        (date(2024, 2, 15), date(2024, 3, 15)),
    ]:
        assert skipped not in dates(expand(record, *window))


def test_modification_overrides_only_given_fields():
    changed = date(2024, 2, 1)
    record = make_record(modifications={changed: Modification(amount=1500.0)})

    result = expand(record, date(2024, 1, 1), date(2024, 3, 31))

    assert dates(result) == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
    modified = [o for o in result if o.date == changed]
    assert len(modified) == 1
    assert modified[0].amount == 1500.0
    assert modified[0].name == "Rent"
    assert modified[0].type == "expense"
    assert modified[0].modified is True
    assert all(o.amount == 1200.0 for o in result if o.date != changed)


def test_inert_exceptions_for_dates_never_generated():
    record = make_record(
        skip_dates=frozenset({date(2024, 1, 2)}),
        modifications={date(2024, 1, 3): Modification(name="Ghost")},
    )
    result = expand(record, date(2024, 1, 1), date(2024, 2, 28))
    assert dates(result) == [date(2024, 1, 1), date(2024, 2, 1)]
    assert {o.name for o in result} == {"Rent"}


def test_single_occurrence_record():
    record = make_record(frequency="none", start_date=date(2024, 6, 10))
    assert dates(expand(record, date(2024, 1, 1), date(2024, 12, 31))) == [date(2024, 6, 10)]
    assert expand(record, date(2024, 6, 11), date(2024, 12, 31)) == []

    skipped = make_record(
        frequency="none",
        start_date=date(2024, 6, 10),
        skip_dates=frozenset({date(2024, 6, 10)}),
    )
    assert expand(skipped, date(2024, 1, 1), date(2024, 12, 31)) == []


def test_end_date_equal_to_start_date_yields_one_occurrence():
    record = make_record(
        frequency="days", start_date=date(2024, 6, 10), end_date=date(2024, 6, 10)
    )
    assert dates(expand(record, date(2024, 1, 1), date(2024, 12, 31))) == [date(2024, 6, 10)]


def test_end_date_is_inclusive():
    record = make_record(
        frequency="days", start_date=date(2025, 1, 1), end_date=date(2025, 1, 5)
    )
    assert dates(expand(record, date(2025, 1, 1), date(2025, 12, 31))) == [
        date(2025, 1, d) for d in range(1, 6)
    ]


def test_windows_outside_the_record_are_empty():
    record = make_record(start_date=date(2024, 6, 1), end_date=date(2024, 9, 1))
    assert expand(record, date(2024, 1, 1), date(2024, 5, 31)) == []
    assert expand(record, date(2024, 9, 2), date(2025, 1, 1)) == []


def test_reversed_window_is_rejected():
    with pytest.raises(ValidationError):
        expand(make_record(), date(2024, 2, 1), date(2024, 1, 1))


def test_expansion_is_idempotent_across_serialization():
    payload = {
        "id": "tx-9",
        "name": "Salary",
        "amount": 3000,
        "type": "income",
        "startDate": "2024-01-25",
        "frequency": "weeks",
        "interval": 2,
        "skipDates": ["2024-02-22"],
        "modifications": {"2024-03-07": {"amount": 3100, "name": "Salary + bonus"}},
    }
    record = parse_transaction(payload)
    window = (date(2024, 1, 1), date(2024, 6, 30))

    first = expand(record, *window)
    second = expand(record, *window)
    reloaded = expand(parse_transaction(record_to_dict(record)), *window)

    assert first == second == reloaded
    assert date(2024, 2, 22) not in dates(first)


def test_windows_ending_at_date_max_stop_cleanly():
    monthly = make_record(start_date=date(2024, 1, 15))
    assert dates(expand(monthly, date(9999, 11, 1), date.max)) == [
        date(9999, 11, 15),
        date(9999, 12, 15),
    ]

    daily = make_record(frequency="days", start_date=date(9999, 12, 29))
    assert dates(expand(daily, date(9999, 12, 1), date.max)) == [
        date(9999, 12, 29),
        date(9999, 12, 30),
        date(9999, 12, 31),
    ]

    weekly = make_record(frequency="weeks", start_date=date(9999, 12, 30))
    assert dates(expand(weekly, date(9999, 12, 31), date.max)) == []


def test_stride_past_date_max_yields_only_reachable_dates():
    # 1000 months is 83 years and 4 months
    record = make_record(interval=1000, start_date=date(9000, 1, 1))
    assert dates(expand(record, date(2024, 1, 1), date.max)) == [
        date(9000, 1, 1),
        date(9083, 5, 1),
        date(9166, 9, 1),
        date(9250, 1, 1),
        date(9333, 5, 1),
        date(9416, 9, 1),
        date(9500, 1, 1),
        date(9583, 5, 1),
        date(9666, 9, 1),
        date(9750, 1, 1),
        date(9833, 5, 1),
        date(9916, 9, 1),
    ]
    assert expand(record, date(9917, 1, 1), date.max) == []


def test_add_months_past_year_9999_overflows():
    with pytest.raises(OverflowError):
        add_months(date(9999, 12, 1), 1)

from datetime import date

import pytest

from cash_planner.core.models import Modification, TransactionRecord
from cash_planner.errors import ValidationError
from cash_planner.projection import (
    cash_flow_summary,
    occurrence_lines,
    project,
    summarize_by_period,
)


def records():
    return [
        TransactionRecord(
            id="salary",
            name="Salary",
            amount=3000.0,
            type="income",
            start_date=date(2024, 1, 15),
            frequency="months",
        ),
        TransactionRecord(
            id="rent",
            name="Rent",
            # sign on the stored amount is ignored; type decides
            amount=-1200.0,
            type="expense",
            start_date=date(2024, 1, 1),
            frequency="months",
            modifications={date(2024, 2, 1): Modification(amount=1300.0)},
        ),
        TransactionRecord(
            id="laptop",
            name="Laptop",
            amount=900.0,
            type="expense",
            start_date=date(2024, 2, 20),
        ),
    ]


def test_project_merges_and_orders_by_date():
    occurrences = project(records(), date(2024, 1, 1), date(2024, 2, 29))
    assert [(o.date, o.transaction_id) for o in occurrences] == [
        (date(2024, 1, 1), "rent"),
        (date(2024, 1, 15), "salary"),
        (date(2024, 2, 1), "rent"),
        (date(2024, 2, 15), "salary"),
        (date(2024, 2, 20), "laptop"),
    ]


def test_summarize_by_period_uses_type_for_sign():
    occurrences = project(records(), date(2024, 1, 1), date(2024, 3, 31))
    by_month = summarize_by_period(occurrences, "month")
    assert by_month[0] == {
        "period": "2024-01",
        "income": 3000.0,
        "expense": 1200.0,
        "net": 1800.0,
        "occurrences": 2,
    }
    assert by_month[1]["expense"] == 2200.0
    assert by_month[1]["net"] == 800.0

    by_quarter = summarize_by_period(occurrences, "quarter")
    assert [row["period"] for row in by_quarter] == ["2024-Q1"]
    assert by_quarter[0]["occurrences"] == 7


def test_cash_flow_summary_running_balance():
    occurrences = project(records(), date(2024, 1, 1), date(2024, 2, 29))
    summary = cash_flow_summary(occurrences, opening_balance=100)
    assert [row["balance"] for row in summary["periods"]] == [1900.0, 2700.0]
    assert summary["closing_balance"] == 2700.0
    assert summary["income"] == 6000.0
    assert summary["expense"] == 3400.0
    assert summary["net"] == 2600.0


def test_unknown_period_is_rejected():
    with pytest.raises(ValidationError):
        summarize_by_period([], "fortnight")


def test_empty_projection_summary():
    summary = cash_flow_summary([], opening_balance=50)
    assert summary["periods"] == []
    assert summary["closing_balance"] == 50.0
    assert summary["occurrences"] == 0


def test_occurrence_lines():
    occurrences = project(records(), date(2024, 1, 1), date(2024, 1, 31))
    assert occurrence_lines(occurrences) == [
        "2024-01-01 | Rent | expense | -1200.00",
        "2024-01-15 | Salary | income | 3000.00",
    ]

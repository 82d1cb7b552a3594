from datetime import date

import pytest

from cash_planner.core.models import Modification
from cash_planner.core.validation import parse_transaction, validate_window
from cash_planner.errors import ValidationError


def base_payload(**overrides):
    payload = {
        "id": "abc",
        "name": "Coffee",
        "amount": 4.5,
        "type": "expense",
        "startDate": "2024-05-01",
        "frequency": "days",
        "interval": 1,
    }
    payload.update(overrides)
    return payload


def test_parse_full_payload():
    record = parse_transaction(
        base_payload(
            endDate="2024-06-01",
            skipDates=["2024-05-03", "2024-05-03"],
            modifications={"2024-05-04": {"name": "Fancy coffee", "amount": "6.25"}},
        ),
        owner_id="owner-1",
    )
    assert record.owner_id == "owner-1"
    assert record.start_date == date(2024, 5, 1)
    assert record.end_date == date(2024, 6, 1)
    assert record.skip_dates == frozenset({date(2024, 5, 3)})
    assert record.modifications == {
        date(2024, 5, 4): Modification(name="Fancy coffee", amount=6.25)
    }


def test_defaults_for_optional_fields():
    payload = base_payload()
    del payload["interval"]
    record = parse_transaction(payload)
    assert record.interval == 1
    assert record.end_date is None
    assert record.skip_dates == frozenset()
    assert record.modifications == {}


def test_snake_case_dates_are_accepted():
    payload = base_payload()
    payload["start_date"] = date(2024, 5, 2)
    del payload["startDate"]
    assert parse_transaction(payload).start_date == date(2024, 5, 2)


@pytest.mark.parametrize("interval", [0, -1, 1.5, "x", True, 1001, 10**7])
def test_invalid_interval_is_rejected(interval):
    with pytest.raises(ValidationError):
        parse_transaction(base_payload(interval=interval))


def test_largest_interval_is_accepted():
    assert parse_transaction(base_payload(interval=1000)).interval == 1000


@pytest.mark.parametrize(
    "field, value",
    [
        ("amount", "twelve"),
        ("amount", None),
        ("amount", float("nan")),
        ("type", "transfer"),
        ("frequency", "years"),
        ("startDate", "05/01/2024"),
        ("startDate", None),
        ("name", "   "),
        ("id", ""),
    ],
)
def test_malformed_fields_are_rejected(field, value):
    with pytest.raises(ValidationError):
        parse_transaction(base_payload(**{field: value}))


def test_end_date_before_start_date_is_rejected():
    with pytest.raises(ValidationError):
        parse_transaction(base_payload(endDate="2024-04-30"))


def test_modification_with_unknown_field_is_rejected():
    with pytest.raises(ValidationError):
        parse_transaction(base_payload(modifications={"2024-05-02": {"startDate": "2024-05-03"}}))


def test_tx_id_argument_wins_over_body_id():
    assert parse_transaction(base_payload(id="body"), tx_id="path").id == "path"


def test_validate_window():
    assert validate_window("2024-01-01", "2024-01-31") == (date(2024, 1, 1), date(2024, 1, 31))
    with pytest.raises(ValidationError):
        validate_window("2024-02-01", "2024-01-31")
    with pytest.raises(ValidationError):
        validate_window(None, "2024-01-31")

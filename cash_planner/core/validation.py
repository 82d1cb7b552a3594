# cash_planner/core/validation.py
"""Validation and normalization of transaction records.

Every path that writes a record (``add``, ``update``, suggestion ingestion and
YAML import) funnels the incoming mapping through :func:`parse_transaction`,
so a record that reaches the store or the recurrence engine always satisfies
the data-model invariants.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from collections.abc import Iterable, Mapping
from typing import Any, Dict, Optional

from cash_planner.core.models import (
    FREQUENCIES,
    OVERRIDE_FIELDS,
    TRANSACTION_TYPES,
    Modification,
    TransactionRecord,
)
from cash_planner.errors import ValidationError

# Upper bound on interval (1000 months is already over 83 years).
MAX_INTERVAL = 1000

# wire name -> accepted aliases (YAML imports use snake_case)
_ALIASES = {
    "startDate": ("startDate", "start_date"),
    "endDate": ("endDate", "end_date"),
    "skipDates": ("skipDates", "skip_dates"),
}


def _lookup(payload: Mapping[str, Any], key: str, default: Any = None) -> Any:
    for alias in _ALIASES.get(key, (key,)):
        if alias in payload:
            return payload[alias]
    return default


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD), got {value!r}")


def parse_optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_date(value, field_name)


def parse_amount(value: Any, field_name: str = "amount") -> float:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be numeric, got {value!r}")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}") from None
    if math.isnan(amount) or math.isinf(amount):
        raise ValidationError(f"{field_name} must be a finite number, got {value!r}")
    return amount


def parse_type(value: Any, field_name: str = "type") -> str:
    if value not in TRANSACTION_TYPES:
        raise ValidationError(
            f"{field_name} must be one of {', '.join(TRANSACTION_TYPES)}, got {value!r}"
        )
    return value


def parse_name(value: Any, field_name: str = "name") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def _parse_frequency(value: Any) -> str:
    if value not in FREQUENCIES:
        raise ValidationError(
            f"frequency must be one of {', '.join(FREQUENCIES)}, got {value!r}"
        )
    return value


def _parse_interval(value: Any) -> int:
    if value is None:
        return 1
    if isinstance(value, bool):
        raise ValidationError(f"interval must be a positive integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 1:
        raise ValidationError(f"interval must be a positive integer, got {value!r}")
    if value > MAX_INTERVAL:
        raise ValidationError(f"interval must be at most {MAX_INTERVAL}, got {value!r}")
    return value


def _parse_id(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError("id must be a non-empty string")
    text = str(value).strip()
    if not text:
        raise ValidationError("id must be a non-empty string")
    return text


def _parse_skip_dates(value: Any) -> frozenset:
    if value is None:
        return frozenset()
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValidationError("skipDates must be a list of ISO dates")
    return frozenset(parse_date(item, "skipDates entry") for item in value)


def parse_modification(value: Any, key: str) -> Modification:
    if not isinstance(value, Mapping):
        raise ValidationError(f"modification for {key} must be an object")
    unknown = set(value) - set(OVERRIDE_FIELDS)
    if unknown:
        raise ValidationError(
            f"modification for {key} has unsupported fields: {', '.join(sorted(unknown))}"
        )
    return Modification(
        name=parse_name(value["name"], f"modifications[{key}].name")
        if value.get("name") is not None
        else None,
        amount=parse_amount(value["amount"], f"modifications[{key}].amount")
        if value.get("amount") is not None
        else None,
        type=parse_type(value["type"], f"modifications[{key}].type")
        if value.get("type") is not None
        else None,
    )


def _parse_modifications(value: Any) -> Dict[date, Modification]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationError("modifications must be an object keyed by ISO date")
    parsed: Dict[date, Modification] = {}
    for key, override in value.items():
        when = parse_date(key, "modifications key")
        parsed[when] = parse_modification(override, when.isoformat())
    return parsed


def parse_transaction(
    payload: Any,
    *,
    tx_id: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> TransactionRecord:
    """Build a :class:`TransactionRecord` from a wire-shaped mapping.

    Parameters
    ----------
    payload:
        Mapping in the wire shape (camelCase keys; snake_case date keys are
        accepted as well).
    tx_id:
        Identifier to use instead of ``payload["id"]`` (update paths take the
        id from the URL, not from the body).
    owner_id:
        Owner stamped onto the returned record.

    Raises
    ------
    ValidationError
        When a required field is absent or any field is malformed.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("transaction must be an object")

    raw_id = tx_id if tx_id is not None else payload.get("id")
    if raw_id is None:
        raise ValidationError("id is required")
    for required in ("name", "amount", "type", "startDate", "frequency"):
        if _lookup(payload, required) is None:
            raise ValidationError(f"{required} is required")

    start = parse_date(_lookup(payload, "startDate"), "startDate")
    end = parse_optional_date(_lookup(payload, "endDate"), "endDate")
    if end is not None and end < start:
        raise ValidationError("endDate must be on or after startDate")

    return TransactionRecord(
        id=_parse_id(raw_id),
        owner_id=owner_id,
        name=parse_name(payload.get("name")),
        amount=parse_amount(payload.get("amount")),
        type=parse_type(payload.get("type")),
        start_date=start,
        frequency=_parse_frequency(payload.get("frequency")),
        interval=_parse_interval(payload.get("interval")),
        end_date=end,
        skip_dates=_parse_skip_dates(_lookup(payload, "skipDates")),
        modifications=_parse_modifications(payload.get("modifications")),
    )


def validate_window(start: Any, end: Any) -> tuple:
    """Parse and order-check a closed ``[start, end]`` query window."""
    window_start = parse_date(start, "start")
    window_end = parse_date(end, "end")
    if window_start > window_end:
        raise ValidationError("start must be on or before end")
    return window_start, window_end

# cash_planner/suggestions.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, List, Mapping

from cash_planner.core.models import TransactionRecord
from cash_planner.database import add_transactions
from cash_planner.errors import ValidationError

logger = logging.getLogger(__name__)


def _default_id() -> str:
    return str(uuid.uuid4())


def ingest_suggestions(
    db_path: str,
    owner_id: str,
    items: Any,
    id_factory: Callable[[], str] = _default_id,
) -> List[TransactionRecord]:
    """Persist suggested transactions after the same validation as ``add``.

    Suggested items usually lack an ``id``; one is generated for them. The
    batch is all or nothing: a single malformed item rejects the whole set and
    nothing is written.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list of transactions")

    payloads = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"suggestion {position} must be an object")
        payload = dict(item)
        if not payload.get("id"):
            payload["id"] = id_factory()
        payloads.append(payload)

    try:
        records = add_transactions(db_path, owner_id, payloads)
    except ValidationError as exc:
        logger.warning("Rejected suggested transactions for owner %s: %s", owner_id, exc)
        raise
    logger.info("Ingested %d suggested transaction(s) for owner %s", len(records), owner_id)
    return records

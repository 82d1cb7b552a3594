# cash_planner/database.py
"""SQLite-backed transaction store.

Every operation opens its own connection, performs its read or write as a
single statement (or a single SQLite transaction for batches) filtered by
``owner_id``, and closes the connection before returning.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from cash_planner.core.models import TransactionRecord
from cash_planner.core.validation import parse_date, parse_modification, parse_transaction
from cash_planner.errors import DuplicateId, NotFound, ValidationError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, owner_id, name, amount, type, start_date, frequency, interval, "
    "end_date, skip_dates, modifications"
)


def _init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            name TEXT NOT NULL,
            amount REAL NOT NULL,
            type TEXT NOT NULL,
            start_date TEXT NOT NULL,
            frequency TEXT NOT NULL DEFAULT 'none',
            interval INTEGER NOT NULL DEFAULT 1,
            end_date TEXT,
            skip_dates TEXT NOT NULL DEFAULT '[]',
            modifications TEXT NOT NULL DEFAULT '{}'
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_owner ON transactions (owner_id)"
    )
    conn.commit()


def connect(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    _init_db(conn)
    return conn


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------

def record_to_dict(record: TransactionRecord) -> Dict[str, Any]:
    """Return the wire shape of ``record``."""
    return {
        "id": record.id,
        "name": record.name,
        "amount": record.amount,
        "type": record.type,
        "startDate": record.start_date.isoformat(),
        "frequency": record.frequency,
        "interval": record.interval,
        "endDate": record.end_date.isoformat() if record.end_date else None,
        "skipDates": [d.isoformat() for d in sorted(record.skip_dates)],
        "modifications": {
            d.isoformat(): mod.to_dict()
            for d, mod in sorted(record.modifications.items())
        },
    }


def record_to_row(record: TransactionRecord) -> tuple:
    wire = record_to_dict(record)
    return (
        record.id,
        record.owner_id,
        record.name,
        float(record.amount),
        record.type,
        wire["startDate"],
        record.frequency,
        record.interval,
        wire["endDate"],
        json.dumps(wire["skipDates"]),
        json.dumps(wire["modifications"], sort_keys=True),
    )


def row_to_record(row: Mapping[str, Any]) -> TransactionRecord:
    skip_dates = json.loads(row["skip_dates"] or "[]")
    modifications = json.loads(row["modifications"] or "{}")
    return TransactionRecord(
        id=row["id"],
        owner_id=row["owner_id"],
        name=row["name"],
        amount=float(row["amount"]),
        type=row["type"],
        start_date=date.fromisoformat(row["start_date"]),
        frequency=row["frequency"] or "none",
        interval=int(row["interval"] or 1),
        end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
        skip_dates=frozenset(parse_date(d, "skip_dates") for d in skip_dates),
        modifications={
            parse_date(key, "modifications"): parse_modification(value, key)
            for key, value in modifications.items()
        },
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def add_transaction(db_path: str, owner_id: str, payload: Mapping[str, Any]) -> TransactionRecord:
    """Validate and insert one record owned by ``owner_id``.

    Raises
    ------
    ValidationError
        If the payload is malformed.
    DuplicateId
        If a record with the same id already exists (for any owner).
    """
    return add_transactions(db_path, owner_id, [payload])[0]


def add_transactions(
    db_path: str,
    owner_id: str,
    payloads: Iterable[Mapping[str, Any]],
) -> List[TransactionRecord]:
    """Validate every payload, then insert them all in one transaction.

    Nothing is written unless every payload is valid and every id is free.
    """
    payloads = list(payloads)
    if not payloads:
        return []
    records = []
    for position, payload in enumerate(payloads):
        try:
            records.append(parse_transaction(payload, owner_id=owner_id))
        except ValidationError as exc:
            if len(payloads) == 1:
                raise
            raise ValidationError(f"transaction {position}: {exc.message}") from exc

    conn = connect(db_path)
    try:
        with conn:
            for record in records:
                try:
                    conn.execute(
                        f"INSERT INTO transactions ({_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        record_to_row(record),
                    )
                except sqlite3.IntegrityError:
                    raise DuplicateId(f"Transaction id already exists: {record.id}") from None
    finally:
        conn.close()

    for record in records:
        logger.info("Added transaction %s for owner %s", record.id, owner_id)
    return records


def list_transactions(db_path: str, owner_id: str) -> List[TransactionRecord]:
    """Return every record owned by ``owner_id``."""
    conn = connect(db_path)
    try:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM transactions WHERE owner_id = ? "
            "ORDER BY start_date, id",
            (owner_id,),
        ).fetchall()
        return [row_to_record(r) for r in rows]
    finally:
        conn.close()


def get_transaction(db_path: str, tx_id: str, owner_id: str) -> TransactionRecord:
    conn = connect(db_path)
    try:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM transactions WHERE id = ? AND owner_id = ?",
            (tx_id, owner_id),
        ).fetchone()
    finally:
        conn.close()
    if row is None:
        raise NotFound(f"Transaction not found: {tx_id}")
    return row_to_record(row)


def update_transaction(
    db_path: str,
    tx_id: str,
    owner_id: str,
    payload: Mapping[str, Any],
) -> TransactionRecord:
    """Replace every mutable field of ``tx_id`` if ``owner_id`` owns it.

    The ownership check and the write are the same ``UPDATE`` statement.
    """
    record = parse_transaction(payload, tx_id=tx_id, owner_id=owner_id)
    row = record_to_row(record)
    conn = connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                """
                UPDATE transactions
                SET name = ?, amount = ?, type = ?, start_date = ?, frequency = ?,
                    interval = ?, end_date = ?, skip_dates = ?, modifications = ?
                WHERE id = ? AND owner_id = ?
                """,
                row[2:] + (record.id, owner_id),
            )
            updated = cursor.rowcount
    finally:
        conn.close()
    if not updated:
        raise NotFound(f"Transaction not found: {tx_id}")
    logger.info("Updated transaction %s for owner %s", tx_id, owner_id)
    return record


def delete_transaction(db_path: str, tx_id: str, owner_id: str) -> None:
    conn = connect(db_path)
    try:
        with conn:
            cursor = conn.execute(
                "DELETE FROM transactions WHERE id = ? AND owner_id = ?",
                (tx_id, owner_id),
            )
            deleted = cursor.rowcount
    finally:
        conn.close()
    if not deleted:
        raise NotFound(f"Transaction not found: {tx_id}")
    logger.info("Deleted transaction %s for owner %s", tx_id, owner_id)

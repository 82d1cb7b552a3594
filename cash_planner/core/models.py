# cash_planner/core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Literal, Optional

TransactionType = Literal["income", "expense"]
Frequency = Literal["none", "days", "weeks", "months"]

TRANSACTION_TYPES = ("income", "expense")
FREQUENCIES = ("none", "days", "weeks", "months")
OVERRIDE_FIELDS = ("name", "amount", "type")


@dataclass(frozen=True)
class Modification:
    """Partial override applied to the occurrence on a single date."""

    name: Optional[str] = None
    amount: Optional[float] = None
    type: Optional[TransactionType] = None

    def to_dict(self) -> dict:
        return {
            key: getattr(self, key)
            for key in OVERRIDE_FIELDS
            if getattr(self, key) is not None
        }


@dataclass
class TransactionRecord:
    id: str
    name: str
    amount: float
    type: TransactionType
    start_date: date
    frequency: Frequency = "none"
    interval: int = 1
    end_date: Optional[date] = None
    skip_dates: FrozenSet[date] = field(default_factory=frozenset)
    modifications: Dict[date, Modification] = field(default_factory=dict)
    owner_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency != "none"


@dataclass(frozen=True)
class Occurrence:
    transaction_id: str
    date: date
    name: str
    amount: float
    type: TransactionType
    modified: bool = False

    @property
    def signed_amount(self) -> float:
        """Amount with the sign implied by ``type``; the stored sign is ignored."""
        magnitude = abs(float(self.amount))
        return magnitude if self.type == "income" else -magnitude

    def to_dict(self) -> dict:
        return {
            "transactionId": self.transaction_id,
            "date": self.date.isoformat(),
            "name": self.name,
            "amount": self.amount,
            "type": self.type,
            "modified": self.modified,
        }

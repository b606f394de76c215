"""
Millstone Command Layer — Transaction Outcome
==============================================
Every submitted transaction produces exactly one outcome.

ACCEPTED → applied; the outcome names the record it produced.
REJECTED → refused; reason is mandatory and state is unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from core.commands.rejection import RejectionReason


class CommandStatus(Enum):
    """Binary decision. No middle ground."""
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class CommandOutcome:
    """
    Deterministic result of submitting a transaction to the ledger.

    Invariants:
        - REJECTED + reason is None → ValueError
        - ACCEPTED + reason is not None → ValueError
    """

    transaction_type: str
    status: CommandStatus
    occurred_at: datetime
    reference_id: Optional[str] = None
    reason: Optional[RejectionReason] = None
    ledger_version: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.status, CommandStatus):
            raise ValueError(
                f"status must be CommandStatus, got {type(self.status).__name__}."
            )

        if self.status == CommandStatus.REJECTED and self.reason is None:
            raise ValueError(
                "REJECTED outcome must include a RejectionReason. "
                "No silent rejections allowed."
            )

        if self.status == CommandStatus.ACCEPTED and self.reason is not None:
            raise ValueError(
                "ACCEPTED outcome must NOT include a RejectionReason."
            )

    @property
    def is_accepted(self) -> bool:
        return self.status == CommandStatus.ACCEPTED

    @property
    def is_rejected(self) -> bool:
        return self.status == CommandStatus.REJECTED

    @classmethod
    def accepted(
        cls,
        transaction_type: str,
        occurred_at: datetime,
        reference_id: Optional[str],
        ledger_version: int,
    ) -> "CommandOutcome":
        return cls(
            transaction_type=transaction_type,
            status=CommandStatus.ACCEPTED,
            occurred_at=occurred_at,
            reference_id=reference_id,
            ledger_version=ledger_version,
        )

    @classmethod
    def rejected(
        cls,
        transaction_type: str,
        occurred_at: datetime,
        reason: RejectionReason,
        ledger_version: Optional[int] = None,
    ) -> "CommandOutcome":
        return cls(
            transaction_type=transaction_type,
            status=CommandStatus.REJECTED,
            occurred_at=occurred_at,
            reason=reason,
            ledger_version=ledger_version,
        )

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "status": self.status.value,
            "occurred_at": self.occurred_at.isoformat(),
            "reference_id": self.reference_id,
            "reason": self.reason.to_dict() if self.reason else None,
            "ledger_version": self.ledger_version,
        }

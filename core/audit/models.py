"""
Millstone Core Audit — Audit Entry Model
==========================================
One immutable entry per quantity movement on one (item, partition)
balance. Entries carry both the signed quantity delta and the signed
value delta so folding the trail from an empty ledger reproduces every
balance, cost basis included.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from core.primitives.item import StockPartition, parse_partition


class AuditKind(Enum):
    RECEIVE = "RECEIVE"
    PRODUCE_CONSUME = "PRODUCE_CONSUME"
    PRODUCE_OUTPUT = "PRODUCE_OUTPUT"
    PACK_CONSUME = "PACK_CONSUME"
    PACK_OUTPUT = "PACK_OUTPUT"
    DISPATCH = "DISPATCH"
    ADJUST = "ADJUST"


INBOUND_KINDS = frozenset({
    AuditKind.RECEIVE,
    AuditKind.PRODUCE_OUTPUT,
    AuditKind.PACK_OUTPUT,
})

OUTBOUND_KINDS = frozenset({
    AuditKind.PRODUCE_CONSUME,
    AuditKind.PACK_CONSUME,
    AuditKind.DISPATCH,
})


@dataclass(frozen=True)
class LotDraw:
    """Quantity taken from one lot."""
    lot_number: str
    quantity: Decimal

    def to_dict(self) -> dict:
        return {"lot_number": self.lot_number, "quantity": str(self.quantity)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LotDraw":
        return cls(lot_number=data["lot_number"], quantity=Decimal(data["quantity"]))


@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable audit record.

    Fields:
        sequence:        Position in the trail (1-based). 0 until appended.
        entry_id:        Stable id assigned on append ("AUD-000001").
        occurred_at:     Timestamp of the transaction that produced it.
        kind:            AuditKind.
        item_id:         Balance affected.
        partition:       IN_HOUSE or THIRD_PARTY.
        quantity_delta:  Signed, non-zero.
        value_delta:     Signed value the balance gained or lost. Inbound
                         entries carry what the balance actually booked
                         (after the average is rounded), so summing
                         value deltas gives the ledger valuation.
        reference_id:    GRN, batch, pack run, dispatch or adjustment id.
        description:     Human-readable summary.
        lot_number:      Lot created (inbound) or first lot drawn.
        reason_code:     Adjustment reason. ADJUST entries only.
        unit_cost:       Incoming unit cost of the lot created. Inbound only.
        lot_draws:       Every lot an outbound movement drew from.
    """

    occurred_at: datetime
    kind: AuditKind
    item_id: str
    partition: StockPartition
    quantity_delta: Decimal
    value_delta: Decimal
    reference_id: str
    description: str
    lot_number: Optional[str] = None
    reason_code: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    lot_draws: Tuple[LotDraw, ...] = ()
    sequence: int = 0
    entry_id: str = ""

    def __post_init__(self):
        if not isinstance(self.kind, AuditKind):
            raise ValueError(f"kind must be AuditKind, got {type(self.kind).__name__}.")
        if self.quantity_delta == 0:
            raise ValueError("Audit entries record movements; quantity_delta cannot be zero.")
        if self.kind in INBOUND_KINDS and self.quantity_delta < 0:
            raise ValueError(f"{self.kind.value} entries must increase stock.")
        if self.kind in OUTBOUND_KINDS and self.quantity_delta > 0:
            raise ValueError(f"{self.kind.value} entries must decrease stock.")
        if self.kind == AuditKind.ADJUST and not self.reason_code:
            raise ValueError("ADJUST entries require a reason_code.")
        if not self.reference_id:
            raise ValueError("reference_id must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "entry_id": self.entry_id,
            "occurred_at": self.occurred_at.isoformat(),
            "kind": self.kind.value,
            "item_id": self.item_id,
            "partition": self.partition.value,
            "quantity_delta": str(self.quantity_delta),
            "value_delta": str(self.value_delta),
            "reference_id": self.reference_id,
            "description": self.description,
            "lot_number": self.lot_number,
            "reason_code": self.reason_code,
            "unit_cost": None if self.unit_cost is None else str(self.unit_cost),
            "lot_draws": [draw.to_dict() for draw in self.lot_draws],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditEntry":
        return cls(
            sequence=int(data.get("sequence", 0)),
            entry_id=str(data.get("entry_id", "")),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
            kind=AuditKind(data["kind"]),
            item_id=data["item_id"],
            partition=parse_partition(data.get("partition")),
            quantity_delta=Decimal(data["quantity_delta"]),
            value_delta=Decimal(data["value_delta"]),
            reference_id=data["reference_id"],
            description=data.get("description", ""),
            lot_number=data.get("lot_number"),
            reason_code=data.get("reason_code"),
            unit_cost=None if data.get("unit_cost") is None else Decimal(data["unit_cost"]),
            lot_draws=tuple(LotDraw.from_dict(d) for d in data.get("lot_draws") or ()),
        )

"""
Millstone Inventory — Transaction Records and State Machines
==============================================================
Immutable records produced by accepted transactions: goods receipts,
production batches, packing runs, dispatches and adjustments.

Production batch:  PLANNED → IN_PROGRESS → COMPLETED
Packing run:       CREATED → COMPLETED

Transitions are one-directional and COMPLETED is terminal. Reversal
happens only through compensating stock adjustments.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from core.errors import InvalidTransition
from core.primitives.item import StockPartition
from engines.inventory.commands import GrnType, InHouse, PackingSource, ThirdParty

ZERO = Decimal("0")


# ══════════════════════════════════════════════════════════════
# STATE MACHINES
# ══════════════════════════════════════════════════════════════

class BatchStatus(Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class PackingStatus(Enum):
    CREATED = "CREATED"
    COMPLETED = "COMPLETED"


BATCH_TRANSITIONS: Dict[BatchStatus, FrozenSet[BatchStatus]] = {
    BatchStatus.PLANNED: frozenset({BatchStatus.IN_PROGRESS}),
    BatchStatus.IN_PROGRESS: frozenset({BatchStatus.COMPLETED}),
    BatchStatus.COMPLETED: frozenset(),
}

PACKING_TRANSITIONS: Dict[PackingStatus, FrozenSet[PackingStatus]] = {
    PackingStatus.CREATED: frozenset({PackingStatus.COMPLETED}),
    PackingStatus.COMPLETED: frozenset(),
}


def check_batch_transition(batch: "ProductionBatch", target: BatchStatus) -> None:
    if target not in BATCH_TRANSITIONS[batch.status]:
        raise InvalidTransition(
            "Batch", batch.batch_id, batch.status.value, target.value
        )


def check_packing_transition(run: "PackingRun", target: PackingStatus) -> None:
    if target not in PACKING_TRANSITIONS[run.status]:
        raise InvalidTransition(
            "Packing run", run.pack_id, run.status.value, target.value
        )


# ══════════════════════════════════════════════════════════════
# GOODS RECEIPT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReceivedLine:
    item_id: str
    quantity: Decimal
    unit_price: Decimal
    lot_number: str
    partition: StockPartition

    @property
    def line_value(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class GoodsReceipt:
    grn_id: str
    supplier_id: str
    grn_type: GrnType
    invoice_no: str
    received_at: datetime
    lines: Tuple[ReceivedLine, ...]

    @property
    def total_value(self) -> Decimal:
        return sum((line.line_value for line in self.lines), ZERO)

    @property
    def lot_numbers(self) -> Tuple[str, ...]:
        return tuple(line.lot_number for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "grn_id": self.grn_id,
            "supplier_id": self.supplier_id,
            "grn_type": self.grn_type.value,
            "invoice_no": self.invoice_no,
            "received_at": self.received_at.isoformat(),
            "total_value": str(self.total_value),
            "lines": [
                {
                    "item_id": line.item_id,
                    "quantity": str(line.quantity),
                    "unit_price": str(line.unit_price),
                    "lot_number": line.lot_number,
                    "partition": line.partition.value,
                }
                for line in self.lines
            ],
        }


# ══════════════════════════════════════════════════════════════
# PRODUCTION BATCH
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ConsumedMaterial:
    item_id: str
    standard_qty: Decimal
    actual_qty: Optional[Decimal] = None
    unit_cost_at_issue: Optional[Decimal] = None
    unit_cost_at_consumption: Optional[Decimal] = None
    consumed_value: Optional[Decimal] = None

    @property
    def variance(self) -> Optional[Decimal]:
        """actual - standard; positive means over-issue."""
        if self.actual_qty is None:
            return None
        return self.actual_qty - self.standard_qty


@dataclass(frozen=True)
class ProductionBatch:
    """
    Derived on completion:
        total_input_cost:  sum of values deducted at consumption
        cost_per_unit:     total_input_cost / actual_output
        yield_percent:     actual_output / total_input x 100
        unaccounted_loss:  total_input - actual_output - wastage
    """

    batch_id: str
    recipe_id: str
    output_item_id: str
    status: BatchStatus
    planned_quantity: Decimal
    planned_at: datetime
    materials: Tuple[ConsumedMaterial, ...]
    issued_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    actual_output: Optional[Decimal] = None
    wastage: Optional[Decimal] = None
    total_input_cost: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    yield_percent: Optional[Decimal] = None
    unaccounted_loss: Optional[Decimal] = None

    @property
    def total_input(self) -> Decimal:
        return sum((m.actual_qty or ZERO for m in self.materials), ZERO)

    @property
    def is_completed(self) -> bool:
        return self.status == BatchStatus.COMPLETED

    def replace(self, **changes) -> "ProductionBatch":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "recipe_id": self.recipe_id,
            "output_item_id": self.output_item_id,
            "status": self.status.value,
            "planned_quantity": str(self.planned_quantity),
            "planned_at": self.planned_at.isoformat(),
            "issued_at": _iso(self.issued_at),
            "completed_at": _iso(self.completed_at),
            "total_input": str(self.total_input),
            "actual_output": _str(self.actual_output),
            "wastage": _str(self.wastage),
            "total_input_cost": _str(self.total_input_cost),
            "cost_per_unit": _str(self.cost_per_unit),
            "yield_percent": _str(self.yield_percent),
            "unaccounted_loss": _str(self.unaccounted_loss),
            "materials": [
                {
                    "item_id": m.item_id,
                    "standard_qty": str(m.standard_qty),
                    "actual_qty": _str(m.actual_qty),
                    "unit_cost_at_issue": _str(m.unit_cost_at_issue),
                    "unit_cost_at_consumption": _str(m.unit_cost_at_consumption),
                    "consumed_value": _str(m.consumed_value),
                }
                for m in self.materials
            ],
        }


# ══════════════════════════════════════════════════════════════
# PACKING RUN
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PackingMaterialUsage:
    item_id: str
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class PackingRun:
    pack_id: str
    source: PackingSource
    bulk_item_id: str
    bulk_partition: StockPartition
    bulk_quantity: Decimal
    bulk_cost: Decimal
    packing_materials: Tuple[PackingMaterialUsage, ...]
    output_item_id: str
    units_produced: Decimal
    total_cost: Decimal
    cost_per_unit: Decimal
    packed_at: datetime
    lot_numbers: Tuple[str, ...] = ()
    pack_mode: Optional[str] = None
    status: PackingStatus = PackingStatus.CREATED

    @property
    def source_reference(self) -> str:
        if isinstance(self.source, InHouse):
            return self.source.batch_id
        if isinstance(self.source, ThirdParty):
            return self.source.grn_id
        raise TypeError(f"Unknown packing source {self.source!r}")

    def replace(self, **changes) -> "PackingRun":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "pack_id": self.pack_id,
            "status": self.status.value,
            "source": self.source.to_dict(),
            "bulk_item_id": self.bulk_item_id,
            "bulk_partition": self.bulk_partition.value,
            "bulk_quantity": str(self.bulk_quantity),
            "bulk_cost": str(self.bulk_cost),
            "packing_materials": [
                {
                    "item_id": m.item_id,
                    "quantity": str(m.quantity),
                    "unit_cost": str(m.unit_cost),
                    "total_cost": str(m.total_cost),
                }
                for m in self.packing_materials
            ],
            "output_item_id": self.output_item_id,
            "units_produced": str(self.units_produced),
            "total_cost": str(self.total_cost),
            "cost_per_unit": str(self.cost_per_unit),
            "packed_at": self.packed_at.isoformat(),
            "lot_numbers": list(self.lot_numbers),
            "pack_mode": self.pack_mode,
        }


# ══════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DispatchedLine:
    item_id: str
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal

    @property
    def line_value(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def line_cost(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class DispatchOrder:
    """cost_of_goods and margin are report values; the ledger never stores them."""

    dispatch_id: str
    customer_id: str
    dispatched_at: datetime
    lines: Tuple[DispatchedLine, ...]

    @property
    def total_value(self) -> Decimal:
        return sum((line.line_value for line in self.lines), ZERO)

    @property
    def cost_of_goods(self) -> Decimal:
        return sum((line.line_cost for line in self.lines), ZERO)

    @property
    def margin(self) -> Decimal:
        return self.total_value - self.cost_of_goods

    def to_dict(self) -> dict:
        return {
            "dispatch_id": self.dispatch_id,
            "customer_id": self.customer_id,
            "dispatched_at": self.dispatched_at.isoformat(),
            "total_value": str(self.total_value),
            "cost_of_goods": str(self.cost_of_goods),
            "margin": str(self.margin),
            "lines": [
                {
                    "item_id": line.item_id,
                    "quantity": str(line.quantity),
                    "unit_price": str(line.unit_price),
                    "unit_cost": str(line.unit_cost),
                }
                for line in self.lines
            ],
        }


# ══════════════════════════════════════════════════════════════
# ADJUSTMENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StockAdjustment:
    adjustment_id: str
    item_id: str
    partition: StockPartition
    quantity_delta: Decimal
    value_delta: Decimal
    reason_code: str
    adjusted_at: datetime
    reference_id: Optional[str] = None
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "adjustment_id": self.adjustment_id,
            "item_id": self.item_id,
            "partition": self.partition.value,
            "quantity_delta": str(self.quantity_delta),
            "value_delta": str(self.value_delta),
            "reason_code": self.reason_code,
            "adjusted_at": self.adjusted_at.isoformat(),
            "reference_id": self.reference_id,
            "notes": self.notes,
        }


def _str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()

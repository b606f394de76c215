"""
Millstone Inventory — Audit Entry Builders
============================================
One builder per audit kind. Builders only shape entries; the engine
decides quantities and values, the trail assigns sequence numbers.

Inbound builders take the value the balance booked and the incoming
unit cost of the lot they create. Outbound builders take the lot
draws the deduction made.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from core.audit.models import AuditEntry, AuditKind, LotDraw
from core.primitives.item import StockPartition


def _entry(
    kind: AuditKind,
    occurred_at: datetime,
    item_id: str,
    partition: StockPartition,
    quantity_delta: Decimal,
    value_delta: Decimal,
    reference_id: str,
    description: str,
    lot_number: Optional[str] = None,
    reason_code: Optional[str] = None,
    unit_cost: Optional[Decimal] = None,
    lot_draws: Tuple[LotDraw, ...] = (),
) -> AuditEntry:
    return AuditEntry(
        occurred_at=occurred_at,
        kind=kind,
        item_id=item_id,
        partition=partition,
        quantity_delta=quantity_delta,
        value_delta=value_delta,
        reference_id=reference_id,
        description=description,
        lot_number=lot_number,
        reason_code=reason_code,
        unit_cost=unit_cost,
        lot_draws=tuple(lot_draws),
    )


def _first_lot(draws: Tuple[LotDraw, ...]) -> Optional[str]:
    return draws[0].lot_number if draws else None


def build_receive_entry(
    occurred_at, item_id, partition, quantity, value, unit_cost, grn_id, supplier_id, lot_number,
):
    return _entry(
        AuditKind.RECEIVE, occurred_at, item_id, partition, quantity, value, grn_id,
        f"Received {quantity} from {supplier_id} on {grn_id}",
        lot_number=lot_number,
        unit_cost=unit_cost,
    )


def build_produce_consume_entry(occurred_at, item_id, quantity, value, batch_id, draws):
    return _entry(
        AuditKind.PRODUCE_CONSUME, occurred_at, item_id, StockPartition.IN_HOUSE,
        -quantity, -value, batch_id,
        f"Consumed {quantity} in batch {batch_id}",
        lot_number=_first_lot(draws),
        lot_draws=draws,
    )


def build_produce_output_entry(occurred_at, item_id, quantity, value, unit_cost, batch_id):
    return _entry(
        AuditKind.PRODUCE_OUTPUT, occurred_at, item_id, StockPartition.IN_HOUSE,
        quantity, value, batch_id,
        f"Produced {quantity} in batch {batch_id}",
        lot_number=batch_id,
        unit_cost=unit_cost,
    )


def build_pack_consume_entry(occurred_at, item_id, partition, quantity, value, pack_id, draws):
    return _entry(
        AuditKind.PACK_CONSUME, occurred_at, item_id, partition,
        -quantity, -value, pack_id,
        f"Consumed {quantity} in packing run {pack_id}",
        lot_number=_first_lot(draws),
        lot_draws=draws,
    )


def build_pack_output_entry(occurred_at, item_id, quantity, value, unit_cost, pack_id):
    return _entry(
        AuditKind.PACK_OUTPUT, occurred_at, item_id, StockPartition.IN_HOUSE,
        quantity, value, pack_id,
        f"Packed {quantity} units in packing run {pack_id}",
        lot_number=pack_id,
        unit_cost=unit_cost,
    )


def build_dispatch_entry(occurred_at, item_id, quantity, value, dispatch_id, customer_id, draws):
    return _entry(
        AuditKind.DISPATCH, occurred_at, item_id, StockPartition.IN_HOUSE,
        -quantity, -value, dispatch_id,
        f"Dispatched {quantity} to {customer_id} on {dispatch_id}",
        lot_number=_first_lot(draws),
        lot_draws=draws,
    )


def build_adjust_entry(
    occurred_at, item_id, partition, quantity_delta, value_delta,
    adjustment_id, reason_code, notes="", lot_number=None, unit_cost=None, draws=(),
):
    """
    Either direction. Increases pass the lot they created and its unit
    cost; decreases pass their draws and lot_number is taken from them.
    """
    description = f"Adjusted {quantity_delta} ({reason_code})"
    if notes:
        description = f"{description}: {notes}"
    return _entry(
        AuditKind.ADJUST, occurred_at, item_id, partition,
        quantity_delta, value_delta, adjustment_id, description,
        lot_number=lot_number or _first_lot(draws),
        reason_code=reason_code,
        unit_cost=unit_cost,
        lot_draws=draws,
    )

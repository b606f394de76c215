"""
Millstone Inventory — Stock Ledger
====================================
One balance per (item_id, partition): quantity on hand and
weighted-average unit cost.

RULES (NON-NEGOTIABLE):
- All arithmetic is Decimal (no floats)
- Positive delta: weighted-average merge of incoming value
- Negative delta: deduct current_avg x |delta|; average unchanged
- Zero delta: no-op
- Quantity never drops below zero. The engine validates sufficiency
  first; the clamp here is a floor that logs at ERROR when it fires.

Lots are kept alongside balances for traceability only and never
influence valuation. They are depleted oldest first, optionally
limited to the lots one reference (a batch or a GRN) created.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from core.audit.models import LotDraw
from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.errors import LedgerInvariantViolation, ValidationError
from core.primitives.item import StockPartition

logger = logging.getLogger("millstone.ledger")

ZERO = Decimal("0")

BalanceKey = Tuple[str, StockPartition]


# ══════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StockBalance:
    item_id: str
    partition: StockPartition
    quantity: Decimal = ZERO
    weighted_avg_cost: Decimal = ZERO

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.weighted_avg_cost

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "partition": self.partition.value,
            "quantity": str(self.quantity),
            "weighted_avg_cost": str(self.weighted_avg_cost),
            "total_value": str(self.total_value),
        }


@dataclass
class _LotEntry:
    """
    Internal mutable lot entry (not exposed externally).
    quantity_remaining decreases as the lot is drawn.
    """
    lot_number: str
    reference_id: str
    quantity_original: Decimal
    quantity_remaining: Decimal
    unit_cost: Decimal
    received_at: datetime


@dataclass(frozen=True)
class StockLot:
    """Immutable snapshot of a lot (for read queries)."""
    lot_number: str
    item_id: str
    partition: StockPartition
    reference_id: str
    quantity_original: Decimal
    quantity_remaining: Decimal
    unit_cost: Decimal
    received_at: datetime

    @property
    def is_exhausted(self) -> bool:
        return self.quantity_remaining <= 0

    def to_dict(self) -> dict:
        return {
            "lot_number": self.lot_number,
            "item_id": self.item_id,
            "partition": self.partition.value,
            "reference_id": self.reference_id,
            "quantity_original": str(self.quantity_original),
            "quantity_remaining": str(self.quantity_remaining),
            "unit_cost": str(self.unit_cost),
            "received_at": self.received_at.isoformat(),
        }


# ══════════════════════════════════════════════════════════════
# STOCK LEDGER
# ══════════════════════════════════════════════════════════════

class StockLedger:
    """
    Balances and lots for every (item_id, partition).

    A StockLedger is mutated only by the transaction engine, and only
    on a copy of the live snapshot.
    """

    def __init__(self, config: LedgerConfig = DEFAULT_LEDGER_CONFIG):
        self._config = config
        self._balances: Dict[BalanceKey, StockBalance] = {}
        self._lots: Dict[BalanceKey, List[_LotEntry]] = {}

    @property
    def config(self) -> LedgerConfig:
        return self._config

    def copy(self) -> "StockLedger":
        clone = StockLedger(self._config)
        clone._balances = dict(self._balances)
        clone._lots = copy.deepcopy(self._lots)
        return clone

    # ── balances ──────────────────────────────────────────────

    def get(
        self,
        item_id: str,
        partition: StockPartition = StockPartition.IN_HOUSE,
    ) -> StockBalance:
        balance = self._balances.get((item_id, partition))
        if balance is None:
            return StockBalance(item_id=item_id, partition=partition)
        return balance

    def available(
        self,
        item_id: str,
        partition: StockPartition = StockPartition.IN_HOUSE,
    ) -> Decimal:
        return self.get(item_id, partition).quantity

    def deduction_value(
        self,
        item_id: str,
        quantity: Decimal,
        partition: StockPartition = StockPartition.IN_HOUSE,
    ) -> Decimal:
        """Value that deducting `quantity` now would remove."""
        return self.get(item_id, partition).weighted_avg_cost * quantity

    def apply(
        self,
        item_id: str,
        quantity_delta: Decimal,
        value_delta: Decimal = ZERO,
        partition: StockPartition = StockPartition.IN_HOUSE,
    ) -> StockBalance:
        """
        Apply one movement and return the new balance.

        value_delta is only read for increases. Decreases always leave at
        the current weighted average. An increase may carry a small
        negative value (rounding residue of a zero-cost receipt) but may
        not take the balance value below zero.
        """
        current = self.get(item_id, partition)
        if quantity_delta == 0:
            return current

        if quantity_delta > 0:
            if current.total_value + value_delta < 0:
                raise ValidationError(
                    f"Incoming value for '{item_id}' cannot be negative.",
                    item_id=item_id,
                )
            new_qty = current.quantity + quantity_delta
            new_avg = self._config.cost(
                (current.total_value + value_delta) / new_qty
            )
            updated = StockBalance(item_id, partition, new_qty, new_avg)
        else:
            take = -quantity_delta
            if take > current.quantity:
                logger.error(
                    f"Stock clamp fired for {item_id}/{partition.value}: "
                    f"deduct {take} from {current.quantity}"
                )
                take = current.quantity
            updated = StockBalance(
                item_id,
                partition,
                current.quantity - take,
                current.weighted_avg_cost,
            )

        self._balances[(item_id, partition)] = updated
        return updated

    def balances(self) -> Iterator[StockBalance]:
        for key in sorted(self._balances, key=lambda k: (k[0], k[1].value)):
            yield self._balances[key]

    def total_value(self) -> Decimal:
        return sum((b.total_value for b in self._balances.values()), ZERO)

    # ── lots ──────────────────────────────────────────────────

    def receive_lot(
        self,
        item_id: str,
        partition: StockPartition,
        lot_number: str,
        quantity: Decimal,
        unit_cost: Decimal,
        received_at: datetime,
        reference_id: str,
    ) -> None:
        if quantity <= 0:
            raise ValidationError(f"Lot quantity must be positive, got {quantity}.")
        self._lots.setdefault((item_id, partition), []).append(_LotEntry(
            lot_number=lot_number,
            reference_id=reference_id,
            quantity_original=quantity,
            quantity_remaining=quantity,
            unit_cost=unit_cost,
            received_at=received_at,
        ))

    def available_in_reference(
        self,
        item_id: str,
        partition: StockPartition,
        reference_id: str,
    ) -> Decimal:
        """Quantity still held in the lots `reference_id` created."""
        return sum(
            (
                lot.quantity_remaining
                for lot in self._lots.get((item_id, partition), [])
                if lot.reference_id == reference_id
            ),
            ZERO,
        )

    def draw_lots(
        self,
        item_id: str,
        partition: StockPartition,
        quantity: Decimal,
        reference_id: Optional[str] = None,
    ) -> Tuple[LotDraw, ...]:
        """
        Deplete lots oldest first. Draws stop when lots run out.

        With reference_id, only lots created by that reference are drawn.
        """
        remaining = quantity
        draws: List[LotDraw] = []
        for lot in self._lots.get((item_id, partition), []):
            if remaining <= 0:
                break
            if lot.quantity_remaining <= 0:
                continue
            if reference_id is not None and lot.reference_id != reference_id:
                continue
            take = min(lot.quantity_remaining, remaining)
            lot.quantity_remaining -= take
            remaining -= take
            draws.append(LotDraw(lot_number=lot.lot_number, quantity=take))
        return tuple(draws)

    def draw_recorded(
        self,
        item_id: str,
        partition: StockPartition,
        draws: Tuple[LotDraw, ...],
    ) -> None:
        """Repeat draws taken earlier. Used when folding the audit trail."""
        lots = self._lots.get((item_id, partition), [])
        for draw in draws:
            lot = next(
                (
                    candidate for candidate in lots
                    if candidate.lot_number == draw.lot_number and candidate.quantity_remaining > 0
                ),
                None,
            )
            if lot is None or draw.quantity > lot.quantity_remaining:
                raise LedgerInvariantViolation(
                    f"draw of {draw.quantity} from lot {draw.lot_number} of "
                    f"{item_id}/{partition.value} exceeds what the lot holds"
                )
            lot.quantity_remaining -= draw.quantity

    def lots(
        self,
        item_id: str,
        partition: Optional[StockPartition] = None,
        include_exhausted: bool = False,
    ) -> List[StockLot]:
        partitions = list(StockPartition) if partition is None else [partition]
        result = []
        for part in partitions:
            for lot in self._lots.get((item_id, part), []):
                snapshot = StockLot(
                    lot_number=lot.lot_number,
                    item_id=item_id,
                    partition=part,
                    reference_id=lot.reference_id,
                    quantity_original=lot.quantity_original,
                    quantity_remaining=lot.quantity_remaining,
                    unit_cost=lot.unit_cost,
                    received_at=lot.received_at,
                )
                if include_exhausted or not snapshot.is_exhausted:
                    result.append(snapshot)
        return result

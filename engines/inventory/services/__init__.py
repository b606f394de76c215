"""
Millstone Inventory — Ledger Service
======================================
The owned ledger handle that hosts talk to.

Orchestrates:
1. Single-writer serialisation (one RLock) and optional
   compare-and-swap on the ledger version
2. Engine application against the current snapshot
3. Audit trail append and transaction log append
4. Projection updates from the new audit entries

Rejections propagate to the caller unchanged and leave every piece of
state exactly as it was. Projections run after the commit point: a
failing projection is logged and skipped, the transaction stands.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Tuple

from core.audit.models import AuditEntry
from core.audit.trail import AuditFilter, AuditTrail
from core.commands.outcomes import CommandOutcome
from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.errors import ConcurrencyConflict, LedgerInvariantViolation, LedgerRejection
from core.primitives.item import StockPartition, parse_partition
from core.primitives.units import to_decimal
from core.time.clock import Clock, get_default_clock
from engines.inventory.catalog import ItemCatalog, PackagingProfileCatalog, RecipeCatalog
from engines.inventory.commands import (
    AdjustStock,
    CompletePackingRun,
    CompleteProduction,
    DispatchGoods,
    DispatchLine,
    GrnType,
    IssueMaterials,
    LedgerTransaction,
    PackingMaterialLine,
    PackingSource,
    PlanProductionBatch,
    ReceiptLine,
    ReceiveGoods,
)
from engines.inventory.engine import LedgerState, TransactionEngine, TransactionResult
from engines.inventory.records import (
    DispatchOrder,
    GoodsReceipt,
    PackingRun,
    ProductionBatch,
    StockAdjustment,
)
from engines.inventory.replay import (
    TransactionLogEntry,
    replay_transactions,
    verify_ledger,
)
from engines.inventory.stock import StockBalance, StockLot

logger = logging.getLogger("millstone.ledger")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class AuditProjection(Protocol):
    def apply(self, entry: AuditEntry) -> None:
        ...


# ══════════════════════════════════════════════════════════════
# LINE COERCION (convenience API accepts plain mappings)
# ══════════════════════════════════════════════════════════════

def _receipt_line(line: Any) -> ReceiptLine:
    if isinstance(line, ReceiptLine):
        return line
    return ReceiptLine(
        item_id=line.get("item_id", ""),
        quantity=to_decimal(line.get("quantity"), "quantity"),
        unit_price=to_decimal(line.get("unit_price"), "unit_price"),
    )


def _dispatch_line(line: Any) -> DispatchLine:
    if isinstance(line, DispatchLine):
        return line
    return DispatchLine(
        item_id=line.get("item_id", ""),
        quantity=to_decimal(line.get("quantity"), "quantity"),
        unit_price=to_decimal(line.get("unit_price"), "unit_price"),
    )


def _packing_materials(materials: Any) -> Tuple[PackingMaterialLine, ...]:
    if isinstance(materials, Mapping):
        return tuple(
            PackingMaterialLine(item_id=item_id, quantity=to_decimal(qty, f"quantity for '{item_id}'"))
            for item_id, qty in materials.items()
        )
    return tuple(materials)


def _optional_decimal(value: Any, field_name: str) -> Optional[Decimal]:
    return None if value is None else to_decimal(value, field_name)


# ══════════════════════════════════════════════════════════════
# LEDGER SERVICE
# ══════════════════════════════════════════════════════════════

class LedgerService:
    """
    Single logical writer over one ledger.

    Every write method returns the TransactionResult of the accepted
    transaction (new snapshot, sequenced audit entries, produced record)
    and raises a LedgerRejection subclass when refused.
    """

    def __init__(
        self,
        items: ItemCatalog,
        recipes: RecipeCatalog,
        *,
        config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
        clock: Optional[Clock] = None,
        engine: Optional[TransactionEngine] = None,
        projections: Iterable[AuditProjection] = (),
        profiles: Optional[PackagingProfileCatalog] = None,
    ):
        self._config = config
        self._clock = clock or get_default_clock()
        self._engine = engine or TransactionEngine(items, recipes, config, profiles=profiles)
        self._state = LedgerState.empty(config)
        self._trail = AuditTrail()
        self._log: List[TransactionLogEntry] = []
        self._projections = list(projections)
        self._lock = threading.RLock()

    @classmethod
    def from_transaction_log(
        cls,
        items: ItemCatalog,
        recipes: RecipeCatalog,
        log: Iterable[TransactionLogEntry],
        **kwargs,
    ) -> "LedgerService":
        """Rebuild a service by replaying a persisted transaction log."""
        service = cls(items, recipes, **kwargs)
        log = list(log)
        state, entries = replay_transactions(service._engine, log)
        stored = service._trail.append(entries)
        service._state = state
        service._log = log
        for entry in stored:
            service._project(entry)
        return service

    # ── properties ────────────────────────────────────────────

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def engine(self) -> TransactionEngine:
        return self._engine

    @property
    def version(self) -> int:
        with self._lock:
            return self._state.version

    def snapshot(self) -> LedgerState:
        with self._lock:
            return self._state

    def add_projection(self, projection: AuditProjection) -> None:
        """Attach a projection and feed it the existing trail."""
        with self._lock:
            for entry in self._trail.entries():
                projection.apply(entry)
            self._projections.append(projection)

    # ── core write path ───────────────────────────────────────

    def execute(
        self,
        transaction: LedgerTransaction,
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        with self._lock:
            current = self._state
            if expected_version is not None and expected_version != current.version:
                logger.info(
                    f"Rejected {transaction.transaction_type}: stale version "
                    f"{expected_version} (current {current.version})"
                )
                raise ConcurrencyConflict(expected_version, current.version)

            occurred_at = self._clock.now_utc()
            try:
                result = self._engine.apply(current, transaction, occurred_at)
            except LedgerRejection as exc:
                logger.info(
                    f"Rejected {transaction.transaction_type}: [{exc.code}] {exc.message}"
                )
                raise
            except LedgerInvariantViolation:
                logger.exception(f"Invariant violation applying {transaction.transaction_type}")
                raise

            stored = self._trail.append(result.audit_entries)
            self._state = result.state
            self._log.append(TransactionLogEntry(occurred_at, result.transaction))
            for entry in stored:
                self._project(entry)

            result = dataclasses.replace(result, audit_entries=stored)
            logger.info(
                f"Applied {transaction.transaction_type} {result.reference_id} "
                f"v{result.state.version} ({len(stored)} audit entries)"
            )
            return result

    def submit(
        self,
        transaction: LedgerTransaction,
        expected_version: Optional[int] = None,
    ) -> CommandOutcome:
        """Like execute(), but reports rejections as an outcome instead of raising."""
        try:
            result = self.execute(transaction, expected_version)
        except LedgerRejection as exc:
            return CommandOutcome.rejected(
                transaction_type=transaction.transaction_type,
                occurred_at=self._clock.now_utc(),
                reason=exc.to_rejection(),
                ledger_version=self.version,
            )
        return CommandOutcome.accepted(
            transaction_type=transaction.transaction_type,
            occurred_at=result.occurred_at,
            reference_id=result.reference_id,
            ledger_version=result.state.version,
        )

    def _project(self, entry: AuditEntry) -> None:
        for projection in self._projections:
            try:
                projection.apply(entry)
            except Exception:
                logger.exception(
                    f"Projection {type(projection).__name__} failed on {entry.entry_id}; "
                    f"rebuild it from the audit trail"
                )

    # ── operations ────────────────────────────────────────────

    def receive(
        self,
        supplier_id: str,
        lines: Iterable[Any],
        grn_type: GrnType = GrnType.STANDARD,
        invoice_no: str = "",
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            ReceiveGoods(
                supplier_id=supplier_id,
                lines=tuple(_receipt_line(line) for line in lines),
                grn_type=grn_type,
                invoice_no=invoice_no,
            ),
            expected_version,
        )

    def plan_production_batch(
        self,
        recipe_id: str,
        planned_quantity: Any = None,
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            PlanProductionBatch(
                recipe_id=recipe_id,
                planned_quantity=_optional_decimal(planned_quantity, "planned_quantity"),
            ),
            expected_version,
        )

    def issue_production_materials(
        self,
        batch_id: str,
        actual_qty_by_item: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            IssueMaterials.of(
                batch_id,
                {
                    item_id: to_decimal(qty, f"quantity for '{item_id}'")
                    for item_id, qty in actual_qty_by_item.items()
                },
            ),
            expected_version,
        )

    def complete_production_batch(
        self,
        batch_id: str,
        actual_output: Any,
        wastage: Any = 0,
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            CompleteProduction(
                batch_id=batch_id,
                actual_output=to_decimal(actual_output, "actual_output"),
                wastage=to_decimal(wastage, "wastage"),
            ),
            expected_version,
        )

    def complete_packing_run(
        self,
        source: PackingSource,
        output_item_id: str,
        output_qty: Any,
        packing_materials: Any = (),
        bulk_quantity: Any = None,
        bulk_item_id: Optional[str] = None,
        pack_mode: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            CompletePackingRun(
                source=source,
                output_item_id=output_item_id,
                units_produced=to_decimal(output_qty, "output_qty"),
                packing_materials=_packing_materials(packing_materials),
                bulk_quantity=_optional_decimal(bulk_quantity, "bulk_quantity"),
                bulk_item_id=bulk_item_id,
                pack_mode=pack_mode,
            ),
            expected_version,
        )

    def dispatch(
        self,
        customer_id: str,
        lines: Iterable[Any],
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            DispatchGoods(
                customer_id=customer_id,
                lines=tuple(_dispatch_line(line) for line in lines),
            ),
            expected_version,
        )

    def adjust(
        self,
        item_id: str,
        quantity_delta: Any,
        reason_code: str,
        partition: StockPartition = StockPartition.IN_HOUSE,
        unit_cost: Any = None,
        reference_id: Optional[str] = None,
        notes: str = "",
        expected_version: Optional[int] = None,
    ) -> TransactionResult:
        return self.execute(
            AdjustStock(
                item_id=item_id,
                quantity_delta=to_decimal(quantity_delta, "quantity_delta"),
                reason_code=reason_code,
                partition=parse_partition(partition),
                unit_cost=_optional_decimal(unit_cost, "unit_cost"),
                reference_id=reference_id,
                notes=notes,
            ),
            expected_version,
        )

    # ── reads ─────────────────────────────────────────────────

    def get_stock_balance(
        self,
        item_id: str,
        partition: StockPartition = StockPartition.IN_HOUSE,
    ) -> StockBalance:
        return self.snapshot().stock.get(item_id, partition)

    def get_stock_balances(self) -> List[StockBalance]:
        return list(self.snapshot().stock.balances())

    def get_lots(
        self,
        item_id: str,
        partition: Optional[StockPartition] = None,
        include_exhausted: bool = False,
    ) -> List[StockLot]:
        return self.snapshot().stock.lots(item_id, partition, include_exhausted)

    def get_audit_trail(
        self,
        audit_filter: Optional[AuditFilter] = None,
    ) -> Tuple[AuditEntry, ...]:
        return self._trail.entries(audit_filter)

    def get_receipt(self, grn_id: str) -> Optional[GoodsReceipt]:
        return self.snapshot().receipts.get(grn_id)

    def get_batch(self, batch_id: str) -> Optional[ProductionBatch]:
        return self.snapshot().batches.get(batch_id)

    def get_packing_run(self, pack_id: str) -> Optional[PackingRun]:
        return self.snapshot().packing_runs.get(pack_id)

    def get_dispatch(self, dispatch_id: str) -> Optional[DispatchOrder]:
        return self.snapshot().dispatches.get(dispatch_id)

    def get_adjustment(self, adjustment_id: str) -> Optional[StockAdjustment]:
        return self.snapshot().adjustments.get(adjustment_id)

    def transaction_log(self) -> Tuple[TransactionLogEntry, ...]:
        with self._lock:
            return tuple(self._log)

    def verify_integrity(self) -> None:
        """Fold the audit trail and compare with live balances."""
        with self._lock:
            verify_ledger(self._state.stock, self._trail.entries(), self._config)

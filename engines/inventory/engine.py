"""
Millstone Inventory — Transaction Engine
==========================================
apply(state, transaction, occurred_at) → TransactionResult

RULES (NON-NEGOTIABLE):
- All-or-nothing: every check runs before the first mutation, and all
  mutations happen on a copy of the input state. A rejection leaves
  the caller's state untouched.
- The engine is the only writer of balances and the only producer of
  audit entries.
- Quantities are brought to the configured precision before any check.
- Every inbound movement creates a lot; every outbound movement draws
  lots oldest first. Packing draws only the lots its source created.
- Inbound audit entries carry the value the balance booked, so audit
  value deltas always sum to the ledger valuation.
- No wall-clock reads. Time arrives as `occurred_at`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple

from core.audit.models import AuditEntry, LotDraw
from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.errors import (
    InsufficientStock,
    LedgerInvariantViolation,
    UnknownReference,
    ValidationError,
)
from core.primitives.item import ItemCategory, StockPartition
from core.primitives.units import UnitConverter
from engines.inventory import events
from engines.inventory.catalog import ItemCatalog, PackagingProfileCatalog, RecipeCatalog
from engines.inventory.commands import (
    TRANSACTION_CLASSES,
    AdjustStock,
    CompletePackingRun,
    CompleteProduction,
    DispatchGoods,
    GrnType,
    IssueMaterials,
    LedgerTransaction,
    PackingMaterialLine,
    PlanProductionBatch,
    ReceiveGoods,
)
from engines.inventory.policies import (
    category_policy,
    issue_coverage_policy,
    negative_stock_policy,
    yield_policy,
)
from engines.inventory.records import (
    BatchStatus,
    ConsumedMaterial,
    DispatchedLine,
    DispatchOrder,
    GoodsReceipt,
    PackingMaterialUsage,
    PackingRun,
    PackingStatus,
    ProductionBatch,
    ReceivedLine,
    StockAdjustment,
    check_batch_transition,
    check_packing_transition,
)
from engines.inventory.sources import resolve_packing_source
from engines.inventory.stock import StockLedger

logger = logging.getLogger("millstone.engine")

ZERO = Decimal("0")

STANDARD_RECEIPT_CATEGORIES = frozenset({
    ItemCategory.RAW,
    ItemCategory.PACKING,
    ItemCategory.FINISHED_GOOD,
})


# ══════════════════════════════════════════════════════════════
# LEDGER STATE
# ══════════════════════════════════════════════════════════════

@dataclass
class LedgerState:
    """
    Snapshot of everything the ledger owns.

    Snapshots handed out by the engine or the service are never
    mutated again; the engine always works on copy().
    """

    stock: StockLedger
    receipts: Dict[str, GoodsReceipt] = field(default_factory=dict)
    batches: Dict[str, ProductionBatch] = field(default_factory=dict)
    packing_runs: Dict[str, PackingRun] = field(default_factory=dict)
    dispatches: Dict[str, DispatchOrder] = field(default_factory=dict)
    adjustments: Dict[str, StockAdjustment] = field(default_factory=dict)
    sequences: Dict[str, int] = field(default_factory=dict)
    version: int = 0

    @classmethod
    def empty(cls, config: LedgerConfig = DEFAULT_LEDGER_CONFIG) -> "LedgerState":
        return cls(stock=StockLedger(config))

    def copy(self) -> "LedgerState":
        return LedgerState(
            stock=self.stock.copy(),
            receipts=dict(self.receipts),
            batches=dict(self.batches),
            packing_runs=dict(self.packing_runs),
            dispatches=dict(self.dispatches),
            adjustments=dict(self.adjustments),
            sequences=dict(self.sequences),
            version=self.version,
        )


# ══════════════════════════════════════════════════════════════
# ID AND LOT NUMBER GENERATORS
# ══════════════════════════════════════════════════════════════

class SequentialIdGenerator:
    """GRN-0001, BATCH-0001, ... Counters live in the state being built."""

    PREFIXES = {
        "grn": "GRN",
        "batch": "BATCH",
        "pack": "PACK",
        "dispatch": "DSP",
        "adjustment": "ADJ",
    }

    def next_id(self, sequences: Dict[str, int], kind: str) -> str:
        prefix = self.PREFIXES[kind]
        number = sequences.get(kind, 0) + 1
        sequences[kind] = number
        return f"{prefix}-{number:04d}"


class DailyLotNumberGenerator:
    """LOT-YYYYMMDD-NNN, numbered per calendar day of receipt."""

    def __init__(self, prefix: str = "LOT"):
        self._prefix = prefix

    def next_lot_number(self, sequences: Dict[str, int], occurred_at: datetime) -> str:
        day = occurred_at.strftime("%Y%m%d")
        key = f"lot:{day}"
        number = sequences.get(key, 0) + 1
        sequences[key] = number
        return f"{self._prefix}-{day}-{number:03d}"


# ══════════════════════════════════════════════════════════════
# RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransactionResult:
    transaction: LedgerTransaction
    state: LedgerState
    audit_entries: Tuple[AuditEntry, ...]
    record: object
    occurred_at: datetime

    @property
    def reference_id(self) -> Optional[str]:
        for attr in ("grn_id", "batch_id", "pack_id", "dispatch_id", "adjustment_id"):
            value = getattr(self.record, attr, None)
            if value is not None:
                return value
        return None


Handler = Callable[[LedgerState, LedgerTransaction, datetime], Tuple[object, Tuple[AuditEntry, ...]]]


# ══════════════════════════════════════════════════════════════
# ENGINE
# ══════════════════════════════════════════════════════════════

class TransactionEngine:
    def __init__(
        self,
        items: ItemCatalog,
        recipes: RecipeCatalog,
        config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
        converter: Optional[UnitConverter] = None,
        id_generator: Optional[SequentialIdGenerator] = None,
        lot_generator: Optional[DailyLotNumberGenerator] = None,
        profiles: Optional[PackagingProfileCatalog] = None,
    ):
        self._items = items
        self._recipes = recipes
        self._profiles = profiles if profiles is not None else PackagingProfileCatalog(items)
        self._config = config
        self._converter = converter or UnitConverter()
        self._ids = id_generator or SequentialIdGenerator()
        self._lots = lot_generator or DailyLotNumberGenerator(config.lot_prefix)
        self._handlers: Dict[type, Handler] = {
            ReceiveGoods: self._receive,
            PlanProductionBatch: self._plan_batch,
            IssueMaterials: self._issue_materials,
            CompleteProduction: self._complete_production,
            CompletePackingRun: self._complete_packing,
            DispatchGoods: self._dispatch,
            AdjustStock: self._adjust,
        }
        missing = [cls.__name__ for cls in TRANSACTION_CLASSES if cls not in self._handlers]
        if missing:
            raise LedgerInvariantViolation(f"no handler for transactions {missing}")

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def items(self) -> ItemCatalog:
        return self._items

    @property
    def recipes(self) -> RecipeCatalog:
        return self._recipes

    @property
    def profiles(self) -> PackagingProfileCatalog:
        return self._profiles

    def apply(
        self,
        state: LedgerState,
        transaction: LedgerTransaction,
        occurred_at: datetime,
    ) -> TransactionResult:
        handler = self._handlers.get(type(transaction))
        if handler is None:
            raise ValidationError(
                f"Unsupported transaction {type(transaction).__name__}."
            )
        if occurred_at.tzinfo is None:
            raise ValidationError("occurred_at must be timezone-aware.")
        transaction = transaction.quantised(self._config.fit_quantity)

        working = state.copy()
        record, entries = handler(working, transaction, occurred_at)
        working.version = state.version + 1
        return TransactionResult(
            transaction=transaction,
            state=working,
            audit_entries=tuple(entries),
            record=record,
            occurred_at=occurred_at,
        )

    # ── movement primitives ───────────────────────────────────

    def _deduct(
        self,
        state: LedgerState,
        item_id: str,
        partition: StockPartition,
        quantity: Decimal,
        reference_id: Optional[str] = None,
    ) -> Tuple[Decimal, Decimal, Tuple[LotDraw, ...]]:
        """
        Deduct at current average. Returns (value, unit_cost, lot draws).

        With reference_id, lots are drawn only from that batch or GRN.
        """
        balance = state.stock.get(item_id, partition)
        if quantity > balance.quantity:
            # Policies ran first; reaching here is a bug, not a rejection.
            raise LedgerInvariantViolation(
                f"deduction of {quantity} {item_id} exceeds {balance.quantity} after validation"
            )
        value = state.stock.deduction_value(item_id, quantity, partition)
        state.stock.apply(item_id, -quantity, partition=partition)
        draws = state.stock.draw_lots(item_id, partition, quantity, reference_id)
        return value, balance.weighted_avg_cost, draws

    def _credit(
        self,
        state: LedgerState,
        item_id: str,
        partition: StockPartition,
        quantity: Decimal,
        value: Decimal,
        lot_number: str,
        reference_id: str,
        occurred_at: datetime,
    ) -> Tuple[Decimal, Decimal]:
        """
        Credit `value` and open a lot. Returns (booked value, lot unit cost).

        The booked value is what the balance's total value actually rose
        by once its average was rounded; it can differ from `value`.
        """
        before = state.stock.get(item_id, partition).total_value
        after = state.stock.apply(item_id, quantity, value, partition)
        unit_cost = self._config.cost(value / quantity)
        state.stock.receive_lot(
            item_id=item_id,
            partition=partition,
            lot_number=lot_number,
            quantity=quantity,
            unit_cost=unit_cost,
            received_at=occurred_at,
            reference_id=reference_id,
        )
        return after.total_value - before, unit_cost

    # ── receive ───────────────────────────────────────────────

    def _receive(self, state: LedgerState, txn: ReceiveGoods, occurred_at: datetime):
        third_party = txn.grn_type == GrnType.THIRD_PARTY_BULK
        partition = StockPartition.THIRD_PARTY if third_party else StockPartition.IN_HOUSE

        for line in txn.lines:
            item = self._items.get(line.item_id)
            if third_party:
                category_policy(item, {ItemCategory.BULK}, "a third-party bulk receipt line")
            else:
                category_policy(item, STANDARD_RECEIPT_CATEGORIES, "a standard receipt line")

        grn_id = self._ids.next_id(state.sequences, "grn")
        received = []
        entries = []
        for line in txn.lines:
            lot_number = self._lots.next_lot_number(state.sequences, occurred_at)
            booked, unit_cost = self._credit(
                state, line.item_id, partition, line.quantity, line.quantity * line.unit_price,
                lot_number, grn_id, occurred_at,
            )
            received.append(ReceivedLine(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                lot_number=lot_number,
                partition=partition,
            ))
            entries.append(events.build_receive_entry(
                occurred_at, line.item_id, partition, line.quantity, booked, unit_cost,
                grn_id, txn.supplier_id, lot_number,
            ))

        receipt = GoodsReceipt(
            grn_id=grn_id,
            supplier_id=txn.supplier_id,
            grn_type=txn.grn_type,
            invoice_no=txn.invoice_no,
            received_at=occurred_at,
            lines=tuple(received),
        )
        state.receipts[grn_id] = receipt
        return receipt, entries

    # ── produce ───────────────────────────────────────────────

    def _plan_batch(self, state: LedgerState, txn: PlanProductionBatch, occurred_at: datetime):
        recipe = self._recipes.get(txn.recipe_id)
        planned = txn.planned_quantity or recipe.output_quantity
        lines = recipe.scaled_lines(planned, self._config)

        batch_id = self._ids.next_id(state.sequences, "batch")
        batch = ProductionBatch(
            batch_id=batch_id,
            recipe_id=recipe.recipe_id,
            output_item_id=recipe.output_item_id,
            status=BatchStatus.PLANNED,
            planned_quantity=planned,
            planned_at=occurred_at,
            materials=tuple(
                ConsumedMaterial(item_id=line.item_id, standard_qty=line.standard_quantity)
                for line in lines
            ),
        )
        state.batches[batch_id] = batch
        return batch, ()

    def _get_batch(self, state: LedgerState, batch_id: str) -> ProductionBatch:
        batch = state.batches.get(batch_id)
        if batch is None:
            raise UnknownReference("batch", batch_id)
        return batch

    def _issue_materials(self, state: LedgerState, txn: IssueMaterials, occurred_at: datetime):
        batch = self._get_batch(state, txn.batch_id)
        check_batch_transition(batch, BatchStatus.IN_PROGRESS)

        quantities = txn.quantity_by_item()
        issue_coverage_policy(batch.batch_id, (m.item_id for m in batch.materials), quantities)
        negative_stock_policy(
            state.stock,
            ((item_id, StockPartition.IN_HOUSE, qty) for item_id, qty in quantities.items()),
        )

        materials = tuple(
            ConsumedMaterial(
                item_id=m.item_id,
                standard_qty=m.standard_qty,
                actual_qty=quantities[m.item_id],
                unit_cost_at_issue=state.stock.get(m.item_id).weighted_avg_cost,
            )
            for m in batch.materials
        )
        updated = batch.replace(
            status=BatchStatus.IN_PROGRESS,
            materials=materials,
            issued_at=occurred_at,
        )
        state.batches[batch.batch_id] = updated
        return updated, ()

    def _complete_production(self, state: LedgerState, txn: CompleteProduction, occurred_at: datetime):
        batch = self._get_batch(state, txn.batch_id)
        check_batch_transition(batch, BatchStatus.COMPLETED)

        total_input = batch.total_input
        yield_policy(batch.batch_id, txn.actual_output, txn.wastage, total_input)
        # Issue does not reserve stock; re-check at consumption.
        negative_stock_policy(
            state.stock,
            ((m.item_id, StockPartition.IN_HOUSE, m.actual_qty) for m in batch.materials),
        )

        entries = []
        consumed = []
        total_cost = ZERO
        for material in batch.materials:
            if material.actual_qty == 0:
                consumed.append(ConsumedMaterial(
                    item_id=material.item_id,
                    standard_qty=material.standard_qty,
                    actual_qty=material.actual_qty,
                    unit_cost_at_issue=material.unit_cost_at_issue,
                    unit_cost_at_consumption=state.stock.get(material.item_id).weighted_avg_cost,
                    consumed_value=ZERO,
                ))
                continue
            value, unit_cost, draws = self._deduct(
                state, material.item_id, StockPartition.IN_HOUSE, material.actual_qty
            )
            total_cost += value
            consumed.append(ConsumedMaterial(
                item_id=material.item_id,
                standard_qty=material.standard_qty,
                actual_qty=material.actual_qty,
                unit_cost_at_issue=material.unit_cost_at_issue,
                unit_cost_at_consumption=unit_cost,
                consumed_value=value,
            ))
            entries.append(events.build_produce_consume_entry(
                occurred_at, material.item_id, material.actual_qty, value,
                batch.batch_id, draws,
            ))

        booked, output_cost = self._credit(
            state, batch.output_item_id, StockPartition.IN_HOUSE, txn.actual_output,
            total_cost, batch.batch_id, batch.batch_id, occurred_at,
        )
        entries.append(events.build_produce_output_entry(
            occurred_at, batch.output_item_id, txn.actual_output, booked, output_cost,
            batch.batch_id,
        ))

        updated = batch.replace(
            status=BatchStatus.COMPLETED,
            materials=tuple(consumed),
            completed_at=occurred_at,
            actual_output=txn.actual_output,
            wastage=txn.wastage,
            total_input_cost=total_cost,
            cost_per_unit=self._config.cost(total_cost / txn.actual_output),
            yield_percent=self._config.percent(txn.actual_output / total_input * 100),
            unaccounted_loss=total_input - txn.actual_output - txn.wastage,
        )
        state.batches[batch.batch_id] = updated
        logger.debug(
            f"Batch {batch.batch_id} completed: output={txn.actual_output} "
            f"cost={total_cost} yield={updated.yield_percent}%"
        )
        return updated, entries

    # ── pack ──────────────────────────────────────────────────

    def _packing_materials(self, finished, txn: CompletePackingRun):
        """Listed materials, else units x qty_per_unit from the packaging profile."""
        if txn.packing_materials:
            return txn.packing_materials, None
        profile = self._profiles.for_output(finished.item_id, txn.pack_mode)
        if profile is None:
            return (), None
        materials = tuple(
            PackingMaterialLine(
                item_id=component.item_id,
                quantity=self._config.fit_quantity(txn.units_produced * component.qty_per_unit),
            )
            for component in profile.components
        )
        return materials, profile.pack_mode

    def _complete_packing(self, state: LedgerState, txn: CompletePackingRun, occurred_at: datetime):
        finished = self._items.get(txn.output_item_id)
        category_policy(finished, {ItemCategory.FINISHED_GOOD}, "a packing output")

        resolved = resolve_packing_source(
            txn.source,
            finished,
            state.batches,
            state.receipts,
            self._items.as_mapping(),
            self._config,
            explicit_bulk_item_id=txn.bulk_item_id,
        )
        bulk = self._items.get(resolved.bulk_item_id)
        category_policy(bulk, {ItemCategory.BULK}, "a packing source")

        if txn.bulk_quantity is not None:
            bulk_quantity = txn.bulk_quantity
        elif finished.pack_size is not None:
            bulk_quantity = self._config.fit_quantity(self._converter.convert(
                txn.units_produced * finished.pack_size, finished.pack_unit, bulk.unit
            ))
        else:
            raise ValidationError(
                f"Finished good '{finished.item_id}' has no pack_size; "
                f"bulk_quantity is required.",
                item_id=finished.item_id,
            )
        if bulk_quantity <= 0:
            raise ValidationError("Bulk quantity to consume must be positive.")

        materials, pack_mode = self._packing_materials(finished, txn)
        for material in materials:
            category_policy(
                self._items.get(material.item_id), {ItemCategory.PACKING}, "a packing material"
            )

        requirements = [(bulk.item_id, resolved.partition, bulk_quantity)]
        requirements.extend(
            (m.item_id, StockPartition.IN_HOUSE, m.quantity) for m in materials
        )
        negative_stock_policy(state.stock, requirements)
        from_source = state.stock.available_in_reference(
            bulk.item_id, resolved.partition, resolved.reference_id
        )
        if bulk_quantity > from_source:
            raise InsufficientStock(
                item_id=bulk.item_id,
                requested=bulk_quantity,
                available=from_source,
                partition=resolved.partition.value,
            )

        pack_id = self._ids.next_id(state.sequences, "pack")
        entries = []
        bulk_value, _, bulk_draws = self._deduct(
            state, bulk.item_id, resolved.partition, bulk_quantity, resolved.reference_id
        )
        entries.append(events.build_pack_consume_entry(
            occurred_at, bulk.item_id, resolved.partition, bulk_quantity, bulk_value,
            pack_id, bulk_draws,
        ))

        usages = []
        for material in materials:
            value, unit_cost, draws = self._deduct(
                state, material.item_id, StockPartition.IN_HOUSE, material.quantity
            )
            usages.append(PackingMaterialUsage(
                item_id=material.item_id,
                quantity=material.quantity,
                unit_cost=unit_cost,
                total_cost=value,
            ))
            entries.append(events.build_pack_consume_entry(
                occurred_at, material.item_id, StockPartition.IN_HOUSE, material.quantity,
                value, pack_id, draws,
            ))

        total_cost = bulk_value + sum((u.total_cost for u in usages), ZERO)
        booked, output_cost = self._credit(
            state, finished.item_id, StockPartition.IN_HOUSE, txn.units_produced,
            total_cost, pack_id, pack_id, occurred_at,
        )
        entries.append(events.build_pack_output_entry(
            occurred_at, finished.item_id, txn.units_produced, booked, output_cost, pack_id,
        ))

        run = PackingRun(
            pack_id=pack_id,
            source=txn.source,
            bulk_item_id=bulk.item_id,
            bulk_partition=resolved.partition,
            bulk_quantity=bulk_quantity,
            bulk_cost=bulk_value,
            packing_materials=tuple(usages),
            output_item_id=finished.item_id,
            units_produced=txn.units_produced,
            total_cost=total_cost,
            cost_per_unit=self._config.cost(total_cost / txn.units_produced),
            packed_at=occurred_at,
            lot_numbers=tuple(d.lot_number for d in bulk_draws),
            pack_mode=pack_mode,
        )
        check_packing_transition(run, PackingStatus.COMPLETED)
        run = run.replace(status=PackingStatus.COMPLETED)
        state.packing_runs[pack_id] = run
        return run, entries

    # ── dispatch ──────────────────────────────────────────────

    def _dispatch(self, state: LedgerState, txn: DispatchGoods, occurred_at: datetime):
        for line in txn.lines:
            category_policy(
                self._items.get(line.item_id), {ItemCategory.FINISHED_GOOD}, "a dispatch line"
            )
        negative_stock_policy(
            state.stock,
            ((line.item_id, StockPartition.IN_HOUSE, line.quantity) for line in txn.lines),
        )

        dispatch_id = self._ids.next_id(state.sequences, "dispatch")
        entries = []
        dispatched = []
        for line in txn.lines:
            value, unit_cost, draws = self._deduct(
                state, line.item_id, StockPartition.IN_HOUSE, line.quantity
            )
            dispatched.append(DispatchedLine(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                unit_cost=unit_cost,
            ))
            entries.append(events.build_dispatch_entry(
                occurred_at, line.item_id, line.quantity, value,
                dispatch_id, txn.customer_id, draws,
            ))

        order = DispatchOrder(
            dispatch_id=dispatch_id,
            customer_id=txn.customer_id,
            dispatched_at=occurred_at,
            lines=tuple(dispatched),
        )
        state.dispatches[dispatch_id] = order
        return order, entries

    # ── adjust ────────────────────────────────────────────────

    def _adjust(self, state: LedgerState, txn: AdjustStock, occurred_at: datetime):
        item = self._items.get(txn.item_id)
        if txn.partition == StockPartition.THIRD_PARTY:
            category_policy(item, {ItemCategory.BULK}, "a third-party stock adjustment")

        if txn.quantity_delta < 0:
            negative_stock_policy(state.stock, [(item.item_id, txn.partition, -txn.quantity_delta)])

        adjustment_id = self._ids.next_id(state.sequences, "adjustment")
        lot_number, lot_cost, draws = None, None, ()
        if txn.quantity_delta < 0:
            value, _, draws = self._deduct(state, item.item_id, txn.partition, -txn.quantity_delta)
            value_delta = -value
        else:
            unit_cost = txn.unit_cost
            if unit_cost is None:
                unit_cost = state.stock.get(item.item_id, txn.partition).weighted_avg_cost
            lot_number = adjustment_id
            value_delta, lot_cost = self._credit(
                state, item.item_id, txn.partition, txn.quantity_delta,
                txn.quantity_delta * unit_cost, lot_number, adjustment_id, occurred_at,
            )

        adjustment = StockAdjustment(
            adjustment_id=adjustment_id,
            item_id=item.item_id,
            partition=txn.partition,
            quantity_delta=txn.quantity_delta,
            value_delta=value_delta,
            reason_code=txn.reason_code,
            adjusted_at=occurred_at,
            reference_id=txn.reference_id,
            notes=txn.notes,
        )
        state.adjustments[adjustment_id] = adjustment
        entry = events.build_adjust_entry(
            occurred_at, item.item_id, txn.partition, txn.quantity_delta, value_delta,
            adjustment_id, txn.reason_code, txn.notes,
            lot_number=lot_number, unit_cost=lot_cost, draws=draws,
        )
        return adjustment, [entry]

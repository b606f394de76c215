"""
Millstone Inventory — Ledger Transactions
===========================================
The closed set of typed transactions the ledger accepts.

Each transaction is a frozen dataclass validated for shape on
construction (positive quantities, non-empty ids). Validation that
needs ledger state (stock sufficiency, batch status, item categories)
happens in the transaction engine.

Transactions serialise to plain dicts so a host can persist the
transaction log and rebuild the ledger by replaying it.

quantised(fit) returns a copy with every quantity passed through `fit`
(the ledger's quantity precision). The copy is validated again, so a
quantity that rounds to zero is refused.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from core.errors import ValidationError
from core.primitives.item import StockPartition, parse_partition
from core.primitives.units import to_decimal


# ══════════════════════════════════════════════════════════════
# TRANSACTION TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

LEDGER_GOODS_RECEIVE = "ledger.goods.receive"
LEDGER_BATCH_PLAN = "ledger.batch.plan"
LEDGER_BATCH_ISSUE = "ledger.batch.issue"
LEDGER_BATCH_COMPLETE = "ledger.batch.complete"
LEDGER_PACKING_COMPLETE = "ledger.packing.complete"
LEDGER_GOODS_DISPATCH = "ledger.goods.dispatch"
LEDGER_STOCK_ADJUST = "ledger.stock.adjust"


class GrnType(Enum):
    STANDARD = "STANDARD"
    THIRD_PARTY_BULK = "THIRD_PARTY_BULK"


VALID_ADJUST_REASONS = frozenset({
    "SPOILAGE",
    "AUDIT_CORRECTION",
    "DAMAGE",
    "COUNTING_ERROR",
    "REVERSAL",
    "OTHER",
})


def _require_id(value: Any, field_name: str) -> None:
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a non-empty string.", field=field_name)


def _require_positive(value: Any, field_name: str) -> None:
    if not isinstance(value, Decimal) or value <= 0:
        raise ValidationError(
            f"{field_name} must be a positive Decimal, got {value!r}.", field=field_name
        )


def _require_non_negative(value: Any, field_name: str) -> None:
    if not isinstance(value, Decimal) or value < 0:
        raise ValidationError(
            f"{field_name} must be a non-negative Decimal, got {value!r}.", field=field_name
        )


QuantityFit = Callable[[Decimal], Decimal]


# ══════════════════════════════════════════════════════════════
# RECEIVE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReceiptLine:
    item_id: str
    quantity: Decimal
    unit_price: Decimal

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        _require_positive(self.quantity, f"quantity for '{self.item_id}'")
        _require_positive(self.unit_price, f"unit_price for '{self.item_id}'")


@dataclass(frozen=True)
class ReceiveGoods:
    """Goods receipt note (GRN) from a supplier."""

    supplier_id: str
    lines: Tuple[ReceiptLine, ...]
    grn_type: GrnType = GrnType.STANDARD
    invoice_no: str = ""

    transaction_type = LEDGER_GOODS_RECEIVE

    def __post_init__(self):
        _require_id(self.supplier_id, "supplier_id")
        if not self.lines:
            raise ValidationError("A goods receipt needs at least one line.")
        if not isinstance(self.grn_type, GrnType):
            raise ValidationError("grn_type must be GrnType.")

    def quantised(self, fit: QuantityFit) -> "ReceiveGoods":
        return replace(self, lines=tuple(
            replace(line, quantity=fit(line.quantity)) for line in self.lines
        ))

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "supplier_id": self.supplier_id,
            "grn_type": self.grn_type.value,
            "invoice_no": self.invoice_no,
            "lines": [
                {
                    "item_id": line.item_id,
                    "quantity": str(line.quantity),
                    "unit_price": str(line.unit_price),
                }
                for line in self.lines
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReceiveGoods":
        try:
            grn_type = GrnType(str(data.get("grn_type") or "STANDARD").upper())
        except ValueError as exc:
            raise ValidationError(f"grn_type '{data.get('grn_type')}' not valid.") from exc
        return cls(
            supplier_id=data.get("supplier_id", ""),
            lines=tuple(
                ReceiptLine(
                    item_id=line.get("item_id", ""),
                    quantity=to_decimal(line.get("quantity"), "quantity"),
                    unit_price=to_decimal(line.get("unit_price"), "unit_price"),
                )
                for line in _objects(data.get("lines"), "lines")
            ),
            grn_type=grn_type,
            invoice_no=data.get("invoice_no") or "",
        )


# ══════════════════════════════════════════════════════════════
# PRODUCE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PlanProductionBatch:
    """Create a Planned batch. planned_quantity defaults to the recipe size."""

    recipe_id: str
    planned_quantity: Optional[Decimal] = None

    transaction_type = LEDGER_BATCH_PLAN

    def __post_init__(self):
        _require_id(self.recipe_id, "recipe_id")
        if self.planned_quantity is not None:
            _require_positive(self.planned_quantity, "planned_quantity")

    def quantised(self, fit: QuantityFit) -> "PlanProductionBatch":
        if self.planned_quantity is None:
            return self
        return replace(self, planned_quantity=fit(self.planned_quantity))

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "recipe_id": self.recipe_id,
            "planned_quantity": _opt_str(self.planned_quantity),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlanProductionBatch":
        planned = data.get("planned_quantity")
        return cls(
            recipe_id=data.get("recipe_id", ""),
            planned_quantity=None if planned is None else to_decimal(planned, "planned_quantity"),
        )


@dataclass(frozen=True)
class MaterialQuantity:
    item_id: str
    quantity: Decimal

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        _require_non_negative(self.quantity, f"quantity for '{self.item_id}'")


@dataclass(frozen=True)
class IssueMaterials:
    """
    Bind actual quantities to a Planned batch (→ InProgress).

    The caller states a quantity for every recipe ingredient. Nothing is
    filled in from standard quantities.
    """

    batch_id: str
    actual_quantities: Tuple[MaterialQuantity, ...]

    transaction_type = LEDGER_BATCH_ISSUE

    def __post_init__(self):
        _require_id(self.batch_id, "batch_id")
        if not self.actual_quantities:
            raise ValidationError("actual quantities are required for every ingredient.")
        item_ids = [m.item_id for m in self.actual_quantities]
        if len(set(item_ids)) != len(item_ids):
            raise ValidationError("Each ingredient may be issued only once per batch.")
        if sum(m.quantity for m in self.actual_quantities) <= 0:
            raise ValidationError("Total issued quantity must be positive.")

    def quantised(self, fit: QuantityFit) -> "IssueMaterials":
        return replace(self, actual_quantities=tuple(
            replace(m, quantity=fit(m.quantity)) for m in self.actual_quantities
        ))

    @classmethod
    def of(cls, batch_id: str, quantities: Mapping[str, Decimal]) -> "IssueMaterials":
        return cls(
            batch_id=batch_id,
            actual_quantities=tuple(
                MaterialQuantity(item_id=item_id, quantity=qty)
                for item_id, qty in quantities.items()
            ),
        )

    def quantity_by_item(self) -> Dict[str, Decimal]:
        return {m.item_id: m.quantity for m in self.actual_quantities}

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "batch_id": self.batch_id,
            "actual_quantities": {
                m.item_id: str(m.quantity) for m in self.actual_quantities
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IssueMaterials":
        raw = data.get("actual_quantities")
        if not isinstance(raw, Mapping):
            raise ValidationError("actual_quantities must be an object of item_id → quantity.")
        return cls.of(
            data.get("batch_id", ""),
            {item_id: to_decimal(qty, f"quantity for '{item_id}'") for item_id, qty in raw.items()},
        )


@dataclass(frozen=True)
class CompleteProduction:
    """Record output and wastage for an InProgress batch (→ Completed)."""

    batch_id: str
    actual_output: Decimal
    wastage: Decimal = Decimal("0")

    transaction_type = LEDGER_BATCH_COMPLETE

    def __post_init__(self):
        _require_id(self.batch_id, "batch_id")
        _require_positive(self.actual_output, "actual_output")
        _require_non_negative(self.wastage, "wastage")

    def quantised(self, fit: QuantityFit) -> "CompleteProduction":
        return replace(self, actual_output=fit(self.actual_output), wastage=fit(self.wastage))

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "batch_id": self.batch_id,
            "actual_output": str(self.actual_output),
            "wastage": str(self.wastage),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompleteProduction":
        return cls(
            batch_id=data.get("batch_id", ""),
            actual_output=to_decimal(data.get("actual_output"), "actual_output"),
            wastage=to_decimal(data.get("wastage", 0), "wastage"),
        )


# ══════════════════════════════════════════════════════════════
# PACK
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class InHouse:
    """Bulk produced by a completed in-house batch."""
    batch_id: str

    def __post_init__(self):
        _require_id(self.batch_id, "batch_id")

    def to_dict(self) -> dict:
        return {"type": "IN_HOUSE", "batch_id": self.batch_id}


@dataclass(frozen=True)
class ThirdParty:
    """Bulk bought on a third-party bulk GRN."""
    grn_id: str

    def __post_init__(self):
        _require_id(self.grn_id, "grn_id")

    def to_dict(self) -> dict:
        return {"type": "THIRD_PARTY", "grn_id": self.grn_id}


PackingSource = Union[InHouse, ThirdParty]


def packing_source_from_dict(data: Any) -> PackingSource:
    if not isinstance(data, Mapping):
        raise ValidationError("source must be an object with a 'type'.")
    kind = str(data.get("type", "")).upper()
    if kind == "IN_HOUSE":
        return InHouse(batch_id=data.get("batch_id", ""))
    if kind == "THIRD_PARTY":
        return ThirdParty(grn_id=data.get("grn_id", ""))
    raise ValidationError(f"source type '{data.get('type')}' not valid. Must be IN_HOUSE or THIRD_PARTY.")


@dataclass(frozen=True)
class PackingMaterialLine:
    item_id: str
    quantity: Decimal

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        _require_positive(self.quantity, f"quantity for '{self.item_id}'")


@dataclass(frozen=True)
class CompletePackingRun:
    """
    Pack bulk powder into finished goods in one step.

    bulk_quantity:  bulk consumed; derived from units x pack size when omitted.
    bulk_item_id:   explicit bulk item, overriding catalog links and name
                    matching for third-party sources.
    pack_mode:      packaging profile to take materials from when
                    packing_materials is empty. Without either, the
                    finished good's single active profile is used, if any.
    """

    source: PackingSource
    output_item_id: str
    units_produced: Decimal
    packing_materials: Tuple[PackingMaterialLine, ...] = ()
    bulk_quantity: Optional[Decimal] = None
    bulk_item_id: Optional[str] = None
    pack_mode: Optional[str] = None

    transaction_type = LEDGER_PACKING_COMPLETE

    def __post_init__(self):
        if not isinstance(self.source, (InHouse, ThirdParty)):
            raise ValidationError("source must be InHouse or ThirdParty.")
        _require_id(self.output_item_id, "output_item_id")
        _require_positive(self.units_produced, "units_produced")
        if self.bulk_quantity is not None:
            _require_positive(self.bulk_quantity, "bulk_quantity")
        if self.bulk_item_id is not None:
            _require_id(self.bulk_item_id, "bulk_item_id")
        if self.pack_mode is not None:
            _require_id(self.pack_mode, "pack_mode")
            object.__setattr__(self, "pack_mode", self.pack_mode.strip().upper())
            if self.packing_materials:
                raise ValidationError("Give packing_materials or pack_mode, not both.")
        item_ids = [m.item_id for m in self.packing_materials]
        if len(set(item_ids)) != len(item_ids):
            raise ValidationError("Each packing material may be listed only once.")

    def quantised(self, fit: QuantityFit) -> "CompletePackingRun":
        return replace(
            self,
            units_produced=fit(self.units_produced),
            packing_materials=tuple(
                replace(m, quantity=fit(m.quantity)) for m in self.packing_materials
            ),
            bulk_quantity=None if self.bulk_quantity is None else fit(self.bulk_quantity),
        )

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "source": self.source.to_dict(),
            "output_item_id": self.output_item_id,
            "units_produced": str(self.units_produced),
            "packing_materials": [
                {"item_id": m.item_id, "quantity": str(m.quantity)}
                for m in self.packing_materials
            ],
            "bulk_quantity": _opt_str(self.bulk_quantity),
            "bulk_item_id": self.bulk_item_id,
            "pack_mode": self.pack_mode,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompletePackingRun":
        bulk_quantity = data.get("bulk_quantity")
        materials = _objects(data.get("packing_materials") or [], "packing_materials")
        return cls(
            source=packing_source_from_dict(data.get("source")),
            output_item_id=data.get("output_item_id", ""),
            units_produced=to_decimal(data.get("units_produced"), "units_produced"),
            packing_materials=tuple(
                PackingMaterialLine(
                    item_id=m.get("item_id", ""),
                    quantity=to_decimal(m.get("quantity"), "quantity"),
                )
                for m in materials
            ),
            bulk_quantity=None if bulk_quantity is None else to_decimal(bulk_quantity, "bulk_quantity"),
            bulk_item_id=data.get("bulk_item_id") or None,
            pack_mode=data.get("pack_mode") or None,
        )


# ══════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DispatchLine:
    item_id: str
    quantity: Decimal
    unit_price: Decimal

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        _require_positive(self.quantity, f"quantity for '{self.item_id}'")
        _require_positive(self.unit_price, f"unit_price for '{self.item_id}'")


@dataclass(frozen=True)
class DispatchGoods:
    customer_id: str
    lines: Tuple[DispatchLine, ...]

    transaction_type = LEDGER_GOODS_DISPATCH

    def __post_init__(self):
        _require_id(self.customer_id, "customer_id")
        if not self.lines:
            raise ValidationError("A dispatch needs at least one line.")

    def quantised(self, fit: QuantityFit) -> "DispatchGoods":
        return replace(self, lines=tuple(
            replace(line, quantity=fit(line.quantity)) for line in self.lines
        ))

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "customer_id": self.customer_id,
            "lines": [
                {
                    "item_id": line.item_id,
                    "quantity": str(line.quantity),
                    "unit_price": str(line.unit_price),
                }
                for line in self.lines
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DispatchGoods":
        return cls(
            customer_id=data.get("customer_id", ""),
            lines=tuple(
                DispatchLine(
                    item_id=line.get("item_id", ""),
                    quantity=to_decimal(line.get("quantity"), "quantity"),
                    unit_price=to_decimal(line.get("unit_price"), "unit_price"),
                )
                for line in _objects(data.get("lines"), "lines")
            ),
        )


# ══════════════════════════════════════════════════════════════
# ADJUST
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AdjustStock:
    """
    Compensating movement. The only way to undo a completed transaction.

    unit_cost applies to positive adjustments only and defaults to the
    balance's current weighted-average cost.
    """

    item_id: str
    quantity_delta: Decimal
    reason_code: str
    partition: StockPartition = StockPartition.IN_HOUSE
    unit_cost: Optional[Decimal] = None
    reference_id: Optional[str] = None
    notes: str = ""

    transaction_type = LEDGER_STOCK_ADJUST

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        if not isinstance(self.quantity_delta, Decimal) or self.quantity_delta == 0:
            raise ValidationError("quantity_delta must be a non-zero Decimal.")
        if self.reason_code not in VALID_ADJUST_REASONS:
            raise ValidationError(
                f"reason_code '{self.reason_code}' not valid. "
                f"Must be one of: {sorted(VALID_ADJUST_REASONS)}"
            )
        if not isinstance(self.partition, StockPartition):
            raise ValidationError("partition must be StockPartition.")
        if self.unit_cost is not None:
            _require_non_negative(self.unit_cost, "unit_cost")
            if self.quantity_delta < 0:
                raise ValidationError(
                    "unit_cost applies to positive adjustments only; "
                    "decreases are valued at the current average cost."
                )

    def quantised(self, fit: QuantityFit) -> "AdjustStock":
        return replace(self, quantity_delta=fit(self.quantity_delta))

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "item_id": self.item_id,
            "quantity_delta": str(self.quantity_delta),
            "reason_code": self.reason_code,
            "partition": self.partition.value,
            "unit_cost": _opt_str(self.unit_cost),
            "reference_id": self.reference_id,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdjustStock":
        unit_cost = data.get("unit_cost")
        return cls(
            item_id=data.get("item_id", ""),
            quantity_delta=to_decimal(data.get("quantity_delta"), "quantity_delta"),
            reason_code=str(data.get("reason_code", "")).upper(),
            partition=parse_partition(data.get("partition")),
            unit_cost=None if unit_cost is None else to_decimal(unit_cost, "unit_cost"),
            reference_id=data.get("reference_id") or None,
            notes=data.get("notes") or "",
        )


# ══════════════════════════════════════════════════════════════
# CLOSED SET
# ══════════════════════════════════════════════════════════════

LedgerTransaction = Union[
    ReceiveGoods,
    PlanProductionBatch,
    IssueMaterials,
    CompleteProduction,
    CompletePackingRun,
    DispatchGoods,
    AdjustStock,
]

TRANSACTION_CLASSES: Tuple[type, ...] = (
    ReceiveGoods,
    PlanProductionBatch,
    IssueMaterials,
    CompleteProduction,
    CompletePackingRun,
    DispatchGoods,
    AdjustStock,
)

TRANSACTION_TYPES = frozenset(cls.transaction_type for cls in TRANSACTION_CLASSES)

_BY_TYPE = {cls.transaction_type: cls for cls in TRANSACTION_CLASSES}


def transaction_from_dict(data: Mapping[str, Any]) -> LedgerTransaction:
    """Rebuild a transaction from its to_dict() form."""
    cls = _BY_TYPE.get(data.get("transaction_type"))
    if cls is None:
        raise ValidationError(
            f"transaction_type '{data.get('transaction_type')}' not valid. "
            f"Must be one of: {sorted(TRANSACTION_TYPES)}"
        )
    return cls.from_dict(data)


def _objects(value: Any, field_name: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list.", field=field_name)
    for entry in value:
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Each entry of {field_name} must be an object.", field=field_name)
    return list(value)


def _opt_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)

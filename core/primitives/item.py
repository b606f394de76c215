"""
Millstone Item Primitive — Catalog Item Definition
====================================================
Items are immutable master data. The category decides where an item
may appear: raw materials are received and consumed by production,
bulk powders are produced (or bought from third parties) and consumed
by packing, packing materials are received and consumed by packing,
finished goods are produced by packing and dispatched.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from core.errors import ValidationError
from core.primitives.units import UnitOfMeasure, parse_unit, to_decimal


class ItemCategory(Enum):
    RAW = "RAW"
    BULK = "BULK"
    PACKING = "PACKING"
    FINISHED_GOOD = "FINISHED_GOOD"


@dataclass(frozen=True)
class Item:
    """
    Catalog item.

    Finished goods may carry:
        pack_size / pack_unit:  net content per unit (e.g. 100 G per pouch).
        source_bulk_item_id:    the bulk item this finished good is packed
                                from. Used to resolve third-party packing
                                sources without guessing from names.
    """

    item_id: str
    name: str
    category: ItemCategory
    unit: UnitOfMeasure
    reorder_level: Decimal = Decimal("0")
    pack_size: Optional[Decimal] = None
    pack_unit: Optional[UnitOfMeasure] = None
    source_bulk_item_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.item_id or not isinstance(self.item_id, str):
            raise ValidationError("item_id must be a non-empty string.")
        if not self.name or not isinstance(self.name, str):
            raise ValidationError(f"Item '{self.item_id}' must have a name.")
        if not isinstance(self.category, ItemCategory):
            raise ValidationError("category must be ItemCategory.")
        if not isinstance(self.unit, UnitOfMeasure):
            raise ValidationError("unit must be UnitOfMeasure.")
        if self.reorder_level < 0:
            raise ValidationError(
                f"Item '{self.item_id}' reorder_level cannot be negative."
            )

        is_finished = self.category == ItemCategory.FINISHED_GOOD
        if not is_finished and (
            self.pack_size is not None or self.source_bulk_item_id is not None
        ):
            raise ValidationError(
                f"Item '{self.item_id}': pack_size and source_bulk_item_id "
                f"apply to finished goods only."
            )
        if self.pack_size is not None:
            if self.pack_size <= 0:
                raise ValidationError(f"Item '{self.item_id}' pack_size must be positive.")
            if self.pack_unit is None:
                raise ValidationError(f"Item '{self.item_id}' pack_size requires pack_unit.")

    @property
    def is_bulk(self) -> bool:
        return self.category == ItemCategory.BULK

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Item":
        try:
            category = ItemCategory(str(data["category"]).upper())
        except (KeyError, ValueError) as exc:
            raise ValidationError(
                f"Item '{data.get('item_id')}' has invalid category."
            ) from exc
        pack_size = data.get("pack_size")
        pack_unit = data.get("pack_unit")
        return cls(
            item_id=data.get("item_id", ""),
            name=data.get("name", ""),
            category=category,
            unit=parse_unit(data.get("unit"), "unit"),
            reorder_level=to_decimal(data.get("reorder_level", 0), "reorder_level"),
            pack_size=None if pack_size is None else to_decimal(pack_size, "pack_size"),
            pack_unit=None if pack_unit is None else parse_unit(pack_unit, "pack_unit"),
            source_bulk_item_id=data.get("source_bulk_item_id") or None,
        )

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category.value,
            "unit": self.unit.value,
            "reorder_level": str(self.reorder_level),
            "pack_size": None if self.pack_size is None else str(self.pack_size),
            "pack_unit": None if self.pack_unit is None else self.pack_unit.value,
            "source_bulk_item_id": self.source_bulk_item_id,
        }


class StockPartition(Enum):
    """
    Where a balance lives. Third-party bulk receipts are kept apart from
    in-house production so their cost basis never blends.
    """
    IN_HOUSE = "IN_HOUSE"
    THIRD_PARTY = "THIRD_PARTY"


def parse_partition(value: Any) -> StockPartition:
    if isinstance(value, StockPartition):
        return value
    if value is None or value == "":
        return StockPartition.IN_HOUSE
    try:
        return StockPartition(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(
            f"partition '{value}' not valid. "
            f"Must be one of: {[p.value for p in StockPartition]}",
            field="partition",
        ) from exc

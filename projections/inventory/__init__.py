"""
Millstone Projections — Inventory Valuation Read Model
========================================================
Read model for stock dashboards, rebuilt from audit entries.

Built from audit kinds:
- RECEIVE, PRODUCE_OUTPUT, PACK_OUTPUT (inbound)
- PRODUCE_CONSUME, PACK_CONSUME, DISPATCH (outbound)
- ADJUST (either direction)

Read-only: nothing here feeds back into the ledger.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from core.audit.models import AuditEntry, AuditKind
from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.primitives.item import ItemCategory, StockPartition
from engines.inventory.catalog import ItemCatalog
from engines.inventory.records import DispatchOrder

_BalanceKey = Tuple[str, StockPartition]


@dataclass
class StockLevel:
    item_id: str
    partition: StockPartition
    quantity: Decimal = Decimal(0)
    value: Decimal = Decimal(0)


@dataclass(frozen=True)
class LowStockAlert:
    item_id: str
    name: str
    category: ItemCategory
    quantity: Decimal
    reorder_level: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.reorder_level - self.quantity

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category.value,
            "quantity": str(self.quantity),
            "reorder_level": str(self.reorder_level),
            "shortfall": str(self.shortfall),
        }


class InventoryValuationReadModel:
    """
    Aggregated valuation read model.

    Quantities and values are summed from audit deltas. Inbound deltas
    are the value each balance actually booked after its average was
    rounded, so every level equals quantity x average in the ledger.
    """

    projection_name = "inventory_valuation"

    def __init__(self, config: LedgerConfig = DEFAULT_LEDGER_CONFIG) -> None:
        self._config = config
        self._stock: Dict[_BalanceKey, StockLevel] = {}
        self._movement_count: Dict[AuditKind, int] = defaultdict(int)

    def apply(self, entry: AuditEntry) -> None:
        key = (entry.item_id, entry.partition)
        level = self._stock.setdefault(
            key, StockLevel(item_id=entry.item_id, partition=entry.partition)
        )
        level.quantity += entry.quantity_delta
        level.value += entry.value_delta
        self._movement_count[entry.kind] += 1

    def rebuild(self, entries: Iterable[AuditEntry]) -> None:
        self._stock.clear()
        self._movement_count.clear()
        for entry in entries:
            self.apply(entry)

    # ── queries ───────────────────────────────────────────────

    def get_stock(
        self, item_id: str, partition: StockPartition = StockPartition.IN_HOUSE
    ) -> Optional[StockLevel]:
        return self._stock.get((item_id, partition))

    def get_total_stock(self, item_id: str) -> Decimal:
        """Quantity across both partitions."""
        return sum(
            (level.quantity for (iid, _), level in self._stock.items() if iid == item_id),
            Decimal(0),
        )

    def get_movement_count(self, kind: Optional[AuditKind] = None) -> int:
        if kind is None:
            return sum(self._movement_count.values())
        return self._movement_count.get(kind, 0)

    def total_value(self) -> Decimal:
        return self._config.money(
            sum((level.value for level in self._stock.values()), Decimal(0))
        )

    def valuation_by_category(self, items: ItemCatalog) -> Dict[str, Decimal]:
        totals = {category.value: Decimal(0) for category in ItemCategory}
        for (item_id, _), level in self._stock.items():
            item = items.find(item_id)
            if item is None:
                continue
            totals[item.category.value] += level.value
        return {category: self._config.money(value) for category, value in totals.items()}

    def low_stock(self, items: ItemCatalog) -> List[LowStockAlert]:
        """Items at or below their reorder level (partitions summed)."""
        alerts = []
        for item in items.all():
            if item.reorder_level <= 0:
                continue
            quantity = self.get_total_stock(item.item_id)
            if quantity <= item.reorder_level:
                alerts.append(LowStockAlert(
                    item_id=item.item_id,
                    name=item.name,
                    category=item.category,
                    quantity=quantity,
                    reorder_level=item.reorder_level,
                ))
        return sorted(alerts, key=lambda a: a.item_id)

    def summary(self, items: ItemCatalog) -> dict:
        return {
            "total_value": str(self.total_value()),
            "by_category": {
                category: str(value)
                for category, value in self.valuation_by_category(items).items()
            },
            "movements": {
                kind.value: self._movement_count.get(kind, 0) for kind in AuditKind
            },
            "low_stock": [alert.to_dict() for alert in self.low_stock(items)],
        }


def dispatch_margin_summary(
    dispatches: Iterable[DispatchOrder],
    config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
) -> dict:
    """Revenue, cost of goods and margin across dispatches. Derived only."""
    revenue = Decimal(0)
    cost = Decimal(0)
    count = 0
    for order in dispatches:
        revenue += order.total_value
        cost += order.cost_of_goods
        count += 1
    margin = revenue - cost
    margin_pct = Decimal(0) if revenue == 0 else margin / revenue * 100
    return {
        "dispatch_count": count,
        "revenue": str(config.money(revenue)),
        "cost_of_goods": str(config.money(cost)),
        "margin": str(config.money(margin)),
        "margin_percent": str(config.percent(margin_pct)),
    }

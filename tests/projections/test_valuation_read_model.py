"""
Millstone — Inventory Valuation Read Model Tests
==================================================
The read model is fed audit entries only and must agree with the
ledger's own balances, value as well as quantity.
"""

from datetime import datetime, timezone
from decimal import Decimal

from core.audit.models import AuditKind
from core.primitives.item import StockPartition
from core.time.clock import FixedClock
from engines.inventory.commands import GrnType, InHouse
from engines.inventory.seed import build_seed_catalogs
from engines.inventory.services import LedgerService
from projections.inventory import InventoryValuationReadModel, dispatch_margin_summary

NOW = datetime(2026, 2, 20, 12, 0, 0, tzinfo=timezone.utc)

D = Decimal


def _ledger():
    items, recipes = build_seed_catalogs()
    read_model = InventoryValuationReadModel()
    service = LedgerService(items, recipes, clock=FixedClock(NOW), projections=[read_model])
    service.receive("sup-1", [
        {"item_id": "raw-chili", "quantity": "200", "unit_price": "280"},
        {"item_id": "pack-pouch-50", "quantity": "5000", "unit_price": "2.5"},
    ])
    batch = service.plan_production_batch("recipe-chili").record
    service.issue_production_materials(batch.batch_id, {"raw-chili": "100"})
    service.complete_production_batch(batch.batch_id, "95", "4")
    service.complete_packing_run(
        InHouse(batch.batch_id), "fg-chili-50", "1800", {"pack-pouch-50": "1800"},
    )
    service.dispatch("cust-1", [{"item_id": "fg-chili-50", "quantity": "1200", "unit_price": "40"}])
    return service, read_model


class TestInventoryValuationReadModel:
    def test_levels_match_ledger(self):
        service, read_model = _ledger()
        for balance in service.get_stock_balances():
            level = read_model.get_stock(balance.item_id, balance.partition)
            assert level.quantity == balance.quantity
            assert level.value == balance.total_value

    def test_total_value(self):
        service, read_model = _ledger()
        # 28000 + 8000 + 1473.684 + 10342.08
        assert read_model.total_value() == D("47815.76")
        assert read_model.total_value() == service.config.money(service.snapshot().stock.total_value())

    def test_movement_counts(self):
        _, read_model = _ledger()
        assert read_model.get_movement_count(AuditKind.RECEIVE) == 2
        assert read_model.get_movement_count(AuditKind.PACK_CONSUME) == 2
        assert read_model.get_movement_count(AuditKind.DISPATCH) == 1
        assert read_model.get_movement_count() == 8

    def test_valuation_by_category(self):
        service, read_model = _ledger()
        by_category = read_model.valuation_by_category(service.engine.items)
        assert by_category["RAW"] == D("28000.00")
        assert by_category["PACKING"] == D("8000.00")
        assert by_category["BULK"] == D("1473.68")
        assert by_category["FINISHED_GOOD"] == D("10342.08")

    def test_low_stock_sums_partitions(self):
        service, read_model = _ledger()
        service.receive(
            "sup-tp", [{"item_id": "bulk-chili", "quantity": "200", "unit_price": "310"}],
            grn_type=GrnType.THIRD_PARTY_BULK,
        )
        alerts = {a.item_id: a for a in read_model.low_stock(service.engine.items)}
        assert "bulk-chili" not in alerts
        assert "raw-chili" not in alerts
        assert alerts["pack-pouch-50"].shortfall == D("1800")
        assert alerts["raw-cumin"].quantity == D("0")
        assert read_model.get_total_stock("bulk-chili") == D("205.000")
        assert read_model.get_stock("bulk-chili", StockPartition.THIRD_PARTY).value == D("62000")

    def test_rebuild_from_trail(self):
        service, read_model = _ledger()
        fresh = InventoryValuationReadModel()
        fresh.rebuild(service.get_audit_trail())
        assert fresh.total_value() == read_model.total_value()
        assert fresh.get_movement_count() == read_model.get_movement_count()

    def test_no_residue_after_rounded_average(self):
        items, recipes = build_seed_catalogs()
        read_model = InventoryValuationReadModel()
        service = LedgerService(items, recipes, clock=FixedClock(NOW), projections=[read_model])
        service.receive("sup-1", [{"item_id": "fg-chili-50", "quantity": "1", "unit_price": "1"}])
        second = service.receive(
            "sup-1", [{"item_id": "fg-chili-50", "quantity": "2", "unit_price": "2"}]
        )
        # average 5/3 rounds to 1.6667, so the second receipt books 4.0001
        assert second.audit_entries[0].value_delta == D("4.0001")
        assert second.audit_entries[0].unit_cost == D("2")
        service.dispatch("cust-1", [{"item_id": "fg-chili-50", "quantity": "3", "unit_price": "5"}])

        assert service.get_stock_balance("fg-chili-50").total_value == 0
        assert read_model.get_stock("fg-chili-50").value == 0

    def test_summary_renders_strings(self):
        service, read_model = _ledger()
        summary = read_model.summary(service.engine.items)
        assert summary["total_value"] == "47815.76"
        assert summary["movements"]["PRODUCE_OUTPUT"] == 1
        assert all(isinstance(alert["shortfall"], str) for alert in summary["low_stock"])


class TestDispatchMargin:
    def test_margin_summary(self):
        service, _ = _ledger()
        summary = dispatch_margin_summary(service.snapshot().dispatches.values())
        assert summary == {
            "dispatch_count": 1,
            "revenue": "48000.00",
            "cost_of_goods": "20684.16",
            "margin": "27315.84",
            "margin_percent": "56.91",
        }

    def test_no_dispatches(self):
        summary = dispatch_margin_summary([])
        assert summary["margin_percent"] == "0.00"

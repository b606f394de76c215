"""
Millstone — Transaction Shape Tests
=====================================
Construction-time validation of the closed transaction set and the
dict form used by the transaction log and the HTTP layer.
"""

from decimal import Decimal

import pytest

from core.errors import ValidationError
from core.primitives.item import StockPartition
from engines.inventory.commands import (
    TRANSACTION_TYPES,
    AdjustStock,
    CompletePackingRun,
    CompleteProduction,
    DispatchGoods,
    DispatchLine,
    GrnType,
    InHouse,
    IssueMaterials,
    MaterialQuantity,
    PackingMaterialLine,
    PlanProductionBatch,
    ReceiptLine,
    ReceiveGoods,
    ThirdParty,
    packing_source_from_dict,
    transaction_from_dict,
)

D = Decimal


class TestReceiveGoods:
    def test_requires_lines(self):
        with pytest.raises(ValidationError, match="at least one line"):
            ReceiveGoods(supplier_id="sup-1", lines=())

    def test_line_requires_positive_price(self):
        with pytest.raises(ValidationError, match="unit_price"):
            ReceiptLine("raw-chili", D("10"), D("0"))

    def test_from_dict_parses_grn_type(self):
        txn = ReceiveGoods.from_dict({
            "supplier_id": "sup-1",
            "grn_type": "third_party_bulk",
            "lines": [{"item_id": "bulk-chili", "quantity": "50", "unit_price": "310"}],
        })
        assert txn.grn_type == GrnType.THIRD_PARTY_BULK
        assert txn.lines[0].quantity == D("50")

    def test_from_dict_rejects_bad_grn_type(self):
        with pytest.raises(ValidationError, match="grn_type"):
            ReceiveGoods.from_dict({"supplier_id": "s", "grn_type": "LOAN", "lines": []})

    def test_from_dict_rejects_non_object_lines(self):
        with pytest.raises(ValidationError, match="must be an object"):
            ReceiveGoods.from_dict({"supplier_id": "s", "lines": ["raw-chili"]})

    def test_from_dict_missing_quantity(self):
        with pytest.raises(ValidationError, match="quantity"):
            ReceiveGoods.from_dict({"supplier_id": "s", "lines": [{"item_id": "raw-chili"}]})


class TestProductionTransactions:
    def test_plan_rejects_zero_quantity(self):
        with pytest.raises(ValidationError, match="planned_quantity"):
            PlanProductionBatch("recipe-chili", D("0"))

    def test_issue_rejects_duplicates(self):
        with pytest.raises(ValidationError, match="only once"):
            IssueMaterials(
                batch_id="B",
                actual_quantities=(
                    MaterialQuantity("raw-chili", D("1")),
                    MaterialQuantity("raw-chili", D("2")),
                ),
            )

    def test_issue_allows_zero_line_but_not_zero_total(self):
        txn = IssueMaterials.of("B", {"raw-chili": D("10"), "raw-cumin": D("0")})
        assert txn.quantity_by_item()["raw-cumin"] == D("0")
        with pytest.raises(ValidationError, match="Total issued quantity"):
            IssueMaterials.of("B", {"raw-chili": D("0")})

    def test_issue_rejects_negative(self):
        with pytest.raises(ValidationError, match="non-negative"):
            IssueMaterials.of("B", {"raw-chili": D("-1")})

    def test_issue_from_dict_requires_object(self):
        with pytest.raises(ValidationError, match="actual_quantities"):
            IssueMaterials.from_dict({"batch_id": "B", "actual_quantities": [1, 2]})

    def test_complete_requires_positive_output(self):
        with pytest.raises(ValidationError, match="actual_output"):
            CompleteProduction("B", D("0"))

    def test_complete_rejects_negative_wastage(self):
        with pytest.raises(ValidationError, match="wastage"):
            CompleteProduction("B", D("10"), D("-1"))


class TestPackingTransactions:
    def test_source_from_dict(self):
        assert packing_source_from_dict({"type": "in_house", "batch_id": "BATCH-0001"}) == InHouse("BATCH-0001")
        assert packing_source_from_dict({"type": "THIRD_PARTY", "grn_id": "GRN-0002"}) == ThirdParty("GRN-0002")

    def test_source_requires_known_type(self):
        with pytest.raises(ValidationError, match="IN_HOUSE or THIRD_PARTY"):
            packing_source_from_dict({"type": "IMPORTED"})

    def test_rejects_duplicate_materials(self):
        with pytest.raises(ValidationError, match="only once"):
            CompletePackingRun(
                source=InHouse("BATCH-0001"),
                output_item_id="fg-chili-50",
                units_produced=D("10"),
                packing_materials=(
                    PackingMaterialLine("pack-pouch-50", D("5")),
                    PackingMaterialLine("pack-pouch-50", D("5")),
                ),
            )

    def test_requires_source_object(self):
        with pytest.raises(ValidationError, match="InHouse or ThirdParty"):
            CompletePackingRun(source="BATCH-0001", output_item_id="fg", units_produced=D("1"))

    def test_pack_mode_is_upper_cased(self):
        txn = CompletePackingRun(InHouse("BATCH-0001"), "fg-turmeric-100", D("10"), pack_mode="boxed_20")
        assert txn.pack_mode == "BOXED_20"
        assert transaction_from_dict(txn.to_dict()) == txn

    def test_materials_or_pack_mode_not_both(self):
        with pytest.raises(ValidationError, match="not both"):
            CompletePackingRun(
                InHouse("BATCH-0001"), "fg-turmeric-100", D("10"),
                (PackingMaterialLine("pack-pouch-100", D("10")),),
                pack_mode="POUCH_100G",
            )

    def test_quantised_rounds_units_and_materials(self):
        txn = CompletePackingRun(
            InHouse("BATCH-0001"), "fg-chili-50", D("10"),
            (PackingMaterialLine("pack-pouch-50", D("10.00049")),),
            bulk_quantity=D("0.51234"),
        )
        fitted = txn.quantised(lambda value: value.quantize(D("0.001")))
        assert fitted.packing_materials[0].quantity == D("10.000")
        assert fitted.bulk_quantity == D("0.512")
        assert fitted.source == txn.source


class TestAdjustStock:
    def test_zero_delta_rejected(self):
        with pytest.raises(ValidationError, match="non-zero"):
            AdjustStock("raw-chili", D("0"), "SPOILAGE")

    def test_reason_must_be_known(self):
        with pytest.raises(ValidationError, match="reason_code"):
            AdjustStock("raw-chili", D("-1"), "THEFT")

    def test_unit_cost_only_for_increases(self):
        with pytest.raises(ValidationError, match="positive adjustments only"):
            AdjustStock("raw-chili", D("-1"), "SPOILAGE", unit_cost=D("280"))

    def test_from_dict_upper_cases_reason_and_partition(self):
        txn = AdjustStock.from_dict({
            "item_id": "bulk-chili",
            "quantity_delta": "-2",
            "reason_code": "damage",
            "partition": "third_party",
        })
        assert txn.reason_code == "DAMAGE"
        assert txn.partition == StockPartition.THIRD_PARTY


class TestTransactionLogForm:
    def test_every_transaction_rebuilds_from_its_dict(self):
        transactions = [
            ReceiveGoods("sup-1", (ReceiptLine("raw-chili", D("10"), D("280")),), invoice_no="INV-1"),
            PlanProductionBatch("recipe-chili", D("48")),
            IssueMaterials.of("BATCH-0001", {"raw-chili": D("50")}),
            CompleteProduction("BATCH-0001", D("47.5"), D("2")),
            CompletePackingRun(
                ThirdParty("GRN-0002"), "fg-chili-50", D("100"),
                (PackingMaterialLine("pack-pouch-50", D("100")),),
                bulk_item_id="bulk-chili",
            ),
            DispatchGoods("cust-1", (DispatchLine("fg-chili-50", D("10"), D("40")),)),
            AdjustStock("raw-chili", D("5"), "AUDIT_CORRECTION", unit_cost=D("300"), notes="recount"),
        ]
        assert {t.transaction_type for t in transactions} == TRANSACTION_TYPES
        for txn in transactions:
            assert transaction_from_dict(txn.to_dict()) == txn

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="transaction_type"):
            transaction_from_dict({"transaction_type": "ledger.goods.return"})

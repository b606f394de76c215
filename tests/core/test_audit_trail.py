"""
Millstone — Audit Entries and Trail
=====================================
Entry shape rules, append-only sequencing and filtering.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.audit.models import AuditEntry, AuditKind, LotDraw
from core.audit.trail import AuditFilter, AuditTrail
from core.primitives.item import StockPartition

NOW = datetime(2026, 2, 20, 12, 0, 0, tzinfo=timezone.utc)


def _entry(kind=AuditKind.RECEIVE, item_id="raw-chili", qty="10", value="2800", **kwargs):
    defaults = dict(
        occurred_at=NOW,
        kind=kind,
        item_id=item_id,
        partition=StockPartition.IN_HOUSE,
        quantity_delta=Decimal(qty),
        value_delta=Decimal(value),
        reference_id="GRN-0001",
        description="test movement",
    )
    defaults.update(kwargs)
    return AuditEntry(**defaults)


# ══════════════════════════════════════════════════════════════
# ENTRY RULES
# ══════════════════════════════════════════════════════════════

class TestAuditEntry:
    def test_zero_delta_rejected(self):
        with pytest.raises(ValueError, match="cannot be zero"):
            _entry(qty="0", value="0")

    def test_inbound_must_increase(self):
        with pytest.raises(ValueError, match="RECEIVE entries must increase"):
            _entry(qty="-1", value="-280")

    def test_outbound_must_decrease(self):
        with pytest.raises(ValueError, match="DISPATCH entries must decrease"):
            _entry(kind=AuditKind.DISPATCH, qty="1")

    def test_adjust_requires_reason(self):
        with pytest.raises(ValueError, match="reason_code"):
            _entry(kind=AuditKind.ADJUST, qty="-1", value="-280")

    def test_adjust_either_direction(self):
        up = _entry(kind=AuditKind.ADJUST, reason_code="AUDIT_CORRECTION")
        down = _entry(kind=AuditKind.ADJUST, qty="-1", value="-280", reason_code="SPOILAGE")
        assert up.quantity_delta > 0 > down.quantity_delta

    def test_requires_reference(self):
        with pytest.raises(ValueError, match="reference_id"):
            _entry(reference_id="")

    def test_dict_round_trip(self):
        entry = _entry(lot_number="LOT-20260220-001", sequence=4, entry_id="AUD-000004")
        assert AuditEntry.from_dict(entry.to_dict()) == entry

    def test_dict_round_trip_keeps_cost_and_draws(self):
        inbound = _entry(lot_number="BATCH-0001", unit_cost=Decimal("294.7368"))
        outbound = _entry(
            kind=AuditKind.DISPATCH, item_id="fg-chili-50", qty="-1200", value="-20684.16",
            lot_number="PACK-0001",
            lot_draws=(LotDraw("PACK-0001", Decimal("1000")), LotDraw("PACK-0002", Decimal("200"))),
        )
        assert AuditEntry.from_dict(inbound.to_dict()) == inbound
        assert AuditEntry.from_dict(outbound.to_dict()) == outbound
        assert outbound.to_dict()["lot_draws"][1] == {"lot_number": "PACK-0002", "quantity": "200"}


# ══════════════════════════════════════════════════════════════
# TRAIL
# ══════════════════════════════════════════════════════════════

class TestAuditTrail:
    def test_append_assigns_sequence_and_ids(self):
        trail = AuditTrail()
        first = trail.append([_entry(), _entry(item_id="raw-cumin")])
        second = trail.append([_entry(kind=AuditKind.DISPATCH, qty="-1", value="-280")])
        assert [e.sequence for e in first + second] == [1, 2, 3]
        assert second[0].entry_id == "AUD-000003"
        assert len(trail) == 3

    def test_entries_are_a_snapshot(self):
        trail = AuditTrail([_entry()])
        snapshot = trail.entries()
        trail.append([_entry()])
        assert len(snapshot) == 1
        assert len(list(trail)) == 2

    def test_filter_by_item_and_kind(self):
        trail = AuditTrail([
            _entry(),
            _entry(item_id="raw-cumin"),
            _entry(kind=AuditKind.PRODUCE_CONSUME, qty="-5", value="-1400", reference_id="BATCH-0001"),
        ])
        assert len(trail.entries(AuditFilter(item_id="raw-chili"))) == 2
        consumed = trail.entries(AuditFilter(kind=AuditKind.PRODUCE_CONSUME))
        assert [e.reference_id for e in consumed] == ["BATCH-0001"]

    def test_filter_by_partition_and_window(self):
        later = NOW + timedelta(days=1)
        trail = AuditTrail([
            _entry(),
            _entry(
                item_id="bulk-chili",
                partition=StockPartition.THIRD_PARTY,
                occurred_at=later,
            ),
        ])
        third_party = trail.entries(AuditFilter(partition=StockPartition.THIRD_PARTY))
        assert [e.item_id for e in third_party] == ["bulk-chili"]
        assert len(trail.entries(AuditFilter(since=later))) == 1
        assert len(trail.entries(AuditFilter(until=NOW))) == 1

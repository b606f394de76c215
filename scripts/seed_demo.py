"""
In-process demo of the valuation ledger.

Receives raw spices, runs a chili and a turmeric batch, buys a
third-party bulk lot, packs both sources, dispatches, then prints
balances, the valuation summary and the integrity check.

Usage:
    python scripts/seed_demo.py
    python scripts/seed_demo.py --json
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone

from core.time.clock import FixedClock
from engines.inventory.commands import GrnType, InHouse, ThirdParty
from engines.inventory.seed import build_seed_catalogs, build_seed_profiles
from engines.inventory.services import LedgerService
from projections.inventory import InventoryValuationReadModel, dispatch_margin_summary

DEMO_START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def run_demo() -> tuple[LedgerService, InventoryValuationReadModel]:
    clock = FixedClock(DEMO_START)
    items, recipes = build_seed_catalogs()
    read_model = InventoryValuationReadModel()
    ledger = LedgerService(
        items,
        recipes,
        clock=clock,
        projections=[read_model],
        profiles=build_seed_profiles(items),
    )

    ledger.receive(
        "sup-rajasthan",
        [
            {"item_id": "raw-chili", "quantity": "200", "unit_price": "280"},
            {"item_id": "raw-turmeric", "quantity": "150", "unit_price": "120"},
            {"item_id": "pack-pouch-50", "quantity": "5000", "unit_price": "2.5"},
            {"item_id": "pack-pouch-100", "quantity": "5000", "unit_price": "3.5"},
        ],
        invoice_no="INV-2026-031",
    )
    clock.advance(hours=1)

    chili = ledger.plan_production_batch("recipe-chili").record
    ledger.issue_production_materials(chili.batch_id, {"raw-chili": "100"})
    clock.advance(hours=3)
    ledger.complete_production_batch(chili.batch_id, actual_output="95", wastage="4")

    turmeric = ledger.plan_production_batch("recipe-turmeric").record
    ledger.issue_production_materials(turmeric.batch_id, {"raw-turmeric": "100"})
    clock.advance(hours=3)
    ledger.complete_production_batch(turmeric.batch_id, actual_output="93", wastage="6")

    third_party = ledger.receive(
        "sup-gujarat",
        [{"item_id": "bulk-chili", "quantity": "50", "unit_price": "310"}],
        grn_type=GrnType.THIRD_PARTY_BULK,
        invoice_no="TP-7781",
    ).record
    clock.advance(hours=1)

    ledger.complete_packing_run(
        InHouse(chili.batch_id), "fg-chili-50", "1800", {"pack-pouch-50": "1800"}
    )
    ledger.complete_packing_run(
        ThirdParty(third_party.grn_id), "fg-chili-50", "900", {"pack-pouch-50": "900"}
    )
    ledger.complete_packing_run(
        InHouse(turmeric.batch_id), "fg-turmeric-100", "900", pack_mode="POUCH_100G"
    )
    clock.advance(days=1)

    ledger.dispatch(
        "cust-metro",
        [
            {"item_id": "fg-chili-50", "quantity": "1200", "unit_price": "40"},
            {"item_id": "fg-turmeric-100", "quantity": "500", "unit_price": "38"},
        ],
    )
    ledger.verify_integrity()
    return ledger, read_model


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--json", action="store_true", help="Print machine-readable output.")
    parser.add_argument("--verbose", action="store_true", help="Log every transaction.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    ledger, read_model = run_demo()
    snapshot = ledger.snapshot()
    report = {
        "ledger_version": snapshot.version,
        "balances": [b.to_dict() for b in snapshot.stock.balances() if not b.is_empty],
        "valuation": read_model.summary(ledger.engine.items),
        "dispatch_margin": dispatch_margin_summary(snapshot.dispatches.values(), ledger.config),
        "audit_entries": len(ledger.get_audit_trail()),
    }
    if args.json:
        print(json.dumps(report, indent=2, sort_keys=True))
        return

    print(f"Ledger version {report['ledger_version']}, {report['audit_entries']} audit entries")
    for balance in report["balances"]:
        print(
            f"  {balance['item_id']:<18} {balance['partition']:<11} "
            f"qty={balance['quantity']:>10} avg={balance['weighted_avg_cost']:>10}"
        )
    print(f"Total value: {report['valuation']['total_value']}")
    print(f"Dispatch margin: {report['dispatch_margin']['margin']}")
    print("Integrity check passed.")


if __name__ == "__main__":
    main()

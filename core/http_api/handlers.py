"""
Millstone HTTP API - Handlers
=============================
Transport-neutral handlers. Each takes a request contract plus the
injected dependencies and returns a response envelope dict:

    {"ok": true,  "data": {...}, "meta": {"ledger_version": N}}
    {"ok": false, "error": {"code", "message", "details"}, "meta": {...}}

Decimals are rendered as strings.
"""

from __future__ import annotations

from typing import Any, Callable

from core.errors import LedgerRejection
from core.http_api.contracts import (
    AuditTrailHttpRequest,
    LedgerWriteHttpRequest,
    StockQueryHttpRequest,
)
from core.http_api.dependencies import HttpApiDependencies
from core.http_api.errors import rejection_response, success_response
from engines.inventory.commands import (
    AdjustStock,
    CompletePackingRun,
    CompleteProduction,
    DispatchGoods,
    IssueMaterials,
    LedgerTransaction,
    PlanProductionBatch,
    ReceiveGoods,
)
from projections.inventory import dispatch_margin_summary


def _meta(dependencies: HttpApiDependencies) -> dict[str, Any]:
    return {"ledger_version": dependencies.ledger.version}


def _run_write(
    build: Callable[[dict[str, Any]], LedgerTransaction],
    request: LedgerWriteHttpRequest,
    dependencies: HttpApiDependencies,
) -> dict[str, Any]:
    try:
        transaction = build(request.body)
        result = dependencies.ledger.execute(transaction, request.expected_version)
    except LedgerRejection as exc:
        return rejection_response(exc.to_rejection(), meta=_meta(dependencies))
    return success_response(
        {
            "reference_id": result.reference_id,
            "record": result.record.to_dict(),
            "audit_entries": [entry.to_dict() for entry in result.audit_entries],
        },
        meta={"ledger_version": result.state.version},
    )


# ══════════════════════════════════════════════════════════════
# WRITES
# ══════════════════════════════════════════════════════════════

def post_goods_receipt(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(ReceiveGoods.from_dict, request, dependencies)


def post_production_batch(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(PlanProductionBatch.from_dict, request, dependencies)


def post_batch_issue(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(IssueMaterials.from_dict, request, dependencies)


def post_batch_complete(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(CompleteProduction.from_dict, request, dependencies)


def post_packing_run(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(CompletePackingRun.from_dict, request, dependencies)


def post_dispatch(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(DispatchGoods.from_dict, request, dependencies)


def post_adjustment(request: LedgerWriteHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    return _run_write(AdjustStock.from_dict, request, dependencies)


# ══════════════════════════════════════════════════════════════
# READS
# ══════════════════════════════════════════════════════════════

def get_stock(request: StockQueryHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    ledger = dependencies.ledger
    if request.item_id is not None:
        balance = ledger.get_stock_balance(request.item_id, request.partition)
        return success_response(balance.to_dict(), meta=_meta(dependencies))
    return success_response(
        [balance.to_dict() for balance in ledger.get_stock_balances()],
        meta=_meta(dependencies),
    )


def get_audit_trail(request: AuditTrailHttpRequest, dependencies: HttpApiDependencies) -> dict[str, Any]:
    entries = dependencies.ledger.get_audit_trail(request.to_filter())
    return success_response(
        [entry.to_dict() for entry in entries],
        meta=_meta(dependencies),
    )


def get_valuation_report(dependencies: HttpApiDependencies) -> dict[str, Any]:
    ledger = dependencies.ledger
    snapshot = ledger.snapshot()
    data = dependencies.read_model.summary(ledger.engine.items)
    data["dispatch_margin"] = dispatch_margin_summary(
        snapshot.dispatches.values(), ledger.config
    )
    data["currency"] = ledger.config.currency
    return success_response(data, meta=_meta(dependencies))


def get_packaging_profiles(dependencies: HttpApiDependencies) -> dict[str, Any]:
    profiles = dependencies.ledger.engine.profiles.all(active_only=True)
    return success_response(
        [profile.to_dict() for profile in profiles],
        meta=_meta(dependencies),
    )

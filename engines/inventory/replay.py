"""
Millstone Inventory — Replay and Integrity Verification
=========================================================
Two ways to rebuild state:

fold_audit_trail:      audit trail → StockLedger (balances and lots).
replay_transactions:   transaction log → full LedgerState, by running
                       every logged transaction through the engine again.

verify_ledger compares a live ledger with its folded trail. Any
difference is a LedgerInvariantViolation: the trail is the record of
truth and the live state has drifted from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from core.audit.models import AuditEntry
from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.errors import LedgerInvariantViolation, LedgerRejection
from engines.inventory.commands import LedgerTransaction, transaction_from_dict
from engines.inventory.engine import LedgerState, TransactionEngine
from engines.inventory.stock import StockLedger

logger = logging.getLogger("millstone.replay")


@dataclass(frozen=True)
class TransactionLogEntry:
    """One accepted transaction and the time it was applied."""

    occurred_at: datetime
    transaction: LedgerTransaction

    def to_dict(self) -> dict:
        return {
            "occurred_at": self.occurred_at.isoformat(),
            "transaction": self.transaction.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransactionLogEntry":
        return cls(
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
            transaction=transaction_from_dict(data["transaction"]),
        )


def fold_audit_trail(
    entries: Iterable[AuditEntry],
    config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
) -> StockLedger:
    """
    Rebuild balances and lots from an empty ledger.

    Outbound entries must carry exactly the value the ledger deducts at
    that point; a mismatch means the trail was produced by different
    arithmetic and is refused. Recorded lot draws are repeated as
    recorded; entries without them draw oldest first.
    """
    ledger = StockLedger(config)
    for entry in entries:
        if entry.quantity_delta > 0:
            ledger.apply(entry.item_id, entry.quantity_delta, entry.value_delta, entry.partition)
            if entry.lot_number:
                unit_cost = entry.unit_cost
                if unit_cost is None:
                    unit_cost = config.cost(entry.value_delta / entry.quantity_delta)
                ledger.receive_lot(
                    item_id=entry.item_id,
                    partition=entry.partition,
                    lot_number=entry.lot_number,
                    quantity=entry.quantity_delta,
                    unit_cost=unit_cost,
                    received_at=entry.occurred_at,
                    reference_id=entry.reference_id,
                )
            continue

        quantity = -entry.quantity_delta
        available = ledger.available(entry.item_id, entry.partition)
        if quantity > available:
            raise LedgerInvariantViolation(
                f"entry {entry.entry_id or entry.reference_id} deducts {quantity} "
                f"{entry.item_id} with only {available} on hand"
            )
        expected = -ledger.deduction_value(entry.item_id, quantity, entry.partition)
        if expected != entry.value_delta:
            raise LedgerInvariantViolation(
                f"entry {entry.entry_id or entry.reference_id} value {entry.value_delta} "
                f"!= replayed deduction {expected}"
            )
        ledger.apply(entry.item_id, entry.quantity_delta, partition=entry.partition)
        if entry.lot_draws:
            ledger.draw_recorded(entry.item_id, entry.partition, entry.lot_draws)
        else:
            ledger.draw_lots(entry.item_id, entry.partition, quantity)
    return ledger


def _balance_map(ledger: StockLedger) -> Dict[Tuple[str, str], Tuple[str, str]]:
    return {
        (b.item_id, b.partition.value): (str(b.quantity), str(b.weighted_avg_cost))
        for b in ledger.balances()
    }


def diff_ledgers(live: StockLedger, rebuilt: StockLedger) -> List[str]:
    live_map = _balance_map(live)
    rebuilt_map = _balance_map(rebuilt)
    problems = []
    for key in sorted(set(live_map) | set(rebuilt_map)):
        if live_map.get(key) != rebuilt_map.get(key):
            problems.append(
                f"{key[0]}/{key[1]}: live={live_map.get(key)} replayed={rebuilt_map.get(key)}"
            )
    return problems


def verify_ledger(
    live: StockLedger,
    entries: Iterable[AuditEntry],
    config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
) -> StockLedger:
    """Fold the trail and compare with the live ledger; raise on any drift."""
    rebuilt = fold_audit_trail(entries, config)
    problems = diff_ledgers(live, rebuilt)
    if problems:
        logger.error(f"Ledger drift detected: {problems}")
        raise LedgerInvariantViolation("; ".join(problems))
    return rebuilt


def replay_transactions(
    engine: TransactionEngine,
    log: Iterable[TransactionLogEntry],
) -> Tuple[LedgerState, Tuple[AuditEntry, ...]]:
    """
    Re-run logged transactions from an empty state.

    The log holds accepted transactions only, so any rejection during
    replay means the catalogs or the arithmetic changed underneath it.
    """
    state = LedgerState.empty(engine.config)
    entries: List[AuditEntry] = []
    for logged in log:
        try:
            result = engine.apply(state, logged.transaction, logged.occurred_at)
        except LedgerRejection as exc:
            raise LedgerInvariantViolation(
                f"logged {logged.transaction.transaction_type} at "
                f"{logged.occurred_at.isoformat()} rejected on replay: {exc.message}"
            ) from exc
        state = result.state
        entries.extend(result.audit_entries)
    logger.info(f"Replayed ledger to version {state.version}")
    return state, tuple(entries)

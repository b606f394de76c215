"""
Millstone Core — Ledger Errors
===============================
Typed failures raised by the valuation ledger.

Every subclass of LedgerRejection is a business rejection: the
transaction is refused, the ledger is untouched, and the error converts
to a RejectionReason for callers and transports.

LedgerInvariantViolation is different. It means the code itself is
wrong (trail and ledger disagree, a clamp fired) and must never be
downgraded to a rejection.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from core.commands.rejection import ReasonCode, RejectionReason


class LedgerError(Exception):
    """Base error for all ledger operations."""
    pass


# ══════════════════════════════════════════════════════════════
# REJECTIONS
# ══════════════════════════════════════════════════════════════

class LedgerRejection(LedgerError):
    """A transaction refused on business grounds."""

    code = ReasonCode.VALIDATION_ERROR
    policy_name = "ledger"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_rejection(self) -> RejectionReason:
        return RejectionReason(
            code=self.code,
            message=self.message,
            policy_name=self.policy_name,
            details={key: _jsonable(value) for key, value in self.details.items()},
        )


class ValidationError(LedgerRejection, ValueError):
    """Malformed input: non-positive quantities, wrong item category, ..."""

    policy_name = "input_validation"


class UnknownReference(ValidationError):
    """An item, recipe, batch or GRN id that does not exist."""

    code = ReasonCode.UNKNOWN_REFERENCE
    policy_name = "reference_lookup"

    def __init__(self, kind: str, reference_id: str):
        self.kind = kind
        self.reference_id = reference_id
        super().__init__(
            f"Unknown {kind} '{reference_id}'.",
            kind=kind,
            reference_id=reference_id,
        )


class AmbiguousSource(ValidationError):
    """Packing source resolved to zero or several bulk items."""

    code = ReasonCode.AMBIGUOUS_SOURCE
    policy_name = "packing_source_resolution"


class UnresolvedSource(ValidationError):
    """Packing source resolved to no bulk item."""

    code = ReasonCode.UNRESOLVED_SOURCE
    policy_name = "packing_source_resolution"


class InsufficientStock(LedgerRejection):
    """A consumption would drive an item's quantity below zero."""

    code = ReasonCode.INSUFFICIENT_STOCK
    policy_name = "negative_stock_policy"

    def __init__(
        self,
        item_id: str,
        requested: Decimal,
        available: Decimal,
        partition: Optional[str] = None,
    ):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.partition = partition
        super().__init__(
            f"Insufficient stock for '{item_id}': "
            f"requested {requested}, available {available}.",
            item_id=item_id,
            requested=requested,
            available=available,
            partition=partition,
        )


class InvalidRecipe(LedgerRejection):
    """Recipe master data violates recipe invariants."""

    code = ReasonCode.INVALID_RECIPE
    policy_name = "recipe_policy"


class InvalidTransition(LedgerRejection):
    """Batch or packing-run state machine refused a transition."""

    code = ReasonCode.INVALID_TRANSITION
    policy_name = "state_machine"

    def __init__(self, entity: str, entity_id: str, current: str, requested: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"{entity} '{entity_id}' cannot move from {current} to {requested}.",
            entity=entity,
            entity_id=entity_id,
            current=current,
            requested=requested,
        )


class OutputExceedsInput(LedgerRejection):
    """Production output larger than the material issued."""

    code = ReasonCode.OUTPUT_EXCEEDS_INPUT
    policy_name = "yield_policy"

    def __init__(self, batch_id: str, output: Decimal, total_input: Decimal):
        self.batch_id = batch_id
        self.output = output
        self.total_input = total_input
        super().__init__(
            f"Batch '{batch_id}' output {output} exceeds total input {total_input}.",
            batch_id=batch_id,
            output=output,
            total_input=total_input,
        )


class ConcurrencyConflict(LedgerRejection):
    """Caller's expected ledger version is stale."""

    code = ReasonCode.CONCURRENCY_CONFLICT
    policy_name = "optimistic_concurrency"

    def __init__(self, expected_version: int, actual_version: int):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Ledger version mismatch: expected {expected_version}, "
            f"current {actual_version}.",
            expected_version=expected_version,
            actual_version=actual_version,
        )


# ══════════════════════════════════════════════════════════════
# PROGRAMMING ERRORS
# ══════════════════════════════════════════════════════════════

class LedgerInvariantViolation(LedgerError):
    """Ledger state contradicts its own audit trail or invariants."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Ledger invariant violated: {detail}")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value

"""
Millstone — Rejections, Outcomes and Ledger Errors
====================================================
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.commands.outcomes import CommandOutcome, CommandStatus
from core.commands.rejection import ReasonCode, RejectionReason
from core.errors import (
    AmbiguousSource,
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    LedgerInvariantViolation,
    LedgerRejection,
    OutputExceedsInput,
    UnknownReference,
    ValidationError,
)

NOW = datetime(2026, 2, 20, 12, 0, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# REJECTION REASON
# ══════════════════════════════════════════════════════════════

class TestRejectionReason:
    def test_valid_reason(self):
        reason = RejectionReason(
            code=ReasonCode.INSUFFICIENT_STOCK,
            message="Not enough chili.",
            policy_name="negative_stock_policy",
        )
        assert reason.message_key == "rejection.insufficient_stock"
        assert reason.to_dict()["details"] == {}

    def test_requires_message(self):
        with pytest.raises(ValueError, match="message"):
            RejectionReason(code="X", message="", policy_name="p")

    def test_to_dict_merges_extra_details(self):
        reason = RejectionReason(
            code="X", message="m", policy_name="p", details={"item_id": "raw-chili"}
        )
        payload = reason.to_dict(extra={"batch_id": "BATCH-0001"})
        assert payload["details"] == {"item_id": "raw-chili", "batch_id": "BATCH-0001"}
        assert reason.details == {"item_id": "raw-chili"}


# ══════════════════════════════════════════════════════════════
# COMMAND OUTCOME
# ══════════════════════════════════════════════════════════════

class TestCommandOutcome:
    def test_accepted(self):
        outcome = CommandOutcome.accepted(
            transaction_type="ledger.goods.receive",
            occurred_at=NOW,
            reference_id="GRN-0001",
            ledger_version=1,
        )
        assert outcome.is_accepted
        assert not outcome.is_rejected
        assert outcome.to_dict()["status"] == "ACCEPTED"

    def test_rejected_requires_reason(self):
        with pytest.raises(ValueError, match="RejectionReason"):
            CommandOutcome(
                transaction_type="ledger.goods.dispatch",
                status=CommandStatus.REJECTED,
                occurred_at=NOW,
            )

    def test_accepted_cannot_carry_reason(self):
        reason = RejectionReason(code="X", message="m", policy_name="p")
        with pytest.raises(ValueError, match="must NOT"):
            CommandOutcome(
                transaction_type="ledger.goods.dispatch",
                status=CommandStatus.ACCEPTED,
                occurred_at=NOW,
                reason=reason,
            )

    def test_rejected_to_dict(self):
        reason = RejectionReason(code="X", message="m", policy_name="p")
        outcome = CommandOutcome.rejected("ledger.goods.dispatch", NOW, reason, ledger_version=3)
        payload = outcome.to_dict()
        assert payload["reason"]["code"] == "X"
        assert payload["ledger_version"] == 3


# ══════════════════════════════════════════════════════════════
# ERROR TAXONOMY
# ══════════════════════════════════════════════════════════════

class TestLedgerErrors:
    def test_insufficient_stock_renders_decimals_as_strings(self):
        exc = InsufficientStock("fg-chili-50", Decimal("1500"), Decimal("900"), "IN_HOUSE")
        reason = exc.to_rejection()
        assert reason.code == ReasonCode.INSUFFICIENT_STOCK
        assert reason.policy_name == "negative_stock_policy"
        assert reason.details["requested"] == "1500"
        assert reason.details["available"] == "900"

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)
        assert issubclass(ValidationError, LedgerRejection)

    def test_unknown_reference_code(self):
        exc = UnknownReference("recipe", "recipe-missing")
        assert exc.code == ReasonCode.UNKNOWN_REFERENCE
        assert "recipe-missing" in exc.message

    def test_source_errors_are_validation_errors(self):
        exc = AmbiguousSource("two matches", candidates=["a", "b"])
        assert isinstance(exc, ValidationError)
        assert exc.to_rejection().details["candidates"] == ["a", "b"]

    def test_specific_codes(self):
        assert InvalidTransition("Batch", "B", "PLANNED", "COMPLETED").code == ReasonCode.INVALID_TRANSITION
        assert OutputExceedsInput("B", Decimal(2), Decimal(1)).code == ReasonCode.OUTPUT_EXCEEDS_INPUT
        assert ConcurrencyConflict(1, 2).code == ReasonCode.CONCURRENCY_CONFLICT

    def test_invariant_violation_is_not_a_rejection(self):
        exc = LedgerInvariantViolation("trail drift")
        assert not isinstance(exc, LedgerRejection)
        assert "trail drift" in str(exc)

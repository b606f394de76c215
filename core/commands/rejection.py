"""
Millstone Command Layer — Rejection Model
==========================================
Structured rejection reasons for refused ledger transactions.

A rejection is not an audit entry: a rejected transaction leaves the
ledger and the trail untouched. The reason is returned to the caller
and logged.

Every rejection must be:
- Deterministic (same state + same transaction → same rejection)
- Machine-readable (code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


# ══════════════════════════════════════════════════════════════
# REJECTION REASON (frozen explanation structure)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for a transaction rejection.

    Fields:
        code:        Machine-readable rejection code (e.g. 'INSUFFICIENT_STOCK').
        message:     Human-readable explanation.
        policy_name: Name of the check that refused the transaction.
        details:     Structured context (item ids, quantities as strings).
    """

    code: str
    message: str
    policy_name: str
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    @property
    def message_key(self) -> str:
        return f"rejection.{self.code.lower()}"

    def to_dict(self, extra: Optional[Mapping[str, Any]] = None) -> dict:
        payload = {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
            "details": dict(self.details),
        }
        if extra:
            payload["details"].update(extra)
        return payload


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Stock ─────────────────────────────────────────────────
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    OUTPUT_EXCEEDS_INPUT = "OUTPUT_EXCEEDS_INPUT"

    # ── Master data ───────────────────────────────────────────
    INVALID_RECIPE = "INVALID_RECIPE"
    UNKNOWN_REFERENCE = "UNKNOWN_REFERENCE"

    # ── Lifecycle ─────────────────────────────────────────────
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # ── Packing source resolution ─────────────────────────────
    AMBIGUOUS_SOURCE = "AMBIGUOUS_SOURCE"
    UNRESOLVED_SOURCE = "UNRESOLVED_SOURCE"

    # ── Input / transport ─────────────────────────────────────
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

"""
Millstone Command Layer — rejection and outcome contracts shared by
the transaction engine, the ledger service and the HTTP handlers.
"""

from core.commands.outcomes import CommandOutcome, CommandStatus
from core.commands.rejection import ReasonCode, RejectionReason

__all__ = [
    "CommandOutcome",
    "CommandStatus",
    "ReasonCode",
    "RejectionReason",
]

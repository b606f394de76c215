"""
Millstone Core Config — ledger precision and behaviour settings.
"""

from core.config.rules import (
    DEFAULT_LEDGER_CONFIG,
    LedgerConfig,
    LedgerConfigStore,
)

__all__ = [
    "DEFAULT_LEDGER_CONFIG",
    "LedgerConfig",
    "LedgerConfigStore",
]

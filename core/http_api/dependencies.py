"""
Millstone HTTP API - Dependencies
=================================
Injected ledger handle and read model for handler wiring.
"""

from __future__ import annotations

from dataclasses import dataclass

from engines.inventory.services import LedgerService
from projections.inventory import InventoryValuationReadModel


@dataclass(frozen=True)
class HttpApiDependencies:
    ledger: LedgerService
    read_model: InventoryValuationReadModel

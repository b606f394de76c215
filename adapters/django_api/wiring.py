"""
Millstone Django Adapter Wiring
===============================
Constructs HttpApiDependencies for local/staging live runs.

This module is adapter-only glue:
- one in-process ledger per Django process
- catalogs loaded from the demo master data
- ledger configuration read from settings.MILLSTONE_LEDGER
"""

from __future__ import annotations

import logging
import threading

from django.conf import settings

from core.config.rules import LedgerConfig
from core.http_api.dependencies import HttpApiDependencies
from engines.inventory.seed import build_seed_catalogs, build_seed_profiles
from engines.inventory.services import LedgerService
from projections.inventory import InventoryValuationReadModel

logger = logging.getLogger("millstone.http")

_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: HttpApiDependencies | None = None


class SettingsLedgerConfigStore:
    """LedgerConfigStore backed by Django settings."""

    def get_ledger_config(self) -> LedgerConfig:
        return LedgerConfig.from_mapping(getattr(settings, "MILLSTONE_LEDGER", None))


def _build() -> HttpApiDependencies:
    config = SettingsLedgerConfigStore().get_ledger_config()
    items, recipes = build_seed_catalogs()
    read_model = InventoryValuationReadModel(config)
    profiles = build_seed_profiles(items)
    ledger = LedgerService(
        items, recipes, config=config, projections=[read_model], profiles=profiles
    )
    logger.info(
        f"Ledger wired: {len(items)} items, {len(recipes)} recipes, "
        f"{len(profiles)} packaging profiles"
    )
    return HttpApiDependencies(ledger=ledger, read_model=read_model)


def build_dependencies() -> HttpApiDependencies:
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _build()
        return _DEPENDENCIES


def reset_dependencies() -> None:
    """Drop the process ledger (tests)."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = None

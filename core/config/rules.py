"""
Millstone Core Config — Ledger Rules
======================================
Precision, rounding and legacy-behaviour switches for the valuation
ledger. Values come from configuration data (Django settings, seed
files), never from constants buried inside engine logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any, Mapping, Optional, Protocol


VALID_ROUNDING_MODES = frozenset({ROUND_HALF_UP, ROUND_DOWN, ROUND_UP})


def _scale(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


# ══════════════════════════════════════════════════════════════
# LEDGER CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LedgerConfig:
    """
    Ledger precision and behaviour configuration.

    Fields:
        quantity_places:  Decimal places kept on quantities (3 → grams of a KG).
        cost_places:      Decimal places kept on weighted-average unit costs.
        money_places:     Decimal places kept on money totals.
        percent_places:   Decimal places kept on yield percentages.
        rounding:         Decimal rounding mode used for every quantisation.
        legacy_name_matching:
                          Resolve third-party bulk sources by item name when
                          the finished good carries no explicit bulk link.
        lot_prefix:       Prefix of generated lot numbers.
        currency:         Display label only. Amounts are single-currency.
    """

    quantity_places: int = 3
    cost_places: int = 4
    money_places: int = 2
    percent_places: int = 2
    rounding: str = ROUND_HALF_UP
    legacy_name_matching: bool = True
    lot_prefix: str = "LOT"
    currency: str = "INR"

    def __post_init__(self) -> None:
        for name in ("quantity_places", "cost_places", "money_places", "percent_places"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= 12:
                raise ValueError(f"{name} must be an integer in [0, 12], got {value!r}.")
        if self.rounding not in VALID_ROUNDING_MODES:
            raise ValueError(
                f"rounding '{self.rounding}' not valid. "
                f"Must be one of: {sorted(VALID_ROUNDING_MODES)}"
            )
        if not self.lot_prefix or not isinstance(self.lot_prefix, str):
            raise ValueError("lot_prefix must be a non-empty string.")

    # ── quantisation helpers ──────────────────────────────────

    def quantity(self, value: Decimal) -> Decimal:
        return Decimal(value).quantize(_scale(self.quantity_places), rounding=self.rounding)

    def fit_quantity(self, value: Decimal) -> Decimal:
        """
        Bring a quantity within quantity_places.

        Values already within precision are returned as given, so "50"
        stays "50" rather than becoming "50.000".
        """
        value = Decimal(value)
        if value.is_finite() and value.as_tuple().exponent < -self.quantity_places:
            return self.quantity(value)
        return value

    def cost(self, value: Decimal) -> Decimal:
        return Decimal(value).quantize(_scale(self.cost_places), rounding=self.rounding)

    def money(self, value: Decimal) -> Decimal:
        return Decimal(value).quantize(_scale(self.money_places), rounding=self.rounding)

    def percent(self, value: Decimal) -> Decimal:
        return Decimal(value).quantize(_scale(self.percent_places), rounding=self.rounding)

    # ── construction ──────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "LedgerConfig":
        """
        Build from a settings mapping (e.g. settings.MILLSTONE_LEDGER).

        Unknown keys are rejected so typos surface at startup.
        """
        if not data:
            return cls()
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown ledger config keys: {unknown}")
        return cls(**dict(data))

    def to_dict(self) -> dict:
        return {
            "quantity_places": self.quantity_places,
            "cost_places": self.cost_places,
            "money_places": self.money_places,
            "percent_places": self.percent_places,
            "rounding": self.rounding,
            "legacy_name_matching": self.legacy_name_matching,
            "lot_prefix": self.lot_prefix,
            "currency": self.currency,
        }


DEFAULT_LEDGER_CONFIG = LedgerConfig()


# ══════════════════════════════════════════════════════════════
# CONFIG STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class LedgerConfigStore(Protocol):
    """Source of the active ledger configuration."""

    def get_ledger_config(self) -> LedgerConfig:
        ...  # pragma: no cover

"""
Millstone Units Primitive — Units of Measure and Conversion
=============================================================
Quantities are Decimal everywhere. Conversion between units is
data-driven: each rule carries its own factor, precision and rounding
mode so a packing run that converts 250 x 100 G into KG of bulk powder
rounds the same way every time.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from core.errors import ValidationError


class UnitOfMeasure(Enum):
    KG = "KG"
    G = "G"
    PCS = "PCS"
    BOX = "BOX"
    ROLL = "ROLL"


ROUNDING_MODES = {
    "HALF_UP": ROUND_HALF_UP,
    "DOWN": ROUND_DOWN,
    "UP": ROUND_UP,
}


# ══════════════════════════════════════════════════════════════
# DECIMAL COERCION
# ══════════════════════════════════════════════════════════════

def to_decimal(value: Any, field_name: str) -> Decimal:
    """
    Coerce transport values into Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans are refused.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number.", field=field_name)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValidationError(
                f"{field_name} must be a number, got {value!r}.", field=field_name
            ) from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValidationError(f"{field_name} must be a number.", field=field_name)
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite.", field=field_name)
    return result


def parse_unit(value: Any, field_name: str = "unit") -> UnitOfMeasure:
    if isinstance(value, UnitOfMeasure):
        return value
    try:
        return UnitOfMeasure(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(
            f"{field_name} '{value}' not valid. "
            f"Must be one of: {[u.value for u in UnitOfMeasure]}",
            field=field_name,
        ) from exc


# ══════════════════════════════════════════════════════════════
# CONVERSION RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ConversionRule:
    from_unit: UnitOfMeasure
    to_unit: UnitOfMeasure
    factor: Decimal
    precision_scale: int = 3
    rounding_mode: str = "HALF_UP"

    def __post_init__(self) -> None:
        if self.from_unit == self.to_unit:
            raise ValidationError("Conversion rule must join two different units.")
        if not isinstance(self.factor, Decimal) or self.factor <= 0:
            raise ValidationError(f"factor must be a positive Decimal, got {self.factor!r}.")
        if not 0 <= self.precision_scale <= 12:
            raise ValidationError(
                f"precision_scale must be in [0, 12], got {self.precision_scale}."
            )
        if self.rounding_mode not in ROUNDING_MODES:
            raise ValidationError(
                f"rounding_mode '{self.rounding_mode}' not valid. "
                f"Must be one of: {sorted(ROUNDING_MODES)}"
            )

    def apply(self, quantity: Decimal) -> Decimal:
        scale = Decimal(1).scaleb(-self.precision_scale)
        return (quantity * self.factor).quantize(
            scale, rounding=ROUNDING_MODES[self.rounding_mode]
        )


DEFAULT_CONVERSION_RULES: Tuple[ConversionRule, ...] = (
    ConversionRule(UnitOfMeasure.G, UnitOfMeasure.KG, Decimal("0.001")),
    ConversionRule(UnitOfMeasure.KG, UnitOfMeasure.G, Decimal("1000")),
)


class UnitConverter:
    """Lookup table of conversion rules keyed by (from_unit, to_unit)."""

    def __init__(self, rules: Optional[Iterable[ConversionRule]] = None):
        self._rules: Dict[Tuple[UnitOfMeasure, UnitOfMeasure], ConversionRule] = {}
        for rule in DEFAULT_CONVERSION_RULES if rules is None else rules:
            self.register(rule)

    def register(self, rule: ConversionRule) -> None:
        self._rules[(rule.from_unit, rule.to_unit)] = rule

    def convert(
        self,
        quantity: Decimal,
        from_unit: UnitOfMeasure,
        to_unit: UnitOfMeasure,
    ) -> Decimal:
        if from_unit == to_unit:
            return quantity
        rule = self._rules.get((from_unit, to_unit))
        if rule is None:
            raise ValidationError(
                f"No conversion rule from {from_unit.value} to {to_unit.value}.",
                from_unit=from_unit.value,
                to_unit=to_unit.value,
            )
        return rule.apply(quantity)

"""
Millstone Core Primitives — items, recipes, packaging profiles and units of measure.

This package contains NO ledger state and NO persistence logic.
"""

from core.primitives.item import Item, ItemCategory, StockPartition, parse_partition
from core.primitives.packaging import PackagingComponent, PackagingProfile
from core.primitives.recipe import Recipe, RecipeLine
from core.primitives.units import (
    ConversionRule,
    UnitConverter,
    UnitOfMeasure,
    parse_unit,
    to_decimal,
)

__all__ = [
    "ConversionRule",
    "Item",
    "ItemCategory",
    "PackagingComponent",
    "PackagingProfile",
    "Recipe",
    "RecipeLine",
    "StockPartition",
    "UnitConverter",
    "UnitOfMeasure",
    "parse_partition",
    "parse_unit",
    "to_decimal",
]

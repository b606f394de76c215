"""
Millstone — Units, Items and Recipes
======================================
Master-data primitives: decimal coercion, unit conversion, item
category rules and recipe invariants.
"""

from decimal import Decimal

import pytest

from core.errors import InvalidRecipe, ValidationError
from core.primitives.item import Item, ItemCategory, StockPartition, parse_partition
from core.primitives.recipe import Recipe, RecipeLine
from core.primitives.units import (
    ConversionRule,
    UnitConverter,
    UnitOfMeasure,
    parse_unit,
    to_decimal,
)


def _item(item_id, category, unit=UnitOfMeasure.KG, **kwargs):
    return Item(item_id=item_id, name=item_id.title(), category=category, unit=unit, **kwargs)


CATALOG = {
    "raw-chili": _item("raw-chili", ItemCategory.RAW),
    "raw-cumin": _item("raw-cumin", ItemCategory.RAW),
    "bulk-chili": _item("bulk-chili", ItemCategory.BULK),
    "pack-pouch-50": _item("pack-pouch-50", ItemCategory.PACKING, UnitOfMeasure.PCS),
}


# ══════════════════════════════════════════════════════════════
# UNITS
# ══════════════════════════════════════════════════════════════

class TestToDecimal:
    def test_strings_and_ints(self):
        assert to_decimal("12.500", "q") == Decimal("12.500")
        assert to_decimal(7, "q") == Decimal(7)

    def test_float_goes_through_str(self):
        assert to_decimal(0.1, "q") == Decimal("0.1")

    def test_rejects_bool(self):
        with pytest.raises(ValidationError, match="q must be a number"):
            to_decimal(True, "q")

    def test_rejects_none_and_garbage(self):
        with pytest.raises(ValidationError):
            to_decimal(None, "q")
        with pytest.raises(ValidationError, match="got 'ten'"):
            to_decimal("ten", "q")

    def test_rejects_non_finite(self):
        with pytest.raises(ValidationError, match="finite"):
            to_decimal("NaN", "q")


class TestUnitConverter:
    def test_grams_to_kilograms(self):
        converter = UnitConverter()
        assert converter.convert(Decimal("90000"), UnitOfMeasure.G, UnitOfMeasure.KG) == Decimal("90.000")

    def test_identity(self):
        converter = UnitConverter()
        assert converter.convert(Decimal("5"), UnitOfMeasure.KG, UnitOfMeasure.KG) == Decimal("5")

    def test_missing_rule(self):
        converter = UnitConverter()
        with pytest.raises(ValidationError, match="No conversion rule from PCS to KG"):
            converter.convert(Decimal("5"), UnitOfMeasure.PCS, UnitOfMeasure.KG)

    def test_registered_rule_rounds_its_own_way(self):
        converter = UnitConverter(rules=())
        converter.register(ConversionRule(
            UnitOfMeasure.BOX, UnitOfMeasure.PCS, Decimal("20"),
            precision_scale=0, rounding_mode="DOWN",
        ))
        assert converter.convert(Decimal("1.99"), UnitOfMeasure.BOX, UnitOfMeasure.PCS) == Decimal("39")

    def test_rule_rejects_same_units(self):
        with pytest.raises(ValidationError, match="two different units"):
            ConversionRule(UnitOfMeasure.KG, UnitOfMeasure.KG, Decimal("1"))

    def test_parse_unit(self):
        assert parse_unit("kg") == UnitOfMeasure.KG
        with pytest.raises(ValidationError, match="not valid"):
            parse_unit("LITRE")


# ══════════════════════════════════════════════════════════════
# ITEMS
# ══════════════════════════════════════════════════════════════

class TestItem:
    def test_finished_good_with_pack_size(self):
        item = Item.from_dict({
            "item_id": "fg-chili-50", "name": "Chili Powder 50g Pouch",
            "category": "finished_good", "unit": "PCS",
            "pack_size": "50", "pack_unit": "G", "source_bulk_item_id": "bulk-chili",
        })
        assert item.category == ItemCategory.FINISHED_GOOD
        assert item.pack_size == Decimal("50")
        assert item.pack_unit == UnitOfMeasure.G
        assert item.to_dict()["source_bulk_item_id"] == "bulk-chili"

    def test_pack_size_only_on_finished_goods(self):
        with pytest.raises(ValidationError, match="finished goods only"):
            _item("bulk-chili", ItemCategory.BULK, pack_size=Decimal("50"), pack_unit=UnitOfMeasure.G)

    def test_pack_size_requires_unit(self):
        with pytest.raises(ValidationError, match="requires pack_unit"):
            _item("fg", ItemCategory.FINISHED_GOOD, UnitOfMeasure.PCS, pack_size=Decimal("50"))

    def test_invalid_category(self):
        with pytest.raises(ValidationError, match="invalid category"):
            Item.from_dict({"item_id": "x", "name": "X", "category": "SPARE", "unit": "KG"})

    def test_negative_reorder_level(self):
        with pytest.raises(ValidationError, match="reorder_level"):
            _item("raw-x", ItemCategory.RAW, reorder_level=Decimal("-1"))

    def test_is_bulk(self):
        assert CATALOG["bulk-chili"].is_bulk
        assert not CATALOG["raw-chili"].is_bulk


class TestPartition:
    def test_blank_means_in_house(self):
        assert parse_partition(None) == StockPartition.IN_HOUSE
        assert parse_partition("") == StockPartition.IN_HOUSE

    def test_parse(self):
        assert parse_partition("third_party") == StockPartition.THIRD_PARTY

    def test_invalid(self):
        with pytest.raises(ValidationError, match="partition"):
            parse_partition("CONSIGNMENT")


# ══════════════════════════════════════════════════════════════
# RECIPES
# ══════════════════════════════════════════════════════════════

def _recipe(lines, **kwargs):
    defaults = dict(
        recipe_id="recipe-chili",
        code="chili-powder",
        name="Chili Powder",
        output_item_id="bulk-chili",
        output_quantity=Decimal("96"),
    )
    defaults.update(kwargs)
    return Recipe(lines=tuple(lines), **defaults)


class TestRecipe:
    def test_code_is_upper_cased(self):
        recipe = _recipe([RecipeLine("raw-chili", Decimal("100"))])
        assert recipe.code == "CHILI-POWDER"

    def test_requires_lines(self):
        with pytest.raises(InvalidRecipe, match="at least one ingredient"):
            _recipe([])

    def test_rejects_non_positive_quantity(self):
        with pytest.raises(InvalidRecipe, match="positive standard quantity"):
            _recipe([RecipeLine("raw-chili", Decimal("0"))])

    def test_rejects_duplicate_ingredient(self):
        with pytest.raises(InvalidRecipe, match="more than once"):
            _recipe([
                RecipeLine("raw-chili", Decimal("50")),
                RecipeLine("raw-chili", Decimal("50")),
            ])

    def test_output_cannot_be_ingredient(self):
        with pytest.raises(InvalidRecipe, match="cannot also be an ingredient"):
            _recipe([RecipeLine("bulk-chili", Decimal("10"))])

    def test_wastage_bounds(self):
        with pytest.raises(InvalidRecipe, match="expected_wastage_pct"):
            _recipe([RecipeLine("raw-chili", Decimal("100"))], expected_wastage_pct=Decimal("101"))

    def test_expected_yield(self):
        recipe = _recipe([RecipeLine("raw-chili", Decimal("100"))], expected_wastage_pct=Decimal("4"))
        assert recipe.expected_yield_pct == Decimal("96")

    def test_scaled_lines(self):
        recipe = _recipe(
            [RecipeLine("raw-chili", Decimal("100")), RecipeLine("raw-cumin", Decimal("20"))],
        )
        scaled = recipe.scaled_lines(Decimal("48"))
        assert [(line.item_id, line.standard_quantity) for line in scaled] == [
            ("raw-chili", Decimal("50.000")),
            ("raw-cumin", Decimal("10.000")),
        ]

    def test_check_items_requires_bulk_output(self):
        recipe = _recipe([RecipeLine("raw-chili", Decimal("100"))], output_item_id="raw-cumin")
        with pytest.raises(InvalidRecipe, match="must be a BULK item"):
            recipe.check_items(CATALOG)

    def test_check_items_refuses_packing_ingredient(self):
        recipe = _recipe([RecipeLine("pack-pouch-50", Decimal("10"))])
        with pytest.raises(InvalidRecipe, match="must be RAW or BULK"):
            recipe.check_items(CATALOG)

    def test_check_items_unknown_ingredient(self):
        recipe = _recipe([RecipeLine("raw-saffron", Decimal("1"))])
        with pytest.raises(InvalidRecipe, match="not in the catalog"):
            recipe.check_items(CATALOG)

    def test_from_dict_defaults_output_quantity(self):
        recipe = Recipe.from_dict({
            "recipe_id": "r1",
            "code": "c1",
            "name": "R1",
            "output_item_id": "bulk-chili",
            "lines": [{"item_id": "raw-chili", "standard_quantity": "100"}],
        })
        assert recipe.output_quantity == Decimal("100")

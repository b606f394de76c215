"""
Millstone Inventory — Demo Master Data
========================================
A small spice-processing catalog: raw seeds and roots, packing
materials, bulk powders, packed pouches and the packaging profiles
that pack them. Used by the dev HTTP wiring
and the demo seed script.
"""

from __future__ import annotations

from typing import Tuple

from core.primitives.item import Item
from core.primitives.packaging import PackagingProfile
from core.primitives.recipe import Recipe
from engines.inventory.catalog import ItemCatalog, PackagingProfileCatalog, RecipeCatalog


SEED_ITEMS = (
    # Raw materials
    {"item_id": "raw-cumin", "name": "Cumin Seeds", "category": "RAW", "unit": "KG", "reorder_level": "50"},
    {"item_id": "raw-coriander", "name": "Coriander Seeds", "category": "RAW", "unit": "KG", "reorder_level": "50"},
    {"item_id": "raw-chili", "name": "Red Chili", "category": "RAW", "unit": "KG", "reorder_level": "40"},
    {"item_id": "raw-turmeric", "name": "Turmeric Root", "category": "RAW", "unit": "KG", "reorder_level": "60"},
    {"item_id": "raw-pepper", "name": "Black Pepper", "category": "RAW", "unit": "KG", "reorder_level": "20"},
    {"item_id": "raw-fenugreek", "name": "Fenugreek Seeds", "category": "RAW", "unit": "KG", "reorder_level": "30"},
    # Packing materials
    {"item_id": "pack-pouch-50", "name": "50g Pouch", "category": "PACKING", "unit": "PCS", "reorder_level": "5000"},
    {"item_id": "pack-pouch-100", "name": "100g Pouch", "category": "PACKING", "unit": "PCS", "reorder_level": "5000"},
    {"item_id": "pack-box", "name": "Shipping Box (20)", "category": "PACKING", "unit": "PCS", "reorder_level": "500"},
    # Bulk powders
    {"item_id": "bulk-garam", "name": "Garam Masala Bulk", "category": "BULK", "unit": "KG", "reorder_level": "100"},
    {"item_id": "bulk-chili", "name": "Chili Powder Bulk", "category": "BULK", "unit": "KG", "reorder_level": "100"},
    {"item_id": "bulk-turmeric", "name": "Turmeric Powder Bulk", "category": "BULK", "unit": "KG", "reorder_level": "100"},
    # Finished goods
    {
        "item_id": "fg-garam-100", "name": "Garam Masala 100g Pouch", "category": "FINISHED_GOOD",
        "unit": "PCS", "reorder_level": "200", "pack_size": "100", "pack_unit": "G",
        "source_bulk_item_id": "bulk-garam",
    },
    {
        "item_id": "fg-chili-50", "name": "Chili Powder 50g Pouch", "category": "FINISHED_GOOD",
        "unit": "PCS", "reorder_level": "200", "pack_size": "50", "pack_unit": "G",
    },
    {
        "item_id": "fg-turmeric-100", "name": "Turmeric Powder 100g Pouch", "category": "FINISHED_GOOD",
        "unit": "PCS", "reorder_level": "200", "pack_size": "100", "pack_unit": "G",
        "source_bulk_item_id": "bulk-turmeric",
    },
)

SEED_RECIPES = (
    {
        "recipe_id": "recipe-garam",
        "code": "garam-masala",
        "name": "Garam Masala Mix",
        "output_item_id": "bulk-garam",
        "output_quantity": "85.5",
        "expected_wastage_pct": "5",
        "lines": [
            {"item_id": "raw-cumin", "standard_quantity": "30"},
            {"item_id": "raw-coriander", "standard_quantity": "25"},
            {"item_id": "raw-pepper", "standard_quantity": "15"},
            {"item_id": "raw-chili", "standard_quantity": "10"},
            {"item_id": "raw-fenugreek", "standard_quantity": "10"},
        ],
    },
    {
        "recipe_id": "recipe-chili",
        "code": "chili-powder",
        "name": "Chili Powder",
        "output_item_id": "bulk-chili",
        "output_quantity": "96",
        "expected_wastage_pct": "4",
        "lines": [{"item_id": "raw-chili", "standard_quantity": "100"}],
    },
    {
        "recipe_id": "recipe-turmeric",
        "code": "turmeric-powder",
        "name": "Turmeric Powder",
        "output_item_id": "bulk-turmeric",
        "output_quantity": "94",
        "expected_wastage_pct": "6",
        "lines": [{"item_id": "raw-turmeric", "standard_quantity": "100"}],
    },
)

SEED_PROFILES = (
    {
        "profile_id": "pp-garam-pouch",
        "name": "Garam Masala 100g Pouch",
        "pack_mode": "POUCH_100G",
        "output_item_id": "fg-garam-100",
        "components": [{"item_id": "pack-pouch-100", "qty_per_unit": "1"}],
    },
    {
        "profile_id": "pp-turmeric-pouch",
        "name": "Turmeric 100g Pouch",
        "pack_mode": "POUCH_100G",
        "output_item_id": "fg-turmeric-100",
        "components": [{"item_id": "pack-pouch-100", "qty_per_unit": "1"}],
    },
    {
        "profile_id": "pp-turmeric-boxed",
        "name": "Turmeric 100g Pouch, Boxed by 20",
        "pack_mode": "BOXED_20",
        "output_item_id": "fg-turmeric-100",
        "components": [
            {"item_id": "pack-pouch-100", "qty_per_unit": "1"},
            {"item_id": "pack-box", "qty_per_unit": "0.05"},
        ],
    },
)


def build_seed_catalogs() -> Tuple[ItemCatalog, RecipeCatalog]:
    items = ItemCatalog(Item.from_dict(data) for data in SEED_ITEMS)
    items.validate_links()
    recipes = RecipeCatalog(items, (Recipe.from_dict(data) for data in SEED_RECIPES))
    return items, recipes


def build_seed_profiles(items: ItemCatalog) -> PackagingProfileCatalog:
    return PackagingProfileCatalog(items, (PackagingProfile.from_dict(data) for data in SEED_PROFILES))

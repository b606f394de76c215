"""
Millstone Inventory — Item, Recipe and Packaging Profile Catalogs
===================================================================
In-memory master data consumed by the transaction engine. The engine
only reads catalogs; registration happens at setup time.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from core.errors import InvalidRecipe, UnknownReference, ValidationError
from core.primitives.item import Item, ItemCategory
from core.primitives.packaging import PackagingProfile
from core.primitives.recipe import Recipe

logger = logging.getLogger("millstone.catalog")


class ItemCatalog:
    def __init__(self, items: Iterable[Item] = ()):
        self._items: Dict[str, Item] = {}
        for item in items:
            self.register(item)

    def register(self, item: Item) -> None:
        if item.item_id in self._items:
            raise ValidationError(
                f"Item '{item.item_id}' is already registered.", item_id=item.item_id
            )
        if item.source_bulk_item_id is not None:
            source = self._items.get(item.source_bulk_item_id)
            if source is not None and source.category != ItemCategory.BULK:
                raise ValidationError(
                    f"Item '{item.item_id}' source_bulk_item_id "
                    f"'{source.item_id}' is not a BULK item.",
                    item_id=item.item_id,
                )
        self._items[item.item_id] = item

    def get(self, item_id: str) -> Item:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownReference("item", item_id)
        return item

    def find(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def by_category(self, category: ItemCategory) -> List[Item]:
        return [i for i in self._items.values() if i.category == category]

    def all(self) -> List[Item]:
        return list(self._items.values())

    def as_mapping(self) -> Mapping[str, Item]:
        return dict(self._items)

    def validate_links(self) -> None:
        """Every finished good's bulk link must name a registered BULK item."""
        for item in self._items.values():
            if item.source_bulk_item_id is None:
                continue
            source = self._items.get(item.source_bulk_item_id)
            if source is None or source.category != ItemCategory.BULK:
                raise ValidationError(
                    f"Item '{item.item_id}' links to '{item.source_bulk_item_id}', "
                    f"which is not a registered BULK item.",
                    item_id=item.item_id,
                )

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)


class RecipeCatalog:
    def __init__(self, items: ItemCatalog, recipes: Iterable[Recipe] = ()):
        self._items = items
        self._recipes: Dict[str, Recipe] = {}
        for recipe in recipes:
            self.register(recipe)

    def register(self, recipe: Recipe) -> None:
        if recipe.recipe_id in self._recipes:
            raise InvalidRecipe(
                f"Recipe '{recipe.recipe_id}' is already registered.",
                recipe_id=recipe.recipe_id,
            )
        if any(r.code == recipe.code for r in self._recipes.values()):
            raise InvalidRecipe(
                f"Recipe code '{recipe.code}' is already in use.",
                recipe_id=recipe.recipe_id,
            )
        recipe.check_items(self._items.as_mapping())
        self._recipes[recipe.recipe_id] = recipe
        logger.debug(f"Recipe registered: {recipe.recipe_id} → {recipe.output_item_id}")

    def get(self, recipe_id: str) -> Recipe:
        recipe = self._recipes.get(recipe_id)
        if recipe is None:
            raise UnknownReference("recipe", recipe_id)
        return recipe

    def for_output(self, item_id: str) -> List[Recipe]:
        return [r for r in self._recipes.values() if r.output_item_id == item_id]

    def all(self) -> List[Recipe]:
        return list(self._recipes.values())

    def __contains__(self, recipe_id: object) -> bool:
        return recipe_id in self._recipes

    def __len__(self) -> int:
        return len(self._recipes)


class PackagingProfileCatalog:
    def __init__(self, items: ItemCatalog, profiles: Iterable[PackagingProfile] = ()):
        self._items = items
        self._profiles: Dict[str, PackagingProfile] = {}
        for profile in profiles:
            self.register(profile)

    def register(self, profile: PackagingProfile) -> None:
        if profile.profile_id in self._profiles:
            raise ValidationError(
                f"Packaging profile '{profile.profile_id}' is already registered.",
                profile_id=profile.profile_id,
            )
        if profile.is_active and any(
            p.is_active
            and p.output_item_id == profile.output_item_id
            and p.pack_mode == profile.pack_mode
            for p in self._profiles.values()
        ):
            raise ValidationError(
                f"'{profile.output_item_id}' already has an active "
                f"{profile.pack_mode} packaging profile.",
                profile_id=profile.profile_id,
            )
        profile.check_items(self._items.as_mapping())
        self._profiles[profile.profile_id] = profile
        logger.debug(
            f"Packaging profile registered: {profile.profile_id} "
            f"({profile.pack_mode}) → {profile.output_item_id}"
        )

    def get(self, profile_id: str) -> PackagingProfile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise UnknownReference("packaging profile", profile_id)
        return profile

    def all(self, active_only: bool = False, pack_mode: Optional[str] = None) -> List[PackagingProfile]:
        mode = pack_mode.strip().upper() if pack_mode else None
        return [
            p for p in self._profiles.values()
            if (p.is_active or not active_only) and (mode is None or p.pack_mode == mode)
        ]

    def for_output(self, item_id: str, pack_mode: Optional[str] = None) -> Optional[PackagingProfile]:
        """
        The active profile packing `item_id`.

        Without a pack_mode the finished good must have at most one
        active profile. Naming a pack_mode that has no profile is an
        UnknownReference.
        """
        candidates = [
            p for p in self.all(active_only=True, pack_mode=pack_mode)
            if p.output_item_id == item_id
        ]
        if pack_mode:
            if not candidates:
                raise UnknownReference("packaging profile", f"{item_id}/{pack_mode.strip().upper()}")
            return candidates[0]
        if len(candidates) > 1:
            raise ValidationError(
                f"'{item_id}' has several packaging profiles "
                f"{sorted(p.pack_mode for p in candidates)}; name a pack_mode.",
                item_id=item_id,
            )
        return candidates[0] if candidates else None

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

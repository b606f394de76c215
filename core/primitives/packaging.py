"""
Millstone Packaging Profile Primitive — Packing Materials per Unit
====================================================================
A packaging profile names a pack mode for one finished good and the
packing materials each packed unit consumes. A packing run that lists
no materials takes them from the profile: units x qty_per_unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Tuple

from core.errors import ValidationError
from core.primitives.item import Item, ItemCategory
from core.primitives.units import to_decimal


@dataclass(frozen=True)
class PackagingComponent:
    item_id: str
    qty_per_unit: Decimal


@dataclass(frozen=True)
class PackagingProfile:
    """
    Invariants (ValidationError otherwise):
        - name and pack_mode are non-empty; pack_mode is stored upper-case
        - at least one component
        - every qty_per_unit > 0
        - no packing material listed twice
    """

    profile_id: str
    name: str
    pack_mode: str
    output_item_id: str
    components: Tuple[PackagingComponent, ...]
    is_active: bool = True

    def __post_init__(self) -> None:
        if not self.profile_id:
            raise ValidationError("profile_id must be a non-empty string.")
        if not (self.name or "").strip():
            raise ValidationError(
                f"Packaging profile '{self.profile_id}' must have a name.",
                profile_id=self.profile_id,
            )
        object.__setattr__(self, "pack_mode", (self.pack_mode or "").strip().upper())
        if not self.pack_mode:
            raise ValidationError(
                f"Packaging profile '{self.profile_id}' must have a pack_mode.",
                profile_id=self.profile_id,
            )
        if not self.output_item_id:
            raise ValidationError(
                f"Packaging profile '{self.profile_id}' must name an output item.",
                profile_id=self.profile_id,
            )
        if not self.components:
            raise ValidationError(
                f"Packaging profile '{self.profile_id}' must have at least one component.",
                profile_id=self.profile_id,
            )

        seen = set()
        for component in self.components:
            if component.qty_per_unit <= 0:
                raise ValidationError(
                    f"Packaging profile '{self.profile_id}' component "
                    f"'{component.item_id}' must have a positive qty_per_unit.",
                    profile_id=self.profile_id,
                    item_id=component.item_id,
                )
            if component.item_id in seen:
                raise ValidationError(
                    f"Packaging profile '{self.profile_id}' lists "
                    f"'{component.item_id}' more than once.",
                    profile_id=self.profile_id,
                    item_id=component.item_id,
                )
            seen.add(component.item_id)

    def check_items(self, items: Mapping[str, Item]) -> None:
        output = items.get(self.output_item_id)
        if output is None or output.category != ItemCategory.FINISHED_GOOD:
            raise ValidationError(
                f"Packaging profile '{self.profile_id}' output "
                f"'{self.output_item_id}' must be a registered FINISHED_GOOD item.",
                profile_id=self.profile_id,
            )
        for component in self.components:
            item = items.get(component.item_id)
            if item is None or item.category != ItemCategory.PACKING:
                raise ValidationError(
                    f"Packaging profile '{self.profile_id}' component "
                    f"'{component.item_id}' must be a registered PACKING item.",
                    profile_id=self.profile_id,
                    item_id=component.item_id,
                )

    def to_dict(self) -> dict:
        return {
            "profile_id": self.profile_id,
            "name": self.name,
            "pack_mode": self.pack_mode,
            "output_item_id": self.output_item_id,
            "is_active": self.is_active,
            "components": [
                {"item_id": c.item_id, "qty_per_unit": str(c.qty_per_unit)}
                for c in self.components
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PackagingProfile":
        raw = data.get("components") or ()
        if not isinstance(raw, (list, tuple)):
            raise ValidationError("components must be a list.")
        return cls(
            profile_id=data.get("profile_id", ""),
            name=data.get("name", ""),
            pack_mode=data.get("pack_mode", ""),
            output_item_id=data.get("output_item_id", ""),
            components=tuple(
                PackagingComponent(
                    item_id=str(c.get("item_id", "")),
                    qty_per_unit=to_decimal(c.get("qty_per_unit"), "qty_per_unit"),
                )
                for c in raw
            ),
            is_active=bool(data.get("is_active", True)),
        )

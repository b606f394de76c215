"""
Millstone Recipe Primitive — Bill of Materials for Bulk Production
====================================================================
A recipe states how much of each input is expected to produce
`output_quantity` of one bulk item. Batches planned for another size
scale every standard quantity proportionally.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Tuple

from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.errors import InvalidRecipe, ValidationError
from core.primitives.item import Item, ItemCategory
from core.primitives.units import to_decimal


CONSUMABLE_CATEGORIES = frozenset({ItemCategory.RAW, ItemCategory.BULK})

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class RecipeLine:
    item_id: str
    standard_quantity: Decimal


@dataclass(frozen=True)
class Recipe:
    """
    Invariants (InvalidRecipe otherwise):
        - at least one line
        - every standard quantity > 0, output_quantity > 0
        - no input item listed twice
        - the output item is not also an input
        - expected_wastage_pct within [0, 100]
    """

    recipe_id: str
    code: str
    name: str
    output_item_id: str
    output_quantity: Decimal
    lines: Tuple[RecipeLine, ...]
    expected_wastage_pct: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not self.recipe_id:
            raise InvalidRecipe("recipe_id must be a non-empty string.")
        object.__setattr__(self, "code", (self.code or "").strip().upper())
        if not self.code:
            raise InvalidRecipe(f"Recipe '{self.recipe_id}' must have a code.")
        if not self.output_item_id:
            raise InvalidRecipe(f"Recipe '{self.recipe_id}' must name an output item.")
        if self.output_quantity <= 0:
            raise InvalidRecipe(
                f"Recipe '{self.recipe_id}' output_quantity must be positive.",
                recipe_id=self.recipe_id,
            )
        if not self.lines:
            raise InvalidRecipe(
                f"Recipe '{self.recipe_id}' must have at least one ingredient.",
                recipe_id=self.recipe_id,
            )

        seen = set()
        for line in self.lines:
            if line.standard_quantity <= 0:
                raise InvalidRecipe(
                    f"Recipe '{self.recipe_id}' ingredient '{line.item_id}' "
                    f"must have a positive standard quantity.",
                    recipe_id=self.recipe_id,
                    item_id=line.item_id,
                )
            if line.item_id in seen:
                raise InvalidRecipe(
                    f"Recipe '{self.recipe_id}' lists ingredient "
                    f"'{line.item_id}' more than once.",
                    recipe_id=self.recipe_id,
                    item_id=line.item_id,
                )
            if line.item_id == self.output_item_id:
                raise InvalidRecipe(
                    f"Recipe '{self.recipe_id}' output '{line.item_id}' "
                    f"cannot also be an ingredient.",
                    recipe_id=self.recipe_id,
                    item_id=line.item_id,
                )
            seen.add(line.item_id)

        if not 0 <= self.expected_wastage_pct <= HUNDRED:
            raise InvalidRecipe(
                f"Recipe '{self.recipe_id}' expected_wastage_pct must be within [0, 100].",
                recipe_id=self.recipe_id,
            )

    @property
    def expected_yield_pct(self) -> Decimal:
        return HUNDRED - self.expected_wastage_pct

    @property
    def ingredient_ids(self) -> Tuple[str, ...]:
        return tuple(line.item_id for line in self.lines)

    def scaled_lines(
        self,
        planned_quantity: Decimal,
        config: LedgerConfig = DEFAULT_LEDGER_CONFIG,
    ) -> Tuple[RecipeLine, ...]:
        """Standard quantities for a batch of `planned_quantity` output."""
        if planned_quantity <= 0:
            raise ValidationError("planned_quantity must be positive.")
        ratio = planned_quantity / self.output_quantity
        return tuple(
            RecipeLine(
                item_id=line.item_id,
                standard_quantity=config.quantity(line.standard_quantity * ratio),
            )
            for line in self.lines
        )

    def check_items(self, items: Mapping[str, Item]) -> None:
        """Verify categories against the item catalog."""
        output = items.get(self.output_item_id)
        if output is None:
            raise InvalidRecipe(
                f"Recipe '{self.recipe_id}' output item "
                f"'{self.output_item_id}' is not in the catalog.",
                recipe_id=self.recipe_id,
            )
        if output.category != ItemCategory.BULK:
            raise InvalidRecipe(
                f"Recipe '{self.recipe_id}' output '{output.item_id}' must be a BULK item.",
                recipe_id=self.recipe_id,
            )
        for line in self.lines:
            item = items.get(line.item_id)
            if item is None:
                raise InvalidRecipe(
                    f"Recipe '{self.recipe_id}' ingredient '{line.item_id}' "
                    f"is not in the catalog.",
                    recipe_id=self.recipe_id,
                    item_id=line.item_id,
                )
            if item.category not in CONSUMABLE_CATEGORIES:
                raise InvalidRecipe(
                    f"Recipe '{self.recipe_id}' ingredient '{line.item_id}' "
                    f"must be RAW or BULK, got {item.category.value}.",
                    recipe_id=self.recipe_id,
                    item_id=line.item_id,
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recipe":
        raw_lines = data.get("lines") or ()
        if not isinstance(raw_lines, (list, tuple)):
            raise InvalidRecipe("lines must be a list.")
        lines = tuple(
            RecipeLine(
                item_id=str(line.get("item_id", "")),
                standard_quantity=to_decimal(
                    line.get("standard_quantity"), "standard_quantity"
                ),
            )
            for line in raw_lines
        )
        return cls(
            recipe_id=data.get("recipe_id", ""),
            code=data.get("code", ""),
            name=data.get("name", ""),
            output_item_id=data.get("output_item_id", ""),
            output_quantity=to_decimal(data.get("output_quantity", 100), "output_quantity"),
            lines=lines,
            expected_wastage_pct=to_decimal(
                data.get("expected_wastage_pct", 0), "expected_wastage_pct"
            ),
        )

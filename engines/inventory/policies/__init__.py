"""
Millstone Inventory — Policies
================================
Validation checks run before any ledger mutation. Each policy raises
the matching ledger error; returning normally means the check passed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Tuple

from core.errors import InsufficientStock, OutputExceedsInput, ValidationError
from core.primitives.item import Item, ItemCategory, StockPartition
from engines.inventory.stock import StockLedger

Requirement = Tuple[str, StockPartition, Decimal]


def aggregate_requirements(requirements: Iterable[Requirement]) -> Tuple[Requirement, ...]:
    """Sum repeated (item, partition) demands, keeping first-seen order."""
    totals: dict = {}
    for item_id, partition, quantity in requirements:
        key = (item_id, partition)
        totals[key] = totals.get(key, Decimal("0")) + quantity
    return tuple((item_id, partition, qty) for (item_id, partition), qty in totals.items())


def negative_stock_policy(
    stock: StockLedger,
    requirements: Iterable[Requirement],
) -> None:
    """
    Reject if any requirement exceeds stock on hand.

    Requirements are aggregated first so two lines for the same item
    cannot each pass against the same balance. The first short item is
    reported.
    """
    for item_id, partition, quantity in aggregate_requirements(requirements):
        if quantity <= 0:
            continue
        available = stock.available(item_id, partition)
        if quantity > available:
            raise InsufficientStock(
                item_id=item_id,
                requested=quantity,
                available=available,
                partition=partition.value,
            )


def category_policy(item: Item, allowed: Iterable[ItemCategory], role: str) -> None:
    allowed = frozenset(allowed)
    if item.category not in allowed:
        raise ValidationError(
            f"Item '{item.item_id}' ({item.category.value}) cannot be used as {role}. "
            f"Expected: {sorted(c.value for c in allowed)}",
            item_id=item.item_id,
            category=item.category.value,
        )


def issue_coverage_policy(
    batch_id: str,
    ingredient_ids: Iterable[str],
    quantities: Mapping[str, Decimal],
) -> None:
    """Issued items must be exactly the recipe's ingredients."""
    expected = list(ingredient_ids)
    missing = [item_id for item_id in expected if item_id not in quantities]
    extra = sorted(set(quantities) - set(expected))
    if missing:
        raise ValidationError(
            f"Batch '{batch_id}' issue is missing actual quantities for: {missing}",
            batch_id=batch_id,
            missing=missing,
        )
    if extra:
        raise ValidationError(
            f"Batch '{batch_id}' issue names items outside the recipe: {extra}",
            batch_id=batch_id,
            extra=extra,
        )


def yield_policy(
    batch_id: str,
    actual_output: Decimal,
    wastage: Decimal,
    total_input: Decimal,
) -> None:
    if actual_output > total_input:
        raise OutputExceedsInput(batch_id, actual_output, total_input)
    if actual_output + wastage > total_input:
        raise ValidationError(
            f"Batch '{batch_id}' output {actual_output} plus wastage {wastage} "
            f"exceeds total input {total_input}.",
            batch_id=batch_id,
        )

"""
Millstone Inventory — Packing Source Resolution
=================================================
Decides which bulk balance a packing run draws from.

InHouse(batch_id):   the batch must be COMPLETED; bulk is the recipe
                     output in the IN_HOUSE partition, drawn from the
                     lot the batch produced.
ThirdParty(grn_id):  the GRN must be a third-party bulk receipt; bulk
                     comes from the THIRD_PARTY partition, drawn from
                     the lots that GRN received. The bulk item is the
                     run's explicit bulk_item_id, else the finished
                     good's source_bulk_item_id, else (legacy) a name
                     match against the GRN's bulk lines.

Name matching must resolve to exactly one item. Anything else fails
and asks the caller for an explicit reference.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Mapping, Optional

from core.config.rules import LedgerConfig
from core.errors import (
    AmbiguousSource,
    InvalidTransition,
    UnknownReference,
    UnresolvedSource,
    ValidationError,
)
from core.primitives.item import Item, StockPartition
from engines.inventory.commands import GrnType, InHouse, PackingSource, ThirdParty
from engines.inventory.records import BatchStatus, GoodsReceipt, ProductionBatch

logger = logging.getLogger("millstone.engine")

_BULK_SUFFIX = re.compile(r"\s*(\(\s*bulk\s*\)|\bbulk)\s*$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ResolvedSource:
    bulk_item_id: str
    partition: StockPartition
    matched_by: str  # BATCH | EXPLICIT | CATALOG_LINK | NAME_MATCH
    reference_id: str  # batch or GRN whose lots the run draws


def normalise_bulk_name(name: str) -> str:
    """'Chili Powder (Bulk)' → 'chili powder'."""
    stripped = _BULK_SUFFIX.sub("", name or "")
    return _WHITESPACE.sub(" ", stripped).strip().lower()


def names_match(finished_name: str, bulk_name: str) -> bool:
    finished = normalise_bulk_name(finished_name)
    bulk = normalise_bulk_name(bulk_name)
    if not finished or not bulk:
        return False
    return bulk in finished or finished in bulk


def resolve_packing_source(
    source: PackingSource,
    finished_good: Item,
    batches: Mapping[str, ProductionBatch],
    receipts: Mapping[str, GoodsReceipt],
    items: Mapping[str, Item],
    config: LedgerConfig,
    explicit_bulk_item_id: Optional[str] = None,
) -> ResolvedSource:
    if isinstance(source, InHouse):
        return _resolve_in_house(source, finished_good, batches, explicit_bulk_item_id)
    if isinstance(source, ThirdParty):
        return _resolve_third_party(
            source, finished_good, receipts, items, config, explicit_bulk_item_id
        )
    raise ValidationError(f"Unknown packing source {source!r}.")


def _resolve_in_house(
    source: InHouse,
    finished_good: Item,
    batches: Mapping[str, ProductionBatch],
    explicit_bulk_item_id: Optional[str],
) -> ResolvedSource:
    batch = batches.get(source.batch_id)
    if batch is None:
        raise UnknownReference("batch", source.batch_id)
    if batch.status != BatchStatus.COMPLETED:
        raise InvalidTransition(
            "Batch", batch.batch_id, batch.status.value, "PACKED"
        )

    for label, declared in (
        ("bulk_item_id", explicit_bulk_item_id),
        ("source_bulk_item_id", finished_good.source_bulk_item_id),
    ):
        if declared is not None and declared != batch.output_item_id:
            raise ValidationError(
                f"{label} '{declared}' does not match batch "
                f"'{batch.batch_id}' output '{batch.output_item_id}'.",
                batch_id=batch.batch_id,
                bulk_item_id=declared,
            )

    return ResolvedSource(batch.output_item_id, StockPartition.IN_HOUSE, "BATCH", batch.batch_id)


def _resolve_third_party(
    source: ThirdParty,
    finished_good: Item,
    receipts: Mapping[str, GoodsReceipt],
    items: Mapping[str, Item],
    config: LedgerConfig,
    explicit_bulk_item_id: Optional[str],
) -> ResolvedSource:
    grn = receipts.get(source.grn_id)
    if grn is None:
        raise UnknownReference("goods receipt", source.grn_id)
    if grn.grn_type != GrnType.THIRD_PARTY_BULK:
        raise ValidationError(
            f"Goods receipt '{grn.grn_id}' is not a third-party bulk receipt.",
            grn_id=grn.grn_id,
        )

    candidates: List[str] = []
    for line in grn.lines:
        if line.item_id not in candidates:
            candidates.append(line.item_id)

    if explicit_bulk_item_id is not None:
        declared, matched_by = explicit_bulk_item_id, "EXPLICIT"
    else:
        declared, matched_by = finished_good.source_bulk_item_id, "CATALOG_LINK"

    if declared is not None:
        if declared not in candidates:
            raise ValidationError(
                f"Goods receipt '{grn.grn_id}' did not receive bulk item '{declared}'.",
                grn_id=grn.grn_id,
                bulk_item_id=declared,
            )
        return ResolvedSource(declared, StockPartition.THIRD_PARTY, matched_by, grn.grn_id)

    if not config.legacy_name_matching:
        raise UnresolvedSource(
            f"Finished good '{finished_good.item_id}' has no source_bulk_item_id; "
            f"name any bulk item from goods receipt '{grn.grn_id}' explicitly.",
            grn_id=grn.grn_id,
            candidates=candidates,
        )

    matches = [
        item_id
        for item_id in candidates
        if item_id in items and names_match(finished_good.name, items[item_id].name)
    ]
    if len(matches) > 1:
        raise AmbiguousSource(
            f"Finished good '{finished_good.name}' matches several bulk items "
            f"on goods receipt '{grn.grn_id}': {matches}. Name one explicitly.",
            grn_id=grn.grn_id,
            candidates=matches,
        )
    if not matches:
        raise UnresolvedSource(
            f"No bulk item on goods receipt '{grn.grn_id}' matches "
            f"'{finished_good.name}'. Name one explicitly.",
            grn_id=grn.grn_id,
            candidates=candidates,
        )

    logger.warning(
        f"Packing source resolved by name: {finished_good.item_id} ← "
        f"{matches[0]} (GRN {grn.grn_id}). Set source_bulk_item_id to avoid guessing."
    )
    return ResolvedSource(matches[0], StockPartition.THIRD_PARTY, "NAME_MATCH", grn.grn_id)

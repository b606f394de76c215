"""
Millstone Core Audit — Append-Only Audit Trail
================================================
The trail never edits or removes an entry. Sequence numbers and entry
ids are assigned on append, in order.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Tuple

from core.audit.models import AuditEntry, AuditKind
from core.primitives.item import StockPartition


@dataclass(frozen=True)
class AuditFilter:
    """All fields optional; set fields must all match."""

    item_id: Optional[str] = None
    kind: Optional[AuditKind] = None
    reference_id: Optional[str] = None
    partition: Optional[StockPartition] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def matches(self, entry: AuditEntry) -> bool:
        if self.item_id is not None and entry.item_id != self.item_id:
            return False
        if self.kind is not None and entry.kind != self.kind:
            return False
        if self.reference_id is not None and entry.reference_id != self.reference_id:
            return False
        if self.partition is not None and entry.partition != self.partition:
            return False
        if self.since is not None and entry.occurred_at < self.since:
            return False
        if self.until is not None and entry.occurred_at > self.until:
            return False
        return True


class AuditTrail:
    def __init__(self, entries: Iterable[AuditEntry] = ()):
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()
        self.append(entries)

    def append(self, entries: Iterable[AuditEntry]) -> Tuple[AuditEntry, ...]:
        """Append in order; returns the entries as stored (sequenced)."""
        stored = []
        with self._lock:
            for entry in entries:
                sequence = len(self._entries) + 1
                sequenced = dataclasses.replace(
                    entry,
                    sequence=sequence,
                    entry_id=f"AUD-{sequence:06d}",
                )
                self._entries.append(sequenced)
                stored.append(sequenced)
        return tuple(stored)

    def entries(self, audit_filter: Optional[AuditFilter] = None) -> Tuple[AuditEntry, ...]:
        with self._lock:
            snapshot = tuple(self._entries)
        if audit_filter is None:
            return snapshot
        return tuple(e for e in snapshot if audit_filter.matches(e))

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

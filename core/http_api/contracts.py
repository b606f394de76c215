"""
Millstone HTTP API - Contracts
==============================
Framework-agnostic request/response DTOs for ledger endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from core.audit.models import AuditKind
from core.audit.trail import AuditFilter
from core.primitives.item import StockPartition, parse_partition


@dataclass(frozen=True)
class LedgerWriteHttpRequest:
    """
    JSON body of a write endpoint.

    expected_version enables optimistic concurrency: the write is
    refused when the ledger has moved on since the caller last read it.
    """

    body: dict[str, Any]
    expected_version: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.body, dict):
            raise ValueError("body must be a JSON object.")
        if self.expected_version is not None and (
            isinstance(self.expected_version, bool)
            or not isinstance(self.expected_version, int)
            or self.expected_version < 0
        ):
            raise ValueError("expected_version must be a non-negative integer.")

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "LedgerWriteHttpRequest":
        payload = dict(body)
        expected_version = payload.pop("expected_version", None)
        return cls(body=payload, expected_version=expected_version)


@dataclass(frozen=True)
class StockQueryHttpRequest:
    item_id: Optional[str] = None
    partition: StockPartition = StockPartition.IN_HOUSE

    @classmethod
    def from_query(cls, query: dict[str, str]) -> "StockQueryHttpRequest":
        return cls(
            item_id=query.get("item_id") or None,
            partition=parse_partition(query.get("partition")),
        )


@dataclass(frozen=True)
class AuditTrailHttpRequest:
    item_id: Optional[str] = None
    kind: Optional[AuditKind] = None
    reference_id: Optional[str] = None
    partition: Optional[StockPartition] = None

    @classmethod
    def from_query(cls, query: dict[str, str]) -> "AuditTrailHttpRequest":
        kind = query.get("kind")
        partition = query.get("partition")
        try:
            parsed_kind = AuditKind(kind.upper()) if kind else None
        except ValueError as exc:
            raise ValueError(f"kind '{kind}' not valid.") from exc
        return cls(
            item_id=query.get("item_id") or None,
            kind=parsed_kind,
            reference_id=query.get("reference_id") or None,
            partition=parse_partition(partition) if partition else None,
        )

    def to_filter(self) -> AuditFilter:
        return AuditFilter(
            item_id=self.item_id,
            kind=self.kind,
            reference_id=self.reference_id,
            partition=self.partition,
        )


@dataclass(frozen=True)
class HttpApiErrorBody:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HttpApiResponse:
    ok: bool
    data: Any = None
    error: Optional[HttpApiErrorBody] = None
    meta: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            payload = {"ok": True, "data": self.data}
        else:
            if self.error is None:
                raise ValueError("error must be set when ok is False.")
            payload = {"ok": False, "error": self.error.to_dict()}
        if self.meta:
            payload["meta"] = dict(self.meta)
        return payload

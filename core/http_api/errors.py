"""
Millstone HTTP API - Error Mapping
==================================
Stable transport error mapping for ledger rejections and handler failures.
"""

from __future__ import annotations

from typing import Any, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse

CONFLICT_CODES = frozenset({
    ReasonCode.INSUFFICIENT_STOCK,
    ReasonCode.INVALID_TRANSITION,
    ReasonCode.CONCURRENCY_CONFLICT,
})

STATUS_BY_CODE = {
    "METHOD_NOT_ALLOWED": 405,
    "INTERNAL_ERROR": 500,
}


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    meta: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(
        ok=False,
        error=HttpApiErrorBody(
            code=code,
            message=message,
            details=details or {},
        ),
        meta=meta,
    ).to_dict()


def success_response(
    data: Any,
    *,
    meta: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(ok=True, data=data, meta=meta).to_dict()


def map_rejection_reason(reason: RejectionReason) -> HttpApiErrorBody:
    details = dict(reason.details)
    details.update({
        "policy_name": reason.policy_name,
        "message_key": reason.message_key,
    })
    return HttpApiErrorBody(
        code=reason.code,
        message=reason.message,
        details=details,
    )


def rejection_response(
    reason: RejectionReason,
    *,
    meta: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    mapped = map_rejection_reason(reason)
    return error_response(
        code=mapped.code,
        message=mapped.message,
        details=mapped.details,
        meta=meta,
    )


def http_status_for(payload: dict[str, Any]) -> int:
    """HTTP status for a handler payload: 200, 409 for conflicts, 400 otherwise."""
    if payload.get("ok"):
        return 200
    code = payload.get("error", {}).get("code", "")
    if code in CONFLICT_CODES:
        return 409
    return STATUS_BY_CODE.get(code, 400)

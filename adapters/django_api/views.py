"""
Millstone Django Adapter Views
==============================
Pass-through HTTP views over core/http_api handlers.
"""

from __future__ import annotations

import json
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
from core.http_api.contracts import (
    AuditTrailHttpRequest,
    LedgerWriteHttpRequest,
    StockQueryHttpRequest,
)
from core.http_api.errors import error_response, http_status_for
from core.http_api.handlers import (
    get_audit_trail,
    get_packaging_profiles,
    get_stock,
    get_valuation_report,
    post_adjustment,
    post_batch_complete,
    post_batch_issue,
    post_dispatch,
    post_goods_receipt,
    post_packing_run,
    post_production_batch,
)


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _respond(payload: dict[str, Any]) -> JsonResponse:
    return JsonResponse(payload, status=http_status_for(payload))


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _query(request: HttpRequest) -> dict[str, str]:
    return {key: request.GET.get(key) for key in request.GET.keys()}


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _dispatch_write(write_handler, request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        contract = LedgerWriteHttpRequest.from_body(_parse_json_body(request))
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    return _respond(write_handler(contract, build_dependencies()))


@csrf_exempt
def receipts_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_goods_receipt, request)


@csrf_exempt
def batches_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_production_batch, request)


@csrf_exempt
def batch_issue_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_batch_issue, request)


@csrf_exempt
def batch_complete_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_batch_complete, request)


@csrf_exempt
def packing_runs_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_packing_run, request)


@csrf_exempt
def dispatches_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_dispatch, request)


@csrf_exempt
def adjustments_view(request: HttpRequest) -> JsonResponse:
    return _dispatch_write(post_adjustment, request)


@csrf_exempt
def stock_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        contract = StockQueryHttpRequest.from_query(_query(request))
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    return _respond(get_stock(contract, build_dependencies()))


@csrf_exempt
def audit_trail_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        contract = AuditTrailHttpRequest.from_query(_query(request))
    except ValueError as exc:
        return _json_error("INVALID_REQUEST", str(exc), status=400)
    return _respond(get_audit_trail(contract, build_dependencies()))


@csrf_exempt
def valuation_report_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _respond(get_valuation_report(build_dependencies()))


@csrf_exempt
def packaging_profiles_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _respond(get_packaging_profiles(build_dependencies()))

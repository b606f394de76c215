"""
Manual smoke runner for the Millstone Django adapter endpoints.

Walks one spice lot from receipt to dispatch against a running dev
server and prints every response.

Usage:
    python scripts/smoke_http_api.py
    python scripts/smoke_http_api.py --base-url http://127.0.0.1:8000
"""

from __future__ import annotations

import argparse
import json
from urllib import error, request


def _call(
    *,
    method: str,
    url: str,
    body: dict | None = None,
) -> tuple[int, dict]:
    encoded = None
    headers = {}
    if body is not None:
        encoded = json.dumps(body).encode("utf-8")
        headers["Content-Type"] = "application/json"

    req = request.Request(url=url, method=method, headers=headers, data=encoded)
    try:
        with request.urlopen(req) as response:
            return response.status, json.loads(response.read().decode("utf-8"))
    except error.HTTPError as exc:
        return exc.code, json.loads(exc.read().decode("utf-8"))


def _print_case(label: str, status: int, payload: dict) -> None:
    print(f"\n[{label}] status={status}")
    print(json.dumps(payload, indent=2, sort_keys=True))


def run(base_url: str) -> None:
    api = base_url.rstrip("/") + "/v1/ledger"

    status, payload = _call(
        method="POST",
        url=f"{api}/receipts",
        body={
            "supplier_id": "sup-rajasthan",
            "invoice_no": "INV-1001",
            "lines": [
                {"item_id": "raw-chili", "quantity": "100", "unit_price": "280"},
                {"item_id": "pack-pouch-50", "quantity": "2000", "unit_price": "2.5"},
            ],
        },
    )
    _print_case("receive raw chili + pouches", status, payload)

    status, payload = _call(method="POST", url=f"{api}/batches", body={"recipe_id": "recipe-chili"})
    _print_case("plan chili batch", status, payload)
    batch_id = payload.get("data", {}).get("reference_id")

    status, payload = _call(
        method="POST",
        url=f"{api}/batches/issue",
        body={"batch_id": batch_id, "actual_quantities": {"raw-chili": "100"}},
    )
    _print_case("issue materials", status, payload)

    status, payload = _call(
        method="POST",
        url=f"{api}/batches/complete",
        body={"batch_id": batch_id, "actual_output": "95", "wastage": "4"},
    )
    _print_case("complete batch", status, payload)

    status, payload = _call(
        method="POST",
        url=f"{api}/packing-runs",
        body={
            "source": {"type": "IN_HOUSE", "batch_id": batch_id},
            "output_item_id": "fg-chili-50",
            "units_produced": "1000",
            "packing_materials": [{"item_id": "pack-pouch-50", "quantity": "1000"}],
        },
    )
    _print_case("pack 1000 pouches", status, payload)

    status, payload = _call(
        method="POST",
        url=f"{api}/dispatches",
        body={
            "customer_id": "cust-metro",
            "lines": [{"item_id": "fg-chili-50", "quantity": "400", "unit_price": "45"}],
        },
    )
    _print_case("dispatch 400 pouches", status, payload)

    status, payload = _call(
        method="POST",
        url=f"{api}/dispatches",
        body={
            "customer_id": "cust-metro",
            "lines": [{"item_id": "fg-chili-50", "quantity": "5000", "unit_price": "45"}],
        },
    )
    _print_case("oversized dispatch (expect 409)", status, payload)

    status, payload = _call(method="GET", url=f"{api}/stock?item_id=fg-chili-50")
    _print_case("finished good stock", status, payload)

    status, payload = _call(method="GET", url=f"{api}/reports/valuation")
    _print_case("valuation report", status, payload)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--base-url",
        default="http://127.0.0.1:8000",
        help="Base URL for running Django server.",
    )
    args = parser.parse_args()
    run(args.base_url)


if __name__ == "__main__":
    main()

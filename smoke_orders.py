#!/usr/bin/env python3
"""
Smoke script against a running server.

Usage: python smoke_orders.py <product-id> <unit-price> [base-url]

The product must exist with at least one unit in stock.
"""
import json
import sys
from decimal import Decimal, ROUND_HALF_UP

import requests

CUSTOMER = {"X-User-ID": "smoke-customer", "X-User-Email": "smoke@example.com"}
ADMIN = {"X-User-ID": "smoke-admin", "X-User-Email": "admin@example.com", "X-User-Admin": "true"}


def call(method, url, payload=None, headers=None):
    """Send a JSON request and print the response."""
    response = requests.request(method, url, json=payload, headers=headers or {}, timeout=10)

    print(f"{method} {url} -> {response.status_code}")
    print(json.dumps(response.json(), indent=2))
    return response


def expected_total(unit_price: Decimal) -> Decimal:
    subtotal = unit_price
    tax = (subtotal * Decimal("0.08")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    shipping = Decimal("0") if subtotal > 500 else Decimal("499")
    return subtotal + tax + shipping


def main():
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(2)

    product_id = sys.argv[1]
    unit_price = Decimal(sys.argv[2])
    base_url = sys.argv[3] if len(sys.argv) > 3 else "http://localhost:8000"
    orders_url = f"{base_url}/api/orders/"

    print("=" * 60)
    print("Storefront orders smoke run")
    print("=" * 60)

    print("\n[1] Place order")
    created = call(
        "POST",
        orders_url,
        {
            "items": [{"product": product_id, "quantity": 1}],
            "total": str(expected_total(unit_price)),
            "deliveryAddress": "1 Smoke Lane, Testville",
            "paymentMethod": "cash",
        },
        headers=CUSTOMER,
    )
    if created.status_code != 201:
        sys.exit(1)
    order_id = created.json()["order"]["id"]

    print("\n[2] List own orders")
    call("GET", orders_url, headers=CUSTOMER)

    print("\n[3] Admin marks order shipped")
    call("PATCH", f"{orders_url}admin/{order_id}/status/", {"status": "shipped"}, headers=ADMIN)

    print("\n[4] GraphQL lookup")
    call(
        "POST",
        f"{base_url}/graphql/",
        {"query": "query($id: ID!) { order(id: $id) { id status total } }", "variables": {"id": order_id}},
        headers=CUSTOMER,
    )


if __name__ == "__main__":
    main()

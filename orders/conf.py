"""
Access to the ``ORDERS`` settings dict with defaults.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.conf import settings
from django.utils.module_loading import import_string


DEFAULTS = {
    "TAX_RATE": Decimal("0.08"),
    "FREE_SHIPPING_THRESHOLD": Decimal("500"),
    "FLAT_SHIPPING_FEE": Decimal("499"),
    "TOTAL_TOLERANCE": Decimal("0.01"),
    "ADMIN_PAGE_SIZE": 20,
    "ADMIN_MAX_PAGE_SIZE": 100,
    "STRICT_TRANSITIONS": False,
    "PRODUCT_CATALOG": "orders.infra.catalog.OrmProductCatalog",
    "CART_SNAPSHOT": "orders.infra.cart.OrmCartSnapshot",
    "PUSH_CHANNEL": "orders.infra.push.LoggingPushChannel",
    "OUTBOX_BATCH_SIZE": 100,
    "OUTBOX_MAX_RETRIES": 3,
    "STALE_RESERVATION_MINUTES": 15,
}


def get_setting(name: str) -> Any:
    """Return ``settings.ORDERS[name]``, falling back to the default."""
    overrides = getattr(settings, "ORDERS", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]


def build_component(name: str):
    """Instantiate the class configured under ``name`` (a dotted path)."""
    return import_string(get_setting(name))()

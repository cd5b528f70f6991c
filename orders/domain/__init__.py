from orders.domain.order import Order, OrderItem, OrderOverride, OrderStatus, StatusHistoryEntry
from orders.domain.pricing import PricingEngine
from orders.domain.principal import AuthPrincipal

__all__ = [
    "AuthPrincipal",
    "Order",
    "OrderItem",
    "OrderOverride",
    "OrderStatus",
    "PricingEngine",
    "StatusHistoryEntry",
]

"""
JSON rendering of order aggregates (camelCase, money as strings).
"""
from datetime import datetime
from decimal import Decimal

from orders.domain.order import Order, OrderItem, StatusHistoryEntry


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_item(item: OrderItem) -> dict:
    return {
        "product": item.product_id,
        "quantity": item.quantity,
        "price": _money(item.unit_price),
        "subtotal": _money(item.subtotal),
    }


def serialize_history_entry(entry: StatusHistoryEntry) -> dict:
    return {
        "status": entry.status.value,
        "timestamp": _timestamp(entry.timestamp),
        "updatedBy": entry.actor,
        "notes": entry.notes,
    }


def serialize_order(order: Order) -> dict:
    return {
        "id": str(order.id),
        "user": order.owner_id,
        "items": [serialize_item(item) for item in order.items],
        "subtotal": _money(order.subtotal),
        "tax": _money(order.tax),
        "shipping": _money(order.shipping),
        "discount": _money(order.discount),
        "total": _money(order.total),
        "status": order.status.value,
        "statusHistory": [serialize_history_entry(entry) for entry in order.status_history],
        "deliveryAddress": order.delivery_address,
        "notes": order.notes,
        "paymentMethod": order.payment_method,
        "orderAction": order.order_action,
        "trackingNumber": order.tracking_number,
        "estimatedDelivery": _timestamp(order.estimated_delivery),
        "actualDelivery": _timestamp(order.actual_delivery),
        "adminNotes": order.admin_notes,
        "createdAt": _timestamp(order.created_at),
        "updatedAt": _timestamp(order.updated_at),
    }

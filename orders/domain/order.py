"""
Domain model for Order aggregate.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable
from uuid import UUID, uuid4

from orders.domain.exceptions import (
    InvalidDate,
    InvalidDiscount,
    InvalidStatus,
    InvalidTransition,
    TrackingNumberLocked,
    ValidationError,
)
from orders.domain.pricing import PriceLine, PricingEngine, round2


class OrderStatus(str, Enum):
    """Order status enumeration."""
    # Saga states, storage only
    RESERVING = "reserving"
    FAILED = "failed"

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_internal(self) -> bool:
        return self in INTERNAL_STATUSES


INTERNAL_STATUSES = frozenset({OrderStatus.RESERVING, OrderStatus.FAILED})
PUBLIC_STATUSES = tuple(s for s in OrderStatus if s not in INTERNAL_STATUSES)
LEGACY_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
)

PAYMENT_METHODS = ("cash", "card", "paypal", "upi")

# Forward-only table, enforced only when strict transitions are switched on.
FORWARD_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PREPARING, OrderStatus.PROCESSING, OrderStatus.CANCELLED,
    },
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {
        OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def parse_status(value: Any, allowed: Iterable[OrderStatus] = PUBLIC_STATUSES) -> OrderStatus:
    """Parse a caller-supplied status, rejecting unknown and internal values."""
    allowed = tuple(allowed)
    try:
        status = OrderStatus(value)
    except ValueError:
        status = None
    if status is None or status not in allowed:
        raise InvalidStatus(
            f"Invalid status: {value!r}",
            details={"allowed": [s.value for s in allowed]},
        )
    return status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderItem:
    """Order line item value object; the unit price is a snapshot."""

    def __init__(self, product_id: str, quantity: int, unit_price: Decimal):
        if quantity <= 0:
            raise ValueError("Quantity must be positive")
        if unit_price < 0:
            raise ValueError("Price must be non-negative")

        self.product_id = str(product_id)
        self.quantity = quantity
        self.unit_price = unit_price

    @property
    def subtotal(self) -> Decimal:
        """Calculate item subtotal."""
        return self.unit_price * self.quantity

    def price_line(self) -> PriceLine:
        return PriceLine(unit_price=self.unit_price, quantity=self.quantity)


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Immutable audit record of one status assignment."""
    status: OrderStatus
    timestamp: datetime
    actor: str
    notes: str = ""


@dataclass(frozen=True)
class OrderOverride:
    """Admin partial patch, validated on construction except for discount range."""
    status: OrderStatus | None = None
    order_action: str | None = None
    discount: Decimal | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    admin_notes: str | None = None
    status_change_notes: str | None = None
    provided: frozenset = field(default_factory=frozenset)

    FIELDS = {
        "status": "status",
        "orderAction": "order_action",
        "discount": "discount",
        "trackingNumber": "tracking_number",
        "estimatedDelivery": "estimated_delivery",
        "adminNotes": "admin_notes",
        "statusChangeNotes": "status_change_notes",
    }

    @classmethod
    def from_payload(cls, payload: dict) -> "OrderOverride":
        """Build from a camelCase request body."""
        if not isinstance(payload, dict):
            raise ValidationError("Override body must be an object")

        unknown = sorted(set(payload) - set(cls.FIELDS))
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
        if not payload:
            raise ValidationError("Override must contain at least one field")

        values: dict[str, Any] = {}
        provided = set()
        for key, attr in cls.FIELDS.items():
            if key not in payload:
                continue
            provided.add(attr)
            values[attr] = payload[key]

        if "status" in provided:
            values["status"] = parse_status(values["status"])
        if "discount" in provided:
            values["discount"] = cls._parse_discount(values["discount"])
        if "estimated_delivery" in provided:
            values["estimated_delivery"] = cls._parse_timestamp(values["estimated_delivery"])
        if "tracking_number" in provided:
            tracking = values["tracking_number"]
            if not isinstance(tracking, str) or not tracking.strip():
                raise ValidationError("trackingNumber must be a non-empty string")
            values["tracking_number"] = tracking.strip()
        for attr in ("order_action", "admin_notes", "status_change_notes"):
            if attr in provided and values[attr] is not None and not isinstance(values[attr], str):
                raise ValidationError(f"{attr} must be a string")

        return cls(provided=frozenset(provided), **values)

    @staticmethod
    def _parse_discount(value: Any) -> Decimal:
        if isinstance(value, bool) or value is None:
            raise InvalidDiscount("Discount must be a number")
        try:
            discount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidDiscount(f"Discount must be a number, got {value!r}")
        if not discount.is_finite() or discount < 0:
            raise InvalidDiscount("Discount must be greater than or equal to 0")
        return round2(discount)

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise InvalidDate(f"estimatedDelivery must be an ISO 8601 string, got {value!r}")
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidDate(f"estimatedDelivery is not a valid timestamp: {value!r}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def as_event_patch(self) -> dict:
        """Camel-cased view of the provided fields, for outbound events."""
        patch = {}
        for key, attr in self.FIELDS.items():
            if attr not in self.provided:
                continue
            value = getattr(self, attr)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            patch[key] = value
        return patch


class Order:
    """Order aggregate root."""

    def __init__(
        self,
        id: UUID | None = None,
        owner_id: str | None = None,
        items: list[OrderItem] | None = None,
        status: OrderStatus = OrderStatus.RESERVING,
        subtotal: Decimal = Decimal("0.00"),
        tax: Decimal = Decimal("0.00"),
        shipping: Decimal = Decimal("0.00"),
        discount: Decimal = Decimal("0.00"),
        total: Decimal = Decimal("0.00"),
        status_history: list[StatusHistoryEntry] | None = None,
        delivery_address: str = "",
        notes: str = "",
        payment_method: str = "cash",
        order_action: str = "none",
        tracking_number: str | None = None,
        estimated_delivery: datetime | None = None,
        actual_delivery: datetime | None = None,
        admin_notes: str = "",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.owner_id = owner_id
        self._items = items or []
        self._status = status
        self.subtotal = subtotal
        self.tax = tax
        self.shipping = shipping
        self.discount = discount
        self.total = total
        self._history = list(status_history or [])
        self.delivery_address = delivery_address
        self.notes = notes
        self.payment_method = payment_method
        self.order_action = order_action
        self._tracking_number = tracking_number
        self.estimated_delivery = estimated_delivery
        self._actual_delivery = actual_delivery
        self.admin_notes = admin_notes
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def place(
        cls,
        owner_id: str,
        items: list[OrderItem],
        pricing: PricingEngine,
        client_total: Decimal,
        delivery_address: str,
        payment_method: str,
        notes: str = "",
    ) -> "Order":
        """Build a priced order in the ``reserving`` saga state."""
        if not items:
            raise ValidationError("Order must contain at least one item")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError("Valid payment method is required")

        breakdown = pricing.compute_and_verify([item.price_line() for item in items], client_total)
        return cls(
            owner_id=owner_id,
            items=items,
            status=OrderStatus.RESERVING,
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            shipping=breakdown.shipping,
            discount=breakdown.discount,
            total=breakdown.total,
            delivery_address=delivery_address,
            notes=notes,
            payment_method=payment_method,
        )

    @property
    def items(self) -> list[OrderItem]:
        """Get order items (immutable)."""
        return list(self._items)

    @property
    def status(self) -> OrderStatus:
        """Get order status."""
        return self._status

    @property
    def status_history(self) -> tuple[StatusHistoryEntry, ...]:
        return tuple(self._history)

    @property
    def tracking_number(self) -> str | None:
        return self._tracking_number

    @property
    def actual_delivery(self) -> datetime | None:
        return self._actual_delivery

    @property
    def is_visible(self) -> bool:
        return not self._status.is_internal

    def finalize(self, actor: str, now: datetime | None = None) -> StatusHistoryEntry:
        """Commit a reserved order: ``reserving`` -> ``pending``."""
        if self._status != OrderStatus.RESERVING:
            raise ValueError("Can only finalize orders that are reserving stock")
        return self._assign_status(OrderStatus.PENDING, actor, "", now)

    def mark_failed(self) -> None:
        """Abandon a creation whose stock could not be reserved."""
        if self._status != OrderStatus.RESERVING:
            raise ValueError("Can only fail orders that are reserving stock")
        self._status = OrderStatus.FAILED

    def change_status(
        self,
        status: OrderStatus,
        actor: str,
        notes: str | None = None,
        now: datetime | None = None,
        strict: bool = False,
    ) -> StatusHistoryEntry:
        """Assign a public status and record it in the history."""
        self._check_transition(status, strict)
        return self._assign_status(status, actor, notes or "", now)

    def apply_override(
        self,
        override: OrderOverride,
        actor: str,
        now: datetime | None = None,
        strict: bool = False,
    ) -> StatusHistoryEntry | None:
        """Apply an admin patch; every field is checked before any is applied."""
        provided = override.provided
        if "status" in provided:
            self._check_transition(override.status, strict)
        if "discount" in provided and override.discount > self.subtotal:
            raise InvalidDiscount(
                f"Discount cannot exceed subtotal ({self.subtotal})",
                details={"discount": str(override.discount), "subtotal": str(self.subtotal)},
            )
        if (
            "tracking_number" in provided
            and self._tracking_number
            and override.tracking_number != self._tracking_number
        ):
            raise TrackingNumberLocked(
                "Tracking number is already set and cannot be reassigned",
                details={"trackingNumber": self._tracking_number},
            )

        if "order_action" in provided:
            self.order_action = override.order_action or "none"
        if "discount" in provided:
            self.discount = override.discount
            self.total = round2(self.subtotal + self.tax + self.shipping - self.discount)
        if "tracking_number" in provided:
            self._tracking_number = override.tracking_number
        if "estimated_delivery" in provided:
            self.estimated_delivery = override.estimated_delivery
        if "admin_notes" in provided:
            self.admin_notes = override.admin_notes or ""

        if "status" in provided:
            return self._assign_status(override.status, actor, override.status_change_notes or "", now)
        return None

    def remove_items(self, product_ids: set[str], pricing: PricingEngine) -> list[OrderItem]:
        """Drop lines referencing the given products and reprice the rest."""
        removed = [item for item in self._items if item.product_id in product_ids]
        if not removed:
            return []
        self._items = [item for item in self._items if item.product_id not in product_ids]
        breakdown = pricing.compute([item.price_line() for item in self._items])
        self.subtotal = breakdown.subtotal
        self.tax = breakdown.tax
        # Nothing left to ship
        self.shipping = breakdown.shipping if self._items else Decimal("0.00")
        self.discount = min(self.discount, self.subtotal)
        self.total = round2(self.subtotal + self.tax + self.shipping - self.discount)
        return removed

    def check_invariants(self, tolerance: Decimal = Decimal("0.01")) -> None:
        """Raise ``ValueError`` if the aggregate is in an impossible state."""
        expected = self.subtotal + self.tax + self.shipping - self.discount
        if abs(self.total - expected) > tolerance:
            raise ValueError(f"Order total {self.total} does not match computed total {expected}")
        if self.discount < 0 or self.discount > self.subtotal:
            raise ValueError(f"Discount {self.discount} outside [0, {self.subtotal}]")
        if (self._actual_delivery is not None) != (self._status == OrderStatus.DELIVERED):
            raise ValueError("actual_delivery must be set if and only if the order is delivered")
        timestamps = [entry.timestamp for entry in self._history]
        if timestamps != sorted(timestamps):
            raise ValueError("Status history timestamps must be non-decreasing")

    def _check_transition(self, status: OrderStatus, strict: bool) -> None:
        if self._status.is_internal:
            raise InvalidTransition(f"Order is not available for status changes ({self._status.value})")
        if status.is_internal:
            raise InvalidStatus(f"Invalid status: {status.value!r}")
        if strict and status != self._status and status not in FORWARD_TRANSITIONS[self._status]:
            raise InvalidTransition(
                f"Cannot move order from {self._status.value} to {status.value}",
                details={"from": self._status.value, "to": status.value},
            )

    def _assign_status(self, status: OrderStatus, actor: str, notes: str, now: datetime | None) -> StatusHistoryEntry:
        now = now or _utcnow()
        if self._history and now < self._history[-1].timestamp:
            now = self._history[-1].timestamp

        entry = StatusHistoryEntry(status=status, timestamp=now, actor=actor, notes=notes)
        self._history.append(entry)
        self._status = status

        if status == OrderStatus.DELIVERED:
            if self._actual_delivery is None:
                self._actual_delivery = now
        else:
            self._actual_delivery = None
        return entry

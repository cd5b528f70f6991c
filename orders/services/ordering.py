"""
Order placement: turns a cart into a priced, stock-reserved, persisted order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from django.db import DatabaseError, transaction
from django.utils import timezone

from orders.conf import build_component
from orders.domain.events import OrderCreated
from orders.domain.exceptions import PersistenceError, ValidationError
from orders.domain.order import PAYMENT_METHODS, Order, OrderItem, OrderStatus
from orders.domain.pricing import PricingEngine
from orders.domain.principal import SYSTEM_ACTOR, AuthPrincipal, require_principal
from orders.infra.cart import CartSnapshot
from orders.infra.catalog import ProductCatalog
from orders.infra.outbox import OutboxRepository
from orders.infra.pii_masker import mask_identifier
from orders.infra.repositories import OrderRepository
from orders.services.reservation import InventoryReservation


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestedLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class PlaceOrderRequest:
    """Validated body of a create-order request."""
    lines: tuple[RequestedLine, ...]
    total: Decimal
    delivery_address: str
    payment_method: str
    notes: str = ""

    @classmethod
    def from_payload(cls, payload: Any, cart_lines: list[dict] | None = None) -> "PlaceOrderRequest":
        """
        Validate a camelCase request body.

        ``cart_lines`` are used when the body carries no ``items``.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        raw_items = payload.get("items")
        if raw_items is None:
            raw_items = cart_lines
        if not raw_items or not isinstance(raw_items, list):
            raise ValidationError("Order must contain at least one item")
        lines = tuple(cls._parse_line(raw, index) for index, raw in enumerate(raw_items))

        total = cls._parse_total(payload.get("total"))

        delivery_address = payload.get("deliveryAddress")
        if not isinstance(delivery_address, str) or not delivery_address.strip():
            raise ValidationError("Delivery address is required")

        payment_method = payload.get("paymentMethod")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                "Valid payment method is required",
                details={"allowed": list(PAYMENT_METHODS)},
            )

        notes = payload.get("notes") or ""
        if not isinstance(notes, str):
            raise ValidationError("notes must be a string")

        return cls(
            lines=lines,
            total=total,
            delivery_address=delivery_address.strip(),
            payment_method=payment_method,
            notes=notes,
        )

    @staticmethod
    def _parse_line(raw: Any, index: int) -> RequestedLine:
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        product = raw.get("product")
        if isinstance(product, dict):
            product = product.get("id") or product.get("_id")
        if not product or not isinstance(product, str):
            raise ValidationError(f"Item {index} is missing a product reference")
        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(
                f"Invalid quantity for product: {product}",
                details={"product": product, "quantity": quantity},
            )
        return RequestedLine(product_id=product, quantity=quantity)

    @staticmethod
    def _parse_total(value: Any) -> Decimal:
        if isinstance(value, bool) or value is None:
            raise ValidationError("Invalid order total")
        try:
            total = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError("Invalid order total")
        if not total.is_finite() or total <= 0:
            raise ValidationError("Invalid order total")
        return total


class OrderService:
    """Service for order creation."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        catalog: ProductCatalog | None = None,
        cart: CartSnapshot | None = None,
        reservation: InventoryReservation | None = None,
        pricing: PricingEngine | None = None,
        outbox_repo: OutboxRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.catalog = catalog or build_component("PRODUCT_CATALOG")
        self.cart = cart or build_component("CART_SNAPSHOT")
        self.reservation = reservation or InventoryReservation(self.catalog)
        self.pricing = pricing or PricingEngine.from_settings()
        self.outbox_repo = outbox_repo or OutboxRepository()

    def place_order(self, principal: AuthPrincipal | None, payload: Any) -> Order:
        """
        Create an order for the calling principal.

        Validation, pricing and the stock pre-check run before any mutation.
        The order is stored as ``reserving`` while stock is decremented and
        becomes ``pending`` in one transaction together with its
        ``order.created`` event; that transaction is the commit point.
        """
        principal = require_principal(principal)
        owner_id = principal.id

        cart_lines = None
        if isinstance(payload, dict) and payload.get("items") is None:
            cart_lines = self.cart.read(owner_id)
        request = PlaceOrderRequest.from_payload(payload, cart_lines=cart_lines)

        items = self._snapshot_items(request)
        self.reservation.check(items)
        order = Order.place(
            owner_id=owner_id,
            items=items,
            pricing=self.pricing,
            client_total=request.total,
            delivery_address=request.delivery_address,
            payment_method=request.payment_method,
            notes=request.notes,
        )

        try:
            self.order_repo.save(order)
        except DatabaseError as e:
            raise PersistenceError("Failed to store order") from e

        try:
            reservations = self.reservation.reserve_all(order.items)
        except Exception:
            self._mark_failed(order)
            raise

        try:
            self.order_repo.mark_stock_reserved(order.id)
            self._commit(order)
        except Exception as e:
            logger.error(
                "order_commit_failed",
                extra={"order_id": str(order.id), "error": str(e)},
                exc_info=True,
            )
            try:
                self.reservation.release_all(reservations)
            finally:
                self._mark_failed(order)
            if isinstance(e, DatabaseError):
                raise PersistenceError("Failed to commit order") from e
            raise

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "user_id": mask_identifier(owner_id),
                "status": order.status.value,
            },
        )
        self._clear_cart(owner_id, order)
        return order

    def _snapshot_items(self, request: PlaceOrderRequest) -> list[OrderItem]:
        """Capture catalog prices at order time."""
        items = []
        for line in request.lines:
            product = self.catalog.get(line.product_id)
            if product is None:
                raise ValidationError(
                    f"Product not found: {line.product_id}",
                    details={"product": line.product_id},
                )
            items.append(OrderItem(
                product_id=product.product_id,
                quantity=line.quantity,
                unit_price=product.price,
            ))
        return items

    @transaction.atomic
    def _commit(self, order: Order) -> None:
        order.finalize(actor=SYSTEM_ACTOR, now=timezone.now())
        self.order_repo.save(order)

        self.outbox_repo.enqueue(OrderCreated(
            order_id=order.id,
            owner_id=order.owner_id,
            total=order.total,
            status=order.status.value,
        ))

    def _mark_failed(self, order: Order) -> None:
        """Record the saga failure on the stored ``reserving`` row."""
        try:
            stored = self.order_repo.get_by_id(order.id)
            if stored is not None and stored.status == OrderStatus.RESERVING:
                stored.mark_failed()
                self.order_repo.save(stored)
        except DatabaseError:
            logger.error(
                "order_mark_failed_error",
                extra={"order_id": str(order.id)},
                exc_info=True,
            )

    def _clear_cart(self, owner_id: str, order: Order) -> None:
        # The order is already committed; a stale cart is not a creation failure
        try:
            self.cart.clear(owner_id)
        except DatabaseError as e:
            logger.warning(
                "cart_clear_failed",
                extra={"order_id": str(order.id), "error": str(e)},
            )

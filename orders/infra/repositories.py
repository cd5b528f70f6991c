"""
Infrastructure repositories for domain entities.
"""
from __future__ import annotations

from uuid import UUID

from django.db import transaction

from orders.domain.order import (
    INTERNAL_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    StatusHistoryEntry,
)
from orders.infra.models import OrderItemORM, OrderORM, OrderStatusHistoryORM


_INTERNAL_VALUES = [status.value for status in INTERNAL_STATUSES]


def parse_order_id(order_id) -> UUID | None:
    if isinstance(order_id, UUID):
        return order_id
    try:
        return UUID(str(order_id))
    except (ValueError, TypeError):
        return None


class OrderRepository:
    """Repository for Order aggregate."""

    def _queryset(self):
        return OrderORM.objects.prefetch_related("items", "status_history")

    def get_by_id(self, order_id) -> Order | None:
        """Get order by ID with items and history (no N+1)."""
        parsed = parse_order_id(order_id)
        if parsed is None:
            return None
        try:
            return self._to_domain(self._queryset().get(id=parsed))
        except OrderORM.DoesNotExist:
            return None

    def get_for_update(self, order_id) -> Order | None:
        """Lock the order row for the surrounding transaction, then load it."""
        parsed = parse_order_id(order_id)
        if parsed is None:
            return None
        locked = OrderORM.objects.select_for_update().filter(id=parsed).values_list("id", flat=True)
        if not list(locked):
            return None
        return self.get_by_id(parsed)

    def get_by_owner(self, owner_id: str) -> list[Order]:
        """Visible orders of one owner, newest first."""
        orders_orm = (
            self._queryset()
            .filter(owner_id=owner_id)
            .exclude(status__in=_INTERNAL_VALUES)
            .order_by("-created_at", "-id")
        )
        return [self._to_domain(order_orm) for order_orm in orders_orm]

    def list_all(self, limit: int = 20, offset: int = 0) -> list[Order]:
        """Visible orders of every owner with pagination, newest first."""
        orders_orm = (
            self._queryset()
            .exclude(status__in=_INTERNAL_VALUES)
            .order_by("-created_at", "-id")[offset:offset + limit]
        )
        return [self._to_domain(order_orm) for order_orm in orders_orm]

    def count_all(self) -> int:
        return OrderORM.objects.exclude(status__in=_INTERNAL_VALUES).count()

    def referenced_product_ids(self) -> set[str]:
        return set(OrderItemORM.objects.values_list("product_id", flat=True).distinct())

    def get_by_product_ids(self, product_ids: set[str]) -> list[Order]:
        """Visible orders holding at least one line for the given products."""
        orders_orm = (
            self._queryset()
            .filter(items__product_id__in=product_ids)
            .exclude(status__in=_INTERNAL_VALUES)
            .distinct()
            .order_by("created_at")
        )
        return [self._to_domain(order_orm) for order_orm in orders_orm]

    def mark_stock_reserved(self, order_id: UUID) -> None:
        OrderORM.objects.filter(id=order_id, status=OrderStatus.RESERVING.value).update(stock_reserved=True)

    def get_stale_reservations(self, created_before) -> list[tuple[Order, bool]]:
        """Orders stuck in ``reserving``, oldest first, with their stock flag."""
        orders_orm = (
            self._queryset()
            .filter(status=OrderStatus.RESERVING.value, created_at__lt=created_before)
            .order_by("created_at")
        )
        return [(self._to_domain(order_orm), order_orm.stock_reserved) for order_orm in orders_orm]

    @transaction.atomic
    def save(self, order: Order) -> UUID:
        """Save order aggregate with invariant validation."""
        order.check_invariants()

        order_orm, created = OrderORM.objects.update_or_create(
            id=order.id,
            defaults={
                "owner_id": order.owner_id,
                "status": order.status.value,
                "subtotal": order.subtotal,
                "tax": order.tax,
                "shipping": order.shipping,
                "discount": order.discount,
                "total": order.total,
                "delivery_address": order.delivery_address,
                "notes": order.notes,
                "payment_method": order.payment_method,
                "order_action": order.order_action,
                "tracking_number": order.tracking_number,
                "estimated_delivery": order.estimated_delivery,
                "actual_delivery": order.actual_delivery,
                "admin_notes": order.admin_notes,
            },
        )
        order.created_at = order_orm.created_at
        order.updated_at = order_orm.updated_at

        # Items only ever shrink after creation (orphan purge)
        if created or order_orm.items.count() != len(order.items):
            OrderItemORM.objects.filter(order=order_orm).delete()
            OrderItemORM.objects.bulk_create([
                OrderItemORM(
                    order=order_orm,
                    position=position,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for position, item in enumerate(order.items)
            ])

        # History is append-only - only insert entries not stored yet
        stored = OrderStatusHistoryORM.objects.filter(order=order_orm).count()
        history = order.status_history
        if stored > len(history):
            raise ValueError(
                f"Order {order.id} history has {len(history)} entries but {stored} are stored"
            )
        OrderStatusHistoryORM.objects.bulk_create([
            OrderStatusHistoryORM(
                order=order_orm,
                sequence_number=sequence,
                status=entry.status.value,
                timestamp=entry.timestamp,
                actor=entry.actor,
                notes=entry.notes,
            )
            for sequence, entry in enumerate(history[stored:], start=stored + 1)
        ])

        return order_orm.id

    def _to_domain(self, order_orm: OrderORM) -> Order:
        """Convert ORM model to domain entity."""
        # Build items directly (bypass place() pricing for loading from DB)
        items = [
            OrderItem(
                product_id=item_orm.product_id,
                quantity=item_orm.quantity,
                unit_price=item_orm.unit_price,
            )
            for item_orm in order_orm.items.all()
        ]
        history = [
            StatusHistoryEntry(
                status=OrderStatus(entry_orm.status),
                timestamp=entry_orm.timestamp,
                actor=entry_orm.actor,
                notes=entry_orm.notes,
            )
            for entry_orm in order_orm.status_history.all()
        ]

        return Order(
            id=order_orm.id,
            owner_id=order_orm.owner_id,
            items=items,
            status=OrderStatus(order_orm.status),
            subtotal=order_orm.subtotal,
            tax=order_orm.tax,
            shipping=order_orm.shipping,
            discount=order_orm.discount,
            total=order_orm.total,
            status_history=history,
            delivery_address=order_orm.delivery_address,
            notes=order_orm.notes,
            payment_method=order_orm.payment_method,
            order_action=order_orm.order_action,
            tracking_number=order_orm.tracking_number,
            estimated_delivery=order_orm.estimated_delivery,
            actual_delivery=order_orm.actual_delivery,
            admin_notes=order_orm.admin_notes,
            created_at=order_orm.created_at,
            updated_at=order_orm.updated_at,
        )

from __future__ import annotations

from uuid import uuid4

from django.db import models

from orders.domain.order import OrderStatus, PAYMENT_METHODS


STATUS_CHOICES = tuple((status.value, status.value.capitalize()) for status in OrderStatus)

PAYMENT_METHOD_CHOICES = tuple((method, method.upper()) for method in PAYMENT_METHODS)

OPERATION_TYPE = (
    ("PLACE_ORDER", "Place order"),
)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProductORM(TimeStampedModel):
    """Stock counter owned by the product catalog."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    stock = models.IntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_non_negative"),
        ]

    def __str__(self):
        return f"{self.name} ({self.stock} in stock)"


class CartItemORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    owner_id = models.CharField(max_length=64)
    product_id = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField()

    class Meta:
        indexes = [
            models.Index(fields=("owner_id",)),
        ]


class OrderORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    owner_id = models.CharField(max_length=64)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    shipping = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    delivery_address = models.TextField()
    notes = models.TextField(default="", blank=True)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES)
    order_action = models.CharField(max_length=64, default="none")
    tracking_number = models.CharField(max_length=128, null=True, blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    actual_delivery = models.DateTimeField(null=True, blank=True)
    admin_notes = models.TextField(default="", blank=True)
    # Set once every line's stock is decremented; read by the stale reservation sweep
    stock_reserved = models.BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(fields=("owner_id", "-created_at")),
            models.Index(fields=("status", "-created_at")),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(discount__gte=0) & models.Q(discount__lte=models.F("subtotal")),
                name="order_discount_within_subtotal",
            ),
        ]


class OrderItemORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="items",
    )
    position = models.PositiveIntegerField()
    product_id = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["position"]
        indexes = [
            models.Index(fields=("order",)),
            models.Index(fields=("product_id",)),
        ]


class OrderStatusHistoryORM(models.Model):
    """Append-only status history row; never updated or deleted."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    sequence_number = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    timestamp = models.DateTimeField()
    actor = models.CharField(max_length=255)
    notes = models.TextField(default="", blank=True)

    class Meta:
        ordering = ["sequence_number"]
        constraints = [
            models.UniqueConstraint(fields=("order", "sequence_number"), name="status_history_sequence_unique"),
        ]


class IdempotencyKey(TimeStampedModel):
    key = models.CharField(max_length=255)
    user_id = models.CharField(max_length=64)
    operation = models.CharField(max_length=32, choices=OPERATION_TYPE)
    request_hash = models.CharField(max_length=255)
    # Both stay null while the first request holding the key is in flight
    response_status = models.PositiveSmallIntegerField(null=True, blank=True)
    response_payload = models.JSONField(null=True, blank=True)

    class Meta:
        unique_together = [("key", "user_id", "operation")]
        indexes = [
            models.Index(fields=("request_hash",)),
        ]

from django.contrib import admin

from orders.infra.audit_log import AuditLogEntry
from orders.infra.models import (
    CartItemORM,
    IdempotencyKey,
    OrderItemORM,
    OrderORM,
    OrderStatusHistoryORM,
    ProductORM,
)
from orders.infra.outbox import OutboxEvent


@admin.register(ProductORM)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "stock", "updated_at")
    search_fields = ("name",)


@admin.register(CartItemORM)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "owner_id", "product_id", "quantity", "created_at")
    search_fields = ("owner_id",)


class OrderItemInline(admin.TabularInline):
    model = OrderItemORM
    extra = 0
    readonly_fields = ("position", "product_id", "quantity", "unit_price")


class StatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistoryORM
    extra = 0
    can_delete = False
    readonly_fields = ("sequence_number", "status", "timestamp", "actor", "notes")


@admin.register(OrderORM)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "owner_id", "status", "total", "payment_method", "created_at")
    list_filter = ("status", "payment_method", "created_at")
    search_fields = ("id", "owner_id", "tracking_number")
    inlines = (OrderItemInline, StatusHistoryInline)
    # Status changes go through the API so history and events stay consistent
    readonly_fields = ("status", "subtotal", "tax", "shipping", "discount", "total", "actual_delivery")


@admin.register(IdempotencyKey)
class IdempotencyAdmin(admin.ModelAdmin):
    list_display = ("key", "user_id", "operation", "response_status", "created_at")
    list_filter = ("operation", "created_at")
    search_fields = ("key", "user_id")


@admin.register(OutboxEvent)
class OutboxEventAdmin(admin.ModelAdmin):
    list_display = ("id", "order_id", "event_type", "processed", "retry_count", "created_at")
    list_filter = ("processed", "event_type", "created_at")
    readonly_fields = (
        "id", "order_id", "event_type", "payload", "occurred_at",
        "processed", "processed_at", "retry_count", "last_error",
    )


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ("action", "actor_label", "order_id", "success", "created_at")
    list_filter = ("action", "success", "created_at")
    search_fields = ("order_id", "actor_id")
    readonly_fields = ("id", "action", "actor_id", "actor_label", "order_id", "payload", "result", "success")

"""
Read side: order listings and single-order lookup with visibility rules.
"""
from __future__ import annotations

import math
from typing import Any

from orders.conf import get_setting
from orders.domain.exceptions import Forbidden, NotFound, ValidationError
from orders.domain.order import Order
from orders.domain.principal import AuthPrincipal, require_admin, require_principal
from orders.infra.repositories import OrderRepository


class OrderQueryService:
    """Service for order reads. Orders in saga states are never returned."""

    def __init__(self, order_repo: OrderRepository | None = None):
        self.order_repo = order_repo or OrderRepository()

    def list_own(self, principal: AuthPrincipal | None) -> list[Order]:
        principal = require_principal(principal)
        return self.order_repo.get_by_owner(principal.id)

    def get_by_id(self, principal: AuthPrincipal | None, order_id) -> Order:
        """Owner or admin only; a malformed id reads as a missing order."""
        principal = require_principal(principal)
        order = self.order_repo.get_by_id(order_id)
        if order is None or not order.is_visible:
            raise NotFound("Order not found")
        if order.owner_id != principal.id and not principal.is_admin:
            raise Forbidden("Access denied")
        return order

    def list_all(self, principal: AuthPrincipal | None, page: Any = 1, page_size: Any = None) -> dict:
        """Admin listing, newest first."""
        require_admin(principal)
        page = self._positive_int(page, "page", default=1)
        page_size = self._positive_int(page_size, "pageSize", default=get_setting("ADMIN_PAGE_SIZE"))
        page_size = min(page_size, get_setting("ADMIN_MAX_PAGE_SIZE"))

        total = self.order_repo.count_all()
        orders = self.order_repo.list_all(limit=page_size, offset=(page - 1) * page_size)
        return {
            "orders": orders,
            "page": page,
            "pageSize": page_size,
            "total": total,
            "totalPages": math.ceil(total / page_size) if total else 0,
        }

    @staticmethod
    def _positive_int(value: Any, name: str, default: int) -> int:
        if value is None or value == "":
            return default
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a positive integer")
        if number < 1:
            raise ValidationError(f"{name} must be a positive integer")
        return number

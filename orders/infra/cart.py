"""
Cart snapshot collaborator: read the owner's cart, clear it after ordering.
"""
from __future__ import annotations

from typing import Protocol

from orders.infra.models import CartItemORM


class CartSnapshot(Protocol):
    def read(self, owner_id: str) -> list[dict]: ...

    def clear(self, owner_id: str) -> None: ...


class OrmCartSnapshot:
    """Cart backed by the ``CartItemORM`` table."""

    def read(self, owner_id: str) -> list[dict]:
        return [
            {"product": item.product_id, "quantity": item.quantity}
            for item in CartItemORM.objects.filter(owner_id=owner_id).order_by("created_at")
        ]

    def clear(self, owner_id: str) -> None:
        CartItemORM.objects.filter(owner_id=owner_id).delete()

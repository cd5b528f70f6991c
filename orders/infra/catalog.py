"""
Product catalog collaborator: price and stock reads plus conditional decrement.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from django.db.models import F

from orders.infra.locks import KeyedLocks
from orders.infra.models import ProductORM


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductStockRef:
    product_id: str
    name: str
    price: Decimal
    stock: int


class ProductCatalog(Protocol):
    def get(self, product_id: str) -> ProductStockRef | None: ...

    def conditional_decrement(self, product_id: str, quantity: int) -> bool: ...

    def increment(self, product_id: str, quantity: int) -> None: ...

    def existing_ids(self, product_ids: Iterable[str]) -> set[str]: ...


def _parse_product_id(product_id) -> UUID | None:
    try:
        return UUID(str(product_id))
    except (ValueError, TypeError):
        return None


class OrmProductCatalog:
    """Catalog backed by the ``ProductORM`` table."""

    def get(self, product_id: str) -> ProductStockRef | None:
        parsed = _parse_product_id(product_id)
        if parsed is None:
            return None
        product = ProductORM.objects.filter(id=parsed).first()
        if product is None:
            return None
        return ProductStockRef(
            product_id=str(product.id),
            name=product.name,
            price=product.price,
            stock=product.stock,
        )

    def conditional_decrement(self, product_id: str, quantity: int) -> bool:
        """Single ``UPDATE ... WHERE stock >= quantity``; True if a row changed."""
        parsed = _parse_product_id(product_id)
        if parsed is None:
            return False
        updated = ProductORM.objects.filter(id=parsed, stock__gte=quantity).update(
            stock=F("stock") - quantity,
        )
        return updated == 1

    def increment(self, product_id: str, quantity: int) -> None:
        parsed = _parse_product_id(product_id)
        updated = ProductORM.objects.filter(id=parsed).update(stock=F("stock") + quantity)
        if updated != 1:
            logger.error(
                "stock_increment_missed",
                extra={"product_id": str(product_id), "quantity": quantity},
            )

    def existing_ids(self, product_ids: Iterable[str]) -> set[str]:
        parsed = [pid for pid in (_parse_product_id(p) for p in product_ids) if pid is not None]
        return {str(pid) for pid in ProductORM.objects.filter(id__in=parsed).values_list("id", flat=True)}


class InMemoryProductCatalog:
    """Process-local catalog; each product's counter is guarded by its own lock."""

    def __init__(self, products: Iterable[ProductStockRef] = ()):
        self._locks = KeyedLocks()
        self._products: dict[str, ProductStockRef] = {}
        for product in products:
            self.add(product)

    def add(self, product: ProductStockRef) -> None:
        self._products[str(product.product_id)] = product

    def remove(self, product_id: str) -> None:
        self._products.pop(str(product_id), None)

    def get(self, product_id: str) -> ProductStockRef | None:
        return self._products.get(str(product_id))

    def conditional_decrement(self, product_id: str, quantity: int) -> bool:
        key = str(product_id)
        with self._locks.hold(key):
            product = self._products.get(key)
            if product is None or product.stock < quantity:
                return False
            self._products[key] = ProductStockRef(
                product_id=product.product_id,
                name=product.name,
                price=product.price,
                stock=product.stock - quantity,
            )
            return True

    def increment(self, product_id: str, quantity: int) -> None:
        key = str(product_id)
        with self._locks.hold(key):
            product = self._products.get(key)
            if product is None:
                logger.error("stock_increment_missed", extra={"product_id": key, "quantity": quantity})
                return
            self._products[key] = ProductStockRef(
                product_id=product.product_id,
                name=product.name,
                price=product.price,
                stock=product.stock + quantity,
            )

    def existing_ids(self, product_ids: Iterable[str]) -> set[str]:
        return {str(pid) for pid in product_ids if str(pid) in self._products}

"""
Order pricing: subtotal, tax, shipping and total, plus the client total check.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from orders.domain.exceptions import OrderTotalMismatch


CENT = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    """Round money half-up to two decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceLine:
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class PriceBreakdown:
    """Server-computed money fields of an order."""
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal


class PricingEngine:
    """Pure pricing function with a tolerance check against the client total."""

    def __init__(
        self,
        tax_rate: Decimal = Decimal("0.08"),
        free_shipping_threshold: Decimal = Decimal("500"),
        flat_shipping_fee: Decimal = Decimal("499"),
        tolerance: Decimal = Decimal("0.01"),
    ):
        self.tax_rate = Decimal(tax_rate)
        self.free_shipping_threshold = Decimal(free_shipping_threshold)
        self.flat_shipping_fee = Decimal(flat_shipping_fee)
        self.tolerance = Decimal(tolerance)

    @classmethod
    def from_settings(cls) -> "PricingEngine":
        from orders.conf import get_setting

        return cls(
            tax_rate=get_setting("TAX_RATE"),
            free_shipping_threshold=get_setting("FREE_SHIPPING_THRESHOLD"),
            flat_shipping_fee=get_setting("FLAT_SHIPPING_FEE"),
            tolerance=get_setting("TOTAL_TOLERANCE"),
        )

    def compute(self, lines: Iterable[PriceLine], discount: Decimal = Decimal("0")) -> PriceBreakdown:
        """Price the given lines; ``discount`` is subtracted from the total."""
        subtotal = round2(sum((Decimal(line.unit_price) * line.quantity for line in lines), Decimal("0")))
        tax = round2(subtotal * self.tax_rate)
        shipping = Decimal("0.00") if subtotal > self.free_shipping_threshold else round2(self.flat_shipping_fee)
        discount = round2(discount)
        total = round2(subtotal + tax + shipping - discount)
        return PriceBreakdown(
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            total=total,
        )

    def verify(self, breakdown: PriceBreakdown, client_total: Decimal) -> None:
        """Reject the order if the client total is off by more than the tolerance."""
        client_total = Decimal(client_total)
        if abs(breakdown.total - client_total) > self.tolerance:
            raise OrderTotalMismatch(calculated=breakdown.total, received=client_total)

    def compute_and_verify(self, lines: Iterable[PriceLine], client_total: Decimal) -> PriceBreakdown:
        breakdown = self.compute(lines)
        self.verify(breakdown, client_total)
        return breakdown

from orders.services.lifecycle import OrderLifecycle
from orders.services.maintenance import OrderMaintenance, PurgeReport, SweepReport
from orders.services.ordering import OrderService, PlaceOrderRequest
from orders.services.queries import OrderQueryService
from orders.services.reservation import InventoryReservation, Reservation

__all__ = [
    "InventoryReservation",
    "OrderLifecycle",
    "OrderMaintenance",
    "OrderQueryService",
    "OrderService",
    "PlaceOrderRequest",
    "PurgeReport",
    "Reservation",
    "SweepReport",
]

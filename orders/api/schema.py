"""
GraphQL schema definition using Ariadne.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from ariadne import (
    MutationType,
    QueryType,
    ScalarType,
    load_schema_from_path,
    make_executable_schema,
)

from orders.api.serializers import serialize_order
from orders.services import OrderLifecycle, OrderQueryService, OrderService

# Load schema from .graphql files
SCHEMAS_DIR = Path(__file__).parent / "schemas"
type_defs = load_schema_from_path(SCHEMAS_DIR)

query = QueryType()
mutation = MutationType()


def _principal(info):
    return getattr(info.context["request"], "principal", None)


@query.field("myOrders")
def resolve_my_orders(_, info):
    return [serialize_order(order) for order in OrderQueryService().list_own(_principal(info))]


@query.field("order")
def resolve_order(_, info, id):
    return serialize_order(OrderQueryService().get_by_id(_principal(info), id))


@query.field("allOrders")
def resolve_all_orders(_, info, page=None, pageSize=None):
    """Admin listing with pagination."""
    result = OrderQueryService().list_all(_principal(info), page=page, page_size=pageSize)
    return {**result, "orders": [serialize_order(order) for order in result["orders"]]}


@mutation.field("placeOrder")
def resolve_place_order(_, info, input: dict):
    payload = dict(input)
    if payload.get("items") is not None:
        payload["items"] = [dict(item) for item in payload["items"]]
    order = OrderService().place_order(_principal(info), payload)
    return serialize_order(order)


@mutation.field("changeOrderStatus")
def resolve_change_order_status(_, info, id, status, notes=None):
    order = OrderLifecycle().change_status(_principal(info), id, status, notes=notes)
    return serialize_order(order)


@mutation.field("overrideOrder")
def resolve_override_order(_, info, id, input: dict):
    """Only the fields present in ``input`` are applied."""
    order = OrderLifecycle().apply_override(_principal(info), id, dict(input))
    return serialize_order(order)


# Define custom scalars
decimal_scalar = ScalarType("Decimal")
datetime_scalar = ScalarType("DateTime")


@decimal_scalar.serializer
def serialize_decimal(value):
    """Serialize Decimal to string."""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


@decimal_scalar.value_parser
def parse_decimal_value(value):
    """Parse Decimal from string or number."""
    if isinstance(value, bool):
        raise ValueError(f"Expected a decimal, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Expected a decimal, got {value!r}")


@datetime_scalar.serializer
def serialize_datetime(value):
    """Serialize DateTime to ISO format string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


# Create executable schema
schema = make_executable_schema(
    type_defs,
    query,
    mutation,
    decimal_scalar,
    datetime_scalar,
)

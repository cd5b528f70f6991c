"""
REST views for order placement, lookup and admin management.
"""
import hashlib
import json
import logging
from functools import wraps
from uuid import uuid4

from django.db import IntegrityError, transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from orders.api.middleware import ErrorHandler
from orders.api.serializers import serialize_order
from orders.domain.exceptions import DuplicateRequest, ValidationError
from orders.domain.order import LEGACY_STATUSES, PUBLIC_STATUSES
from orders.domain.principal import require_principal
from orders.infra.models import IdempotencyKey
from orders.infra.pii_masker import mask_identifier, mask_pii_in_dict
from orders.services import OrderLifecycle, OrderQueryService, OrderService


logger = logging.getLogger(__name__)

PLACE_ORDER = "PLACE_ORDER"


def api_endpoint(*methods):
    """JSON endpoint: method filter, request logging and error rendering."""
    def decorator(view):
        @csrf_exempt
        @require_http_methods(list(methods))
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            request_id = request.headers.get("X-Request-ID") or str(uuid4())
            request.request_id = request_id
            principal = getattr(request, "principal", None)

            log_data = {
                "request_id": request_id,
                "user_id": mask_identifier(principal.id) if principal else None,
                "operation": view.__name__,
            }
            logger.info("api_request", extra=mask_pii_in_dict(log_data))

            try:
                response = view(request, *args, **kwargs)
            except Exception as e:
                response = ErrorHandler.handle_error(e)

            logger.info(
                "api_response",
                extra={
                    "request_id": request_id,
                    "operation": view.__name__,
                    "status": response.status_code,
                },
            )
            return response
        return wrapper
    return decorator


def _json_body(request):
    if not request.body:
        return {}
    try:
        return json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")


def _request_hash(payload) -> str:
    """Create hash of request for deduplication."""
    content = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()


@api_endpoint("GET", "POST")
def orders_collection(request):
    if request.method == "POST":
        return _place_order(request)

    orders = OrderQueryService().list_own(request.principal)
    return JsonResponse({"success": True, "orders": [serialize_order(order) for order in orders]})


def _place_order(request):
    principal = require_principal(request.principal)
    payload = _json_body(request)
    idempotency_key = request.headers.get("Idempotency-Key")

    if not idempotency_key:
        order = OrderService().place_order(principal, payload)
        return JsonResponse({"success": True, "order": serialize_order(order)}, status=201)

    request_hash = _request_hash(payload)
    claim, replay = _claim_idempotency_key(request, principal, idempotency_key, request_hash)
    if replay is not None:
        return replay

    try:
        order = OrderService().place_order(principal, payload)
    except Exception:
        # Release the key so the client can retry once the problem is fixed
        IdempotencyKey.objects.filter(pk=claim.pk).delete()
        raise

    body = {"success": True, "order": serialize_order(order)}
    IdempotencyKey.objects.filter(pk=claim.pk).update(response_status=201, response_payload=body)
    return JsonResponse(body, status=201)


def _claim_idempotency_key(request, principal, idempotency_key, request_hash):
    """
    Reserve ``idempotency_key`` for this request before any order is placed.

    Returns ``(claim, None)`` for the first request and ``(None, response)``
    for a replay of a completed one. A replay with another body, or one that
    arrives while the first request is still running, raises ``DuplicateRequest``.
    """
    short_key = idempotency_key[:8] + "..."
    try:
        with transaction.atomic():
            claim = IdempotencyKey.objects.create(
                key=idempotency_key,
                user_id=principal.id,
                operation=PLACE_ORDER,
                request_hash=request_hash,
            )
        return claim, None
    except IntegrityError:
        pass

    existing = IdempotencyKey.objects.filter(
        key=idempotency_key,
        user_id=principal.id,
        operation=PLACE_ORDER,
    ).first()
    if existing is not None and existing.request_hash != request_hash:
        logger.warning(
            "idempotency_key_conflict",
            extra={"request_id": request.request_id, "idempotency_key": short_key},
        )
        raise DuplicateRequest("Idempotency key already used with different request")
    if existing is None or existing.response_status is None:
        logger.warning(
            "idempotent_request_in_flight",
            extra={"request_id": request.request_id, "idempotency_key": short_key},
        )
        raise DuplicateRequest("A request with this idempotency key is still being processed")

    logger.info(
        "idempotent_request_cached",
        extra={"request_id": request.request_id, "idempotency_key": short_key},
    )
    return None, JsonResponse(existing.response_payload, status=existing.response_status)


@api_endpoint("GET")
def order_detail(request, order_id):
    order = OrderQueryService().get_by_id(request.principal, order_id)
    return JsonResponse({"success": True, "order": serialize_order(order)})


@api_endpoint("PATCH")
def order_status(request, order_id):
    """Status update limited to the pending/processing/shipped/delivered/cancelled set."""
    payload = _json_body(request)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    order = OrderLifecycle().change_status(
        request.principal,
        order_id,
        payload.get("status"),
        notes=payload.get("notes"),
        allowed=LEGACY_STATUSES,
    )
    return JsonResponse({"success": True, "order": serialize_order(order)})


@api_endpoint("GET")
def admin_orders(request):
    result = OrderQueryService().list_all(
        request.principal,
        page=request.GET.get("page"),
        page_size=request.GET.get("pageSize"),
    )
    return JsonResponse({
        "success": True,
        "orders": [serialize_order(order) for order in result["orders"]],
        "page": result["page"],
        "pageSize": result["pageSize"],
        "total": result["total"],
        "totalPages": result["totalPages"],
    })


@api_endpoint("PATCH")
def admin_order_override(request, order_id):
    order = OrderLifecycle().apply_override(request.principal, order_id, _json_body(request))
    return JsonResponse({"success": True, "order": serialize_order(order)})


@api_endpoint("PATCH")
def admin_order_status(request, order_id):
    payload = _json_body(request)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    order = OrderLifecycle().change_status(
        request.principal,
        order_id,
        payload.get("status"),
        notes=payload.get("notes"),
        allowed=PUBLIC_STATUSES,
    )
    return JsonResponse({"success": True, "order": serialize_order(order)})

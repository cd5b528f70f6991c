"""
GraphQL view with error codes and logging support.
"""
import json
import logging
from uuid import uuid4

from ariadne import format_error, graphql_sync
from django.conf import settings
from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from orders.api.middleware import ErrorHandler
from orders.api.schema import schema
from orders.domain.exceptions import OrderError
from orders.infra.pii_masker import mask_identifier


logger = logging.getLogger(__name__)


def error_formatter(error, debug: bool = False) -> dict:
    """Attach the REST error code to every GraphQL error."""
    formatted = format_error(error, debug)
    original = getattr(error, "original_error", None)
    extensions = formatted.setdefault("extensions", {})

    if isinstance(original, OrderError):
        formatted["message"] = original.message
        extensions["code"] = original.code
        if original.details:
            extensions["details"] = original.details
    elif isinstance(original, DatabaseError):
        formatted["message"] = "A storage error occurred"
        extensions["code"] = "PERSISTENCE_ERROR"
    elif original is not None and error.path:
        logger.error(
            "graphql_unexpected_error",
            extra={"error": f"{type(original).__name__}: {original}"},
            exc_info=(type(original), original, original.__traceback__),
        )
        formatted["message"] = "An internal error occurred"
        extensions["code"] = "INTERNAL_ERROR"
    else:
        extensions["code"] = "VALIDATION_ERROR"
    return formatted


class OrdersGraphQLView:
    """GraphQL endpoint with structured logging."""

    def dispatch(self, request, *args, **kwargs):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        principal = getattr(request, "principal", None)

        logger.info(
            "graphql_request",
            extra={
                "request_id": request_id,
                "user_id": mask_identifier(principal.id) if principal else None,
                "operation": "graphql",
            },
        )

        try:
            response = self._process_graphql_request(request)
        except Exception as e:
            response = ErrorHandler.handle_error(e)
            logger.error(
                "graphql_error",
                extra={"request_id": request_id, "error": str(e)},
            )

        logger.info(
            "graphql_response",
            extra={"request_id": request_id, "status": response.status_code},
        )
        return response

    def _process_graphql_request(self, request):
        if request.method == "GET":
            return JsonResponse({"message": "GraphQL endpoint. Use POST for queries."})

        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JsonResponse(
                {"errors": [{"message": "Invalid JSON", "extensions": {"code": "VALIDATION_ERROR"}}]},
                status=400,
            )

        success, result = graphql_sync(
            schema,
            data,
            context_value={"request": request},
            error_formatter=error_formatter,
            debug=settings.DEBUG,
        )

        status_code = 200 if success else 400
        return JsonResponse(result, status=status_code)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def graphql_view(request):
    """GraphQL endpoint."""
    view = OrdersGraphQLView()
    return view.dispatch(request)

"""
Middleware for caller identity and error handling.
"""
import logging

from django.db import DatabaseError
from django.http import JsonResponse

from orders.domain.exceptions import OrderError, PersistenceError
from orders.domain.principal import AuthPrincipal


logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


class AuthPrincipalProvider:
    """Reads the identity asserted by the upstream gateway."""

    USER_ID_HEADER = "X-User-ID"
    EMAIL_HEADER = "X-User-Email"
    ADMIN_HEADER = "X-User-Admin"

    def from_request(self, request) -> AuthPrincipal | None:
        user_id = (request.headers.get(self.USER_ID_HEADER) or "").strip()
        if not user_id:
            return None
        email = (request.headers.get(self.EMAIL_HEADER) or "").strip() or None
        is_admin = (request.headers.get(self.ADMIN_HEADER) or "").strip().lower() in TRUTHY
        return AuthPrincipal(id=user_id, is_admin=is_admin, email=email)


class PrincipalMiddleware:
    """Attach ``request.principal`` (``None`` when unauthenticated)."""

    def __init__(self, get_response, provider: AuthPrincipalProvider | None = None):
        self.get_response = get_response
        self.provider = provider or AuthPrincipalProvider()

    def __call__(self, request):
        request.principal = self.provider.from_request(request)
        return self.get_response(request)


class ErrorHandler:
    """Error handler for API responses."""

    ERROR_CODES = {
        "VALIDATION_ERROR": 400,
        "ORDER_TOTAL_MISMATCH": 400,
        "INSUFFICIENT_STOCK": 400,
        "INVALID_STATUS": 400,
        "INVALID_DISCOUNT": 400,
        "INVALID_DATE": 400,
        "INVALID_TRANSITION": 400,
        "TRACKING_NUMBER_LOCKED": 400,
        "UNAUTHORIZED": 401,
        "FORBIDDEN": 403,
        "NOT_FOUND": 404,
        "DUPLICATE_REQUEST": 409,
        "PERSISTENCE_ERROR": 503,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def status_for(cls, error: OrderError) -> int:
        return cls.ERROR_CODES.get(error.code, 400)

    @classmethod
    def to_payload(cls, error: OrderError) -> dict:
        body = {"code": error.code, "message": error.message}
        if error.details:
            body["details"] = error.details
        return {"success": False, "error": body}

    @classmethod
    def handle_error(cls, error: Exception) -> JsonResponse:
        """Handle error and return JSON response."""
        if isinstance(error, DatabaseError):
            logger.error(
                "database_error",
                extra={"error": str(error)},
                exc_info=True,
            )
            error = PersistenceError("A storage error occurred")

        if isinstance(error, OrderError):
            return JsonResponse(cls.to_payload(error), status=cls.status_for(error))

        # Log unexpected errors
        logger.error(
            "unexpected_error",
            extra={"error": f"{type(error).__name__}: {error}"},
            exc_info=True,
        )

        return JsonResponse(
            {
                "success": False,
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                },
            },
            status=500,
        )

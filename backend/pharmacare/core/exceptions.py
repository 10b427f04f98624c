"""
Domain errors and safe HTTP error mapping.

Services raise the PharmacyError family; routes never build error bodies by hand.
The exception handler registered in main.py turns each subclass into a JSON body
with a stable error code and the HTTP status declared on the class.

SECURITY PRINCIPLE: Don't expose internal details to users.
Use generic error messages externally, detailed logging internally.
"""
import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    """Base class for every error the workflow raises on purpose."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(PharmacyError):
    """Missing field, stock-exceeding quantity, blank reason."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class InsufficientStockError(ValidationError):
    """Stock changed underneath the caller and the reservation lost the race."""

    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, message: str = ""):
        self.product_id = product_id
        self.requested = requested
        super().__init__(message or f"Not enough stock for product {product_id} (requested {requested})")


class AuthenticationError(PharmacyError):
    """Authentication failed"""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_error"


class PermissionDeniedError(PharmacyError):
    """Access denied"""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class NotFoundError(PharmacyError):
    """Resource not found"""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, resource: str = "Resource", resource_id: Optional[int] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ConflictError(PharmacyError):
    """The request conflicts with the current state of the resource."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StaleVersionError(ConflictError):
    code = "stale_version"

    def __init__(self, resource: str, expected: int, actual: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{resource} was modified by someone else (version {expected} is stale). Reload and retry."
        )


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"

    def __init__(self, resource: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {resource} from '{current}' to '{target}'")


class OrderLockedError(ConflictError):
    code = "order_locked"


class PaymentError(PharmacyError):
    """Payment could not be recorded. The order is unchanged and may be retried."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_error"


class ConfirmationInconsistency(ConflictError):
    """Payment is recorded but the order could not be confirmed. Retry confirmation."""

    code = "confirmation_pending"

    def __init__(self, order_id: int, payment_id: int):
        self.order_id = order_id
        self.payment_id = payment_id
        super().__init__(
            f"Payment #{payment_id} is recorded but order #{order_id} is not confirmed yet. "
            "Retry confirmation; you will not be charged again."
        )


async def pharmacy_error_handler(request: Request, exc: PharmacyError) -> JSONResponse:
    """Translate domain errors into the shared error body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    body = {"success": False, "error": exc.code, "detail": exc.message}
    if isinstance(exc, ConfirmationInconsistency):
        body["payment_id"] = exc.payment_id
        body["retryable"] = True
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500 - logs actual error internally, hides it from the user."""
    logger.error(
        f"Internal server error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "server_error",
            "detail": "An internal error occurred. Please try again later.",
        },
    )


class BusinessError:
    """Route-level HTTP errors with safe (non-leaky) messages."""

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        SECURITY: Same response for wrong password, non-existent user, etc.
        Prevents user enumeration attacks.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors caught at the route layer.

        OK to include specific details here since user caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

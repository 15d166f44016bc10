"""Service errors and standardized error responses."""
from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class PaymentServiceError(Exception):
    """Base class for errors surfaced across the service boundary.

    Every subclass carries a stable ``code`` and the HTTP status it maps to.
    Messages are meant for API clients and must not leak internal state.
    """

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details)


class ValidationFailed(PaymentServiceError):
    """Malformed input, detected before the store is touched."""

    code = "VALIDATION_FAILED"
    status_code = 400
    default_message = "Payment request is invalid."


class DuplicatePayment(PaymentServiceError):
    """The idempotency key has already been used by another payment."""

    code = "DUPLICATE_PAYMENT"
    status_code = 409
    default_message = "Payment already processed."


class PaymentNotFound(PaymentServiceError):
    code = "PAYMENT_NOT_FOUND"
    status_code = 404
    default_message = "Payment not found."


class VersionConflict(PaymentServiceError):
    """A concurrent writer changed the payment first."""

    code = "VERSION_CONFLICT"
    status_code = 409
    default_message = "Payment was modified concurrently."


class InvalidStateTransition(PaymentServiceError):
    code = "INVALID_STATE_TRANSITION"
    status_code = 409
    default_message = "Payment status transition is not allowed."


class LifecycleError(PaymentServiceError):
    """Internal failure while advancing a payment through its lifecycle."""

    code = "PAYMENT_LIFECYCLE_ERROR"
    status_code = 500
    default_message = "Payment could not be processed."


class StoreUnavailable(PaymentServiceError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
    default_message = "Payment store is unavailable."


__all__ = [
    "error_response",
    "PaymentServiceError",
    "ValidationFailed",
    "DuplicatePayment",
    "PaymentNotFound",
    "VersionConflict",
    "InvalidStateTransition",
    "LifecycleError",
    "StoreUnavailable",
]

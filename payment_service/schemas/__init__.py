"""Schema package exports."""
from .payment import (
    PaymentCreate,
    PaymentCreated,
    PaymentPage,
    PaymentRead,
    PaymentRequest,
    SortDirection,
    SortField,
)

__all__ = [
    "PaymentCreate",
    "PaymentCreated",
    "PaymentPage",
    "PaymentRead",
    "PaymentRequest",
    "SortDirection",
    "SortField",
]

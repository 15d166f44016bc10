"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .payment import TERMINAL_STATUSES, Payment, PaymentStatus

__all__ = [
    "AuditLog",
    "Base",
    "Payment",
    "PaymentStatus",
    "TERMINAL_STATUSES",
]

"""Payment status state machine.

    PENDING -> PROCESSING            (at creation)
    PROCESSING -> SUCCESS | FAILED | CANCELLED

SUCCESS, FAILED and CANCELLED are terminal. Every transition goes through
:func:`payment_store.update_with_version_check`, so a concurrent writer that
already moved the payment makes the later one fail with ``VersionConflict``.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from payment_service.models.payment import TERMINAL_STATUSES, Payment, PaymentStatus
from payment_service.services import payment_store
from payment_service.utils.audit import log_audit
from payment_service.utils.errors import InvalidStateTransition

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING}),
    PaymentStatus.PROCESSING: frozenset(TERMINAL_STATUSES),
    PaymentStatus.SUCCESS: frozenset(),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransition(
            f"Cannot move payment from {current.value} to {target.value}.",
            details={"from": current.value, "to": target.value},
        )


def transition(
    db: Session,
    payment: Payment,
    target: PaymentStatus,
    *,
    actor: str = "system",
) -> Payment:
    """Move ``payment`` to ``target`` guarded by its current version.

    The change and its audit entry are staged in the caller's transaction.
    """

    previous = payment.status
    ensure_transition(previous, target)
    updated = payment_store.update_with_version_check(
        db, payment.id, payment.version, status=target
    )
    log_audit(
        db,
        actor=actor,
        action="PAYMENT_STATUS_CHANGED",
        entity="Payment",
        entity_id=updated.id,
        data={
            "from": previous.value,
            "to": target.value,
            "version": updated.version,
        },
    )
    logger.info(
        "Payment status changed",
        extra={
            "payment_id": updated.id,
            "from_status": previous.value,
            "status": target.value,
            "version": updated.version,
        },
    )
    return updated


def mark_succeeded(db: Session, payment: Payment, *, actor: str = "system") -> Payment:
    return transition(db, payment, PaymentStatus.SUCCESS, actor=actor)


def mark_failed(db: Session, payment: Payment, *, actor: str = "system") -> Payment:
    """Record a settlement failure."""

    return transition(db, payment, PaymentStatus.FAILED, actor=actor)


def cancel(db: Session, payment: Payment, *, actor: str = "system") -> Payment:
    return transition(db, payment, PaymentStatus.CANCELLED, actor=actor)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "cancel",
    "ensure_transition",
    "mark_failed",
    "mark_succeeded",
    "transition",
]

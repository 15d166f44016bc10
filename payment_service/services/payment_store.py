"""Persistence operations for payments.

Functions here flush but never commit: the caller owns the transaction.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payment_service.models.payment import IDEMPOTENCY_KEY_CONSTRAINT, Payment, PaymentStatus
from payment_service.models.types import MAX_BIGINT
from payment_service.schemas.payment import PaymentCreate, SortDirection, SortField
from payment_service.services.idempotency import KeyReservation, get_existing_by_key, reserve_key
from payment_service.utils.errors import PaymentNotFound, ValidationFailed, VersionConflict
from payment_service.utils.time import utcnow

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset(
    {"id", "idempotency_key", "transaction_reference", "created_at", "version", "updated_at"}
)

_SORT_COLUMNS = {
    SortField.created_at: Payment.created_at,
    SortField.updated_at: Payment.updated_at,
    SortField.amount: Payment.amount,
    SortField.status: Payment.status,
    SortField.currency: Payment.currency,
    SortField.id: Payment.id,
}


def _is_valid_id(payment_id: int) -> bool:
    return 0 < payment_id <= MAX_BIGINT


class DuplicateKeyError(Exception):
    """Raised by :func:`create` when the idempotency key is already taken."""

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__(f"Idempotency key already exists: {idempotency_key}")


def create(
    db: Session,
    payload: PaymentCreate,
    *,
    status: PaymentStatus,
    transaction_reference: str,
) -> Payment:
    """Persist a new payment at version 0, reserving its idempotency key."""

    payment = Payment(
        amount=payload.amount,
        currency=payload.currency,
        idempotency_key=payload.idempotency_key,
        description=payload.description,
        merchant_id=payload.merchant_id,
        status=status,
        transaction_reference=transaction_reference,
        version=0,
        updated_at=None,
    )
    try:
        reservation = reserve_key(db, payment, constraint_name=IDEMPOTENCY_KEY_CONSTRAINT)
    except IntegrityError as exc:
        # Storage-level CHECK constraints backing the input validation.
        logger.warning(
            "Payment rejected by storage constraints",
            extra={"idempotency_key": payload.idempotency_key},
        )
        raise ValidationFailed("Payment violates storage constraints.") from exc

    if reservation is KeyReservation.ALREADY_EXISTS:
        raise DuplicateKeyError(payload.idempotency_key)
    return payment


def update_with_version_check(
    db: Session,
    payment_id: int,
    expected_version: int,
    **changes: Any,
) -> Payment:
    """Apply ``changes`` only if the stored version equals ``expected_version``.

    On success the version is incremented by exactly one and ``updated_at`` is
    set. On mismatch nothing is written and :class:`VersionConflict` is raised;
    a missing row raises :class:`PaymentNotFound`.
    """

    forbidden = IMMUTABLE_FIELDS.intersection(changes)
    if forbidden:
        raise ValueError(f"Immutable payment fields cannot be updated: {sorted(forbidden)}")
    unknown = [name for name in changes if not hasattr(Payment, name)]
    if unknown:
        raise ValueError(f"Unknown payment fields: {sorted(unknown)}")
    if not _is_valid_id(payment_id):
        raise PaymentNotFound(f"Payment not found: {payment_id}")

    db.flush()
    stmt = (
        update(Payment)
        .where(Payment.id == payment_id, Payment.version == expected_version)
        .values(**changes, version=Payment.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        current = db.get(Payment, payment_id, populate_existing=True)
        if current is None:
            raise PaymentNotFound(f"Payment not found: {payment_id}")
        logger.warning(
            "Payment version conflict",
            extra={
                "payment_id": payment_id,
                "expected_version": expected_version,
                "stored_version": current.version,
            },
        )
        raise VersionConflict(
            f"Payment {payment_id} is at version {current.version}, expected {expected_version}."
        )

    payment = db.get(Payment, payment_id, populate_existing=True)
    if payment is None:
        raise PaymentNotFound(f"Payment not found: {payment_id}")
    return payment


def find_by_id(db: Session, payment_id: int) -> Payment:
    if not _is_valid_id(payment_id):
        raise PaymentNotFound(f"Payment not found: {payment_id}")
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFound(f"Payment not found: {payment_id}")
    return payment


def find_by_idempotency_key(db: Session, idempotency_key: str) -> Payment:
    payment = get_existing_by_key(db, Payment, idempotency_key)
    if payment is None:
        raise PaymentNotFound("Payment not found for idempotency key.")
    return payment


def list_payments(
    db: Session,
    *,
    page: int,
    size: int,
    sort_field: SortField = SortField.created_at,
    direction: SortDirection = SortDirection.desc,
) -> tuple[list[Payment], int]:
    """Return one page of payments and the total count.

    ``id`` breaks ties in the requested direction so a page is reproducible
    even when several rows share a sort value.
    """

    if page < 0:
        raise ValidationFailed("page must be >= 0")
    if size < 1:
        raise ValidationFailed("size must be >= 1")
    if page * size > MAX_BIGINT:
        raise ValidationFailed("page is out of range")

    column = _SORT_COLUMNS[SortField(sort_field)]
    if SortDirection(direction) is SortDirection.asc:
        ordering = (column.asc(), Payment.id.asc())
    else:
        ordering = (column.desc(), Payment.id.desc())

    total = int(db.scalar(select(func.count()).select_from(Payment)) or 0)
    stmt = select(Payment).order_by(*ordering).offset(page * size).limit(size)
    items = list(db.scalars(stmt).all())
    return items, total


__all__ = [
    "DuplicateKeyError",
    "IMMUTABLE_FIELDS",
    "create",
    "find_by_id",
    "find_by_idempotency_key",
    "list_payments",
    "update_with_version_check",
]

"""Read-only payment queries."""
from __future__ import annotations

import math

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from payment_service.db import begin_read_only
from payment_service.models import Payment
from payment_service.schemas.payment import PaymentPage, PaymentRead, SortDirection, SortField
from payment_service.services import payment_store
from payment_service.utils.errors import StoreUnavailable


def get_payment(db: Session, payment_id: int) -> Payment:
    """Return the payment or raise ``PaymentNotFound``."""

    try:
        begin_read_only(db)
        return payment_store.find_by_id(db, payment_id)
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        raise StoreUnavailable() from exc


def list_payments(
    db: Session,
    *,
    page: int = 0,
    size: int = 20,
    sort_field: SortField = SortField.created_at,
    direction: SortDirection = SortDirection.desc,
) -> PaymentPage:
    try:
        begin_read_only(db)
        items, total = payment_store.list_payments(
            db, page=page, size=size, sort_field=sort_field, direction=direction
        )
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        raise StoreUnavailable() from exc
    return PaymentPage(
        items=[PaymentRead.model_validate(item) for item in items],
        total_count=total,
        page=page,
        size=size,
        total_pages=math.ceil(total / size) if total else 0,
    )


__all__ = ["get_payment", "list_payments"]

"""Payment submission and query endpoints."""
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from payment_service.config import get_settings
from payment_service.db import get_db
from payment_service.models import Payment
from payment_service.schemas.payment import (
    PaymentCreated,
    PaymentPage,
    PaymentRead,
    PaymentRequest,
    SortDirection,
    SortField,
)
from payment_service.services import payment_queries
from payment_service.services import payments as payments_service
from payment_service.utils.errors import ValidationFailed

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


def _resolve_idempotency_key(body_key: str | None, header_key: str | None) -> str | None:
    if body_key and header_key and body_key.strip() != header_key.strip():
        raise ValidationFailed(
            "Idempotency key in header and body differ.",
            details={"errors": [{"field": "idempotency_key", "message": "header/body mismatch"}]},
        )
    return body_key or header_key


@router.post("", response_model=PaymentCreated, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> PaymentCreated:
    """Submit a payment; replaying an idempotency key yields 409."""

    payment = payments_service.submit_payment(
        db,
        amount=payload.amount,
        currency=payload.currency,
        idempotency_key=_resolve_idempotency_key(payload.idempotency_key, idempotency_key),
        description=payload.description,
        merchant_id=payload.merchant_id,
    )
    return PaymentCreated.model_validate(payment)


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: int, db: Session = Depends(get_db)) -> Payment:
    return payment_queries.get_payment(db, payment_id)


@router.get("", response_model=PaymentPage)
def list_payments(
    page: int = Query(default=0, ge=0),
    size: int | None = Query(default=None, ge=1),
    sort_by: SortField = Query(default=SortField.created_at),
    direction: SortDirection = Query(default=SortDirection.desc),
    db: Session = Depends(get_db),
) -> PaymentPage:
    """List payments, newest first unless another order is requested."""

    settings = get_settings()
    page_size = size or settings.DEFAULT_PAGE_SIZE
    if page_size > settings.MAX_PAGE_SIZE:
        raise ValidationFailed(f"size must be <= {settings.MAX_PAGE_SIZE}")
    return payment_queries.list_payments(
        db, page=page, size=page_size, sort_field=sort_by, direction=direction
    )

"""Payment submission services."""
import logging
from decimal import Decimal
from typing import Any, Callable
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from payment_service.config import get_settings
from payment_service.models import TERMINAL_STATUSES, Payment, PaymentStatus
from payment_service.schemas.payment import PaymentCreate
from payment_service.services import lifecycle, payment_store
from payment_service.services.payment_store import DuplicateKeyError
from payment_service.utils.audit import log_audit
from payment_service.utils.errors import (
    DuplicatePayment,
    LifecycleError,
    StoreUnavailable,
    ValidationFailed,
    VersionConflict,
)

logger = logging.getLogger(__name__)

Settlement = Callable[[Payment], PaymentStatus]


def generate_transaction_reference() -> str:
    """Return a fresh opaque reference, assigned once per payment."""

    return f"{get_settings().TRANSACTION_REFERENCE_PREFIX}{uuid4()}"


def simulate_settlement(payment: Payment) -> PaymentStatus:
    """Settlement stub: no external rail is called, every payment succeeds."""

    return PaymentStatus.SUCCESS


def validate_payment(**fields: Any) -> PaymentCreate:
    """Build a :class:`PaymentCreate`, raising ``ValidationFailed`` on bad input."""

    data = {name: value for name, value in fields.items() if value is not None}
    try:
        return PaymentCreate.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        message = ", ".join(f"{e['field']}: {e['message']}" for e in errors)
        logger.info("Payment request rejected by validation", extra={"errors": errors})
        raise ValidationFailed(message, details={"errors": errors}) from exc


def submit_payment(
    db: Session,
    *,
    amount: Decimal | None,
    currency: str | None,
    idempotency_key: str | None,
    description: str | None = None,
    merchant_id: str | None = None,
    settle: Settlement = simulate_settlement,
    actor: str = "system",
) -> Payment:
    """Create a payment under ``idempotency_key`` and drive it to a terminal status.

    Reserving the key, creating the record and the ``PROCESSING -> terminal``
    advance are one transaction. A key that was already used raises
    ``DuplicatePayment``; nothing is written in that case.
    """

    payload = validate_payment(
        amount=amount,
        currency=currency,
        idempotency_key=idempotency_key,
        description=description,
        merchant_id=merchant_id,
    )
    logger.info("Processing payment", extra={"idempotency_key": payload.idempotency_key})

    try:
        payment = payment_store.create(
            db,
            payload,
            status=PaymentStatus.PROCESSING,
            transaction_reference=generate_transaction_reference(),
        )
        log_audit(
            db,
            actor=actor,
            action="PAYMENT_CREATED",
            entity="Payment",
            entity_id=payment.id,
            data={
                "amount": str(payment.amount),
                "currency": payment.currency,
                "idempotency_key": payment.idempotency_key,
                "transaction_reference": payment.transaction_reference,
                "merchant_id": payment.merchant_id,
                "status": payment.status.value,
            },
        )

        outcome = settle(payment)
        if outcome not in TERMINAL_STATUSES:
            raise LifecycleError(f"Settlement returned non-terminal status {outcome.value}.")
        payment = lifecycle.transition(db, payment, outcome, actor=actor)
        db.commit()
    except DuplicateKeyError:
        db.rollback()
        logger.info(
            "Duplicate payment rejected",
            extra={"idempotency_key": payload.idempotency_key},
        )
        raise DuplicatePayment(
            "Payment already processed.",
            details={"idempotency_key": payload.idempotency_key},
        ) from None
    except VersionConflict as exc:
        db.rollback()
        logger.error(
            "Version conflict while advancing new payment",
            extra={"idempotency_key": payload.idempotency_key},
        )
        raise LifecycleError() from exc
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        db.rollback()
        logger.exception(
            "Payment store unavailable",
            extra={"idempotency_key": payload.idempotency_key},
        )
        raise StoreUnavailable() from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Payment processed",
        extra={
            "payment_id": payment.id,
            "status": payment.status.value,
            "version": payment.version,
        },
    )
    return payment


__all__ = [
    "Settlement",
    "generate_transaction_reference",
    "simulate_settlement",
    "submit_payment",
    "validate_payment",
]

# payment_service/services/idempotency.py
"""Idempotency key registry backed by the store's unique constraint.

A key is reserved by inserting the row that carries it. The database unique
index is the only arbiter: two concurrent inserts with the same key cannot
both commit, whatever the interleaving. There is no
"look up, then insert if absent" path here.
"""
import enum
import logging
from typing import Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

T = TypeVar("T")

logger = logging.getLogger(__name__)


class KeyReservation(str, enum.Enum):
    ACCEPTED = "ACCEPTED"
    ALREADY_EXISTS = "ALREADY_EXISTS"


def is_idempotency_key_violation(
    exc: IntegrityError,
    *,
    constraint_name: str | None = None,
    key_field: str = "idempotency_key",
) -> bool:
    """Tell whether ``exc`` is a unique violation on the idempotency key column."""

    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    reported = getattr(diag, "constraint_name", None)
    if reported and constraint_name:
        return reported == constraint_name

    message = str(orig if orig is not None else exc).lower()
    if "unique" not in message and "duplicate" not in message:
        return False
    if constraint_name and constraint_name.lower() in message:
        return True
    return key_field.lower() in message


def reserve_key(
    db: Session,
    instance: T,
    *,
    constraint_name: str | None = None,
    key_field: str = "idempotency_key",
) -> KeyReservation:
    """Insert ``instance`` and report whether its idempotency key was free.

    The insert runs in a SAVEPOINT so a collision only discards the row being
    reserved; the caller's transaction stays usable. Integrity errors that are
    not key collisions propagate unchanged.
    """

    key_value = getattr(instance, key_field)
    try:
        with db.begin_nested():
            db.add(instance)
    except IntegrityError as exc:
        if not is_idempotency_key_violation(exc, constraint_name=constraint_name, key_field=key_field):
            raise
        logger.info("Idempotency key already reserved", extra={"idempotency_key": key_value})
        return KeyReservation.ALREADY_EXISTS
    return KeyReservation.ACCEPTED


def get_existing_by_key(
    db: Session,
    model: Type[T],
    key_value: str | None,
    *,
    key_field: str = "idempotency_key",
) -> Optional[T]:
    """Return existing record for a given idempotency key if present.

    Read-only lookup; never use it to decide whether a key may be reserved.
    """
    if not key_value:  # None, "", etc.
        return None
    if not hasattr(model, key_field):
        raise AttributeError(f"{model.__name__} has no field '{key_field}'")

    column = getattr(model, key_field)
    stmt = select(model).where(column == key_value).limit(1)
    return db.scalars(stmt).first()


__all__ = ["KeyReservation", "get_existing_by_key", "is_idempotency_key_violation", "reserve_key"]

"""Column types shared by the ORM models and migrations."""
from decimal import Decimal

from sqlalchemy import BigInteger, Integer, Numeric
from sqlalchemy.types import TypeDecorator

CENT = Decimal("0.01")

# Largest value a signed 64-bit column (and a SQLite bind) accepts.
MAX_BIGINT = 2**63 - 1

# SQLite only aliases rowid for a column declared exactly INTEGER.
Identifier = BigInteger().with_variant(Integer(), "sqlite")


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to integer minor units (cents)."""

    normalized = Decimal(str(amount)).quantize(CENT)
    return int((normalized * 100).to_integral_value())


def from_minor_units(value: int) -> Decimal:
    return (Decimal(int(value)) / 100).quantize(CENT)


class Money(TypeDecorator):
    """Amount with two fractional digits, stored exactly on every dialect.

    SQLite has no exact decimal type and keeps NUMERIC values as floats, so
    there the amount is stored as integer minor units. Other dialects use
    ``NUMERIC(19, 2)``.
    """

    impl = Numeric(19, 2)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Numeric(19, 2))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return to_minor_units(value)
        return Decimal(str(value)).quantize(CENT)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return from_minor_units(value)
        return Decimal(value).quantize(CENT)


__all__ = ["CENT", "Identifier", "MAX_BIGINT", "Money", "from_minor_units", "to_minor_units"]

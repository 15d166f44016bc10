"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from alembic import command
from alembic.config import Config
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DB_PATH = PROJECT_ROOT / "payments_test.db"

# --- Default env for the test run
os.environ.setdefault("DATABASE_URL", f"sqlite:///{DB_PATH}")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ALEMBIC_CONFIG", str(PROJECT_ROOT / "alembic.ini"))

from payment_service.main import app  # noqa: E402
from payment_service.db import build_engine, build_sessionmaker, get_db  # noqa: E402
from payment_service.models import AuditLog, Payment  # noqa: E402
from payment_service.services import payment_store  # noqa: E402
from payment_service.services.payments import validate_payment  # noqa: E402
from payment_service.models import PaymentStatus  # noqa: E402


def _run_migrations() -> None:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file for the session
for stale in (DB_PATH, DB_PATH.with_name(DB_PATH.name + "-wal"), DB_PATH.with_name(DB_PATH.name + "-shm")):
    if stale.exists():
        stale.unlink()

# --- (2) Schema comes from Alembic only
_run_migrations()

engine = build_engine(os.environ["DATABASE_URL"])
TestingSessionLocal = build_sessionmaker(engine)


@pytest.fixture(autouse=True)
def clean_tables() -> Iterator[None]:
    yield
    with TestingSessionLocal() as session:
        session.execute(delete(AuditLog))
        session.execute(delete(Payment))
        session.commit()


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    return TestingSessionLocal


@pytest.fixture
def db_session() -> Iterator[Session]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def count_payments(db_session: Session) -> Callable[..., int]:
    def _count(idempotency_key: str | None = None) -> int:
        stmt = select(func.count()).select_from(Payment)
        if idempotency_key is not None:
            stmt = stmt.where(Payment.idempotency_key == idempotency_key)
        value = int(db_session.scalar(stmt) or 0)
        db_session.commit()  # release the SQLite write lock taken by BEGIN IMMEDIATE
        return value

    return _count


@pytest.fixture
def make_processing_payment(db_session: Session) -> Callable[..., Payment]:
    """Persist a payment left in PROCESSING, as it is right after creation."""

    def _factory(
        *,
        amount: str = "25.00",
        currency: str = "USD",
        idempotency_key: str | None = None,
    ) -> Payment:
        payload = validate_payment(
            amount=Decimal(amount),
            currency=currency,
            idempotency_key=idempotency_key or f"idem-{uuid4().hex}",
        )
        payment = payment_store.create(
            db_session,
            payload,
            status=PaymentStatus.PROCESSING,
            transaction_reference=f"TXN-{uuid4()}",
        )
        db_session.commit()
        return payment

    return _factory

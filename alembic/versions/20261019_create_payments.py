"""create payments and audit_logs tables"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_create_payments"
down_revision = None
branch_labels = None
depends_on = None

PAYMENT_STATUS = sa.Enum(
    "PENDING",
    "PROCESSING",
    "SUCCESS",
    "FAILED",
    "CANCELLED",
    name="paymentstatus",
)

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
# SQLite keeps amounts as integer minor units (see payment_service.models.types.Money).
AMOUNT_TYPE = sa.Numeric(19, 2).with_variant(sa.BigInteger(), "sqlite")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = set(inspector.get_table_names())

    if "payments" not in tables:
        op.create_table(
            "payments",
            sa.Column("id", ID_TYPE, primary_key=True, autoincrement=True),
            sa.Column("amount", AMOUNT_TYPE, nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("status", PAYMENT_STATUS, nullable=False),
            sa.Column("idempotency_key", sa.String(length=255), nullable=False),
            sa.Column("transaction_reference", sa.String(length=64), nullable=False),
            sa.Column("description", sa.String(length=1000), nullable=True),
            sa.Column("merchant_id", sa.String(length=100), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("amount > 0", name="ck_payments_positive_amount"),
            sa.CheckConstraint("length(currency) = 3", name="ck_payments_currency_length"),
            sa.UniqueConstraint("idempotency_key", name="uq_payments_idempotency_key"),
            sa.UniqueConstraint("transaction_reference", name="uq_payments_transaction_reference"),
        )
        op.create_index("ix_payments_created_at", "payments", ["created_at"], unique=False)
        op.create_index("ix_payments_status", "payments", ["status"], unique=False)
        op.create_index("ix_payments_merchant_id", "payments", ["merchant_id"], unique=False)
        op.create_index("ix_payments_status_created_at", "payments", ["status", "created_at"], unique=False)
        op.create_index("ix_payments_merchant_status", "payments", ["merchant_id", "status"], unique=False)

    if "audit_logs" not in tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", ID_TYPE, primary_key=True, autoincrement=True),
            sa.Column("actor", sa.String(length=100), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity", sa.String(length=100), nullable=False),
            sa.Column("entity_id", ID_TYPE, nullable=False),
            sa.Column("data_json", sa.JSON(), nullable=False),
            sa.Column("at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_payments_merchant_status", table_name="payments")
    op.drop_index("ix_payments_status_created_at", table_name="payments")
    op.drop_index("ix_payments_merchant_id", table_name="payments")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_created_at", table_name="payments")
    op.drop_table("payments")
    PAYMENT_STATUS.drop(op.get_bind(), checkfirst=True)

"""create payments table

Revision ID: 007
Revises: 006
Create Date: 2026-09-01 11:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SUCCEEDED_DEPOSIT = "payment_type = 'deposit' AND payment_status = 'succeeded'"


def upgrade() -> None:
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contract_id", sa.Integer(), nullable=False),
        sa.Column("payment_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("owner_payout", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("provider_ref", sa.String(255), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["contract_id"], ["contracts.id"]),
        sa.UniqueConstraint("provider_ref", name="uq_payments_provider_ref"),
        sa.CheckConstraint(
            "payment_type IN ('monthly_rent', 'deposit')", name="ck_payments_payment_type"
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'succeeded', 'failed')",
            name="ck_payments_payment_status",
        ),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_id", "payments", ["id"], unique=False)
    op.create_index("ix_payments_contract_id", "payments", ["contract_id"], unique=False)

    # At most one successful deposit per contract
    op.create_index(
        "uq_payments_one_succeeded_deposit",
        "payments",
        ["contract_id"],
        unique=True,
        sqlite_where=sa.text(SUCCEEDED_DEPOSIT),
        postgresql_where=sa.text(SUCCEEDED_DEPOSIT),
    )


def downgrade() -> None:
    op.drop_index("uq_payments_one_succeeded_deposit", table_name="payments")
    op.drop_index("ix_payments_contract_id", table_name="payments")
    op.drop_index("ix_payments_id", table_name="payments")
    op.drop_table("payments")

"""create contracts table

Revision ID: 006
Revises: 005
Create Date: 2026-09-01 10:50:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=True),
        sa.Column("monthly_rent", sa.Numeric(10, 2), nullable=False),
        sa.Column("charges", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_commission", sa.Numeric(10, 2), nullable=False),
        sa.Column("owner_payout", sa.Numeric(10, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_editable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("owner_signature", sa.Text(), nullable=True),
        sa.Column("owner_signed_at", sa.DateTime(), nullable=True),
        sa.Column("student_signature", sa.Text(), nullable=True),
        sa.Column("student_signed_at", sa.DateTime(), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("deposit_payment_ref", sa.String(255), nullable=True),
        sa.Column(
            "subscription_unlink_pending", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by_id", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["cancelled_by_id"], ["users.id"]),
        sa.UniqueConstraint("stripe_subscription_id", name="uq_contracts_stripe_subscription_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'cancelled')",
            name="ck_contracts_status",
        ),
        sa.CheckConstraint("monthly_rent > 0", name="ck_contracts_monthly_rent_positive"),
        sa.CheckConstraint("end_date > start_date", name="ck_contracts_end_after_start"),
    )
    op.create_index("ix_contracts_id", "contracts", ["id"], unique=False)
    op.create_index("ix_contracts_property_id", "contracts", ["property_id"], unique=False)
    op.create_index("ix_contracts_owner_id", "contracts", ["owner_id"], unique=False)
    op.create_index("ix_contracts_student_id", "contracts", ["student_id"], unique=False)
    op.create_index("ix_contracts_conversation_id", "contracts", ["conversation_id"], unique=False)
    op.create_index("ix_contracts_status", "contracts", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_contracts_status", table_name="contracts")
    op.drop_index("ix_contracts_conversation_id", table_name="contracts")
    op.drop_index("ix_contracts_student_id", table_name="contracts")
    op.drop_index("ix_contracts_owner_id", table_name="contracts")
    op.drop_index("ix_contracts_property_id", table_name="contracts")
    op.drop_index("ix_contracts_id", table_name="contracts")
    op.drop_table("contracts")

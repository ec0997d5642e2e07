"""create kyc verifications table

Revision ID: 005
Revises: 004
Create Date: 2026-09-01 10:40:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "kyc_verifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("id_card_front_ref", sa.String(500), nullable=False),
        sa.Column("id_card_back_ref", sa.String(500), nullable=False),
        sa.Column("selfie_ref", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["reviewed_by_id"], ["users.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_kyc_verifications_status"
        ),
    )
    op.create_index("ix_kyc_verifications_id", "kyc_verifications", ["id"], unique=False)
    op.create_index("ix_kyc_verifications_user_id", "kyc_verifications", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_kyc_verifications_user_id", table_name="kyc_verifications")
    op.drop_index("ix_kyc_verifications_id", table_name="kyc_verifications")
    op.drop_table("kyc_verifications")

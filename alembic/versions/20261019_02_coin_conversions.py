"""Add tier bonuses to coin conversion rules and the coin conversion ledger.

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261019_02"
down_revision: Union[str, None] = "20261019_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.add_column(
        "coin_conversion_rules",
        sa.Column("tier_bonuses", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )

    op.create_table(
        "coin_conversions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("customer_id", UUID, sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rule_id", UUID, sa.ForeignKey("coin_conversion_rules.id", ondelete="SET NULL"), nullable=True),
        sa.Column("points", sa.Numeric(14, 2), nullable=False),
        sa.Column("coins", sa.Numeric(14, 2), nullable=False),
        sa.Column("bonus", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("points_per_coin", sa.Numeric(12, 2), nullable=False),
        sa.Column("minimum_points", sa.Numeric(12, 2), nullable=False),
        sa.Column("conversion_rate", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="completed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by_id", UUID, sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_coin_conversions_customer_created",
        "coin_conversions",
        ["customer_id", "created_at"],
    )
    op.create_index("ix_coin_conversions_status", "coin_conversions", ["status"])


def downgrade() -> None:
    op.drop_index("ix_coin_conversions_status", table_name="coin_conversions")
    op.drop_index("ix_coin_conversions_customer_created", table_name="coin_conversions")
    op.drop_table("coin_conversions")

    with op.batch_alter_table("coin_conversion_rules") as batch_op:
        batch_op.drop_column("tier_bonuses")

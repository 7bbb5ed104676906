"""Create admin, customer, rule, referral and audit tables.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)

referral_entry_status = sa.Enum("pending", "completed", "expired", name="referral_entry_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "admins",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role_id", UUID, sa.ForeignKey("roles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("total_points", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("coins", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("referral_code", sa.String(), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_email", "customers", ["email"], unique=True)

    op.create_table(
        "coin_conversion_rules",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("points_per_coin", sa.Numeric(12, 2), nullable=False),
        sa.Column("minimum_points", sa.Numeric(12, 2), nullable=False),
        sa.Column("updated_by_id", UUID, sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("points_per_coin >= 0", name="ck_coin_conversion_rules_points_per_coin"),
        sa.CheckConstraint("minimum_points >= 0", name="ck_coin_conversion_rules_minimum_points"),
    )
    op.create_index(
        "uq_coin_conversion_rules_active",
        "coin_conversion_rules",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "referral_program_rules",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("points_for_referrer", sa.Numeric(12, 2), nullable=False),
        sa.Column("points_for_referee", sa.Numeric(12, 2), nullable=False),
        sa.Column("minimum_purchase_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("expiry_days", sa.Integer(), nullable=False),
        sa.Column("max_referrals_per_user", sa.Integer(), nullable=False),
        sa.Column("updated_by_id", UUID, sa.ForeignKey("admins.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("expiry_days > 0", name="ck_referral_program_rules_expiry_days"),
        sa.CheckConstraint("max_referrals_per_user > 0", name="ck_referral_program_rules_max_referrals"),
    )
    op.create_index(
        "uq_referral_program_rules_active",
        "referral_program_rules",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "referral_entries",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("referrer_id", UUID, sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("referee_id", UUID, sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", referral_entry_status, nullable=False, server_default="pending"),
        sa.Column("referrer_points", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("referee_points", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("first_login_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("referee_id", name="uq_referral_entries_referee_id"),
    )
    op.create_index("ix_referral_entries_referrer_id", "referral_entries", ["referrer_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("actor_id", UUID, nullable=True),
        sa.Column("actor_model", sa.String(length=16), nullable=True),
        sa.Column("actor_name", sa.String(), nullable=True),
        sa.Column("actor_email", sa.String(), nullable=True),
        sa.Column("target_model", sa.String(), nullable=True),
        sa.Column("target_id", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("endpoint", sa.String(), nullable=True),
        sa.Column("method", sa.String(length=8), nullable=True),
        sa.Column("response_status", sa.Integer(), nullable=True),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"], unique=False)
    op.create_index("ix_audit_logs_category_action_created", "audit_logs", ["category", "action", "created_at"])
    op.create_index("ix_audit_logs_actor_created", "audit_logs", ["actor_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_actor_created", table_name="audit_logs")
    op.drop_index("ix_audit_logs_category_action_created", table_name="audit_logs")
    op.drop_index("ix_audit_logs_request_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_referral_entries_referrer_id", table_name="referral_entries")
    op.drop_table("referral_entries")
    referral_entry_status.drop(op.get_bind(), checkfirst=True)

    op.drop_index("uq_referral_program_rules_active", table_name="referral_program_rules")
    op.drop_table("referral_program_rules")
    op.drop_index("uq_coin_conversion_rules_active", table_name="coin_conversion_rules")
    op.drop_table("coin_conversion_rules")

    op.drop_index("ix_customers_email", table_name="customers")
    op.drop_table("customers")
    op.drop_index("ix_admins_email", table_name="admins")
    op.drop_table("admins")
    op.drop_table("roles")

"""Singleton-style rule configuration documents.

Each rule table holds any number of historical rows but at most one row with
``is_active`` set. The partial unique indexes below enforce that at the
database level; the services layer keeps them satisfied by deactivating or
updating the current row before writing a new active one.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    JSON,
    Integer,
    Numeric,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loyalty_admin_api.db.base import Base


TIER_NAMES = ("silver", "gold", "platinum")


class CoinConversionRule(Base):
    """Points-to-coin exchange rate. A zero rate means conversion is disabled."""

    __tablename__ = "coin_conversion_rules"
    __table_args__ = (
        CheckConstraint("points_per_coin >= 0", name="ck_coin_conversion_rules_points_per_coin"),
        CheckConstraint("minimum_points >= 0", name="ck_coin_conversion_rules_minimum_points"),
        Index(
            "uq_coin_conversion_rules_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    points_per_coin = Column(Numeric(12, 2), nullable=False)
    minimum_points = Column(Numeric(12, 2), nullable=False)
    # Extra coins per tier, keyed by TIER_NAMES.
    tier_bonuses = Column(JSON, nullable=False, default=dict, server_default=text("'{}'"))
    updated_by_id = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    updated_by = relationship("Admin", lazy="selectin")

    @property
    def conversion_enabled(self) -> bool:
        return bool(self.points_per_coin) and self.points_per_coin > 0


class ReferralProgramRule(Base):
    """Point values, purchase threshold and limits governing referrals."""

    __tablename__ = "referral_program_rules"
    __table_args__ = (
        CheckConstraint("expiry_days > 0", name="ck_referral_program_rules_expiry_days"),
        CheckConstraint("max_referrals_per_user > 0", name="ck_referral_program_rules_max_referrals"),
        Index(
            "uq_referral_program_rules_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    points_for_referrer = Column(Numeric(12, 2), nullable=False)
    points_for_referee = Column(Numeric(12, 2), nullable=False)
    minimum_purchase_amount = Column(Numeric(12, 2), nullable=False)
    expiry_days = Column(Integer, nullable=False)
    max_referrals_per_user = Column(Integer, nullable=False)
    updated_by_id = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    updated_by = relationship("Admin", lazy="selectin")

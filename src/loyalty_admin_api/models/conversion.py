from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loyalty_admin_api.db.base import Base


class CoinConversionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CoinConversion(Base):
    """Ledger row for one points-to-coins conversion, with the rate applied at the time."""

    __tablename__ = "coin_conversions"
    __table_args__ = (
        Index("ix_coin_conversions_customer_created", "customer_id", "created_at"),
        Index("ix_coin_conversions_status", "status"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    rule_id = Column(
        UUID(as_uuid=True),
        ForeignKey("coin_conversion_rules.id", ondelete="SET NULL"),
        nullable=True,
    )
    points = Column(Numeric(14, 2), nullable=False)
    coins = Column(Numeric(14, 2), nullable=False)
    bonus = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    points_per_coin = Column(Numeric(12, 2), nullable=False)
    minimum_points = Column(Numeric(12, 2), nullable=False)
    conversion_rate = Column(String(32), nullable=False)
    status = Column(
        String(16),
        nullable=False,
        default=CoinConversionStatus.COMPLETED.value,
        server_default=CoinConversionStatus.COMPLETED.value,
    )
    notes = Column(Text, nullable=True)
    processed_by_id = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    processed_by = relationship("Admin", lazy="selectin")

    @property
    def total_coins(self):
        return (self.coins or 0) + (self.bonus or 0)

"""Referral relationships between customers."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loyalty_admin_api.db.base import Base


class ReferralEntryStatus(str, Enum):
    """Lifecycle statuses for referral entries. Completed and expired are terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ReferralEntry(Base):
    """A referrer -> referee relationship with its point award and expiry lifecycle."""

    __tablename__ = "referral_entries"
    __table_args__ = (
        UniqueConstraint("referee_id", name="uq_referral_entries_referee_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    referrer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    referee_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    status = Column(
        SqlEnum(
            ReferralEntryStatus,
            name="referral_entry_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=ReferralEntryStatus.PENDING,
        server_default=ReferralEntryStatus.PENDING.value,
    )
    referrer_points = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    referee_points = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    first_login_date = Column(DateTime(timezone=True), nullable=True)
    first_purchase_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    referrer = relationship("Customer", foreign_keys=[referrer_id])
    referee = relationship("Customer", foreign_keys=[referee_id])

from uuid import uuid4

from sqlalchemy import Column, DateTime, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID

from loyalty_admin_api.db.base import Base


class Customer(Base):
    """Loyalty program customer with point and coin balances."""

    __tablename__ = "customers"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=True)
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String(32), nullable=True)
    total_points = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    coins = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    referral_code = Column(String, nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

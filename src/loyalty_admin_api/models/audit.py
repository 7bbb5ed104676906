from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from loyalty_admin_api.db.base import Base


class AuditCategory(str, Enum):
    ADMIN_ACTION = "admin_action"
    DATA_ACCESS = "data_access"
    DATA_MODIFICATION = "data_modification"
    CONVERSION_RULE = "conversion_rule"
    REFERRAL = "referral"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_category_action_created", "category", "action", "created_at"),
        Index("ix_audit_logs_actor_created", "actor_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    category = Column(String(32), nullable=False, default=AuditCategory.ADMIN_ACTION.value)
    action = Column(String, nullable=False, index=True)
    status = Column(String(16), nullable=False, default=AuditStatus.SUCCESS.value)
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    actor_model = Column(String(16), nullable=True)
    actor_name = Column(String, nullable=True)
    actor_email = Column(String, nullable=True)
    target_model = Column(String, nullable=True)
    target_id = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    endpoint = Column(String, nullable=True)
    method = Column(String(8), nullable=True)
    response_status = Column(Integer, nullable=True)
    request_id = Column(String, nullable=True, index=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

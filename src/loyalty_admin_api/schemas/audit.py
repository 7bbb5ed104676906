from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import ConfigDict

from loyalty_admin_api.schemas.common import CamelModel, to_camel


class AuditLogResponse(CamelModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)

    id: UUID
    category: str
    action: str
    status: str
    actor_id: Optional[UUID] = None
    actor_name: Optional[str] = None
    actor_email: Optional[str] = None
    target_model: Optional[str] = None
    target_id: Optional[str] = None
    description: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    response_status: Optional[int] = None
    request_id: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime

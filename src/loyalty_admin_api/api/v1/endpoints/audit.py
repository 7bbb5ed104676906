"""Read access to the admin audit trail."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.api.dependencies.security import VIEW_AUDIT_LOGS, require_permission
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.schemas.audit import AuditLogResponse
from loyalty_admin_api.schemas.common import ApiResponse
from loyalty_admin_api.services.audit import AuditService


router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=ApiResponse[List[AuditLogResponse]])
async def list_audit_logs(
    action: Optional[str] = Query(None),
    target_model: Optional[str] = Query(None, alias="targetModel"),
    actor_id: Optional[UUID] = Query(None, alias="actorId"),
    limit: int = Query(50, ge=1, le=500),
    _: Admin = Depends(require_permission(VIEW_AUDIT_LOGS)),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[List[AuditLogResponse]]:
    service = AuditService(db)
    logs = await service.list_logs(action=action, target_model=target_model, actor_id=actor_id, limit=limit)
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Audit logs retrieved successfully.",
        [AuditLogResponse.model_validate(log) for log in logs],
    )

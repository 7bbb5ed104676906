"""Audit trail persistence for administrator actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.models.audit import AuditCategory, AuditLog, AuditStatus


@dataclass
class AuditEntry:
    """Describes one admin action before it is written."""

    action: str
    status: AuditStatus = AuditStatus.SUCCESS
    category: AuditCategory = AuditCategory.ADMIN_ACTION
    actor_id: UUID | None = None
    actor_name: str | None = None
    actor_email: str | None = None
    target_model: str | None = None
    target_id: str | None = None
    description: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    endpoint: str | None = None
    method: str | None = None
    response_status: int | None = None
    request_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class AuditService:
    """Writes and queries audit log entries."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def record(self, entry: AuditEntry) -> AuditLog:
        log = AuditLog(
            category=entry.category.value,
            action=entry.action,
            status=entry.status.value,
            actor_id=entry.actor_id,
            actor_model="Admin" if entry.actor_id else None,
            actor_name=entry.actor_name,
            actor_email=entry.actor_email,
            target_model=entry.target_model,
            target_id=entry.target_id,
            description=entry.description,
            details=entry.details or None,
            endpoint=entry.endpoint,
            method=entry.method,
            response_status=entry.response_status,
            request_id=entry.request_id,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )
        self._db.add(log)
        await self._db.flush()
        return log

    async def list_logs(
        self,
        *,
        action: str | None = None,
        target_model: str | None = None,
        actor_id: UUID | None = None,
        limit: int = 50,
    ) -> list[AuditLog]:
        stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if target_model:
            stmt = stmt.where(AuditLog.target_model == target_model)
        if actor_id is not None:
            stmt = stmt.where(AuditLog.actor_id == actor_id)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())


async def record_best_effort(
    session_factory: Callable[[], AsyncSession],
    entry: AuditEntry,
) -> bool:
    """Persist an audit entry in its own session; failures are logged, never raised."""

    try:
        async with session_factory() as session:
            await AuditService(session).record(entry)
            await session.commit()
    except Exception:  # noqa: BLE001 - audit writes must not fail the audited request
        logger.exception("Failed to write audit log", action=entry.action, target_model=entry.target_model)
        return False
    return True


__all__ = ["AuditEntry", "AuditService", "record_best_effort"]

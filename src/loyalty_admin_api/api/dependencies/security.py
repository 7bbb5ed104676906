"""Admin identity and permission dependencies."""

from __future__ import annotations

from typing import Awaitable, Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from loyalty_admin_api.core.errors import Forbidden
from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.admin import Admin


VIEW_COIN_MANAGEMENT = "VIEW_COIN_MANAGEMENT"
VIEW_REFERRAL_PROGRAM = "VIEW_REFERRAL_PROGRAM"
VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"


async def require_admin_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    if not settings.admin_api_key:
        return

    if x_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )


async def get_current_admin(
    _: None = Depends(require_admin_api_key),
    admin_header: str | None = Header(None, alias="X-Admin-Id"),
    db: AsyncSession = Depends(get_session),
) -> Admin:
    """Resolve the acting admin from the identity forwarded by the auth gateway."""

    if not admin_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin identity",
        )

    try:
        admin_id = UUID(admin_header)
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid admin identifier",
        ) from error

    stmt = select(Admin).options(selectinload(Admin.role)).where(Admin.id == admin_id)
    result = await db.execute(stmt)
    admin = result.scalar_one_or_none()
    if admin is None or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found",
        )

    return admin


def require_permission(permission: str) -> Callable[..., Awaitable[Admin]]:
    """Build a dependency that admits only admins whose role grants ``permission``."""

    async def dependency(admin: Admin = Depends(get_current_admin)) -> Admin:
        role = admin.role
        if role is None or not role.grants(permission):
            raise Forbidden(f"Permission {permission} required")
        return admin

    dependency.__name__ = f"require_{permission.lower()}"
    return dependency

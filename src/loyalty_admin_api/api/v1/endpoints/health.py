from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.rules import CoinConversionRule, ReferralProgramRule
from loyalty_admin_api.services.rules import RuleConfigurationStore


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "disabled", "error", "degraded"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(session: AsyncSession = Depends(get_session)) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Readiness database probe failed", error=str(exc))
        components["database"] = ComponentStatus(status="error", detail="Database unreachable")
        return ReadinessPayload(status="error", components=components)
    components["database"] = ComponentStatus(status="ready")

    store = RuleConfigurationStore(session)
    status: Literal["ready", "degraded", "error"] = "ready"
    for name, rule_type in (
        ("coin_conversion_rule", CoinConversionRule),
        ("referral_program_rule", ReferralProgramRule),
    ):
        if await store.get_active_rule(rule_type) is None:
            components[name] = ComponentStatus(status="degraded", detail="No active rule configured")
            status = "degraded"
        else:
            components[name] = ComponentStatus(status="ready")

    components["audit"] = (
        ComponentStatus(status="ready")
        if settings.audit_enabled
        else ComponentStatus(status="disabled", detail="Audit logging disabled via settings")
    )

    return ReadinessPayload(status=status, components=components)

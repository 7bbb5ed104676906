"""Observability endpoints for referral and rule telemetry."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from loyalty_admin_api.api.dependencies.security import VIEW_REFERRAL_PROGRAM, require_permission
from loyalty_admin_api.observability.referrals import get_referral_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/referrals",
    dependencies=[Depends(require_permission(VIEW_REFERRAL_PROGRAM))],
    summary="Referral observability snapshot",
)
async def get_referral_snapshot() -> dict[str, object]:
    """Counters for referral lifecycle events, rule changes and coin conversions."""
    store = get_referral_store()
    return store.snapshot().as_dict()

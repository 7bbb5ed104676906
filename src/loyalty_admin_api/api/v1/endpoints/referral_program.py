"""Admin endpoints for referral links and referral entries."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.api.dependencies.audit import audit_action
from loyalty_admin_api.api.dependencies.security import VIEW_REFERRAL_PROGRAM, require_permission
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.models.audit import AuditCategory
from loyalty_admin_api.models.referral import ReferralEntryStatus
from loyalty_admin_api.schemas.common import ApiResponse
from loyalty_admin_api.schemas.referral import (
    ReferralCompleteRequest,
    ReferralEntryCreate,
    ReferralEntryResponse,
    ReferralLinkRequest,
    ReferralLinkResponse,
)
from loyalty_admin_api.schemas.rules import ReferralProgramRuleResponse
from loyalty_admin_api.services.referrals import ReferralProgramService


router = APIRouter(prefix="/referral-program", tags=["referral-program"])

require_referral_admin = require_permission(VIEW_REFERRAL_PROGRAM)


@router.post(
    "",
    response_model=ApiResponse[ReferralLinkResponse],
    dependencies=[
        Depends(
            audit_action(
                "CREATE_REFERRAL_LINK",
                target_model="ReferralEntry",
                description="Created referral link",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def create_referral_link(
    payload: ReferralLinkRequest,
    request: Request,
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralLinkResponse]:
    service = ReferralProgramService(db)
    link = await service.create_referral_link(payload.user_id)

    request.state.audit_target_id = payload.user_id
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral link created successfully.",
        ReferralLinkResponse(
            referral_link=link.url,
            referrer_id=link.referrer_id,
            referrals_used=link.referrals_used,
            referrals_remaining=link.referrals_remaining,
        ),
    )


@router.get("", response_model=ApiResponse[Optional[ReferralProgramRuleResponse]])
async def get_active_program(
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[Optional[ReferralProgramRuleResponse]]:
    """Return the active referral program, or ``null`` data when none is configured."""

    service = ReferralProgramService(db)
    program = await service.get_active_program()
    if program is None:
        return ApiResponse.create(status.HTTP_200_OK, "No active referral program found.", None)
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Active referral program retrieved successfully.",
        ReferralProgramRuleResponse.from_rule(program),
    )


@router.post(
    "/entries",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ReferralEntryResponse],
    dependencies=[
        Depends(
            audit_action(
                "REGISTER_REFERRAL",
                target_model="ReferralEntry",
                description="Registered referral entry",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def register_referral(
    payload: ReferralEntryCreate,
    request: Request,
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralEntryResponse]:
    service = ReferralProgramService(db)
    entry = await service.register_referral(payload.referrer_id, payload.referee_id)
    await db.commit()
    await db.refresh(entry)

    request.state.audit_target_id = entry.id
    return ApiResponse.create(
        status.HTTP_201_CREATED,
        "Referral registered successfully.",
        ReferralEntryResponse.from_entry(entry),
    )


@router.get("/entries", response_model=ApiResponse[List[ReferralEntryResponse]])
async def list_referral_entries(
    referrer_id: Optional[UUID] = Query(None, alias="referrerId"),
    status_filter: Optional[ReferralEntryStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[List[ReferralEntryResponse]]:
    service = ReferralProgramService(db)
    entries = await service.list_entries(referrer_id=referrer_id, status=status_filter, limit=limit)
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral entries retrieved successfully.",
        [ReferralEntryResponse.from_entry(entry) for entry in entries],
    )


@router.post(
    "/complete",
    response_model=ApiResponse[ReferralEntryResponse],
    dependencies=[
        Depends(
            audit_action(
                "COMPLETE_REFERRAL",
                target_model="ReferralEntry",
                description="Completed referral",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def complete_referral(
    payload: ReferralCompleteRequest,
    request: Request,
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralEntryResponse]:
    """Complete a pending referral once the referee's purchase qualifies."""

    service = ReferralProgramService(db)
    entry = await service.complete_referral(payload.referral_id, payload.purchase_amount)
    await db.commit()
    await db.refresh(entry)

    request.state.audit_target_id = entry.id
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral completed successfully.",
        ReferralEntryResponse.from_entry(entry),
    )


@router.get(
    "/{referral_id}",
    response_model=ApiResponse[ReferralEntryResponse],
    dependencies=[
        Depends(
            audit_action(
                "TRACK_REFERRAL",
                target_model="ReferralEntry",
                description="Tracked referral status",
                details="params",
                category=AuditCategory.DATA_ACCESS,
            )
        )
    ],
)
async def track_referral(
    referral_id: UUID,
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralEntryResponse]:
    """Fetch a referral, expiring it first if its window has elapsed."""

    service = ReferralProgramService(db)
    entry = await service.track_referral(referral_id)
    await db.commit()
    await db.refresh(entry)

    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral status retrieved successfully.",
        ReferralEntryResponse.from_entry(entry),
    )

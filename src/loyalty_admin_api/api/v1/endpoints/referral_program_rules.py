"""Admin endpoints managing referral program rules."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.api.dependencies.audit import audit_action
from loyalty_admin_api.api.dependencies.security import VIEW_REFERRAL_PROGRAM, require_permission
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.models.audit import AuditCategory
from loyalty_admin_api.schemas.common import ApiResponse
from loyalty_admin_api.schemas.rules import (
    ReferralProgramRuleCreate,
    ReferralProgramRuleResponse,
    ReferralProgramRuleUpdate,
)
from loyalty_admin_api.services.referrals import ReferralProgramService


router = APIRouter(prefix="/referral-program-rules", tags=["referral-program-rules"])

require_referral_admin = require_permission(VIEW_REFERRAL_PROGRAM)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ReferralProgramRuleResponse],
    dependencies=[
        Depends(
            audit_action(
                "CREATE_REFERRAL_PROGRAM_RULE",
                target_model="ReferralProgramRule",
                description="Created referral program rule",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def create_rule(
    payload: ReferralProgramRuleCreate,
    request: Request,
    admin: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralProgramRuleResponse]:
    """Create a rule. An active rule replaces whichever rule was active before."""

    service = ReferralProgramService(db)
    rule = await service.create_program_rule(payload.model_dump(), admin.id)
    await db.commit()
    await db.refresh(rule)

    request.state.audit_target_id = rule.id
    return ApiResponse.create(
        status.HTTP_201_CREATED,
        "Referral program rule created successfully.",
        ReferralProgramRuleResponse.from_rule(rule),
    )


@router.get("", response_model=ApiResponse[List[ReferralProgramRuleResponse]])
async def list_rules(
    _: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[List[ReferralProgramRuleResponse]]:
    service = ReferralProgramService(db)
    rules = await service.list_program_rules()
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral program rules retrieved successfully.",
        [ReferralProgramRuleResponse.from_rule(rule) for rule in rules],
    )


@router.put(
    "/{rule_id}",
    response_model=ApiResponse[ReferralProgramRuleResponse],
    dependencies=[
        Depends(
            audit_action(
                "UPDATE_REFERRAL_PROGRAM_RULE",
                target_model="ReferralProgramRule",
                description="Updated referral program rule",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def update_rule(
    rule_id: UUID,
    payload: ReferralProgramRuleUpdate,
    admin: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralProgramRuleResponse]:
    service = ReferralProgramService(db)
    rule = await service.update_program_rule(rule_id, payload.model_dump(exclude_unset=True), admin.id)
    await db.commit()
    await db.refresh(rule)

    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral program rule updated successfully.",
        ReferralProgramRuleResponse.from_rule(rule),
    )


@router.delete(
    "/{rule_id}",
    response_model=ApiResponse[ReferralProgramRuleResponse],
    dependencies=[
        Depends(
            audit_action(
                "DEACTIVATE_REFERRAL_PROGRAM_RULE",
                target_model="ReferralProgramRule",
                description="Deactivated referral program rule",
                details="params",
                category=AuditCategory.REFERRAL,
            )
        )
    ],
)
async def deactivate_rule(
    rule_id: UUID,
    admin: Admin = Depends(require_referral_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[ReferralProgramRuleResponse]:
    """Rules are kept for history; deleting one only deactivates it."""

    service = ReferralProgramService(db)
    rule = await service.deactivate_program_rule(rule_id, admin.id)
    await db.commit()
    await db.refresh(rule)

    return ApiResponse.create(
        status.HTTP_200_OK,
        "Referral program rule deactivated successfully.",
        ReferralProgramRuleResponse.from_rule(rule),
    )

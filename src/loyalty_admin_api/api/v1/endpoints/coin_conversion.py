"""Admin endpoints for the coin conversion rule."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.api.dependencies.audit import audit_action
from loyalty_admin_api.api.dependencies.security import VIEW_COIN_MANAGEMENT, require_permission
from loyalty_admin_api.db.session import get_session
from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.models.audit import AuditCategory
from loyalty_admin_api.schemas.common import ApiResponse
from loyalty_admin_api.schemas.rules import (
    CoinConversionRecordResponse,
    CoinConversionRuleRequest,
    CoinConversionRuleResponse,
    CoinConvertRequest,
    CoinConvertResponse,
    CoinQuoteResponse,
)
from loyalty_admin_api.services.coins import CoinConversionService


router = APIRouter(prefix="/coin-conversion", tags=["coin-conversion"])

require_coin_admin = require_permission(VIEW_COIN_MANAGEMENT)


@router.post(
    "",
    response_model=ApiResponse[CoinConversionRuleResponse],
    dependencies=[
        Depends(
            audit_action(
                "CREATE_OR_UPDATE_COIN_CONVERSION_RULE",
                target_model="CoinConversionRule",
                description="Created or updated coin conversion rule",
                category=AuditCategory.CONVERSION_RULE,
            )
        )
    ],
)
async def create_or_update_rule(
    payload: CoinConversionRuleRequest,
    request: Request,
    response: Response,
    admin: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[CoinConversionRuleResponse]:
    """Store the active conversion rate, creating the rule on first use."""

    service = CoinConversionService(db)
    tier_bonuses = payload.tier_bonuses.model_dump() if payload.tier_bonuses is not None else None
    rule, created = await service.create_or_update(
        payload.points_per_coin,
        payload.minimum_points,
        admin.id,
        tier_bonuses=tier_bonuses,
    )
    await db.commit()
    await db.refresh(rule)

    request.state.audit_target_id = rule.id
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    message = (
        "Coin conversion rule created successfully."
        if created
        else "Coin conversion rule updated successfully."
    )
    return ApiResponse.create(response.status_code, message, CoinConversionRuleResponse.from_rule(rule))


@router.get("", response_model=ApiResponse[List[CoinConversionRuleResponse]])
async def list_rules(
    _: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[List[CoinConversionRuleResponse]]:
    service = CoinConversionService(db)
    rules = await service.list_all()
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Coin conversion rules retrieved successfully.",
        [CoinConversionRuleResponse.from_rule(rule) for rule in rules],
    )


@router.put(
    "/reset",
    response_model=ApiResponse[CoinConversionRuleResponse],
    dependencies=[
        Depends(
            audit_action(
                "RESET_COIN_CONVERSION_RULE",
                target_model="CoinConversionRule",
                description="Reset coin conversion rule",
                category=AuditCategory.CONVERSION_RULE,
            )
        )
    ],
)
async def reset_rule(
    request: Request,
    admin: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[CoinConversionRuleResponse]:
    """Zero the active rate so conversion is disabled until it is set again."""

    service = CoinConversionService(db)
    rule = await service.reset(admin.id)
    await db.commit()
    await db.refresh(rule)

    request.state.audit_target_id = rule.id
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Coin conversion rule reset successfully.",
        CoinConversionRuleResponse.from_rule(rule),
    )


@router.get("/quote", response_model=ApiResponse[CoinQuoteResponse])
async def quote_conversion(
    points: Decimal = Query(..., description="Points to price in coins"),
    _: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[CoinQuoteResponse]:
    service = CoinConversionService(db)
    quote = await service.quote(points)
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Coin conversion quote calculated.",
        CoinQuoteResponse(
            points=float(quote.points),
            coins=int(quote.coins),
            points_per_coin=float(quote.points_per_coin),
            minimum_points=float(quote.minimum_points),
        ),
    )


@router.post(
    "/convert",
    response_model=ApiResponse[CoinConvertResponse],
    dependencies=[
        Depends(
            audit_action(
                "CONVERT_POINTS_TO_COINS",
                target_model="Customer",
                description="Converted customer points to coins",
                category=AuditCategory.DATA_MODIFICATION,
            )
        )
    ],
)
async def convert_points(
    payload: CoinConvertRequest,
    request: Request,
    admin: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[CoinConvertResponse]:
    service = CoinConversionService(db)
    result = await service.convert(payload.customer_id, payload.points, admin.id, notes=payload.notes)
    await db.commit()

    request.state.audit_target_id = payload.customer_id
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Points converted to coins successfully.",
        CoinConvertResponse(
            transaction_id=result.conversion.id,
            customer_id=result.customer_id,
            points=float(result.quote.points),
            coins=int(result.quote.coins),
            remaining_points=float(result.remaining_points),
            coin_balance=float(result.coin_balance),
        ),
    )


@router.get("/history", response_model=ApiResponse[List[CoinConversionRecordResponse]])
async def list_conversions(
    customer_id: Optional[UUID] = Query(default=None, alias="customerId"),
    limit: int = Query(default=50, ge=1, le=200),
    _: Admin = Depends(require_coin_admin),
    db: AsyncSession = Depends(get_session),
) -> ApiResponse[List[CoinConversionRecordResponse]]:
    """Most recent conversions first, optionally for one customer."""

    service = CoinConversionService(db)
    conversions = await service.list_conversions(customer_id=customer_id, limit=limit)
    return ApiResponse.create(
        status.HTTP_200_OK,
        "Coin conversion history retrieved successfully.",
        [CoinConversionRecordResponse.from_conversion(conversion) for conversion in conversions],
    )

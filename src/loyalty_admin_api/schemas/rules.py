from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from loyalty_admin_api.models.admin import Admin
from loyalty_admin_api.models.conversion import CoinConversion
from loyalty_admin_api.models.rules import CoinConversionRule, ReferralProgramRule
from loyalty_admin_api.schemas.common import CamelModel


class AdminSummary(CamelModel):
    id: UUID
    name: Optional[str] = None
    email: str

    @classmethod
    def from_admin(cls, admin: Admin | None) -> Optional["AdminSummary"]:
        if admin is None:
            return None
        return cls(id=admin.id, name=admin.name, email=admin.email)


class TierBonuses(CamelModel):
    """Extra coins granted per customer tier."""

    silver: Decimal = Field(default=Decimal("0"), ge=0)
    gold: Decimal = Field(default=Decimal("0"), ge=0)
    platinum: Decimal = Field(default=Decimal("0"), ge=0)


class CoinConversionRuleRequest(CamelModel):
    """Payload for storing the coin conversion rate; numbers are checked by the service."""

    points_per_coin: Optional[Decimal] = Field(default=None, description="Points needed for one coin")
    minimum_points: Optional[Decimal] = Field(default=None, description="Smallest convertible points amount")
    tier_bonuses: Optional[TierBonuses] = Field(default=None, description="Leave unset to keep the stored bonuses")


class CoinConversionRuleResponse(CamelModel):
    id: UUID
    points_per_coin: float
    minimum_points: float
    tier_bonuses: dict[str, float] = Field(default_factory=dict)
    conversion_enabled: bool
    is_active: bool
    updated_by: Optional[AdminSummary] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rule(cls, rule: CoinConversionRule) -> "CoinConversionRuleResponse":
        return cls(
            id=rule.id,
            points_per_coin=float(rule.points_per_coin or 0),
            minimum_points=float(rule.minimum_points or 0),
            tier_bonuses=dict(rule.tier_bonuses or {}),
            conversion_enabled=rule.conversion_enabled,
            is_active=bool(rule.is_active),
            updated_by=AdminSummary.from_admin(rule.updated_by),
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )


class CoinQuoteResponse(CamelModel):
    points: float
    coins: int
    points_per_coin: float
    minimum_points: float


class CoinConvertRequest(CamelModel):
    customer_id: UUID
    points: Decimal = Field(..., description="Points to convert into coins")
    notes: Optional[str] = Field(default=None, max_length=500)


class CoinConvertResponse(CamelModel):
    transaction_id: UUID
    customer_id: UUID
    points: float
    coins: int
    remaining_points: float
    coin_balance: float


class CoinConversionRecordResponse(CamelModel):
    id: UUID
    customer_id: UUID
    rule_id: Optional[UUID] = None
    points: float
    coins: float
    bonus: float
    total_coins: float
    conversion_rate: str
    minimum_points: float
    status: str
    notes: Optional[str] = None
    processed_by: Optional[AdminSummary] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_conversion(cls, conversion: CoinConversion) -> "CoinConversionRecordResponse":
        return cls(
            id=conversion.id,
            customer_id=conversion.customer_id,
            rule_id=conversion.rule_id,
            points=float(conversion.points),
            coins=float(conversion.coins),
            bonus=float(conversion.bonus or 0),
            total_coins=float(conversion.total_coins),
            conversion_rate=conversion.conversion_rate,
            minimum_points=float(conversion.minimum_points),
            status=conversion.status,
            notes=conversion.notes,
            processed_by=AdminSummary.from_admin(conversion.processed_by),
            processed_at=conversion.processed_at,
            created_at=conversion.created_at,
        )


class ReferralProgramRuleCreate(CamelModel):
    points_for_referrer: Decimal = Field(..., ge=0)
    points_for_referee: Decimal = Field(..., ge=0)
    minimum_purchase_amount: Decimal = Field(..., ge=0)
    expiry_days: int = Field(..., gt=0, description="Days a pending referral stays open")
    max_referrals_per_user: int = Field(..., gt=0)
    is_active: bool = True


class ReferralProgramRuleUpdate(CamelModel):
    points_for_referrer: Optional[Decimal] = Field(default=None, ge=0)
    points_for_referee: Optional[Decimal] = Field(default=None, ge=0)
    minimum_purchase_amount: Optional[Decimal] = Field(default=None, ge=0)
    expiry_days: Optional[int] = Field(default=None, gt=0)
    max_referrals_per_user: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class ReferralProgramRuleResponse(CamelModel):
    id: UUID
    points_for_referrer: float
    points_for_referee: float
    minimum_purchase_amount: float
    expiry_days: int
    max_referrals_per_user: int
    is_active: bool
    updated_by: Optional[AdminSummary] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rule(cls, rule: ReferralProgramRule) -> "ReferralProgramRuleResponse":
        return cls(
            id=rule.id,
            points_for_referrer=float(rule.points_for_referrer or 0),
            points_for_referee=float(rule.points_for_referee or 0),
            minimum_purchase_amount=float(rule.minimum_purchase_amount or 0),
            expiry_days=int(rule.expiry_days),
            max_referrals_per_user=int(rule.max_referrals_per_user),
            is_active=bool(rule.is_active),
            updated_by=AdminSummary.from_admin(rule.updated_by),
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )

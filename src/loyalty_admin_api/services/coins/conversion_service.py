"""Coin conversion rule management and points-to-coin conversion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from loyalty_admin_api.core.errors import (
    ConversionDisabled,
    NotConfigured,
    NotFound,
    ValidationError,
)
from loyalty_admin_api.models.conversion import CoinConversion, CoinConversionStatus
from loyalty_admin_api.models.customer import Customer
from loyalty_admin_api.models.rules import TIER_NAMES, CoinConversionRule
from loyalty_admin_api.observability.referrals import get_referral_store
from loyalty_admin_api.services.rules.store import RuleConfigurationStore


@dataclass
class CoinConversionQuote:
    """Outcome of applying the active rule to a points amount."""

    points: Decimal
    coins: Decimal
    points_per_coin: Decimal
    minimum_points: Decimal
    rule_id: UUID | None = None


@dataclass
class CoinConversionResult:
    customer_id: UUID
    quote: CoinConversionQuote
    conversion: CoinConversion
    remaining_points: Decimal
    coin_balance: Decimal


class CoinConversionService:
    """Manages the single active coin conversion rule."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        rule_store: RuleConfigurationStore | None = None,
    ) -> None:
        self._db = db_session
        self._rules = rule_store or RuleConfigurationStore(db_session)

    async def get_active_rule(self) -> CoinConversionRule | None:
        return await self._rules.get_active_rule(CoinConversionRule)

    async def create_or_update(
        self,
        points_per_coin: Any,
        minimum_points: Any,
        acting_admin_id: UUID | None,
        *,
        tier_bonuses: Mapping[str, Any] | None = None,
    ) -> tuple[CoinConversionRule, bool]:
        """Store the conversion rate, updating the active rule when one exists.

        A zero rate is only reachable through :meth:`reset`. Tier bonuses are
        left untouched on update unless given.
        """

        rate = _require_number(points_per_coin, "pointsPerCoin")
        if rate <= 0:
            raise ValidationError('"pointsPerCoin" must be a positive number')
        minimum = _require_number(minimum_points, "minimumPoints")
        if minimum < 0:
            raise ValidationError('"minimumPoints" must not be negative')

        fields: dict[str, Any] = {"points_per_coin": rate, "minimum_points": minimum}
        if tier_bonuses is not None:
            fields["tier_bonuses"] = _normalize_tier_bonuses(tier_bonuses)

        rule, created = await self._rules.upsert_configuration(CoinConversionRule, fields, acting_admin_id)
        get_referral_store().record_rule_change("coin_conversion", "created" if created else "updated")
        return rule, created

    async def list_all(self) -> list[CoinConversionRule]:
        """Every rule row with the updating admin loaded for display."""

        stmt = (
            select(CoinConversionRule)
            .options(selectinload(CoinConversionRule.updated_by))
            .order_by(CoinConversionRule.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def reset(self, acting_admin_id: UUID | None) -> CoinConversionRule:
        """Zero the active rate. The row stays active; a zero rate disables conversion."""

        rule = await self.get_active_rule()
        if rule is None:
            raise NotFound("No active coin conversion rule found.")

        rule.points_per_coin = Decimal("0")
        rule.minimum_points = Decimal("0")
        rule.tier_bonuses = {}
        rule.updated_by_id = acting_admin_id
        await self._rules.save(rule)
        get_referral_store().record_rule_change("coin_conversion", "reset")
        logger.info(
            "Coin conversion rule reset",
            rule_id=str(rule.id),
            updated_by=str(acting_admin_id) if acting_admin_id else None,
        )
        return rule

    async def quote(self, points: Any) -> CoinConversionQuote:
        rule = await self.get_active_rule()
        if rule is None:
            raise NotConfigured("No active coin conversion rules found.")
        return calculate_coins(rule, _require_number(points, "points"))

    async def convert(
        self,
        customer_id: UUID,
        points: Any,
        acting_admin_id: UUID | None = None,
        *,
        notes: str | None = None,
    ) -> CoinConversionResult:
        """Debit ``points`` from the customer, credit the coins and record the conversion."""

        quote = await self.quote(points)
        customer = await self._db.get(Customer, customer_id)
        if customer is None:
            raise NotFound("Customer not found.")

        balance = Decimal(customer.total_points or 0)
        if balance < quote.points:
            get_referral_store().record_conversion("insufficient_balance")
            raise ValidationError("Insufficient points balance")

        customer.total_points = balance - quote.points
        customer.coins = Decimal(customer.coins or 0) + quote.coins
        conversion = CoinConversion(
            customer_id=customer_id,
            rule_id=quote.rule_id,
            points=quote.points,
            coins=quote.coins,
            bonus=Decimal("0"),
            points_per_coin=quote.points_per_coin,
            minimum_points=quote.minimum_points,
            conversion_rate=f"{quote.points_per_coin.normalize():f}:1",
            status=CoinConversionStatus.COMPLETED.value,
            notes=notes,
            processed_by_id=acting_admin_id,
            processed_at=datetime.now(timezone.utc),
        )
        self._db.add(conversion)
        await self._db.flush()

        get_referral_store().record_conversion("converted")
        logger.info(
            "Converted points to coins",
            customer_id=str(customer_id),
            conversion_id=str(conversion.id),
            points=str(quote.points),
            coins=str(quote.coins),
        )
        return CoinConversionResult(
            customer_id=customer_id,
            quote=quote,
            conversion=conversion,
            remaining_points=Decimal(customer.total_points),
            coin_balance=Decimal(customer.coins),
        )

    async def list_conversions(
        self,
        *,
        customer_id: UUID | None = None,
        limit: int = 50,
    ) -> list[CoinConversion]:
        stmt = select(CoinConversion).order_by(CoinConversion.created_at.desc()).limit(limit)
        if customer_id is not None:
            stmt = stmt.where(CoinConversion.customer_id == customer_id)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())


def calculate_coins(rule: CoinConversionRule, points: Decimal) -> CoinConversionQuote:
    """Apply a rule to a points amount, refusing zero rates before dividing."""

    if points <= 0:
        raise ValidationError("Invalid points value")

    rate = Decimal(rule.points_per_coin or 0)
    if rate <= 0:
        get_referral_store().record_conversion("disabled")
        raise ConversionDisabled()

    minimum = Decimal(rule.minimum_points or 0)
    if points < minimum:
        raise ValidationError(f"Minimum {minimum.normalize():f} points required for conversion")

    coins = (points / rate).to_integral_value(rounding=ROUND_FLOOR)
    if coins <= 0:
        raise ValidationError("Insufficient points for coin conversion")

    return CoinConversionQuote(
        points=points,
        coins=coins,
        points_per_coin=rate,
        minimum_points=minimum,
        rule_id=getattr(rule, "id", None),
    )


def _normalize_tier_bonuses(bonuses: Mapping[str, Any]) -> dict[str, float]:
    unknown = sorted(set(bonuses) - set(TIER_NAMES))
    if unknown:
        raise ValidationError(f"Unknown tier: {', '.join(unknown)}")
    normalized = {}
    for tier in TIER_NAMES:
        value = _require_number(bonuses.get(tier, 0), f"tierBonuses.{tier}")
        if value < 0:
            raise ValidationError(f'"tierBonuses.{tier}" must not be negative')
        normalized[tier] = float(value)
    return normalized


def _require_number(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f'"{field}" is required and must be a number')
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as error:
        raise ValidationError(f'"{field}" must be a number') from error
    if not number.is_finite():
        raise ValidationError(f'"{field}" must be a number')
    return number


__all__ = [
    "CoinConversionQuote",
    "CoinConversionResult",
    "CoinConversionService",
    "calculate_coins",
]

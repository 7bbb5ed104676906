"""Referral program orchestration: links, entries, completion and rule management."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping
from urllib.parse import urlencode
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.core.errors import (
    LimitReached,
    NotConfigured,
    NotFound,
    ValidationError,
)
from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.models.customer import Customer
from loyalty_admin_api.models.referral import ReferralEntry, ReferralEntryStatus
from loyalty_admin_api.models.rules import ReferralProgramRule
from loyalty_admin_api.observability.referrals import get_referral_store
from loyalty_admin_api.services.referrals.tracker import ReferralEntryTracker
from loyalty_admin_api.services.rules.store import RuleConfigurationStore


PROGRAM_RULE_FIELDS = frozenset(
    {
        "points_for_referrer",
        "points_for_referee",
        "minimum_purchase_amount",
        "expiry_days",
        "max_referrals_per_user",
        "is_active",
    }
)


@dataclass
class ReferralLink:
    """Shareable signup link issued to a referrer."""

    url: str
    referrer_id: UUID
    referrals_used: int
    referrals_remaining: int


class ReferralProgramService:
    """Coordinates referral links and entries against the active program rule."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        rule_store: RuleConfigurationStore | None = None,
        tracker: ReferralEntryTracker | None = None,
    ) -> None:
        self._db = db_session
        self._rules = rule_store or RuleConfigurationStore(db_session)
        self._tracker = tracker or ReferralEntryTracker(db_session, rule_store=self._rules)

    @property
    def tracker(self) -> ReferralEntryTracker:
        return self._tracker

    async def get_active_program(self) -> ReferralProgramRule | None:
        return await self._rules.get_active_rule(ReferralProgramRule)

    async def _require_active_program(self) -> ReferralProgramRule:
        program = await self.get_active_program()
        if program is None:
            raise NotConfigured("No active referral program found.")
        return program

    async def create_referral_link(self, user_id: UUID) -> ReferralLink:
        """Issue a signup link for the referrer if they are below the referral cap.

        No entry is created here; the entry is registered once the referee
        signs up through the link (see ``register_referral``).
        """

        program = await self._require_active_program()
        used = await self._tracker.count_referrals_by_referrer(user_id)
        if used >= program.max_referrals_per_user:
            get_referral_store().record_referral_event("limit_reached")
            raise LimitReached("Referral limit reached.")

        query = urlencode({"ref": str(user_id)})
        url = f"{settings.frontend_url}{settings.referral_signup_path}?{query}"
        get_referral_store().record_referral_event("link_issued")
        logger.info("Issued referral link", referrer_id=str(user_id), referrals_used=used)
        return ReferralLink(
            url=url,
            referrer_id=user_id,
            referrals_used=used,
            referrals_remaining=int(program.max_referrals_per_user) - used,
        )

    async def register_referral(self, referrer_id: UUID, referee_id: UUID) -> ReferralEntry:
        """Record that ``referee_id`` signed up through ``referrer_id``'s link."""

        if referrer_id == referee_id:
            raise ValidationError("Customers cannot refer themselves.")

        program = await self._require_active_program()
        referrer = await self._db.get(Customer, referrer_id)
        if referrer is None:
            raise NotFound("Referrer not found.")
        referee = await self._db.get(Customer, referee_id)
        if referee is None:
            raise NotFound("Referee not found.")

        used = await self._tracker.count_referrals_by_referrer(referrer_id)
        if used >= program.max_referrals_per_user:
            get_referral_store().record_referral_event("limit_reached")
            raise LimitReached("Referral limit reached.")

        return await self._tracker.create_entry(referrer_id, referee_id)

    async def track_referral(self, referral_id: UUID) -> ReferralEntry:
        entry = await self._tracker.get_entry(referral_id)
        if entry is None:
            raise NotFound("Referral not found.")
        return await self._tracker.check_expiry(entry)

    async def complete_referral(self, referral_id: UUID, purchase_amount: Decimal) -> ReferralEntry:
        """Complete a referral and credit both customers with the program's points."""

        entry = await self._tracker.get_entry(referral_id)
        if entry is None:
            raise NotFound("Referral not found.")

        program = await self._require_active_program()
        entry = await self._tracker.complete(entry, program, purchase_amount)
        await self._credit_points(entry)
        return entry

    async def list_entries(
        self,
        *,
        referrer_id: UUID | None = None,
        status: ReferralEntryStatus | None = None,
        limit: int = 50,
    ) -> list[ReferralEntry]:
        return await self._tracker.list_entries(referrer_id=referrer_id, status=status, limit=limit)

    async def _credit_points(self, entry: ReferralEntry) -> None:
        credits = (
            (entry.referrer_id, Decimal(entry.referrer_points or 0)),
            (entry.referee_id, Decimal(entry.referee_points or 0)),
        )
        for customer_id, points in credits:
            if points <= 0:
                continue
            customer = await self._db.get(Customer, customer_id)
            if customer is None:
                logger.error("Referral customer missing", referral_id=str(entry.id), customer_id=str(customer_id))
                continue
            customer.total_points = Decimal(customer.total_points or 0) + points
        await self._db.flush()
        logger.info("Credited referral points", referral_id=str(entry.id))

    # Rule management

    async def list_program_rules(self) -> list[ReferralProgramRule]:
        return await self._rules.list_rules(ReferralProgramRule)

    async def create_program_rule(
        self,
        fields: Mapping[str, Any],
        acting_admin_id: UUID | None,
    ) -> ReferralProgramRule:
        values = _program_fields(fields)
        values.setdefault("is_active", True)
        rule = ReferralProgramRule(**values, updated_by_id=acting_admin_id)
        await self._rules.save(rule)
        get_referral_store().record_rule_change("referral_program", "created")
        logger.info("Created referral program rule", rule_id=str(rule.id), is_active=rule.is_active)
        return rule

    async def update_program_rule(
        self,
        rule_id: UUID,
        fields: Mapping[str, Any],
        acting_admin_id: UUID | None,
    ) -> ReferralProgramRule:
        rule = await self._rules.get_rule(ReferralProgramRule, rule_id)
        if rule is None:
            raise NotFound("Referral program rule not found.")

        for key, value in _program_fields(fields).items():
            setattr(rule, key, value)
        rule.updated_by_id = acting_admin_id
        await self._rules.save(rule)
        get_referral_store().record_rule_change("referral_program", "updated")
        logger.info("Updated referral program rule", rule_id=str(rule.id), is_active=rule.is_active)
        return rule

    async def deactivate_program_rule(
        self,
        rule_id: UUID,
        acting_admin_id: UUID | None,
    ) -> ReferralProgramRule:
        """Rules are never deleted; removal deactivates the row."""

        rule = await self._rules.get_rule(ReferralProgramRule, rule_id)
        if rule is None:
            raise NotFound("Referral program rule not found.")

        rule.is_active = False
        rule.updated_by_id = acting_admin_id
        await self._rules.save(rule)
        get_referral_store().record_rule_change("referral_program", "deactivated")
        logger.info("Deactivated referral program rule", rule_id=str(rule.id))
        return rule


def _program_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if key in PROGRAM_RULE_FIELDS and value is not None}


__all__ = ["ReferralLink", "ReferralProgramService"]

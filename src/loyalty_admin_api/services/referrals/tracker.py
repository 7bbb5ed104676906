"""Per-referral records and their expiry / completion transitions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.core.errors import (
    DuplicateReferral,
    InvalidReferralTransition,
    NotConfigured,
    PersistenceFailure,
    ValidationError,
)
from loyalty_admin_api.models.referral import ReferralEntry, ReferralEntryStatus
from loyalty_admin_api.models.rules import ReferralProgramRule
from loyalty_admin_api.observability.referrals import get_referral_store
from loyalty_admin_api.services.rules.store import RuleConfigurationStore


class ReferralEntryTracker:
    """Owns referral entries and moves them out of ``pending`` exactly once."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        rule_store: RuleConfigurationStore | None = None,
    ) -> None:
        self._db = db_session
        self._rules = rule_store or RuleConfigurationStore(db_session)

    async def get_entry(self, entry_id: UUID) -> ReferralEntry | None:
        try:
            return await self._db.get(ReferralEntry, entry_id)
        except SQLAlchemyError as error:
            logger.exception("Failed to load referral entry", referral_id=str(entry_id))
            raise PersistenceFailure() from error

    async def list_entries(
        self,
        *,
        referrer_id: UUID | None = None,
        status: ReferralEntryStatus | None = None,
        limit: int = 50,
    ) -> list[ReferralEntry]:
        stmt = select(ReferralEntry).order_by(ReferralEntry.created_at.desc()).limit(limit)
        if referrer_id is not None:
            stmt = stmt.where(ReferralEntry.referrer_id == referrer_id)
        if status is not None:
            stmt = stmt.where(ReferralEntry.status == status)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def count_referrals_by_referrer(self, referrer_id: UUID) -> int:
        """Count every entry (any status) credited to the referrer."""

        stmt = select(func.count(ReferralEntry.id)).where(ReferralEntry.referrer_id == referrer_id)
        result = await self._db.execute(stmt)
        return int(result.scalar_one() or 0)

    async def create_entry(self, referrer_id: UUID, referee_id: UUID) -> ReferralEntry:
        entry = ReferralEntry(
            referrer_id=referrer_id,
            referee_id=referee_id,
            status=ReferralEntryStatus.PENDING,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(entry)
                await self._db.flush()
        except IntegrityError as error:
            logger.warning("Referee already referred", referee_id=str(referee_id))
            raise DuplicateReferral() from error
        except SQLAlchemyError as error:
            logger.exception("Failed to create referral entry", referrer_id=str(referrer_id))
            raise PersistenceFailure() from error

        get_referral_store().record_referral_event("registered")
        logger.info(
            "Registered referral entry",
            referral_id=str(entry.id),
            referrer_id=str(referrer_id),
            referee_id=str(referee_id),
        )
        return entry

    async def check_expiry(self, entry: ReferralEntry, *, now: Optional[datetime] = None) -> ReferralEntry:
        """Expire a pending entry whose referral window has elapsed.

        Entries already completed or expired are returned untouched; the
        active program is still required so that a misconfigured system is
        reported rather than silently ignored.
        """

        program = await self._rules.get_active_rule(ReferralProgramRule)
        if program is None:
            raise NotConfigured("No active referral program found.")

        if entry.status != ReferralEntryStatus.PENDING:
            return entry

        reference = _ensure_aware(now or datetime.now(timezone.utc))
        if reference <= self.expires_at(entry, program):
            return entry

        entry.status = ReferralEntryStatus.EXPIRED
        await self._persist(entry)
        get_referral_store().record_referral_event("expired")
        logger.info("Referral expired", referral_id=str(entry.id), expiry_days=program.expiry_days)
        return entry

    async def complete(
        self,
        entry: ReferralEntry,
        program: ReferralProgramRule,
        purchase_amount: Decimal,
        *,
        now: Optional[datetime] = None,
    ) -> ReferralEntry:
        """Complete a pending entry, copying point values from the program."""

        if entry.status != ReferralEntryStatus.PENDING:
            raise InvalidReferralTransition(entry.status.value, ReferralEntryStatus.COMPLETED.value)

        minimum = Decimal(program.minimum_purchase_amount or 0)
        if Decimal(purchase_amount) < minimum:
            raise ValidationError("Minimum purchase amount not met.")

        completed_at = _ensure_aware(now or datetime.now(timezone.utc))
        entry.status = ReferralEntryStatus.COMPLETED
        entry.completed_at = completed_at
        if entry.first_purchase_date is None:
            entry.first_purchase_date = completed_at
        entry.referrer_points = program.points_for_referrer
        entry.referee_points = program.points_for_referee
        await self._persist(entry)
        get_referral_store().record_referral_event("completed")
        logger.info(
            "Referral completed",
            referral_id=str(entry.id),
            referrer_points=str(entry.referrer_points),
            referee_points=str(entry.referee_points),
        )
        return entry

    async def expire_pending_entries(
        self,
        program: ReferralProgramRule,
        *,
        reference_time: Optional[datetime] = None,
    ) -> list[ReferralEntry]:
        """Expire every pending entry created before the program's window."""

        reference = _ensure_aware(reference_time or datetime.now(timezone.utc))
        cutoff = reference - timedelta(days=int(program.expiry_days))
        stmt = (
            select(ReferralEntry)
            .where(ReferralEntry.status == ReferralEntryStatus.PENDING)
            .where(ReferralEntry.created_at < cutoff)
        )
        result = await self._db.execute(stmt)
        expired: list[ReferralEntry] = []
        for entry in result.scalars().all():
            entry.status = ReferralEntryStatus.EXPIRED
            expired.append(entry)

        if expired:
            await self._persist()
            get_referral_store().record_referral_event("expired", count=len(expired))
            logger.info("Expired stale referrals", count=len(expired), cutoff=cutoff.isoformat())
        return expired

    @staticmethod
    def expires_at(entry: ReferralEntry, program: ReferralProgramRule) -> datetime:
        return _ensure_aware(entry.created_at) + timedelta(days=int(program.expiry_days))

    async def _persist(self, entry: ReferralEntry | None = None) -> None:
        if entry is not None:
            self._db.add(entry)
        try:
            await self._db.flush()
        except SQLAlchemyError as error:
            logger.exception(
                "Failed to persist referral entry",
                referral_id=str(entry.id) if entry is not None else None,
            )
            raise PersistenceFailure() from error


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["ReferralEntryTracker"]

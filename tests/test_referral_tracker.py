from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import create_customers
from loyalty_admin_api.core.errors import (
    DuplicateReferral,
    InvalidReferralTransition,
    NotConfigured,
    ValidationError,
)
from loyalty_admin_api.models import Customer
from loyalty_admin_api.models.referral import ReferralEntry, ReferralEntryStatus
from loyalty_admin_api.models.rules import ReferralProgramRule
from loyalty_admin_api.observability.referrals import get_referral_store
from loyalty_admin_api.services.referrals import ReferralEntryTracker
from loyalty_admin_api.services.rules import RuleConfigurationStore


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _seed_program(session, **overrides) -> ReferralProgramRule:
    values = {
        "points_for_referrer": Decimal("50"),
        "points_for_referee": Decimal("25"),
        "minimum_purchase_amount": Decimal("100"),
        "expiry_days": 30,
        "max_referrals_per_user": 5,
        "is_active": True,
    }
    values.update(overrides)
    program = ReferralProgramRule(**values)
    await RuleConfigurationStore(session).save(program)
    return program


async def _seed_entry(session, referrer, referee, *, created_at, status=ReferralEntryStatus.PENDING) -> ReferralEntry:
    entry = ReferralEntry(referrer_id=referrer.id, referee_id=referee.id, status=status, created_at=created_at)
    session.add(entry)
    await session.flush()
    return entry


@pytest.mark.asyncio
async def test_check_expiry_leaves_entry_pending_inside_window(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        await _seed_program(session)
        entry = await _seed_entry(session, referrer, referee, created_at=NOW - timedelta(days=29))

        result = await ReferralEntryTracker(session).check_expiry(entry, now=NOW)

    assert result.status == ReferralEntryStatus.PENDING


@pytest.mark.asyncio
async def test_check_expiry_expires_entry_past_window_once(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        await _seed_program(session)
        entry = await _seed_entry(session, referrer, referee, created_at=NOW - timedelta(days=31))
        await session.commit()

        tracker = ReferralEntryTracker(session)
        await tracker.check_expiry(entry, now=NOW)
        await tracker.check_expiry(entry, now=NOW + timedelta(days=1))
        await session.commit()

    async with session_factory() as session:
        stored = await session.get(ReferralEntry, entry.id)
        assert stored.status == ReferralEntryStatus.EXPIRED

    assert get_referral_store().snapshot().referrals.get("expired") == 1


@pytest.mark.asyncio
async def test_check_expiry_does_not_touch_completed_entry(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        await _seed_program(session)
        entry = await _seed_entry(
            session,
            referrer,
            referee,
            created_at=NOW - timedelta(days=90),
            status=ReferralEntryStatus.COMPLETED,
        )

        result = await ReferralEntryTracker(session).check_expiry(entry, now=NOW)

    assert result.status == ReferralEntryStatus.COMPLETED


@pytest.mark.asyncio
async def test_check_expiry_requires_active_program(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        entry = await _seed_entry(session, referrer, referee, created_at=NOW)

        with pytest.raises(NotConfigured):
            await ReferralEntryTracker(session).check_expiry(entry, now=NOW)


@pytest.mark.asyncio
async def test_complete_rejects_terminal_entries(session_factory) -> None:
    customers = await create_customers(session_factory, 3)
    async with session_factory() as session:
        program = await _seed_program(session)
        expired = await _seed_entry(
            session, customers[0], customers[1], created_at=NOW, status=ReferralEntryStatus.EXPIRED
        )
        completed = await _seed_entry(
            session, customers[0], customers[2], created_at=NOW, status=ReferralEntryStatus.COMPLETED
        )
        tracker = ReferralEntryTracker(session)

        with pytest.raises(InvalidReferralTransition) as expired_error:
            await tracker.complete(expired, program, Decimal("500"), now=NOW)
        with pytest.raises(InvalidReferralTransition):
            await tracker.complete(completed, program, Decimal("500"), now=NOW)

    assert expired_error.value.status_code == 409
    assert expired.status == ReferralEntryStatus.EXPIRED
    assert expired.completed_at is None


@pytest.mark.asyncio
async def test_complete_below_minimum_leaves_entry_unchanged(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        program = await _seed_program(session)
        entry = await _seed_entry(session, referrer, referee, created_at=NOW)

        with pytest.raises(ValidationError):
            await ReferralEntryTracker(session).complete(entry, program, Decimal("99.99"), now=NOW)

    assert entry.status == ReferralEntryStatus.PENDING
    assert entry.completed_at is None
    assert entry.first_purchase_date is None
    assert entry.referrer_points == 0


@pytest.mark.asyncio
async def test_complete_copies_program_points(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)
    async with session_factory() as session:
        program = await _seed_program(session)
        entry = await _seed_entry(session, referrer, referee, created_at=NOW)

        result = await ReferralEntryTracker(session).complete(entry, program, Decimal("100"), now=NOW)

    assert result.status == ReferralEntryStatus.COMPLETED
    assert result.referrer_points == Decimal("50")
    assert result.referee_points == Decimal("25")
    assert result.completed_at == NOW
    assert result.first_purchase_date == NOW


@pytest.mark.asyncio
async def test_create_entry_rejects_second_referral_of_same_referee(session_factory) -> None:
    first_referrer, second_referrer, referee = await create_customers(session_factory, 3)
    async with session_factory() as session:
        tracker = ReferralEntryTracker(session)
        await tracker.create_entry(first_referrer.id, referee.id)
        await session.commit()

        with pytest.raises(DuplicateReferral):
            await tracker.create_entry(second_referrer.id, referee.id)

    async with session_factory() as session:
        tracker = ReferralEntryTracker(session)
        assert await tracker.count_referrals_by_referrer(first_referrer.id) == 1
        assert await tracker.count_referrals_by_referrer(second_referrer.id) == 0


@pytest.mark.asyncio
async def test_duplicate_referral_keeps_earlier_work_in_session(session_factory) -> None:
    first_referrer, second_referrer, referee, other_referee = await create_customers(session_factory, 4)
    async with session_factory() as session:
        tracker = ReferralEntryTracker(session)
        await tracker.create_entry(first_referrer.id, referee.id)
        bonus_holder = await session.get(Customer, second_referrer.id)
        bonus_holder.total_points = Decimal("40")

        with pytest.raises(DuplicateReferral):
            await tracker.create_entry(second_referrer.id, referee.id)

        await tracker.create_entry(second_referrer.id, other_referee.id)
        await session.commit()

    async with session_factory() as session:
        tracker = ReferralEntryTracker(session)
        assert await tracker.count_referrals_by_referrer(first_referrer.id) == 1
        assert await tracker.count_referrals_by_referrer(second_referrer.id) == 1
        assert (await session.get(Customer, second_referrer.id)).total_points == Decimal("40")


@pytest.mark.asyncio
async def test_expire_pending_entries_sweeps_only_stale_pending(session_factory) -> None:
    customers = await create_customers(session_factory, 4)
    referrer = customers[0]
    async with session_factory() as session:
        program = await _seed_program(session, expiry_days=7)
        stale = await _seed_entry(session, referrer, customers[1], created_at=NOW - timedelta(days=10))
        fresh = await _seed_entry(session, referrer, customers[2], created_at=NOW - timedelta(days=2))
        done = await _seed_entry(
            session,
            referrer,
            customers[3],
            created_at=NOW - timedelta(days=30),
            status=ReferralEntryStatus.COMPLETED,
        )
        await session.commit()

        expired = await ReferralEntryTracker(session).expire_pending_entries(program, reference_time=NOW)
        await session.commit()

    assert [entry.id for entry in expired] == [stale.id]

    async with session_factory() as session:
        tracker = ReferralEntryTracker(session)
        assert (await tracker.get_entry(stale.id)).status == ReferralEntryStatus.EXPIRED
        assert (await tracker.get_entry(fresh.id)).status == ReferralEntryStatus.PENDING
        assert (await tracker.get_entry(done.id)).status == ReferralEntryStatus.COMPLETED
        pending = await tracker.list_entries(status=ReferralEntryStatus.PENDING)
        assert [entry.id for entry in pending] == [fresh.id]

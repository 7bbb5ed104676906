from datetime import datetime, timedelta, timezone
from decimal import Decimal
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest

from conftest import create_admin, create_customers
from loyalty_admin_api.core.errors import (
    DuplicateReferral,
    InvalidReferralTransition,
    LimitReached,
    NotConfigured,
    NotFound,
    ValidationError,
)
from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.models import Customer, ReferralEntry, ReferralEntryStatus
from loyalty_admin_api.services.referrals import ReferralProgramService


PROGRAM_A = {
    "points_for_referrer": Decimal("50"),
    "points_for_referee": Decimal("25"),
    "minimum_purchase_amount": Decimal("100"),
    "expiry_days": 30,
    "max_referrals_per_user": 5,
    "is_active": True,
}


@pytest.mark.asyncio
async def test_complete_referral_end_to_end(session_factory) -> None:
    admin = await create_admin(session_factory, permissions=["VIEW_REFERRAL_PROGRAM"])
    referrer, referee = await create_customers(session_factory, 2)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        program = await service.create_program_rule(PROGRAM_A, admin.id)
        assert program.is_active is True

        entry = await service.register_referral(referrer.id, referee.id)
        assert entry.status == ReferralEntryStatus.PENDING
        await session.commit()

        completed = await service.complete_referral(entry.id, Decimal("150"))
        await session.commit()

    assert completed.status == ReferralEntryStatus.COMPLETED
    assert completed.referrer_points == Decimal("50")
    assert completed.referee_points == Decimal("25")
    assert completed.completed_at is not None

    async with session_factory() as session:
        assert (await session.get(Customer, referrer.id)).total_points == Decimal("50")
        assert (await session.get(Customer, referee.id)).total_points == Decimal("25")


@pytest.mark.asyncio
async def test_complete_referral_below_minimum_is_rejected(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)
        entry = await service.register_referral(referrer.id, referee.id)
        await session.commit()

        with pytest.raises(ValidationError):
            await service.complete_referral(entry.id, Decimal("99"))

    async with session_factory() as session:
        stored = await session.get(ReferralEntry, entry.id)
        assert stored.status == ReferralEntryStatus.PENDING
        assert stored.completed_at is None
        assert (await session.get(Customer, referrer.id)).total_points == 0


@pytest.mark.asyncio
async def test_complete_referral_without_active_program_raises_not_configured(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        program = await service.create_program_rule(PROGRAM_A, None)
        entry = await service.register_referral(referrer.id, referee.id)
        await service.deactivate_program_rule(program.id, None)
        await session.commit()

        with pytest.raises(NotConfigured):
            await service.complete_referral(entry.id, Decimal("150"))


@pytest.mark.asyncio
async def test_complete_referral_twice_is_an_invalid_transition(session_factory) -> None:
    referrer, referee = await create_customers(session_factory, 2)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)
        entry = await service.register_referral(referrer.id, referee.id)
        await service.complete_referral(entry.id, Decimal("150"))
        await session.commit()

        with pytest.raises(InvalidReferralTransition):
            await service.complete_referral(entry.id, Decimal("150"))

    async with session_factory() as session:
        # Points are only credited by the first completion.
        assert (await session.get(Customer, referrer.id)).total_points == Decimal("50")


@pytest.mark.asyncio
async def test_complete_referral_unknown_entry(session_factory) -> None:
    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)

        with pytest.raises(NotFound):
            await service.complete_referral(uuid4(), Decimal("150"))


@pytest.mark.asyncio
async def test_create_referral_link_at_limit_creates_nothing(session_factory) -> None:
    customers = await create_customers(session_factory, 6)
    referrer, referees = customers[0], customers[1:]

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)
        for referee in referees:
            await service.register_referral(referrer.id, referee.id)
        await session.commit()

        with pytest.raises(LimitReached):
            await service.create_referral_link(referrer.id)

        assert await service.tracker.count_referrals_by_referrer(referrer.id) == 5


@pytest.mark.asyncio
async def test_create_referral_link_builds_signup_url(session_factory) -> None:
    (referrer,) = await create_customers(session_factory, 1)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)

        link = await service.create_referral_link(referrer.id)
        assert await service.tracker.count_referrals_by_referrer(referrer.id) == 0

    parsed = urlparse(link.url)
    assert link.url.startswith(f"{settings.frontend_url}{settings.referral_signup_path}?")
    assert parse_qs(parsed.query) == {"ref": [str(referrer.id)]}
    assert link.referrals_used == 0
    assert link.referrals_remaining == 5


@pytest.mark.asyncio
async def test_create_referral_link_requires_program(session_factory) -> None:
    (referrer,) = await create_customers(session_factory, 1)

    async with session_factory() as session:
        with pytest.raises(NotConfigured):
            await ReferralProgramService(session).create_referral_link(referrer.id)


@pytest.mark.asyncio
async def test_register_referral_rejects_self_and_duplicates(session_factory) -> None:
    first, second, referee = await create_customers(session_factory, 3)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)
        await session.commit()

        with pytest.raises(ValidationError):
            await service.register_referral(first.id, first.id)

        await service.register_referral(first.id, referee.id)
        await session.commit()

        with pytest.raises(DuplicateReferral):
            await service.register_referral(second.id, referee.id)


@pytest.mark.asyncio
async def test_expired_referee_cannot_be_referred_again(session_factory) -> None:
    first, second, referee = await create_customers(session_factory, 3)

    async with session_factory() as session:
        service = ReferralProgramService(session)
        await service.create_program_rule(PROGRAM_A, None)
        entry = await service.register_referral(first.id, referee.id)
        entry.created_at = datetime.now(timezone.utc) - timedelta(days=45)
        await session.commit()

        tracked = await service.track_referral(entry.id)
        assert tracked.status == ReferralEntryStatus.EXPIRED
        await session.commit()

        with pytest.raises(DuplicateReferral):
            await service.register_referral(second.id, referee.id)


@pytest.mark.asyncio
async def test_creating_active_program_rule_replaces_previous(session_factory) -> None:
    async with session_factory() as session:
        service = ReferralProgramService(session)
        first = await service.create_program_rule(PROGRAM_A, None)
        second = await service.create_program_rule({**PROGRAM_A, "points_for_referrer": Decimal("75")}, None)
        await session.commit()

    async with session_factory() as session:
        service = ReferralProgramService(session)
        rules = {rule.id: rule for rule in await service.list_program_rules()}
        assert rules[first.id].is_active is False
        assert rules[second.id].is_active is True
        active = await service.get_active_program()
        assert active.points_for_referrer == Decimal("75")


@pytest.mark.asyncio
async def test_update_program_rule_applies_partial_fields(session_factory) -> None:
    async with session_factory() as session:
        service = ReferralProgramService(session)
        rule = await service.create_program_rule(PROGRAM_A, None)
        updated = await service.update_program_rule(rule.id, {"expiry_days": 14, "points_for_referee": None}, None)
        await session.commit()

    assert updated.expiry_days == 14
    assert updated.points_for_referee == Decimal("25")

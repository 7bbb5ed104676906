from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import create_customers
from loyalty_admin_api.models import Customer
from loyalty_admin_api.models.rules import CoinConversionRule, ReferralProgramRule
from loyalty_admin_api.services.rules import RuleConfigurationStore


def _program_rule(**overrides) -> ReferralProgramRule:
    values = {
        "points_for_referrer": Decimal("50"),
        "points_for_referee": Decimal("25"),
        "minimum_purchase_amount": Decimal("100"),
        "expiry_days": 30,
        "max_referrals_per_user": 5,
        "is_active": True,
    }
    values.update(overrides)
    return ReferralProgramRule(**values)


async def _active_count(session, rule_type) -> int:
    result = await session.execute(select(func.count(rule_type.id)).where(rule_type.is_active.is_(True)))
    return int(result.scalar_one())


class _RacingStore(RuleConfigurationStore):
    """Reports no active rule on the first lookup, as a writer that lost the race would see."""

    def __init__(self, db_session) -> None:
        super().__init__(db_session)
        self._lookups = 0

    async def get_active_rule(self, rule_type):
        self._lookups += 1
        if self._lookups == 1:
            return None
        return await super().get_active_rule(rule_type)


@pytest.mark.asyncio
async def test_upsert_configuration_keeps_single_active_row(session_factory) -> None:
    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        first, created = await store.upsert_configuration(
            CoinConversionRule,
            {"points_per_coin": Decimal("10"), "minimum_points": Decimal("100")},
            None,
        )
        assert created is True

        for rate in ("20", "30", "40"):
            rule, created = await store.upsert_configuration(
                CoinConversionRule,
                {"points_per_coin": Decimal(rate), "minimum_points": Decimal("50")},
                None,
            )
            assert created is False
            assert rule.id == first.id
        await session.commit()

    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        assert await _active_count(session, CoinConversionRule) == 1
        rules = await store.list_rules(CoinConversionRule)
        assert len(rules) == 1
        active = await store.get_active_rule(CoinConversionRule)
        assert active is not None
        assert active.points_per_coin == Decimal("40")


@pytest.mark.asyncio
async def test_upsert_recovers_from_lost_insert_race(session_factory) -> None:
    async with session_factory() as session:
        winner, _ = await RuleConfigurationStore(session).upsert_configuration(
            CoinConversionRule,
            {"points_per_coin": Decimal("10"), "minimum_points": Decimal("0")},
            None,
        )
        await session.commit()

    async with session_factory() as session:
        rule, created = await _RacingStore(session).upsert_configuration(
            CoinConversionRule,
            {"points_per_coin": Decimal("15"), "minimum_points": Decimal("5")},
            None,
        )
        await session.commit()

    assert created is False
    assert rule.id == winner.id

    async with session_factory() as session:
        assert await _active_count(session, CoinConversionRule) == 1
        refreshed = await session.get(CoinConversionRule, winner.id)
        assert refreshed.points_per_coin == Decimal("15")
        assert refreshed.minimum_points == Decimal("5")


@pytest.mark.asyncio
async def test_lost_insert_race_keeps_other_session_changes(session_factory) -> None:
    (customer,) = await create_customers(session_factory, 1)
    async with session_factory() as session:
        await RuleConfigurationStore(session).upsert_configuration(
            CoinConversionRule,
            {"points_per_coin": Decimal("10"), "minimum_points": Decimal("0")},
            None,
        )
        await session.commit()

    async with session_factory() as session:
        stored = await session.get(Customer, customer.id)
        stored.total_points = Decimal("75")
        await _RacingStore(session).upsert_configuration(
            CoinConversionRule,
            {"points_per_coin": Decimal("15"), "minimum_points": Decimal("5")},
            None,
        )
        await session.commit()

    async with session_factory() as session:
        assert (await session.get(Customer, customer.id)).total_points == Decimal("75")
        assert await _active_count(session, CoinConversionRule) == 1

@pytest.mark.asyncio
async def test_saving_active_program_rule_deactivates_all_others(session_factory) -> None:
    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        first = await store.save(_program_rule())
        second = await store.save(_program_rule(points_for_referrer=Decimal("80")))
        await session.commit()

    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        rows = {rule.id: rule for rule in await store.list_rules(ReferralProgramRule)}
        assert rows[first.id].is_active is False
        assert rows[second.id].is_active is True

        # Reactivating the older rule flips the newer one off again.
        reactivated = rows[first.id]
        reactivated.is_active = True
        await store.save(reactivated)
        await session.commit()

    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        assert await _active_count(session, ReferralProgramRule) == 1
        active = await store.get_active_rule(ReferralProgramRule)
        assert active.id == first.id


@pytest.mark.asyncio
async def test_saving_inactive_program_rule_leaves_active_rule(session_factory) -> None:
    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        active = await store.save(_program_rule())
        await store.save(_program_rule(is_active=False))
        await session.commit()

    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        current = await store.get_active_rule(ReferralProgramRule)
        assert current is not None
        assert current.id == active.id
        assert len(await store.list_rules(ReferralProgramRule)) == 2


@pytest.mark.asyncio
async def test_deactivate_others_reports_rows_changed(session_factory) -> None:
    async with session_factory() as session:
        store = RuleConfigurationStore(session)
        kept = await store.save(_program_rule())
        await session.commit()

        assert await store.deactivate_others(ReferralProgramRule, kept.id) == 0
        assert await store.get_active_rule(ReferralProgramRule) is not None

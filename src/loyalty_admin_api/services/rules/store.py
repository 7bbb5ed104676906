"""Persistence for singleton-style rule configuration."""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar, Union
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_admin_api.core.errors import ActiveRuleConflict, PersistenceFailure
from loyalty_admin_api.models.rules import CoinConversionRule, ReferralProgramRule


RuleT = TypeVar("RuleT", CoinConversionRule, ReferralProgramRule)
RuleModel = Union[CoinConversionRule, ReferralProgramRule]


class RuleConfigurationStore:
    """Keeps a single active row per rule type and resolves it for callers."""

    # Rule types whose writes first deactivate every other active row.
    _DEACTIVATE_ON_SAVE: tuple[type, ...] = (ReferralProgramRule,)

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_active_rule(self, rule_type: Type[RuleT]) -> RuleT | None:
        """Return the active rule of the given type, if any."""

        stmt = (
            select(rule_type)
            .where(rule_type.is_active.is_(True))
            .order_by(rule_type.updated_at.desc(), rule_type.created_at.desc())
            .limit(1)
        )
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as error:
            logger.exception("Failed to load active rule", rule_type=rule_type.__name__)
            raise PersistenceFailure() from error
        return result.scalar_one_or_none()

    async def get_rule(self, rule_type: Type[RuleT], rule_id: UUID) -> RuleT | None:
        try:
            return await self._db.get(rule_type, rule_id)
        except SQLAlchemyError as error:
            logger.exception("Failed to load rule", rule_type=rule_type.__name__, rule_id=str(rule_id))
            raise PersistenceFailure() from error

    async def list_rules(self, rule_type: Type[RuleT]) -> list[RuleT]:
        """Return every row of the type, active and inactive, newest first."""

        stmt = select(rule_type).order_by(rule_type.created_at.desc())
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as error:
            logger.exception("Failed to list rules", rule_type=rule_type.__name__)
            raise PersistenceFailure() from error
        return list(result.scalars().all())

    async def deactivate_others(self, rule_type: Type[RuleT], keep_id: UUID) -> int:
        """Flag every active row except ``keep_id`` as inactive."""

        stmt = (
            update(rule_type)
            .where(rule_type.is_active.is_(True))
            .where(rule_type.id != keep_id)
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        # The row being saved must not reach the database before the others are cleared.
        with self._db.no_autoflush:
            try:
                result = await self._db.execute(stmt)
            except SQLAlchemyError as error:
                logger.exception("Failed to deactivate rules", rule_type=rule_type.__name__)
                raise PersistenceFailure() from error

        deactivated = int(result.rowcount or 0)
        if deactivated:
            logger.info(
                "Deactivated superseded rules",
                rule_type=rule_type.__name__,
                kept_rule_id=str(keep_id),
                deactivated=deactivated,
            )
        return deactivated

    async def save(self, rule: RuleModel) -> RuleModel:
        """Persist a rule row, clearing other active rows first where required."""

        if rule.id is None:
            rule.id = uuid4()
        if rule.is_active is None:
            rule.is_active = True

        if rule.is_active and isinstance(rule, self._DEACTIVATE_ON_SAVE):
            await self.deactivate_others(type(rule), rule.id)

        try:
            async with self._db.begin_nested():
                self._db.add(rule)
                await self._db.flush()
        except IntegrityError as error:
            if not self._db.is_active:
                # The conflict surfaced while flushing earlier changes, outside the savepoint.
                await self._db.rollback()
            logger.warning(
                "Active rule write conflicted with a concurrent writer",
                rule_type=type(rule).__name__,
                rule_id=str(rule.id),
            )
            raise ActiveRuleConflict() from error
        except SQLAlchemyError as error:
            logger.exception("Failed to persist rule", rule_type=type(rule).__name__)
            raise PersistenceFailure() from error
        return rule

    async def upsert_configuration(
        self,
        rule_type: Type[RuleT],
        fields: Mapping[str, Any],
        acting_admin_id: UUID | None,
    ) -> tuple[RuleT, bool]:
        """Update the active rule in place, or create it. Returns ``(rule, created)``."""

        existing = await self.get_active_rule(rule_type)
        if existing is not None:
            await self._apply_update(existing, fields, acting_admin_id)
            return existing, False

        rule = rule_type(**dict(fields), updated_by_id=acting_admin_id, is_active=True)
        try:
            await self.save(rule)
        except ActiveRuleConflict:
            # Lost the insert race; the winner is now the active row.
            winner = await self.get_active_rule(rule_type)
            if winner is None:
                raise
            await self._apply_update(winner, fields, acting_admin_id)
            return winner, False

        logger.info(
            "Created rule configuration",
            rule_type=rule_type.__name__,
            rule_id=str(rule.id),
            updated_by=str(acting_admin_id) if acting_admin_id else None,
        )
        return rule, True

    async def _apply_update(
        self,
        rule: RuleModel,
        fields: Mapping[str, Any],
        acting_admin_id: UUID | None,
    ) -> None:
        for key, value in fields.items():
            setattr(rule, key, value)
        rule.updated_by_id = acting_admin_id
        await self.save(rule)
        logger.info(
            "Updated rule configuration",
            rule_type=type(rule).__name__,
            rule_id=str(rule.id),
            updated_by=str(acting_admin_id) if acting_admin_id else None,
        )


__all__ = ["RuleConfigurationStore"]

"""Availability store: recurring weekly open hours per doctor."""

from datetime import UTC, datetime, time
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.core.redis_client import CacheManager
from app.core.weekdays import validate_iso_day
from app.models.availability_rules import availability_rules
from app.schemas.availability import AvailabilityRuleResponse

logger = structlog.get_logger(__name__)


def _validate_window(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ValidationException("start_time must be before end_time")


class AvailabilityService:
    """
    Service for managing availability rules.

    Rules for the same doctor and day may overlap; their union is the open
    time. Turning rules into bookable slots is the slot resolver's job.
    """

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache."""
        self.db = db
        self.cache = cache_manager
        self.cache_ttl = settings.availability_cache_ttl_seconds

    @staticmethod
    def _cache_key(doctor_id: UUID) -> str:
        """Generate cache key for a doctor's rules."""
        return f"availability:{doctor_id}"

    def _invalidate(self, doctor_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._cache_key(doctor_id))

    async def set_rule(
        self,
        doctor_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        is_available: bool = True,
    ) -> AvailabilityRuleResponse:
        """
        Create a recurring weekly rule.

        Args:
            doctor_id: Owning doctor
            day_of_week: ISO day (Monday=1 .. Sunday=7)
            start_time: Window start, inclusive
            end_time: Window end, exclusive
            is_available: Whether the rule currently opens time

        Returns:
            Created rule

        Raises:
            ValidationException: If the day or window is invalid
        """
        validate_iso_day(day_of_week)
        _validate_window(start_time, end_time)

        stmt = (
            insert(availability_rules)
            .values(
                doctor_id=doctor_id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_available=is_available,
            )
            .returning(availability_rules)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()
        self._invalidate(doctor_id)

        logger.info(
            "availability_rule_created",
            doctor_id=str(doctor_id),
            rule_id=str(row.id),
            day_of_week=day_of_week,
        )
        return AvailabilityRuleResponse.model_validate(dict(row._mapping))

    async def get_rule(self, rule_id: UUID) -> AvailabilityRuleResponse:
        """Get a rule by ID."""
        result = await self.db.execute(
            select(availability_rules).where(availability_rules.c.id == rule_id)
        )
        row = result.fetchone()
        if not row:
            raise NotFoundException("Availability rule not found")
        return AvailabilityRuleResponse.model_validate(dict(row._mapping))

    async def _get_owned_rule(self, rule_id: UUID, doctor_id: UUID) -> AvailabilityRuleResponse:
        rule = await self.get_rule(rule_id)
        if rule.doctor_id != doctor_id:
            raise ForbiddenException("Availability rule belongs to another doctor")
        return rule

    async def update_rule(
        self,
        rule_id: UUID,
        doctor_id: UUID,
        changes: dict[str, Any],
    ) -> AvailabilityRuleResponse:
        """
        Edit a rule in place.

        Args:
            rule_id: Rule to edit
            doctor_id: Acting doctor, must own the rule
            changes: Any of day_of_week (ISO), start_time, end_time, is_available

        Returns:
            Updated rule
        """
        current = await self._get_owned_rule(rule_id, doctor_id)

        values = {
            key: value
            for key, value in changes.items()
            if key in {"day_of_week", "start_time", "end_time", "is_available"}
            and value is not None
        }
        if not values:
            return current

        if "day_of_week" in values:
            validate_iso_day(values["day_of_week"])
        _validate_window(
            values.get("start_time", current.start_time),
            values.get("end_time", current.end_time),
        )
        values["updated_at"] = datetime.now(UTC)

        stmt = (
            update(availability_rules)
            .where(availability_rules.c.id == rule_id)
            .values(**values)
            .returning(availability_rules)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()
        self._invalidate(doctor_id)

        logger.info("availability_rule_updated", doctor_id=str(doctor_id), rule_id=str(rule_id))
        return AvailabilityRuleResponse.model_validate(dict(row._mapping))

    async def remove_rule(self, rule_id: UUID, doctor_id: UUID) -> None:
        """Delete a rule owned by the acting doctor."""
        await self._get_owned_rule(rule_id, doctor_id)

        await self.db.execute(delete(availability_rules).where(availability_rules.c.id == rule_id))
        await self.db.commit()
        self._invalidate(doctor_id)

        logger.info("availability_rule_removed", doctor_id=str(doctor_id), rule_id=str(rule_id))

    async def list_rules(
        self,
        doctor_id: UUID,
        day_of_week: int | None = None,
    ) -> list[AvailabilityRuleResponse]:
        """
        List a doctor's rules, optionally for one ISO day.

        Pure read: served from cache when possible, never writes rules.
        """
        if day_of_week is not None:
            validate_iso_day(day_of_week)

        rules = self._cached_rules(doctor_id)
        if rules is None:
            stmt = (
                select(availability_rules)
                .where(availability_rules.c.doctor_id == doctor_id)
                .order_by(availability_rules.c.day_of_week, availability_rules.c.start_time)
            )
            result = await self.db.execute(stmt)
            rules = [
                AvailabilityRuleResponse.model_validate(dict(row._mapping))
                for row in result.fetchall()
            ]
            if self.cache:
                self.cache.set_json(
                    self._cache_key(doctor_id),
                    [rule.model_dump(mode="json") for rule in rules],
                    ttl=self.cache_ttl,
                )

        if day_of_week is None:
            return rules
        return [rule for rule in rules if rule.day_of_week == day_of_week]

    def _cached_rules(self, doctor_id: UUID) -> list[AvailabilityRuleResponse] | None:
        if not self.cache:
            return None
        cached = self.cache.get_json(self._cache_key(doctor_id))
        if cached is None:
            return None
        return [AvailabilityRuleResponse.model_validate(item) for item in cached]

"""Nutrition log ingestion service."""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from prenatal_nutrition.domain.errors import IncompatibleUnit, LogEntryNotFound
from prenatal_nutrition.domain.foods import FoodProfile, FoodReference
from prenatal_nutrition.domain.logs import MealType, NutritionLogEntry
from prenatal_nutrition.domain.nutrients import CANONICAL_UNITS, Nutrient
from prenatal_nutrition.domain.units import (
    convert_amount,
    convert_quantity,
    is_portion_unit,
)
from prenatal_nutrition.services.goals import GoalResolver
from prenatal_nutrition.services.normalizer import MANUAL, normalize
from prenatal_nutrition.services.resolver import FoodResolver

_logger = logging.getLogger(__name__)


class LogRepository(Protocol):
    """Append-only persistence for nutrition log entries."""

    def insert_entry(self, entry: NutritionLogEntry) -> None:
        """Persist a new entry."""

    def get_entry(self, entry_id: UUID) -> NutritionLogEntry | None:
        """Return an entry by id, tombstoned or not."""

    def tombstone_entry(self, entry_id: UUID, tombstoned_at: datetime) -> None:
        """Mark an entry as logically deleted."""

    def restore_entry(self, entry_id: UUID) -> None:
        """Clear the tombstone of an entry."""

    def list_entries(
        self, pregnancy_id: UUID, start: datetime, end: datetime
    ) -> list[NutritionLogEntry]:
        """Return live entries with ``start <= logged_at < end``."""


@dataclass
class NutritionLogService:
    """Creates, corrects and tombstones nutrition log entries."""

    resolver: FoodResolver
    goal_resolver: GoalResolver
    repository: LogRepository

    async def submit(  # noqa: PLR0913
        self,
        pregnancy_id: UUID,
        quantity: float,
        unit: str,
        meal_type: MealType,
        logged_at: datetime,
        food_reference: FoodReference | None = None,
        manual_nutrients: Mapping[str, object] | None = None,
        manual_name: str | None = None,
    ) -> NutritionLogEntry:
        """Resolve the food (unless given manually) and store a log entry.

        A manual nutrient mapping describes exactly the submitted quantity and
        is stored without consulting any source. Every value given must be
        usable: negative amounts and unconvertible units are rejected.
        """
        if (food_reference is None) == (manual_nutrients is None):
            raise ValueError("Provide either a food reference or manual nutrients")
        _validate_quantity(quantity, unit)
        if manual_nutrients is not None:
            _validate_manual_nutrients(manual_nutrients)
        self.goal_resolver.get_pregnancy(pregnancy_id)

        if food_reference is not None:
            profile = await self.resolver.resolve(food_reference)
        else:
            profile = _manual_profile(
                manual_nutrients or {}, quantity, unit, manual_name
            )
        convert_quantity(quantity, unit, profile.reference_unit)

        entry = NutritionLogEntry(
            id=uuid4(),
            pregnancy_id=pregnancy_id,
            logged_at=_as_utc(logged_at),
            food_profile=profile,
            quantity=quantity,
            unit=unit,
            meal_type=meal_type,
            created_at=datetime.now(tz=UTC),
        )
        self.repository.insert_entry(entry)
        _logger.info(
            "Logged %s %s of %s for pregnancy %s",
            quantity,
            unit,
            profile.reference,
            pregnancy_id,
        )
        return entry

    def get(self, entry_id: UUID) -> NutritionLogEntry:
        """Return a live entry."""
        entry = self.repository.get_entry(entry_id)
        if entry is None or entry.is_tombstoned:
            raise LogEntryNotFound(entry_id)
        return entry

    def correct(
        self,
        entry_id: UUID,
        quantity: float | None = None,
        unit: str | None = None,
        meal_type: MealType | None = None,
        logged_at: datetime | None = None,
    ) -> NutritionLogEntry:
        """Replace an entry with a corrected copy and tombstone the original.

        The replacement keeps the original food profile snapshot, so totals
        for other entries never change.
        """
        original = self.get(entry_id)
        new_quantity = quantity if quantity is not None else original.quantity
        new_unit = unit if unit is not None else original.unit
        _validate_quantity(new_quantity, new_unit)
        convert_quantity(new_quantity, new_unit, original.food_profile.reference_unit)

        now = datetime.now(tz=UTC)
        replacement = replace(
            original,
            id=uuid4(),
            quantity=new_quantity,
            unit=new_unit,
            meal_type=meal_type or original.meal_type,
            logged_at=_as_utc(logged_at) if logged_at else original.logged_at,
            created_at=now,
            replaces_entry_id=original.id,
            tombstoned_at=None,
        )
        self.repository.tombstone_entry(original.id, now)
        try:
            self.repository.insert_entry(replacement)
        except Exception:
            _logger.warning("Correction of %s failed, restoring original", original.id)
            self.repository.restore_entry(original.id)
            raise
        return replacement

    def delete(self, entry_id: UUID) -> None:
        """Tombstone an entry."""
        entry = self.get(entry_id)
        self.repository.tombstone_entry(entry.id, datetime.now(tz=UTC))

    def list_entries(
        self, pregnancy_id: UUID, start: datetime, end: datetime
    ) -> list[NutritionLogEntry]:
        """Return live entries in ``[start, end)``."""
        return self.repository.list_entries(pregnancy_id, _as_utc(start), _as_utc(end))


def _validate_quantity(quantity: float, unit: str) -> None:
    if quantity <= 0:
        raise ValueError("Quantity must be positive")
    if not is_portion_unit(unit):
        raise IncompatibleUnit(unit, "portion")


def _validate_manual_nutrients(nutrients: Mapping[str, object]) -> None:
    for key, value in nutrients.items():
        try:
            nutrient = Nutrient(key)
        except ValueError as exc:
            raise ValueError(f"Unknown nutrient {key!r}") from exc
        canonical = CANONICAL_UNITS[nutrient]
        amount, unit = value, canonical
        if isinstance(value, Mapping):
            amount = value.get("amount")
            unit = value.get("unit") or canonical
        if amount is None:
            continue
        if (
            isinstance(amount, bool)
            or not isinstance(amount, int | float)
            or not math.isfinite(amount)
            or amount < 0
        ):
            raise ValueError(f"{nutrient.value} must be a non-negative number")
        convert_amount(float(amount), str(unit), canonical, nutrient)


def _manual_profile(
    nutrients: Mapping[str, object], quantity: float, unit: str, name: str | None
) -> FoodProfile:
    label = name or "manual entry"
    return FoodProfile(
        reference=FoodReference.name(label),
        source_id=MANUAL,
        source_name=MANUAL,
        name=name,
        nutrients=normalize({"nutrients": dict(nutrients)}, MANUAL),
        reference_quantity=quantity,
        reference_unit=unit,
        resolved_at=datetime.now(tz=UTC),
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)

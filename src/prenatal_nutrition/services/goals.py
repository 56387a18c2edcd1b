"""Goal resolution per pregnancy and trimester."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from types import MappingProxyType
from typing import Protocol
from uuid import UUID

from prenatal_nutrition.domain.errors import PregnancyNotFound
from prenatal_nutrition.domain.goals import (
    DEFAULT_GOALS,
    GoalOverride,
    NutrientGoal,
    NutrientGoalTable,
    Pregnancy,
    trimester_for_date,
)
from prenatal_nutrition.domain.nutrients import CANONICAL_UNITS, Nutrient
from prenatal_nutrition.domain.units import convert_amount


class PregnancyRepository(Protocol):
    """Persistence interface for pregnancies and their goal overrides."""

    def get_pregnancy(self, pregnancy_id: UUID) -> Pregnancy | None:
        """Return a pregnancy by id, if present."""

    def list_goal_overrides(self, pregnancy_id: UUID) -> list[GoalOverride]:
        """Return every override row recorded for a pregnancy."""

    def add_goal_override(self, override: GoalOverride) -> None:
        """Append an override row."""


@dataclass
class GoalResolver:
    """Resolves nutrient goals, preferring per-pregnancy overrides."""

    repository: PregnancyRepository

    def get_pregnancy(self, pregnancy_id: UUID) -> Pregnancy:
        """Return the pregnancy or raise ``PregnancyNotFound``."""
        pregnancy = self.repository.get_pregnancy(pregnancy_id)
        if pregnancy is None:
            raise PregnancyNotFound(pregnancy_id)
        return pregnancy

    def goals_for(self, pregnancy_id: UUID, target: date) -> NutrientGoalTable:
        """Return the goal table applicable on ``target``."""
        pregnancy = self.get_pregnancy(pregnancy_id)
        overrides = self.repository.list_goal_overrides(pregnancy_id)
        return resolve_goal_table(pregnancy, overrides, target)

    def add_override(  # noqa: PLR0913
        self,
        pregnancy_id: UUID,
        nutrient: Nutrient,
        daily_amount: float,
        unit: str,
        trimester: int | None = None,
    ) -> GoalOverride:
        """Record a new override; older rows stay as history."""
        self.get_pregnancy(pregnancy_id)
        if daily_amount < 0:
            raise ValueError("Goal amount must not be negative")
        if trimester is not None and trimester not in DEFAULT_GOALS:
            raise ValueError(f"Invalid trimester: {trimester}")
        convert_amount(daily_amount, unit, CANONICAL_UNITS[nutrient], nutrient)
        override = GoalOverride(
            pregnancy_id=pregnancy_id,
            nutrient=nutrient,
            daily_amount=daily_amount,
            unit=unit,
            trimester=trimester,
            created_at=datetime.now(tz=UTC),
        )
        self.repository.add_goal_override(override)
        return override


def resolve_goal_table(
    pregnancy: Pregnancy, overrides: list[GoalOverride], target: date
) -> NutrientGoalTable:
    """Combine defaults and overrides for the trimester containing ``target``.

    For each nutrient the newest trimester-specific override wins, then the
    newest override for all trimesters, then the built-in default.
    """
    trimester = trimester_for_date(pregnancy.start_date, target)
    defaults = DEFAULT_GOALS[trimester]
    chosen: dict[Nutrient, GoalOverride] = {}
    for override in overrides:
        if override.trimester not in (None, trimester):
            continue
        current = chosen.get(override.nutrient)
        if current is None or _override_rank(override) > _override_rank(current):
            chosen[override.nutrient] = override

    goals: dict[Nutrient, NutrientGoal] = {}
    for nutrient in Nutrient:
        override = chosen.get(nutrient)
        if override is None:
            goals[nutrient] = defaults.goals[nutrient]
            continue
        unit = CANONICAL_UNITS[nutrient]
        goals[nutrient] = NutrientGoal(
            daily_amount=convert_amount(
                override.daily_amount, override.unit, unit, nutrient
            ),
            unit=unit,
        )
    return NutrientGoalTable(trimester=trimester, goals=MappingProxyType(goals))


def _override_rank(override: GoalOverride) -> tuple[bool, datetime]:
    return (override.trimester is not None, override.created_at)

"""Pregnancy, trimester and nutrient goal models."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from uuid import UUID

from prenatal_nutrition.domain.errors import DateBeforePregnancyStart
from prenatal_nutrition.domain.nutrients import CANONICAL_UNITS, Nutrient

FIRST_TRIMESTER_LAST_WEEK = 13
SECOND_TRIMESTER_LAST_WEEK = 27


@dataclass(frozen=True)
class Pregnancy:
    """A tracked pregnancy."""

    id: UUID
    start_date: date
    timezone: str = "UTC"


@dataclass(frozen=True)
class NutrientGoal:
    """Daily goal for one nutrient."""

    daily_amount: float
    unit: str


@dataclass(frozen=True)
class NutrientGoalTable:
    """Goals applicable to one trimester."""

    trimester: int
    goals: Mapping[Nutrient, NutrientGoal]


@dataclass(frozen=True)
class GoalOverride:
    """Per-pregnancy replacement for a default goal.

    ``trimester`` of ``None`` applies the override to every trimester.
    """

    pregnancy_id: UUID
    nutrient: Nutrient
    daily_amount: float
    unit: str
    created_at: datetime
    trimester: int | None = None


def gestational_week(start_date: date, target: date) -> int:
    """Return the whole weeks elapsed from ``start_date`` to ``target``.

    Week 0 covers the first six days and falls in the first trimester.
    """
    days = (target - start_date).days
    if days < 0:
        raise DateBeforePregnancyStart(target, start_date)
    return days // 7


def trimester_for_week(week: int) -> int:
    """Map a gestational week to its trimester index."""
    if week <= FIRST_TRIMESTER_LAST_WEEK:
        return 1
    if week <= SECOND_TRIMESTER_LAST_WEEK:
        return 2
    return 3


def trimester_for_date(start_date: date, target: date) -> int:
    """Return the trimester index for ``target``."""
    return trimester_for_week(gestational_week(start_date, target))


def _goal(nutrient: Nutrient, amount: float) -> NutrientGoal:
    return NutrientGoal(daily_amount=amount, unit=CANONICAL_UNITS[nutrient])


_SHARED_DAILY_GOALS = {
    Nutrient.FOLATE: 600.0,
    Nutrient.CHOLINE: 450.0,
    Nutrient.IRON: 27.0,
    Nutrient.VITAMIN_D3: 15.0,
    Nutrient.DHA: 200.0,
    Nutrient.VITAMIN_A: 770.0,
    Nutrient.IODINE: 220.0,
    Nutrient.VITAMIN_B12: 2.6,
    Nutrient.MAGNESIUM: 350.0,
    Nutrient.ZINC: 11.0,
    Nutrient.CALCIUM: 1000.0,
    Nutrient.SELENIUM: 60.0,
    Nutrient.COPPER: 1.0,
    Nutrient.PROTEIN: 71.0,
    Nutrient.CARBS: 175.0,
    Nutrient.FAT: 70.0,
    Nutrient.FIBER: 28.0,
}
_CALORIES_BY_TRIMESTER = {1: 2000.0, 2: 2340.0, 3: 2450.0}


def _default_table(trimester: int) -> NutrientGoalTable:
    goals = {
        nutrient: _goal(nutrient, amount)
        for nutrient, amount in _SHARED_DAILY_GOALS.items()
    }
    goals[Nutrient.CALORIES] = _goal(
        Nutrient.CALORIES, _CALORIES_BY_TRIMESTER[trimester]
    )
    return NutrientGoalTable(trimester=trimester, goals=MappingProxyType(goals))


DEFAULT_GOALS: Mapping[int, NutrientGoalTable] = MappingProxyType(
    {trimester: _default_table(trimester) for trimester in (1, 2, 3)}
)

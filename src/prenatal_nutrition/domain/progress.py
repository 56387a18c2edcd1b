"""Domain models for aggregated totals and goal progress."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

from prenatal_nutrition.domain.goals import NutrientGoal, NutrientGoalTable
from prenatal_nutrition.domain.nutrients import Nutrient


class TotalStatus(StrEnum):
    """Completeness of an aggregated nutrient amount."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    UNKNOWN = "unknown"


class Granularity(StrEnum):
    """Period length for trend queries."""

    DAY = "day"
    WEEK = "week"


@dataclass(frozen=True)
class NutrientTotal:
    """Summed amount of one nutrient over a set of entries."""

    amount: float | None
    unit: str
    status: TotalStatus
    known_entries: int
    unknown_entries: int


@dataclass(frozen=True)
class PerNutrientTotals:
    """Totals for every nutrient over a time window."""

    start: datetime
    end: datetime
    totals: Mapping[Nutrient, NutrientTotal]
    entry_count: int

    @property
    def partial_count(self) -> int:
        return sum(
            1 for total in self.totals.values() if total.status == TotalStatus.PARTIAL
        )

    @property
    def unknown_count(self) -> int:
        return sum(
            1 for total in self.totals.values() if total.status == TotalStatus.UNKNOWN
        )


@dataclass(frozen=True)
class NutrientProgress:
    """Progress of one nutrient towards its goal.

    ``ratio`` is only numeric for complete totals; partial and unknown totals
    carry their status so they are not mistaken for a confirmed shortfall.
    """

    nutrient: Nutrient
    status: TotalStatus
    amount: float | None
    goal_amount: float
    unit: str
    ratio: float | None


@dataclass(frozen=True)
class DailyProgress:
    """Totals, goals and progress for one day."""

    day: date
    totals: PerNutrientTotals
    goals: NutrientGoalTable
    progress: Mapping[Nutrient, NutrientProgress]


@dataclass(frozen=True)
class PeriodProgress:
    """Totals and progress for one trend period."""

    start_date: date
    end_date: date
    days: int
    totals: PerNutrientTotals
    goals: Mapping[Nutrient, NutrientGoal]
    progress: Mapping[Nutrient, NutrientProgress]

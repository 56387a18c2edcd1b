"""Goal progress for a day and trends over a date range."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from types import MappingProxyType
from uuid import UUID
from zoneinfo import ZoneInfo

from prenatal_nutrition.domain.errors import DateBeforePregnancyStart
from prenatal_nutrition.domain.goals import NutrientGoal, Pregnancy
from prenatal_nutrition.domain.nutrients import Nutrient
from prenatal_nutrition.domain.progress import (
    DailyProgress,
    Granularity,
    NutrientProgress,
    PerNutrientTotals,
    PeriodProgress,
    TotalStatus,
)
from prenatal_nutrition.services.aggregation import AggregationEngine
from prenatal_nutrition.services.goals import GoalResolver, resolve_goal_table

DEFAULT_RATIO_CAP = 2.0


def compute_progress(
    totals: PerNutrientTotals,
    goals: Mapping[Nutrient, NutrientGoal],
    cap: float = DEFAULT_RATIO_CAP,
) -> dict[Nutrient, NutrientProgress]:
    """Return goal completion per nutrient, capped at ``cap``.

    Only complete totals against a positive goal get a numeric ratio.
    """
    progress: dict[Nutrient, NutrientProgress] = {}
    for nutrient, goal in goals.items():
        total = totals.totals.get(nutrient)
        if total is None:
            continue
        ratio = None
        if (
            total.status == TotalStatus.COMPLETE
            and total.amount is not None
            and goal.daily_amount > 0
        ):
            ratio = min(total.amount / goal.daily_amount, cap)
        progress[nutrient] = NutrientProgress(
            nutrient=nutrient,
            status=total.status,
            amount=total.amount,
            goal_amount=goal.daily_amount,
            unit=goal.unit,
            ratio=ratio,
        )
    return progress


def day_bounds(day: date, timezone_name: str) -> tuple[datetime, datetime]:
    """Return the UTC bounds of a local calendar day."""
    tz = ZoneInfo(timezone_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


@dataclass
class ProgressService:
    """Query API combining aggregation and goals."""

    aggregation: AggregationEngine
    goal_resolver: GoalResolver
    ratio_cap: float = DEFAULT_RATIO_CAP

    def get_daily_progress(self, pregnancy_id: UUID, day: date) -> DailyProgress:
        """Return totals, goals and progress for one local day."""
        pregnancy = self.goal_resolver.get_pregnancy(pregnancy_id)
        goals = self.goal_resolver.goals_for(pregnancy_id, day)
        start, end = day_bounds(day, pregnancy.timezone)
        totals = self.aggregation.aggregate(pregnancy_id, start, end)
        return DailyProgress(
            day=day,
            totals=totals,
            goals=goals,
            progress=MappingProxyType(
                compute_progress(totals, goals.goals, self.ratio_cap)
            ),
        )

    def get_trend_over_range(
        self,
        pregnancy_id: UUID,
        start_date: date,
        end_date: date,
        granularity: Granularity = Granularity.DAY,
    ) -> "TrendSeries":
        """Return a lazy series of per-period progress.

        ``end_date`` is inclusive. Nothing is read until the series is
        iterated, and each iteration reads afresh.
        """
        if start_date > end_date:
            raise ValueError("start_date must not be after end_date")
        pregnancy = self.goal_resolver.get_pregnancy(pregnancy_id)
        if start_date < pregnancy.start_date:
            raise DateBeforePregnancyStart(start_date, pregnancy.start_date)
        return TrendSeries(
            service=self,
            pregnancy=pregnancy,
            start_date=start_date,
            end_date=end_date,
            granularity=Granularity(granularity),
        )

    def period_progress(
        self, pregnancy: Pregnancy, start_date: date, days: int
    ) -> PeriodProgress:
        """Aggregate one period and compare it with the summed daily goals."""
        overrides = self.goal_resolver.repository.list_goal_overrides(pregnancy.id)
        summed: dict[Nutrient, float] = dict.fromkeys(Nutrient, 0.0)
        units: dict[Nutrient, str] = {}
        for offset in range(days):
            table = resolve_goal_table(
                pregnancy, overrides, start_date + timedelta(days=offset)
            )
            for nutrient, goal in table.goals.items():
                summed[nutrient] += goal.daily_amount
                units[nutrient] = goal.unit
        goals = {
            nutrient: NutrientGoal(daily_amount=amount, unit=units[nutrient])
            for nutrient, amount in summed.items()
        }

        end_date = start_date + timedelta(days=days - 1)
        start, _ = day_bounds(start_date, pregnancy.timezone)
        _, end = day_bounds(end_date, pregnancy.timezone)
        totals = self.aggregation.aggregate(pregnancy.id, start, end)
        return PeriodProgress(
            start_date=start_date,
            end_date=end_date,
            days=days,
            totals=totals,
            goals=MappingProxyType(goals),
            progress=MappingProxyType(compute_progress(totals, goals, self.ratio_cap)),
        )


@dataclass(frozen=True)
class TrendSeries:
    """Finite, restartable sequence of period progress."""

    service: ProgressService
    pregnancy: Pregnancy
    start_date: date
    end_date: date
    granularity: Granularity

    @property
    def period_days(self) -> int:
        return 7 if self.granularity == Granularity.WEEK else 1

    def __len__(self) -> int:
        total_days = (self.end_date - self.start_date).days + 1
        return -(-total_days // self.period_days)

    def __iter__(self) -> Iterator[PeriodProgress]:
        current = self.start_date
        while current <= self.end_date:
            remaining = (self.end_date - current).days + 1
            days = min(self.period_days, remaining)
            yield self.service.period_progress(self.pregnancy, current, days)
            current += timedelta(days=days)

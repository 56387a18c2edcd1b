"""Aggregation of logged nutrients over time windows."""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from uuid import UUID

from prenatal_nutrition.domain.logs import NutritionLogEntry
from prenatal_nutrition.domain.nutrients import (
    CANONICAL_UNITS,
    Nutrient,
    NutrientVector,
)
from prenatal_nutrition.domain.progress import (
    NutrientTotal,
    PerNutrientTotals,
    TotalStatus,
)
from prenatal_nutrition.domain.units import convert_quantity
from prenatal_nutrition.services.logs import LogRepository


@dataclass
class AggregationEngine:
    """Sums the nutrient snapshots of log entries."""

    repository: LogRepository

    def aggregate(
        self, pregnancy_id: UUID, start: datetime, end: datetime
    ) -> PerNutrientTotals:
        """Return per-nutrient totals for entries logged in ``[start, end)``."""
        entries = self.repository.list_entries(pregnancy_id, start, end)
        return sum_entries(entries, start, end)


def entry_nutrients(entry: NutritionLogEntry) -> NutrientVector:
    """Return the nutrients of an entry scaled to its logged quantity."""
    profile = entry.food_profile
    quantity = convert_quantity(entry.quantity, entry.unit, profile.reference_unit)
    return profile.nutrients.scaled(quantity / profile.reference_quantity)


def sum_entries(
    entries: Iterable[NutritionLogEntry], start: datetime, end: datetime
) -> PerNutrientTotals:
    """Sum entries inside ``[start, end)``, each counted once.

    A nutrient unknown in every entry stays unknown; one unknown in only some
    entries sums the known amounts and is flagged partial.
    """
    unique: dict[UUID, NutritionLogEntry] = {}
    for entry in entries:
        if entry.is_tombstoned or not start <= entry.logged_at < end:
            continue
        unique.setdefault(entry.id, entry)

    known: dict[Nutrient, list[float]] = {nutrient: [] for nutrient in Nutrient}
    unknown: dict[Nutrient, int] = dict.fromkeys(Nutrient, 0)
    for entry in unique.values():
        vector = entry_nutrients(entry)
        for nutrient in Nutrient:
            amount = vector[nutrient]
            if amount is None:
                unknown[nutrient] += 1
            else:
                known[nutrient].append(amount)

    totals: dict[Nutrient, NutrientTotal] = {}
    for nutrient in Nutrient:
        amounts = known[nutrient]
        if not amounts and unknown[nutrient]:
            status = TotalStatus.UNKNOWN
            amount: float | None = None
        elif unknown[nutrient]:
            status = TotalStatus.PARTIAL
            amount = math.fsum(amounts)
        else:
            status = TotalStatus.COMPLETE
            amount = math.fsum(amounts)
        totals[nutrient] = NutrientTotal(
            amount=amount,
            unit=CANONICAL_UNITS[nutrient],
            status=status,
            known_entries=len(amounts),
            unknown_entries=unknown[nutrient],
        )
    return PerNutrientTotals(
        start=start,
        end=end,
        totals=MappingProxyType(totals),
        entry_count=len(unique),
    )

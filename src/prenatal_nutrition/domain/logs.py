"""Domain models for nutrition log entries."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from prenatal_nutrition.domain.foods import FoodProfile


class MealType(StrEnum):
    """Meal a log entry belongs to."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    OTHER = "other"


@dataclass(frozen=True)
class NutritionLogEntry:
    """Immutable record of food eaten, with an embedded profile snapshot."""

    id: UUID
    pregnancy_id: UUID
    logged_at: datetime
    food_profile: FoodProfile
    quantity: float
    unit: str
    meal_type: MealType
    created_at: datetime
    replaces_entry_id: UUID | None = None
    tombstoned_at: datetime | None = None

    @property
    def is_tombstoned(self) -> bool:
        return self.tombstoned_at is not None

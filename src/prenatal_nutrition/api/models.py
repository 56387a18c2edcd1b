"""Request models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field, NonNegativeFloat, model_validator

from prenatal_nutrition.domain.foods import FoodReference
from prenatal_nutrition.domain.logs import MealType
from prenatal_nutrition.domain.nutrients import Nutrient


class NutrientAmount(BaseModel):
    """Amount with an explicit unit, e.g. vitamin D in IU."""

    amount: float | None = Field(default=None, ge=0)
    unit: str


class NutritionLogRequest(BaseModel):
    """Food eaten, identified by barcode, name or manual nutrient values."""

    barcode: str | None = None
    food_name: str | None = None
    manual_nutrients: (
        dict[Nutrient, NonNegativeFloat | NutrientAmount | None] | None
    ) = None
    manual_name: str | None = None
    quantity: float = Field(gt=0)
    unit: str = "g"
    meal_type: MealType = MealType.OTHER
    logged_at: datetime | None = None

    @model_validator(mode="after")
    def _exactly_one_food(self) -> "NutritionLogRequest":
        given = [
            value is not None
            for value in (self.barcode, self.food_name, self.manual_nutrients)
        ]
        if sum(given) != 1:
            raise ValueError(
                "Provide exactly one of barcode, food_name or manual_nutrients"
            )
        return self

    def food_reference(self) -> FoodReference | None:
        if self.barcode is not None:
            return FoodReference.barcode(self.barcode)
        if self.food_name is not None:
            return FoodReference.name(self.food_name)
        return None

    def manual_payload(self) -> dict[str, object] | None:
        if self.manual_nutrients is None:
            return None
        payload: dict[str, object] = {}
        for nutrient, value in self.manual_nutrients.items():
            if isinstance(value, NutrientAmount):
                payload[nutrient.value] = value.model_dump()
            else:
                payload[nutrient.value] = value
        return payload


class CorrectionRequest(BaseModel):
    """Fields to change on a logged entry."""

    quantity: float | None = Field(default=None, gt=0)
    unit: str | None = None
    meal_type: MealType | None = None
    logged_at: datetime | None = None


class GoalOverrideRequest(BaseModel):
    """New daily goal for one nutrient."""

    nutrient: Nutrient
    daily_amount: float = Field(ge=0)
    unit: str
    trimester: int | None = Field(default=None, ge=1, le=3)

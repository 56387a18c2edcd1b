"""Canonical nutrient set and nutrient vectors."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType


class Nutrient(StrEnum):
    """Tracked nutrients."""

    FOLATE = "folate"
    CHOLINE = "choline"
    IRON = "iron"
    VITAMIN_D3 = "vitamin_d3"
    DHA = "dha"
    VITAMIN_A = "vitamin_a"
    IODINE = "iodine"
    VITAMIN_B12 = "vitamin_b12"
    MAGNESIUM = "magnesium"
    ZINC = "zinc"
    CALCIUM = "calcium"
    SELENIUM = "selenium"
    COPPER = "copper"
    CALORIES = "calories"
    PROTEIN = "protein"
    CARBS = "carbs"
    FAT = "fat"
    FIBER = "fiber"


CANONICAL_UNITS: Mapping[Nutrient, str] = MappingProxyType(
    {
        Nutrient.FOLATE: "mcg",
        Nutrient.CHOLINE: "mg",
        Nutrient.IRON: "mg",
        Nutrient.VITAMIN_D3: "mcg",
        Nutrient.DHA: "mg",
        Nutrient.VITAMIN_A: "mcg",
        Nutrient.IODINE: "mcg",
        Nutrient.VITAMIN_B12: "mcg",
        Nutrient.MAGNESIUM: "mg",
        Nutrient.ZINC: "mg",
        Nutrient.CALCIUM: "mg",
        Nutrient.SELENIUM: "mcg",
        Nutrient.COPPER: "mg",
        Nutrient.CALORIES: "kcal",
        Nutrient.PROTEIN: "g",
        Nutrient.CARBS: "g",
        Nutrient.FAT: "g",
        Nutrient.FIBER: "g",
    }
)


@dataclass(frozen=True)
class NutrientVector:
    """Nutrient amounts in canonical units; ``None`` marks an unknown value.

    Every tracked nutrient is always present as a key. Unknown and zero are
    different states and no operation on the vector turns one into the other.
    """

    values: Mapping[Nutrient, float | None]

    def __post_init__(self) -> None:
        filled = {nutrient: None for nutrient in Nutrient}
        for key, amount in self.values.items():
            nutrient = Nutrient(key)
            filled[nutrient] = None if amount is None else float(amount)
        object.__setattr__(self, "values", MappingProxyType(filled))

    @classmethod
    def unknown(cls) -> "NutrientVector":
        """Return a vector where every nutrient is unknown."""
        return cls({})

    def __getitem__(self, nutrient: Nutrient) -> float | None:
        return self.values[nutrient]

    def __iter__(self) -> Iterator[Nutrient]:
        return iter(self.values)

    def is_known(self, nutrient: Nutrient) -> bool:
        """Return True when the nutrient has a numeric amount."""
        return self.values[nutrient] is not None

    def known_count(self) -> int:
        """Return how many nutrients have numeric amounts."""
        return sum(1 for amount in self.values.values() if amount is not None)

    def scaled(self, factor: float) -> "NutrientVector":
        """Return a copy with known amounts multiplied by ``factor``."""
        return NutrientVector(
            {
                nutrient: None if amount is None else amount * factor
                for nutrient, amount in self.values.items()
            }
        )

    def to_dict(self) -> dict[str, float | None]:
        """Serialize to a JSON-friendly dict with ``None`` for unknown."""
        return {nutrient.value: amount for nutrient, amount in self.values.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "NutrientVector":
        """Build a vector from serialized canonical amounts."""
        values: dict[Nutrient, float | None] = {}
        for nutrient in Nutrient:
            raw = data.get(nutrient.value)
            values[nutrient] = None if raw is None else float(raw)
        return cls(values)

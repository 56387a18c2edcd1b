"""Unit conversion tables for nutrient amounts and food portions."""

from prenatal_nutrition.domain.errors import IncompatibleUnit
from prenatal_nutrition.domain.nutrients import Nutrient

_ALIASES = {
    "µg": "mcg",
    "μg": "mcg",
    "ug": "mcg",
    "mcg": "mcg",
    "microgram": "mcg",
    "micrograms": "mcg",
    "mg": "mg",
    "milligram": "mg",
    "milligrams": "mg",
    "g": "g",
    "gr": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "oz": "oz",
    "ounce": "oz",
    "ounces": "oz",
    "lb": "lb",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
    "kcal": "kcal",
    "calorie": "kcal",
    "calories": "kcal",
    "kj": "kj",
    "iu": "iu",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "l": "l",
    "liter": "l",
    "liters": "l",
    "cup": "cup",
    "cups": "cup",
    "tbsp": "tbsp",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tsp": "tsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "fl_oz": "fl_oz",
    "fl oz": "fl_oz",
    "floz": "fl_oz",
    "serving": "serving",
    "servings": "serving",
    "piece": "piece",
    "pieces": "piece",
}

# Factors to the base unit of each dimension (mcg, kcal, ml, g).
_NUTRIENT_MASS = {"mcg": 1.0, "mg": 1_000.0, "g": 1_000_000.0, "kg": 1_000_000_000.0}
_ENERGY = {"kcal": 1.0, "kj": 1 / 4.184}
_PORTION_MASS = {
    "mg": 0.001,
    "g": 1.0,
    "kg": 1_000.0,
    "oz": 28.349523125,
    "lb": 453.59237,
}
_PORTION_VOLUME = {
    "ml": 1.0,
    "l": 1_000.0,
    "cup": 240.0,
    "tbsp": 15.0,
    "tsp": 5.0,
    "fl_oz": 29.5735295625,
}
_COUNT_UNITS = frozenset({"serving", "piece"})

# International units expressed in micrograms.
IU_TO_MCG = {
    Nutrient.VITAMIN_D3: 0.025,
    Nutrient.VITAMIN_A: 0.3,
}


def normalize_unit(unit: str) -> str:
    """Return the canonical spelling of a unit, or the cleaned input."""
    cleaned = unit.strip().lower()
    return _ALIASES.get(cleaned, cleaned)


def convert_amount(
    amount: float, from_unit: str, to_unit: str, nutrient: Nutrient | None = None
) -> float:
    """Convert a nutrient amount between units."""
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source == target:
        return amount
    if source == "iu" or target == "iu":
        factor = IU_TO_MCG.get(nutrient) if nutrient is not None else None
        if factor is None:
            raise IncompatibleUnit(from_unit, to_unit)
        if source == "iu":
            return convert_amount(amount * factor, "mcg", target, nutrient)
        return convert_amount(amount, source, "mcg", nutrient) / factor
    for table in (_NUTRIENT_MASS, _ENERGY):
        if source in table and target in table:
            return amount * table[source] / table[target]
    raise IncompatibleUnit(from_unit, to_unit)


def convert_quantity(quantity: float, from_unit: str, to_unit: str) -> float:
    """Convert a food portion quantity between units."""
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source == target:
        return quantity
    for table in (_PORTION_MASS, _PORTION_VOLUME):
        if source in table and target in table:
            return quantity * table[source] / table[target]
    raise IncompatibleUnit(from_unit, to_unit)


def is_portion_unit(unit: str) -> bool:
    """Return True when the unit can describe a food portion."""
    normalized = normalize_unit(unit)
    return (
        normalized in _PORTION_MASS
        or normalized in _PORTION_VOLUME
        or normalized in _COUNT_UNITS
    )

"""Normalization of provider records into canonical nutrient vectors."""

import json
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from prenatal_nutrition.domain.errors import IncompatibleUnit, MalformedSourceRecord
from prenatal_nutrition.domain.nutrients import (
    CANONICAL_UNITS,
    Nutrient,
    NutrientVector,
)
from prenatal_nutrition.domain.units import convert_amount

_logger = logging.getLogger(__name__)

OPEN_FOOD_FACTS = "openfoodfacts"
FDC = "fdc"
MANUAL = "manual"


@dataclass(frozen=True)
class FieldSpec:
    """Source field holding a nutrient, with the unit assumed when undeclared."""

    field: str
    default_unit: str


@dataclass(frozen=True)
class RecordMetadata:
    """Identity and reference basis of a provider record."""

    source_id: str
    name: str | None
    reference_quantity: float
    reference_unit: str


@dataclass(frozen=True)
class SourceSchema:
    """Field-mapping table for one provider schema."""

    tag: str
    candidates: Mapping[Nutrient, tuple[FieldSpec, ...]]
    extract_fields: Callable[[dict[str, object]], dict[str, tuple[object, str | None]]]
    describe: Callable[[dict[str, object]], RecordMetadata]


def normalize(raw_record: object, source_schema_tag: str) -> NutrientVector:
    """Convert a provider record into a canonical nutrient vector.

    Nutrients whose fields are absent or non-numeric are unknown. Fields that
    are not mapped for the schema are ignored.
    """
    schema = _schema_for(source_schema_tag)
    document = _as_document(raw_record, source_schema_tag)
    fields = schema.extract_fields(document)
    values: dict[Nutrient, float | None] = {}
    for nutrient in Nutrient:
        values[nutrient] = _first_known(
            nutrient, schema.candidates.get(nutrient, ()), fields
        )
    return NutrientVector(values)


def describe(raw_record: object, source_schema_tag: str) -> RecordMetadata:
    """Return the identity and reference basis of a provider record."""
    schema = _schema_for(source_schema_tag)
    return schema.describe(_as_document(raw_record, source_schema_tag))


def _schema_for(tag: str) -> SourceSchema:
    schema = SCHEMAS.get(tag)
    if schema is None:
        raise MalformedSourceRecord(tag, "unknown source schema")
    return schema


def _as_document(raw_record: object, tag: str) -> dict[str, object]:
    document = raw_record
    if isinstance(raw_record, str | bytes | bytearray):
        try:
            document = json.loads(raw_record)
        except ValueError as exc:
            raise MalformedSourceRecord(tag, f"invalid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedSourceRecord(tag, "record is not a JSON object")
    return document


def _first_known(
    nutrient: Nutrient,
    candidates: tuple[FieldSpec, ...],
    fields: dict[str, tuple[object, str | None]],
) -> float | None:
    for spec in candidates:
        if spec.field not in fields:
            continue
        raw_value, declared_unit = fields[spec.field]
        amount = _as_number(raw_value)
        if amount is None:
            continue
        unit = declared_unit or spec.default_unit
        try:
            return convert_amount(amount, unit, CANONICAL_UNITS[nutrient], nutrient)
        except IncompatibleUnit:
            _logger.warning(
                "Skipping %s field %s with unsupported unit %s",
                nutrient.value,
                spec.field,
                unit,
            )
    return None


def _as_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# Open Food Facts: "<key>_100g" values are grams except for energy fields.


def _off_fields(document: dict[str, object]) -> dict[str, tuple[object, str | None]]:
    product = document.get("product")
    if isinstance(product, dict):
        document = product
    nutriments = document.get("nutriments")
    if not isinstance(nutriments, dict):
        return {}
    return {str(key): (value, None) for key, value in nutriments.items()}


def _off_describe(document: dict[str, object]) -> RecordMetadata:
    product = document.get("product")
    if isinstance(product, dict):
        document = product
    source_id = _text(document.get("code")) or _text(document.get("_id")) or ""
    name = _text(document.get("product_name")) or _text(
        document.get("product_name_en")
    )
    brand = _text(document.get("brands"))
    if name and brand:
        name = f"{name} ({brand})"
    return RecordMetadata(
        source_id=source_id,
        name=name,
        reference_quantity=100.0,
        reference_unit="g",
    )


def _off(key: str, unit: str = "g") -> FieldSpec:
    return FieldSpec(field=f"{key}_100g", default_unit=unit)


_OFF_CANDIDATES = {
    Nutrient.FOLATE: (_off("folates"), _off("vitamin-b9")),
    Nutrient.CHOLINE: (_off("choline"),),
    Nutrient.IRON: (_off("iron"),),
    Nutrient.VITAMIN_D3: (_off("vitamin-d"),),
    Nutrient.DHA: (_off("docosahexaenoic-acid"),),
    Nutrient.VITAMIN_A: (_off("vitamin-a"),),
    Nutrient.IODINE: (_off("iodine"),),
    Nutrient.VITAMIN_B12: (_off("vitamin-b12"),),
    Nutrient.MAGNESIUM: (_off("magnesium"),),
    Nutrient.ZINC: (_off("zinc"),),
    Nutrient.CALCIUM: (_off("calcium"),),
    Nutrient.SELENIUM: (_off("selenium"),),
    Nutrient.COPPER: (_off("copper"),),
    Nutrient.CALORIES: (
        _off("energy-kcal", "kcal"),
        _off("energy-kj", "kj"),
        _off("energy", "kj"),
    ),
    Nutrient.PROTEIN: (_off("proteins"),),
    Nutrient.CARBS: (_off("carbohydrates"),),
    Nutrient.FAT: (_off("fat"),),
    Nutrient.FIBER: (_off("fiber"),),
}


# USDA FoodData Central: nutrients keyed by FDC nutrient id. Detail payloads
# nest the id and unit under "nutrient"; search hits carry them inline.


def _fdc_fields(document: dict[str, object]) -> dict[str, tuple[object, str | None]]:
    fields: dict[str, tuple[object, str | None]] = {}
    food_nutrients = document.get("foodNutrients")
    if not isinstance(food_nutrients, list):
        return fields
    for item in food_nutrients:
        if not isinstance(item, dict):
            continue
        info = item.get("nutrient")
        if not isinstance(info, dict):
            info = {}
        nutrient_id = info.get("id") or item.get("nutrientId")
        if nutrient_id is None:
            continue
        amount = item.get("amount", item.get("value"))
        unit = info.get("unitName") or item.get("unitName")
        key = str(nutrient_id)
        if key in fields and _as_number(fields[key][0]) is not None:
            continue
        fields[key] = (amount, unit if isinstance(unit, str) else None)
    return fields


def _fdc_describe(document: dict[str, object]) -> RecordMetadata:
    fdc_id = document.get("fdcId")
    name = _text(document.get("description"))
    brand = _text(document.get("brandName")) or _text(document.get("brandOwner"))
    if name and brand:
        name = f"{name} ({brand})"
    return RecordMetadata(
        source_id=str(fdc_id) if fdc_id is not None else "",
        name=name,
        reference_quantity=100.0,
        reference_unit="g",
    )


def _fdc(*nutrient_ids: int, unit: str) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec(field=str(nid), default_unit=unit) for nid in nutrient_ids)


_FDC_CANDIDATES = {
    Nutrient.FOLATE: _fdc(1190, 1177, unit="mcg"),
    Nutrient.CHOLINE: _fdc(1180, unit="mg"),
    Nutrient.IRON: _fdc(1089, unit="mg"),
    Nutrient.VITAMIN_D3: _fdc(1114, 1112, unit="mcg") + _fdc(1110, unit="iu"),
    Nutrient.DHA: _fdc(1272, unit="g"),
    Nutrient.VITAMIN_A: _fdc(1106, unit="mcg") + _fdc(1104, unit="iu"),
    Nutrient.IODINE: _fdc(1100, unit="mcg"),
    Nutrient.VITAMIN_B12: _fdc(1178, unit="mcg"),
    Nutrient.MAGNESIUM: _fdc(1090, unit="mg"),
    Nutrient.ZINC: _fdc(1095, unit="mg"),
    Nutrient.CALCIUM: _fdc(1087, unit="mg"),
    Nutrient.SELENIUM: _fdc(1103, unit="mcg"),
    Nutrient.COPPER: _fdc(1098, unit="mg"),
    Nutrient.CALORIES: _fdc(1008, 2047, 2048, unit="kcal") + _fdc(1062, unit="kj"),
    Nutrient.PROTEIN: _fdc(1003, unit="g"),
    Nutrient.CARBS: _fdc(1005, unit="g"),
    Nutrient.FAT: _fdc(1004, unit="g"),
    Nutrient.FIBER: _fdc(1079, unit="g"),
}


# Manual entries: canonical nutrient names mapped to a number in the canonical
# unit or to {"amount": ..., "unit": ...}.


def _manual_fields(
    document: dict[str, object],
) -> dict[str, tuple[object, str | None]]:
    source = document.get("nutrients")
    if not isinstance(source, dict):
        source = document
    fields: dict[str, tuple[object, str | None]] = {}
    for key, value in source.items():
        if isinstance(value, dict):
            unit = value.get("unit")
            fields[str(key)] = (
                value.get("amount"),
                unit if isinstance(unit, str) else None,
            )
        else:
            fields[str(key)] = (value, None)
    return fields


def _manual_describe(document: dict[str, object]) -> RecordMetadata:
    quantity = _as_number(document.get("reference_quantity"))
    unit = _text(document.get("reference_unit"))
    return RecordMetadata(
        source_id=_text(document.get("id")) or MANUAL,
        name=_text(document.get("name")),
        reference_quantity=quantity if quantity else 100.0,
        reference_unit=unit or "g",
    )


_MANUAL_CANDIDATES = {
    nutrient: (FieldSpec(field=nutrient.value, default_unit=CANONICAL_UNITS[nutrient]),)
    for nutrient in Nutrient
}


SCHEMAS: Mapping[str, SourceSchema] = {
    OPEN_FOOD_FACTS: SourceSchema(
        tag=OPEN_FOOD_FACTS,
        candidates=_OFF_CANDIDATES,
        extract_fields=_off_fields,
        describe=_off_describe,
    ),
    FDC: SourceSchema(
        tag=FDC,
        candidates=_FDC_CANDIDATES,
        extract_fields=_fdc_fields,
        describe=_fdc_describe,
    ),
    MANUAL: SourceSchema(
        tag=MANUAL,
        candidates=_MANUAL_CANDIDATES,
        extract_fields=_manual_fields,
        describe=_manual_describe,
    ),
}

"""Domain models for food references and resolved food profiles."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from prenatal_nutrition.domain.nutrients import NutrientVector

_BARCODE_PATTERN = re.compile(r"^\d{8,14}$")
_BARCODE_SEPARATORS = re.compile(r"[\s-]")


class ReferenceKind(StrEnum):
    """How a food is identified."""

    BARCODE = "barcode"
    NAME = "name"


@dataclass(frozen=True)
class FoodReference:
    """Lookup key for a food: a barcode or a normalized name."""

    kind: ReferenceKind
    value: str

    @classmethod
    def barcode(cls, code: str) -> "FoodReference":
        """Build a barcode reference, stripping spaces and dashes."""
        cleaned = _BARCODE_SEPARATORS.sub("", code)
        if not _BARCODE_PATTERN.match(cleaned):
            raise ValueError(f"Invalid barcode: {code!r}")
        return cls(kind=ReferenceKind.BARCODE, value=cleaned)

    @classmethod
    def name(cls, text: str) -> "FoodReference":
        """Build a name reference from free text."""
        cleaned = " ".join(text.lower().split())
        if not cleaned:
            raise ValueError("Food name must not be empty")
        return cls(kind=ReferenceKind.NAME, value=cleaned)

    @classmethod
    def parse(cls, text: str) -> "FoodReference":
        """Treat digit-only input as a barcode and anything else as a name."""
        if _BARCODE_PATTERN.match(_BARCODE_SEPARATORS.sub("", text)):
            return cls.barcode(text)
        return cls.name(text)

    @property
    def cache_key(self) -> str:
        return f"{self.kind.value}:{self.value}"

    def __str__(self) -> str:
        return self.cache_key


@dataclass(frozen=True)
class FoodProfile:
    """Normalized nutrient content of a food from one source."""

    reference: FoodReference
    source_id: str
    source_name: str
    nutrients: NutrientVector
    reference_quantity: float
    reference_unit: str
    resolved_at: datetime
    name: str | None = None
    id: UUID = field(default_factory=uuid4)

    def to_snapshot(self) -> dict[str, object]:
        """Serialize to a JSON-friendly snapshot."""
        return {
            "id": str(self.id),
            "reference": {
                "kind": self.reference.kind.value,
                "value": self.reference.value,
            },
            "source_id": self.source_id,
            "source_name": self.source_name,
            "name": self.name,
            "nutrients": self.nutrients.to_dict(),
            "reference_quantity": self.reference_quantity,
            "reference_unit": self.reference_unit,
            "resolved_at": self.resolved_at.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, object]) -> "FoodProfile":
        """Rebuild a profile from :meth:`to_snapshot` output."""
        reference = data["reference"]
        nutrients = data["nutrients"]
        if not isinstance(reference, dict) or not isinstance(nutrients, dict):
            raise ValueError("Invalid food profile snapshot")
        return cls(
            id=UUID(str(data["id"])),
            reference=FoodReference(
                kind=ReferenceKind(reference["kind"]), value=str(reference["value"])
            ),
            source_id=str(data["source_id"]),
            source_name=str(data["source_name"]),
            name=data.get("name") if isinstance(data.get("name"), str) else None,
            nutrients=NutrientVector.from_dict(nutrients),
            reference_quantity=float(data["reference_quantity"]),
            reference_unit=str(data["reference_unit"]),
            resolved_at=datetime.fromisoformat(str(data["resolved_at"])),
        )

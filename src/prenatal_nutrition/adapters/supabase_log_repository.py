"""Supabase repository for nutrition log entries."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from prenatal_nutrition.domain.foods import FoodProfile
from prenatal_nutrition.domain.logs import MealType, NutritionLogEntry
from prenatal_nutrition.services.logs import LogRepository

_COLUMNS = (
    "id, pregnancy_id, logged_at, food_profile, quantity, unit, meal_type, "
    "created_at, replaces_entry_id, tombstoned_at"
)


@dataclass
class SupabaseLogRepository(LogRepository):
    """Supabase implementation for nutrition log entries."""

    client: Client

    def insert_entry(self, entry: NutritionLogEntry) -> None:
        """Insert a log entry row."""
        response = (
            self.client.table("nutrition_log_entries")
            .insert(
                {
                    "id": str(entry.id),
                    "pregnancy_id": str(entry.pregnancy_id),
                    "logged_at": entry.logged_at.isoformat(),
                    "food_profile": entry.food_profile.to_snapshot(),
                    "quantity": entry.quantity,
                    "unit": entry.unit,
                    "meal_type": entry.meal_type.value,
                    "created_at": entry.created_at.isoformat(),
                    "replaces_entry_id": _optional_id(entry.replaces_entry_id),
                    "tombstoned_at": None,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create nutrition log entry")

    def get_entry(self, entry_id: UUID) -> NutritionLogEntry | None:
        """Return a log entry by id."""
        response = (
            self.client.table("nutrition_log_entries")
            .select(_COLUMNS)
            .eq("id", str(entry_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_entry(response.data[0])

    def tombstone_entry(self, entry_id: UUID, tombstoned_at: datetime) -> None:
        """Set the tombstone timestamp on an entry."""
        self.client.table("nutrition_log_entries").update(
            {"tombstoned_at": tombstoned_at.isoformat()}
        ).eq("id", str(entry_id)).execute()

    def restore_entry(self, entry_id: UUID) -> None:
        """Clear the tombstone timestamp on an entry."""
        self.client.table("nutrition_log_entries").update(
            {"tombstoned_at": None}
        ).eq("id", str(entry_id)).execute()

    def list_entries(
        self, pregnancy_id: UUID, start: datetime, end: datetime
    ) -> list[NutritionLogEntry]:
        """Return live entries in the time range."""
        response = (
            self.client.table("nutrition_log_entries")
            .select(_COLUMNS)
            .eq("pregnancy_id", str(pregnancy_id))
            .is_("tombstoned_at", "null")
            .gte("logged_at", start.isoformat())
            .lt("logged_at", end.isoformat())
            .order("logged_at", desc=False)
            .execute()
        )
        return [_parse_entry(row) for row in response.data or []]


def _optional_id(value: UUID | None) -> str | None:
    return str(value) if value else None


def _parse_entry(row: dict[str, object]) -> NutritionLogEntry:
    tombstoned_at = row.get("tombstoned_at")
    replaces = row.get("replaces_entry_id")
    return NutritionLogEntry(
        id=UUID(str(row["id"])),
        pregnancy_id=UUID(str(row["pregnancy_id"])),
        logged_at=datetime.fromisoformat(str(row["logged_at"])),
        food_profile=FoodProfile.from_snapshot(row["food_profile"]),
        quantity=float(row["quantity"]),
        unit=str(row["unit"]),
        meal_type=MealType(row.get("meal_type") or MealType.OTHER),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        replaces_entry_id=UUID(str(replaces)) if replaces else None,
        tombstoned_at=(
            datetime.fromisoformat(str(tombstoned_at)) if tombstoned_at else None
        ),
    )

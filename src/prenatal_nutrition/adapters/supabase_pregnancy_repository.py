"""Supabase repository for pregnancies and goal overrides."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from prenatal_nutrition.domain.goals import GoalOverride, Pregnancy
from prenatal_nutrition.domain.nutrients import Nutrient
from prenatal_nutrition.services.goals import PregnancyRepository


@dataclass
class SupabasePregnancyRepository(PregnancyRepository):
    """Supabase implementation for pregnancy data."""

    client: Client

    def get_pregnancy(self, pregnancy_id: UUID) -> Pregnancy | None:
        """Return a pregnancy by id."""
        response = (
            self.client.table("pregnancies")
            .select("id, start_date, timezone")
            .eq("id", str(pregnancy_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Pregnancy(
            id=UUID(row["id"]),
            start_date=date.fromisoformat(row["start_date"]),
            timezone=row.get("timezone") or "UTC",
        )

    def list_goal_overrides(self, pregnancy_id: UUID) -> list[GoalOverride]:
        """Return override rows for a pregnancy, oldest first."""
        response = (
            self.client.table("nutrient_goal_overrides")
            .select("pregnancy_id, nutrient, trimester, daily_amount, unit, created_at")
            .eq("pregnancy_id", str(pregnancy_id))
            .order("created_at", desc=False)
            .execute()
        )
        overrides = []
        for row in response.data or []:
            try:
                nutrient = Nutrient(row["nutrient"])
            except ValueError:
                continue
            trimester = row.get("trimester")
            overrides.append(
                GoalOverride(
                    pregnancy_id=UUID(row["pregnancy_id"]),
                    nutrient=nutrient,
                    daily_amount=float(row["daily_amount"]),
                    unit=str(row["unit"]),
                    trimester=int(trimester) if trimester is not None else None,
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
            )
        return overrides

    def add_goal_override(self, override: GoalOverride) -> None:
        """Insert an override row."""
        self.client.table("nutrient_goal_overrides").insert(
            {
                "pregnancy_id": str(override.pregnancy_id),
                "nutrient": override.nutrient.value,
                "trimester": override.trimester,
                "daily_amount": override.daily_amount,
                "unit": override.unit,
                "created_at": override.created_at.isoformat(),
            }
        ).execute()

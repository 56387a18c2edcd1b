"""Supabase-backed storage for the resolution cache."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from prenatal_nutrition.domain.foods import FoodProfile
from prenatal_nutrition.services.cache import CacheEntry, ProfileStore


@dataclass
class SupabaseProfileStore(ProfileStore):
    """Persists cache entries in the ``food_profile_cache`` table."""

    client: Client

    def load(self, key: str) -> CacheEntry | None:
        """Return the cached entry for a key, if present."""
        response = (
            self.client.table("food_profile_cache")
            .select("cache_key, profile, expires_at")
            .eq("cache_key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return CacheEntry(
            profile=FoodProfile.from_snapshot(row["profile"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def save(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace the entry for a key."""
        self.client.table("food_profile_cache").upsert(
            {
                "cache_key": key,
                "profile": entry.profile.to_snapshot(),
                "expires_at": entry.expires_at.isoformat(),
            },
            on_conflict="cache_key",
        ).execute()

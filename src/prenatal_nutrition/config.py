"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    fdc_api_key: str
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    openfoodfacts_base_url: str = "https://world.openfoodfacts.org"
    openfoodfacts_user_agent: str = "prenatal-nutrition/0.1 (nutrition tracking)"
    source_priority: str = "openfoodfacts,usda_fdc"
    source_timeout_seconds: float = 5.0
    cache_ttl_seconds: int = 7 * 24 * 3600
    progress_ratio_cap: float = 2.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_source_priority(raw: str | None) -> list[str]:
    """Parse the comma-separated source order, dropping blanks and repeats."""
    if raw is None:
        return []
    names: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip().lower()
        if value and value not in names:
            names.append(value)
    return names

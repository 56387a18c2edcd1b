"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from prenatal_nutrition.adapters.fdc_client import HttpxFdcClient
from prenatal_nutrition.adapters.openfoodfacts_client import OpenFoodFactsClient
from prenatal_nutrition.adapters.supabase_log_repository import SupabaseLogRepository
from prenatal_nutrition.adapters.supabase_pregnancy_repository import (
    SupabasePregnancyRepository,
)
from prenatal_nutrition.adapters.supabase_profile_store import SupabaseProfileStore
from prenatal_nutrition.config import Settings, parse_source_priority
from prenatal_nutrition.services.aggregation import AggregationEngine
from prenatal_nutrition.services.cache import ResolutionCache
from prenatal_nutrition.services.goals import GoalResolver
from prenatal_nutrition.services.logs import NutritionLogService
from prenatal_nutrition.services.progress import ProgressService
from prenatal_nutrition.services.resolver import FoodResolver, NutrientSource


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    resolution_cache: ResolutionCache
    food_resolver: FoodResolver
    goal_resolver: GoalResolver
    log_service: NutritionLogService
    aggregation_engine: AggregationEngine
    progress_service: ProgressService
    close_resources: Callable[[], Awaitable[None]]


def order_sources(
    sources: list[NutrientSource], priority: list[str]
) -> list[NutrientSource]:
    """Order sources by configured priority; unlisted sources are dropped."""
    by_name = {source.name: source for source in sources}
    return [by_name[name] for name in priority if name in by_name]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    off_client = OpenFoodFactsClient.create(
        base_url=resolved_settings.openfoodfacts_base_url,
        user_agent=resolved_settings.openfoodfacts_user_agent,
    )
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
    )
    resolution_cache = ResolutionCache(SupabaseProfileStore(supabase_client))
    food_resolver = FoodResolver(
        sources=order_sources(
            [off_client, fdc_client],
            parse_source_priority(resolved_settings.source_priority),
        ),
        cache=resolution_cache,
        ttl_seconds=resolved_settings.cache_ttl_seconds,
        timeout_seconds=resolved_settings.source_timeout_seconds,
    )
    goal_resolver = GoalResolver(SupabasePregnancyRepository(supabase_client))
    log_repository = SupabaseLogRepository(supabase_client)
    log_service = NutritionLogService(
        resolver=food_resolver,
        goal_resolver=goal_resolver,
        repository=log_repository,
    )
    aggregation_engine = AggregationEngine(log_repository)
    progress_service = ProgressService(
        aggregation=aggregation_engine,
        goal_resolver=goal_resolver,
        ratio_cap=resolved_settings.progress_ratio_cap,
    )

    async def close_resources() -> None:
        try:
            await off_client.close()
        finally:
            await fdc_client.close()

    return AppContainer(
        settings=resolved_settings,
        resolution_cache=resolution_cache,
        food_resolver=food_resolver,
        goal_resolver=goal_resolver,
        log_service=log_service,
        aggregation_engine=aggregation_engine,
        progress_service=progress_service,
        close_resources=close_resources,
    )

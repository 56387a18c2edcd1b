"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

import pytest

from prenatal_nutrition.config import Settings
from prenatal_nutrition.containers import AppContainer
from prenatal_nutrition.domain.foods import FoodProfile, FoodReference, ReferenceKind
from prenatal_nutrition.domain.goals import GoalOverride, Pregnancy
from prenatal_nutrition.domain.logs import MealType, NutritionLogEntry
from prenatal_nutrition.domain.nutrients import NutrientVector
from prenatal_nutrition.services.aggregation import AggregationEngine
from prenatal_nutrition.services.cache import InMemoryProfileStore, ResolutionCache
from prenatal_nutrition.services.goals import GoalResolver, PregnancyRepository
from prenatal_nutrition.services.logs import LogRepository, NutritionLogService
from prenatal_nutrition.services.progress import ProgressService
from prenatal_nutrition.services.resolver import FoodResolver, NutrientSource

PREGNANCY_START = date(2024, 1, 1)
BARCODE = "3017620422003"


def off_product(code: str = BARCODE, **nutriments: object) -> dict[str, object]:
    """Open Food Facts product document with the given nutriments."""
    return {
        "code": code,
        "product_name": "Fortified cereal",
        "brands": "Acme",
        "nutriments": nutriments,
    }


def fdc_food(fdc_id: int = 123456, **amounts: float) -> dict[str, object]:
    """FDC search hit; keyword names are FDC nutrient ids prefixed with 'n'."""
    units = {"1089": "MG", "1190": "UG", "1008": "KCAL", "1003": "G"}
    return {
        "fdcId": fdc_id,
        "description": "Spinach, raw",
        "gtinUpc": BARCODE,
        "foodNutrients": [
            {
                "nutrientId": int(key[1:]),
                "unitName": units.get(key[1:], "MG"),
                "value": value,
            }
            for key, value in amounts.items()
        ],
    }


@dataclass
class FakeSource(NutrientSource):
    """Scripted nutrient source that counts calls."""

    name: str
    schema_tag: str
    barcode_records: dict[str, dict[str, object]] = field(default_factory=dict)
    name_records: dict[str, list[dict[str, object]]] = field(default_factory=dict)
    error: Exception | None = None
    delay_seconds: float = 0.0
    kinds: tuple[ReferenceKind, ...] = (ReferenceKind.BARCODE, ReferenceKind.NAME)
    calls: int = 0

    def supports(self, kind: ReferenceKind) -> bool:
        return kind in self.kinds

    async def lookup_by_barcode(self, code: str) -> dict[str, object] | None:
        self.calls += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.barcode_records.get(code)

    async def search_by_name(
        self, text: str, limit: int = 5
    ) -> list[dict[str, object]]:
        self.calls += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.name_records.get(text, [])[:limit]


@dataclass
class InMemoryLogRepository(LogRepository):
    """In-memory log repository for tests."""

    entries: dict[UUID, NutritionLogEntry] = field(default_factory=dict)

    def insert_entry(self, entry: NutritionLogEntry) -> None:
        self.entries[entry.id] = entry

    def get_entry(self, entry_id: UUID) -> NutritionLogEntry | None:
        return self.entries.get(entry_id)

    def tombstone_entry(self, entry_id: UUID, tombstoned_at: datetime) -> None:
        entry = self.entries[entry_id]
        self.entries[entry_id] = replace(entry, tombstoned_at=tombstoned_at)

    def restore_entry(self, entry_id: UUID) -> None:
        entry = self.entries[entry_id]
        self.entries[entry_id] = replace(entry, tombstoned_at=None)

    def list_entries(
        self, pregnancy_id: UUID, start: datetime, end: datetime
    ) -> list[NutritionLogEntry]:
        return sorted(
            (
                entry
                for entry in self.entries.values()
                if entry.pregnancy_id == pregnancy_id
                and not entry.is_tombstoned
                and start <= entry.logged_at < end
            ),
            key=lambda entry: entry.logged_at,
        )


@dataclass
class InMemoryPregnancyRepository(PregnancyRepository):
    """In-memory pregnancy repository for tests."""

    pregnancies: dict[UUID, Pregnancy] = field(default_factory=dict)
    overrides: list[GoalOverride] = field(default_factory=list)

    def add_pregnancy(
        self, start_date: date = PREGNANCY_START, timezone: str = "UTC"
    ) -> Pregnancy:
        pregnancy = Pregnancy(id=uuid4(), start_date=start_date, timezone=timezone)
        self.pregnancies[pregnancy.id] = pregnancy
        return pregnancy

    def get_pregnancy(self, pregnancy_id: UUID) -> Pregnancy | None:
        return self.pregnancies.get(pregnancy_id)

    def list_goal_overrides(self, pregnancy_id: UUID) -> list[GoalOverride]:
        return [o for o in self.overrides if o.pregnancy_id == pregnancy_id]

    def add_goal_override(self, override: GoalOverride) -> None:
        self.overrides.append(override)


def make_profile(
    nutrients: dict[str, float | None],
    reference_quantity: float = 100.0,
    reference_unit: str = "g",
    source_name: str = "openfoodfacts",
) -> FoodProfile:
    """Profile with the given canonical amounts."""
    return FoodProfile(
        reference=FoodReference.name("test food"),
        source_id="test",
        source_name=source_name,
        nutrients=NutrientVector(nutrients),
        reference_quantity=reference_quantity,
        reference_unit=reference_unit,
        resolved_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def make_entry(  # noqa: PLR0913
    pregnancy_id: UUID,
    logged_at: datetime,
    nutrients: dict[str, float | None],
    quantity: float = 100.0,
    unit: str = "g",
    reference_quantity: float = 100.0,
    reference_unit: str = "g",
) -> NutritionLogEntry:
    """Log entry wrapping a fresh profile."""
    return NutritionLogEntry(
        id=uuid4(),
        pregnancy_id=pregnancy_id,
        logged_at=logged_at,
        food_profile=make_profile(nutrients, reference_quantity, reference_unit),
        quantity=quantity,
        unit=unit,
        meal_type=MealType.LUNCH,
        created_at=logged_at,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        fdc_api_key="fdc-key",
    )


@pytest.fixture
def pregnancy_repository() -> InMemoryPregnancyRepository:
    return InMemoryPregnancyRepository()


@pytest.fixture
def pregnancy(pregnancy_repository: InMemoryPregnancyRepository) -> Pregnancy:
    return pregnancy_repository.add_pregnancy()


@pytest.fixture
def log_repository() -> InMemoryLogRepository:
    return InMemoryLogRepository()


@pytest.fixture
def primary_source() -> FakeSource:
    return FakeSource(
        name="openfoodfacts",
        schema_tag="openfoodfacts",
        barcode_records={
            BARCODE: off_product(**{"folates_100g": 0.0003, "iron_100g": 0.008})
        },
        name_records={
            "spinach": [off_product("0000000000017", **{"iron_100g": 0.0027})]
        },
    )


@pytest.fixture
def secondary_source() -> FakeSource:
    return FakeSource(
        name="usda_fdc",
        schema_tag="fdc",
        barcode_records={BARCODE: fdc_food(n1089=2.7, n1190=194)},
    )


@pytest.fixture
def container(
    settings: Settings,
    pregnancy_repository: InMemoryPregnancyRepository,
    log_repository: InMemoryLogRepository,
    primary_source: FakeSource,
    secondary_source: FakeSource,
) -> AppContainer:
    cache = ResolutionCache(InMemoryProfileStore())
    food_resolver = FoodResolver(
        sources=[primary_source, secondary_source],
        cache=cache,
        ttl_seconds=settings.cache_ttl_seconds,
        timeout_seconds=1.0,
    )
    goal_resolver = GoalResolver(pregnancy_repository)
    log_service = NutritionLogService(
        resolver=food_resolver,
        goal_resolver=goal_resolver,
        repository=log_repository,
    )
    aggregation_engine = AggregationEngine(log_repository)
    progress_service = ProgressService(
        aggregation=aggregation_engine,
        goal_resolver=goal_resolver,
        ratio_cap=settings.progress_ratio_cap,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        resolution_cache=cache,
        food_resolver=food_resolver,
        goal_resolver=goal_resolver,
        log_service=log_service,
        aggregation_engine=aggregation_engine,
        progress_service=progress_service,
        close_resources=close_resources,
    )

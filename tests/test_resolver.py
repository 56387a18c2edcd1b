"""Tests for multi-source food resolution."""

import asyncio

import httpx
import pytest

from prenatal_nutrition.domain.errors import FoodNotFound, ResolutionUnavailable
from prenatal_nutrition.domain.foods import FoodProfile, FoodReference, ReferenceKind
from prenatal_nutrition.domain.nutrients import Nutrient
from prenatal_nutrition.services.cache import InMemoryProfileStore, ResolutionCache
from prenatal_nutrition.services.resolver import FoodResolver
from tests.conftest import BARCODE, FakeSource


def _resolver(*sources: FakeSource, timeout_seconds: float = 1.0) -> FoodResolver:
    return FoodResolver(
        sources=list(sources),
        cache=ResolutionCache(InMemoryProfileStore()),
        timeout_seconds=timeout_seconds,
    )


def test_primary_source_wins(primary_source, secondary_source) -> None:
    resolver = _resolver(primary_source, secondary_source)

    profile = asyncio.run(resolver.resolve(FoodReference.barcode(BARCODE)))

    assert profile.source_name == "openfoodfacts"
    assert profile.nutrients[Nutrient.FOLATE] == pytest.approx(300.0)
    assert profile.nutrients[Nutrient.IRON] == pytest.approx(8.0)
    assert profile.name == "Fortified cereal (Acme)"
    assert secondary_source.calls == 0


def test_primary_timeout_falls_back_without_merging(
    primary_source, secondary_source
) -> None:
    primary_source.delay_seconds = 0.5
    resolver = _resolver(primary_source, secondary_source, timeout_seconds=0.05)

    profile = asyncio.run(resolver.resolve(FoodReference.barcode(BARCODE)))

    assert profile.source_name == "usda_fdc"
    assert profile.nutrients[Nutrient.IRON] == pytest.approx(2.7)
    assert profile.nutrients[Nutrient.FOLATE] == pytest.approx(194.0)
    assert profile.nutrients[Nutrient.CHOLINE] is None


def test_primary_error_falls_back(primary_source, secondary_source) -> None:
    request = httpx.Request("GET", "https://world.openfoodfacts.org")
    primary_source.error = httpx.HTTPStatusError(
        "server error", request=request, response=httpx.Response(502, request=request)
    )
    resolver = _resolver(primary_source, secondary_source)

    profile = asyncio.run(resolver.resolve(FoodReference.barcode(BARCODE)))

    assert profile.source_name == "usda_fdc"


def test_partial_record_from_primary_is_not_completed_by_secondary(
    primary_source, secondary_source
) -> None:
    resolver = _resolver(primary_source, secondary_source)

    profile = asyncio.run(resolver.resolve(FoodReference.barcode(BARCODE)))

    assert profile.nutrients[Nutrient.CHOLINE] is None
    assert profile.nutrients[Nutrient.PROTEIN] is None


def test_all_sources_not_found_raises_food_not_found(
    primary_source, secondary_source
) -> None:
    resolver = _resolver(primary_source, secondary_source)

    with pytest.raises(FoodNotFound):
        asyncio.run(resolver.resolve(FoodReference.barcode("00000000")))

    assert primary_source.calls == 1
    assert secondary_source.calls == 1


def test_any_unavailable_source_makes_failure_retryable(
    primary_source, secondary_source
) -> None:
    primary_source.error = httpx.ConnectError("offline")
    resolver = _resolver(primary_source, secondary_source)

    with pytest.raises(ResolutionUnavailable) as excinfo:
        asyncio.run(resolver.resolve(FoodReference.barcode("00000000")))

    assert excinfo.value.failed_sources == ["openfoodfacts"]


def test_malformed_record_counts_as_unavailable(secondary_source) -> None:
    broken = FakeSource(
        name="openfoodfacts",
        schema_tag="openfoodfacts",
        barcode_records={BARCODE: "not a document"},  # type: ignore[dict-item]
    )
    resolver = _resolver(broken, secondary_source)

    profile = asyncio.run(resolver.resolve(FoodReference.barcode(BARCODE)))

    assert profile.source_name == "usda_fdc"


def test_no_sources_raises_unavailable() -> None:
    with pytest.raises(ResolutionUnavailable):
        asyncio.run(_resolver().resolve(FoodReference.name("spinach")))


def test_unsupported_kinds_are_skipped(primary_source, secondary_source) -> None:
    secondary_source.kinds = (ReferenceKind.NAME,)
    secondary_source.name_records = {
        "spinach": [secondary_source.barcode_records[BARCODE]]
    }
    primary_source.name_records = {}
    resolver = _resolver(primary_source, secondary_source)

    with pytest.raises(FoodNotFound):
        asyncio.run(resolver.resolve(FoodReference.barcode("00000000")))
    profile = asyncio.run(resolver.resolve(FoodReference.name("Spinach")))

    assert secondary_source.calls == 1
    assert profile.source_name == "usda_fdc"


def test_name_lookup_takes_first_search_hit(primary_source) -> None:
    resolver = _resolver(primary_source)

    profile = asyncio.run(resolver.resolve(FoodReference.name("  SPINACH ")))

    assert profile.source_id == "0000000000017"
    assert profile.nutrients[Nutrient.IRON] == pytest.approx(2.7)


def test_resolved_profiles_are_cached(primary_source, secondary_source) -> None:
    resolver = _resolver(primary_source, secondary_source)
    reference = FoodReference.barcode(BARCODE)

    first = asyncio.run(resolver.resolve(reference))
    second = asyncio.run(resolver.resolve(reference))

    assert first == second
    assert primary_source.calls == 1


def test_failures_are_not_cached(primary_source) -> None:
    primary_source.error = httpx.ConnectError("offline")
    resolver = _resolver(primary_source)
    reference = FoodReference.barcode(BARCODE)

    with pytest.raises(ResolutionUnavailable):
        asyncio.run(resolver.resolve(reference))
    primary_source.error = None
    profile = asyncio.run(resolver.resolve(reference))

    assert profile.source_name == "openfoodfacts"
    assert primary_source.calls == 2


def test_concurrent_resolutions_query_each_source_once(
    primary_source, secondary_source
) -> None:
    primary_source.delay_seconds = 0.05
    resolver = _resolver(primary_source, secondary_source)
    reference = FoodReference.barcode(BARCODE)

    async def run() -> list[FoodProfile]:
        return await asyncio.gather(*(resolver.resolve(reference) for _ in range(20)))

    profiles = asyncio.run(run())

    assert primary_source.calls == 1
    assert len({profile.id for profile in profiles}) == 1
    assert resolver.cache.in_flight_count() == 0

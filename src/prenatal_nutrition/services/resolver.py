"""Food resolution across cached and external nutrient sources."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from prenatal_nutrition.domain.errors import (
    FoodNotFound,
    MalformedSourceRecord,
    ResolutionUnavailable,
)
from prenatal_nutrition.domain.foods import FoodProfile, FoodReference, ReferenceKind
from prenatal_nutrition.services.cache import ResolutionCache
from prenatal_nutrition.services.normalizer import describe, normalize

_logger = logging.getLogger(__name__)


class NutrientSource(Protocol):
    """External provider of raw nutrient records."""

    name: str
    schema_tag: str

    def supports(self, kind: ReferenceKind) -> bool:
        """Return True when the source can look up this kind of reference."""

    async def lookup_by_barcode(self, code: str) -> dict[str, object] | None:
        """Return the raw record for a barcode, or None when unknown."""

    async def search_by_name(
        self, text: str, limit: int = 5
    ) -> list[dict[str, object]]:
        """Return raw records matching free text, best match first."""


@dataclass
class _ChainOutcome:
    not_found: list[str] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class FoodResolver:
    """Resolves references through the cache, then sources in priority order.

    The first source that returns a record wins even when some of its
    nutrients are unknown. Lower-priority sources are only asked when a
    higher one fails or does not know the food; results are never merged.
    """

    sources: Sequence[NutrientSource]
    cache: ResolutionCache
    ttl_seconds: int = 7 * 24 * 3600
    timeout_seconds: float = 5.0
    clock: Callable[[], datetime] = _utcnow

    async def resolve(self, reference: FoodReference) -> FoodProfile:
        """Return a profile for the reference."""
        cached = self.cache.get(reference)
        if cached is not None:
            return cached
        return await self.cache.single_flight(
            reference, lambda: self._resolve_uncached(reference)
        )

    async def _resolve_uncached(self, reference: FoodReference) -> FoodProfile:
        outcome = _ChainOutcome()
        for source in self.sources:
            if not source.supports(reference.kind):
                continue
            try:
                record = await asyncio.wait_for(
                    self._query(source, reference), timeout=self.timeout_seconds
                )
                if record is None:
                    outcome.not_found.append(source.name)
                    continue
                profile = self._build_profile(source, reference, record)
            except TimeoutError:
                _logger.warning(
                    "Source %s timed out after %ss for %s",
                    source.name,
                    self.timeout_seconds,
                    reference,
                )
                outcome.unavailable.append(source.name)
                continue
            except MalformedSourceRecord as exc:
                _logger.warning(
                    "Source %s returned a malformed record: %s", source.name, exc
                )
                outcome.unavailable.append(source.name)
                continue
            except Exception as exc:
                _logger.warning(
                    "Source %s failed for %s (status=%s): %s",
                    source.name,
                    reference,
                    _status_code_from_exception(exc),
                    exc,
                )
                outcome.unavailable.append(source.name)
                continue

            _logger.info(
                "Resolved %s from %s (%s nutrients known)",
                reference,
                source.name,
                profile.nutrients.known_count(),
            )
            self.cache.put(reference, profile, ttl_seconds=self.ttl_seconds)
            return profile

        if outcome.not_found and not outcome.unavailable:
            raise FoodNotFound(str(reference))
        raise ResolutionUnavailable(str(reference), outcome.unavailable)

    async def _query(
        self, source: NutrientSource, reference: FoodReference
    ) -> dict[str, object] | None:
        if reference.kind == ReferenceKind.BARCODE:
            return await source.lookup_by_barcode(reference.value)
        results = await source.search_by_name(reference.value, limit=1)
        return results[0] if results else None

    def _build_profile(
        self,
        source: NutrientSource,
        reference: FoodReference,
        record: dict[str, object],
    ) -> FoodProfile:
        nutrients = normalize(record, source.schema_tag)
        metadata = describe(record, source.schema_tag)
        return FoodProfile(
            reference=reference,
            source_id=metadata.source_id,
            source_name=source.name,
            name=metadata.name,
            nutrients=nutrients,
            reference_quantity=metadata.reference_quantity,
            reference_unit=metadata.reference_unit,
            resolved_at=self.clock(),
        )


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"

"""Error kinds raised by the nutrition engine."""

from datetime import date
from uuid import UUID


class NutritionEngineError(Exception):
    """Base class for errors scoped to a single engine operation."""


class MalformedSourceRecord(NutritionEngineError):
    """A provider returned a body that cannot be read as a document."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Malformed record from {source}: {reason}")
        self.source = source
        self.reason = reason


class FoodNotFound(NutritionEngineError):
    """Every source confirmed the food does not exist."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"No source knows {reference}")
        self.reference = reference


class ResolutionUnavailable(NutritionEngineError):
    """No source could answer; the lookup may be retried later."""

    def __init__(self, reference: str, failed_sources: list[str]) -> None:
        super().__init__(
            f"Could not resolve {reference}: unavailable sources "
            f"{', '.join(failed_sources) or 'none configured'}"
        )
        self.reference = reference
        self.failed_sources = failed_sources


class IncompatibleUnit(NutritionEngineError):
    """A quantity cannot be converted between two units."""

    def __init__(self, from_unit: str, to_unit: str) -> None:
        super().__init__(f"Cannot convert {from_unit!r} to {to_unit!r}")
        self.from_unit = from_unit
        self.to_unit = to_unit


class DateBeforePregnancyStart(NutritionEngineError):
    """A goal lookup was requested for a date before the pregnancy began."""

    def __init__(self, requested: date, start_date: date) -> None:
        super().__init__(
            f"{requested.isoformat()} is before pregnancy start "
            f"{start_date.isoformat()}"
        )
        self.requested = requested
        self.start_date = start_date


class PregnancyNotFound(NutritionEngineError):
    """The pregnancy id is unknown."""

    def __init__(self, pregnancy_id: UUID) -> None:
        super().__init__(f"Pregnancy {pregnancy_id} not found")
        self.pregnancy_id = pregnancy_id


class LogEntryNotFound(NutritionEngineError):
    """The log entry is unknown or has been tombstoned."""

    def __init__(self, entry_id: UUID) -> None:
        super().__init__(f"Log entry {entry_id} not found")
        self.entry_id = entry_id

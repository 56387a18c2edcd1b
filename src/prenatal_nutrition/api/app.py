"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from uuid import UUID

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from prenatal_nutrition.api.admin import router as admin_router
from prenatal_nutrition.api.models import (
    CorrectionRequest,
    GoalOverrideRequest,
    NutritionLogRequest,
)
from prenatal_nutrition.app_logging import configure_logging
from prenatal_nutrition.containers import AppContainer
from prenatal_nutrition.domain.errors import (
    DateBeforePregnancyStart,
    FoodNotFound,
    IncompatibleUnit,
    LogEntryNotFound,
    PregnancyNotFound,
    ResolutionUnavailable,
)
from prenatal_nutrition.domain.foods import FoodProfile, FoodReference
from prenatal_nutrition.domain.goals import NutrientGoal, NutrientGoalTable
from prenatal_nutrition.domain.logs import NutritionLogEntry
from prenatal_nutrition.domain.nutrients import Nutrient
from prenatal_nutrition.domain.progress import (
    DailyProgress,
    Granularity,
    NutrientProgress,
    PerNutrientTotals,
    PeriodProgress,
)

_MAX_TREND_DAYS = 366
_RETRY_AFTER_SECONDS = "30"


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(FoodNotFound)
    async def food_not_found(_: Request, exc: FoodNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "food_not_found",
                "detail": str(exc),
                "manual_entry_suggested": True,
            },
        )

    @app.exception_handler(ResolutionUnavailable)
    async def resolution_unavailable(
        _: Request, exc: ResolutionUnavailable
    ) -> JSONResponse:
        logger.warning("Resolution unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "resolution_unavailable",
                "detail": str(exc),
                "retryable": True,
            },
            headers={"Retry-After": _RETRY_AFTER_SECONDS},
        )

    @app.exception_handler(IncompatibleUnit)
    async def incompatible_unit(_: Request, exc: IncompatibleUnit) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "incompatible_unit", exc)

    @app.exception_handler(DateBeforePregnancyStart)
    async def date_before_start(
        _: Request, exc: DateBeforePregnancyStart
    ) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "date_before_pregnancy_start", exc
        )

    @app.exception_handler(PregnancyNotFound)
    async def pregnancy_not_found(_: Request, exc: PregnancyNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "pregnancy_not_found", exc)

    @app.exception_handler(LogEntryNotFound)
    async def entry_not_found(_: Request, exc: LogEntryNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "log_entry_not_found", exc)

    @app.exception_handler(ValueError)
    async def invalid_value(_: Request, exc: ValueError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_request", exc)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/foods/resolve")
    async def resolve_food(
        request: Request, barcode: str | None = None, name: str | None = None
    ) -> dict[str, object]:
        """Resolve a barcode or food name to a nutrient profile."""
        state_container: AppContainer = request.app.state.container
        reference = _reference_from_query(barcode, name)
        profile = await state_container.food_resolver.resolve(reference)
        return {"profile": _profile_dict(profile)}

    @app.post(
        "/pregnancies/{pregnancy_id}/nutrition-logs",
        status_code=status.HTTP_201_CREATED,
    )
    async def submit_nutrition_log(
        pregnancy_id: UUID, payload: NutritionLogRequest, request: Request
    ) -> dict[str, object]:
        """Log food for a pregnancy."""
        state_container: AppContainer = request.app.state.container
        entry = await state_container.log_service.submit(
            pregnancy_id=pregnancy_id,
            quantity=payload.quantity,
            unit=payload.unit,
            meal_type=payload.meal_type,
            logged_at=payload.logged_at or datetime.now(tz=UTC),
            food_reference=payload.food_reference(),
            manual_nutrients=payload.manual_payload(),
            manual_name=payload.manual_name,
        )
        return {"entry": _entry_dict(entry)}

    @app.get("/nutrition-logs/{entry_id}")
    async def get_nutrition_log(entry_id: UUID, request: Request) -> dict[str, object]:
        """Return a live log entry."""
        state_container: AppContainer = request.app.state.container
        return {"entry": _entry_dict(state_container.log_service.get(entry_id))}

    @app.post("/nutrition-logs/{entry_id}/correction")
    async def correct_nutrition_log(
        entry_id: UUID, payload: CorrectionRequest, request: Request
    ) -> dict[str, object]:
        """Replace a log entry with a corrected copy."""
        state_container: AppContainer = request.app.state.container
        replacement = state_container.log_service.correct(
            entry_id,
            quantity=payload.quantity,
            unit=payload.unit,
            meal_type=payload.meal_type,
            logged_at=payload.logged_at,
        )
        return {"entry": _entry_dict(replacement), "replaced_entry_id": str(entry_id)}

    @app.delete("/nutrition-logs/{entry_id}")
    async def delete_nutrition_log(entry_id: UUID, request: Request) -> dict[str, str]:
        """Tombstone a log entry."""
        state_container: AppContainer = request.app.state.container
        state_container.log_service.delete(entry_id)
        return {"status": "deleted"}

    @app.get("/pregnancies/{pregnancy_id}/progress/daily")
    async def daily_progress(
        pregnancy_id: UUID, request: Request, day: date = Query(alias="date")
    ) -> dict[str, object]:
        """Return totals, goals and progress for one day."""
        state_container: AppContainer = request.app.state.container
        result = state_container.progress_service.get_daily_progress(pregnancy_id, day)
        return _daily_dict(result)

    @app.get("/pregnancies/{pregnancy_id}/progress/trend")
    async def progress_trend(
        pregnancy_id: UUID,
        request: Request,
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAY,
    ) -> dict[str, object]:
        """Return per-period progress between two dates, inclusive."""
        if (end - start).days + 1 > _MAX_TREND_DAYS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Range is limited to {_MAX_TREND_DAYS} days",
            )
        state_container: AppContainer = request.app.state.container
        series = state_container.progress_service.get_trend_over_range(
            pregnancy_id, start, end, granularity
        )
        return {
            "granularity": granularity.value,
            "periods": [_period_dict(period) for period in series],
        }

    @app.get("/pregnancies/{pregnancy_id}/goals")
    async def goals(
        pregnancy_id: UUID, request: Request, day: date = Query(alias="date")
    ) -> dict[str, object]:
        """Return the goal table applicable on a date."""
        state_container: AppContainer = request.app.state.container
        table = state_container.goal_resolver.goals_for(pregnancy_id, day)
        return _goal_table_dict(table)

    @app.post(
        "/pregnancies/{pregnancy_id}/goal-overrides",
        status_code=status.HTTP_201_CREATED,
    )
    async def add_goal_override(
        pregnancy_id: UUID, payload: GoalOverrideRequest, request: Request
    ) -> dict[str, object]:
        """Override one nutrient goal for a pregnancy."""
        state_container: AppContainer = request.app.state.container
        override = state_container.goal_resolver.add_override(
            pregnancy_id,
            nutrient=payload.nutrient,
            daily_amount=payload.daily_amount,
            unit=payload.unit,
            trimester=payload.trimester,
        )
        return {
            "nutrient": override.nutrient.value,
            "daily_amount": override.daily_amount,
            "unit": override.unit,
            "trimester": override.trimester,
            "created_at": override.created_at.isoformat(),
        }

    return app


def _error(status_code: int, code: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": code, "detail": str(exc)}
    )


def _reference_from_query(barcode: str | None, name: str | None) -> FoodReference:
    if (barcode is None) == (name is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide exactly one of barcode or name",
        )
    if barcode is not None:
        return FoodReference.barcode(barcode)
    return FoodReference.name(name or "")


def _profile_dict(profile: FoodProfile) -> dict[str, object]:
    return profile.to_snapshot()


def _entry_dict(entry: NutritionLogEntry) -> dict[str, object]:
    return {
        "id": str(entry.id),
        "pregnancy_id": str(entry.pregnancy_id),
        "logged_at": entry.logged_at.isoformat(),
        "quantity": entry.quantity,
        "unit": entry.unit,
        "meal_type": entry.meal_type.value,
        "created_at": entry.created_at.isoformat(),
        "replaces_entry_id": (
            str(entry.replaces_entry_id) if entry.replaces_entry_id else None
        ),
        "food_profile": _profile_dict(entry.food_profile),
    }


def _totals_dict(totals: PerNutrientTotals) -> dict[str, object]:
    return {
        "entry_count": totals.entry_count,
        "partial_count": totals.partial_count,
        "unknown_count": totals.unknown_count,
        "nutrients": {
            nutrient.value: {
                "amount": total.amount,
                "unit": total.unit,
                "status": total.status.value,
            }
            for nutrient, total in totals.totals.items()
        },
    }


def _goals_dict(goals: Mapping[Nutrient, NutrientGoal]) -> dict[str, object]:
    return {
        nutrient.value: {"amount": goal.daily_amount, "unit": goal.unit}
        for nutrient, goal in goals.items()
    }


def _goal_table_dict(table: NutrientGoalTable) -> dict[str, object]:
    return {"trimester": table.trimester, "goals": _goals_dict(table.goals)}


def _progress_dict(
    progress: Mapping[Nutrient, NutrientProgress],
) -> dict[str, object]:
    return {
        nutrient.value: {
            "ratio": item.ratio,
            "status": item.status.value,
            "amount": item.amount,
            "goal_amount": item.goal_amount,
            "unit": item.unit,
        }
        for nutrient, item in progress.items()
    }


def _daily_dict(result: DailyProgress) -> dict[str, object]:
    return {
        "date": result.day.isoformat(),
        "trimester": result.goals.trimester,
        "totals": _totals_dict(result.totals),
        "goals": _goals_dict(result.goals.goals),
        "progress": _progress_dict(result.progress),
    }


def _period_dict(period: PeriodProgress) -> dict[str, object]:
    return {
        "start_date": period.start_date.isoformat(),
        "end_date": period.end_date.isoformat(),
        "days": period.days,
        "totals": _totals_dict(period.totals),
        "goals": _goals_dict(period.goals),
        "progress": _progress_dict(period.progress),
    }

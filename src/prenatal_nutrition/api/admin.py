"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from prenatal_nutrition.domain.foods import FoodReference

if TYPE_CHECKING:
    from prenatal_nutrition.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health(request: Request) -> dict[str, object]:
    """Admin health check with resolver state."""
    container: AppContainer = request.app.state.container
    return {
        "status": "ok",
        "sources": [source.name for source in container.food_resolver.sources],
        "in_flight_resolutions": container.resolution_cache.in_flight_count(),
    }


@router.get("/cache", dependencies=[Depends(require_admin)])
async def cache_entry(
    request: Request, barcode: str | None = None, name: str | None = None
) -> dict[str, object]:
    """Inspect the cached profile for a reference, including expired ones."""
    if (barcode is None) == (name is None):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide exactly one of barcode or name",
        )
    reference = (
        FoodReference.barcode(barcode)
        if barcode is not None
        else FoodReference.name(name or "")
    )
    container: AppContainer = request.app.state.container
    entry = container.resolution_cache.peek(reference)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {
        "cache_key": reference.cache_key,
        "expires_at": entry.expires_at.isoformat(),
        "expired": datetime.now(tz=UTC) >= entry.expires_at,
        "profile": entry.profile.to_snapshot(),
    }

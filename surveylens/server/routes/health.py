"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request

from surveylens import __version__

router = APIRouter(prefix="/api")


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    """Server status, version and memo cache occupancy."""
    cache = request.app.state.series_cache
    return {
        "status": "ok",
        "version": __version__,
        "cache": cache.stats(),
    }

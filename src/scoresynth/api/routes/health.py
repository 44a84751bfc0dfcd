"""GET /api/v1/health — server health check."""

from __future__ import annotations

from fastapi import APIRouter

from scoresynth import __version__
from scoresynth.api.schemas import ExportFormatChoice, HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        formats=[f.value for f in ExportFormatChoice],
    )

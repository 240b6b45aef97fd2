"""
API routes for the Mailpulse status service.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel

from mailpulse.application.pipeline import Pipeline
from mailpulse.domain.errors import StoreUnavailableError
from mailpulse.domain.models import ScopeStatus
from mailpulse.infrastructure import get_settings

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response with service status."""

    status: str
    timestamp: str
    services: dict[str, str]


class ResetResponse(BaseModel):
    """Result of an admin counter reset."""

    scope: str
    previous_total: int


def get_pipeline(request: Request) -> Pipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(status="healthy", timestamp=_now(), version=get_settings().app_version)


@router.get("/ready", response_model=ReadinessResponse)
def ready(pipeline: Pipeline = Depends(get_pipeline)) -> ReadinessResponse:
    """Readiness probe: the shared store must answer."""
    store_ok = pipeline.accumulator.store.ping()
    return ReadinessResponse(
        status="ready" if store_ok else "degraded",
        timestamp=_now(),
        services={"store": "healthy" if store_ok else "unhealthy"},
    )


@router.get("/scopes/{scope_id}", response_model=ScopeStatus)
def scope_status(scope_id: str, pipeline: Pipeline = Depends(get_pipeline)) -> ScopeStatus:
    """Current total, lock state and pending batch size for a scope."""
    try:
        return pipeline.status(scope_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.post("/scopes/{scope_id}/reset", response_model=ResetResponse)
def reset_scope(scope_id: str, pipeline: Pipeline = Depends(get_pipeline)) -> ResetResponse:
    """Zero a scope's counter without dispatching. The pending batch is kept."""
    try:
        previous = pipeline.accumulator.reset_to_zero(scope_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    logger.warning(f"Admin reset of scope {scope_id} (was {previous})")
    return ResetResponse(scope=scope_id, previous_total=previous)

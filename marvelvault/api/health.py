"""
Health check endpoints.

/health is a plain liveness probe. /ready confirms the console can serve
requests: the catalog and migration log tables must be reachable.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.database import get_session
from marvelvault.db.operations import count_active_migrations, count_card_sets

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness or readiness status, with catalog figures when ready."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    database: str | None = None
    card_sets: int | None = None
    active_card_sets: int | None = None
    rollbackable_migrations: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not touch the database."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HealthResponse:
    """
    Readiness probe.

    Reads the set and migration log counts the console dashboards show.
    Returns 503 when either table cannot be queried.
    """
    try:
        card_sets = await count_card_sets(session)
        active_card_sets = await count_card_sets(session, active_only=True)
        rollbackable = await count_active_migrations(session)
    except SQLAlchemyError as exc:
        logger.warning("Readiness check failed: %s", type(exc).__name__)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="unavailable")

    return HealthResponse(
        status="ready",
        database="connected",
        card_sets=card_sets,
        active_card_sets=active_card_sets,
        rollbackable_migrations=rollbackable,
    )

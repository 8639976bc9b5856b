"""
Catalog lookups used by the console pickers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.database import get_session
from marvelvault.db.operations import list_main_sets

router = APIRouter(tags=["catalog"])


class MainSetResponse(BaseModel):
    """A main set as offered when reparenting a card set."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    year: int | None = None
    slug: str
    thumbnail_image_url: str | None = None


@router.get("/main-sets", response_model=list[MainSetResponse])
async def get_main_sets(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[MainSetResponse]:
    """All main sets, newest year first."""
    main_sets = await list_main_sets(session)
    return [MainSetResponse.model_validate(m) for m in main_sets]

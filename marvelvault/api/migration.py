"""
Admin set-migration console endpoints.

Browse legacy and canonical sets, preview and execute migrations,
roll them back, and archive/unarchive/delete/promote sets. Request and
response bodies use camelCase field names.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.api.deps import get_admin_principal
from marvelvault.config import MAX_SAMPLE_CARDS, settings
from marvelvault.db.database import get_session
from marvelvault.db.operations import (
    get_card_set,
    get_sample_cards,
    list_card_sets,
    list_migration_logs,
)
from marvelvault.models.failure import NotFoundError
from marvelvault.models.migration import MigrationRequest, SetActionResult
from marvelvault.models.principal import AdminPrincipal
from marvelvault.services.conflict_detector import preview_migration
from marvelvault.services.migration_executor import execute_migration
from marvelvault.services.rollback import rollback_migration
from marvelvault.services.set_lifecycle import (
    archive_set,
    delete_set,
    promote_to_canonical,
    unarchive_set,
)

router = APIRouter(
    prefix="/admin/migration",
    tags=["admin-migration"],
    dependencies=[Depends(get_admin_principal)],
)

Admin = Annotated[AdminPrincipal, Depends(get_admin_principal)]
DbSession = Annotated[AsyncSession, Depends(get_session)]


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Response models ---


class SetSummaryResponse(CamelModel):
    id: int
    name: str
    year: int
    slug: str
    main_set_id: int | None = None
    image_url: str | None = None
    is_active: bool
    is_canonical: bool
    is_insert_subset: bool
    main_set_name: str | None = None
    main_set_thumbnail: str | None = None
    card_count: int = 0
    suggested_insert_subset: bool = Field(
        default=False,
        description="Name looks like an insert subset but the set is not flagged as one",
    )


class SetListResponse(CamelModel):
    sets: list[SetSummaryResponse]
    count: int


class SampleCardResponse(CamelModel):
    id: int
    card_number: str
    name: str
    variation: str | None = None
    is_insert: bool
    front_image_url: str | None = None
    estimated_value: Decimal | None = None


class SampleCardsResponse(CamelModel):
    set_id: int
    cards: list[SampleCardResponse]


class ConflictResponse(CamelModel):
    card_number: str
    source_card_id: int
    source_card_name: str
    destination_card_id: int
    destination_card_name: str


class PreviewResponse(CamelModel):
    source_set_id: int
    destination_set_id: int
    source_card_count: int
    destination_card_count: int
    conflict_count: int
    conflicts: list[ConflictResponse]
    can_migrate: bool
    destination_is_insert_subset: bool
    destination_is_canonical: bool


class MigrationResultResponse(CamelModel):
    log_id: int
    source_set_id: int
    destination_set_id: int
    moved_card_count: int
    insert_forced: bool
    conflict_count: int
    message: str


class MigrationLogResponse(CamelModel):
    id: int
    admin_user_id: int
    admin_username: str | None = None
    source_set_id: int
    source_set_name: str
    destination_set_id: int
    destination_set_name: str
    moved_card_count: int
    insert_forced: bool
    notes: str | None = None
    status: str
    rolled_back_at: datetime | None = None
    created_at: datetime | None = None
    can_rollback: bool


class MigrationLogListResponse(CamelModel):
    logs: list[MigrationLogResponse]
    count: int


class RollbackResponse(CamelModel):
    log_id: int
    restored_card_count: int
    skipped_card_count: int
    skipped_card_ids: list[int]
    partial: bool
    message: str


class SetActionResponse(CamelModel):
    set_id: int
    message: str
    card_set: SetSummaryResponse | None = None


# --- Request models ---


class PreviewRequest(CamelModel):
    source_set_id: int
    destination_set_id: int


class ExecuteRequest(CamelModel):
    source_set_id: int
    destination_set_id: int
    force_insert: bool = False
    allow_conflicts: str | None = Field(
        default=None,
        description="Must be exactly 'MIGRATE WITH CONFLICTS' when conflicts exist",
    )
    notes: str | None = None
    new_main_set_id: int | None = None
    new_set_name: str | None = None


class ArchiveRequest(CamelModel):
    confirm_with_cards: str | None = Field(
        default=None,
        description="Must be exactly 'ARCHIVE WITH CARDS' when the set has cards",
    )


class DeleteRequest(CamelModel):
    confirm_delete: str | None = Field(
        default=None,
        description="Must be exactly 'DELETE SET'",
    )


class PromoteRequest(CamelModel):
    confirm_promotion: str | None = Field(
        default=None,
        description="Must be exactly 'PROMOTE TO CANONICAL'",
    )
    year: int | None = None
    main_set_id: int | None = None
    new_name: str | None = None


def _set_action_response(result: SetActionResult) -> SetActionResponse:
    return SetActionResponse.model_validate(result)


# --- Browsing ---


@router.get("/sets", response_model=SetListResponse)
async def list_source_sets(
    session: DbSession,
    search: str | None = None,
    year: int | None = None,
    has_cards: Annotated[bool, Query(alias="hasCards")] = False,
    show_archived: Annotated[bool, Query(alias="showArchived")] = False,
) -> SetListResponse:
    """
    List sets that can be migrated from.

    Archived sets are hidden unless showArchived=true.
    """
    summaries = await list_card_sets(
        session,
        search=search,
        year=year,
        has_cards=has_cards,
        show_archived=show_archived,
        limit=settings.set_list_limit,
    )
    sets = [SetSummaryResponse.model_validate(s) for s in summaries]
    return SetListResponse(sets=sets, count=len(sets))


@router.get("/canonical-sets", response_model=SetListResponse)
async def list_canonical_sets(
    session: DbSession,
    search: str | None = None,
    year: int | None = None,
) -> SetListResponse:
    """List canonical sets that can be migrated into."""
    summaries = await list_card_sets(
        session,
        search=search,
        year=year,
        canonical_only=True,
        limit=settings.set_list_limit,
    )
    sets = [SetSummaryResponse.model_validate(s) for s in summaries]
    return SetListResponse(sets=sets, count=len(sets))


@router.get("/sets/{set_id}/sample-cards", response_model=SampleCardsResponse)
async def list_sample_cards(
    set_id: int,
    session: DbSession,
    limit: Annotated[int | None, Query(ge=1, le=MAX_SAMPLE_CARDS)] = None,
) -> SampleCardsResponse:
    """
    First few cards of a set for visual confirmation.

    Read-only. Returns 404 if the set does not exist.
    """
    if await get_card_set(session, set_id) is None:
        raise NotFoundError("Card set", set_id)

    cards = await get_sample_cards(session, set_id, limit or settings.sample_cards_limit)
    return SampleCardsResponse(
        set_id=set_id,
        cards=[SampleCardResponse.model_validate(c) for c in cards],
    )


# --- Migration ---


@router.post("/preview", response_model=PreviewResponse)
async def preview(request: PreviewRequest, session: DbSession) -> PreviewResponse:
    """Compute counts and card-number conflicts for a prospective migration."""
    result = await preview_migration(session, request.source_set_id, request.destination_set_id)
    return PreviewResponse.model_validate(result)


@router.post("/execute", response_model=MigrationResultResponse)
async def execute(
    request: ExecuteRequest,
    session: DbSession,
    admin: Admin,
) -> MigrationResultResponse:
    """
    Move every card of the source set into the destination set.

    Conflicts are recomputed server-side. Unconfirmed conflicts return a
    409 refusal whose data carries the full conflict list.
    """
    result = await execute_migration(
        session,
        admin,
        MigrationRequest(
            source_set_id=request.source_set_id,
            destination_set_id=request.destination_set_id,
            force_insert=request.force_insert,
            allow_conflicts=request.allow_conflicts,
            notes=request.notes,
            new_main_set_id=request.new_main_set_id,
            new_set_name=request.new_set_name,
        ),
    )
    return MigrationResultResponse.model_validate(result)


@router.get("/logs", response_model=MigrationLogListResponse)
async def list_logs(
    session: DbSession,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> MigrationLogListResponse:
    """Migration history, newest first."""
    entries = await list_migration_logs(session, limit=limit)
    logs = [MigrationLogResponse.model_validate(e) for e in entries]
    return MigrationLogListResponse(logs=logs, count=len(logs))


@router.post("/rollback/{log_id}", response_model=RollbackResponse)
async def rollback(log_id: int, session: DbSession, admin: Admin) -> RollbackResponse:
    """
    Roll back a migration.

    Partial rollbacks (cards that have since left the destination) are
    reported with partial=true and the skipped card ids.
    """
    result = await rollback_migration(session, admin, log_id)
    return RollbackResponse.model_validate(result)


# --- Set lifecycle ---


@router.post("/archive-set/{set_id}", response_model=SetActionResponse)
async def archive(
    set_id: int,
    session: DbSession,
    admin: Admin,
    request: ArchiveRequest | None = None,
) -> SetActionResponse:
    """Hide a set from users. Sets with cards need 'ARCHIVE WITH CARDS'."""
    confirm = request.confirm_with_cards if request else None
    return _set_action_response(await archive_set(session, admin, set_id, confirm))


@router.post("/unarchive-set/{set_id}", response_model=SetActionResponse)
async def unarchive(set_id: int, session: DbSession, admin: Admin) -> SetActionResponse:
    """Make an archived set visible again."""
    return _set_action_response(await unarchive_set(session, admin, set_id))


@router.delete("/delete-set/{set_id}", response_model=SetActionResponse)
async def delete(
    set_id: int,
    session: DbSession,
    admin: Admin,
    request: DeleteRequest | None = None,
) -> SetActionResponse:
    """Permanently delete an empty, non-canonical set. Needs 'DELETE SET'."""
    confirm = request.confirm_delete if request else None
    return _set_action_response(await delete_set(session, admin, set_id, confirm))


@router.post("/promote-to-canonical/{set_id}", response_model=SetActionResponse)
async def promote(
    set_id: int,
    request: PromoteRequest,
    session: DbSession,
    admin: Admin,
) -> SetActionResponse:
    """Mark a set canonical. Needs 'PROMOTE TO CANONICAL'."""
    result = await promote_to_canonical(
        session,
        admin,
        set_id,
        request.confirm_promotion,
        year=request.year,
        main_set_id=request.main_set_id,
        new_name=request.new_name,
    )
    return _set_action_response(result)

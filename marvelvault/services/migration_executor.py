"""
Set migration executor.

Moves every card of a source set into a destination set by re-pointing
each card's set_id. Card rows are never created or deleted, so user
collections (which reference cards by id) stay intact.

All checks run before the first write. Writes are flushed but not
committed: the request transaction commits the card moves, the optional
destination rename/reparent and the audit log together, or none of them.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.operations import (
    create_migration_log,
    get_main_set,
    lock_card_sets,
    reassign_cards,
    rename_card_set,
)
from marvelvault.models.confirmation import ConfirmationPhrase, is_confirmed
from marvelvault.models.failure import (
    FailureKind,
    MigrationConflictError,
    NotFoundError,
    ValidationFailedError,
)
from marvelvault.models.migration import MigrationRequest, MigrationResult
from marvelvault.models.principal import AdminPrincipal
from marvelvault.services.conflict_detector import build_preview

logger = logging.getLogger(__name__)


async def execute_migration(
    session: AsyncSession,
    principal: AdminPrincipal,
    request: MigrationRequest,
) -> MigrationResult:
    """
    Execute a set migration.

    Conflicts are recomputed here; if any exist, `allow_conflicts` must be
    exactly "MIGRATE WITH CONFLICTS". A destination flagged as an insert
    subset forces is_insert on every moved card even without force_insert.

    Raises:
        ValidationFailedError: identical sets, empty source, blank new name
        NotFoundError: source, destination or new main set missing
        MigrationConflictError: unconfirmed card-number conflicts
    """
    if request.source_set_id == request.destination_set_id:
        raise ValidationFailedError(
            "Source and destination must be different sets",
            kind=FailureKind.IDENTICAL_SETS,
        )

    locked = await lock_card_sets(session, request.source_set_id, request.destination_set_id)
    source = locked[request.source_set_id]
    destination = locked[request.destination_set_id]
    if source is None:
        raise NotFoundError("Source set", request.source_set_id)
    if destination is None:
        raise NotFoundError("Destination set", request.destination_set_id)

    preview, source_cards = await build_preview(session, source, destination)

    if preview.source_card_count == 0:
        raise ValidationFailedError(
            f"Source set '{source.name}' has no cards to migrate",
            kind=FailureKind.EMPTY_SOURCE,
        )

    if preview.conflict_count > 0 and not is_confirmed(
        ConfirmationPhrase.MIGRATE_WITH_CONFLICTS, request.allow_conflicts
    ):
        logger.warning(
            "Migration %d -> %d refused: %d unconfirmed conflicts",
            source.id,
            destination.id,
            preview.conflict_count,
        )
        raise MigrationConflictError(preview, ConfirmationPhrase.MIGRATE_WITH_CONFLICTS.value)

    new_name: str | None = None
    if request.new_set_name is not None:
        new_name = request.new_set_name.strip()
        if not new_name:
            raise ValidationFailedError("New set name cannot be blank")

    if request.new_main_set_id is not None:
        main_set = await get_main_set(session, request.new_main_set_id)
        if main_set is None:
            raise NotFoundError("Main set", request.new_main_set_id)

    insert_forced = request.force_insert or destination.is_insert_subset

    snapshot = {card.id: card.is_insert for card in source_cards}
    moved = await reassign_cards(
        session,
        snapshot.keys(),
        destination.id,
        is_insert=True if insert_forced else None,
        from_set_id=source.id,
    )
    if moved != len(snapshot):
        # Another writer changed the source between read and update
        raise RuntimeError(f"Expected to move {len(snapshot)} cards, moved {moved}")

    if request.new_main_set_id is not None:
        destination.main_set_id = request.new_main_set_id
    if new_name is not None and new_name != destination.name:
        await rename_card_set(session, destination, new_name)

    log = await create_migration_log(
        session,
        source_set_id=source.id,
        destination_set_id=destination.id,
        admin_user_id=principal.user_id,
        moved_cards=snapshot,
        insert_forced=insert_forced,
        notes=request.notes,
    )

    logger.info(
        "Migration %d by admin %d: moved %d cards from set %d to set %d (insert_forced=%s)",
        log.id,
        principal.user_id,
        moved,
        source.id,
        destination.id,
        insert_forced,
    )

    return MigrationResult(
        log_id=log.id,
        source_set_id=source.id,
        destination_set_id=destination.id,
        moved_card_count=moved,
        insert_forced=insert_forced,
        conflict_count=preview.conflict_count,
        message=f"Migrated {moved} cards from '{source.name}' to '{destination.name}'",
    )

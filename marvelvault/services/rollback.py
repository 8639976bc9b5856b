"""
Compensating rollback of a migration.

Uses the per-card snapshot written with the migration log, so only cards
moved by that migration are touched. Cards that have since left the
destination (for example through a later migration) are skipped and
reported rather than pulled back.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.operations import (
    get_card_ids_in_set,
    get_migration_log,
    get_migration_log_cards,
    lock_card_sets,
    reassign_cards,
)
from marvelvault.models.db import MIGRATION_STATUS_ACTIVE, MIGRATION_STATUS_ROLLED_BACK
from marvelvault.models.failure import FailureKind, NotFoundError, ValidationFailedError
from marvelvault.models.migration import RollbackResult
from marvelvault.models.principal import AdminPrincipal

logger = logging.getLogger(__name__)


async def rollback_migration(
    session: AsyncSession,
    principal: AdminPrincipal,
    log_id: int,
) -> RollbackResult:
    """
    Move a migration's cards back to the source set.

    Each card still in the destination returns to the source. is_insert
    is reset only on cards a forced migration flagged; flags changed
    after the migration are left alone. Both sets are locked for the
    move. The log is marked rolled_back.

    Raises:
        NotFoundError: log or source set missing
        ValidationFailedError: log already rolled back
    """
    log = await get_migration_log(session, log_id, for_update=True)
    if log is None:
        raise NotFoundError("Migration log", log_id)
    if log.status != MIGRATION_STATUS_ACTIVE:
        raise ValidationFailedError(
            f"Migration {log_id} was already rolled back",
            kind=FailureKind.ALREADY_ROLLED_BACK,
        )

    locked = await lock_card_sets(session, log.source_set_id, log.destination_set_id)
    source = locked[log.source_set_id]
    if source is None:
        raise NotFoundError("Source set", log.source_set_id)

    snapshot = await get_migration_log_cards(session, log.id)
    still_in_destination = await get_card_ids_in_set(
        session, log.destination_set_id, (row.card_id for row in snapshot)
    )

    # Only a forced migration changed is_insert, and only on cards that were not inserts
    clear_insert: list[int] = []
    keep_flag: list[int] = []
    skipped: list[int] = []
    for row in snapshot:
        if row.card_id not in still_in_destination:
            skipped.append(row.card_id)
        elif log.insert_forced and not row.previous_is_insert:
            clear_insert.append(row.card_id)
        else:
            keep_flag.append(row.card_id)

    restored = 0
    for card_ids, is_insert in ((clear_insert, False), (keep_flag, None)):
        restored += await reassign_cards(
            session,
            card_ids,
            source.id,
            is_insert=is_insert,
            from_set_id=log.destination_set_id,
        )
    if restored != len(clear_insert) + len(keep_flag):
        # Another writer changed the destination between read and update
        raise RuntimeError(
            f"Expected to restore {len(clear_insert) + len(keep_flag)} cards, "
            f"restored {restored}"
        )

    log.status = MIGRATION_STATUS_ROLLED_BACK
    log.rolled_back_at = datetime.now(UTC)
    await session.flush()

    if skipped:
        logger.warning(
            "Rollback of migration %d by admin %d was partial: %d cards no longer in set %d",
            log.id,
            principal.user_id,
            len(skipped),
            log.destination_set_id,
        )
        message = (
            f"Restored {restored} of {len(snapshot)} cards to '{source.name}'. "
            f"{len(skipped)} cards had already left the destination set and were not moved."
        )
    else:
        logger.info(
            "Rolled back migration %d by admin %d: restored %d cards to set %d",
            log.id,
            principal.user_id,
            restored,
            source.id,
        )
        message = f"Restored {restored} cards to '{source.name}'"

    return RollbackResult(
        log_id=log.id,
        restored_card_count=restored,
        skipped_card_ids=skipped,
        message=message,
    )

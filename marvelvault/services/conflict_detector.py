"""
Migration conflict detection.

Two cards collide when the source and destination sets both contain
the same card number. Conflicts are reported in source-card order.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.operations import get_card_set, get_cards_in_set
from marvelvault.models.db import CardDB, CardSetDB
from marvelvault.models.failure import NotFoundError
from marvelvault.models.migration import CardConflict, MigrationPreview

logger = logging.getLogger(__name__)


def detect_conflicts(
    source_cards: Iterable[CardDB],
    destination_cards: Iterable[CardDB],
) -> list[CardConflict]:
    """
    Find source cards whose card number already exists in the destination.

    One conflict per colliding source card. If the destination holds the
    same number more than once, the first destination card is reported.
    """
    by_number: dict[str, CardDB] = {}
    for card in destination_cards:
        by_number.setdefault(card.card_number, card)

    conflicts: list[CardConflict] = []
    for card in source_cards:
        match = by_number.get(card.card_number)
        if match is None:
            continue
        conflicts.append(
            CardConflict(
                card_number=card.card_number,
                source_card_id=card.id,
                source_card_name=card.name,
                destination_card_id=match.id,
                destination_card_name=match.name,
            )
        )
    return conflicts


async def build_preview(
    session: AsyncSession,
    source: CardSetDB,
    destination: CardSetDB,
) -> tuple[MigrationPreview, list[CardDB]]:
    """
    Compute the preview for already-loaded sets.

    Also returns the source cards so the executor moves exactly the
    cards it checked.
    """
    source_cards = await get_cards_in_set(session, source.id)
    if source.id == destination.id:
        destination_cards = source_cards
        conflicts: list[CardConflict] = []
    else:
        destination_cards = await get_cards_in_set(session, destination.id)
        conflicts = detect_conflicts(source_cards, destination_cards)

    preview = MigrationPreview(
        source_set_id=source.id,
        destination_set_id=destination.id,
        source_card_count=len(source_cards),
        destination_card_count=len(destination_cards),
        conflicts=conflicts,
        destination_is_insert_subset=destination.is_insert_subset,
        destination_is_canonical=destination.is_canonical,
    )
    return preview, source_cards


async def preview_migration(
    session: AsyncSession,
    source_set_id: int,
    destination_set_id: int,
) -> MigrationPreview:
    """
    Preview migrating every card of the source set into the destination.

    Raises NotFoundError if either set does not exist.
    """
    source = await get_card_set(session, source_set_id)
    if source is None:
        raise NotFoundError("Source set", source_set_id)
    destination = await get_card_set(session, destination_set_id)
    if destination is None:
        raise NotFoundError("Destination set", destination_set_id)

    preview, _ = await build_preview(session, source, destination)

    logger.debug(
        "Preview %d -> %d: %d source cards, %d conflicts",
        source_set_id,
        destination_set_id,
        preview.source_card_count,
        preview.conflict_count,
    )
    return preview

"""
Set lifecycle operations: archive, unarchive, delete, promote to canonical.

Lifecycle flags of a card set:

    {non-canonical} --promote--> {canonical}
    {active} <--archive/unarchive--> {inactive}
    {empty, non-canonical} --delete--> gone

Canonical sets can never be deleted. Destructive transitions are gated
by an exact confirmation phrase. Guards that make an action impossible
(cards present, canonical set, user ownership) are checked in addition
to the phrase, never instead of it.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.config import MAX_SET_YEAR, MIN_SET_YEAR
from marvelvault.db.operations import (
    count_cards_in_set,
    count_collection_references,
    delete_card_set,
    get_card_set,
    get_main_set,
    get_set_summary,
    rename_card_set,
    unique_slug,
)
from marvelvault.models.confirmation import ConfirmationPhrase, require_confirmation
from marvelvault.models.db import CardSetDB
from marvelvault.models.failure import (
    FailureKind,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationFailedError,
)
from marvelvault.models.migration import SetActionResult
from marvelvault.models.principal import AdminPrincipal

logger = logging.getLogger(__name__)


async def _load_set(session: AsyncSession, set_id: int) -> CardSetDB:
    card_set = await get_card_set(session, set_id, for_update=True)
    if card_set is None:
        raise NotFoundError("Card set", set_id)
    return card_set


async def _result(session: AsyncSession, card_set: CardSetDB, message: str) -> SetActionResult:
    await session.flush()
    return SetActionResult(
        set_id=card_set.id,
        message=message,
        card_set=await get_set_summary(session, card_set.id),
    )


async def archive_set(
    session: AsyncSession,
    principal: AdminPrincipal,
    set_id: int,
    confirm_with_cards: str | None = None,
) -> SetActionResult:
    """
    Hide a set from regular users.

    An empty set archives without confirmation. A set with cards needs
    "ARCHIVE WITH CARDS" and must have no cards in any user collection.
    """
    card_set = await _load_set(session, set_id)

    card_count = await count_cards_in_set(session, card_set.id)
    if card_count > 0:
        require_confirmation(ConfirmationPhrase.ARCHIVE_WITH_CARDS, confirm_with_cards)

        references = await count_collection_references(session, card_set.id)
        if references > 0:
            raise ReferentialIntegrityError(
                kind=FailureKind.CARDS_OWNED_BY_USERS,
                message=f"Cannot archive '{card_set.name}': its cards are in user collections",
                detail=f"{references} collection entries reference cards in this set",
                suggestion="Migrate the cards to a canonical set first.",
            )

    card_set.is_active = False
    logger.info(
        "Admin %d archived set %d (%s) with %d cards",
        principal.user_id,
        card_set.id,
        card_set.name,
        card_count,
    )
    return await _result(session, card_set, f"Archived '{card_set.name}'")


async def unarchive_set(
    session: AsyncSession,
    principal: AdminPrincipal,
    set_id: int,
) -> SetActionResult:
    """Make an archived set visible again. Always allowed."""
    card_set = await _load_set(session, set_id)
    card_set.is_active = True
    logger.info("Admin %d unarchived set %d (%s)", principal.user_id, card_set.id, card_set.name)
    return await _result(session, card_set, f"Restored '{card_set.name}'")


async def delete_set(
    session: AsyncSession,
    principal: AdminPrincipal,
    set_id: int,
    confirm_delete: str | None,
) -> SetActionResult:
    """
    Permanently remove an empty, non-canonical set.

    Requires "DELETE SET". A canonical set or a set with cards is refused
    whatever phrase is supplied.
    """
    card_set = await _load_set(session, set_id)

    if card_set.is_canonical:
        raise ReferentialIntegrityError(
            kind=FailureKind.CANONICAL_PROTECTED,
            message=f"Cannot delete '{card_set.name}': canonical sets cannot be deleted",
            suggestion="Archive the set instead.",
        )

    card_count = await count_cards_in_set(session, card_set.id)
    if card_count > 0:
        raise ReferentialIntegrityError(
            kind=FailureKind.SET_HAS_CARDS,
            message=f"Cannot delete '{card_set.name}': it still has {card_count} cards",
            suggestion="Migrate its cards to another set first.",
        )

    require_confirmation(ConfirmationPhrase.DELETE_SET, confirm_delete)

    name = card_set.name
    await delete_card_set(session, card_set)
    logger.info("Admin %d deleted set %d (%s)", principal.user_id, set_id, name)
    return SetActionResult(set_id=set_id, message=f"Deleted '{name}'")


async def promote_to_canonical(
    session: AsyncSession,
    principal: AdminPrincipal,
    set_id: int,
    confirm_promotion: str | None,
    year: int | None = None,
    main_set_id: int | None = None,
    new_name: str | None = None,
) -> SetActionResult:
    """
    Mark a set canonical, optionally moving it under a main set,
    renaming it and/or correcting its year. Cards are not touched.

    Requires "PROMOTE TO CANONICAL".
    """
    card_set = await _load_set(session, set_id)

    if card_set.is_canonical:
        raise ValidationFailedError(
            f"'{card_set.name}' is already canonical",
            kind=FailureKind.ALREADY_CANONICAL,
        )

    require_confirmation(ConfirmationPhrase.PROMOTE_TO_CANONICAL, confirm_promotion)

    if year is not None and not MIN_SET_YEAR <= year <= MAX_SET_YEAR:
        raise ValidationFailedError(
            f"Year must be between {MIN_SET_YEAR} and {MAX_SET_YEAR}",
            detail=f"Got {year}",
        )

    name: str | None = None
    if new_name is not None:
        name = new_name.strip()
        if not name:
            raise ValidationFailedError("New set name cannot be blank")

    if main_set_id is not None and await get_main_set(session, main_set_id) is None:
        raise NotFoundError("Main set", main_set_id)

    card_set.is_canonical = True
    if main_set_id is not None:
        card_set.main_set_id = main_set_id
    year_changed = year is not None and year != card_set.year
    if year is not None:
        card_set.year = year
    if name is not None and name != card_set.name:
        await rename_card_set(session, card_set, name)
    elif year_changed:
        card_set.slug = await unique_slug(
            session, CardSetDB, card_set.name, card_set.year, exclude_id=card_set.id
        )

    logger.info(
        "Admin %d promoted set %d (%s) to canonical",
        principal.user_id,
        card_set.id,
        card_set.name,
    )
    return await _result(session, card_set, f"'{card_set.name}' is now canonical")

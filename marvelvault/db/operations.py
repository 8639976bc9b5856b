"""
Database operations for the card catalog and migration audit log.

Provides async functions for reading and writing main sets, card sets,
cards and migration logs. None of these commit; the caller owns the
transaction.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy import ColumnElement, Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from marvelvault.models.db import (
    MIGRATION_STATUS_ACTIVE,
    CardDB,
    CardSetDB,
    MainSetDB,
    MigrationLogCardDB,
    MigrationLogDB,
    UserCollectionDB,
    UserDB,
)
from marvelvault.models.migration import MigrationLogEntry, SetSummary
from marvelvault.services.insert_detection import looks_like_insert_subset
from marvelvault.services.slugs import slugify, with_suffix

# --- Slugs ---


async def unique_slug(
    session: AsyncSession,
    model: type[CardSetDB] | type[MainSetDB],
    name: str,
    year: int | None,
    exclude_id: int | None = None,
) -> str:
    """Return a slug for `name` that no other row of `model` uses."""
    base = slugify(name, year)
    attempt = 1
    while True:
        candidate = with_suffix(base, attempt)
        query = select(model.id).where(model.slug == candidate)
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await session.execute(query)
        if result.first() is None:
            return candidate
        attempt += 1


# --- Main Set Operations ---


async def get_main_set(session: AsyncSession, main_set_id: int) -> MainSetDB | None:
    """Get a main set by id."""
    return await session.get(MainSetDB, main_set_id)


async def get_main_set_by_slug(session: AsyncSession, slug: str) -> MainSetDB | None:
    """Get a main set by slug."""
    result = await session.execute(select(MainSetDB).where(MainSetDB.slug == slug))
    return result.scalar_one_or_none()


async def list_main_sets(session: AsyncSession) -> list[MainSetDB]:
    """All main sets, newest year first."""
    result = await session.execute(
        select(MainSetDB).order_by(MainSetDB.year.desc().nulls_last(), MainSetDB.name)
    )
    return list(result.scalars().all())


async def create_main_set(
    session: AsyncSession,
    name: str,
    year: int | None = None,
    thumbnail_image_url: str | None = None,
) -> MainSetDB:
    """Create a main set with a unique slug."""
    main_set = MainSetDB(
        name=name,
        year=year,
        slug=await unique_slug(session, MainSetDB, name, year),
        thumbnail_image_url=thumbnail_image_url,
    )
    session.add(main_set)
    await session.flush()
    return main_set


# --- Card Set Operations ---


async def get_card_set(
    session: AsyncSession, set_id: int, for_update: bool = False
) -> CardSetDB | None:
    """
    Get a card set by id.

    With for_update, the row is locked (SELECT ... FOR UPDATE) until the
    transaction ends so concurrent migrations on the same sets serialize.
    """
    query = select(CardSetDB).where(CardSetDB.id == set_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def lock_card_sets(session: AsyncSession, *set_ids: int) -> dict[int, CardSetDB | None]:
    """
    Lock several card set rows, always in ascending id order.

    Writers that move cards between sets lock through here. Missing sets
    map to None.
    """
    return {
        set_id: await get_card_set(session, set_id, for_update=True)
        for set_id in sorted(set(set_ids))
    }


async def get_card_set_by_slug(session: AsyncSession, slug: str) -> CardSetDB | None:
    """Get a card set by slug."""
    result = await session.execute(select(CardSetDB).where(CardSetDB.slug == slug))
    return result.scalar_one_or_none()


async def create_card_set(
    session: AsyncSession,
    name: str,
    year: int,
    main_set_id: int | None = None,
    image_url: str | None = None,
    is_active: bool = True,
    is_canonical: bool = False,
    is_insert_subset: bool = False,
) -> CardSetDB:
    """Create a card set with a unique slug."""
    card_set = CardSetDB(
        name=name,
        year=year,
        slug=await unique_slug(session, CardSetDB, name, year),
        main_set_id=main_set_id,
        image_url=image_url,
        is_active=is_active,
        is_canonical=is_canonical,
        is_insert_subset=is_insert_subset,
    )
    session.add(card_set)
    await session.flush()
    return card_set


async def rename_card_set(session: AsyncSession, card_set: CardSetDB, new_name: str) -> None:
    """Rename a set and regenerate its slug."""
    card_set.name = new_name
    card_set.slug = await unique_slug(
        session, CardSetDB, new_name, card_set.year, exclude_id=card_set.id
    )


async def delete_card_set(session: AsyncSession, card_set: CardSetDB) -> None:
    """Remove a set row. Callers check it is empty first."""
    await session.delete(card_set)
    await session.flush()


async def count_card_sets(session: AsyncSession, active_only: bool = False) -> int:
    """Number of card sets, optionally excluding archived ones."""
    query = select(func.count(CardSetDB.id))
    if active_only:
        query = query.where(CardSetDB.is_active.is_(True))
    result = await session.execute(query)
    return int(result.scalar_one())


def _set_summary_query() -> tuple[Select[Any], ColumnElement[int]]:
    """Sets joined with their main set and card count (0 for empty sets)."""
    counts = (
        select(CardDB.set_id.label("set_id"), func.count(CardDB.id).label("card_count"))
        .group_by(CardDB.set_id)
        .subquery()
    )
    card_count = func.coalesce(counts.c.card_count, 0)
    query = (
        select(
            CardSetDB,
            MainSetDB.name,
            MainSetDB.thumbnail_image_url,
            card_count.label("card_count"),
        )
        .outerjoin(MainSetDB, CardSetDB.main_set_id == MainSetDB.id)
        .outerjoin(counts, counts.c.set_id == CardSetDB.id)
    )
    return query, card_count


def card_set_to_summary(
    card_set: CardSetDB,
    main_set_name: str | None,
    main_set_thumbnail: str | None,
    card_count: int,
) -> SetSummary:
    """Convert a database card set to a console summary."""
    return SetSummary(
        id=card_set.id,
        name=card_set.name,
        year=card_set.year,
        slug=card_set.slug,
        main_set_id=card_set.main_set_id,
        image_url=card_set.image_url,
        is_active=card_set.is_active,
        is_canonical=card_set.is_canonical,
        is_insert_subset=card_set.is_insert_subset,
        main_set_name=main_set_name,
        main_set_thumbnail=main_set_thumbnail,
        card_count=int(card_count or 0),
        suggested_insert_subset=(
            not card_set.is_insert_subset and looks_like_insert_subset(card_set.name)
        ),
    )


async def get_set_summary(session: AsyncSession, set_id: int) -> SetSummary | None:
    """A single set with its main set name and card count."""
    query, _ = _set_summary_query()
    result = await session.execute(query.where(CardSetDB.id == set_id))
    row = result.first()
    if row is None:
        return None
    return card_set_to_summary(*row)


async def list_card_sets(
    session: AsyncSession,
    search: str | None = None,
    year: int | None = None,
    has_cards: bool = False,
    show_archived: bool = False,
    canonical_only: bool = False,
    limit: int = 200,
) -> list[SetSummary]:
    """
    List sets for the console pickers, newest year first.

    Archived sets are hidden unless show_archived is set.
    """
    query, card_count = _set_summary_query()

    if search:
        pattern = (
            search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        query = query.where(CardSetDB.name.ilike(f"%{pattern}%", escape="\\"))
    if year is not None:
        query = query.where(CardSetDB.year == year)
    if has_cards:
        query = query.where(card_count > 0)
    if not show_archived:
        query = query.where(CardSetDB.is_active.is_(True))
    if canonical_only:
        query = query.where(CardSetDB.is_canonical.is_(True))

    query = query.order_by(CardSetDB.year.desc(), CardSetDB.name, CardSetDB.id).limit(limit)
    result = await session.execute(query)
    return [card_set_to_summary(*row) for row in result.all()]


# --- Card Operations ---


async def create_card(
    session: AsyncSession,
    set_id: int,
    card_number: str,
    name: str,
    variation: str | None = None,
    is_insert: bool = False,
    front_image_url: str | None = None,
    back_image_url: str | None = None,
    estimated_value: Decimal | None = None,
) -> CardDB:
    """Create a card in a set."""
    card = CardDB(
        set_id=set_id,
        card_number=card_number,
        name=name,
        variation=variation,
        is_insert=is_insert,
        front_image_url=front_image_url,
        back_image_url=back_image_url,
        estimated_value=estimated_value,
    )
    session.add(card)
    await session.flush()
    return card


async def get_cards_in_set(session: AsyncSession, set_id: int) -> list[CardDB]:
    """All cards owned by a set, in id order."""
    result = await session.execute(
        select(CardDB).where(CardDB.set_id == set_id).order_by(CardDB.id)
    )
    return list(result.scalars().all())


async def count_cards_in_set(session: AsyncSession, set_id: int) -> int:
    """Number of cards owned by a set."""
    result = await session.execute(select(func.count(CardDB.id)).where(CardDB.set_id == set_id))
    return int(result.scalar_one())


async def get_sample_cards(session: AsyncSession, set_id: int, limit: int) -> list[CardDB]:
    """
    First `limit` cards of a set for visual confirmation.

    Cards with a front image come first.
    """
    result = await session.execute(
        select(CardDB)
        .where(CardDB.set_id == set_id)
        .order_by(CardDB.front_image_url.is_(None), CardDB.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def reassign_cards(
    session: AsyncSession,
    card_ids: Iterable[int],
    set_id: int,
    is_insert: bool | None = None,
    from_set_id: int | None = None,
) -> int:
    """
    Point the given cards at `set_id`, optionally setting is_insert.

    With from_set_id, only cards still in that set are updated, so the
    returned count shows whether another writer moved any of them first.
    Rows are updated in place; card ids never change.
    Returns the number of rows updated.
    """
    ids = list(card_ids)
    if not ids:
        return 0

    values: dict[str, object] = {"set_id": set_id}
    if is_insert is not None:
        values["is_insert"] = is_insert

    query = update(CardDB).where(CardDB.id.in_(ids))
    if from_set_id is not None:
        query = query.where(CardDB.set_id == from_set_id)
    result = await session.execute(query.values(**values))
    # rowcount is available on UPDATE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


async def get_card_ids_in_set(
    session: AsyncSession, set_id: int, card_ids: Iterable[int]
) -> set[int]:
    """The subset of `card_ids` currently owned by `set_id`."""
    ids = list(card_ids)
    if not ids:
        return set()
    result = await session.execute(
        select(CardDB.id).where(CardDB.set_id == set_id, CardDB.id.in_(ids))
    )
    return set(result.scalars().all())


# --- User Collection Operations ---


async def count_collection_references(session: AsyncSession, set_id: int) -> int:
    """Number of user collection entries pointing at cards in a set."""
    result = await session.execute(
        select(func.count(UserCollectionDB.id))
        .join(CardDB, UserCollectionDB.card_id == CardDB.id)
        .where(CardDB.set_id == set_id)
    )
    return int(result.scalar_one())


async def add_to_collection(
    session: AsyncSession, user_id: int, card_id: int, quantity: int = 1
) -> UserCollectionDB:
    """Add a card to a user's collection."""
    entry = UserCollectionDB(user_id=user_id, card_id=card_id, quantity=quantity)
    session.add(entry)
    await session.flush()
    return entry


async def create_user(session: AsyncSession, username: str, is_admin: bool = False) -> UserDB:
    """Create a user record."""
    user = UserDB(username=username, is_admin=is_admin)
    session.add(user)
    await session.flush()
    return user


# --- Migration Log Operations ---


async def create_migration_log(
    session: AsyncSession,
    source_set_id: int,
    destination_set_id: int,
    admin_user_id: int,
    moved_cards: dict[int, bool],
    insert_forced: bool,
    notes: str | None = None,
) -> MigrationLogDB:
    """
    Write a migration log with a per-card snapshot.

    `moved_cards` maps card id to its is_insert value before the move.
    """
    log = MigrationLogDB(
        source_set_id=source_set_id,
        destination_set_id=destination_set_id,
        admin_user_id=admin_user_id,
        moved_card_count=len(moved_cards),
        insert_forced=insert_forced,
        notes=notes,
    )
    log.moved_cards = [
        MigrationLogCardDB(card_id=card_id, previous_is_insert=previous)
        for card_id, previous in moved_cards.items()
    ]
    session.add(log)
    await session.flush()
    return log


async def get_migration_log(
    session: AsyncSession, log_id: int, for_update: bool = False
) -> MigrationLogDB | None:
    """Get a migration log by id."""
    query = select(MigrationLogDB).where(MigrationLogDB.id == log_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_migration_log_cards(session: AsyncSession, log_id: int) -> list[MigrationLogCardDB]:
    """Per-card snapshot rows of a migration, in card id order."""
    result = await session.execute(
        select(MigrationLogCardDB)
        .where(MigrationLogCardDB.migration_log_id == log_id)
        .order_by(MigrationLogCardDB.card_id)
    )
    return list(result.scalars().all())


def _set_label(name: str | None, set_id: int) -> str:
    return name if name is not None else f"(deleted set #{set_id})"


async def count_active_migrations(session: AsyncSession) -> int:
    """Number of migration logs that can still be rolled back."""
    result = await session.execute(
        select(func.count(MigrationLogDB.id)).where(
            MigrationLogDB.status == MIGRATION_STATUS_ACTIVE
        )
    )
    return int(result.scalar_one())


async def list_migration_logs(session: AsyncSession, limit: int = 100) -> list[MigrationLogEntry]:
    """Migration logs, newest first, with set names and admin username."""
    source = aliased(CardSetDB, name="source_set")
    destination = aliased(CardSetDB, name="destination_set")

    result = await session.execute(
        select(MigrationLogDB, source.name, destination.name, UserDB.username)
        .outerjoin(source, source.id == MigrationLogDB.source_set_id)
        .outerjoin(destination, destination.id == MigrationLogDB.destination_set_id)
        .outerjoin(UserDB, UserDB.id == MigrationLogDB.admin_user_id)
        .order_by(MigrationLogDB.created_at.desc(), MigrationLogDB.id.desc())
        .limit(limit)
    )

    entries: list[MigrationLogEntry] = []
    for log, source_name, destination_name, username in result.all():
        entries.append(
            MigrationLogEntry(
                id=log.id,
                admin_user_id=log.admin_user_id,
                admin_username=username,
                source_set_id=log.source_set_id,
                source_set_name=_set_label(source_name, log.source_set_id),
                destination_set_id=log.destination_set_id,
                destination_set_name=_set_label(destination_name, log.destination_set_id),
                moved_card_count=log.moved_card_count,
                insert_forced=log.insert_forced,
                notes=log.notes,
                status=log.status,
                rolled_back_at=log.rolled_back_at,
                created_at=log.created_at,
            )
        )
    return entries

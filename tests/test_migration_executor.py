"""Tests for the set migration executor."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.operations import (
    add_to_collection,
    count_cards_in_set,
    create_main_set,
    create_user,
    get_card_set,
    get_cards_in_set,
    get_migration_log,
    get_migration_log_cards,
)
from marvelvault.models.db import MIGRATION_STATUS_ACTIVE, CardDB, UserCollectionDB
from marvelvault.models.failure import (
    FailureKind,
    MigrationConflictError,
    NotFoundError,
    ValidationFailedError,
)
from marvelvault.models.migration import MigrationRequest
from marvelvault.models.principal import AdminPrincipal
from marvelvault.services.migration_executor import execute_migration

PHRASE = "MIGRATE WITH CONFLICTS"


class TestCleanMigration:
    async def test_moves_every_card(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """All source cards end up in the destination; the source is empty."""
        legacy = await make_set("Legacy Masterpieces", numbers=range(1, 11))
        canonical = await make_set("Marvel Masterpieces", numbers=range(11, 16), is_canonical=True)

        result = await execute_migration(
            session, admin, MigrationRequest(legacy.id, canonical.id)
        )

        assert result.moved_card_count == 10
        assert result.conflict_count == 0
        assert result.insert_forced is False
        assert await count_cards_in_set(session, legacy.id) == 0
        assert await count_cards_in_set(session, canonical.id) == 15
        assert result.message == (
            "Migrated 10 cards from 'Legacy Masterpieces' to 'Marvel Masterpieces'"
        )

    async def test_card_ids_preserved(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Cards are re-pointed, never recreated."""
        legacy = await make_set("Legacy", numbers=[1, 2, 3])
        canonical = await make_set("Canonical", is_canonical=True)
        original_ids = {c.id for c in await get_cards_in_set(session, legacy.id)}

        await execute_migration(session, admin, MigrationRequest(legacy.id, canonical.id))

        result = await session.execute(select(CardDB.id).where(CardDB.set_id == canonical.id))
        assert set(result.scalars().all()) == original_ids
        total = await session.execute(select(func.count(CardDB.id)))
        assert total.scalar_one() == 3

    async def test_collections_follow_cards(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Collection entries resolve to the destination after migrating."""
        legacy = await make_set("Legacy", numbers=[1, 2])
        canonical = await make_set("Canonical", is_canonical=True)
        user = await create_user(session, "collector")
        for card in await get_cards_in_set(session, legacy.id):
            await add_to_collection(session, user.id, card.id, quantity=2)

        await execute_migration(session, admin, MigrationRequest(legacy.id, canonical.id))

        result = await session.execute(
            select(func.count(UserCollectionDB.id))
            .join(CardDB, UserCollectionDB.card_id == CardDB.id)
            .where(CardDB.set_id == canonical.id, UserCollectionDB.user_id == user.id)
        )
        assert result.scalar_one() == 2

    async def test_writes_log_with_snapshot(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """The log records the move and each card's prior insert flag."""
        legacy = await make_set("Legacy", numbers=[1, 2, 3], insert_numbers=[2])
        canonical = await make_set("Canonical", is_canonical=True)

        result = await execute_migration(
            session,
            admin,
            MigrationRequest(legacy.id, canonical.id, notes="Consolidating 1992 sets"),
        )

        log = await get_migration_log(session, result.log_id)
        assert log is not None
        assert log.source_set_id == legacy.id
        assert log.destination_set_id == canonical.id
        assert log.admin_user_id == admin.user_id
        assert log.moved_card_count == 3
        assert log.notes == "Consolidating 1992 sets"
        assert log.status == MIGRATION_STATUS_ACTIVE

        snapshot = await get_migration_log_cards(session, log.id)
        assert len(snapshot) == 3
        assert sorted(row.previous_is_insert for row in snapshot) == [False, False, True]

    async def test_insert_flags_untouched_without_forcing(
        self, session: AsyncSession, admin: AdminPrincipal, make_set, card_flags
    ) -> None:
        """Without forcing, each card keeps its own is_insert value."""
        legacy = await make_set("Legacy", numbers=[1, 2], insert_numbers=[2])
        canonical = await make_set("Canonical", is_canonical=True)

        await execute_migration(session, admin, MigrationRequest(legacy.id, canonical.id))

        assert await card_flags(canonical.id) == {"1": False, "2": True}


class TestInsertForcing:
    async def test_force_insert(
        self, session: AsyncSession, admin: AdminPrincipal, make_set, card_flags
    ) -> None:
        """force_insert marks every moved card as an insert."""
        legacy = await make_set("Legacy Holograms", numbers=[1, 2])
        canonical = await make_set("Canonical", is_canonical=True)

        result = await execute_migration(
            session, admin, MigrationRequest(legacy.id, canonical.id, force_insert=True)
        )

        assert result.insert_forced is True
        assert await card_flags(canonical.id) == {"1": True, "2": True}

    async def test_insert_subset_destination_forces(
        self, session: AsyncSession, admin: AdminPrincipal, make_set, card_flags
    ) -> None:
        """An insert-subset destination forces is_insert even when not requested."""
        legacy = await make_set("Legacy Holograms", numbers=[1, 2, 3])
        holograms = await make_set("Holograms", is_canonical=True, is_insert_subset=True)

        result = await execute_migration(
            session, admin, MigrationRequest(legacy.id, holograms.id, force_insert=False)
        )

        assert result.insert_forced is True
        assert set((await card_flags(holograms.id)).values()) == {True}

    async def test_existing_destination_cards_untouched(
        self, session: AsyncSession, admin: AdminPrincipal, make_set, card_flags
    ) -> None:
        """Forcing applies to moved cards only."""
        legacy = await make_set("Legacy", numbers=["L1"])
        canonical = await make_set("Canonical", numbers=["C1"], is_canonical=True)

        await execute_migration(
            session, admin, MigrationRequest(legacy.id, canonical.id, force_insert=True)
        )

        assert await card_flags(canonical.id) == {"L1": True, "C1": False}


class TestConflicts:
    async def test_refused_without_phrase(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Conflicts without the phrase refuse and move nothing."""
        legacy = await make_set("Legacy", numbers=range(1, 101))
        canonical = await make_set("Canonical", numbers=range(50, 151), is_canonical=True)

        with pytest.raises(MigrationConflictError) as exc_info:
            await execute_migration(session, admin, MigrationRequest(legacy.id, canonical.id))

        assert exc_info.value.preview.conflict_count == 51
        assert exc_info.value.data["conflictCount"] == 51
        assert len(exc_info.value.data["conflicts"]) == 51
        assert await count_cards_in_set(session, legacy.id) == 100
        assert await count_cards_in_set(session, canonical.id) == 101

    @pytest.mark.parametrize(
        "supplied",
        [
            None,
            "",
            "migrate with conflicts",
            "MIGRATE WITH CONFLICTS ",
            " MIGRATE WITH CONFLICTS",
            "MIGRATE  WITH CONFLICTS",
        ],
    )
    async def test_phrase_must_match_exactly(
        self, session: AsyncSession, admin: AdminPrincipal, make_set, supplied: str | None
    ) -> None:
        """Near-miss phrases are refused."""
        legacy = await make_set("Legacy", numbers=[1])
        canonical = await make_set("Canonical", numbers=[1], is_canonical=True)

        with pytest.raises(MigrationConflictError):
            await execute_migration(
                session,
                admin,
                MigrationRequest(legacy.id, canonical.id, allow_conflicts=supplied),
            )

    async def test_confirmed_conflicts_migrate(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """With the exact phrase, conflicting cards move alongside the originals."""
        legacy = await make_set("Legacy", numbers=range(1, 101))
        canonical = await make_set("Canonical", numbers=range(50, 151), is_canonical=True)

        result = await execute_migration(
            session,
            admin,
            MigrationRequest(legacy.id, canonical.id, allow_conflicts=PHRASE),
        )

        assert result.moved_card_count == 100
        assert result.conflict_count == 51
        assert await count_cards_in_set(session, canonical.id) == 201
        duplicates = await session.execute(
            select(func.count(CardDB.id)).where(
                CardDB.set_id == canonical.id, CardDB.card_number == "75"
            )
        )
        assert duplicates.scalar_one() == 2

    async def test_phrase_ignored_without_conflicts(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """A stray phrase does nothing when there are no conflicts."""
        legacy = await make_set("Legacy", numbers=[1])
        canonical = await make_set("Canonical", numbers=[2], is_canonical=True)

        result = await execute_migration(
            session, admin, MigrationRequest(legacy.id, canonical.id, allow_conflicts="nonsense")
        )

        assert result.moved_card_count == 1


class TestValidation:
    async def test_identical_sets(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Source and destination must differ."""
        card_set = await make_set("Solo", numbers=[1])

        with pytest.raises(ValidationFailedError) as exc_info:
            await execute_migration(session, admin, MigrationRequest(card_set.id, card_set.id))

        assert exc_info.value.kind == FailureKind.IDENTICAL_SETS

    async def test_empty_source(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """An empty source is rejected and no log is written."""
        empty = await make_set("Empty")
        canonical = await make_set("Canonical", numbers=[1], is_canonical=True)

        with pytest.raises(ValidationFailedError) as exc_info:
            await execute_migration(session, admin, MigrationRequest(empty.id, canonical.id))

        assert exc_info.value.kind == FailureKind.EMPTY_SOURCE
        assert await get_migration_log(session, 1) is None

    async def test_missing_source(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Unknown source set raises NotFoundError."""
        canonical = await make_set("Canonical", is_canonical=True)

        with pytest.raises(NotFoundError) as exc_info:
            await execute_migration(session, admin, MigrationRequest(9999, canonical.id))

        assert exc_info.value.resource == "Source set"

    async def test_missing_destination(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """Unknown destination set raises NotFoundError."""
        legacy = await make_set("Legacy", numbers=[1])

        with pytest.raises(NotFoundError) as exc_info:
            await execute_migration(session, admin, MigrationRequest(legacy.id, 9999))

        assert exc_info.value.resource == "Destination set"

    async def test_missing_main_set(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """A new main set id that does not exist is rejected before moving."""
        legacy = await make_set("Legacy", numbers=[1])
        canonical = await make_set("Canonical", is_canonical=True)

        with pytest.raises(NotFoundError):
            await execute_migration(
                session,
                admin,
                MigrationRequest(legacy.id, canonical.id, new_main_set_id=9999),
            )

        assert await count_cards_in_set(session, legacy.id) == 1

    async def test_blank_new_name(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """A whitespace-only new name is rejected."""
        legacy = await make_set("Legacy", numbers=[1])
        canonical = await make_set("Canonical", is_canonical=True)

        with pytest.raises(ValidationFailedError):
            await execute_migration(
                session, admin, MigrationRequest(legacy.id, canonical.id, new_set_name="   ")
            )


class TestDestinationUpdates:
    async def test_reparent_and_rename(
        self, session: AsyncSession, admin: AdminPrincipal, make_set
    ) -> None:
        """The destination can be moved under a main set and renamed."""
        main_set = await create_main_set(session, "1992 Marvel Masterpieces", year=1992)
        legacy = await make_set("Legacy", numbers=[1])
        canonical = await make_set("Masterpieces", is_canonical=True)

        result = await execute_migration(
            session,
            admin,
            MigrationRequest(
                legacy.id,
                canonical.id,
                new_main_set_id=main_set.id,
                new_set_name="  Marvel Masterpieces  ",
            ),
        )

        updated = await get_card_set(session, canonical.id)
        assert updated is not None
        assert updated.main_set_id == main_set.id
        assert updated.name == "Marvel Masterpieces"
        assert updated.slug == "1992-marvel-masterpieces"
        assert "Marvel Masterpieces" in result.message


class TestAtomicity:
    async def test_failure_after_move_leaves_nothing(
        self,
        session: AsyncSession,
        admin: AdminPrincipal,
        make_set,
        card_flags,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure while logging rolls the card moves back too."""
        legacy = await make_set("Legacy", numbers=[1, 2, 3])
        canonical = await make_set("Canonical", is_canonical=True)
        await session.commit()

        async def failing_log(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(
            "marvelvault.services.migration_executor.create_migration_log", failing_log
        )

        with pytest.raises(SQLAlchemyError):
            await execute_migration(session, admin, MigrationRequest(legacy.id, canonical.id))
        await session.rollback()

        assert await card_flags(legacy.id) == {"1": False, "2": False, "3": False}
        assert await card_flags(canonical.id) == {}
        assert await get_migration_log(session, 1) is None

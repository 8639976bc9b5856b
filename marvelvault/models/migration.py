"""
Domain models for the set-migration console.

Plain dataclasses returned by the services. The API layer converts them
to camelCase response models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CardConflict:
    """A card number present in both the source and destination set."""

    card_number: str
    source_card_id: int
    source_card_name: str
    destination_card_id: int
    destination_card_name: str


@dataclass
class MigrationPreview:
    """
    What a migration from source to destination would do.

    Always computed server-side; client-supplied counts are never trusted.
    """

    source_set_id: int
    destination_set_id: int
    source_card_count: int
    destination_card_count: int
    conflicts: list[CardConflict] = field(default_factory=list)
    destination_is_insert_subset: bool = False
    destination_is_canonical: bool = False

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    @property
    def can_migrate(self) -> bool:
        """False for identical sets or an empty source."""
        if self.source_set_id == self.destination_set_id:
            return False
        return self.source_card_count > 0

    def to_dict(self) -> dict[str, Any]:
        """camelCase form, as carried by a conflict refusal."""
        return {
            "sourceSetId": self.source_set_id,
            "destinationSetId": self.destination_set_id,
            "sourceCardCount": self.source_card_count,
            "destinationCardCount": self.destination_card_count,
            "conflictCount": self.conflict_count,
            "conflicts": [
                {
                    "cardNumber": c.card_number,
                    "sourceCardId": c.source_card_id,
                    "sourceCardName": c.source_card_name,
                    "destinationCardId": c.destination_card_id,
                    "destinationCardName": c.destination_card_name,
                }
                for c in self.conflicts
            ],
            "canMigrate": self.can_migrate,
            "destinationIsInsertSubset": self.destination_is_insert_subset,
            "destinationIsCanonical": self.destination_is_canonical,
        }


@dataclass
class MigrationRequest:
    """Input to the migration executor."""

    source_set_id: int
    destination_set_id: int
    force_insert: bool = False
    allow_conflicts: str | None = None
    notes: str | None = None
    new_main_set_id: int | None = None
    new_set_name: str | None = None


@dataclass
class MigrationResult:
    """Outcome of a migration, flushed but not yet committed."""

    log_id: int
    source_set_id: int
    destination_set_id: int
    moved_card_count: int
    insert_forced: bool
    conflict_count: int
    message: str


@dataclass
class RollbackResult:
    """
    Outcome of rolling back a migration log.

    Cards that moved away from the destination after the migration are
    left alone and listed in skipped_card_ids.
    """

    log_id: int
    restored_card_count: int
    skipped_card_ids: list[int] = field(default_factory=list)
    message: str = ""

    @property
    def skipped_card_count(self) -> int:
        return len(self.skipped_card_ids)

    @property
    def partial(self) -> bool:
        return bool(self.skipped_card_ids)


@dataclass
class SetSummary:
    """A card set as listed in the console pickers."""

    id: int
    name: str
    year: int
    slug: str
    main_set_id: int | None
    image_url: str | None
    is_active: bool
    is_canonical: bool
    is_insert_subset: bool
    main_set_name: str | None
    main_set_thumbnail: str | None
    card_count: int
    suggested_insert_subset: bool = False


@dataclass
class SetActionResult:
    """Outcome of an archive/unarchive/delete/promote action."""

    set_id: int
    message: str
    card_set: SetSummary | None = None


@dataclass
class MigrationLogEntry:
    """A migration log row joined with display names."""

    id: int
    admin_user_id: int
    admin_username: str | None
    source_set_id: int
    source_set_name: str
    destination_set_id: int
    destination_set_name: str
    moved_card_count: int
    insert_forced: bool
    notes: str | None
    status: str
    rolled_back_at: datetime | None
    created_at: datetime | None

    @property
    def can_rollback(self) -> bool:
        return self.status == "active"

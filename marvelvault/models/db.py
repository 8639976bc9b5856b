"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MIGRATION_STATUS_ACTIVE = "active"
MIGRATION_STATUS_ROLLED_BACK = "rolled_back"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class MainSetDB(Base):
    """
    Parent grouping of card sets, e.g. a year's full release family.

    Cards never reference a main set directly, only through their set.
    """

    __tablename__ = "main_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    thumbnail_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<MainSetDB(id={self.id}, name={self.name})>"


class CardSetDB(Base):
    """
    A named, year-scoped grouping of cards.

    Legacy sets are migrated into canonical ones. Archived sets have
    is_active=False and are hidden from regular users.
    """

    __tablename__ = "card_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    year: Mapped[int] = mapped_column(Integer, index=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    main_set_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("main_sets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_canonical: Mapped[bool] = mapped_column(Boolean, default=False)
    is_insert_subset: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CardSetDB(id={self.id}, name={self.name}, year={self.year})>"


class CardDB(Base):
    """
    A single card, owned by exactly one set.

    The row id is stable across migrations; only set_id changes.
    card_number is only unique within a set.
    """

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    set_id: Mapped[int] = mapped_column(Integer, ForeignKey("card_sets.id"), index=True)
    card_number: Mapped[str] = mapped_column(String(50), index=True)
    name: Mapped[str] = mapped_column(String(255))
    variation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_insert: Mapped[bool] = mapped_column(Boolean, default=False)
    front_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    back_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, set_id={self.set_id}, number={self.card_number})>"


class UserDB(Base):
    """Minimal user record: owner of collection entries and author of migrations."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<UserDB(id={self.id}, username={self.username})>"


class UserCollectionDB(Base):
    """
    A card in a user's collection.

    References the card by id, so migrating the card between sets
    never orphans the entry.
    """

    __tablename__ = "user_collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    card_id: Mapped[int] = mapped_column(Integer, ForeignKey("cards.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    def __repr__(self) -> str:
        return f"<UserCollectionDB(user={self.user_id}, card={self.card_id})>"


class MigrationLogDB(Base):
    """
    Audit record of a set migration.

    Immutable until rolled back; rollback flips status and stamps
    rolled_back_at but never deletes the record. Set ids are kept
    without foreign keys so logs survive deletion of an emptied set.
    """

    __tablename__ = "migration_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_set_id: Mapped[int] = mapped_column(Integer, index=True)
    destination_set_id: Mapped[int] = mapped_column(Integer, index=True)
    moved_card_count: Mapped[int] = mapped_column(Integer)
    insert_forced: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=MIGRATION_STATUS_ACTIVE, index=True)
    rolled_back_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    admin_user_id: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    moved_cards: Mapped[list["MigrationLogCardDB"]] = relationship(
        back_populates="migration_log", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<MigrationLogDB(id={self.id}, {self.source_set_id}->{self.destination_set_id}, "
            f"status={self.status})>"
        )


class MigrationLogCardDB(Base):
    """
    Snapshot of one card moved by a migration.

    Records the card's insert flag before the move so a rollback can
    restore it exactly.
    """

    __tablename__ = "migration_log_cards"
    __table_args__ = (UniqueConstraint("migration_log_id", "card_id", name="uq_log_card"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    migration_log_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("migration_logs.id", ondelete="CASCADE"), index=True
    )
    card_id: Mapped[int] = mapped_column(Integer, index=True)
    previous_is_insert: Mapped[bool] = mapped_column(Boolean)

    migration_log: Mapped["MigrationLogDB"] = relationship(back_populates="moved_cards")

    def __repr__(self) -> str:
        return f"<MigrationLogCardDB(log={self.migration_log_id}, card={self.card_id})>"

"""
Bulk import of main sets, card sets and cards from a JSON document.

Can be run as a standalone script:

    python -m marvelvault.jobs.import_catalog catalog.json

Document shape:

    {
      "mainSets": [{"name": "1992 Marvel Masterpieces", "year": 1992}],
      "sets": [
        {
          "name": "Marvel Masterpieces",
          "year": 1992,
          "mainSet": "1992 Marvel Masterpieces",
          "isCanonical": true,
          "cards": [{"cardNumber": "1", "name": "Apocalypse"}]
        }
      ]
    }

Re-running is safe: sets are matched by slug and cards by card number
within their set, so existing rows are reused rather than duplicated.
"""

import argparse
import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from marvelvault.db.database import async_session_factory, init_db
from marvelvault.db.operations import (
    create_card,
    create_card_set,
    create_main_set,
    get_card_set_by_slug,
    get_cards_in_set,
    get_main_set_by_slug,
)
from marvelvault.logging_config import configure_logging
from marvelvault.models.db import MainSetDB
from marvelvault.services.slugs import slugify

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CardEntry(_CamelModel):
    card_number: str
    name: str
    variation: str | None = None
    is_insert: bool = False
    front_image_url: str | None = None
    back_image_url: str | None = None
    estimated_value: Decimal | None = None


class CardSetEntry(_CamelModel):
    name: str
    year: int
    main_set: str | None = Field(default=None, description="Name of a main set")
    image_url: str | None = None
    is_active: bool = True
    is_canonical: bool = False
    is_insert_subset: bool = False
    cards: list[CardEntry] = Field(default_factory=list)


class MainSetEntry(_CamelModel):
    name: str
    year: int | None = None
    thumbnail_image_url: str | None = None


class CatalogDocument(_CamelModel):
    main_sets: list[MainSetEntry] = Field(default_factory=list)
    sets: list[CardSetEntry] = Field(default_factory=list)


@dataclass
class ImportSummary:
    """Counts of what an import created or reused."""

    main_sets_created: int = 0
    sets_created: int = 0
    sets_reused: int = 0
    cards_created: int = 0
    cards_skipped: int = 0


async def _resolve_main_set(
    session: AsyncSession,
    entry: MainSetEntry,
    summary: ImportSummary,
) -> MainSetDB:
    existing = await get_main_set_by_slug(session, slugify(entry.name, entry.year))
    if existing is not None:
        return existing
    summary.main_sets_created += 1
    return await create_main_set(
        session,
        entry.name,
        year=entry.year,
        thumbnail_image_url=entry.thumbnail_image_url,
    )


async def import_catalog(session: AsyncSession, document: CatalogDocument) -> ImportSummary:
    """
    Insert the document's main sets, sets and cards.

    Does not commit. A set referencing an unknown main set name raises
    ValueError before anything for that set is written.
    """
    summary = ImportSummary()

    main_sets_by_name: dict[str, MainSetDB] = {}
    for main_entry in document.main_sets:
        main_set = await _resolve_main_set(session, main_entry, summary)
        main_sets_by_name[main_entry.name] = main_set

    for set_entry in document.sets:
        main_set_id: int | None = None
        if set_entry.main_set is not None:
            main_set = main_sets_by_name.get(set_entry.main_set)
            if main_set is None:
                msg = f"Set '{set_entry.name}' references unknown main set '{set_entry.main_set}'"
                raise ValueError(msg)
            main_set_id = main_set.id

        card_set = await get_card_set_by_slug(session, slugify(set_entry.name, set_entry.year))
        if card_set is None:
            card_set = await create_card_set(
                session,
                set_entry.name,
                set_entry.year,
                main_set_id=main_set_id,
                image_url=set_entry.image_url,
                is_active=set_entry.is_active,
                is_canonical=set_entry.is_canonical,
                is_insert_subset=set_entry.is_insert_subset,
            )
            summary.sets_created += 1
            existing_numbers: set[str] = set()
        else:
            summary.sets_reused += 1
            existing_numbers = {c.card_number for c in await get_cards_in_set(session, card_set.id)}

        for card_entry in set_entry.cards:
            if card_entry.card_number in existing_numbers:
                summary.cards_skipped += 1
                continue
            await create_card(
                session,
                card_set.id,
                card_entry.card_number,
                card_entry.name,
                variation=card_entry.variation,
                is_insert=card_entry.is_insert or set_entry.is_insert_subset,
                front_image_url=card_entry.front_image_url,
                back_image_url=card_entry.back_image_url,
                estimated_value=card_entry.estimated_value,
            )
            existing_numbers.add(card_entry.card_number)
            summary.cards_created += 1

    return summary


async def run_import(path: Path) -> ImportSummary:
    """Load a catalog file and import it in a single transaction."""
    document = CatalogDocument.model_validate_json(path.read_text(encoding="utf-8"))
    logger.info(
        "Importing %d main sets and %d sets from %s",
        len(document.main_sets),
        len(document.sets),
        path,
    )

    await init_db()
    async with async_session_factory() as session:
        summary = await import_catalog(session, document)
        await session.commit()

    logger.info(
        "Import complete: %d sets created, %d reused, %d cards created, %d skipped",
        summary.sets_created,
        summary.sets_reused,
        summary.cards_created,
        summary.cards_skipped,
    )
    return summary


def main() -> None:
    """CLI entry point for importing a catalog file."""
    parser = argparse.ArgumentParser(description="Import card sets and cards from JSON")
    parser.add_argument("path", type=Path, help="Catalog JSON file")
    args = parser.parse_args()

    configure_logging(logging.INFO)
    asyncio.run(run_import(args.path))


if __name__ == "__main__":
    main()

from marvelvault.db.database import get_session, init_db
from marvelvault.db.operations import (
    count_cards_in_set,
    count_collection_references,
    create_card,
    create_card_set,
    create_main_set,
    get_card_set,
    get_cards_in_set,
    get_main_set,
    get_migration_log,
    list_card_sets,
    list_main_sets,
    list_migration_logs,
)

__all__ = [
    "count_cards_in_set",
    "count_collection_references",
    "create_card",
    "create_card_set",
    "create_main_set",
    "get_card_set",
    "get_cards_in_set",
    "get_main_set",
    "get_migration_log",
    "get_session",
    "init_db",
    "list_card_sets",
    "list_main_sets",
    "list_migration_logs",
]

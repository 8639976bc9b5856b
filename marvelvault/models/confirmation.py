"""
Typed confirmation phrases for destructive console actions.

A phrase is a deliberate friction device, not a credential. It is compared
by exact string equality: no trimming, no case folding.
"""

from enum import Enum

from marvelvault.models.failure import ConfirmationRequiredError


class ConfirmationPhrase(str, Enum):
    """Required phrase per gated operation."""

    MIGRATE_WITH_CONFLICTS = "MIGRATE WITH CONFLICTS"
    ARCHIVE_WITH_CARDS = "ARCHIVE WITH CARDS"
    DELETE_SET = "DELETE SET"
    PROMOTE_TO_CANONICAL = "PROMOTE TO CANONICAL"


_ACTIONS: dict[ConfirmationPhrase, str] = {
    ConfirmationPhrase.MIGRATE_WITH_CONFLICTS: "migrate with conflicts",
    ConfirmationPhrase.ARCHIVE_WITH_CARDS: "archive a set that still has cards",
    ConfirmationPhrase.DELETE_SET: "delete this set",
    ConfirmationPhrase.PROMOTE_TO_CANONICAL: "promote this set to canonical",
}


def is_confirmed(phrase: ConfirmationPhrase, supplied: str | None) -> bool:
    """True only when `supplied` is exactly the required phrase."""
    return isinstance(supplied, str) and supplied == phrase.value


def require_confirmation(phrase: ConfirmationPhrase, supplied: str | None) -> None:
    """Raise ConfirmationRequiredError unless `supplied` matches exactly."""
    if not is_confirmed(phrase, supplied):
        raise ConfirmationRequiredError(phrase=phrase.value, action=_ACTIONS[phrase])

"""
URL slugs for card sets and main sets.

Renaming or promoting a set regenerates its slug from the new name.
"""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str, year: int | None = None) -> str:
    """
    Build a slug from a set name, prefixed with the year.

    The year is not repeated when the name already starts with it:
    ("Marvel Masterpieces", 1992) and ("1992 Marvel Masterpieces", 1992)
    both give "1992-marvel-masterpieces".
    """
    base = _NON_ALNUM.sub("-", name.lower()).strip("-")
    if year is not None and not base.startswith(f"{year}-") and base != str(year):
        base = f"{year}-{base}" if base else str(year)
    return base or "set"


def with_suffix(slug: str, attempt: int) -> str:
    """Disambiguate a taken slug: attempt 1 is the slug itself, then -2, -3..."""
    if attempt <= 1:
        return slug
    return f"{slug}-{attempt}"

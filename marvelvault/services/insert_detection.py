"""
Insert-subset name heuristic.

Suggests (never sets) the insert-subset flag for sets whose names look
like chase or parallel subsets. The admin still decides.
"""

INSERT_KEYWORDS: tuple[str, ...] = (
    "insert",
    "inserts",
    "chase",
    "sketch",
    "autograph",
    "signature",
    "printing plate",
    "1/1",
    "variant",
    "parallel",
    "refractor",
)


def looks_like_insert_subset(name: str) -> bool:
    """True if the set name contains any insert keyword (case-insensitive)."""
    lowered = name.lower()
    return any(keyword in lowered for keyword in INSERT_KEYWORDS)

"""
Predefined blocking categories.

Maps a static category id to the concrete targets it stands for. The table
is fixed data; callers that need editable categories wrap it.
"""

from collections.abc import Iterable
from typing import Union

from .exceptions import ValidationError
from .identifiers import AppName, Domain


CategoryTarget = Union[Domain, AppName]


def _domains(*names: str) -> frozenset[CategoryTarget]:
    return frozenset(Domain(name) for name in names)


CATEGORY_TARGETS: dict[str, frozenset[CategoryTarget]] = {
    "social_media": _domains(
        "facebook.com",
        "twitter.com",
        "instagram.com",
        "tiktok.com",
        "linkedin.com",
    ),
    "news": _domains("cnn.com", "bbc.com", "nytimes.com", "reddit.com"),
    "entertainment": _domains("youtube.com", "netflix.com", "twitch.tv"),
    "shopping": _domains("amazon.com", "ebay.com"),
    "gaming": _domains("steam.com", "epicgames.com"),
    "adult": frozenset(),
}


def list_categories() -> list[str]:
    """Known category ids in a stable order."""
    return sorted(CATEGORY_TARGETS)


def is_known_category(category_id: str) -> bool:
    return category_id in CATEGORY_TARGETS


def expand_categories(category_ids: Iterable[str]) -> frozenset[CategoryTarget]:
    """
    Expand category ids into the union of their targets.

    Args:
        category_ids: Category ids, in any order and possibly repeated

    Returns:
        Deduplicated set of domains and app names

    Raises:
        ValidationError: If any id is not a known category
    """
    targets: set[CategoryTarget] = set()
    for category_id in category_ids:
        known = CATEGORY_TARGETS.get(category_id)
        if known is None:
            raise ValidationError(
                "category",
                f"Unknown category: {category_id}",
                {"category": category_id, "known_categories": list_categories()},
            )
        targets.update(known)
    return frozenset(targets)

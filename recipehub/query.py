from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from .models import Recipe

# sort name -> (recipe field, descending)
SORT_ORDERS = {
    "newest": ("created_at", True),
    "oldest": ("created_at", False),
    "rating": ("average_rating", True),
    "time": ("cooking_time", False),
}
DEFAULT_SORT = "newest"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


@dataclass(frozen=True)
class RecipeQuery:
    """Filter and ordering for recipe listings. All filters are combined with AND."""

    category: Optional[str] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    search: Optional[str] = None
    difficulty: Optional[str] = None
    sort: str = DEFAULT_SORT

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "RecipeQuery":
        raw_tags = args.get("tags") or ""
        tags = frozenset(tag for tag in (_clean(part) for part in raw_tags.split(",")) if tag)

        search = args.get("search")
        search = search.strip() if search else None

        sort = _clean(args.get("sort")) or DEFAULT_SORT
        if sort not in SORT_ORDERS:
            sort = DEFAULT_SORT

        return cls(
            category=_clean(args.get("category")),
            tags=tags,
            search=search or None,
            difficulty=_clean(args.get("difficulty")),
            sort=sort,
        )

    @property
    def sort_field(self) -> str:
        return SORT_ORDERS[self.sort][0]

    @property
    def descending(self) -> bool:
        return SORT_ORDERS[self.sort][1]

    def matches(self, recipe: Recipe) -> bool:
        if self.category and recipe.category != self.category:
            return False
        if self.difficulty and recipe.difficulty != self.difficulty:
            return False
        if self.tags and self.tags.isdisjoint(recipe.tags):
            return False
        if self.search and not self.matches_search(recipe):
            return False
        return True

    def matches_search(self, recipe: Recipe) -> bool:
        if not self.search:
            return True
        needle = self.search.casefold()
        if needle in recipe.title.casefold():
            return True
        return any(needle in ingredient.name.casefold() for ingredient in recipe.ingredients)

    def sort_key(self, recipe: Recipe) -> Tuple[bool, Any]:
        value = getattr(recipe, self.sort_field)
        if value is None:
            # Missing values sort last in either direction.
            return (not self.descending, _EPOCH if self.sort_field == "created_at" else 0)
        return (self.descending, value)


__all__ = ["DEFAULT_SORT", "RecipeQuery", "SORT_ORDERS"]

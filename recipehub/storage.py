from __future__ import annotations

from typing import Callable, Dict, Iterator, Optional, Protocol, Set, TypeVar

from .models import Recipe
from .query import RecipeQuery

T = TypeVar("T")


class RecipeRepository(Protocol):
    """Protocol describing the document store used by :class:`RecipeService`."""

    def insert(self, recipe: Recipe) -> Recipe:
        """Persist a new aggregate and return it with its assigned id."""

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        """Return a single recipe or ``None`` if missing."""

    def find_many(self, query: RecipeQuery) -> Iterator[Recipe]:
        """Return the recipes matching ``query`` in the requested order."""

    def update_by_id(self, recipe_id: str, recipe: Recipe) -> Recipe:
        """Replace a stored aggregate or raise :class:`RecipeNotFound`."""

    def delete_by_id(self, recipe_id: str) -> bool:
        """Remove a recipe, returning ``False`` if it did not exist."""

    def modify(self, recipe_id: str, mutate: Callable[[Recipe], T]) -> T:
        """Load, mutate and store a recipe as one atomic unit.

        ``mutate`` may be called more than once if the backend retries on
        contention. Raises :class:`RecipeNotFound` if the recipe is missing.
        """

    def distinct(self, field: str) -> Set[str]:
        """Return the distinct values of a scalar or list field."""

    def count_by(self, field: str) -> Dict[str, int]:
        """Return the number of recipes for each value of ``field``."""


class ImageStore(Protocol):
    """Object storage holding recipe images."""

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """Store an image and return its URL, raising :class:`UploadFailure` on error."""

    def delete(self, url: str) -> None:
        """Remove a previously uploaded image."""


__all__ = ["ImageStore", "RecipeRepository"]

"""In-process backends for local development and tests."""

from __future__ import annotations

import copy
import threading
import uuid
from collections import Counter
from typing import Callable, Dict, Iterator, List, Optional, Set, TypeVar

from werkzeug.utils import secure_filename

from .errors import RecipeNotFound, UploadFailure
from .models import Recipe
from .query import RecipeQuery

T = TypeVar("T")


class InMemoryRecipeStorage:
    """Recipe repository keeping aggregates in a dictionary.

    Stored recipes are copied on the way in and out so callers never share
    state with the store, the same way a document database behaves.
    """

    def __init__(self) -> None:
        self._recipes: Dict[str, Recipe] = {}
        self._lock = threading.Lock()

    def insert(self, recipe: Recipe) -> Recipe:
        stored = copy.deepcopy(recipe)
        stored.id = uuid.uuid4().hex
        with self._lock:
            self._recipes[stored.id] = stored
        return copy.deepcopy(stored)

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        with self._lock:
            recipe = self._recipes.get(recipe_id)
        return copy.deepcopy(recipe) if recipe else None

    def find_many(self, query: RecipeQuery) -> Iterator[Recipe]:
        with self._lock:
            recipes = [recipe for recipe in self._recipes.values() if query.matches(recipe)]
        recipes.sort(key=query.sort_key, reverse=query.descending)
        for recipe in recipes:
            yield copy.deepcopy(recipe)

    def update_by_id(self, recipe_id: str, recipe: Recipe) -> Recipe:
        with self._lock:
            if recipe_id not in self._recipes:
                raise RecipeNotFound(recipe_id)
            stored = copy.deepcopy(recipe)
            stored.id = recipe_id
            self._recipes[recipe_id] = stored
        return copy.deepcopy(stored)

    def delete_by_id(self, recipe_id: str) -> bool:
        with self._lock:
            return self._recipes.pop(recipe_id, None) is not None

    def modify(self, recipe_id: str, mutate: Callable[[Recipe], T]) -> T:
        with self._lock:
            stored = self._recipes.get(recipe_id)
            if stored is None:
                raise RecipeNotFound(recipe_id)
            recipe = copy.deepcopy(stored)
            result = mutate(recipe)
            self._recipes[recipe_id] = recipe
        return copy.deepcopy(result)

    def distinct(self, field: str) -> Set[str]:
        values: Set[str] = set()
        with self._lock:
            for recipe in self._recipes.values():
                value = getattr(recipe, field, None)
                if isinstance(value, list):
                    values.update(value)
                elif value is not None:
                    values.add(value)
        return values

    def count_by(self, field: str) -> Dict[str, int]:
        with self._lock:
            counts = Counter(getattr(recipe, field, None) for recipe in self._recipes.values())
        counts.pop(None, None)
        return dict(counts)


class InMemoryImageStore:
    """Image store keeping uploads in memory under fake URLs."""

    base_url = "memory://recipe-app/"

    def __init__(self) -> None:
        self.images: Dict[str, bytes] = {}
        self.deleted: List[str] = []

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        if not data:
            raise UploadFailure("Failed to upload image: empty file")
        url = f"{self.base_url}{uuid.uuid4().hex}_{secure_filename(filename) or 'image'}"
        self.images[url] = data
        return url

    def delete(self, url: str) -> None:
        self.images.pop(url, None)
        self.deleted.append(url)


__all__ = ["InMemoryImageStore", "InMemoryRecipeStorage"]

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .errors import RecipeNotFound, UploadFailure
from .models import CATEGORIES, Comment, NewRecipeInput, RatingSummary, Recipe
from .query import RecipeQuery
from .storage import ImageStore, RecipeRepository
from .validation import parse_comment, parse_rating

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    data: bytes
    filename: str
    content_type: Optional[str] = None


class RecipeService:
    """Recipe operations on top of a repository and an image store.

    Ratings and comments are appended through :meth:`RecipeRepository.modify`,
    so concurrent appends to the same recipe are applied one after the other
    and the derived rating fields always match the stored ratings.
    """

    def __init__(self, storage: RecipeRepository, images: Optional[ImageStore] = None) -> None:
        self.storage = storage
        self.images = images

    def create_recipe(self, new_recipe: NewRecipeInput, image_url: Optional[str] = None) -> Recipe:
        recipe = self.storage.insert(Recipe.new(new_recipe, image_url=image_url))
        logger.info("Recipe saved successfully: %s", recipe.id)
        return recipe

    def submit_recipe(
        self, new_recipe: NewRecipeInput, image: Optional[ImageUpload] = None
    ) -> Recipe:
        """Upload the optional image, then create the recipe.

        An upload failure aborts before anything is stored. If storing the
        recipe fails the uploaded image is removed again.
        """

        if image is None:
            return self.create_recipe(new_recipe)

        if self.images is None:
            raise UploadFailure("Image uploads are not configured")

        image_url = self.images.upload(image.data, image.filename, image.content_type)
        try:
            return self.create_recipe(new_recipe, image_url=image_url)
        except Exception:
            self._discard_image(image_url)
            raise

    def get_recipe(self, recipe_id: str) -> Recipe:
        recipe = self.storage.find_by_id(recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)
        return recipe

    def list_recipes(self, query: Optional[RecipeQuery] = None) -> Iterator[Recipe]:
        return iter(self.storage.find_many(query or RecipeQuery()))

    def append_rating(self, recipe_id: str, value: Any) -> RatingSummary:
        rating = parse_rating(value)
        return self.storage.modify(recipe_id, lambda recipe: recipe.add_rating(rating))

    def append_comment(self, recipe_id: str, text: Any, author: Any = None) -> Comment:
        text, author = parse_comment({"text": text, "author": author})
        return self.storage.modify(recipe_id, lambda recipe: recipe.add_comment(text, author))

    def delete_recipe(self, recipe_id: str) -> None:
        recipe = self.get_recipe(recipe_id)

        if recipe.image_url:
            self._discard_image(recipe.image_url)

        if not self.storage.delete_by_id(recipe_id):
            raise RecipeNotFound(recipe_id)
        logger.info("Recipe deleted: %s", recipe_id)

    def list_tags(self) -> List[str]:
        return sorted(self.storage.distinct("tags"))

    def count_by_category(self) -> Dict[str, int]:
        counts = self.storage.count_by("category")
        return {category: counts[category] for category in sorted(counts)}

    @staticmethod
    def categories() -> List[str]:
        return list(CATEGORIES)

    def _discard_image(self, url: str) -> None:
        if self.images is None:
            return
        try:
            self.images.delete(url)
        except Exception:
            logger.warning("Error deleting image %s", url, exc_info=True)


__all__ = ["ImageUpload", "RecipeService"]

"""Parsing and normalization of incoming recipe, rating and comment payloads.

Every function here is a pure transform: it either returns values in their
final stored form or raises a :class:`~recipehub.errors.ValidationFailure`.
Nothing in this module touches storage or the image store.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

from werkzeug.datastructures import FileStorage

from .errors import (
    EmptyComment,
    InvalidCategory,
    InvalidDifficulty,
    InvalidImage,
    InvalidRating,
    InvalidShape,
    MalformedJson,
    MissingFields,
)
from .models import CATEGORIES, DEFAULT_AUTHOR, DIFFICULTIES, Ingredient, NewRecipeInput

REQUIRED_FIELDS = ("title", "category", "ingredients", "instructions")
JSON_FIELDS = ("ingredients", "instructions", "tags")

MAX_TITLE_LENGTH = 200
MAX_TAG_LENGTH = 50
MAX_AUTHOR_LENGTH = 100
MAX_DECIMAL_DIGITS = 9

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


def _text(form: Mapping[str, Any], name: str) -> str:
    value = form.get(name)
    if value is None:
        return ""
    return str(value).strip()


def parse_new_recipe(form: Mapping[str, Any]) -> NewRecipeInput:
    """Validate a recipe submission and return it in normalized form."""

    missing = [name for name in REQUIRED_FIELDS if not _text(form, name)]
    if missing:
        raise MissingFields(missing)

    decoded: Dict[str, Any] = {}
    malformed = []
    for name in JSON_FIELDS:
        raw = _text(form, name)
        if not raw:
            continue
        try:
            decoded[name] = json.loads(raw)
        except ValueError:
            malformed.append(name)
    if malformed:
        raise MalformedJson(malformed)

    problems: Dict[str, str] = {}

    title = _text(form, "title")
    if len(title) > MAX_TITLE_LENGTH:
        problems["title"] = f"title must be at most {MAX_TITLE_LENGTH} characters"

    ingredients = _parse_ingredients(decoded["ingredients"])
    if ingredients is None:
        problems["ingredients"] = (
            "ingredients must be a non-empty array of objects with a name and an amount"
        )

    instructions = _parse_instructions(decoded["instructions"])
    if instructions is None:
        problems["instructions"] = "instructions must be a non-empty array of strings"

    tags = _parse_tags(decoded.get("tags", []))
    if tags is None:
        problems["tags"] = f"tags must be an array of strings of at most {MAX_TAG_LENGTH} characters"

    cooking_time = _parse_cooking_time(form.get("cookingTime"))
    if cooking_time is False:
        problems["cookingTime"] = "cookingTime must be a positive integer number of minutes"

    if problems:
        raise InvalidShape(problems)

    category = _text(form, "category").lower()
    if category not in CATEGORIES:
        raise InvalidCategory(category, CATEGORIES)

    difficulty = _text(form, "difficulty").lower() or None
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise InvalidDifficulty(difficulty, DIFFICULTIES)

    return NewRecipeInput(
        title=title,
        category=category,
        ingredients=ingredients,
        instructions=instructions,
        tags=tags,
        cooking_time=cooking_time or None,
        difficulty=difficulty,
    )


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return None


def _parse_ingredients(value: Any) -> Optional[List[Ingredient]]:
    if not isinstance(value, list) or not value:
        return None

    ingredients = []
    for item in value:
        if not isinstance(item, dict):
            return None
        name = _as_text(item.get("name"))
        amount = _as_text(item.get("amount"))
        if not name or not amount:
            return None
        ingredients.append(Ingredient(name=name, amount=amount))
    return ingredients


def _parse_instructions(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(step, str) and step.strip() for step in value):
        return None
    return [step.strip() for step in value]


def _parse_tags(value: Any) -> Optional[List[str]]:
    if value is None:
        return []
    if not isinstance(value, list):
        return None

    tags = []
    for tag in value:
        if not isinstance(tag, str):
            return None
        tag = tag.strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            return None
        tags.append(tag)
    return tags


def _decimal(text: str) -> Optional[int]:
    text = text.strip()
    if not text.isdecimal() or len(text) > MAX_DECIMAL_DIGITS:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _parse_cooking_time(value: Any):
    # ``None`` when absent, ``False`` when present but unusable.
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        if not value.is_integer():
            return False
        value = int(value)
    if isinstance(value, str):
        value = _decimal(value)
        if value is None:
            return False
    if not isinstance(value, int) or value <= 0:
        return False
    return value


def parse_rating(value: Any) -> int:
    """Return ``value`` as an integer rating in ``[1, 5]``."""

    rating: Optional[int] = None
    if isinstance(value, bool):
        rating = None
    elif isinstance(value, int):
        rating = value
    elif isinstance(value, float) and value.is_integer():
        rating = int(value)
    elif isinstance(value, str):
        rating = _decimal(value)

    if rating is None or not 1 <= rating <= 5:
        raise InvalidRating(value)
    return rating


def parse_comment(payload: Mapping[str, Any]) -> Tuple[str, str]:
    """Return the trimmed ``(text, author)`` pair of a comment submission."""

    text = payload.get("text")
    text = text.strip() if isinstance(text, str) else ""
    if not text:
        raise EmptyComment()

    author = payload.get("author")
    author = author.strip() if isinstance(author, str) else ""
    return text, (author[:MAX_AUTHOR_LENGTH] or DEFAULT_AUTHOR)


def check_image(image: FileStorage, data: bytes, max_bytes: int) -> None:
    """Reject uploads that are not small JPEG/PNG/GIF/WEBP images."""

    filename = image.filename or ""
    mimetype = image.mimetype or ""

    if not mimetype.startswith("image/"):
        raise InvalidImage("Only image files are allowed!")

    if "." not in filename or filename.rsplit(".", 1)[1].lower() not in ALLOWED_IMAGE_EXTENSIONS:
        raise InvalidImage(
            "Unsupported image format. Allowed formats: JPG, JPEG, PNG, GIF, WEBP."
        )

    if len(data) > max_bytes:
        raise InvalidImage(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.")


__all__ = [
    "ALLOWED_IMAGE_EXTENSIONS",
    "check_image",
    "parse_comment",
    "parse_new_recipe",
    "parse_rating",
]

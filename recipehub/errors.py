from __future__ import annotations

from typing import Iterable, List, Optional


class RecipeError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: List[str] = list(errors or [])

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        body: dict = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailure(RecipeError):
    """Client supplied data that cannot be accepted."""

    status_code = 400


class MissingFields(ValidationFailure):
    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = list(fields)
        super().__init__(
            f"Missing required fields: {', '.join(self.fields)}",
            [f"{field} is required" for field in self.fields],
        )


class MalformedJson(ValidationFailure):
    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = list(fields)
        super().__init__(
            f"Invalid JSON format for {', '.join(self.fields)}",
            [f"{field} must be valid JSON" for field in self.fields],
        )


class InvalidShape(ValidationFailure):
    def __init__(self, problems: dict) -> None:
        self.fields = list(problems)
        super().__init__(
            f"Invalid value for {', '.join(self.fields)}",
            list(problems.values()),
        )


class InvalidCategory(ValidationFailure):
    def __init__(self, category: str, valid: Iterable[str]) -> None:
        valid_list = ", ".join(valid)
        super().__init__(
            f"Invalid category '{category}'. Valid categories are: {valid_list}"
        )


class InvalidDifficulty(ValidationFailure):
    def __init__(self, difficulty: str, valid: Iterable[str]) -> None:
        valid_list = ", ".join(valid)
        super().__init__(
            f"Invalid difficulty '{difficulty}'. Valid difficulties are: {valid_list}"
        )


class InvalidRating(ValidationFailure):
    def __init__(self, value: object) -> None:
        super().__init__(f"Rating must be an integer between 1 and 5, got {value!r}")


class EmptyComment(ValidationFailure):
    def __init__(self) -> None:
        super().__init__("Comment text is required")


class InvalidImage(ValidationFailure):
    pass


class RecipeNotFound(RecipeError, KeyError):
    status_code = 404

    def __init__(self, recipe_id: str) -> None:
        self.recipe_id = recipe_id
        super().__init__("Recipe not found")


class UploadFailure(RecipeError):
    """The object store refused or failed an image upload."""

    status_code = 500

    def __init__(self, message: str = "Failed to upload image") -> None:
        super().__init__(message)


class StorageFailure(RecipeError):
    status_code = 500


__all__ = [
    "EmptyComment",
    "InvalidCategory",
    "InvalidDifficulty",
    "InvalidImage",
    "InvalidRating",
    "InvalidShape",
    "MalformedJson",
    "MissingFields",
    "RecipeError",
    "RecipeNotFound",
    "StorageFailure",
    "UploadFailure",
    "ValidationFailure",
]

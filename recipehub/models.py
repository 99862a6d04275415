from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

CATEGORIES = (
    "appetizer",
    "bread",
    "breakfast",
    "cakes",
    "cookies",
    "desserts",
    "drinks",
    "main course",
    "salads",
    "side dish",
    "soups",
)

DIFFICULTIES = ("easy", "medium", "hard")

DEFAULT_AUTHOR = "Anonymous"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _timestamp(value: Any) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


@dataclass
class Ingredient:
    name: str
    amount: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "amount": self.amount}


@dataclass
class Rating:
    value: int
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "createdAt": _isoformat(self.created_at)}

    def to_document(self) -> Dict[str, Any]:
        return {"value": self.value, "created_at": self.created_at}

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "Rating":
        return cls(value=int(data.get("value", 0)), created_at=_timestamp(data.get("created_at")))


@dataclass
class Comment:
    text: str
    author: str = DEFAULT_AUTHOR
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "author": self.author,
            "createdAt": _isoformat(self.created_at),
        }

    def to_document(self) -> Dict[str, Any]:
        return {"text": self.text, "author": self.author, "created_at": self.created_at}

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            text=data.get("text", ""),
            author=data.get("author") or DEFAULT_AUTHOR,
            created_at=_timestamp(data.get("created_at")),
        )


@dataclass
class NewRecipeInput:
    """Validated and normalized recipe submission."""

    title: str
    category: str
    ingredients: List[Ingredient]
    instructions: List[str]
    tags: List[str] = field(default_factory=list)
    cooking_time: Optional[int] = None
    difficulty: Optional[str] = None


@dataclass
class RatingSummary:
    average_rating: float
    ratings_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"averageRating": self.average_rating, "ratingsCount": self.ratings_count}


@dataclass
class Recipe:
    """Recipe aggregate together with its ratings and comments.

    ``average_rating`` and ``ratings_count`` are derived from ``ratings`` and
    are only changed through :meth:`add_rating`.
    """

    id: Optional[str]
    title: str
    category: str
    ingredients: List[Ingredient]
    instructions: List[str]
    tags: List[str] = field(default_factory=list)
    cooking_time: Optional[int] = None
    difficulty: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    ratings: List[Rating] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    average_rating: float = 0
    ratings_count: int = 0

    @classmethod
    def new(cls, data: NewRecipeInput, image_url: Optional[str] = None) -> "Recipe":
        now = utcnow()
        return cls(
            id=None,
            title=data.title,
            category=data.category,
            ingredients=list(data.ingredients),
            instructions=list(data.instructions),
            tags=list(data.tags),
            cooking_time=data.cooking_time,
            difficulty=data.difficulty,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )

    def add_rating(self, value: int) -> RatingSummary:
        rating = Rating(value=value)
        self.ratings.append(rating)
        self.recompute_ratings()
        self.updated_at = rating.created_at
        return self.rating_summary()

    def add_comment(self, text: str, author: Optional[str] = None) -> Comment:
        # Comments are kept oldest first.
        comment = Comment(text=text, author=author or DEFAULT_AUTHOR)
        self.comments.append(comment)
        self.updated_at = comment.created_at
        return comment

    def recompute_ratings(self) -> None:
        self.ratings_count = len(self.ratings)
        if self.ratings:
            total = sum(rating.value for rating in self.ratings)
            self.average_rating = round(total / self.ratings_count, 2)
        else:
            self.average_rating = 0

    def rating_summary(self) -> RatingSummary:
        return RatingSummary(average_rating=self.average_rating, ratings_count=self.ratings_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "cookingTime": self.cooking_time,
            "difficulty": self.difficulty,
            "tags": list(self.tags),
            "ingredients": [ingredient.to_dict() for ingredient in self.ingredients],
            "instructions": list(self.instructions),
            "imageUrl": self.image_url,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
            "ratings": [rating.to_dict() for rating in self.ratings],
            "comments": [comment.to_dict() for comment in self.comments],
            "averageRating": self.average_rating,
            "ratingsCount": self.ratings_count,
        }

    def to_document(self) -> Dict[str, Any]:
        """Return the persisted representation, without the id."""

        return {
            "title": self.title,
            "category": self.category,
            "cooking_time": self.cooking_time,
            "difficulty": self.difficulty,
            "tags": list(self.tags),
            "ingredients": [ingredient.to_dict() for ingredient in self.ingredients],
            "instructions": list(self.instructions),
            "image_url": self.image_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "ratings": [rating.to_document() for rating in self.ratings],
            "comments": [comment.to_document() for comment in self.comments],
            "average_rating": self.average_rating,
            "ratings_count": self.ratings_count,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Recipe":
        ingredients = [
            Ingredient(name=item.get("name", ""), amount=item.get("amount", ""))
            for item in data.get("ingredients") or []
            if isinstance(item, dict)
        ]
        recipe = cls(
            id=doc_id,
            title=data.get("title", ""),
            category=data.get("category", ""),
            ingredients=ingredients,
            instructions=list(data.get("instructions") or []),
            tags=list(data.get("tags") or []),
            cooking_time=data.get("cooking_time"),
            difficulty=data.get("difficulty"),
            image_url=data.get("image_url"),
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
            ratings=[Rating.from_document(item) for item in data.get("ratings") or []],
            comments=[Comment.from_document(item) for item in data.get("comments") or []],
        )
        recipe.recompute_ratings()
        return recipe


__all__ = [
    "CATEGORIES",
    "DEFAULT_AUTHOR",
    "DIFFICULTIES",
    "Comment",
    "Ingredient",
    "NewRecipeInput",
    "Rating",
    "RatingSummary",
    "Recipe",
    "utcnow",
]

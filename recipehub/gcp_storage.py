from __future__ import annotations

import logging
import uuid
from collections import Counter
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Set, TypeVar
from urllib.parse import unquote, urlparse

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore, storage
from google.cloud.firestore_v1.base_query import FieldFilter
from werkzeug.utils import secure_filename

from .config import Settings
from .errors import RecipeNotFound, StorageFailure, UploadFailure
from .models import Recipe
from .query import RecipeQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Firestore limit on the number of values in an ``array_contains_any`` filter.
MAX_ARRAY_CONTAINS_ANY = 30

_FIELD_NAMES = {
    "category": "category",
    "difficulty": "difficulty",
    "tags": "tags",
    "created_at": "created_at",
    "average_rating": "average_rating",
    "cooking_time": "cooking_time",
}


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except gcloud_exceptions.GoogleAPICallError as exc:
        raise StorageFailure(f"Failed to {action}", [str(exc)]) from exc


def apply_query(collection_query, query: RecipeQuery):
    """Translate the filters Firestore can evaluate into ``where``/``order_by`` calls.

    Title and ingredient substring search cannot be expressed in Firestore and
    is left to :meth:`RecipeQuery.matches_search` on the streamed documents.
    """

    if query.category:
        collection_query = collection_query.where(
            filter=FieldFilter("category", "==", query.category)
        )
    if query.difficulty:
        collection_query = collection_query.where(
            filter=FieldFilter("difficulty", "==", query.difficulty)
        )
    if query.tags and len(query.tags) <= MAX_ARRAY_CONTAINS_ANY:
        collection_query = collection_query.where(
            filter=FieldFilter("tags", "array_contains_any", sorted(query.tags))
        )

    direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
    return collection_query.order_by(_FIELD_NAMES[query.sort_field], direction=direction)


class FirestoreRecipeStorage:
    """Recipe repository backed by a Firestore collection."""

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = client or firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreRecipeStorage":
        return cls(project=settings.gcp_project, collection_name=settings.recipes_collection)

    def insert(self, recipe: Recipe) -> Recipe:
        doc_ref = self._collection.document()
        with _storage_errors("save recipe"):
            doc_ref.set(recipe.to_document())
        return Recipe.from_document(doc_ref.id, recipe.to_document())

    def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        with _storage_errors("load recipe"):
            snapshot = self._collection.document(recipe_id).get()

        if not snapshot.exists:
            return None
        return Recipe.from_document(snapshot.id, snapshot.to_dict() or {})

    def find_many(self, query: RecipeQuery) -> Iterator[Recipe]:
        docs = apply_query(self._collection, query).stream()
        for doc in docs:
            recipe = Recipe.from_document(doc.id, doc.to_dict() or {})
            if query.matches(recipe):
                yield recipe

    def update_by_id(self, recipe_id: str, recipe: Recipe) -> Recipe:
        doc_ref = self._collection.document(recipe_id)
        with _storage_errors("update recipe"):
            if not doc_ref.get().exists:
                raise RecipeNotFound(recipe_id)
            doc_ref.set(recipe.to_document())
        return Recipe.from_document(recipe_id, recipe.to_document())

    def delete_by_id(self, recipe_id: str) -> bool:
        doc_ref = self._collection.document(recipe_id)
        with _storage_errors("delete recipe"):
            if not doc_ref.get().exists:
                return False
            doc_ref.delete()
        return True

    def modify(self, recipe_id: str, mutate: Callable[[Recipe], T]) -> T:
        doc_ref = self._collection.document(recipe_id)
        transaction = self._firestore_client.transaction()

        @firestore.transactional
        def apply(transaction) -> T:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise RecipeNotFound(recipe_id)

            recipe = Recipe.from_document(snapshot.id, snapshot.to_dict() or {})
            result = mutate(recipe)
            transaction.set(doc_ref, recipe.to_document())
            return result

        with _storage_errors("update recipe"):
            return apply(transaction)

    def distinct(self, field: str) -> Set[str]:
        values: Set[str] = set()
        name = _FIELD_NAMES[field]
        for doc in self._collection.select([name]).stream():
            value = (doc.to_dict() or {}).get(name)
            if isinstance(value, list):
                values.update(value)
            elif value is not None:
                values.add(value)
        return values

    def count_by(self, field: str) -> Dict[str, int]:
        name = _FIELD_NAMES[field]
        counts = Counter(
            (doc.to_dict() or {}).get(name) for doc in self._collection.select([name]).stream()
        )
        counts.pop(None, None)
        return dict(counts)


class CloudStorageImageStore:
    """Image store writing uploads to a Cloud Storage bucket."""

    def __init__(
        self,
        bucket_name: str,
        *,
        project: Optional[str] = None,
        folder: str = "recipe-app",
        client: Optional[storage.Client] = None,
    ) -> None:
        self._bucket_name = bucket_name
        self._folder = folder.strip("/")
        self._storage_client = client or storage.Client(project=project)
        self._bucket = self._storage_client.bucket(bucket_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudStorageImageStore":
        if not settings.gcs_bucket:
            raise RuntimeError("A Cloud Storage bucket must be configured to upload images.")
        return cls(settings.gcs_bucket, project=settings.gcp_project, folder=settings.gcs_image_folder)

    def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        blob = self._bucket.blob(self._build_blob_name(filename))
        try:
            blob.upload_from_string(data, content_type=content_type)
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            logger.exception("Error uploading image %s to Cloud Storage", filename)
            raise UploadFailure() from exc
        return blob.public_url

    def delete(self, url: str) -> None:
        blob_name = self.blob_name_from_url(url)
        if not blob_name:
            logger.warning("Image URL %s does not belong to bucket %s", url, self._bucket_name)
            return

        blob = self._bucket.blob(blob_name)

        try:
            blob.delete()
        except gcloud_exceptions.NotFound:
            # The blob may already have been removed manually; ignore.
            pass

    def blob_name_from_url(self, url: str) -> Optional[str]:
        parsed = urlparse(url)
        path = unquote(parsed.path).lstrip("/")

        if parsed.netloc == f"{self._bucket_name}.storage.googleapis.com":
            return path or None

        prefix = f"{self._bucket_name}/"
        if parsed.netloc == "storage.googleapis.com" and path.startswith(prefix):
            return path[len(prefix):] or None
        return None

    def _build_blob_name(self, filename: str) -> str:
        safe = secure_filename(filename) or "image"
        unique = uuid.uuid4().hex
        return f"{self._folder}/{unique}_{safe}"


__all__ = ["CloudStorageImageStore", "FirestoreRecipeStorage", "apply_query"]

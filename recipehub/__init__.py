import logging
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .config import Settings
from .errors import RecipeError
from .memory_storage import InMemoryImageStore, InMemoryRecipeStorage
from .models import DIFFICULTIES, Recipe
from .query import RecipeQuery
from .service import ImageUpload, RecipeService
from .storage import ImageStore, RecipeRepository
from .validation import check_image, parse_new_recipe

try:
    from .gcp_storage import CloudStorageImageStore, FirestoreRecipeStorage
except ImportError:  # pragma: no cover - allows running tests without optional deps
    CloudStorageImageStore = None  # type: ignore[assignment]
    FirestoreRecipeStorage = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def create_app(
    storage: Optional[RecipeRepository] = None,
    images: Optional[ImageStore] = None,
    settings: Optional[Settings] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the backend named by
        ``settings.backend`` is used (Firestore unless ``memory``).
    images:
        Optional image store. When ``None`` Cloud Storage is used if a bucket
        is configured, or an in-memory store with the ``memory`` backend.
    settings:
        Optional settings, read from the environment when ``None``.
    """

    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", 16 * 1024 * 1024)
    app.secret_key = settings.secret_key
    logging.getLogger(__name__).setLevel(settings.log_level)

    if storage is None:
        storage = _build_storage(settings)
    if images is None:
        images = _build_images(settings)

    app.config["SETTINGS"] = settings
    app.config["RECIPE_SERVICE"] = RecipeService(storage, images)

    def service() -> RecipeService:
        return app.config["RECIPE_SERVICE"]

    @app.get("/healthz")
    def healthz():
        return jsonify(status="ok")

    @app.get("/api/categories")
    def list_categories():
        return jsonify(categories=RecipeService.categories(), difficulties=list(DIFFICULTIES))

    @app.get("/api/recipes")
    def list_recipes():
        query = RecipeQuery.from_args(request.args)
        return jsonify([recipe.to_dict() for recipe in service().list_recipes(query)])

    @app.post("/api/recipes")
    def create_recipe():
        new_recipe = parse_new_recipe(request.form)

        upload: Optional[ImageUpload] = None
        image = request.files.get("image")
        if image and image.filename:
            data = image.read()
            check_image(image, data, settings.max_image_bytes)
            upload = ImageUpload(
                data=data,
                filename=image.filename,
                content_type=image.mimetype,
            )

        recipe: Recipe = service().submit_recipe(new_recipe, image=upload)
        return jsonify(message="Recipe saved successfully!", recipe=recipe.to_dict()), 201

    @app.get("/api/recipes/tags")
    def list_tags():
        return jsonify(service().list_tags())

    @app.get("/api/recipes/categories")
    def count_by_category():
        return jsonify(service().count_by_category())

    @app.get("/api/recipes/<recipe_id>")
    def get_recipe(recipe_id: str):
        return jsonify(service().get_recipe(recipe_id).to_dict())

    @app.delete("/api/recipes/<recipe_id>")
    def delete_recipe(recipe_id: str):
        service().delete_recipe(recipe_id)
        return jsonify(message="Recipe deleted successfully")

    @app.post("/api/recipes/<recipe_id>/ratings")
    def add_rating(recipe_id: str):
        payload = _payload()
        summary = service().append_rating(recipe_id, payload.get("rating"))
        return jsonify(summary.to_dict())

    @app.post("/api/recipes/<recipe_id>/comments")
    def add_comment(recipe_id: str):
        payload = _payload()
        comment = service().append_comment(recipe_id, payload.get("text"), payload.get("author"))
        return jsonify(message="Comment added", comment=comment.to_dict()), 201

    @app.errorhandler(RecipeError)
    def handle_recipe_error(exc: RecipeError):
        body = exc.to_dict()
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.message, request.method, request.path, exc.errors)
            if not settings.debug_errors:
                body.pop("errors", None)
        return jsonify(body), exc.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc: RequestEntityTooLarge):
        return jsonify(message="File too large."), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(message=exc.description), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        body = {"message": "Internal server error"}
        if settings.debug_errors:
            body["error"] = str(exc)
        return jsonify(body), 500

    return app


def _payload():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def _build_storage(settings: Settings) -> RecipeRepository:
    if settings.backend == "memory":
        return InMemoryRecipeStorage()
    if FirestoreRecipeStorage is None:
        raise RuntimeError(
            "google-cloud-firestore is not installed. Install optional dependencies "
            "or pass an explicit storage backend to create_app."
        )
    return FirestoreRecipeStorage.from_settings(settings)


def _build_images(settings: Settings) -> Optional[ImageStore]:
    if settings.backend == "memory":
        return InMemoryImageStore()
    if settings.gcs_bucket and CloudStorageImageStore is not None:
        return CloudStorageImageStore.from_settings(settings)
    return None


__all__ = ["create_app", "Recipe", "Settings"]

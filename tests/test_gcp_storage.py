from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore

from recipehub.errors import StorageFailure, UploadFailure
from recipehub.gcp_storage import CloudStorageImageStore, FirestoreRecipeStorage, apply_query
from recipehub.query import RecipeQuery


def chainable_collection():
    collection = MagicMock()
    collection.where.return_value = collection
    collection.order_by.return_value = collection
    collection.select.return_value = collection
    return collection


def make_doc(doc_id, **data):
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = True
    doc.to_dict.return_value = data
    return doc


def make_storage(collection):
    client = MagicMock()
    client.collection.return_value = collection
    return FirestoreRecipeStorage(client=client), client


def recipe_data(title, ingredients=("flour",), **extra):
    data = {
        "title": title,
        "category": "bread",
        "ingredients": [{"name": name, "amount": "1"} for name in ingredients],
        "instructions": ["Bake."],
        "tags": [],
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "ratings": [],
        "comments": [],
    }
    data.update(extra)
    return data


def test_apply_query_pushes_down_filters():
    collection = chainable_collection()
    query = RecipeQuery(category="bread", difficulty="easy", tags=frozenset({"rye", "vegan"}))

    apply_query(collection, query)

    filters = [call.kwargs["filter"] for call in collection.where.call_args_list]
    assert [(f.field_path, f.op_string, f.value) for f in filters] == [
        ("category", "==", "bread"),
        ("difficulty", "==", "easy"),
        ("tags", "array_contains_any", ["rye", "vegan"]),
    ]
    collection.order_by.assert_called_once_with(
        "created_at", direction=firestore.Query.DESCENDING
    )


def test_apply_query_orders_by_requested_sort():
    collection = chainable_collection()

    apply_query(collection, RecipeQuery(sort="time"))

    collection.where.assert_not_called()
    collection.order_by.assert_called_once_with("cooking_time", direction=firestore.Query.ASCENDING)


def test_apply_query_skips_oversized_tag_filter():
    collection = chainable_collection()
    tags = frozenset(f"tag{index}" for index in range(31))

    apply_query(collection, RecipeQuery(tags=tags))

    collection.where.assert_not_called()


def test_find_many_filters_search_in_python():
    collection = chainable_collection()
    collection.stream.return_value = [
        make_doc("a", **recipe_data("Eggplant Bake")),
        make_doc("b", **recipe_data("Pancakes", ingredients=("Egg", "milk"))),
        make_doc("c", **recipe_data("Toast")),
    ]
    storage, _ = make_storage(collection)

    recipes = list(storage.find_many(RecipeQuery(search="egg")))

    assert [recipe.id for recipe in recipes] == ["a", "b"]


def test_find_by_id_returns_none_for_missing_document():
    collection = chainable_collection()
    snapshot = MagicMock()
    snapshot.exists = False
    collection.document.return_value.get.return_value = snapshot
    storage, _ = make_storage(collection)

    assert storage.find_by_id("missing") is None


def test_find_by_id_recomputes_derived_fields():
    collection = chainable_collection()
    collection.document.return_value.get.return_value = make_doc(
        "abc",
        **recipe_data("Rye", ratings=[{"value": 4}, {"value": 5}], average_rating=1, ratings_count=9),
    )
    storage, _ = make_storage(collection)

    recipe = storage.find_by_id("abc")

    assert recipe.id == "abc"
    assert recipe.ratings_count == 2
    assert recipe.average_rating == 4.5


def test_insert_wraps_api_errors():
    collection = chainable_collection()
    collection.document.return_value.set.side_effect = gcloud_exceptions.ServiceUnavailable("down")
    storage, _ = make_storage(collection)
    recipe = MagicMock()
    recipe.to_document.return_value = {}

    with pytest.raises(StorageFailure) as excinfo:
        storage.insert(recipe)

    assert excinfo.value.message == "Failed to save recipe"
    assert "down" in excinfo.value.errors[0]


def test_distinct_and_count_by_use_projections():
    collection = chainable_collection()
    collection.stream.return_value = [
        make_doc("a", tags=["rye", "baking"], category="bread"),
        make_doc("b", tags=["baking"], category="cakes"),
        make_doc("c", category="bread"),
    ]
    storage, _ = make_storage(collection)

    assert storage.distinct("tags") == {"rye", "baking"}
    assert storage.count_by("category") == {"bread": 2, "cakes": 1}
    collection.select.assert_any_call(["tags"])
    collection.select.assert_any_call(["category"])


def make_image_store(bucket_name="recipes-bucket"):
    client = MagicMock()
    store = CloudStorageImageStore(bucket_name, client=client)
    return store, client.bucket.return_value


def test_image_upload_returns_public_url():
    store, bucket = make_image_store()
    blob = bucket.blob.return_value
    blob.public_url = "https://storage.googleapis.com/recipes-bucket/recipe-app/x_cake.png"

    url = store.upload(b"img", "my cake.png", "image/png")

    assert url == blob.public_url
    blob_name = bucket.blob.call_args.args[0]
    assert blob_name.startswith("recipe-app/")
    assert blob_name.endswith("_my_cake.png")
    blob.upload_from_string.assert_called_once_with(b"img", content_type="image/png")


def test_image_upload_failure_is_distinct():
    store, bucket = make_image_store()
    bucket.blob.return_value.upload_from_string.side_effect = gcloud_exceptions.Forbidden("no")

    with pytest.raises(UploadFailure):
        store.upload(b"img", "cake.png", "image/png")


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://storage.googleapis.com/recipes-bucket/recipe-app/a_b.png", "recipe-app/a_b.png"),
        ("https://storage.googleapis.com/recipes-bucket/recipe-app/a%20b.png?X-Goog=1", "recipe-app/a b.png"),
        ("https://recipes-bucket.storage.googleapis.com/recipe-app/c.png", "recipe-app/c.png"),
        ("https://storage.googleapis.com/other-bucket/recipe-app/a.png", None),
        ("https://example.com/recipe-app/a.png", None),
    ],
)
def test_blob_name_from_url(url, expected):
    store, _ = make_image_store()

    assert store.blob_name_from_url(url) == expected


def test_delete_ignores_missing_blob():
    store, bucket = make_image_store()
    bucket.blob.return_value.delete.side_effect = gcloud_exceptions.NotFound("gone")

    store.delete("https://storage.googleapis.com/recipes-bucket/recipe-app/a.png")

    bucket.blob.assert_called_once_with("recipe-app/a.png")

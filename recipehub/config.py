from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once and passed to the app factory."""

    env: str = "production"
    secret_key: str = "development-secret-change-me"
    backend: str = "firestore"
    gcp_project: Optional[str] = None
    recipes_collection: str = "recipes"
    gcs_bucket: Optional[str] = None
    gcs_image_folder: str = "recipe-app"
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    log_level: str = "INFO"

    @property
    def debug_errors(self) -> bool:
        return self.env == "development"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""

        env = os.environ if environ is None else environ
        return cls(
            env=env.get("APP_ENV", "production").lower(),
            secret_key=env.get("FLASK_SECRET_KEY", "development-secret-change-me"),
            backend=env.get("RECIPE_BACKEND", "firestore").lower(),
            gcp_project=env.get("GCP_PROJECT") or None,
            recipes_collection=env.get("RECIPES_COLLECTION", "recipes"),
            gcs_bucket=env.get("GCS_BUCKET") or None,
            gcs_image_folder=env.get("GCS_IMAGE_FOLDER", "recipe-app"),
            max_image_bytes=int(env.get("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


__all__ = ["Settings"]

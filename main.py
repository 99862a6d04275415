"""WSGI entrypoint for the recipehub API.

The Flask development server is intentionally not started from this module so
that deployments rely on Gunicorn. Local development can still use
``RECIPE_BACKEND=memory flask --app main run`` which imports the ``app``
object defined below.
"""

import logging

from recipehub import Settings, create_app

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)

app = create_app(settings=settings)


__all__ = ["app"]

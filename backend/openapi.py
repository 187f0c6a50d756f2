"""OpenAPI specification for the Lingarr API.

Provides a module-level APISpec instance and a helper to register all
Flask view functions that contain YAML docstrings.
"""

import logging

from apispec import APISpec
from apispec_webframeworks.flask import FlaskPlugin

from version import __version__

logger = logging.getLogger(__name__)

spec = APISpec(
    title="Lingarr API",
    version=__version__,
    openapi_version="3.0.3",
    info={"description": "Subtitle translation request orchestration"},
    plugins=[FlaskPlugin()],
)


def register_all_paths(app):
    """Register all view functions with YAML docstrings into the spec.

    Must be called after register_blueprints(). Views without a ``---``
    marker are skipped.
    """
    registered = 0
    skipped = 0

    with app.test_request_context():
        for name, view_func in app.view_functions.items():
            if name == "static":
                continue

            docstring = getattr(view_func, "__doc__", None) or ""
            if "---" not in docstring:
                skipped += 1
                continue

            try:
                spec.path(view=view_func)
                registered += 1
            except Exception as exc:
                logger.debug("Skipped OpenAPI path for %s: %s", name, exc)
                skipped += 1

    logger.info("OpenAPI: registered %d paths, skipped %d views", registered, skipped)

"""SQLAlchemy ORM models for the Lingarr database.

All models use Flask-SQLAlchemy's db.Model as the base class.
Import all models from here so db.create_all() sees every table.
"""

from db.models.core import (
    ConfigEntry,
    TranslationRequest,
)

__all__ = [
    "ConfigEntry",
    "TranslationRequest",
]

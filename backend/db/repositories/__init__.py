"""Repository pattern for Lingarr database operations using SQLAlchemy ORM.

Repositories own every read and write against the ORM session. The
translation request repository is the sole writer of request status.
"""

from db.repositories.base import BaseRepository
from db.repositories.config import ConfigRepository
from db.repositories.translation_requests import (
    RequestStatus,
    TranslationRequestRepository,
    get_active_gauge,
)

__all__ = [
    "BaseRepository",
    "ConfigRepository",
    "RequestStatus",
    "TranslationRequestRepository",
    "get_active_gauge",
]

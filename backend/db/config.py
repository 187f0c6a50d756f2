"""Settings store convenience functions.

Thin module-level wrappers around ConfigRepository so callers do not have
to instantiate repositories themselves.
"""

import logging
from typing import Optional

from db.repositories.config import ConfigRepository

logger = logging.getLogger(__name__)


def _repo() -> ConfigRepository:
    return ConfigRepository()


def save_setting(key: str, value: str):
    """Save a single runtime setting."""
    _repo().save_setting(key, value)


def save_settings(values: dict):
    """Save several runtime settings in one transaction."""
    _repo().save_settings(values)


def get_setting(key: str) -> Optional[str]:
    """Get a runtime setting, or None when it was never saved."""
    return _repo().get_setting(key)


def get_settings(keys: list[str]) -> dict:
    """Get several runtime settings; missing keys map to None."""
    return _repo().get_settings(keys)


def get_all_settings() -> dict:
    """Get all runtime settings."""
    return _repo().get_all_settings()

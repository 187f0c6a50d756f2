"""Config entries repository -- the runtime settings store.

Translation services resolve their endpoint/credential settings through
get_settings(); the dispatcher reads the active service type with
get_setting().
"""

import logging
from typing import Optional

from sqlalchemy import select

from db.models.core import ConfigEntry
from db.repositories.base import BaseRepository
from transaction_manager import transaction

logger = logging.getLogger(__name__)


class ConfigRepository(BaseRepository):
    """Repository for config_entries table operations."""

    def save_setting(self, key: str, value: str):
        """Save a setting (insert or replace)."""
        with transaction() as session:
            session.merge(ConfigEntry(key=key, value=value, updated_at=self._now()))

    def save_settings(self, values: dict):
        """Save several settings in one transaction."""
        now = self._now()
        with transaction() as session:
            for key, value in values.items():
                session.merge(ConfigEntry(key=key, value=str(value), updated_at=now))

    def get_setting(self, key: str) -> Optional[str]:
        """Get a setting value by key.

        Returns:
            The value string, or None if key not found.
        """
        entry = self.session.get(ConfigEntry, key)
        return entry.value if entry else None

    def get_settings(self, keys: list[str]) -> dict:
        """Get several settings at once.

        Returns:
            Dict with every requested key; missing keys map to None.
        """
        if not keys:
            return {}
        stmt = select(ConfigEntry).where(ConfigEntry.key.in_(keys))
        found = {e.key: e.value for e in self.session.execute(stmt).scalars().all()}
        return {key: found.get(key) for key in keys}

    def get_all_settings(self) -> dict:
        """Get all settings as a {key: value} dict."""
        stmt = select(ConfigEntry)
        entries = self.session.execute(stmt).scalars().all()
        return {e.key: e.value for e in entries}

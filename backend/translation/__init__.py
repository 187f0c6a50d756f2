"""Translation package -- provider services and the service factory.

Service classes are registered by name at factory creation. Instances are
created on first request and cached for the process lifetime; each
instance loads its own config lazily (see TranslationService.ensure_initialized).
"""

import logging
import threading
from typing import Optional

from error_handler import UnsupportedProviderError
from setting_keys import SERVICE_TYPE
from translation.base import TranslationService

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_TYPE = "libretranslate"


class TranslationServiceFactory:
    """Maps a configured service-type key to a TranslationService instance."""

    def __init__(self, settings_store=None):
        """
        Args:
            settings_store: Object exposing get_setting/get_settings; handed
                to every service instance. Defaults to the database store.
        """
        if settings_store is None:
            import db.config as settings_store
        self._settings_store = settings_store
        self._service_classes: dict[str, type[TranslationService]] = {}
        self._services: dict[str, TranslationService] = {}
        self._services_lock = threading.Lock()

    def register_service(self, cls: type[TranslationService]) -> None:
        """Register a service class by its name attribute."""
        self._service_classes[cls.name] = cls
        logger.debug("Registered translation service: %s", cls.name)

    def create_service(self, name: str) -> TranslationService:
        """Get or create the service instance registered under name.

        Raises:
            UnsupportedProviderError: If no service is registered under name.
        """
        key = (name or "").strip().lower()
        with self._services_lock:
            service = self._services.get(key)
            if service is not None:
                return service

            cls = self._service_classes.get(key)
            if cls is None:
                logger.warning("Unknown translation service: %s", name)
                raise UnsupportedProviderError(name, context={"service_type": name})

            service = cls(settings_store=self._settings_store)
            self._services[key] = service
            logger.info("Created translation service instance: %s", key)
            return service

    def get_configured_service_type(self) -> str:
        """Active service type from the settings store (default libretranslate)."""
        value = self._settings_store.get_setting(SERVICE_TYPE)
        if value is None or not str(value).strip():
            from config import get_settings
            return get_settings().default_service_type or DEFAULT_SERVICE_TYPE
        return str(value).strip()

    def create_configured_service(self) -> TranslationService:
        return self.create_service(self.get_configured_service_type())

    def get_all_services(self) -> list[dict]:
        """Describe every registered service for the settings UI."""
        active = self.get_configured_service_type()
        result = []
        for name, cls in self._service_classes.items():
            info = cls.describe()
            info["active"] = name == active
            with self._services_lock:
                instance = self._services.get(name)
            info["initialized"] = bool(instance and instance.initialized)
            result.append(info)
        return result

    def get_service_names(self) -> list[str]:
        return list(self._service_classes)

    def invalidate(self, name: Optional[str] = None) -> None:
        """Drop cached instances so changed settings are re-read."""
        with self._services_lock:
            if name is None:
                self._services.clear()
            else:
                self._services.pop(name, None)
        logger.info("Invalidated translation service instance(s): %s", name or "all")


# ─── Singleton ────────────────────────────────────────────────────────────────

_factory: Optional[TranslationServiceFactory] = None
_factory_lock = threading.Lock()


def get_translation_factory() -> TranslationServiceFactory:
    """Get or create the singleton TranslationServiceFactory (thread-safe)."""
    global _factory
    if _factory is None:
        with _factory_lock:
            if _factory is None:
                factory = TranslationServiceFactory()
                register_builtin_services(factory)
                _factory = factory
    return _factory


def invalidate_translation_factory() -> None:
    """Destroy the singleton instance (for testing or config reload)."""
    global _factory
    with _factory_lock:
        _factory = None


def register_builtin_services(factory: TranslationServiceFactory) -> None:
    """Register all built-in translation services."""
    from translation.anthropic import AnthropicService
    from translation.custom import CustomService
    from translation.deepl_backend import DeepLService
    from translation.libretranslate import LibreTranslateService
    from translation.localai import LocalAIService
    from translation.openai_compat import OpenAIService

    for cls in (LibreTranslateService, DeepLService, OpenAIService,
                AnthropicService, LocalAIService, CustomService):
        factory.register_service(cls)

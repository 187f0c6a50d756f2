"""Translation service base classes and the outcome types they return.

Every provider implements the same capability: translate one piece of
text from a source to a target language. Callers either branch on an
Outcome (translate_outcome) or let typed exceptions propagate (translate).

Provider configuration (endpoint, credentials, model) is loaded lazily from
the settings store on first use, exactly once, under a per-instance lock.
A failed load raises ConfigurationError and leaves the service
uninitialized so a later call can retry once the settings are fixed.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import requests

from error_handler import (
    CancellationRequested,
    ConfigurationError,
    InvalidResponseError,
    NonRetryableProviderError,
    TransientProviderError,
)
from setting_keys import backend_key
from translation.resilient import RETRYABLE, SUCCESS, classify_response, send_with_retry

logger = logging.getLogger(__name__)


# ─── Outcomes ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Transient:
    """Provider kept failing with 429/5xx/connection errors."""

    reason: str
    status_code: int | None = None


@dataclass(frozen=True)
class Fatal:
    """Provider rejected the call or answered with an unusable body."""

    reason: str
    status_code: int | None = None


@dataclass(frozen=True)
class Cancelled:
    reason: str = "cancelled"


Outcome = Success | Transient | Fatal | Cancelled


# ─── Base classes ─────────────────────────────────────────────────────────────


class TranslationService(ABC):
    """Abstract base class for translation services.

    Class-level attributes for the settings UI and the factory:
        name: Unique service identifier (lowercase, e.g. "libretranslate")
        display_name: Human-readable name for the settings UI
        config_fields: Declarative config field definitions.
            Each dict: {"key": str, "label": str, "type": "text"|"password"|"number",
                        "required": bool, "default": str, "help": str}
            Values are read from the settings store under backend.<name>.<key>.
        extra_settings: Additional {config_key: settings_store_key} lookups
            shared between services (e.g. the LLM system prompt).
    """

    name: str = "unknown"
    display_name: str = "Unknown"
    config_fields: list[dict] = []
    extra_settings: dict[str, str] = {}

    def __init__(self, settings_store=None):
        """
        Args:
            settings_store: Object exposing get_settings(keys) -> dict.
                Defaults to the database-backed store.
        """
        if settings_store is None:
            import db.config as settings_store
        self._settings_store = settings_store
        self._init_lock = threading.Lock()
        self._initialized = False
        self.config: dict = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> None:
        """Load and validate provider config once (initialize-or-reuse).

        Raises:
            ConfigurationError: If a required setting is missing.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            config = self._load_config()
            self._validate_config(config)
            self._setup(config)
            self.config = config
            self._initialized = True
            logger.info("Translation service %s initialized", self.name)

    def reset(self) -> None:
        """Forget loaded config so the next call re-reads the settings store."""
        with self._init_lock:
            self._initialized = False
            self.config = {}

    def _load_config(self) -> dict:
        key_map = {f["key"]: backend_key(self.name, f["key"]) for f in self.config_fields}
        key_map.update(self.extra_settings)
        values = self._settings_store.get_settings(list(key_map.values())) if key_map else {}

        config = {}
        for field in self.config_fields:
            value = values.get(key_map[field["key"]])
            if value is None or str(value).strip() == "":
                value = field.get("default", "")
            config[field["key"]] = str(value).strip()
        for key, store_key in self.extra_settings.items():
            config[key] = values.get(store_key) or ""
        return config

    def _validate_config(self, config: dict) -> None:
        missing = [f["label"] for f in self.config_fields
                   if f.get("required") and not config.get(f["key"])]
        if missing:
            raise ConfigurationError(
                f"{self.display_name} is not configured: missing {', '.join(missing)}",
                context={"service": self.name},
                troubleshooting=f"Set {', '.join(missing)} for {self.display_name} in Settings.",
            )

    def _setup(self, config: dict) -> None:
        """Hook run once after config validated; open connections here."""

    @abstractmethod
    def _translate(self, text: str, source_language: str, target_language: str,
                   cancel: threading.Event | None) -> str:
        """Perform the provider call. Raise typed errors on failure."""

    def translate(self, text: str, source_language: str, target_language: str,
                  cancel: threading.Event | None = None) -> str:
        """Translate text, raising on failure.

        Raises:
            ConfigurationError: Provider settings missing.
            TransientProviderError: Retries exhausted on 429/5xx/network.
            NonRetryableProviderError: Provider rejected the request.
            InvalidResponseError: Success status with empty or malformed body.
            CancellationRequested: cancel was set.
        """
        self.ensure_initialized()
        return self._translate(text, source_language, target_language, cancel)

    def translate_outcome(self, text: str, source_language: str, target_language: str,
                          cancel: threading.Event | None = None) -> Outcome:
        """Translate text and report the result as an Outcome.

        ConfigurationError is not an outcome; it propagates.
        """
        try:
            return Success(self.translate(text, source_language, target_language, cancel))
        except CancellationRequested:
            return Cancelled()
        except TransientProviderError as exc:
            return Transient(str(exc), exc.status_code)
        except NonRetryableProviderError as exc:
            return Fatal(str(exc), exc.status_code)

    @classmethod
    def describe(cls) -> dict:
        return {
            "name": cls.name,
            "display_name": cls.display_name,
            "config_fields": cls.config_fields,
        }


class HttpTranslationService(TranslationService):
    """Base for services that make one JSON HTTP call per translation.

    Subclasses build the request and parse the response envelope; the
    outbound call itself always goes through send_with_retry().
    """

    def __init__(self, settings_store=None, wait: Callable[[float], bool] | None = None):
        super().__init__(settings_store)
        self._wait = wait
        self._session: requests.Session | None = None
        self._timeout = 60
        self._max_attempts = 5
        self._base_delay_ms = 5000

    def _setup(self, config: dict) -> None:
        from config import get_settings
        settings = get_settings()
        self._timeout = settings.provider_request_timeout
        self._max_attempts = settings.provider_max_attempts
        self._base_delay_ms = settings.provider_base_delay_ms

        session = requests.Session()
        session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self._session = session

    def _close_session(self) -> None:
        """Drop pooled connections; the session stays usable for later calls."""
        if self._session is not None:
            self._session.close()

    @abstractmethod
    def _build_request(self, text: str, source_language: str,
                       target_language: str) -> tuple[str, str, dict]:
        """Return (method, url, requests kwargs) for one translation call."""

    @abstractmethod
    def _parse_response(self, data) -> str | None:
        """Extract translated text from the decoded JSON body."""

    def _translate(self, text: str, source_language: str, target_language: str,
                   cancel: threading.Event | None) -> str:
        method, url, kwargs = self._build_request(text, source_language, target_language)
        kwargs.setdefault("timeout", self._timeout)

        resp = send_with_retry(
            lambda: self._session.request(method, url, **kwargs),
            cancel=cancel,
            max_attempts=self._max_attempts,
            base_delay_ms=self._base_delay_ms,
            wait=self._wait,
            label=self.name,
            abort=self._close_session,
        )

        outcome = classify_response(resp)
        if outcome != SUCCESS:
            body = (resp.text or "")[:500]
            logger.error("%s returned HTTP %d: %s", self.display_name, resp.status_code, body)
            message = f"Translation using {self.display_name} failed: HTTP {resp.status_code}: {body}"
            if outcome == RETRYABLE:
                raise TransientProviderError(message, status_code=resp.status_code)
            raise NonRetryableProviderError(message, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise InvalidResponseError(
                f"Invalid response from {self.display_name}: body is not JSON",
                status_code=resp.status_code,
            ) from exc

        try:
            translated = self._parse_response(data)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise InvalidResponseError(
                f"Invalid response from {self.display_name}: unexpected envelope ({exc})",
                status_code=resp.status_code,
            ) from exc

        if not isinstance(translated, str) or not translated.strip():
            raise InvalidResponseError(
                f"Invalid or empty response from {self.display_name}",
                status_code=resp.status_code,
            )
        return translated

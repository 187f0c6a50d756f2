"""Centralized configuration using Pydantic Settings.

All settings can be overridden via environment variables with the LINGARR_ prefix,
or via a .env file. Example: LINGARR_PORT=8080

Provider endpoints and credentials are not process settings: they live in the
config_entries table (see setting_keys.py) so they can be edited at runtime.
"""

import os
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lingarr application settings."""

    # General
    port: int = 9876
    log_level: str = "INFO"
    log_file: str = "/config/lingarr.log"
    log_format: str = "text"  # "text" or "json"
    db_path: str = "/config/lingarr.db"
    database_url: str = ""  # Empty = SQLite at db_path

    # Translation
    default_service_type: str = "libretranslate"
    default_source_language: str = "en"

    # Provider call retry (per outbound call)
    provider_max_attempts: int = 5
    provider_base_delay_ms: int = 5000
    provider_request_timeout: int = 60

    # Job retry (per dispatcher job)
    job_max_retries: int = 5
    job_retry_delay_seconds: int = 30
    max_parallel_translations: int = 2
    requeue_on_startup: bool = True

    # Notifications (Apprise URLs, JSON array or newline-separated)
    notification_urls_json: str = ""
    notify_on_translation_complete: bool = False
    notify_on_translation_failed: bool = True

    model_config = {
        "env_prefix": "LINGARR_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def get_database_url(self) -> str:
        """Return the SQLAlchemy URL (SQLite file at db_path unless overridden)."""
        if self.database_url:
            return self.database_url
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
        return f"sqlite:///{self.db_path}"

    def get_safe_config(self) -> dict:
        """Get config dict without notification URLs (they embed credentials)."""
        data = self.model_dump()
        if data.get("notification_urls_json"):
            data["notification_urls_json"] = "***configured***"
        return data


# Language tag mapping (ISO 639-1 -> all variants)
_LANGUAGE_TAGS = {
    "de": {"de", "deu", "ger", "german"},
    "en": {"en", "eng", "english"},
    "fr": {"fr", "fra", "fre", "french"},
    "es": {"es", "spa", "spanish"},
    "it": {"it", "ita", "italian"},
    "pt": {"pt", "por", "portuguese"},
    "ru": {"ru", "rus", "russian"},
    "ja": {"ja", "jpn", "japanese"},
    "zh": {"zh", "zho", "chi", "chinese"},
    "ko": {"ko", "kor", "korean"},
    "ar": {"ar", "ara", "arabic"},
    "nl": {"nl", "nld", "dut", "dutch"},
    "pl": {"pl", "pol", "polish"},
    "sv": {"sv", "swe", "swedish"},
    "da": {"da", "dan", "danish"},
    "no": {"no", "nor", "norwegian"},
    "fi": {"fi", "fin", "finnish"},
    "cs": {"cs", "ces", "cze", "czech"},
    "hu": {"hu", "hun", "hungarian"},
    "tr": {"tr", "tur", "turkish"},
    "th": {"th", "tha", "thai"},
    "vi": {"vi", "vie", "vietnamese"},
    "id": {"id", "ind", "indonesian"},
    "ms": {"ms", "msa", "may", "malay"},
    "hi": {"hi", "hin", "hindi"},
}

# Display names used in LLM prompts
_LANGUAGE_NAMES = {
    "de": "German",
    "en": "English",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "ar": "Arabic",
    "nl": "Dutch",
    "pl": "Polish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "hu": "Hungarian",
    "tr": "Turkish",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "ms": "Malay",
    "hi": "Hindi",
}


def _get_language_tags(lang_code: str) -> set[str]:
    """Get all known tags for a language code."""
    return _LANGUAGE_TAGS.get(lang_code, {lang_code})


def is_language_tag(tag: str) -> bool:
    """True if tag is any known variant of a supported language."""
    tag = tag.lower()
    return any(tag in tags for tags in _LANGUAGE_TAGS.values())


def get_language_name(lang_code: str) -> str:
    """Human-readable language name, falling back to the code itself."""
    return _LANGUAGE_NAMES.get(lang_code.lower(), lang_code)


# Singleton settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(overrides: dict = None) -> Settings:
    """Force reload settings from environment/file, with optional DB overrides.

    Args:
        overrides: Dict of key-value pairs (from DB config_entries) to apply
                   on top of the env/file settings. Unknown keys are ignored.
    """
    global _settings
    base = Settings()

    if overrides:
        base_data = base.model_dump()
        update = {}
        for key, value in overrides.items():
            if key not in base_data:
                continue
            # Convert string values from DB to the correct field type
            expected_type = type(base_data[key])
            try:
                if expected_type is bool:
                    update[key] = value.lower() in ("true", "1", "yes") if isinstance(value, str) else bool(value)
                elif expected_type is int:
                    update[key] = int(value)
                elif expected_type is float:
                    update[key] = float(value)
                else:
                    update[key] = str(value)
            except (ValueError, TypeError):
                continue  # Skip invalid values

        if update:
            _settings = base.model_copy(update=update)
        else:
            _settings = base
    else:
        _settings = base

    return _settings

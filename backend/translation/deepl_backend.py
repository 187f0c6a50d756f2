"""DeepL translation service using the v2 REST API.

Supports both Free and Pro plans (auto-detected from API key suffix).
"""

import logging

from translation.base import HttpTranslationService

logger = logging.getLogger(__name__)

_FREE_API_URL = "https://api-free.deepl.com/v2/translate"
_PRO_API_URL = "https://api.deepl.com/v2/translate"

# DeepL language code mapping (ISO 639-1 -> DeepL target codes)
_DEEPL_LANG_MAP = {
    "en": "EN-US",
    "de": "DE",
    "fr": "FR",
    "es": "ES",
    "it": "IT",
    "ja": "JA",
    "zh": "ZH",
    "ko": "KO",
    "pt": "PT-BR",  # Default to Brazilian Portuguese
    "ru": "RU",
    "pl": "PL",
    "nl": "NL",
    "sv": "SV",
    "da": "DA",
    "fi": "FI",
    "cs": "CS",
    "hu": "HU",
    "tr": "TR",
    "el": "EL",
    "ro": "RO",
    "bg": "BG",
    "sk": "SK",
    "sl": "SL",
    "lt": "LT",
    "lv": "LV",
    "et": "ET",
    "id": "ID",
    "uk": "UK",
    "nb": "NB",  # Norwegian Bokmal
    "ar": "AR",
}


def _to_deepl_target(iso_code: str) -> str:
    """Map ISO 639-1 code to a DeepL target code (regional variants allowed)."""
    return _DEEPL_LANG_MAP.get(iso_code.lower(), iso_code.upper())


def _to_deepl_source(iso_code: str) -> str:
    """DeepL source languages never carry a region suffix."""
    return _to_deepl_target(iso_code).split("-")[0]


def is_free_key(api_key: str) -> bool:
    return api_key.endswith(":fx")


class DeepLService(HttpTranslationService):
    """DeepL translation service.

    Free-plan keys (suffix ``:fx``) are sent to api-free.deepl.com.
    """

    name = "deepl"
    display_name = "DeepL"

    config_fields = [
        {
            "key": "api_key",
            "label": "API Key",
            "type": "password",
            "required": True,
            "default": "",
            "help": "DeepL API key (Free keys end with :fx)",
        },
    ]

    def _build_request(self, text, source_language, target_language):
        api_key = self.config["api_key"]
        url = _FREE_API_URL if is_free_key(api_key) else _PRO_API_URL
        payload = {
            "text": [text],
            "source_lang": _to_deepl_source(source_language),
            "target_lang": _to_deepl_target(target_language),
        }
        headers = {"Authorization": f"DeepL-Auth-Key {api_key}"}
        return "POST", url, {"json": payload, "headers": headers}

    def _parse_response(self, data):
        translations = data.get("translations") or []
        if not translations:
            return None
        return translations[0].get("text")

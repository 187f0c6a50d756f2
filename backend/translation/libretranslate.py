"""LibreTranslate translation service using the REST API.

Self-hosted open-source machine translation. The default service when
no service type is configured.
"""

import logging

from translation.base import HttpTranslationService

logger = logging.getLogger(__name__)


class LibreTranslateService(HttpTranslationService):
    """Connects to a LibreTranslate instance via POST /translate."""

    name = "libretranslate"
    display_name = "LibreTranslate (Self-Hosted)"

    config_fields = [
        {
            "key": "url",
            "label": "LibreTranslate URL",
            "type": "text",
            "required": True,
            "default": "http://libretranslate:5000",
            "help": "LibreTranslate API endpoint",
        },
        {
            "key": "api_key",
            "label": "API Key (optional)",
            "type": "password",
            "required": False,
            "default": "",
            "help": "Only needed for public instances",
        },
    ]

    def _build_request(self, text, source_language, target_language):
        payload = {
            "q": text,
            "source": source_language,
            "target": target_language,
            "format": "text",
        }
        if self.config.get("api_key"):
            payload["api_key"] = self.config["api_key"]
        url = self.config["url"].rstrip("/")
        return "POST", f"{url}/translate", {"json": payload}

    def _parse_response(self, data):
        return data.get("translatedText")

"""Custom endpoint translation service.

Speaks the generic JSON contract: request ``{"text": ...}``, response
``{"translatedText": ...}``.
"""

from translation.base import HttpTranslationService


class CustomService(HttpTranslationService):
    name = "custom"
    display_name = "Custom Endpoint"

    config_fields = [
        {
            "key": "endpoint",
            "label": "Endpoint",
            "type": "text",
            "required": True,
            "default": "",
            "help": "URL that accepts {\"text\"} and returns {\"translatedText\"}",
        },
    ]

    def _build_request(self, text, source_language, target_language):
        return "POST", self.config["endpoint"], {"json": {"text": text}}

    def _parse_response(self, data):
        return data.get("translatedText")

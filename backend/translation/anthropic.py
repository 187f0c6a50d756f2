"""Anthropic Messages API translation service."""

import logging

from setting_keys import AI_PROMPT
from translation.base import HttpTranslationService
from translation.llm_utils import build_system_prompt, clean_llm_response

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MAX_TOKENS = 1024


class AnthropicService(HttpTranslationService):
    """Translates through POST /v1/messages with the shared system prompt."""

    name = "anthropic"
    display_name = "Anthropic"
    extra_settings = {"prompt": AI_PROMPT}

    config_fields = [
        {
            "key": "api_key",
            "label": "API Key",
            "type": "password",
            "required": True,
            "default": "",
            "help": "Anthropic API key",
        },
        {
            "key": "model",
            "label": "Model",
            "type": "text",
            "required": True,
            "default": "",
            "help": "Model identifier used for translation",
        },
        {
            "key": "version",
            "label": "API Version",
            "type": "text",
            "required": True,
            "default": "2023-06-01",
            "help": "Value of the anthropic-version header",
        },
    ]

    def _build_request(self, text, source_language, target_language):
        headers = {
            "x-api-key": self.config["api_key"],
            "anthropic-version": self.config["version"],
        }
        payload = {
            "model": self.config["model"],
            "max_tokens": DEFAULT_MAX_TOKENS,
            "system": build_system_prompt(self.config.get("prompt"),
                                          source_language, target_language),
            "messages": [{"role": "user", "content": text}],
        }
        return "POST", ANTHROPIC_MESSAGES_URL, {"json": payload, "headers": headers}

    def _parse_response(self, data):
        content = data.get("content") or []
        if not content:
            return None
        return clean_llm_response(content[0].get("text"))

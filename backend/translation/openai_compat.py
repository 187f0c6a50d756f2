"""OpenAI chat-completions translation service.

Also the base for any OpenAI-compatible endpoint (see translation.localai).
The system prompt comes from the shared translation.ai_prompt setting.
"""

import logging

from setting_keys import AI_PROMPT
from translation.base import HttpTranslationService
from translation.llm_utils import build_system_prompt, clean_llm_response

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class ChatCompletionsService(HttpTranslationService):
    """Shared request/response shape for /v1/chat/completions APIs."""

    extra_settings = {"prompt": AI_PROMPT}

    def _chat_url(self) -> str:
        return OPENAI_CHAT_URL

    def _auth_headers(self) -> dict:
        api_key = self.config.get("api_key", "")
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}

    def _build_request(self, text, source_language, target_language):
        system_prompt = build_system_prompt(self.config.get("prompt"),
                                            source_language, target_language)
        payload = {
            "model": self.config["model"],
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
        }
        return "POST", self._chat_url(), {"json": payload, "headers": self._auth_headers()}

    def _parse_response(self, data):
        choices = data.get("choices") or []
        if not choices:
            return None
        return clean_llm_response(choices[0]["message"]["content"])


class OpenAIService(ChatCompletionsService):
    """OpenAI hosted models (gpt-4o-mini by default)."""

    name = "openai"
    display_name = "OpenAI"

    config_fields = [
        {
            "key": "api_key",
            "label": "API Key",
            "type": "password",
            "required": True,
            "default": "",
            "help": "OpenAI API key",
        },
        {
            "key": "model",
            "label": "Model",
            "type": "text",
            "required": True,
            "default": "gpt-4o-mini",
            "help": "Chat model used for translation",
        },
    ]

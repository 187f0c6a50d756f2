"""LocalAI (or any self-hosted OpenAI-compatible server) translation service."""

from translation.openai_compat import ChatCompletionsService


class LocalAIService(ChatCompletionsService):
    """Chat completions against a configured endpoint, e.g. LocalAI, vLLM, LM Studio.

    The endpoint is the full chat-completions URL. The API key is optional.
    """

    name = "localai"
    display_name = "LocalAI (OpenAI-compatible)"

    config_fields = [
        {
            "key": "endpoint",
            "label": "Endpoint",
            "type": "text",
            "required": True,
            "default": "",
            "help": "Full chat completions URL, e.g. http://localai:8080/v1/chat/completions",
        },
        {
            "key": "model",
            "label": "Model",
            "type": "text",
            "required": True,
            "default": "",
            "help": "Model name as known to the server",
        },
        {
            "key": "api_key",
            "label": "API Key (optional)",
            "type": "password",
            "required": False,
            "default": "",
            "help": "Sent as a bearer token when set",
        },
    ]

    def _chat_url(self) -> str:
        return self.config["endpoint"]

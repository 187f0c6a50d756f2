"""Keys of runtime settings stored in the config_entries table.

Provider settings are namespaced as backend.<provider>.<field>; each
translation service declares its fields in config_fields and resolves the
full key with backend_key().
"""

SERVICE_TYPE = "translation.service_type"
AI_PROMPT = "translation.ai_prompt"


def backend_key(provider: str, field: str) -> str:
    """Full settings key for a provider config field."""
    return f"backend.{provider}.{field}"

"""Config routes - /config, /settings, /providers."""

import logging

from flask import Blueprint, jsonify, request

from events import emit_event

bp = Blueprint("config", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)

_MASK = "***configured***"


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return "api_key" in lowered or "password" in lowered or "token" in lowered


@bp.route("/config", methods=["GET"])
def get_config():
    """Get process configuration (without secrets).
    ---
    get:
      tags:
        - Config
      summary: Get configuration
      responses:
        200:
          description: Configuration object
    """
    from config import get_settings
    return jsonify(get_settings().get_safe_config())


@bp.route("/settings", methods=["GET"])
def get_runtime_settings():
    """Get runtime settings from the settings store.
    ---
    get:
      tags:
        - Config
      summary: Get runtime settings
      description: >
        Returns the requested keys (comma-separated ``keys`` parameter) or
        every stored setting. Credential values are masked.
      parameters:
        - in: query
          name: keys
          schema:
            type: string
          example: translation.service_type,backend.deepl.api_key
      responses:
        200:
          description: Key-value map; missing keys are null
    """
    from db.config import get_all_settings, get_settings

    keys = [k.strip() for k in request.args.get("keys", "").split(",") if k.strip()]
    values = get_settings(keys) if keys else get_all_settings()
    return jsonify({
        key: (_MASK if value and _is_secret(key) else value)
        for key, value in values.items()
    })


@bp.route("/settings", methods=["PUT"])
def update_runtime_settings():
    """Save runtime settings and drop cached provider instances.
    ---
    put:
      tags:
        - Config
      summary: Update runtime settings
      description: >
        Saves key-value pairs to the settings store. Keys matching process
        configuration fields are also applied to the live settings.
        Masked values ('***configured***') are skipped.
      requestBody:
        required: true
        content:
          application/json:
            schema:
              type: object
              additionalProperties: true
      responses:
        200:
          description: Settings saved
        400:
          description: No values provided
    """
    from config import Settings, reload_settings
    from db.config import get_all_settings, save_settings
    from notifier import invalidate_notifier
    from translation import get_translation_factory

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "No settings provided"}), 400

    to_save = {}
    for key, value in data.items():
        if value is None or str(value) == _MASK:
            continue
        to_save[key] = str(value).strip()

    if to_save:
        save_settings(to_save)

    saved_keys = sorted(to_save)
    if any(k in Settings.model_fields for k in saved_keys):
        reload_settings(get_all_settings())
    if any(k.startswith("notification") or k.startswith("notify_") for k in saved_keys):
        invalidate_notifier()
    get_translation_factory().invalidate()

    logger.info("Settings updated: %s", saved_keys)
    emit_event("config_updated", {"updated_keys": saved_keys})
    return jsonify({"status": "saved", "updated_keys": saved_keys})


@bp.route("/providers", methods=["GET"])
def list_providers():
    """List registered translation services and their config fields."""
    from translation import get_translation_factory

    factory = get_translation_factory()
    return jsonify({
        "active": factory.get_configured_service_type(),
        "services": factory.get_all_services(),
    })

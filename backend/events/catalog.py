"""Event catalog - discoverable registry of all Lingarr internal events.

Defines blinker signals in a Namespace and an EVENT_CATALOG dict mapping
event names to metadata (label, description, payload keys). This is the
single source of truth for what events exist in the system.

Payload keys intentionally omit secrets and provider credentials.
"""

from blinker import Namespace

# All Lingarr signals live in this namespace
lingarr_signals = Namespace()

# Catalog version for future payload schema evolution
CATALOG_VERSION = 1

# ---- Signal definitions --------------------------------------------------------

request_progress = lingarr_signals.signal("request_progress")
active_count = lingarr_signals.signal("active_count")
translation_requested = lingarr_signals.signal("translation_requested")
translation_complete = lingarr_signals.signal("translation_complete")
translation_cancelled = lingarr_signals.signal("translation_cancelled")
translation_failed = lingarr_signals.signal("translation_failed")
config_updated = lingarr_signals.signal("config_updated")

# ---- Catalog dict (machine-readable metadata) ----------------------------------

EVENT_CATALOG: dict[str, dict] = {
    "request_progress": {
        "signal": request_progress,
        "label": "Request Progress",
        "description": "Incremental progress of a translation request (0-100).",
        "payload_keys": ["request_id", "progress", "completed"],
    },
    "active_count": {
        "signal": active_count,
        "label": "Active Translations",
        "description": "Number of requests currently in progress changed.",
        "payload_keys": ["count"],
    },
    "translation_requested": {
        "signal": translation_requested,
        "label": "Translation Requested",
        "description": "A translation request was created and handed to the dispatcher.",
        "payload_keys": ["request_id", "job_id", "title", "target_language"],
    },
    "translation_complete": {
        "signal": translation_complete,
        "label": "Translation Complete",
        "description": "A translation request finished and its output was written.",
        "payload_keys": ["request_id", "job_id", "output_path", "service_type"],
    },
    "translation_cancelled": {
        "signal": translation_cancelled,
        "label": "Translation Cancelled",
        "description": "A translation request was cancelled; partial work was discarded.",
        "payload_keys": ["request_id", "job_id"],
    },
    "translation_failed": {
        "signal": translation_failed,
        "label": "Translation Failed",
        "description": "A translation request failed after its final attempt.",
        "payload_keys": ["request_id", "job_id", "error"],
    },
    "config_updated": {
        "signal": config_updated,
        "label": "Config Updated",
        "description": "Runtime settings were changed.",
        "payload_keys": ["updated_keys"],
    },
}


def get_event_catalog() -> list[dict]:
    """Return the catalog as a JSON-serializable list (signals omitted)."""
    return [
        {
            "name": name,
            "label": entry["label"],
            "description": entry["description"],
            "payload_keys": list(entry["payload_keys"]),
        }
        for name, entry in EVENT_CATALOG.items()
    ]

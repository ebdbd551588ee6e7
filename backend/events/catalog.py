"""Event catalog -- discoverable registry of all foursubs internal events.

Defines blinker signals in a Namespace and an EVENT_CATALOG dict mapping
event names to metadata (label, description, payload keys). This is the
single source of truth for what events exist in the system.

Payload keys omit secrets and absolute filesystem paths.
"""

from blinker import Namespace

foursubs_signals = Namespace()

# Catalog version for future payload schema evolution
CATALOG_VERSION = 1

# ---- Signal definitions --------------------------------------------------------

job_created = foursubs_signals.signal("job_created")
job_updated = foursubs_signals.signal("job_updated")
settings_updated = foursubs_signals.signal("settings_updated")
provider_credential_saved = foursubs_signals.signal("provider_credential_saved")
candidates_updated = foursubs_signals.signal("candidates_updated")
subtitle_downloaded = foursubs_signals.signal("subtitle_downloaded")

# ---- Catalog dict (machine-readable metadata) ----------------------------------

EVENT_CATALOG: dict[str, dict] = {
    "job_created": {
        "signal": job_created,
        "label": "Job Created",
        "description": "A background job was queued.",
        "payload_keys": ["id", "type", "status", "details"],
    },
    "job_updated": {
        "signal": job_updated,
        "label": "Job Updated",
        "description": "A background job changed status (running, completed, failed).",
        "payload_keys": [
            "id",
            "status",
            "error",
            "scanned_video",
            "missing_subtitles",
            "inserted",
            "updated",
            "failed_roots",
        ],
    },
    "settings_updated": {
        "signal": settings_updated,
        "label": "Settings Updated",
        "description": "Language priority or output settings were changed.",
        "payload_keys": ["language_priority", "auto_replace_existing"],
    },
    "provider_credential_saved": {
        "signal": provider_credential_saved,
        "label": "Provider Credential Saved",
        "description": "New credentials were stored for a provider.",
        "payload_keys": ["provider"],
    },
    "candidates_updated": {
        "signal": candidates_updated,
        "label": "Candidates Updated",
        "description": "A subtitle search replaced the candidate set of a media item.",
        "payload_keys": ["media_id", "count", "errors"],
    },
    "subtitle_downloaded": {
        "signal": subtitle_downloaded,
        "label": "Subtitle Downloaded",
        "description": "A subtitle file was downloaded from a provider and saved.",
        "payload_keys": ["media_id", "provider", "language", "file_name"],
    },
}

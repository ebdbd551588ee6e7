"""Config routes: /settings, /config."""

import logging

from flask import Blueprint, jsonify, request

from error_handler import ValidationError

bp = Blueprint("config", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/settings", methods=["GET"])
def get_runtime_settings():
    """Get the stored runtime settings.
    ---
    get:
      tags:
        - Config
      summary: Get runtime settings
      description: Language priority, subtitle output path and the auto-replace policy.
      responses:
        200:
          description: Current settings
    """
    from db.config import get_app_settings

    return jsonify(get_app_settings())


@bp.route("/settings", methods=["PUT"])
def update_runtime_settings():
    """Replace the runtime settings.

    Body: {"language_priority": [...], "subtitle_output_path": "...",
    "auto_replace_existing": false}. Priority and path must be non-empty.
    """
    from db.config import update_app_settings
    from events import emit_event

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("decode request: expected a JSON object")

    updated = update_app_settings(
        data.get("language_priority"),
        data.get("subtitle_output_path") or "",
        bool(data.get("auto_replace_existing", False)),
    )
    logger.info("Settings updated: priority=%s", ",".join(updated["language_priority"]))
    emit_event("settings_updated", {
        "language_priority": updated["language_priority"],
        "auto_replace_existing": updated["auto_replace_existing"],
    })
    return jsonify(updated)


@bp.route("/config", methods=["GET"])
def get_config():
    """Environment configuration with secrets masked."""
    from config import get_settings

    return jsonify(get_settings().get_safe_config())

"""Provider routes: /providers, /providers/<name>/credential."""

import logging

from flask import Blueprint, jsonify, request

from error_handler import NotFoundError, ValidationError

bp = Blueprint("providers", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/providers", methods=["GET"])
def list_providers():
    """Get status of all subtitle providers.
    ---
    get:
      tags:
        - Providers
      summary: List all providers
      description: Registered catalogs with their capabilities and whether a credential is stored.
      responses:
        200:
          description: Provider list
    """
    from providers import get_provider_manager

    return jsonify(get_provider_manager().get_provider_status())


@bp.route("/providers/<name>/credential", methods=["PUT", "POST"])
def save_credential(name):
    """Encrypt and store a provider credential.

    Field values are trimmed and blank fields dropped; a body with no
    non-blank field is rejected. The response never echoes the secret.
    """
    from config import get_settings
    from credential_vault import seal_credential
    from db.providers import save_credential_blob
    from events import emit_event
    from providers import get_provider_names

    name = (name or "").strip().lower()
    if name not in get_provider_names():
        raise NotFoundError(f"unknown provider: {name}", context={"provider": name})

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("decode request: expected a JSON object of string fields")

    fields = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise ValidationError(f"credential field {key!r} must be a string")
        if value.strip():
            fields[key] = value.strip()
    if not fields:
        raise ValidationError("no non-empty credential fields provided")

    save_credential_blob(name, seal_credential(fields, get_settings().app_secret))
    logger.info("Saved credential for provider %s (%d fields)", name, len(fields))
    emit_event("provider_credential_saved", {"provider": name})
    return jsonify({"provider": name, "configured": True})

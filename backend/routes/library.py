"""Library routes: /jobs, /scan, /media, /media/<id>/search-subtitles, /media/<id>/candidates."""

import logging

from flask import Blueprint, current_app, jsonify, request

from error_handler import NotFoundError, ValidationError

bp = Blueprint("library", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


def _int_arg(name: str, default: int, maximum: int) -> int:
    """Positive int query parameter; out-of-range or malformed values fall back."""
    raw = (request.args.get(name) or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0 or value > maximum:
        return default
    return value


def _media_id(raw: str) -> int:
    try:
        media_id = int(raw.strip())
    except ValueError:
        media_id = 0
    if media_id <= 0:
        raise ValidationError("invalid media id", context={"media_id": raw})
    return media_id


def _load_media(raw_id: str) -> dict:
    from db.library import get_media_item

    media_id = _media_id(raw_id)
    media = get_media_item(media_id)
    if media is None:
        raise NotFoundError("media not found", context={"media_id": media_id})
    return media


@bp.route("/jobs", methods=["GET"])
def list_jobs():
    """Recent jobs, newest first. ?limit=1..500 (default 50)."""
    from db.jobs import list_jobs as _list_jobs

    return jsonify(_list_jobs(_int_arg("limit", 50, 500)))


@bp.route("/scan", methods=["POST"])
def start_library_scan():
    """Queue a library scan.
    ---
    post:
      tags:
        - Library
      summary: Scan media roots
      description: Creates a scan job and runs it in the background. Poll /jobs for progress.
      responses:
        202:
          description: Job accepted
    """
    from scan_job import start_scan

    job = start_scan(current_app._get_current_object())
    return jsonify(job), 202


@bp.route("/media", methods=["GET"])
def list_media():
    """Known media items. ?missing_sub=true limits to items without subtitles."""
    from db.library import list_media_items

    missing_only = (request.args.get("missing_sub") or "").strip().lower() == "true"
    return jsonify(list_media_items(missing_only=missing_only,
                                    limit=_int_arg("limit", 200, 1000)))


@bp.route("/media/<media_id>/search-subtitles", methods=["POST"])
def search_subtitles(media_id):
    """Search all configured catalogs for one media item.
    ---
    post:
      tags:
        - Library
      summary: Search subtitles
      description: |
        Runs every configured provider in parallel. Provider failures are
        reported in `errors` and do not fail the request. The stored
        candidate set is replaced by this search's results.
      responses:
        200:
          description: Ranked candidates, per-provider errors and providers_run
        404:
          description: Unknown media id
    """
    from db.config import get_app_settings
    from providers import get_provider_manager

    media = _load_media(media_id)
    outcome = get_provider_manager().search_media(media, get_app_settings())
    return jsonify(outcome.to_dict())


@bp.route("/media/<media_id>/candidates", methods=["GET"])
def media_candidates(media_id):
    from db.candidates import list_candidates

    media = _load_media(media_id)
    return jsonify(list_candidates(media["id"], _int_arg("limit", 100, 1000)))


@bp.route("/media/<media_id>/candidates/<int:candidate_id>/download", methods=["POST"])
def download_candidate(media_id, candidate_id):
    """Download a stored candidate and save it below the subtitle output path."""
    from db.candidates import get_candidate
    from db.config import get_app_settings
    from providers import get_provider_manager

    media = _load_media(media_id)
    candidate = get_candidate(media["id"], candidate_id)
    if candidate is None:
        raise NotFoundError("candidate not found",
                            context={"media_id": media["id"], "candidate_id": candidate_id})

    saved = get_provider_manager().download_candidate(media, candidate, get_app_settings())
    return jsonify(saved.to_dict()), 201

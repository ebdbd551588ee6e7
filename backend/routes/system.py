"""System routes: /health."""

import logging
from datetime import UTC, datetime

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from extensions import db
from version import __version__

bp = Blueprint("system", __name__, url_prefix="/api/v1")
logger = logging.getLogger(__name__)


@bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint.
    ---
    get:
      tags:
        - System
      summary: Basic health check
      description: Returns service status, version and database connectivity.
      responses:
        200:
          description: Service is healthy
        503:
          description: Database unreachable
    """
    status = "ok"
    storage = "sqlite" if db.engine.dialect.name == "sqlite" else db.engine.dialect.name
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check: database unreachable: %s", e)
        status = "unhealthy"

    queue = getattr(current_app, "job_queue", None)
    body = {
        "status": status,
        "service": "4subs",
        "version": __version__,
        "time": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "storage": storage,
        "job_queue": queue.get_backend_info() if queue is not None else None,
    }
    return jsonify(body), 200 if status == "ok" else 503

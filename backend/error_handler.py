"""Centralized error handling with structured JSON error responses.

Custom exception hierarchy with error codes, HTTP status mapping,
and troubleshooting hints. All FoursubsError subtypes are automatically
caught by Flask error handlers and returned as structured JSON.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import jsonify, g

logger = logging.getLogger(__name__)


# ─── Exception Hierarchy ─────────────────────────────────────────────────────


class FoursubsError(Exception):
    """Base exception for all foursubs application errors.

    Attributes:
        code: Machine-readable error code (e.g. "VAL_001")
        http_status: HTTP status code to return
        context: Additional context data for debugging
        troubleshooting: Human-readable hint for resolving the issue
    """

    code: str = "FOURSUBS_000"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
        troubleshooting: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.context = context or {}
        self.troubleshooting = troubleshooting


class ValidationError(FoursubsError):
    """Request rejected before any external call (empty query, bad settings)."""

    code = "VAL_001"
    http_status = 400


class NotFoundError(FoursubsError):
    """Requested record does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class CredentialError(FoursubsError):
    """Provider secret is missing, malformed, or cannot be decrypted."""

    code = "CRED_001"
    http_status = 500

    def __init__(self, message: str = "Invalid provider credential", **kwargs: object) -> None:
        kwargs.setdefault(
            "troubleshooting",
            "Re-save the provider credentials, and check FOURSUBS_APP_SECRET has not changed.",
        )
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransportError(FoursubsError):
    """Network failure or non-success response from an external catalog."""

    code = "PROV_001"
    http_status = 502


class DecodeError(FoursubsError):
    """Malformed upstream response payload."""

    code = "PROV_002"
    http_status = 502


class StorageError(FoursubsError):
    """Database transaction failed and was rolled back."""

    code = "DB_001"
    http_status = 500


class ScanWalkError(FoursubsError):
    """Walking one library root failed; the error carries the root path."""

    code = "SCAN_001"
    http_status = 500

    def __init__(self, root: str, cause: Exception, **kwargs: object) -> None:
        super().__init__(
            f"scan path {root}: {cause}",
            context={"root": root},
            **kwargs,  # type: ignore[arg-type]
        )
        self.root = root
        self.cause = cause


# ─── Structured Error Response Builder ───────────────────────────────────────


def _build_error_response(error: FoursubsError) -> dict:
    """Build a structured JSON error response from a FoursubsError."""
    response: dict = {
        "error": str(error),
        "code": error.code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    request_id = getattr(g, "request_id", None)
    if request_id:
        response["request_id"] = request_id

    if error.context:
        response["context"] = error.context

    if error.troubleshooting:
        response["troubleshooting"] = error.troubleshooting

    return response


# ─── Flask Error Handler Registration ────────────────────────────────────────


def register_error_handlers(app: object) -> None:
    """Register global error handlers on a Flask app.

    Call this once during app setup to install:
    - FoursubsError handler (structured JSON)
    - Generic Exception handler (500 with logging)
    - before_request hook for request IDs
    """
    from flask import Flask
    flask_app: Flask = app  # type: ignore[assignment]

    @flask_app.before_request
    def _set_request_id() -> None:
        """Assign a unique request ID to every incoming request."""
        g.request_id = str(uuid.uuid4())[:8]

    @flask_app.errorhandler(FoursubsError)
    def _handle_foursubs_error(error: FoursubsError):  # type: ignore[return]
        """Return structured JSON for known application errors."""
        logger.warning(
            "[%s] %s: %s (request_id=%s)",
            error.code,
            error.__class__.__name__,
            error,
            getattr(g, "request_id", "?"),
        )
        return jsonify(_build_error_response(error)), error.http_status

    @flask_app.errorhandler(Exception)
    def _handle_generic_error(error: Exception):  # type: ignore[return]
        """Catch-all: log full traceback, return generic 500."""
        # Let Flask render its own 404/405 responses
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return error

        request_id = getattr(g, "request_id", "?")
        logger.exception(
            "Unhandled exception (request_id=%s): %s", request_id, error
        )
        return jsonify({
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500

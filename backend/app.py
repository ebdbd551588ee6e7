"""Application factory for the foursubs Flask API server.

Uses the Flask Application Factory pattern: create_app() builds and
configures the application, initializes extensions, seeds the database
and registers blueprints.
"""

import os
import logging

from flask import Flask

from extensions import socketio

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StructuredJSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging (ELK, Loki, etc.)."""

    def format(self, record: logging.LogRecord) -> str:
        import json as _json
        from flask import g as _g, has_app_context

        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(_g, "request_id", None) if has_app_context() else None
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return _json.dumps(entry, default=str)


class SocketIOLogHandler(logging.Handler):
    """Emits log entries to connected WebSocket clients."""

    def __init__(self, sio):
        super().__init__()
        self.sio = sio

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sio.emit("log_entry", {"message": self.format(record)})
        except Exception:
            self.handleError(record)


def _setup_logging(settings, testing: bool = False) -> None:
    """Configure the root logger: console, optional rotating file, WebSocket feed."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    root = logging.getLogger()
    # create_app() may run more than once per process (tests)
    for handler in list(root.handlers):
        if getattr(handler, "_foursubs", False):
            root.removeHandler(handler)
            handler.close()

    if settings.log_format.lower() == "json":
        formatter: logging.Formatter = StructuredJSONFormatter()
        for handler in root.handlers:
            handler.setFormatter(formatter)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    log_file = settings.log_file
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            from logging.handlers import RotatingFileHandler
            fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            fh._foursubs = True
            root.addHandler(fh)
        except OSError as e:
            logging.getLogger(__name__).warning("Could not set up log file %s: %s", log_file, e)

    if not testing:
        ws_handler = SocketIOLogHandler(socketio)
        ws_handler.setLevel(log_level)
        ws_handler.setFormatter(logging.Formatter(LOG_FORMAT))  # Always text for WebSocket
        ws_handler._foursubs = True
        root.addHandler(ws_handler)


def create_app(testing=False):
    """Create and configure the Flask application.

    Args:
        testing: If True, skip the WebSocket log feed (for tests).

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__, static_folder="static", static_url_path="")
    app.config["TESTING"] = testing

    from config import get_settings
    settings = get_settings()

    _setup_logging(settings, testing=testing)
    logger = logging.getLogger(__name__)

    settings.ensure_dirs()

    socketio.init_app(app, cors_allowed_origins="*", async_mode="threading")

    # FoursubsError -> JSON, generic 500
    from error_handler import register_error_handlers
    register_error_handlers(app)

    # ---- Flask-SQLAlchemy initialization ----
    app.config["SQLALCHEMY_DATABASE_URI"] = settings.get_database_url()
    is_sqlite = app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite")
    if is_sqlite:
        # Scan jobs and provider searches use the session from worker threads
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "connect_args": {"check_same_thread": False},
        }
    else:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}

    from extensions import db as sa_db
    sa_db.init_app(app)

    with app.app_context():
        # Import all models so they register with metadata
        import db.models  # noqa: F401
        sa_db.create_all()
        if is_sqlite:
            from sqlalchemy import text
            with sa_db.engine.connect() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL"))
                conn.execute(text("PRAGMA busy_timeout=5000"))
                conn.commit()

        from job_queue import create_job_queue
        app.job_queue = create_job_queue()

        # Seed settings row, credential rows and env credentials
        from db import init_db
        init_db()

        # Rebuild providers against the current settings
        from providers import invalidate_manager
        invalidate_manager()

        # blinker -> SocketIO bridge
        from events import init_event_system
        init_event_system(app)

        from routes import register_blueprints
        register_blueprints(app)

        _register_app_routes(app)

        @socketio.on("connect")
        def handle_connect():
            logger.debug("WebSocket client connected")

        @socketio.on("disconnect")
        def handle_disconnect():
            logger.debug("WebSocket client disconnected")

    logger.info("foursubs ready (db=%s, media roots=%s)",
                "sqlite" if is_sqlite else "external", ",".join(settings.get_media_paths()))
    return app


def _register_app_routes(app):
    """Register the SPA fallback route."""
    from flask import jsonify, send_from_directory

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def serve_spa(path):
        """Serve the built web UI when present."""
        static_dir = app.static_folder or "static"

        if path and os.path.exists(os.path.join(static_dir, path)):
            return send_from_directory(static_dir, path)

        index_path = os.path.join(static_dir, "index.html")
        if os.path.exists(index_path):
            return send_from_directory(static_dir, "index.html")

        from version import __version__
        return jsonify({
            "name": "4subs",
            "version": __version__,
            "api": "/api/v1/health",
        })


if __name__ == "__main__":
    from config import get_settings
    app = create_app()
    socketio.run(app, host="0.0.0.0", port=get_settings().port, allow_unsafe_werkzeug=True)

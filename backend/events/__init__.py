"""blinker event bus for scan, search and settings changes.

emit_event() fires a catalog signal; init_event_system() forwards every
catalog signal to connected Socket.IO clients under the same name.
"""

import logging

from events.catalog import CATALOG_VERSION, EVENT_CATALOG

logger = logging.getLogger(__name__)

_bridged = False


def _socketio_forwarder(event_name: str):
    from extensions import socketio

    def _forward(sender, data=None, **kwargs):
        payload = data if data is not None else {}
        logger.debug("Forwarding %s to Socket.IO clients", event_name)
        try:
            socketio.emit(event_name, payload)
        except Exception as exc:
            logger.warning("Socket.IO emit of %s failed: %s", event_name, exc)
    return _forward


def init_event_system(app):
    """Connect the Socket.IO forwarder to every catalog signal, once per process."""
    global _bridged
    if _bridged:
        return
    for name, entry in EVENT_CATALOG.items():
        entry["signal"].connect(_socketio_forwarder(name), weak=False)
    _bridged = True
    logger.info("Event bus ready for %s: %d events (catalog v%d)",
                app.name, len(EVENT_CATALOG), CATALOG_VERSION)


def emit_event(event_name: str, data: dict = None):
    """Send a catalog event with the current app (if any) as sender.

    Payloads go to browsers: keep secrets and absolute paths out of them.
    """
    entry = EVENT_CATALOG.get(event_name)
    if entry is None:
        logger.warning("Ignoring unknown event %s", event_name)
        return

    try:
        from flask import current_app
        sender = current_app._get_current_object()
    except RuntimeError:
        sender = None
    entry["signal"].send(sender, data=data or {})

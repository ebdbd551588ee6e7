"""Shared Flask extensions: import from here to avoid circular imports.

The SocketIO and SQLAlchemy instances are created unbound; app.py calls
init_app(app) on both inside the create_app() factory function.
"""

from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

socketio = SocketIO()
db = SQLAlchemy()

"""Lingarr server entry point.

Builds the application via the factory and serves it with Flask-SocketIO.
Run with ``python server.py`` from the backend directory.
"""

from app import create_app
from config import get_settings
from extensions import socketio

app = create_app()


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=get_settings().port, allow_unsafe_werkzeug=True)

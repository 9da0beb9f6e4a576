from __future__ import annotations

import threading
from typing import Dict

from flask import Flask, current_app
from flask_cors import CORS

from .services.overlay.fonts import FontCatalog
from .services.overlay.session import EditingSession
from .utils.exceptions import SessionNotFound
from .utils.logging import get_logger

cors = CORS()

SESSIONS_KEY = "slidepatch.sessions"
FONTS_KEY = "slidepatch.fonts"


class SessionStore:
    """Open editing sessions keyed by document id; in memory, per process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, EditingSession] = {}
        self._lock = threading.Lock()
        self.logger = get_logger(self.__class__.__name__)

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: EditingSession) -> EditingSession:
        with self._lock:
            self._sessions[session.id] = session
        self.logger.info("session opened", session_id=session.id, pages=session.page_count)
        return session

    def get(self, session_id: str) -> EditingSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Document {session_id} is not open")
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(f"Document {session_id} is not open")
        session.source.close()
        self.logger.info("session closed", session_id=session_id)


def init_extensions(app: Flask) -> None:
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    app.extensions[SESSIONS_KEY] = SessionStore()
    app.extensions[FONTS_KEY] = FontCatalog(app.config.get("FONT_DIRS", []))


def get_sessions() -> SessionStore:
    return current_app.extensions[SESSIONS_KEY]


def get_fonts() -> FontCatalog:
    return current_app.extensions[FONTS_KEY]

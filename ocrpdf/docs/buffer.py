from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from ocrpdf.errors import DocumentFatalError

logger = logging.getLogger(__name__)


class Session:
    """Temp directory for the intermediate files of one job."""

    def __init__(self, session_id: str, base_dir: str) -> None:
        self.id = session_id
        self.base_dir = base_dir

    def path(self, *parts: str) -> str:
        p = os.path.join(self.base_dir, *parts)
        try:
            os.makedirs(os.path.dirname(p), exist_ok=True)
        except OSError as exc:
            raise DocumentFatalError(f"Cannot prepare {p} in session {self.id}: {exc}") from exc
        return p

    def create_temp_file(self, ext_with_dot: str = "") -> str:
        """Reserve a unique file name inside the session (the file is not created)."""
        return self.path(f"{uuid.uuid4().hex}{ext_with_dot}")

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, base_dir={self.base_dir!r})"


class SessionManager:
    """Hands out isolated sessions under ``root``; safe to share between threads.

    Session ids are random uuid4 hex strings and every session owns its own
    directory, so concurrent jobs never see each other's files.
    """

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = root or os.path.join(tempfile.gettempdir(), "ocrpdf")
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def create_session(self) -> Session:
        while True:
            session_id = uuid.uuid4().hex
            with self._lock:
                if session_id in self._sessions:
                    continue
                base_dir = os.path.join(self.root, session_id)
                try:
                    os.makedirs(base_dir, exist_ok=False)
                except OSError as exc:
                    if os.path.isdir(base_dir):
                        continue
                    raise DocumentFatalError(f"Cannot create session directory {base_dir}: {exc}") from exc
                session = Session(session_id, base_dir)
                self._sessions[session_id] = session
            logger.debug("Created session %s at %s", session_id, base_dir)
            return session

    def active_sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def destroy_session(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return
        shutil.rmtree(session.base_dir, ignore_errors=True)
        if os.path.exists(session.base_dir):
            logger.warning("Session directory could not be fully removed: %s", session.base_dir)
        else:
            logger.debug("Destroyed session %s", session_id)

    @contextmanager
    def session(self) -> Iterator[Session]:
        s = self.create_session()
        try:
            yield s
        finally:
            self.destroy_session(s.id)

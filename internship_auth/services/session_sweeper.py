"""Background sweeper deleting expired login sessions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from internship_auth.config import settings
from internship_auth.core.database import SessionLocal
from internship_auth.services.session_store import session_store

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodic purge of sessions past expires_at.

    Storage hygiene only: an expired session already fails validation on
    lookup, so a stopped sweeper never weakens revocation.
    """

    def __init__(self) -> None:
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._purged_count: int = 0
        self._lock = threading.Lock()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.info("Session sweeper started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Session sweeper stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "purged_count": self._purged_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sweep_once()
            except Exception as exc:
                logger.exception("Session sweep failed: %s", exc)
            self._heartbeat = time.time()
            self._stop_event.wait(max(1.0, settings.SESSION_SWEEP_INTERVAL_SECONDS))

    def sweep_once(self) -> int:
        db = SessionLocal()
        try:
            purged = session_store.purge_expired(db)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        with self._lock:
            self._purged_count += purged
        return purged


session_sweeper = SessionSweeper()

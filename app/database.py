import sqlite3
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from contextlib import contextmanager
import os

from pydantic import ValidationError

from baratie.models import SessionState

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "storage/sessions.db")
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def init_db(db_path: Optional[str] = None):
    """Initialize database schema."""
    path = db_path or DB_PATH
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            state_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_sessions_updated
        ON sessions(updated_at)
    """)

    conn.commit()
    conn.close()


@contextmanager
def get_db(db_path: Optional[str] = None):
    """Context manager for database connections."""
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class SessionStore:
    """
    Session persistence: one JSON document per session.

    Sessions untouched for longer than ttl_hours load as missing.
    """

    def __init__(self, db_path: Optional[str] = None, ttl_hours: int = SESSION_TTL_HOURS):
        self.db_path = db_path or DB_PATH
        self.ttl = timedelta(hours=ttl_hours)
        init_db(self.db_path)

    def create(self) -> SessionState:
        state = SessionState()
        self.save(state)
        logger.info(f"[SESSION] Created session {state.id}")
        return state

    def load(self, session_id: str) -> Optional[SessionState]:
        """Stored state, or None if missing, expired or unreadable."""
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT state_json, updated_at FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        if not row:
            return None

        updated_at = datetime.fromisoformat(row["updated_at"])
        if _now() - updated_at > self.ttl:
            logger.info(f"[SESSION] Session {session_id} expired")
            self.delete(session_id)
            return None

        try:
            return SessionState.model_validate_json(row["state_json"])
        except ValidationError as e:
            logger.warning(f"[SESSION] Corrupt state for {session_id}, discarding: {e}")
            return None

    def save(self, state: SessionState) -> None:
        now = _now().isoformat()
        state.updated_at = now
        with get_db(self.db_path) as conn:
            conn.execute("""
                INSERT INTO sessions (id, state_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
            """, (state.id, state.model_dump_json(), state.created_at, now))

    def delete(self, session_id: str) -> bool:
        with get_db(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            return cursor.rowcount > 0

    def cleanup_expired(self) -> int:
        """Delete sessions older than the TTL. Returns the number deleted."""
        cutoff = (_now() - self.ttl).isoformat()
        with get_db(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE updated_at < ?", (cutoff,))
            deleted = cursor.rowcount
        if deleted:
            logger.info(f"[SESSION] Removed {deleted} expired sessions")
        return deleted

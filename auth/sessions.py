"""
auth/sessions.py -- Session stores and the session lifecycle.

A session moves NonExistent -> Active -> Ended, and nothing else:
  begin_session()  creates it and hands the signed token to the carrier.
  get_state()      verifies the token and loads the state (Active only).
                   resolve_session() does the same and also returns the
                   token that matched.
  save_state()     overwrites the state of an Active session.
  end_session()    verifies, deletes, and clears the carrier. Ended is
                   terminal: a second end_session() with the same token fails
                   exactly like a token that never existed.

Every way a token can be rejected -- no carrier, bad shape, bad signature,
expired or evicted session -- raises Unauthenticated with the same public
message. The log keeps the real reason.

Stores:
  MemorySessionStore  -- dict + lock, for single-process deployments and tests.
  SQLiteSessionStore  -- one row per session in a local SQLite file.
Both persist SessionState.to_json() text, so a stored state is always a copy,
and both use sliding expiry: a successful get() pushes the deadline forward
by the TTL. purge_expired() trims stale entries.

Layer rule: no imports from api/ or fastapi.
"""

from __future__ import annotations

import abc
import logging
import sqlite3
import threading
import time
from pathlib import Path

from auth.errors import NotFound, StoreReadError, StoreWriteError, TokenError, Unauthenticated
from auth.models import SessionState
from auth.tokens import TokenCarrier, new_session_id, sign, verify

logger = logging.getLogger("usergate.sessions")

# ---------------------------------------------------------------------------
# Store contract
# ---------------------------------------------------------------------------


class SessionStore(abc.ABC):
    """Maps a session id to its SessionState. Implementations must be thread-safe."""

    @abc.abstractmethod
    def save(self, session_id: str, state: SessionState) -> None:
        """Create or overwrite the state for session_id. Raises StoreWriteError."""

    @abc.abstractmethod
    def get(self, session_id: str) -> SessionState:
        """Return the state for session_id. Raises NotFound or StoreReadError."""

    @abc.abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove session_id. Raises NotFound if it is not stored."""

    @abc.abstractmethod
    def purge_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""

    def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemorySessionStore(SessionStore):
    def __init__(self, ttl: int) -> None:
        self.ttl = ttl
        self._lock = threading.Lock()
        # session_id -> (state json, expires_at)
        self._entries: dict[str, tuple[str, float]] = {}

    def save(self, session_id: str, state: SessionState) -> None:
        raw = state.to_json()
        with self._lock:
            self._entries[session_id] = (raw, time.monotonic() + self.ttl)

    def get(self, session_id: str) -> SessionState:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                raise NotFound("Session not found.")
            raw, expires_at = entry
            if expires_at <= now:
                del self._entries[session_id]
                raise NotFound("Session not found.")
            self._entries[session_id] = (raw, now + self.ttl)
        return SessionState.from_json(raw)

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._entries.pop(session_id, None) is None:
                raise NotFound("Session not found.")

    def purge_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            stale = [sid for sid, (_, expires_at) in self._entries.items() if expires_at <= now]
            for sid in stale:
                del self._entries[sid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id  TEXT PRIMARY KEY,
    state       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class SQLiteSessionStore(SessionStore):
    """Session rows in a local SQLite database.

    One connection shared across threads (check_same_thread=False) and
    serialized by a lock -- sqlite3 connection objects are not safe for
    concurrent use.
    """

    def __init__(self, db_path: Path | str, ttl: int) -> None:
        self.ttl = ttl
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def save(self, session_id: str, state: SessionState) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO sessions (session_id, state, expires_at) VALUES (?, ?, ?)",
                    (session_id, state.to_json(), time.time() + self.ttl),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.exception("Session save failed")
            raise StoreWriteError() from exc

    def get(self, session_id: str) -> SessionState:
        now = time.time()
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT state, expires_at FROM sessions WHERE session_id = ?",
                    (session_id,),
                ).fetchone()
                if row is None:
                    raise NotFound("Session not found.")
                raw, expires_at = row
                if expires_at <= now:
                    self._conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
                    self._conn.commit()
                    raise NotFound("Session not found.")
                self._conn.execute(
                    "UPDATE sessions SET expires_at = ? WHERE session_id = ?",
                    (now + self.ttl, session_id),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.exception("Session read failed")
            raise StoreReadError() from exc
        return SessionState.from_json(raw)

    def delete(self, session_id: str) -> None:
        try:
            with self._lock:
                cursor = self._conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.exception("Session delete failed")
            raise StoreWriteError() from exc
        if cursor.rowcount == 0:
            raise NotFound("Session not found.")

    def purge_expired(self) -> int:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def build_session_store(backend: str, ttl: int, db_path: Path | str | None = None) -> SessionStore:
    """Construct the configured session store ("memory" or "sqlite")."""
    if backend == "memory":
        return MemorySessionStore(ttl=ttl)
    if backend == "sqlite":
        if db_path is None:
            raise ValueError("sqlite session backend requires db_path")
        return SQLiteSessionStore(db_path, ttl=ttl)
    raise ValueError(f"Unknown session backend: {backend!r}")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def begin_session(
    signing_key: str,
    store: SessionStore,
    state: SessionState,
    carrier: TokenCarrier | None = None,
    response=None,
) -> tuple[str, str]:
    """Persist state under a fresh session id and issue its signed token.

    Returns (session_id, token). If a carrier and response are given the
    token is attached to the response. A StoreWriteError propagates before
    any token exists, so a failed save never reaches the client as a token.
    """
    session_id = new_session_id()
    store.save(session_id, state)
    token = sign(session_id, signing_key)
    if carrier is not None and response is not None:
        carrier.attach(response, token)
    logger.info("Session started for user_id=%s", state.user.id)
    return session_id, token


def verify_token(token: str | None, signing_key: str) -> str:
    """Return the session id for an inbound token or raise Unauthenticated."""
    if not token:
        raise Unauthenticated()
    try:
        return verify(token, signing_key)
    except TokenError as exc:
        logger.info("Rejected session token: %s", exc)
        raise Unauthenticated() from exc


def resolve_session(
    request, signing_key: str, store: SessionStore, carrier: TokenCarrier
) -> tuple[str, str, SessionState]:
    """Return (token, session_id, state) for the first live session the request carries.

    Tokens are tried in carrier order (cookie, then Bearer header). Raises
    Unauthenticated when none of them names an Active session.
    StoreReadError (a broken backend) propagates.
    """
    for token in carrier.candidates(request):
        try:
            session_id = verify_token(token, signing_key)
        except Unauthenticated:
            continue
        try:
            return token, session_id, store.get(session_id)
        except NotFound:
            logger.info("Signed token for an unknown or expired session")
    raise Unauthenticated()


def get_state(request, signing_key: str, store: SessionStore, carrier: TokenCarrier) -> tuple[str, SessionState]:
    """Return (session_id, state) for the session the request carries.

    Raises Unauthenticated for a missing, malformed, forged, expired or
    evicted session. StoreReadError (a broken backend) propagates.
    """
    _, session_id, state = resolve_session(request, signing_key, store, carrier)
    return session_id, state


def save_state(session_id: str, store: SessionStore, state: SessionState) -> None:
    """Overwrite the stored state of an active session."""
    store.save(session_id, state)


def end_session(
    request,
    signing_key: str,
    store: SessionStore,
    carrier: TokenCarrier,
    response=None,
) -> str:
    """Delete the request's session and clear the client's carrier.

    Not idempotent: ending an already-ended session raises Unauthenticated,
    the same failure as a token that was never issued.
    """
    for token in carrier.candidates(request):
        try:
            session_id = verify_token(token, signing_key)
        except Unauthenticated:
            continue
        try:
            store.delete(session_id)
        except NotFound:
            logger.info("End requested for an unknown or already-ended session")
            continue
        if response is not None:
            carrier.clear(response)
        return session_id
    raise Unauthenticated()

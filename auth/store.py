"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route code never
touches SQL directly.

Result contract:
  Lookups return a User or raise NotFound -- they never return None, so a
  caller cannot mistake "not found" for "found".
  insert() raises Conflict when the UNIQUE(email) or UNIQUE(user_name)
  constraint fires. That constraint is the authoritative uniqueness check;
  the handler's pre-check only produces a nicer error in the common case and
  two concurrent registrations can both pass it.
  Any other database failure on a write raises StoreWriteError; on a read,
  StoreReadError. The SQLAlchemy exception is logged, never surfaced.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or fastapi.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import Conflict, NotFound, StoreReadError, StoreWriteError
from auth.models import Updates, User

logger = logging.getLogger("usergate.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("user_name", String(255), nullable=False, unique=True),
    Column("pass_hash", Text, nullable=False),
    Column("first_name", String(128), nullable=False, server_default=""),
    Column("last_name", String(128), nullable=False, server_default=""),
    Column("photo_url", String(2048), nullable=False, server_default=""),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///users.db")
        user = store.insert(User(email="a@x.com", user_name="alice", pass_hash=hash_password("secret123")))
        store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            _ensure_parent_dir(db_url)
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, user: User) -> User:
        """Insert a new user and return it with its assigned ID.

        Raises Conflict if the email or user name is already taken.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        user_name=user.user_name,
                        pass_hash=user.pass_hash,
                        first_name=user.first_name,
                        last_name=user.last_name,
                        photo_url=user.photo_url,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.info("Insert rejected by unique constraint for user_name=%s", user.user_name)
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            logger.exception("User insert failed")
            raise StoreWriteError() from exc
        return self.get_by_id(result.inserted_primary_key[0])

    def update(self, user_id: int, updates: Updates) -> User:
        """Apply updates to the user and return the stored result.

        Only first_name and last_name can change -- Updates has no other fields.
        Raises NotFound if user_id does not exist.
        """
        fields = updates.as_fields()
        if fields:
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                    conn.commit()
            except SQLAlchemyError as exc:
                logger.exception("User update failed for id=%d", user_id)
                raise StoreWriteError() from exc
            if result.rowcount == 0:
                raise NotFound("User not found.")
        return self.get_by_id(user_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User:
        return self._get_one(_users.c.id == user_id)

    def get_by_email(self, email: str) -> User:
        """Look up a user by exact email address."""
        return self._get_one(_users.c.email == email)

    def get_by_user_name(self, user_name: str) -> User:
        """Look up a user by exact (case-sensitive) user name."""
        return self._get_one(_users.c.user_name == user_name)

    def _get_one(self, clause) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(clause)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise StoreReadError() from exc
        if row is None:
            raise NotFound("User not found.")
        return _row_to_user(row)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.select().limit(1)).fetchall()
        except SQLAlchemyError:
            logger.exception("User store health check failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_parent_dir(db_url: str) -> None:
    """Create the directory holding a file-backed SQLite DB, if needed."""
    if "sqlite:///" not in db_url:
        return
    path = db_url.split("sqlite:///", 1)[1]
    if not path or path.startswith("file:") or path == ":memory:":
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        user_name=row.user_name,
        pass_hash=row.pass_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        photo_url=row.photo_url,
    )

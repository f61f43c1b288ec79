"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and route
handlers do the work; these classes own domain shape only.

SessionState carries a *copy* of the User taken at session start. The copy
never includes pass_hash -- the credential stays in the user store. The
JSON helpers here are the one place that decides what a session row looks
like, so both session store backends persist exactly the same shape.

Layer rule: stdlib only. No imports from api/ or fastapi.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone


@dataclass
class User:
    """A registered account.

    id is None until the user store assigns one on insert. pass_hash is the
    bcrypt hash of the user's password; it never appears in an API response
    and is stripped from session snapshots.
    """

    email: str
    user_name: str
    first_name: str = ""
    last_name: str = ""
    photo_url: str = ""
    id: int | None = None
    pass_hash: str | None = None


@dataclass
class Updates:
    """The mutable subset of a User. None means "leave unchanged"."""

    first_name: str | None = None
    last_name: str | None = None

    def apply(self, user: User) -> None:
        """Apply these updates to user in place. id, email and user_name are untouched."""
        if self.first_name is not None:
            user.first_name = self.first_name
        if self.last_name is not None:
            user.last_name = self.last_name

    def as_fields(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class SessionState:
    """Server-side state for one active session."""

    user: User
    begin_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_user(cls, user: User) -> SessionState:
        """Start a new session state with a credential-free copy of user."""
        return cls(user=replace(user, pass_hash=None))

    def to_json(self) -> str:
        user = asdict(self.user)
        user.pop("pass_hash", None)
        return json.dumps({"begin_time": self.begin_time.isoformat(), "user": user})

    @classmethod
    def from_json(cls, raw: str) -> SessionState:
        data = json.loads(raw)
        return cls(
            user=User(**data["user"]),
            begin_time=datetime.fromisoformat(data["begin_time"]),
        )

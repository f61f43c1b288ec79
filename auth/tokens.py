"""
auth/tokens.py -- Signed session tokens, password hashing, and the token carrier.

Security design decisions:
  Signed tokens: token = "<session_id>.<signature>", where signature is the
       unpadded URL-safe base64 of HMAC-SHA256(signing_key, session_id). The
       session id is visible to the client (it is also the session store key);
       the signature gives integrity, not confidentiality. verify() compares
       with hmac.compare_digest so timing does not reveal how many leading
       signature bytes were right. The encoded signature is compared as text,
       so the spare bits in the final base64 character cannot be flipped
       without detection.

  Signing key: always passed in by the caller (app.state.signing_key). This
       module never reads configuration, so tests and multiple apps can use
       different keys side by side.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  Carrier: the token travels in an httpOnly cookie and in the
       "Authorization: Bearer" header. Inbound, the cookie wins, then the
       header. TokenCarrier is the only code that knows the field names.

Layer rule: no imports from api/ or fastapi. Response and request objects are
duck-typed (Starlette-compatible).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import InvalidCredentials, InvalidSignature, MalformedToken, NotFound

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("usergate.auth")

_SEPARATOR = "."
_GRAVATAR_BASE_URL = "https://www.gravatar.com/avatar/"

# ---------------------------------------------------------------------------
# Session identifiers and signed tokens
# ---------------------------------------------------------------------------


def new_session_id() -> str:
    """Return a fresh session identifier: 32 random bytes, URL-safe base64.

    256 bits of entropy -- collisions over the system's lifetime are not a
    practical concern. The alphabet never contains the "." separator.
    """
    return secrets.token_urlsafe(32)


def _signature(session_id: str, signing_key: str) -> str:
    mac = hmac.new(signing_key.encode("utf-8"), session_id.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(mac).rstrip(b"=").decode("ascii")


def sign(session_id: str, signing_key: str) -> str:
    """Return the signed token for session_id. Pure function."""
    return f"{session_id}{_SEPARATOR}{_signature(session_id, signing_key)}"


def verify(token: str, signing_key: str) -> str:
    """Return the session id carried by token, or raise.

    Raises MalformedToken if the token is not exactly "<id>.<signature>" with
    both parts non-empty, InvalidSignature if the signature does not match.
    """
    parts = token.split(_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedToken("token must be <session_id>.<signature>")
    session_id, supplied = parts
    expected = _signature(session_id, signing_key)
    if not hmac.compare_digest(expected.encode("ascii"), supplied.encode("utf-8")):
        raise InvalidSignature("token signature does not match")
    return session_id


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Recent bcrypt releases reject input longer than 72 bytes. The request
    model (api/models.py) caps passwords at 72 UTF-8 bytes before we get here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Over-long password or a corrupt hash in the store.
        logger.warning("bcrypt rejected password check input")
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("usergate_timing_dummy")


def gravatar_url(email: str) -> str:
    """Return the Gravatar image URL for an email address."""
    digest = hashlib.md5(email.strip().lower().encode("utf-8"), usedforsecurity=False).hexdigest()
    return _GRAVATAR_BASE_URL + digest


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Return the User whose email and password match, or raise InvalidCredentials.

    The password is only checked against a user that was actually found.
    Unknown email and wrong password raise the same exception with the same
    message; bcrypt runs in both branches so timing does not differ either.
    """
    try:
        user = store.get_by_email(email)
    except NotFound:
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentials() from None
    if user.pass_hash is None or not verify_password(password, user.pass_hash):
        raise InvalidCredentials()
    return user


# ---------------------------------------------------------------------------
# Carrier
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenCarrier:
    """Moves a signed token between server and client.

    Outbound: Authorization response header plus an httpOnly cookie.
    Inbound: cookie first, then "Authorization: Bearer <token>". Both are
    offered to the session lifecycle, so a stale cookie does not shadow a
    valid Bearer token.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the session store TTL. refresh() re-issues the cookie
    on authenticated reads so it slides along with the server-side session.
    """

    cookie_name: str = "session_token"
    secure: bool = False
    max_age: int = 3600
    scheme: str = "Bearer"

    def attach(self, response, token: str) -> None:
        response.headers["Authorization"] = f"{self.scheme} {token}"
        self._set_cookie(response, token)

    def refresh(self, request, response, token: str) -> None:
        """Extend the cookie's lifetime if token is the one the cookie carried."""
        if request.cookies.get(self.cookie_name) == token:
            self._set_cookie(response, token)

    def candidates(self, request) -> list[str]:
        """Every token the request carries, cookie first, without duplicates."""
        tokens = []
        cookie = request.cookies.get(self.cookie_name)
        if cookie:
            tokens.append(cookie)
        auth_header = request.headers.get("Authorization", "")
        prefix = f"{self.scheme} "
        if auth_header.startswith(prefix):
            header_token = auth_header[len(prefix) :].strip()
            if header_token and header_token not in tokens:
                tokens.append(header_token)
        return tokens

    def extract(self, request) -> str | None:
        tokens = self.candidates(request)
        return tokens[0] if tokens else None

    def _set_cookie(self, response, token: str) -> None:
        response.set_cookie(
            self.cookie_name,
            value=token,
            httponly=True,
            samesite="lax",
            secure=self.secure,
            max_age=self.max_age,
        )

    def clear(self, response) -> None:
        response.delete_cookie(self.cookie_name)

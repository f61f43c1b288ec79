"""
auth/errors.py -- Failure taxonomy for the authentication core.

Every failure a resource handler can produce derives from AuthError. Each
subclass pins the HTTP status and machine-readable code, so the single
exception handler in api/main.py can render any of them without a lookup
table. The public message is the only text that reaches the client; store
internals go to the log, never into `message`.

Token codec failures (TokenError and subclasses) are deliberately NOT
AuthErrors: the session lifecycle converts them to Unauthenticated so a
client never learns which check rejected its token.

Layer rule: stdlib only. No imports from api/ or fastapi.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for failures that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class MalformedRequest(AuthError):
    """Wrong method or wrong content type -- rejected before any decoding."""

    status_code = 400
    code = "malformed_request"
    default_message = "Malformed request."


class MethodNotAllowed(MalformedRequest):
    status_code = 405
    code = "method_not_allowed"
    default_message = "Method not allowed."


class UnsupportedMediaType(MalformedRequest):
    status_code = 415
    code = "unsupported_media_type"
    default_message = "Request body must be JSON."


class Conflict(AuthError):
    status_code = 400
    code = "conflict"
    default_message = "A user with that email or user name already exists."


class InvalidCredentials(AuthError):
    """Login failure. Unknown email and wrong password both raise this, unchanged."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials."


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthenticated"
    default_message = "No valid session."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "You may not modify another user's account."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class StoreWriteError(AuthError):
    status_code = 500
    code = "store_error"
    default_message = "Internal server error."


class StoreReadError(AuthError):
    status_code = 500
    code = "store_error"
    default_message = "Internal server error."


# ---------------------------------------------------------------------------
# Token codec failures
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """A signed token was rejected by the codec."""


class InvalidSignature(TokenError):
    """The signature does not match the identifier under the signing key."""


class MalformedToken(TokenError):
    """The token does not split into exactly one identifier and one signature."""

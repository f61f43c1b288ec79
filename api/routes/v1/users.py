"""
api/routes/v1/users.py -- Registration and self-profile endpoints.

Routes:
  POST  /v1/users            -- register; begins a session for the new user
  GET   /v1/users/{id|me}    -- read a user (requires a session)
  PATCH /v1/users/me         -- update own firstName/lastName (requires a session)

Auth policy:
  POST  /users:         public
  GET   /users/{ref}:   any valid session
  PATCH /users/{ref}:   valid session AND ref designates the session's own user.
                        The ownership check runs before the body is read, so a
                        cross-account PATCH is 403 whatever its payload.

Write ordering for PATCH: session store first, then user store. The two are
not updated atomically. If the user store write fails after the session save
succeeded, the divergence is logged at ERROR and the request fails with 500.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from api.body import json_body, parse
from api.models import NewUserRequest, UpdatesRequest, UserResponse
from api.routes.v1.sessions import start_session
from auth.dependencies import CurrentSession, get_current_session, get_session_store
from auth.errors import Conflict, Forbidden, NotFound, StoreWriteError, ValidationError
from auth.sessions import save_state
from auth.store import UserStore

logger = logging.getLogger("usergate.api.users")

_ME = "me"

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def require_own_account(user_ref: str, session: CurrentSession = Depends(get_current_session)) -> CurrentSession:
    """Require that the path designates the session's own user. Raises Forbidden."""
    if user_ref == _ME:
        return session
    try:
        target_id = int(user_ref)
    except ValueError:
        target_id = None
    if target_id != session.state.user.id:
        raise Forbidden()
    return session


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, response: Response, data: Any = Depends(json_body)) -> UserResponse:
    """Register a new account and begin a session for it.

    The email/user name pre-check gives a clear error in the common case; the
    store's unique constraints remain authoritative for concurrent requests
    and also surface as Conflict.
    """
    new_user = parse(NewUserRequest, data)
    user_store: UserStore = request.app.state.user_store

    _ensure_absent(user_store.get_by_email, str(new_user.email), "A user with that email already exists.")
    _ensure_absent(user_store.get_by_user_name, new_user.user_name, "A user with that user name already exists.")

    user = user_store.insert(new_user.to_user())
    logger.info("Registered user_id=%d", user.id)
    return start_session(request, response, user)


@router.get("/users/{user_ref}", response_model=UserResponse)
def get_user(
    request: Request,
    user_ref: str,
    session: CurrentSession = Depends(get_current_session),
) -> UserResponse:
    """Return the stored user for a numeric ID, or for "me" the session's own user."""
    user_store: UserStore = request.app.state.user_store
    user_id = session.state.user.id if user_ref == _ME else _parse_user_id(user_ref)
    return UserResponse.from_user(user_store.get_by_id(user_id))


@router.patch("/users/{user_ref}", response_model=UserResponse)
def update_user(
    request: Request,
    session: CurrentSession = Depends(require_own_account),
    data: Any = Depends(json_body),
) -> UserResponse:
    """Apply firstName/lastName updates to the caller's own account."""
    updates = parse(UpdatesRequest, data).to_updates()
    user_store: UserStore = request.app.state.user_store
    state = session.state

    updates.apply(state.user)
    save_state(session.session_id, get_session_store(request), state)

    try:
        user = user_store.update(state.user.id, updates)
    except (StoreWriteError, NotFound) as exc:
        logger.error(
            "Session and user store diverged for user_id=%s: session saved, user update failed (%s)",
            state.user.id,
            type(exc).__name__,
        )
        raise StoreWriteError() from exc
    return UserResponse.from_user(user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_absent(lookup, value: str, message: str) -> None:
    try:
        lookup(value)
    except NotFound:
        return
    raise Conflict(message)


def _parse_user_id(user_ref: str) -> int:
    try:
        return int(user_ref)
    except ValueError:
        raise ValidationError('User ID must be an integer or "me".') from None

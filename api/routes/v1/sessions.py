"""
api/routes/v1/sessions.py -- Login and sign-out endpoints.

Routes:
  POST   /v1/sessions        -- log in with email + password; issues a session token
  DELETE /v1/sessions/mine   -- end the caller's own session

Security:
  POST /sessions is rate-limited per client address (LOGIN_RATE_LIMIT).
  authenticate_user() checks the password only after a successful email
  lookup and equalizes timing between the two failure branches; unknown
  email and wrong password produce the same 401 body byte for byte.
  Cache-Control: no-store on every response that carries a token.

start_session() is shared with POST /v1/users so registration and login
issue sessions identically.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from api.body import json_body, parse
from api.limiter import limiter, login_rate_limit
from api.models import CredentialsRequest, MessageResponse, UserResponse
from auth.dependencies import get_carrier, get_session_store, get_signing_key
from auth.errors import Forbidden, InvalidCredentials
from auth.models import SessionState, User
from auth.sessions import begin_session, end_session
from auth.store import UserStore
from auth.tokens import authenticate_user

logger = logging.getLogger("usergate.api.sessions")

_MY_SESSION = "mine"

router = APIRouter()


def start_session(request: Request, response: Response, user: User) -> UserResponse:
    """Begin a session for user, attach its token to response, and return the user."""
    begin_session(
        get_signing_key(request),
        get_session_store(request),
        SessionState.for_user(user),
        carrier=get_carrier(request),
        response=response,
    )
    response.headers["Cache-Control"] = "no-store"
    return UserResponse.from_user(user)


@router.post("/sessions", response_model=UserResponse, status_code=201)
@limiter.limit(login_rate_limit)
def create_session(request: Request, response: Response, data: Any = Depends(json_body)) -> UserResponse:
    """Authenticate with email and password and begin a new session."""
    credentials = parse(CredentialsRequest, data)
    user_store: UserStore = request.app.state.user_store
    try:
        user = authenticate_user(user_store, str(credentials.email), credentials.password)
    except InvalidCredentials:
        logger.info("Failed login attempt")
        raise
    return start_session(request, response, user)


@router.delete("/sessions/{session_ref}", response_model=MessageResponse)
def delete_session(request: Request, response: Response, session_ref: str) -> MessageResponse:
    """End the caller's session. Only the literal "mine" is addressable."""
    if session_ref != _MY_SESSION:
        raise Forbidden("Only your own session can be ended.")
    end_session(
        request,
        get_signing_key(request),
        get_session_store(request),
        get_carrier(request),
        response=response,
    )
    return MessageResponse(message="signed out")

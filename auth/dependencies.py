"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The signing key, session store and token carrier all live on app.state,
put there once by the lifespan in api/main.py. These helpers pull them off
the request so route handlers never touch app.state for auth concerns.

get_current_session() raises Unauthenticated (401) when the request carries
no valid session; the AuthError handler in api/main.py renders it.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request, Response

from auth.models import SessionState
from auth.sessions import SessionStore, resolve_session
from auth.tokens import TokenCarrier


@dataclass
class CurrentSession:
    """The verified session behind a request."""

    session_id: str
    state: SessionState


def get_signing_key(request: Request) -> str:
    return request.app.state.signing_key


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_carrier(request: Request) -> TokenCarrier:
    return request.app.state.carrier


def get_current_session(request: Request, response: Response) -> CurrentSession:
    """Require a valid session. Raises Unauthenticated otherwise.

    A session carried by cookie gets its cookie re-issued on the response,
    so the cookie expires no sooner than the sliding server-side session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: CurrentSession = Depends(get_current_session)): ...
    """
    carrier = get_carrier(request)
    token, session_id, state = resolve_session(
        request,
        get_signing_key(request),
        get_session_store(request),
        carrier,
    )
    carrier.refresh(request, response, token)
    return CurrentSession(session_id=session_id, state=state)

"""
api/body.py -- Explicit request-body decoding.

Route handlers never declare pydantic models as FastAPI body parameters.
Instead they depend on json_body(), which enforces, in order:
  1. Content-Type is application/json   -> else UnsupportedMediaType (415)
  2. the body parses as JSON            -> else ValidationError (400)
and then call parse() to validate the decoded value against a request model,
turning pydantic's error list into one ValidationError naming each broken
rule. Nothing downstream ever sees an unvalidated payload.
"""

from __future__ import annotations

from typing import Any, TypeVar

import pydantic
from fastapi import Request

from auth.errors import UnsupportedMediaType, ValidationError

_JSON_CONTENT_TYPE = "application/json"

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


async def json_body(request: Request) -> Any:
    """Return the decoded JSON body of request (FastAPI dependency)."""
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith(_JSON_CONTENT_TYPE):
        raise UnsupportedMediaType()
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError("Request body is not valid JSON.") from exc


def parse(model: type[ModelT], data: Any) -> ModelT:
    """Validate decoded JSON against model. Raises ValidationError (400)."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


def _describe(exc: pydantic.ValidationError) -> str:
    problems = []
    for err in exc.errors(include_url=False, include_input=False):
        loc = ".".join(str(part) for part in err["loc"])
        problems.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(problems)

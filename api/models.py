"""
API request and response models for UserGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (userName, passwordConfirm, photoURL). Request
models are validated explicitly by api/body.py -- never as FastAPI body
parameters -- so content-type and JSON checks always run first and every
validation failure becomes a 400 naming the rule that was broken.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from auth.models import Updates, User
from auth.tokens import gravatar_url, hash_password

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts 72 bytes of input.
MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class NewUserRequest(BaseModel):
    """Request body for POST /v1/users."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    password_confirm: str
    user_name: str = Field(min_length=1, max_length=255)
    first_name: str = Field(default="", max_length=128)
    last_name: str = Field(default="", max_length=128)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise PydanticCustomError(
                "password_too_long",
                "password must be at most {max_bytes} bytes",
                {"max_bytes": MAX_PASSWORD_BYTES},
            )
        return value

    @field_validator("user_name")
    @classmethod
    def user_name_has_no_spaces(cls, value: str) -> str:
        if any(ch.isspace() for ch in value):
            raise PydanticCustomError("user_name_whitespace", "userName may not contain spaces")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "NewUserRequest":
        if self.password != self.password_confirm:
            raise PydanticCustomError("password_mismatch", "password and passwordConfirm do not match")
        return self

    def to_user(self) -> User:
        """Build the domain User. The plaintext password goes no further than this call."""
        email = str(self.email)
        return User(
            email=email,
            user_name=self.user_name,
            first_name=self.first_name,
            last_name=self.last_name,
            photo_url=gravatar_url(email),
            pass_hash=hash_password(self.password),
        )


class CredentialsRequest(BaseModel):
    """Request body for POST /v1/sessions."""

    model_config = ConfigDict(extra="ignore")

    email: EmailStr
    password: str = Field(min_length=1)


class UpdatesRequest(BaseModel):
    """Request body for PATCH /v1/users/me.

    Only firstName and lastName are accepted. Any other field -- email,
    userName, id -- is rejected rather than silently dropped.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=128)
    last_name: Optional[str] = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def has_changes(self) -> "UpdatesRequest":
        if self.first_name is None and self.last_name is None:
            raise PydanticCustomError("no_changes", "no fields to update")
        return self

    def to_updates(self) -> Updates:
        return Updates(first_name=self.first_name, last_name=self.last_name)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public representation of a User. There is no credential field to leak."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    email: str
    user_name: str
    first_name: str
    last_name: str
    photo_url: str = Field(alias="photoURL")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method: the domain -> wire mapping lives with the wire model."""
        return cls(
            id=user.id,
            email=user.email,
            user_name=user.user_name,
            first_name=user.first_name,
            last_name=user.last_name,
            photo_url=user.photo_url,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)

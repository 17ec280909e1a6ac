"""
API request and response models for the Social App auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Input validation lives here and runs before anything reaches AuthService:
malformed email, username or password never touch the auth core.
"""

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from auth.models import AuthResult, TokenClaims, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
PASSWORD_MIN_LENGTH = 8
# bcrypt reads at most 72 bytes; longer input is refused rather than truncated.
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if "\x00" in value:
        raise ValueError("password must not contain NUL characters")
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"password must not exceed {PASSWORD_MAX_BYTES} bytes")
    return value


# Annotated type shared by every field that takes a new password.
_NewPassword = Annotated[str, Field(min_length=PASSWORD_MIN_LENGTH), AfterValidator(_check_password_bytes)]

# Interest ids are SQLite INTEGER primary keys.
_InterestId = Annotated[int, Field(ge=1, le=2**63 - 1)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    username: str = Field(min_length=3, max_length=100, pattern=USERNAME_PATTERN)
    password: _NewPassword
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    interests: list[_InterestId] = Field(default_factory=list, max_length=50)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    """Request body for POST /api/v1/auth/password-reset/request."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)


class PasswordResetConfirm(BaseModel):
    """Request body for POST /api/v1/auth/password-reset/confirm."""

    token: str = Field(min_length=1, max_length=255)
    new_password: _NewPassword

    @field_validator("token")
    @classmethod
    def token_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("token is required")
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Outward view of a user. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_verified: bool
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.public_view())


class AuthResponse(BaseModel):
    """Response for register and login: bearer token plus the user."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(token=result.token, user=UserResponse.from_user(result.user))


class ClaimsResponse(BaseModel):
    """Response for GET /api/v1/auth/profile -- the caller's token claims."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    username: str
    iat: int
    exp: int

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "ClaimsResponse":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            username=claims.username,
            iat=int(claims.issued_at.timestamp()),
            exp=int(claims.expires_at.timestamp()),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class InterestGroupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str] = None


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
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str

"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, close to zero logic). Stores and the
service do the work; these types only own the shape.

hashed_password is excluded from repr() and from public_view() so a stray log
line or a careless serializer cannot leak it.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Optional profile fields omitted from the outward view when unset.
_OPTIONAL_PROFILE_FIELDS = ("first_name", "last_name", "bio", "avatar_url")


@dataclass
class User:
    """A registered account.

    email and username are globally unique (UNIQUE constraints in auth/store.py).
    email is compared exactly as stored -- no case folding.
    """

    email: str
    username: str
    hashed_password: str = field(default="", repr=False)
    id: int | None = None
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    def public_view(self) -> dict:
        """Return the outward-facing representation. Never includes the hash."""
        view = {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "is_verified": self.is_verified,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        for name in _OPTIONAL_PROFILE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                view[name] = value
        return view


@dataclass
class PasswordResetToken:
    """A single-use password reset credential.

    used only ever goes False -> True. Rows are never deleted; an old token
    simply stops matching get_valid_reset_token() once used or past expires_at.
    """

    user_id: int
    token: str = field(repr=False)
    expires_at: str
    id: int | None = None
    used: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a bearer token.

    Wire names: user_id, email, username, iat, exp.
    """

    user_id: int
    email: str
    username: str
    issued_at: datetime
    expires_at: datetime


@dataclass
class AuthResult:
    """Outcome of a successful register or login."""

    token: str
    user: User

    def to_dict(self) -> dict:
        return {"token": self.token, "user": self.user.public_view()}


@dataclass
class RegisterCommand:
    """Already-validated registration input handed to AuthService.register()."""

    email: str
    username: str
    password: str = field(repr=False)
    first_name: str | None = None
    last_name: str | None = None
    interests: list[int] = field(default_factory=list)

"""
auth/errors.py -- Typed failures raised by the auth core.

Every error carries a machine-readable code, a client-safe message, and the
HTTP status the API layer should use. The route layer converts them into the
{"error": {"code", "message"}} envelope.

Two errors deliberately conflate several causes so responses do not leak
account or token state:
  InvalidCredentialsError    -- unknown email OR wrong password.
  InvalidOrExpiredTokenError -- unknown OR expired OR already-used token,
                                and every bearer-token rejection.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth-core failures."""

    code = "auth_error"
    message = "Authentication failed."
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DuplicateUserError(AuthError):
    code = "duplicate_user"
    message = "A user with this email or username already exists."
    status_code = 409


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password."
    status_code = 401


class AccountDeactivatedError(AuthError):
    code = "account_deactivated"
    message = "Account is deactivated."
    status_code = 401


class InvalidOrExpiredTokenError(AuthError):
    code = "invalid_or_expired_token"
    message = "Invalid or expired token."
    status_code = 400


class InternalAuthError(AuthError):
    """Hashing, signing, or storage failure. The message never carries the cause."""

    code = "internal_error"
    message = "An unexpected error occurred."
    status_code = 500


class HashingError(Exception):
    """Raised by PasswordHasher when bcrypt refuses the input."""

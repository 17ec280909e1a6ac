"""
auth/tokens.py -- Bearer-token signing/verification and reset-token generation.

Security design decisions:
  JWT: python-jose, signed with HS256 using the single SECRET_KEY. Tokens carry
       user_id, email, username, iat and exp. There is no server-side session
       state, so a token cannot be revoked before it expires, and a leaked
       SECRET_KEY cannot be contained without rotating it (which invalidates
       every outstanding token). This is an accepted limitation.

  Algorithm pinning: verify() passes an explicit HMAC-only allow-list to
       jwt.decode(). A token whose header names "none", RS256, ES256 or any
       other non-HMAC algorithm is rejected before the signature is checked,
       closing the algorithm-confusion hole.

  Uniform rejection: every failure (bad signature, wrong algorithm, expired,
       malformed, missing claim) raises InvalidOrExpiredTokenError with the
       same message. The reason is logged at DEBUG only.

  Reset tokens: secrets.token_hex(32) gives 256 bits of entropy as 64 hex
       characters. Brute force is computationally infeasible.

Layer rule: no imports from api/, notify/, or core/. SECRET_KEY and lifetimes
arrive through the TokenIssuer constructor.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InternalAuthError, InvalidOrExpiredTokenError
from auth.models import TokenClaims, User

logger = logging.getLogger("socialapp.auth")

_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
DEFAULT_TOKEN_LIFETIME = timedelta(hours=24)
RESET_TOKEN_BYTES = 32


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issues and verifies self-contained bearer tokens.

    Usage:
        issuer = TokenIssuer(settings.secret_key)
        token = issuer.issue(user)
        claims = issuer.verify(token)   # raises InvalidOrExpiredTokenError
    """

    def __init__(
        self,
        secret_key: str,
        lifetime: timedelta = DEFAULT_TOKEN_LIFETIME,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.lifetime = lifetime
        self._clock = clock

    def issue(self, user: User) -> str:
        """Encode a signed token for user, valid for self.lifetime from now."""
        if user.id is None:
            raise InternalAuthError()
        issued_at = self._clock()
        payload = {
            "user_id": user.id,
            "email": user.email,
            "username": user.username,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JWTError as exc:
            logger.error("Token signing failed for user_id=%s", user.id)
            raise InternalAuthError() from exc

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify token. Returns typed claims or raises InvalidOrExpiredTokenError."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=_HMAC_ALGORITHMS,
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError as exc:
            logger.debug("Bearer token rejected: %s", exc)
            raise InvalidOrExpiredTokenError() from exc

        user_id = payload.get("user_id")
        email = payload.get("email")
        username = payload.get("username")
        # bool is an int subclass; a token carrying user_id=true is not ours.
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidOrExpiredTokenError()
        if not isinstance(email, str) or not isinstance(username, str):
            raise InvalidOrExpiredTokenError()

        return TokenClaims(
            user_id=user_id,
            email=email,
            username=username,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


def generate_reset_token() -> str:
    """Return a new reset token: 32 random bytes as 64 hex characters."""
    return secrets.token_hex(RESET_TOKEN_BYTES)

"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer authentication.

Protected routes declare `claims: TokenClaims = Depends(get_current_claims)`.
The helper reads `Authorization: Bearer <token>`, verifies it through the
AuthService on app.state, and hands the typed claims to the route. No
database lookup happens here: bearer tokens are self-contained.

Layer rule: no imports from api/, notify/, or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import InvalidOrExpiredTokenError
from auth.models import TokenClaims


def _bearer_token(request: Request) -> str | None:
    """Return the token from a well-formed `Authorization: Bearer <token>` header."""
    parts = request.headers.get("Authorization", "").split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def get_current_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    A missing or malformed header and a bad token produce different messages;
    every bad token (expired, forged, wrong algorithm) produces the same one.
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Missing or malformed Authorization header."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return request.app.state.auth_service.validate_token(token)
    except InvalidOrExpiredTokenError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

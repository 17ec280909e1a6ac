"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register                -- create account; returns token + user (201)
  POST /api/v1/auth/login                   -- email/password login; returns token + user
  POST /api/v1/auth/password-reset/request  -- start a reset; same response for any email
  POST /api/v1/auth/password-reset/confirm  -- spend a reset token, set a new password
  GET  /api/v1/auth/profile                 -- caller's token claims (requires Bearer)
  GET  /api/v1/interests                    -- interest groups offered at sign-up (public)

Security:
  [C1] AuthService.login() provides timing equalization -- use it, never inline
       store lookups + password checks here.
  [M5] Cache-Control: no-store on every response that carries a token or a
       credential-related outcome.
  Anti-enumeration: wrong password and unknown email share one error; the
       reset request always answers with the same body.

Handlers are plain `def` so FastAPI runs each request on its threadpool;
bcrypt work never blocks the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import (
    AuthResponse,
    ClaimsResponse,
    InterestGroupResponse,
    LoginRequest,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
)
from auth.dependencies import get_current_claims
from auth.errors import AuthError
from auth.models import RegisterCommand, TokenClaims
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:               public
# - POST /api/v1/auth/login:                  public
# - POST /api/v1/auth/password-reset/request: public
# - POST /api/v1/auth/password-reset/confirm: public -- the reset token is the credential
# - GET  /api/v1/auth/profile:                requires Bearer (get_current_claims)
# - GET  /api/v1/interests:                   public
router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}

PASSWORD_RESET_DONE_MESSAGE = "Password has been reset successfully"


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _http_error(exc: AuthError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
        headers=_NO_STORE,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/auth/register",
    response_model=AuthResponse,
    response_model_exclude_none=True,
    status_code=201,
)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account and return a bearer token for it.

    409 duplicate_user if the email or username is taken. The welcome email is
    queued after the account exists and cannot change this response.
    """
    command = RegisterCommand(
        email=body.email,
        username=body.username,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        interests=list(body.interests),
    )
    try:
        result = _service(request).register(command)
    except AuthError as exc:
        raise _http_error(exc) from exc
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse.from_result(result)


@router.post("/auth/login", response_model=AuthResponse, response_model_exclude_none=True)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same 401 invalid_credentials for an unknown email and for a
    wrong password. A deactivated account gets 401 account_deactivated.
    """
    try:
        result = _service(request).login(body.email, body.password)
    except AuthError as exc:
        raise _http_error(exc) from exc
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse.from_result(result)


@router.post("/auth/password-reset/request", response_model=MessageResponse)
def request_password_reset(request: Request, response: Response, body: PasswordResetRequest) -> MessageResponse:
    """Email a reset link if the address has an account.

    The response body is identical whether or not the account exists.
    """
    try:
        message = _service(request).request_password_reset(body.email)
    except AuthError as exc:
        raise _http_error(exc) from exc
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return MessageResponse(message=message)


@router.post("/auth/password-reset/confirm", response_model=MessageResponse)
def confirm_password_reset(request: Request, response: Response, body: PasswordResetConfirm) -> MessageResponse:
    """Set a new password using a reset token.

    400 invalid_or_expired_token for unknown, expired or already-used tokens.
    """
    try:
        _service(request).confirm_password_reset(body.token, body.new_password)
    except AuthError as exc:
        raise _http_error(exc) from exc
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return MessageResponse(message=PASSWORD_RESET_DONE_MESSAGE)


@router.get("/interests", response_model=list[InterestGroupResponse])
def list_interests(request: Request) -> list[InterestGroupResponse]:
    """Return the interest groups a new user can pick at registration."""
    groups = request.app.state.user_store.list_interest_groups()
    return [InterestGroupResponse(**g) for g in groups]


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ClaimsResponse)
def profile(response: Response, claims: TokenClaims = Depends(get_current_claims)) -> ClaimsResponse:
    """Return the identity claims carried by the caller's bearer token."""
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return ClaimsResponse.from_claims(claims)

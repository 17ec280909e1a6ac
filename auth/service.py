"""
auth/service.py -- Authentication orchestrator.

AuthService ties the password hasher, the token issuer and the user store
together into the four credential-lifecycle operations plus bearer-token
validation:

  register()                 -> AuthResult | DuplicateUserError | InternalAuthError
  login()                    -> AuthResult | InvalidCredentialsError | AccountDeactivatedError
  request_password_reset()   -> RESET_REQUESTED_MESSAGE (always, for any email)
  confirm_password_reset()   -> None | InvalidOrExpiredTokenError | InternalAuthError
  validate_token()           -> TokenClaims | InvalidOrExpiredTokenError

Input arrives already validated by the API layer (api/models.py). Failures
are terminal for the request; nothing here retries.

Anti-enumeration rules:
  - Unknown email and wrong password raise the same InvalidCredentialsError,
    and the unknown-email branch still pays for one bcrypt verification [C1].
  - request_password_reset() returns the same constant string whether or not
    the email belongs to an account. Only the known-email branch writes a
    token and queues an email.

Notifications go through the dispatcher and never affect the returned result.

Layer rule: no imports from api/, notify/, or core/. Collaborators are
injected through the constructor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import (
    AccountDeactivatedError,
    DuplicateUserError,
    HashingError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
)
from auth.models import AuthResult, RegisterCommand, TokenClaims, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer, generate_reset_token

logger = logging.getLogger("socialapp.auth")

RESET_REQUESTED_MESSAGE = "If the email exists, a password reset link has been sent"
DEFAULT_RESET_TOKEN_LIFETIME = timedelta(hours=1)


class NotificationSender(Protocol):
    def send_welcome(self, email: str, username: str) -> None: ...

    def send_password_reset(self, email: str, token: str) -> None: ...


class Dispatcher(Protocol):
    def submit(self, fn: Callable[..., object], *args: object) -> object: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Credential lifecycle state machine.

    Stateless apart from its injected collaborators, so one instance is shared
    by every request thread.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        notifier: NotificationSender,
        dispatcher: Dispatcher,
        reset_token_lifetime: timedelta = DEFAULT_RESET_TOKEN_LIFETIME,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._issuer = issuer
        self._notifier = notifier
        self._dispatcher = dispatcher
        self._reset_token_lifetime = reset_token_lifetime
        self._clock = clock

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, command: RegisterCommand) -> AuthResult:
        """Create an account and sign the new user in.

        The email pre-check is a fast path only. The UNIQUE constraints on
        email and username are what actually decide a race, surfacing as
        IntegrityError from create_user().
        """
        if self._find_by_email(command.email) is not None:
            logger.info("Registration rejected: email already registered")
            raise DuplicateUserError()

        user = User(
            email=command.email,
            username=command.username,
            hashed_password=self._hash(command.password),
            first_name=command.first_name,
            last_name=command.last_name,
            is_verified=False,
            is_active=True,
        )
        try:
            user_id = self._store.create_user(user)
            created = self._store.get_by_id(user_id)
        except IntegrityError as exc:
            logger.info("Registration rejected: email or username taken (constraint)")
            raise DuplicateUserError() from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to create user")
            raise InternalAuthError() from exc
        if created is None:
            logger.error("User %s not found after insert", user_id)
            raise InternalAuthError()

        if command.interests:
            try:
                self._store.add_interests(created.id, command.interests)
            except (SQLAlchemyError, OverflowError) as exc:
                # Registration still succeeds without the interests. sqlite3 raises
                # OverflowError unwrapped for ids beyond 64-bit INTEGER.
                logger.warning("Failed to add interests for user_id=%s: %s", created.id, exc)

        token = self._issuer.issue(created)
        logger.info("Registered user_id=%s", created.id)

        self._dispatcher.submit(self._notifier.send_welcome, created.email, created.username)
        return AuthResult(token=token, user=created)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResult:
        user = self._find_by_email(email)
        if user is None:
            self._hasher.dummy_verify(password)
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.info("Login refused for deactivated user_id=%s", user.id)
            raise AccountDeactivatedError()
        if not self._hasher.verify(user.hashed_password, password):
            raise InvalidCredentialsError()

        token = self._issuer.issue(user)
        logger.info("Login succeeded for user_id=%s", user.id)
        return AuthResult(token=token, user=user)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> str:
        """Start a reset for email if it has an account. Always returns the same message."""
        user = self._find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email; nothing sent")
            return RESET_REQUESTED_MESSAGE

        token = generate_reset_token()
        expires_at = self._clock() + self._reset_token_lifetime
        try:
            self._store.create_reset_token(user.id, token, expires_at)
        except SQLAlchemyError as exc:
            logger.exception("Failed to create reset token for user_id=%s", user.id)
            raise InternalAuthError() from exc

        logger.info("Password reset token issued for user_id=%s", user.id)
        self._dispatcher.submit(self._notifier.send_password_reset, user.email, token)
        return RESET_REQUESTED_MESSAGE

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Spend a reset token and set a new password.

        Marking the token used and writing the new hash happen in one
        transaction: either both take effect or neither does.
        """
        try:
            record = self._store.get_valid_reset_token(token, self._clock())
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up reset token")
            raise InternalAuthError() from exc
        if record is None:
            raise InvalidOrExpiredTokenError()

        hashed = self._hash(new_password)
        try:
            consumed = self._store.consume_reset_token(record.id, record.user_id, hashed)
        except (SQLAlchemyError, LookupError) as exc:
            logger.exception("Failed to consume reset token id=%s", record.id)
            raise InternalAuthError() from exc
        if not consumed:
            # Another request spent the same token first.
            raise InvalidOrExpiredTokenError()
        logger.info("Password reset completed for user_id=%s", record.user_id)

    # ------------------------------------------------------------------
    # Bearer tokens
    # ------------------------------------------------------------------

    def validate_token(self, token: str) -> TokenClaims:
        return self._issuer.verify(token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_by_email(self, email: str) -> User | None:
        try:
            return self._store.get_by_email(email)
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed")
            raise InternalAuthError() from exc

    def _hash(self, password: str) -> str:
        try:
            return self._hasher.hash(password)
        except HashingError as exc:
            logger.error("Password hashing failed: %s", exc)
            raise InternalAuthError() from exc

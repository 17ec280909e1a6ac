"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_reset_token are the mappers.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Uniqueness of email, username and reset token is enforced by UNIQUE
  constraints. create_user() lets IntegrityError propagate so the service can
  map a lost race to DuplicateUserError; the service's pre-check lookup is only
  a fast path.

  Single use of reset tokens is enforced in consume_reset_token() by an
  UPDATE ... WHERE used = 0 inside the same transaction as the password
  change. Two concurrent confirmations cannot both succeed.

  get_valid_reset_token() returns None for unknown, expired and used tokens
  alike. Callers cannot tell the cases apart.

  Reset tokens are stored as issued (raw hex). Hashing them at rest (SHA-256,
  lookup by digest) would protect against a database read leak; it is not
  done here, so read access to password_reset_tokens must be restricted.

Timestamps are stored as fixed-width ISO 8601 UTC strings (microsecond
precision, +00:00 offset), so string comparison in SQL is time comparison.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import PasswordResetToken, User

# Interest groups offered at sign-up.
DEFAULT_INTEREST_GROUPS = (
    ("Coworking", "Connect with professionals and digital nomads"),
    ("Photography", "Share and discuss photography"),
    ("Food", "Discover local cuisine and restaurants"),
    ("Languages", "Practice and learn new languages"),
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True, index=True),
    Column("username", String(100), nullable=False, unique=True, index=True),
    Column("hashed_password", String(255), nullable=False),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("bio", Text),
    Column("avatar_url", String(500)),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_reset_tokens = Table(
    "password_reset_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token", String(255), nullable=False, unique=True, index=True),
    Column("expires_at", String(32), nullable=False),
    Column("used", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_interest_groups = Table(
    "interest_groups",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("description", Text),
    Column("icon_url", String(500)),
    Column("created_at", String(32), nullable=False),
)

_user_interests = Table(
    "user_interests",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("interest_id", Integer, ForeignKey("interest_groups.id", ondelete="CASCADE"), nullable=False),
    Column("joined_at", String(32), nullable=False),
    PrimaryKeyConstraint("user_id", "interest_id"),
)


# ---------------------------------------------------------------------------
# SQLite connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Foreign keys are off by default in SQLite;
    without them add_interests() would accept unknown interest ids.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(moment: datetime) -> str:
    """Render a datetime as a fixed-width UTC ISO 8601 string."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User, PasswordResetToken and interest entities.

    Usage:
        store = UserStore("sqlite:///socialapp_auth.db")
        user_id = store.create_user(User(email="a@x.com", username="alice", hashed_password=h))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)
        self._seed_interest_groups()

    def _seed_interest_groups(self) -> None:
        """Insert the default interest groups that are not present yet.

        Idempotent -- safe to call on every startup.
        """
        with self.engine.begin() as conn:
            existing = set(conn.execute(select(_interest_groups.c.name)).scalars())
            missing = [
                {"name": name, "description": description, "created_at": _now_iso()}
                for name, description in DEFAULT_INTEREST_GROUPS
                if name not in existing
            ]
            if missing:
                conn.execute(_interest_groups.insert(), missing)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email or username already
        exists. AuthService.register() maps that to DuplicateUserError, which
        covers the case where a concurrent request won the race after the
        pre-check lookup missed.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    username=user.username,
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    bio=user.bio,
                    avatar_url=user.avatar_url,
                    is_verified=1 if user.is_verified else 0,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace a user's password hash. Returns False if user_id was not found."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hashed_password, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def set_active(self, user_id: int, is_active: bool) -> bool:
        """Activate or deactivate an account. Returns False if user_id was not found."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(is_active=1 if is_active else 0, updated_at=_now_iso())
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Interests
    # ------------------------------------------------------------------

    def add_interests(self, user_id: int, interest_ids: list[int]) -> None:
        """Associate a user with interest groups in one transaction.

        Pairs that already exist are skipped. An unknown interest id violates
        the foreign key and raises IntegrityError; the whole batch is rolled
        back.
        """
        if not interest_ids:
            return
        with self.engine.begin() as conn:
            existing = set(
                conn.execute(
                    select(_user_interests.c.interest_id).where(_user_interests.c.user_id == user_id)
                ).scalars()
            )
            joined_at = _now_iso()
            rows = []
            for interest_id in dict.fromkeys(interest_ids):
                if interest_id in existing:
                    continue
                rows.append({"user_id": user_id, "interest_id": interest_id, "joined_at": joined_at})
            if rows:
                conn.execute(_user_interests.insert(), rows)

    def get_interest_ids(self, user_id: int) -> list[int]:
        with self.engine.connect() as conn:
            ids = conn.execute(
                select(_user_interests.c.interest_id)
                .where(_user_interests.c.user_id == user_id)
                .order_by(_user_interests.c.interest_id)
            ).scalars()
            return list(ids)

    def list_interest_groups(self) -> list[dict]:
        """Return all interest groups as {id, name, description} dicts ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_interest_groups.c.id, _interest_groups.c.name, _interest_groups.c.description).order_by(
                    _interest_groups.c.id
                )
            ).fetchall()
        return [{"id": r.id, "name": r.name, "description": r.description} for r in rows]

    # ------------------------------------------------------------------
    # Password reset tokens
    # ------------------------------------------------------------------

    def create_reset_token(self, user_id: int, token: str, expires_at: datetime) -> PasswordResetToken:
        """Persist a new unused reset token and return the stored record."""
        created_at = _now_iso()
        record = PasswordResetToken(
            user_id=user_id,
            token=token,
            expires_at=to_iso(expires_at),
            used=False,
            created_at=created_at,
        )
        with self.engine.begin() as conn:
            result = conn.execute(
                _reset_tokens.insert().values(
                    user_id=record.user_id,
                    token=record.token,
                    expires_at=record.expires_at,
                    used=0,
                    created_at=record.created_at,
                )
            )
            record.id = result.inserted_primary_key[0]
        return record

    def get_valid_reset_token(self, token: str, now: datetime | None = None) -> PasswordResetToken | None:
        """Return the token record only if it is unused and not yet expired.

        Unknown, expired and used tokens all return None.
        """
        cutoff = to_iso(now) if now is not None else _now_iso()
        with self.engine.connect() as conn:
            row = conn.execute(
                _reset_tokens.select().where(
                    (_reset_tokens.c.token == token)
                    & (_reset_tokens.c.used == 0)
                    & (_reset_tokens.c.expires_at > cutoff)
                )
            ).fetchone()
        return _row_to_reset_token(row) if row is not None else None

    def mark_reset_token_used(self, token_id: int) -> bool:
        """Flip used to 1. Repeating the call leaves the row unchanged.

        Returns False only if token_id does not exist.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_reset_tokens.update().where(_reset_tokens.c.id == token_id).values(used=1))
        return result.rowcount > 0

    def consume_reset_token(self, token_id: int, user_id: int, hashed_password: str) -> bool:
        """Mark the token used and set the new password hash atomically.

        Returns False (and changes nothing) if the token was already used by
        the time this transaction ran. Any storage error rolls back both
        writes, so the password never changes without the token being spent.
        """
        with self.engine.begin() as conn:
            claimed = conn.execute(
                _reset_tokens.update()
                .where((_reset_tokens.c.id == token_id) & (_reset_tokens.c.used == 0))
                .values(used=1)
            )
            if claimed.rowcount != 1:
                return False
            updated = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hashed_password, updated_at=_now_iso())
            )
            if updated.rowcount != 1:
                # Owning user vanished between lookup and consume; undo the claim.
                raise LookupError(f"user {user_id} not found while consuming reset token {token_id}")
        return True

    def get_reset_tokens_for_user(self, user_id: int) -> list[PasswordResetToken]:
        """Return all reset tokens for a user (oldest first), used or not."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _reset_tokens.select().where(_reset_tokens.c.user_id == user_id).order_by(_reset_tokens.c.id)
            ).fetchall()
        return [_row_to_reset_token(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        bio=row.bio,
        avatar_url=row.avatar_url,
        is_verified=bool(row.is_verified),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_reset_token(row) -> PasswordResetToken:
    return PasswordResetToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        used=bool(row.used),
        created_at=row.created_at,
    )

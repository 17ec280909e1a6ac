"""
auth/passwords.py -- bcrypt password hashing.

Security design decisions:
  bcrypt directly, no passlib wrapper. passlib's wrap-bug detection builds a
  password longer than 72 bytes, which current bcrypt releases reject.

  72-byte limit: bcrypt only looks at the first 72 bytes. Older releases
  silently truncate, newer ones raise. hash() refuses long input itself so the
  behaviour does not depend on the installed bcrypt version, and so a
  truncated (usable-looking but wrong) hash is never produced.

  Timing equalization [C1]: dummy_verify() runs checkpw against a hash built
  at construction time. Login calls it when the email is unknown, so response
  time does not reveal whether an account exists.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import HashingError

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted one-way hashing with a configurable bcrypt cost factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self.rounds = rounds
        self._dummy_hash = self.hash("socialapp_timing_dummy")

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash with a fresh salt. Raises HashingError on unusable input."""
        try:
            encoded = plaintext.encode("utf-8")
        except (AttributeError, UnicodeEncodeError) as exc:
            raise HashingError("password must be a valid text string") from exc
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise HashingError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
        try:
            return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (TypeError, ValueError) as exc:
            raise HashingError("password could not be hashed") from exc

    def verify(self, hashed: str, plaintext: str) -> bool:
        """Return True if plaintext matches hashed. Malformed input is a mismatch."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except (AttributeError, TypeError, ValueError):
            return False

    def dummy_verify(self, plaintext: str) -> None:
        """Spend one bcrypt verification without a real account [C1]."""
        self.verify(self._dummy_hash, plaintext)

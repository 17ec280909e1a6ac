"""Unit tests for auth/store.py -- UserStore persistence.

Covers:
- create_user() / get_by_*() round-trip; email lookup is case-sensitive
- UNIQUE email and username raise IntegrityError
- update_password() / set_active() report missing users
- interest groups are seeded once; add_interests() skips duplicates and
  rejects unknown ids without a partial write
- reset tokens: valid lookup, expiry cutoff, used tokens hidden
- consume_reset_token() marks used and changes the hash together, once
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import DEFAULT_INTEREST_GROUPS, UserStore, to_iso


def _new_user(store: UserStore, email="a@x.com", username="alice", hashed="hash-1") -> int:
    return store.create_user(User(email=email, username=username, hashed_password=hashed))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    def test_create_and_get_by_email(self, store):
        uid = _new_user(store)
        user = store.get_by_email("a@x.com")
        assert user is not None
        assert user.id == uid
        assert user.username == "alice"
        assert user.hashed_password == "hash-1"
        assert user.is_active is True
        assert user.is_verified is False
        assert user.created_at == user.updated_at

    def test_get_by_id_and_username(self, store):
        uid = _new_user(store)
        assert store.get_by_id(uid).email == "a@x.com"
        assert store.get_by_username("alice").id == uid

    def test_missing_user_returns_none(self, store):
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_by_id(999) is None
        assert store.get_by_username("nobody") is None

    def test_email_lookup_is_case_sensitive(self, store):
        _new_user(store)
        assert store.get_by_email("A@X.COM") is None

    def test_duplicate_email_raises_integrity_error(self, store):
        _new_user(store)
        with pytest.raises(IntegrityError):
            _new_user(store, username="other")
        assert store.count_users() == 1

    def test_duplicate_username_raises_integrity_error(self, store):
        _new_user(store)
        with pytest.raises(IntegrityError):
            _new_user(store, email="b@x.com")

    def test_update_password(self, store):
        uid = _new_user(store)
        assert store.update_password(uid, "hash-2") is True
        assert store.get_by_id(uid).hashed_password == "hash-2"
        assert store.update_password(999, "hash-3") is False

    def test_set_active(self, store):
        uid = _new_user(store)
        assert store.set_active(uid, False) is True
        assert store.get_by_id(uid).is_active is False
        assert store.set_active(999, False) is False

    def test_repr_hides_password_hash(self, store):
        _new_user(store, hashed="super-secret-hash")
        assert "super-secret-hash" not in repr(store.get_by_email("a@x.com"))


# ---------------------------------------------------------------------------
# Interests
# ---------------------------------------------------------------------------


class TestInterests:
    def test_default_groups_seeded(self, store):
        names = [g["name"] for g in store.list_interest_groups()]
        assert names == [name for name, _ in DEFAULT_INTEREST_GROUPS]

    def test_seeding_is_idempotent(self, store):
        store._seed_interest_groups()
        assert len(store.list_interest_groups()) == len(DEFAULT_INTEREST_GROUPS)

    def test_add_interests_skips_existing_pairs(self, store):
        uid = _new_user(store)
        ids = [g["id"] for g in store.list_interest_groups()]
        store.add_interests(uid, [ids[0], ids[1]])
        store.add_interests(uid, [ids[1], ids[2], ids[2]])
        assert store.get_interest_ids(uid) == sorted(ids[:3])

    def test_unknown_interest_rolls_back_batch(self, store):
        uid = _new_user(store)
        first = store.list_interest_groups()[0]["id"]
        with pytest.raises(IntegrityError):
            store.add_interests(uid, [first, 9999])
        assert store.get_interest_ids(uid) == []

    def test_add_no_interests_is_noop(self, store):
        uid = _new_user(store)
        store.add_interests(uid, [])
        assert store.get_interest_ids(uid) == []


# ---------------------------------------------------------------------------
# Reset tokens
# ---------------------------------------------------------------------------


class TestResetTokens:
    def test_create_and_lookup(self, store):
        uid = _new_user(store)
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        record = store.create_reset_token(uid, "a" * 64, expires)
        assert record.id is not None
        assert record.used is False
        found = store.get_valid_reset_token("a" * 64)
        assert found is not None
        assert found.id == record.id
        assert found.user_id == uid
        assert found.expires_at == to_iso(expires)

    def test_unknown_token_returns_none(self, store):
        assert store.get_valid_reset_token("f" * 64) is None

    def test_expired_token_returns_none(self, store):
        uid = _new_user(store)
        issued = datetime.now(timezone.utc)
        store.create_reset_token(uid, "b" * 64, issued + timedelta(hours=1))
        assert store.get_valid_reset_token("b" * 64, issued + timedelta(minutes=59)) is not None
        assert store.get_valid_reset_token("b" * 64, issued + timedelta(hours=1)) is None
        assert store.get_valid_reset_token("b" * 64, issued + timedelta(hours=2)) is None

    def test_used_token_returns_none(self, store):
        uid = _new_user(store)
        record = store.create_reset_token(uid, "c" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
        assert store.mark_reset_token_used(record.id) is True
        assert store.get_valid_reset_token("c" * 64) is None
        # Marking again leaves the row unchanged.
        assert store.mark_reset_token_used(record.id) is True
        assert store.mark_reset_token_used(999) is False

    def test_duplicate_token_value_rejected(self, store):
        uid = _new_user(store)
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        store.create_reset_token(uid, "d" * 64, expires)
        with pytest.raises(IntegrityError):
            store.create_reset_token(uid, "d" * 64, expires)

    def test_naive_expiry_treated_as_utc(self, store):
        uid = _new_user(store)
        naive = datetime(2030, 1, 1, 12, 0, 0)
        record = store.create_reset_token(uid, "e" * 64, naive)
        assert record.expires_at == "2030-01-01T12:00:00.000000+00:00"

    def test_tokens_for_user_oldest_first(self, store):
        uid = _new_user(store)
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        store.create_reset_token(uid, "1" * 64, expires)
        store.create_reset_token(uid, "2" * 64, expires)
        tokens = store.get_reset_tokens_for_user(uid)
        assert [t.token for t in tokens] == ["1" * 64, "2" * 64]


class TestConsumeResetToken:
    def test_consume_marks_used_and_sets_hash(self, store):
        uid = _new_user(store)
        record = store.create_reset_token(uid, "a" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
        assert store.consume_reset_token(record.id, uid, "hash-new") is True
        assert store.get_by_id(uid).hashed_password == "hash-new"
        assert store.get_reset_tokens_for_user(uid)[0].used is True

    def test_second_consume_changes_nothing(self, store):
        uid = _new_user(store)
        record = store.create_reset_token(uid, "a" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
        store.consume_reset_token(record.id, uid, "hash-new")
        assert store.consume_reset_token(record.id, uid, "hash-other") is False
        assert store.get_by_id(uid).hashed_password == "hash-new"

    def test_missing_user_rolls_back_claim(self, store):
        uid = _new_user(store)
        record = store.create_reset_token(uid, "a" * 64, datetime.now(timezone.utc) + timedelta(hours=1))
        with pytest.raises(LookupError):
            store.consume_reset_token(record.id, 999, "hash-new")
        # The token was not spent, and the real owner's hash is untouched.
        assert store.get_valid_reset_token("a" * 64) is not None
        assert store.get_by_id(uid).hashed_password == "hash-1"

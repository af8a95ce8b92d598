"""
Unit tests for the bcrypt password credential.

Tests cover:
- set() / matches() round trip
- Changing the password invalidates the old plaintext
- Mismatch vs. comparison failure are distinct outcomes
- Plaintext never appears in repr
- Unknown accounts still pay for one bcrypt comparison
"""

import pytest

from backend.greenlight.data.users import (
    Password,
    User,
    spend_password_check,
    validate_password_plaintext,
    validate_user,
)
from backend.greenlight.errors import PasswordHashError
from backend.greenlight.validator import Validator

# Lowest cost bcrypt accepts, to keep tests fast
COST = 4


class TestPassword:
    """Tests for Password."""

    def test_matches_after_set(self):
        """The plaintext last set matches."""
        password = Password()
        password.set("pa55word!", COST)

        assert password.hash is not None
        assert password.hash != b"pa55word!"
        assert password.matches("pa55word!") is True

    def test_wrong_password_does_not_match(self):
        password = Password()
        password.set("pa55word!", COST)
        assert password.matches("wrong-password") is False

    def test_changing_password_invalidates_previous(self):
        """Only the most recent plaintext matches."""
        password = Password()
        password.set("first-password", COST)
        password.set("second-password", COST)

        assert password.matches("second-password") is True
        assert password.matches("first-password") is False

    def test_hash_is_salted(self):
        """The same plaintext hashes differently each time."""
        a, b = Password(), Password()
        a.set("pa55word!", COST)
        b.set("pa55word!", COST)
        assert a.hash != b.hash

    def test_cost_is_encoded_in_hash(self):
        password = Password()
        password.set("pa55word!", 5)
        assert password.hash.startswith(b"$2b$05$")

    def test_corrupt_hash_raises(self):
        """A corrupt hash is a comparison error, not a mismatch."""
        password = Password(hash=b"not-a-bcrypt-hash")
        with pytest.raises(PasswordHashError):
            password.matches("pa55word!")

    def test_missing_hash_raises(self):
        with pytest.raises(PasswordHashError):
            Password().matches("pa55word!")

    def test_repr_hides_plaintext(self):
        password = Password()
        password.set("pa55word!", COST)
        assert "pa55word!" not in repr(password)

    def test_user_dict_hides_password(self):
        """Neither form of the password is serialized."""
        user = User(name="Alice", email="alice@example.com")
        user.password.set("pa55word!", COST)

        data = user.to_dict()
        assert "password" not in data
        assert "pa55word!" not in str(data)


class TestPasswordValidation:
    """Tests for password and user validation."""

    @pytest.mark.parametrize(
        "plaintext,message",
        [
            ("", "must be provided"),
            ("short", "must be at least 8 bytes long"),
            ("x" * 73, "must not be more than 72 bytes long"),
        ],
    )
    def test_invalid_plaintext(self, plaintext, message):
        v = Validator()
        validate_password_plaintext(v, plaintext)
        assert v.errors == {"password": message}

    def test_valid_plaintext(self):
        v = Validator()
        validate_password_plaintext(v, "x" * 72)
        assert v.valid()

    def test_validate_user(self):
        user = User(name="", email="bad")
        user.password.plaintext = "short"

        v = Validator()
        validate_user(v, user)

        assert v.errors == {
            "name": "must be provided",
            "email": "must be a valid email address",
            "password": "must be at least 8 bytes long",
        }

    def test_validate_user_skips_password_without_plaintext(self):
        """A user loaded from storage has only a hash."""
        user = User(name="Alice", email="alice@example.com", password=Password(hash=b"x"))
        v = Validator()
        validate_user(v, user)
        assert v.valid()


class TestSpendPasswordCheck:
    """Tests for the bcrypt work done when no account exists."""

    def test_returns_without_raising(self):
        assert spend_password_check("pa55word!", COST) is None

    def test_decoy_hash_uses_requested_cost(self, monkeypatch):
        import bcrypt

        seen = []
        real_checkpw = bcrypt.checkpw

        def recording_checkpw(password, hashed):
            seen.append(hashed)
            return real_checkpw(password, hashed)

        monkeypatch.setattr(bcrypt, "checkpw", recording_checkpw)
        spend_password_check("pa55word!", 5)

        assert len(seen) == 1
        assert seen[0].startswith(b"$2b$05$")

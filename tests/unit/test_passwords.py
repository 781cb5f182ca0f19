"""Tests for bcrypt password hashing and password rules."""

import bcrypt
import pytest

from tokenguard.core.passwords import (
    BLANK_MESSAGE,
    DUMMY_HASH,
    BcryptPasswordHasher,
    validate_password,
)
from tokenguard.core.results import FieldErrors

_PASSWORD = "password_1"  # nosec B105


class TestHash:
    """Tests for BcryptPasswordHasher.hash()."""

    def test_digest_is_not_the_password(self, hasher: BcryptPasswordHasher):
        """Stored digest never equals the cleartext."""
        digest = hasher.hash(_PASSWORD)
        assert digest != _PASSWORD
        assert digest.startswith("$2b$04$")

    def test_same_password_gets_different_salts(self, hasher: BcryptPasswordHasher):
        assert hasher.hash(_PASSWORD) != hasher.hash(_PASSWORD)

    def test_rejects_password_over_72_bytes(self, hasher: BcryptPasswordHasher):
        with pytest.raises(ValueError, match="at most 72 bytes"):
            hasher.hash("a" * 73)

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_rejects_out_of_range_rounds(self, rounds: int):
        with pytest.raises(ValueError, match="between 4 and 31"):
            BcryptPasswordHasher(rounds=rounds)


class TestVerify:
    """Tests for BcryptPasswordHasher.verify()."""

    def test_accepts_correct_password(self, hasher: BcryptPasswordHasher):
        digest = hasher.hash(_PASSWORD)
        assert hasher.verify(digest, _PASSWORD) is True

    def test_rejects_wrong_password(self, hasher: BcryptPasswordHasher):
        digest = hasher.hash(_PASSWORD)
        assert hasher.verify(digest, _PASSWORD + "x") is False

    def test_accepts_bytes_digest(self, hasher: BcryptPasswordHasher):
        digest = hasher.hash(_PASSWORD).encode()
        assert hasher.verify(digest, _PASSWORD) is True

    @pytest.mark.parametrize("digest", [None, ""])
    def test_missing_digest_fails(self, hasher: BcryptPasswordHasher, digest):
        assert hasher.verify(digest, _PASSWORD) is False

    def test_missing_password_fails(self, hasher: BcryptPasswordHasher):
        digest = hasher.hash(_PASSWORD)
        assert hasher.verify(digest, None) is False

    def test_malformed_digest_fails_without_raising(self, hasher: BcryptPasswordHasher):
        assert hasher.verify("not-a-bcrypt-digest", _PASSWORD) is False

    def test_suffix_past_72_bytes_is_rejected(self, hasher: BcryptPasswordHasher):
        """A longer password never matches a digest of its 72-byte prefix."""
        prefix = "a" * 72
        digest = hasher.hash(prefix)
        assert hasher.verify(digest, prefix) is True
        assert hasher.verify(digest, prefix + "x") is False


class TestDummyVerify:
    """Tests for the timing-safe stand-in comparison."""

    def test_always_false(self, hasher: BcryptPasswordHasher):
        assert hasher.dummy_verify(_PASSWORD) is False
        assert hasher.dummy_verify("") is False

    def test_missing_digest_uses_dummy(self, hasher: BcryptPasswordHasher, monkeypatch):
        """Unknown accounts still cost one bcrypt comparison."""
        calls: list[str] = []
        original = hasher.dummy_verify

        def spy(password: str) -> bool:
            calls.append(password)
            return original(password)

        monkeypatch.setattr(hasher, "dummy_verify", spy)
        assert hasher.verify(None, _PASSWORD) is False
        assert calls == [_PASSWORD]

    def test_default_dummy_hash_is_cost_12(self):
        assert DUMMY_HASH.startswith(b"$2b$12$")
        # Must be a parseable digest, otherwise checkpw would raise.
        assert bcrypt.checkpw(b"anything", DUMMY_HASH) is False

    def test_dummy_hash_matches_configured_cost(self, hasher: BcryptPasswordHasher):
        assert hasher._dummy_hash.startswith(b"$2b$04$")


class TestValidatePassword:
    """Tests for validate_password()."""

    @pytest.mark.parametrize("password", [None, ""])
    def test_blank_password(self, password):
        errors = FieldErrors()
        validate_password(password, 6, errors)
        result = errors.to_result()
        assert result is not None
        assert result.errors == {"password": [BLANK_MESSAGE]}

    def test_too_short(self):
        errors = FieldErrors()
        validate_password("abc", 6, errors)
        result = errors.to_result()
        assert result is not None
        assert result.messages_for("password") == ["should be at least 6 character(s)"]

    def test_exact_minimum_is_accepted(self):
        errors = FieldErrors()
        validate_password("abcdef", 6, errors)
        assert not errors

    def test_72_bytes_is_accepted(self):
        errors = FieldErrors()
        validate_password("a" * 72, 6, errors)
        assert not errors

    def test_too_long_counts_utf8_bytes(self):
        """37 two-byte characters are 74 bytes."""
        errors = FieldErrors()
        validate_password("\u00e9" * 37, 6, errors)
        result = errors.to_result()
        assert result is not None
        assert result.messages_for("password") == ["should be at most 72 byte(s)"]

    def test_custom_field_name(self):
        errors = FieldErrors()
        validate_password("", 6, errors, field="new_password")
        result = errors.to_result()
        assert result is not None
        assert result.messages_for("new_password") == [BLANK_MESSAGE]

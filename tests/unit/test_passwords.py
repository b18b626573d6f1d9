"""Tests for password and session key generation."""

from __future__ import annotations

import pytest

from tenant_operator.utils import passwords


class TestGeneratePassword:
    """Test cases for generate_password."""

    def test_admin_password_policy(self):
        """Test length, digit count and absence of symbols."""
        password = passwords.generate_admin_password()
        assert len(password) == 32
        assert sum(c.isdigit() for c in password) == 5
        assert all(c.isalnum() for c in password)
        assert len(set(password)) == len(password)

    def test_session_key_policy(self):
        """Test the session key shape."""
        key = passwords.generate_session_key()
        assert len(key) == 20
        assert sum(c.isdigit() for c in key) == 5

    def test_symbols(self):
        """Test that the requested symbols are included."""
        password = passwords.generate_password(length=16, num_digits=2, num_symbols=3)
        assert sum(c in passwords.SYMBOLS for c in password) == 3

    def test_randomness(self):
        """Test that consecutive passwords differ."""
        assert passwords.generate_admin_password() != passwords.generate_admin_password()

    def test_too_many_digits_and_symbols(self):
        """Test that an impossible policy is rejected."""
        with pytest.raises(ValueError, match="exceeds password length"):
            passwords.generate_password(length=4, num_digits=3, num_symbols=2)

    def test_too_many_unique_digits(self):
        """Test that more unique digits than exist is rejected."""
        with pytest.raises(ValueError, match="unique digits"):
            passwords.generate_password(length=20, num_digits=11)

    def test_repeats_allowed(self):
        """Test that repeated characters are possible when allowed."""
        password = passwords.generate_password(length=20, num_digits=20, allow_repeat=True)
        assert password.isdigit()


class TestHashing:
    """Test cases for bcrypt hashing."""

    def test_hash_and_verify(self):
        """Test that a hash verifies its password only."""
        hashed = passwords.hash_password("s3cret")
        assert hashed.startswith("$2")
        assert passwords.verify_password("s3cret", hashed)
        assert not passwords.verify_password("other", hashed)

    def test_blank_password(self):
        """Test that blank passwords cannot be hashed."""
        with pytest.raises(ValueError, match="blank"):
            passwords.hash_password("")

    @pytest.mark.parametrize("hashed", ["", "not-a-hash"])
    def test_malformed_hash(self, hashed):
        """Test that malformed hashes never verify."""
        assert not passwords.verify_password("s3cret", hashed)

"""Generators for admin passwords and server session keys."""

from __future__ import annotations

import secrets
import string

import bcrypt

LETTERS = string.ascii_letters
DIGITS = string.digits
SYMBOLS = "~!@#$%^&*()_+`-={}|[]\\:\"<>?,./"

ADMIN_PASSWORD_LENGTH = 32
ADMIN_PASSWORD_NUM_DIGITS = 5
ADMIN_PASSWORD_NUM_SYMBOLS = 0

SESSION_KEY_LENGTH = 20
SESSION_KEY_NUM_DIGITS = 5
SESSION_KEY_NUM_SYMBOLS = 0


def _pick(pool: str, used: set[str], allow_repeat: bool) -> str:
    choices = pool if allow_repeat else "".join(c for c in pool if c not in used)
    if not choices:
        raise ValueError("not enough unique characters to satisfy the password policy")
    char = secrets.choice(choices)
    used.add(char)
    return char


def generate_password(
    length: int = ADMIN_PASSWORD_LENGTH,
    num_digits: int = ADMIN_PASSWORD_NUM_DIGITS,
    num_symbols: int = ADMIN_PASSWORD_NUM_SYMBOLS,
    allow_repeat: bool = False,
) -> str:
    """Generate a random password.

    The result has exactly num_digits digits and num_symbols symbols, the rest
    are letters, and characters are shuffled with a cryptographic RNG.

    Args:
        length: Total password length
        num_digits: Number of digits
        num_symbols: Number of symbols
        allow_repeat: Whether a character may appear more than once

    Returns:
        The generated password

    Raises:
        ValueError: If the policy cannot be satisfied
    """
    if num_digits + num_symbols > length:
        raise ValueError("number of digits and symbols exceeds password length")
    if not allow_repeat and num_digits > len(DIGITS):
        raise ValueError("number of digits exceeds available unique digits")

    used: set[str] = set()
    chars = [_pick(DIGITS, used, allow_repeat) for _ in range(num_digits)]
    chars += [_pick(SYMBOLS, used, allow_repeat) for _ in range(num_symbols)]
    chars += [_pick(LETTERS, used, allow_repeat) for _ in range(length - num_digits - num_symbols)]

    # Fisher-Yates with the secrets RNG
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)


def generate_admin_password() -> str:
    return generate_password(ADMIN_PASSWORD_LENGTH, ADMIN_PASSWORD_NUM_DIGITS, ADMIN_PASSWORD_NUM_SYMBOLS)


def generate_session_key() -> str:
    return generate_password(SESSION_KEY_LENGTH, SESSION_KEY_NUM_DIGITS, SESSION_KEY_NUM_SYMBOLS)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Raises:
        ValueError: If the password is blank
    """
    if not password:
        raise ValueError("blank passwords are not allowed")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a bcrypt hash; malformed hashes never match."""
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False

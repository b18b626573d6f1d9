"""Error types and sanitization utilities for the Tenant Operator."""

from __future__ import annotations

import re
from typing import Any

# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"-----BEGIN [A-Z ]+-----[\s\S]*?-----END [A-Z ]+-----",
    r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}",
    r"bearer\s+[A-Za-z0-9\-_\.=]+",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "admin.password",
    "server.secretkey",
    "tls.key",
    "password",
    "secretkey",
    "token",
    "credentials",
}


class NotReadyError(Exception):
    """A dependency of the object being reconciled does not exist yet.

    Raised during the bring-up ordering of a new tenant (for example the TLS
    secret needs the CA secret). Callers reschedule instead of failing loudly.
    """

    def __init__(self, resource: str, message: str | None = None):
        self.resource = resource
        super().__init__(message or f"{resource} is not ready")


class ValidationError(ValueError):
    """A tenant declares an illegal configuration."""


class MultiError(Exception):
    """Aggregates independent failures of a batch operation."""

    def __init__(self, errors: list[Exception] | None = None):
        self.errors: list[Exception] = list(errors or [])
        super().__init__()

    def append(self, error: Exception | None) -> None:
        """Add an error to the batch; None is ignored."""
        if error is None:
            return
        if isinstance(error, MultiError):
            self.errors.extend(error.errors)
        else:
            self.errors.append(error)

    def err_or_none(self) -> MultiError | None:
        """Return self if any error was collected, otherwise None."""
        return self if self.errors else None

    def __len__(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return "; ".join(str(e) for e in self.errors)


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{re.escape(field)}[:=\s]+([^\s,;\)]+)",
            f"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized

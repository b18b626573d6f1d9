"""Structured JSON logging for the Tenant Operator."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from . import config

# Keys whose values never reach the log output
SECRET_FIELDS = {"password", "admin_password", "session_key", "private_key", "tls_key", "token"}
REDACTED = "***REDACTED***"


def setup_structured_logging(level: int | None = None) -> None:
    """Send one JSON document per line to stdout.

    Args:
        level: Root level; LOG_LEVEL from the environment when None
    """
    logging.basicConfig(
        level=level if level is not None else config.log_level(),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of log_data with secret fields redacted."""
    return {key: REDACTED if key in SECRET_FIELDS else value for key, value in log_data.items()}


def _emit(logger: logging.Logger, level: int, log_data: dict[str, Any]) -> None:
    logger.log(level, json.dumps(sanitize_secrets(log_data), default=str))


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log an event about a reconciled resource.

    Args:
        logger: Logger to write to
        controller: Controller name
        resource_kind: Kind of the resource
        resource_name: Name of the resource
        namespace: Namespace of the resource
        uid: UID of the resource
        event: Short event name, e.g. "reconciled"
        reason: CamelCase reason
        message: Human-readable message
        level: Logging level
        **kwargs: Extra fields
    """
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(kwargs)
    _emit(logger, level, log_data)


def log_ownership_change(
    logger: logging.Logger,
    namespace: str,
    rbac_type: str,
    previous_owner: str,
    new_owner: str,
    level: int = logging.INFO,
) -> None:
    """Log one management label transition of a namespace."""
    if previous_owner and new_owner:
        action = "moved"
    elif previous_owner:
        action = "released"
    else:
        action = "claimed"
    _emit(
        logger,
        level,
        {
            "resource": "Namespace",
            "name": namespace,
            "event": "ownership",
            "action": action,
            "rbacType": rbac_type,
            "previousOwner": previous_owner,
            "newOwner": new_owner,
        },
    )

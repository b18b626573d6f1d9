"""Helpers for status conditions on tenants and NamespaceManagement objects."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_DEPENDENCY_NOT_READY,
    COND_NAMESPACE_MANAGEMENT,
    COND_READY,
    COND_SSO,
    REASON_NAMESPACE_PERMITTED,
)


def _status(value: bool) -> str:
    return "True" if value else "False"


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.get("type") == condition_type), None)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set a condition, keeping the position of an existing one.

    lastTransitionTime moves only when the status flips.

    Args:
        conditions: Current conditions
        condition_type: Condition type
        status: "True", "False" or "Unknown"
        reason: Machine-readable reason
        message: Human-readable message
        observed_generation: Generation the condition describes

    Returns:
        New list of conditions
    """
    previous = find_condition(conditions, condition_type)
    transition = datetime.now(timezone.utc).isoformat()
    if previous is not None and previous.get("status") == status:
        transition = previous.get("lastTransitionTime", transition)

    condition: dict[str, Any] = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": transition,
    }
    if observed_generation is not None:
        condition["observedGeneration"] = observed_generation

    if previous is None:
        return [*conditions, condition]
    return [condition if c is previous else c for c in conditions]


def remove_condition(conditions: list[dict[str, Any]], condition_type: str) -> list[dict[str, Any]]:
    return [c for c in conditions if c.get("type") != condition_type]


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    observed_generation: int | None = None,
    reason: str | None = None,
) -> list[dict[str, Any]]:
    """Set Ready; the reason defaults to Ready or NotReady."""
    return update_condition(
        conditions,
        COND_READY,
        _status(status),
        reason or ("Ready" if status else "NotReady"),
        message,
        observed_generation,
    )


def set_dependency_not_ready_condition(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return update_condition(
        conditions, COND_DEPENDENCY_NOT_READY, "True", "DependencyNotReady", message, observed_generation
    )


def set_namespace_management_condition(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Report a NamespaceManagement decision.

    Only a permitted namespace is True; disallowed, not permitted and disabled
    are False, each with its own reason.
    """
    return update_condition(
        conditions,
        COND_NAMESPACE_MANAGEMENT,
        _status(reason == REASON_NAMESPACE_PERMITTED),
        reason,
        message,
        observed_generation,
    )


def set_sso_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return update_condition(conditions, COND_SSO, _status(status), reason, message, observed_generation)

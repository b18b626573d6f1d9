"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DEPENDENCY_NOT_READY,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SECRET_CREATED,
    EVENT_REASON_SECRET_UPDATED,
    EVENT_REASON_SSO_REMOVED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
)


def emit_event(
    meta: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        meta: Resource metadata
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        meta,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(meta: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(meta, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(meta: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(meta, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_succeeded(meta: dict[str, Any]) -> None:
    emit_event(meta, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")


def emit_validate_failed(meta: dict[str, Any], message: str) -> None:
    emit_event(meta, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_dependency_not_ready(meta: dict[str, Any], message: str) -> None:
    emit_event(meta, EVENT_REASON_DEPENDENCY_NOT_READY, message, type_="Warning")


def emit_secret_created(meta: dict[str, Any], secret_name: str) -> None:
    """Emit secret created event."""
    emit_event(meta, EVENT_REASON_SECRET_CREATED, f"Secret {secret_name} created")


def emit_secret_updated(meta: dict[str, Any], secret_name: str) -> None:
    """Emit secret updated event."""
    emit_event(meta, EVENT_REASON_SECRET_UPDATED, f"Secret {secret_name} updated after drift")


def emit_sso_removed(meta: dict[str, Any]) -> None:
    """Emit SSO removed event."""
    emit_event(meta, EVENT_REASON_SSO_REMOVED, "SSO configuration removed, SSO resources deleted")

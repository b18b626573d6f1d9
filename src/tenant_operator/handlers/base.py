"""Base handler class with common functionality for all handlers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME, FINALIZER
from ..logging import log_resource_event
from ..utils.conditions import set_dependency_not_ready_condition, set_ready_condition
from ..utils.errors import NotReadyError, sanitize_exception
from ..utils.events import (
    emit_dependency_not_ready,
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_validate_failed,
)

DEPENDENCY_RETRY_DELAY = 10


class BaseHandler:
    """Base class for handlers with common logging, metrics and error handling."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Tenant", "Namespace")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(self, level: int, meta: dict[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log a structured info line about the resource."""
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a structured warning about the resource."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log a structured error; the exception is sanitized before it is logged."""
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def _patch_conditions(self, patch: kopf.Patch, meta: dict[str, Any], conditions: list[dict[str, Any]]) -> None:
        patch.status.update({"conditions": conditions, "observedGeneration": meta.get("generation", 0)})

    def handle_dependency_not_ready(
        self,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: NotReadyError,
    ) -> None:
        """Report a missing dependency and reschedule.

        Raises:
            kopf.TemporaryError: Always raises to trigger a delayed retry
        """
        message = str(error)
        self.log_warning(meta, message, reason="DependencyNotReady", dependency=error.resource)
        conditions = list(status.get("conditions", []))
        conditions = set_dependency_not_ready_condition(conditions, message, meta.get("generation"))
        conditions = set_ready_condition(conditions, False, message, meta.get("generation"), reason="DependencyNotReady")
        emit_dependency_not_ready(meta, message)
        metrics.reconcile_total.labels(kind=self.kind, result="waiting").inc()
        self._patch_conditions(patch, meta, conditions)
        raise kopf.TemporaryError(message, delay=DEPENDENCY_RETRY_DELAY)

    def handle_validation_error(
        self,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error_msg: str,
    ) -> None:
        """Record a validation failure on the Ready condition.

        Raises:
            kopf.PermanentError: Always; retrying cannot fix an invalid spec
        """
        self.log_error(meta, error_msg, reason="ValidationFailed")
        emit_validate_failed(meta, error_msg)
        metrics.reconcile_total.labels(kind=self.kind, result="failed").inc()
        conditions = list(status.get("conditions", []))
        conditions = set_ready_condition(conditions, False, error_msg, meta.get("generation"), reason="ValidationFailed")
        self._patch_conditions(patch, meta, conditions)
        raise kopf.PermanentError(error_msg)

    def handle_reconciliation_error(
        self,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: Exception,
    ) -> None:
        """Record a failed reconcile on the Ready condition without raising."""
        sanitized_error = sanitize_exception(error)
        conditions = list(status.get("conditions", []))
        conditions = set_ready_condition(
            conditions,
            False,
            f"Reconciliation failed: {sanitized_error}",
            meta.get("generation"),
            reason="ReconcileFailed",
        )
        self._patch_conditions(patch, meta, conditions)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def reconcile_with_metrics(
        self,
        meta: dict[str, Any],
        reconcile_fn: Callable[[], None],
    ) -> None:
        """Execute reconciliation with metrics and error handling.

        Retryable kopf errors pass through untouched, everything else is
        counted, logged and re-raised.
        """
        emit_reconcile_started(meta)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        except (kopf.TemporaryError, kopf.PermanentError):
            raise
        except Exception as e:
            error_type = type(e).__name__
            metrics.error_total.labels(kind=self.kind, error_type=error_type).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(meta, f"Reconciliation failed: {sanitize_exception(e)}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Update resource status with common fields."""
        status_update = {
            "observedGeneration": meta.get("generation", 0),
            **(status_data or {}),
        }
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
        patch.status.update(status_update)

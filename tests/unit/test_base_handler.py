"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import Mock, patch

import kopf
import pytest

from tenant_operator.constants import FINALIZER
from tenant_operator.handlers.base import DEPENDENCY_RETRY_DELAY, BaseHandler
from tenant_operator.utils.errors import NotReadyError


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="Tenant")
        assert handler.kind == "Tenant"
        assert handler.logger is not None

    def test_ensure_finalizer_adds_when_missing(self):
        """Test that finalizer is added when not present."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()

        handler.ensure_finalizer({"finalizers": ["other"]}, patch_)

        assert patch_.metadata["finalizers"] == ["other", FINALIZER]

    def test_ensure_finalizer_present(self):
        """Test that nothing is patched when the finalizer exists."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()

        handler.ensure_finalizer({"finalizers": [FINALIZER]}, patch_)

        assert "finalizers" not in patch_.metadata

    def test_remove_finalizer_sets_none_when_empty(self):
        """Test that finalizers is set to None when last finalizer is removed."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER]}, patch_)

        assert patch_.metadata["finalizers"] is None

    def test_remove_finalizer_keeps_others(self):
        """Test that other finalizers are kept."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER, "other"]}, patch_)

        assert patch_.metadata["finalizers"] == ["other"]

    @patch("tenant_operator.handlers.base.emit_dependency_not_ready")
    @patch("tenant_operator.handlers.base.metrics")
    def test_dependency_not_ready(self, mock_metrics, mock_emit):
        """Test that a missing dependency sets conditions and reschedules."""
        handler = BaseHandler(kind="Tenant")
        meta = {"name": "t1", "namespace": "ns1", "generation": 2}
        patch_ = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.handle_dependency_not_ready(meta, {}, patch_, NotReadyError("secret/t1-ca"))

        assert exc_info.value.delay == DEPENDENCY_RETRY_DELAY
        conditions = {c["type"]: c for c in patch_.status["conditions"]}
        assert conditions["DependencyNotReady"]["status"] == "True"
        assert conditions["Ready"]["status"] == "False"
        assert conditions["Ready"]["reason"] == "DependencyNotReady"
        assert patch_.status["observedGeneration"] == 2
        mock_emit.assert_called_once_with(meta, "secret/t1-ca is not ready")
        mock_metrics.reconcile_total.labels.assert_called_with(kind="Tenant", result="waiting")

    @patch("tenant_operator.handlers.base.emit_validate_failed")
    @patch("tenant_operator.handlers.base.metrics")
    def test_validation_error(self, mock_metrics, mock_emit):
        """Test that validation failures are permanent."""
        handler = BaseHandler(kind="Tenant")
        meta = {"name": "t1", "generation": 1}
        patch_ = kopf.Patch()

        with pytest.raises(kopf.PermanentError, match="bad rule"):
            handler.handle_validation_error(meta, {}, patch_, "bad rule")

        assert patch_.status["conditions"][0]["reason"] == "ValidationFailed"
        mock_emit.assert_called_once_with(meta, "bad rule")

    def test_reconciliation_error_does_not_raise(self):
        """Test that reconcile failures only update the Ready condition."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()
        error = RuntimeError("password: hunter2")

        handler.handle_reconciliation_error({"generation": 4}, {}, patch_, error)

        condition = patch_.status["conditions"][0]
        assert condition["status"] == "False"
        assert condition["reason"] == "ReconcileFailed"
        assert "hunter2" not in condition["message"]

    @patch("tenant_operator.handlers.base.emit_reconcile_started")
    @patch("tenant_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_success(self, mock_metrics, mock_emit_started):
        """Test successful reconciliation with metrics."""
        handler = BaseHandler(kind="Tenant")
        meta = {"name": "t1", "namespace": "ns1"}
        reconcile_fn = Mock()

        handler.reconcile_with_metrics(meta, reconcile_fn)

        reconcile_fn.assert_called_once()
        mock_emit_started.assert_called_once_with(meta)
        mock_metrics.reconcile_total.labels.assert_any_call(kind="Tenant", result="started")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="Tenant", result="success")
        assert mock_metrics.reconcile_duration_seconds.labels.called

    @patch("tenant_operator.handlers.base.emit_reconcile_failed")
    @patch("tenant_operator.handlers.base.emit_reconcile_started")
    @patch("tenant_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_failure(self, mock_metrics, mock_emit_started, mock_emit_failed):
        """Test failed reconciliation with metrics and error handling."""
        handler = BaseHandler(kind="Tenant")
        meta = {"name": "t1", "namespace": "ns1"}

        def failing_fn():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            handler.reconcile_with_metrics(meta, failing_fn)

        mock_emit_failed.assert_called_once_with(meta, "Reconciliation failed: Test error")
        mock_metrics.error_total.labels.assert_called_with(kind="Tenant", error_type="ValueError")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="Tenant", result="error")

    @patch("tenant_operator.handlers.base.emit_reconcile_failed")
    @patch("tenant_operator.handlers.base.emit_reconcile_started")
    @patch("tenant_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_passes_kopf_errors(self, mock_metrics, mock_emit_started, mock_emit_failed):
        """Test that kopf retry errors are not counted as failures."""
        handler = BaseHandler(kind="Tenant")

        def waiting_fn():
            raise kopf.TemporaryError("later", delay=10)

        with pytest.raises(kopf.TemporaryError):
            handler.reconcile_with_metrics({"name": "t1"}, waiting_fn)

        mock_emit_failed.assert_not_called()
        mock_metrics.error_total.labels.assert_not_called()

    @patch("tenant_operator.handlers.base.metrics")
    def test_update_resource_status(self, mock_metrics):
        """Test updating resource status."""
        handler = BaseHandler(kind="Tenant")
        patch_ = kopf.Patch()

        handler.update_resource_status(patch_, {"generation": 5}, ready=True, status_data={"managedNamespaces": ["ns1"]})

        assert patch_.status["observedGeneration"] == 5
        assert patch_.status["managedNamespaces"] == ["ns1"]
        mock_metrics.resource_status_total.labels.assert_called_with(kind="Tenant", status="ready")

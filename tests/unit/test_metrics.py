"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from tenant_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    conflict_retries_total,
    drift_detected_total,
    error_total,
    namespace_events_total,
    rbac_deletions_total,
    reconcile_duration_seconds,
    reconcile_requests_total,
    reconcile_total,
    resource_status_total,
    secret_operations_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_counter_names(self):
        """Test counter names; prometheus strips the _total suffix."""
        assert reconcile_total._name == "tenant_operator_reconcile"
        assert error_total._name == "tenant_operator_error"
        assert resource_status_total._name == "tenant_operator_resource_status"
        assert namespace_events_total._name == "tenant_operator_namespace_events"
        assert reconcile_requests_total._name == "tenant_operator_reconcile_requests"
        assert rbac_deletions_total._name == "tenant_operator_rbac_deletions"
        assert secret_operations_total._name == "tenant_operator_secret_operations"
        assert drift_detected_total._name == "tenant_operator_drift_detected"
        assert conflict_retries_total._name == "tenant_operator_conflict_retries"
        assert api_call_total._name == "tenant_operator_api_call"

    def test_histogram_names(self):
        """Test histogram names."""
        assert reconcile_duration_seconds._name == "tenant_operator_reconcile_duration_seconds"
        assert api_call_duration_seconds._name == "tenant_operator_api_call_duration_seconds"


class TestMetricsRecording:
    """Test that metrics record values with their labels."""

    def test_reconcile_requests_increment(self):
        """Test incrementing a labelled counter."""
        before = REGISTRY.get_sample_value("tenant_operator_reconcile_requests_total", {"source": "test"}) or 0.0
        reconcile_requests_total.labels(source="test").inc(2)
        after = REGISTRY.get_sample_value("tenant_operator_reconcile_requests_total", {"source": "test"})
        assert after == before + 2

    def test_secret_operations_labels(self):
        """Test the secret operation labels."""
        secret_operations_total.labels(secret="ca", operation="created").inc()
        value = REGISTRY.get_sample_value(
            "tenant_operator_secret_operations_total", {"secret": "ca", "operation": "created"}
        )
        assert value is not None and value >= 1

    def test_duration_observed(self):
        """Test observing a histogram."""
        reconcile_duration_seconds.labels(kind="Test").observe(0.3)
        count = REGISTRY.get_sample_value("tenant_operator_reconcile_duration_seconds_count", {"kind": "Test"})
        assert count is not None and count >= 1

"""Prometheus metrics for the Tenant Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "tenant_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "tenant_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "tenant_operator_error_total",
    "Total number of errors by resource kind and error type",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "tenant_operator_resource_status_total",
    "Resource status observations",
    ["kind", "status"],
)

# Namespace ownership metrics
namespace_events_total = Counter(
    "tenant_operator_namespace_events_total",
    "Namespace watch events by predicate result",
    ["event", "result"],
)

reconcile_requests_total = Counter(
    "tenant_operator_reconcile_requests_total",
    "Tenant reconcile requests emitted by the event mappers",
    ["source"],
)

rbac_deletions_total = Counter(
    "tenant_operator_rbac_deletions_total",
    "Roles and role bindings deleted on ownership changes",
    ["resource", "result"],
)

# Secret lifecycle metrics
secret_operations_total = Counter(
    "tenant_operator_secret_operations_total",
    "Secret lifecycle outcomes",
    ["secret", "operation"],
)

drift_detected_total = Counter(
    "tenant_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "resource_type"],
)

conflict_retries_total = Counter(
    "tenant_operator_conflict_retries_total",
    "Retries caused by optimistic concurrency conflicts",
    ["operation"],
)

# API call metrics
api_call_total = Counter(
    "tenant_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "tenant_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

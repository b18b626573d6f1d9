"""Event mappers turning watch notifications into tenant reconcile requests."""

from __future__ import annotations

import logging
from typing import Any, Callable, NamedTuple

from . import metrics
from .constants import (
    LABEL_SECRET_TYPE,
    RBAC_TYPE_RESOURCE_MANAGEMENT,
    SECRET_TYPE_CLUSTER,
)
from .logging import log_ownership_change
from .namespaces import strip_management_labels
from .rbac import delete_non_control_plane_resources
from .store import ResourceStore
from .tracker import ManagedNsOpts, OwnershipTracker, default_tracker
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)

ReleaseFn = Callable[[str, str], Any]


class ReconcileRequest(NamedTuple):
    """Identifies one tenant to reconcile."""

    namespace: str
    name: str


def dedupe(requests: list[ReconcileRequest]) -> list[ReconcileRequest]:
    """Drop duplicate requests, keeping first occurrence order."""
    seen = set()
    result = []
    for request in requests:
        if request not in seen:
            seen.add(request)
            result.append(request)
    return result


def single_tenant_request(store: ResourceStore, namespace: str) -> ReconcileRequest | None:
    """Find the only tenant in a namespace.

    Zero tenants is an idle lookup. More than one tenant per namespace is a
    configuration anomaly that is logged and skipped.
    """
    if not namespace:
        return None
    tenants = store.list_tenants(namespace)
    if len(tenants) != 1:
        if len(tenants) > 1:
            logger.warning(f"Found {len(tenants)} tenants in namespace {namespace}, expected at most one; skipping")
        return None
    return ReconcileRequest(namespace, tenants[0]["metadata"]["name"])


class NamespaceMapper:
    """Maps namespace events to the tenants whose state depends on them."""

    def __init__(
        self,
        store: ResourceStore,
        tracker: OwnershipTracker | None = None,
        release_fn: ReleaseFn | None = None,
    ):
        """Initialize the mapper.

        Args:
            store: Resource store
            tracker: Ownership tracker filled by the namespace predicates
            release_fn: Called as release_fn(owner_ns, namespace) when a
                namespace leaves the resource management of owner_ns
        """
        self.store = store
        self.tracker = tracker or default_tracker
        self.release_fn = release_fn

    def map(self, namespace_obj: dict[str, Any]) -> list[ReconcileRequest]:
        """Compute the reconcile requests for a namespace event.

        Args:
            namespace_obj: Namespace body with metadata

        Returns:
            Deduplicated reconcile requests
        """
        meta = namespace_obj.get("metadata", {})
        name = meta.get("name", "")

        if meta.get("deletionTimestamp"):
            return self._map_terminating(name)

        # Transitions recorded while these are processed wait for the next event
        pending = self.tracker.drain(name)
        if not pending:
            return []

        return dedupe(self._process_transitions(name, pending))

    def _map_terminating(self, name: str) -> list[ReconcileRequest]:
        pending = self.tracker.drain(name)
        tenants = self.store.list_tenants(name)
        if tenants:
            requests = []
            for tenant in tenants:
                tenant_name = tenant["metadata"]["name"]
                logger.info(f"Namespace {name} is terminating, deleting tenant {tenant_name}")
                self.store.delete_tenant(name, tenant_name)
                requests.append(ReconcileRequest(name, tenant_name))
            metrics.reconcile_requests_total.labels(source="namespace").inc(len(requests))
            return dedupe(requests)

        strip_management_labels(self.store, name)
        if pending:
            # Owner reconciles are not requested for a namespace that is going away
            self._process_transitions(name, pending, emit=False)
        return []

    def _process_transitions(
        self,
        name: str,
        pending: list[ManagedNsOpts],
        emit: bool = True,
    ) -> list[ReconcileRequest]:
        for opts in pending:
            log_ownership_change(
                logger, name, opts.resource_deletion_label_value, opts.prev_managing_ns, opts.new_managing_ns
            )

        deletion_values = sorted({o.resource_deletion_label_value for o in pending if o.prev_managing_ns})
        if deletion_values:
            err = delete_non_control_plane_resources(self.store, name, deletion_values)
            if err is not None:
                logger.error(f"Failed to delete RBAC {deletion_values} in namespace {name}: {err}")

        requests: list[ReconcileRequest] = []
        previous_owners = sorted({
            o.prev_managing_ns
            for o in pending
            if o.prev_managing_ns and o.resource_deletion_label_value == RBAC_TYPE_RESOURCE_MANAGEMENT
        })
        for owner_ns in previous_owners:
            if self.release_fn is not None:
                try:
                    self.release_fn(owner_ns, name)
                except Exception as e:
                    logger.error(
                        f"Failed to release namespace {name} from tenant in {owner_ns}: {sanitize_exception(e)}"
                    )
            if emit:
                request = single_tenant_request(self.store, owner_ns)
                if request is not None:
                    requests.append(request)

        if emit:
            for new_ns in sorted({o.new_managing_ns for o in pending if o.new_managing_ns}):
                request = single_tenant_request(self.store, new_ns)
                if request is not None:
                    requests.append(request)

        metrics.reconcile_requests_total.labels(source="namespace").inc(len(requests))
        return requests


def map_cluster_secret(store: ResourceStore, secret: dict[str, Any]) -> list[ReconcileRequest]:
    """Map a cluster secret to the single tenant in its namespace."""
    meta = secret.get("metadata", {})
    if (meta.get("labels") or {}).get(LABEL_SECRET_TYPE) != SECRET_TYPE_CLUSTER:
        return []
    request = single_tenant_request(store, meta.get("namespace", ""))
    if request is None:
        return []
    metrics.reconcile_requests_total.labels(source="cluster_secret").inc()
    return [request]



def map_namespace_management(
    store: ResourceStore,
    old: dict[str, Any] | None,
    new: dict[str, Any] | None,
) -> list[ReconcileRequest]:
    """Map a NamespaceManagement change to the tenants it names in spec.managedBy.

    Both the previous and the current owner are requested so a tenant losing
    the namespace drops it and purges its RBAC there.
    """
    requests = []
    for body in (old, new):
        managed_by = ((body or {}).get("spec") or {}).get("managedBy")
        request = single_tenant_request(store, managed_by or "")
        if request is not None:
            requests.append(request)
    requests = dedupe(requests)
    metrics.reconcile_requests_total.labels(source="namespace_management").inc(len(requests))
    return requests

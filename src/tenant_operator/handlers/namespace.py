"""Handlers for namespace and cluster secret events.

Namespaces are not owned by the operator; these handlers only run the
ownership predicates, map the event to tenants and ask kopf to reconcile them.
"""

from __future__ import annotations

from typing import Any

import kopf

from .. import metrics
from ..constants import (
    API_GROUP,
    API_VERSION,
    KIND_NAMESPACE,
    LABEL_SECRET_TYPE,
    PLURAL_NAMESPACE_MANAGEMENTS,
    SECRET_TYPE_CLUSTER,
)
from ..mapper import NamespaceMapper, ReconcileRequest, map_cluster_secret, map_namespace_management
from ..predicates import (
    namespace_create_predicate,
    namespace_delete_predicate,
    namespace_update_predicate,
)
from ..store import ResourceStore
from ..tracker import OwnershipTracker, default_tracker
from . import shared
from .base import BaseHandler


class NamespaceHandler(BaseHandler):
    """Turns namespace label transitions into tenant reconcile requests."""

    def __init__(self, tracker: OwnershipTracker | None = None):
        super().__init__(KIND_NAMESPACE)
        self.tracker = tracker or default_tracker

    def dispatch(
        self,
        store: ResourceStore,
        mapper: NamespaceMapper,
        body: dict[str, Any],
        event: str,
        relevant: bool,
    ) -> list[ReconcileRequest]:
        """Map a namespace event and request reconciles for the affected tenants."""
        meta = body.get("metadata", {})
        metrics.namespace_events_total.labels(event=event, result="processed" if relevant else "skipped").inc()
        if not relevant:
            return []

        requests = mapper.map(body)
        for request in requests:
            shared.request_reconcile(store, request)
        if requests:
            self.log_info(
                meta,
                f"Requested reconcile of {len(requests)} tenant(s)",
                event=event,
                reason="OwnershipChanged",
                tenants=[f"{r.namespace}/{r.name}" for r in requests],
            )
        return requests

    def on_create(self, store: ResourceStore, mapper: NamespaceMapper, body: dict[str, Any]) -> list[ReconcileRequest]:
        meta = body.get("metadata", {})
        relevant = namespace_create_predicate(meta.get("name", ""), meta.get("labels"), self.tracker)
        return self.dispatch(store, mapper, body, "create", relevant)

    def on_update(
        self,
        store: ResourceStore,
        mapper: NamespaceMapper,
        body: dict[str, Any],
        old_labels: dict[str, str] | None,
        new_labels: dict[str, str] | None,
    ) -> list[ReconcileRequest]:
        meta = body.get("metadata", {})
        relevant = namespace_update_predicate(meta.get("name", ""), old_labels, new_labels, self.tracker)
        return self.dispatch(store, mapper, body, "update", relevant)

    def on_delete(self, store: ResourceStore, mapper: NamespaceMapper, body: dict[str, Any]) -> list[ReconcileRequest]:
        meta = body.get("metadata", {})
        name = meta.get("name", "")
        has_tenants = bool(store.list_tenants(name))
        relevant = namespace_delete_predicate(name, meta.get("labels"), has_tenants, self.tracker)
        return self.dispatch(store, mapper, body, "delete", relevant)


def _plain(body: Any) -> dict[str, Any]:
    meta = body.get("metadata", {})
    return {
        "metadata": {
            "name": meta.get("name"),
            "labels": dict(meta.get("labels") or {}),
            "annotations": dict(meta.get("annotations") or {}),
            "deletionTimestamp": meta.get("deletionTimestamp"),
            "namespace": meta.get("namespace"),
        }
    }


# Global handler instance
_handler = NamespaceHandler()


@kopf.on.create("", "v1", "namespaces")
def handle_namespace_create(body: Any, **kwargs: Any) -> None:
    """Handle namespace creation."""
    _handler.on_create(shared.get_store(), shared.get_namespace_mapper(), _plain(body))


@kopf.on.update("", "v1", "namespaces", field="metadata.labels")
def handle_namespace_labels(body: Any, old: Any, new: Any, **kwargs: Any) -> None:
    """Handle namespace label changes."""
    _handler.on_update(
        shared.get_store(),
        shared.get_namespace_mapper(),
        _plain(body),
        dict(old or {}),
        dict(new or {}),
    )


@kopf.on.delete("", "v1", "namespaces", optional=True)
def handle_namespace_delete(body: Any, **kwargs: Any) -> None:
    """Handle namespaces marked for deletion."""
    _handler.on_delete(shared.get_store(), shared.get_namespace_mapper(), _plain(body))


@kopf.on.event("", "v1", "secrets", labels={LABEL_SECRET_TYPE: SECRET_TYPE_CLUSTER})
def handle_cluster_secret_event(body: Any, type: str | None = None, **kwargs: Any) -> None:
    """Reconcile the owning tenant when a cluster secret changes."""
    if type is None:
        # Initial listing, tenants are resumed by their own handler
        return
    store = shared.get_store()
    for request in map_cluster_secret(store, _plain(body)):
        shared.request_reconcile(store, request)


def _request_all(store: ResourceStore, requests: list[ReconcileRequest]) -> None:
    for request in requests:
        shared.request_reconcile(store, request)


@kopf.on.create(API_GROUP, API_VERSION, PLURAL_NAMESPACE_MANAGEMENTS)
def handle_namespace_management_create(spec: Any, **kwargs: Any) -> None:
    """Reconcile the tenant named by a new NamespaceManagement."""
    store = shared.get_store()
    _request_all(store, map_namespace_management(store, None, {"spec": dict(spec or {})}))


@kopf.on.update(API_GROUP, API_VERSION, PLURAL_NAMESPACE_MANAGEMENTS, field="spec")
def handle_namespace_management_update(old: Any, new: Any, **kwargs: Any) -> None:
    """Reconcile the previous and the current owner of a NamespaceManagement."""
    store = shared.get_store()
    _request_all(
        store,
        map_namespace_management(store, {"spec": dict(old or {})}, {"spec": dict(new or {})}),
    )


@kopf.on.delete(API_GROUP, API_VERSION, PLURAL_NAMESPACE_MANAGEMENTS, optional=True)
def handle_namespace_management_delete(spec: Any, **kwargs: Any) -> None:
    """Reconcile the tenant that loses a deleted NamespaceManagement."""
    store = shared.get_store()
    _request_all(store, map_namespace_management(store, {"spec": dict(spec or {})}, None))

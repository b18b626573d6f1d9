"""Event filters for namespace and tenant watch notifications.

Namespace predicates compare management labels and record every transition in
the ownership tracker so the namespace mapper can act on it. They never call
the API server.
"""

from __future__ import annotations

from typing import Any

from .constants import (
    ANNOTATION_RECONCILE_REQUESTED,
    LABEL_APPS_MANAGED_BY,
    LABEL_APPSETS_MANAGED_BY,
    LABEL_MANAGED_BY,
    MANAGEMENT_LABELS,
    RBAC_TYPE_APP_MANAGEMENT,
    RBAC_TYPE_APPSET_MANAGEMENT,
    RBAC_TYPE_RESOURCE_MANAGEMENT,
    TRANSITION_SSO_REMOVED,
)
from .tracker import ManagedNsOpts, OwnershipTracker, default_tracker

_RBAC_TYPES = {
    LABEL_MANAGED_BY: RBAC_TYPE_RESOURCE_MANAGEMENT,
    LABEL_APPS_MANAGED_BY: RBAC_TYPE_APP_MANAGEMENT,
    LABEL_APPSETS_MANAGED_BY: RBAC_TYPE_APPSET_MANAGEMENT,
}


def rbac_type_for_label(label_key: str) -> str:
    """Map a management label key to its RBAC type.

    Raises:
        KeyError: If the key is not a management label
    """
    return _RBAC_TYPES[label_key]


def namespace_create_predicate(
    name: str,
    labels: dict[str, str] | None,
    tracker: OwnershipTracker | None = None,
) -> bool:
    """Process a namespace creation only when it is already resource-managed.

    Every management label present at creation time is recorded as a new claim.
    """
    tracker = tracker or default_tracker
    tracker.initialize()
    labels = labels or {}
    if not labels.get(LABEL_MANAGED_BY):
        return False
    for key in MANAGEMENT_LABELS:
        if labels.get(key):
            tracker.record(name, ManagedNsOpts(rbac_type_for_label(key), "", labels[key]))
    return True


def namespace_update_predicate(
    name: str,
    old_labels: dict[str, str] | None,
    new_labels: dict[str, str] | None,
    tracker: OwnershipTracker | None = None,
) -> bool:
    """Record management label transitions between two label sets.

    A label that was removed, changed owner or was newly added is a transition.

    Returns:
        True if at least one of the management labels transitioned
    """
    tracker = tracker or default_tracker
    tracker.initialize()
    old_labels = old_labels or {}
    new_labels = new_labels or {}

    changed = False
    for key in MANAGEMENT_LABELS:
        old_value = old_labels.get(key, "")
        new_value = new_labels.get(key, "")
        if old_value == new_value:
            continue
        tracker.record(name, ManagedNsOpts(rbac_type_for_label(key), old_value, new_value))
        changed = True
    return changed


def namespace_delete_predicate(
    name: str,
    labels: dict[str, str] | None,
    has_tenants: bool = False,
    tracker: OwnershipTracker | None = None,
) -> bool:
    """Treat every management label of a deleted namespace as released.

    Returns:
        True if a label was released or the namespace holds tenants
    """
    tracker = tracker or default_tracker
    tracker.initialize()
    labels = labels or {}

    released = False
    for key in MANAGEMENT_LABELS:
        old_value = labels.get(key, "")
        if not old_value:
            continue
        tracker.record(name, ManagedNsOpts(rbac_type_for_label(key), old_value, ""))
        released = True
    return released or has_tenants


def tenant_update_relevant(old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
    """Pass spec changes and reconcile requests; skip everything else.

    Deletions are handled by the delete handler.
    """
    if not old or not new:
        return False
    old_meta = old.get("metadata", {})
    new_meta = new.get("metadata", {})
    if new_meta.get("deletionTimestamp"):
        return False
    if old_meta.get("generation") != new_meta.get("generation"):
        return True
    old_requested = (old_meta.get("annotations") or {}).get(ANNOTATION_RECONCILE_REQUESTED)
    return old_requested != (new_meta.get("annotations") or {}).get(ANNOTATION_RECONCILE_REQUESTED)


def detect_tenant_transitions(old_spec: dict[str, Any] | None, new_spec: dict[str, Any] | None) -> set[str]:
    """Detect spec transitions that need a pre-reconcile hook.

    Returns:
        Set of transition names, empty when nothing special happened
    """
    old_spec = old_spec or {}
    new_spec = new_spec or {}
    transitions = set()
    if old_spec.get("sso") and not new_spec.get("sso"):
        transitions.add(TRANSITION_SSO_REMOVED)
    return transitions

"""Namespace ownership queries and NamespaceManagement rules."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import Any

from . import config
from .constants import (
    LABEL_MANAGED_BY,
    MANAGEMENT_LABELS,
    REASON_NAMESPACE_DISALLOWED,
    REASON_NAMESPACE_MANAGEMENT_DISABLED,
    REASON_NAMESPACE_NOT_PERMITTED,
    REASON_NAMESPACE_PERMITTED,
)
from .selector import Selector, equals
from .store import ResourceStore
from .utils.conditions import set_namespace_management_condition
from .utils.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamespaceDecision:
    """Outcome of evaluating a namespace against a tenant's management rules."""

    namespace: str
    allowed: bool
    reason: str
    message: str


def managed_namespaces(store: ResourceStore, tenant_namespace: str, label_key: str = LABEL_MANAGED_BY) -> list[str]:
    """List namespaces whose management label points at the tenant namespace."""
    selector = Selector([equals(label_key, tenant_namespace)])
    return sorted(ns.metadata.name for ns in store.list_namespaces(selector))


def validate_namespace_management_rules(spec: dict[str, Any]) -> list[str]:
    """Check the shape of spec.namespaceManagement.

    Returns:
        Human-readable problems, empty when the rules are valid
    """
    problems = []
    rules = spec.get("namespaceManagement") or []
    if not isinstance(rules, list):
        return ["namespaceManagement must be a list"]
    for idx, rule in enumerate(rules):
        if not isinstance(rule, dict) or not rule.get("name"):
            problems.append(f"namespaceManagement[{idx}].name is required")
            continue
        if not isinstance(rule.get("allowManagedBy", False), bool):
            problems.append(f"namespaceManagement[{idx}].allowManagedBy must be a boolean")
    return problems


def ensure_valid_namespace_management_rules(spec: dict[str, Any]) -> None:
    """Raise ValidationError listing every problem of spec.namespaceManagement."""
    problems = validate_namespace_management_rules(spec)
    if problems:
        raise ValidationError("; ".join(problems))


def evaluate_namespace_management(tenant: dict[str, Any], namespace: str) -> NamespaceDecision:
    """Decide whether a tenant may manage a namespace.

    A rule naming the namespace exactly with allowManagedBy false disallows it.
    Otherwise the namespace must match one of the allowed name patterns (glob).
    """
    meta = tenant.get("metadata", {})
    tenant_ref = f"{meta.get('namespace')}/{meta.get('name')}"
    rules = tenant.get("spec", {}).get("namespaceManagement") or []

    for rule in rules:
        if rule.get("name") == namespace and not rule.get("allowManagedBy", False):
            return NamespaceDecision(
                namespace,
                False,
                REASON_NAMESPACE_DISALLOWED,
                f"Namespace {namespace} is not allowed to be managed by tenant {tenant_ref}",
            )

    allowed_patterns = [r["name"] for r in rules if r.get("allowManagedBy", False) and r.get("name")]
    if any(fnmatch.fnmatchcase(namespace, pattern) for pattern in allowed_patterns):
        return NamespaceDecision(
            namespace,
            True,
            REASON_NAMESPACE_PERMITTED,
            f"Namespace {namespace} is managed by tenant {tenant_ref}",
        )
    return NamespaceDecision(
        namespace,
        False,
        REASON_NAMESPACE_NOT_PERMITTED,
        f"Namespace {namespace} is not permitted for management by tenant {tenant_ref} "
        f"based on NamespaceManagement rules",
    )


def _targets_tenant(nm: dict[str, Any], tenant: dict[str, Any]) -> bool:
    return nm.get("spec", {}).get("managedBy") == tenant.get("metadata", {}).get("namespace")


def reconcile_namespace_management(store: ResourceStore, tenant: dict[str, Any]) -> list[NamespaceDecision]:
    """Evaluate every NamespaceManagement object targeting a tenant.

    Each object gets a NamespaceManagement condition on its status. When the
    feature is disabled the objects are marked as such and nothing is permitted.

    Returns:
        Decisions for all targeting objects, in listing order
    """
    enabled = config.namespace_management_enabled()
    decisions = []
    for nm in store.list_namespace_managements():
        if not _targets_tenant(nm, tenant):
            continue
        nm_meta = nm.get("metadata", {})
        namespace = nm_meta.get("namespace", "")
        if enabled:
            decision = evaluate_namespace_management(tenant, namespace)
        else:
            decision = NamespaceDecision(
                namespace,
                False,
                REASON_NAMESPACE_MANAGEMENT_DISABLED,
                "Namespace management is disabled for this operator",
            )
        if not decision.allowed:
            logger.info(decision.message)
        decisions.append(decision)

        conditions = list(nm.get("status", {}).get("conditions", []))
        conditions = set_namespace_management_condition(
            conditions, decision.reason, decision.message, nm_meta.get("generation")
        )
        store.patch_namespace_management_status(namespace, nm_meta.get("name", ""), {"conditions": conditions})
    return decisions


def desired_cluster_namespaces(
    store: ResourceStore,
    tenant: dict[str, Any],
    decisions: list[NamespaceDecision] | None = None,
) -> list[str]:
    """Namespaces the tenant's permissions secret must list.

    The tenant namespace, every namespace resource-managed by it and, with
    namespace management enabled, every permitted NamespaceManagement namespace.
    """
    tenant_ns = tenant["metadata"]["namespace"]
    namespaces = {tenant_ns}
    namespaces.update(managed_namespaces(store, tenant_ns, LABEL_MANAGED_BY))
    if decisions and config.namespace_management_enabled():
        namespaces.update(d.namespace for d in decisions if d.allowed)
    return sorted(ns for ns in namespaces if ns)


def strip_management_labels(store: ResourceStore, namespace: str, owner_ns: str | None = None) -> list[str]:
    """Remove management labels from a namespace.

    Args:
        store: Resource store
        namespace: Namespace to update
        owner_ns: Only remove labels pointing at this tenant namespace; all when None

    Returns:
        Keys of the removed labels
    """
    ns_obj = store.get_namespace(namespace)
    if ns_obj is None:
        return []
    labels = (ns_obj.metadata.labels or {}) if ns_obj.metadata else {}
    removed = [
        key for key in MANAGEMENT_LABELS
        if key in labels and (owner_ns is None or labels[key] == owner_ns)
    ]
    if removed:
        store.patch_namespace_labels(namespace, {key: None for key in removed})
        logger.info(f"Removed management labels {removed} from namespace {namespace}")
    return removed

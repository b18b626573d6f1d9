"""RBAC reconciler for namespaces managed by tenants.

Roles and role bindings created in managed namespaces carry both the
component label and the rbac-type label, so a change of one management
relationship purges exactly the objects that belong to it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from kubernetes import client

from . import metrics
from .constants import (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_APPLICATIONSET_CONTROLLER,
    COMPONENT_SERVER,
    CONTROLLER_COMPONENTS,
    CONTROLLER_NAME,
    LABEL_COMPONENT,
    LABEL_MANAGED_BY_OPERATOR,
    LABEL_RBAC_TYPE,
    LABEL_TENANT,
    RBAC_TYPE_APP_MANAGEMENT,
    RBAC_TYPE_APPSET_MANAGEMENT,
    RBAC_TYPE_RESOURCE_MANAGEMENT,
)
from .selector import Selector, equals, is_in
from .store import ResourceStore
from .utils.errors import MultiError, sanitize_exception

logger = logging.getLogger(__name__)

RBAC_API_GROUP = "rbac.authorization.k8s.io"

_READ_VERBS = ["get", "list", "watch"]

# Policy rules per RBAC type and component; components without rules get no role
POLICY_RULES: dict[str, dict[str, list[dict[str, list[str]]]]] = {
    RBAC_TYPE_RESOURCE_MANAGEMENT: {
        COMPONENT_APPLICATION_CONTROLLER: [
            {"api_groups": ["*"], "resources": ["*"], "verbs": ["*"]},
        ],
        COMPONENT_SERVER: [
            {"api_groups": ["*"], "resources": ["*"], "verbs": _READ_VERBS + ["delete", "patch"]},
        ],
    },
    RBAC_TYPE_APP_MANAGEMENT: {
        COMPONENT_SERVER: [
            {"api_groups": ["argoproj.io"], "resources": ["applications"], "verbs": ["*"]},
        ],
        COMPONENT_APPLICATION_CONTROLLER: [
            {"api_groups": ["argoproj.io"], "resources": ["applications"], "verbs": _READ_VERBS + ["update", "patch"]},
        ],
    },
    RBAC_TYPE_APPSET_MANAGEMENT: {
        COMPONENT_APPLICATIONSET_CONTROLLER: [
            {"api_groups": ["argoproj.io"], "resources": ["applications", "applicationsets"], "verbs": ["*"]},
            {"api_groups": [""], "resources": ["secrets", "configmaps"], "verbs": _READ_VERBS},
        ],
        COMPONENT_SERVER: [
            {"api_groups": ["argoproj.io"], "resources": ["applicationsets"], "verbs": _READ_VERBS},
        ],
    },
}


def deletion_selector(component: str, deletion_label_values: Iterable[str]) -> Selector:
    """Selector for one controller domain restricted to the given RBAC types."""
    return Selector([equals(LABEL_COMPONENT, component), is_in(LABEL_RBAC_TYPE, deletion_label_values)])


def delete_non_control_plane_resources(
    store: ResourceStore,
    namespace: str,
    deletion_label_values: Iterable[str],
) -> MultiError | None:
    """Delete the roles and role bindings of the given RBAC types in a namespace.

    Every controller domain is attempted even if an earlier one fails.

    Args:
        store: Resource store
        namespace: Namespace whose RBAC is purged
        deletion_label_values: RBAC types (rbac-type label values) to purge

    Returns:
        Aggregated error of all failed list/delete calls, or None
    """
    values = sorted(set(v for v in deletion_label_values if v))
    if not values:
        return None

    errors = MultiError()
    for component in CONTROLLER_COMPONENTS:
        selector = deletion_selector(component, values)

        try:
            roles = store.list_roles(namespace, selector)
        except Exception as e:
            logger.error(f"Failed to list {component} roles in {namespace}: {sanitize_exception(e)}")
            errors.append(e)
            roles = []
        for role in roles:
            errors.append(_delete(store.delete_role, "role", namespace, role.metadata.name))

        try:
            bindings = store.list_role_bindings(namespace, selector)
        except Exception as e:
            logger.error(f"Failed to list {component} role bindings in {namespace}: {sanitize_exception(e)}")
            errors.append(e)
            bindings = []
        for binding in bindings:
            errors.append(_delete(store.delete_role_binding, "rolebinding", namespace, binding.metadata.name))

    return errors.err_or_none()


def _delete(delete_fn: Any, resource: str, namespace: str, name: str) -> Exception | None:
    try:
        delete_fn(namespace, name)
    except Exception as e:
        metrics.rbac_deletions_total.labels(resource=resource, result="error").inc()
        logger.error(f"Failed to delete {resource} {namespace}/{name}: {sanitize_exception(e)}")
        return e
    metrics.rbac_deletions_total.labels(resource=resource, result="success").inc()
    logger.info(f"Deleted {resource} {namespace}/{name}")
    return None


def rbac_labels(tenant_name: str, component: str, rbac_type: str) -> dict[str, str]:
    return {
        LABEL_COMPONENT: component,
        LABEL_RBAC_TYPE: rbac_type,
        LABEL_TENANT: tenant_name,
        LABEL_MANAGED_BY_OPERATOR: CONTROLLER_NAME,
    }


def rbac_object_name(tenant_name: str, component: str, rbac_type: str) -> str:
    return f"{tenant_name}-{component}-{rbac_type}"


def service_account_name(tenant_name: str, component: str) -> str:
    return f"{tenant_name}-{component}"


def build_role(tenant: dict[str, Any], namespace: str, component: str, rbac_type: str) -> client.V1Role:
    """Build the role of a component for one RBAC type in a managed namespace."""
    tenant_name = tenant["metadata"]["name"]
    rules = [
        client.V1PolicyRule(api_groups=r["api_groups"], resources=r["resources"], verbs=r["verbs"])
        for r in POLICY_RULES[rbac_type][component]
    ]
    return client.V1Role(
        metadata=client.V1ObjectMeta(
            name=rbac_object_name(tenant_name, component, rbac_type),
            namespace=namespace,
            labels=rbac_labels(tenant_name, component, rbac_type),
        ),
        rules=rules,
    )


def build_role_binding(
    tenant: dict[str, Any], namespace: str, component: str, rbac_type: str
) -> client.V1RoleBinding:
    """Bind a component role to the component's service account in the tenant namespace."""
    tenant_name = tenant["metadata"]["name"]
    name = rbac_object_name(tenant_name, component, rbac_type)
    return client.V1RoleBinding(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=rbac_labels(tenant_name, component, rbac_type),
        ),
        role_ref=client.V1RoleRef(api_group=RBAC_API_GROUP, kind="Role", name=name),
        subjects=[
            client.RbacV1Subject(
                kind="ServiceAccount",
                name=service_account_name(tenant_name, component),
                namespace=tenant["metadata"]["namespace"],
            )
        ],
    )


def _is_terminating(namespace_obj: client.V1Namespace | None) -> bool:
    if namespace_obj is None:
        return True
    if namespace_obj.metadata is not None and namespace_obj.metadata.deletion_timestamp:
        return True
    return namespace_obj.status is not None and namespace_obj.status.phase == "Terminating"


def reconcile_managed_namespace_rbac(
    store: ResourceStore,
    tenant: dict[str, Any],
    namespace: str,
    rbac_type: str,
) -> list[str]:
    """Create missing roles and role bindings for a tenant in a managed namespace.

    Existing objects are left untouched. The tenant's own namespace and
    namespaces that are gone or terminating are skipped.

    Args:
        store: Resource store
        tenant: Tenant object
        namespace: Managed namespace
        rbac_type: RBAC type granted to the tenant in that namespace

    Returns:
        Names of the objects created, prefixed with their kind
    """
    if namespace == tenant["metadata"]["namespace"]:
        return []
    if _is_terminating(store.get_namespace(namespace)):
        logger.info(f"Skipping RBAC for namespace {namespace}, it is terminating or gone")
        return []

    tenant_name = tenant["metadata"]["name"]
    created = []
    for component in POLICY_RULES[rbac_type]:
        selector = Selector([
            equals(LABEL_TENANT, tenant_name),
            equals(LABEL_COMPONENT, component),
            equals(LABEL_RBAC_TYPE, rbac_type),
        ])
        role = build_role(tenant, namespace, component, rbac_type)
        existing_roles = {r.metadata.name for r in store.list_roles(namespace, selector)}
        if role.metadata.name not in existing_roles:
            store.create_role(role)
            created.append(f"role/{role.metadata.name}")

        binding = build_role_binding(tenant, namespace, component, rbac_type)
        existing_bindings = {b.metadata.name for b in store.list_role_bindings(namespace, selector)}
        if binding.metadata.name not in existing_bindings:
            store.create_role_binding(binding)
            created.append(f"rolebinding/{binding.metadata.name}")

    if created:
        logger.info(f"Created {rbac_type} RBAC for tenant {tenant_name} in {namespace}: {', '.join(created)}")
    return created

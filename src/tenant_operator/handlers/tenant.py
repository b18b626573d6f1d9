"""Handler for the Tenant custom resource."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    API_GROUP,
    API_VERSION,
    COND_DEPENDENCY_NOT_READY,
    KIND_TENANT,
    LABEL_APPS_MANAGED_BY,
    LABEL_APPSETS_MANAGED_BY,
    LABEL_MANAGED_BY,
    MANAGEMENT_LABELS,
    PLURAL_TENANTS,
    RBAC_TYPE_RESOURCE_MANAGEMENT,
)
from ..hooks import HookTable
from ..namespaces import (
    NamespaceDecision,
    desired_cluster_namespaces,
    ensure_valid_namespace_management_rules,
    managed_namespaces,
    reconcile_namespace_management,
    strip_management_labels,
)
from ..predicates import detect_tenant_transitions, rbac_type_for_label, tenant_update_relevant
from ..rbac import delete_non_control_plane_resources, reconcile_managed_namespace_rbac
from ..secrets_manager import CREATED, UPDATED, SecretLifecycleManager
from ..selector import Selector, equals
from ..store import ResourceStore
from ..tracing import add_span_attribute, tenant_attributes, trace_span
from ..utils.conditions import remove_condition, set_ready_condition, set_sso_condition
from ..utils.errors import MultiError, NotReadyError, ValidationError, sanitize_exception
from ..utils.events import emit_secret_created, emit_secret_updated, emit_sso_removed, emit_validate_succeeded
from . import shared
from .base import BaseHandler


def tenant_object(meta: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any]:
    """Build a plain tenant dict from kopf handler arguments."""
    return {
        "apiVersion": f"{API_GROUP}/{API_VERSION}",
        "kind": KIND_TENANT,
        "metadata": {
            "name": meta.get("name"),
            "namespace": meta.get("namespace"),
            "uid": meta.get("uid"),
            "generation": meta.get("generation"),
        },
        "spec": dict(spec or {}),
    }


class TenantHandler(BaseHandler):
    """Handler for Tenant resources."""

    def __init__(self) -> None:
        super().__init__(KIND_TENANT)

    def reconcile_rbac(
        self,
        store: ResourceStore,
        tenant: dict[str, Any],
        decisions: list[NamespaceDecision],
    ) -> MultiError | None:
        """Create missing RBAC in every namespace the tenant manages.

        Namespaces are handled independently; failures are collected.
        """
        tenant_ns = tenant["metadata"]["namespace"]
        errors = MultiError()
        targets: list[tuple[str, str]] = []
        for label_key in (LABEL_MANAGED_BY, LABEL_APPS_MANAGED_BY, LABEL_APPSETS_MANAGED_BY):
            rbac_type = rbac_type_for_label(label_key)
            targets.extend((ns, rbac_type) for ns in managed_namespaces(store, tenant_ns, label_key))
        targets.extend((d.namespace, RBAC_TYPE_RESOURCE_MANAGEMENT) for d in decisions if d.allowed)

        for namespace, rbac_type in sorted(set(targets)):
            try:
                reconcile_managed_namespace_rbac(store, tenant, namespace, rbac_type)
            except Exception as e:
                self.log_error(
                    tenant["metadata"],
                    f"Failed to reconcile {rbac_type} RBAC in namespace {namespace}",
                    error=e,
                    reason="RBACFailed",
                )
                errors.append(e)
        return errors.err_or_none()

    def release_unpermitted_namespaces(
        self,
        store: ResourceStore,
        manager: SecretLifecycleManager,
        tenant: dict[str, Any],
        previous: list[str],
        decisions: list[NamespaceDecision],
    ) -> tuple[list[str], MultiError | None]:
        """Release namespaces that NamespaceManagement no longer permits.

        Their resource-management RBAC is purged and they are dropped from the
        cluster secret. A namespace the tenant still claims through the
        managed-by label is left alone; one claimed by another tenant only
        leaves the secret.

        Args:
            store: Resource store
            manager: Secret manager owning the cluster secret
            tenant: Tenant being reconciled
            previous: Namespaces permitted by the last reconcile
            decisions: Current NamespaceManagement decisions

        Returns:
            Namespaces that could not be released, and the collected errors
        """
        tenant_ns = tenant["metadata"]["namespace"]
        permitted = {d.namespace for d in decisions if d.allowed}
        kept: list[str] = []
        errors = MultiError()
        for namespace in sorted(set(previous) - permitted - {tenant_ns}):
            ns_obj = store.get_namespace(namespace)
            labels = (ns_obj.metadata.labels or {}) if ns_obj is not None else {}
            owner = labels.get(LABEL_MANAGED_BY)
            if owner == tenant_ns:
                continue
            error: Exception | None = None
            if not owner:
                error = delete_non_control_plane_resources(store, namespace, [RBAC_TYPE_RESOURCE_MANAGEMENT])
            if error is None:
                try:
                    manager.remove_namespace_from_permissions_secret(tenant_ns, namespace)
                except Exception as e:
                    error = e
            if error is not None:
                self.log_error(
                    tenant["metadata"], f"Failed to release namespace {namespace}", error=error, reason="ReleaseFailed"
                )
                errors.append(error)
                kept.append(namespace)
            else:
                self.log_info(
                    tenant["metadata"],
                    f"Released namespace {namespace}, no longer permitted by NamespaceManagement",
                    reason="NamespaceReleased",
                )
        return kept, errors.err_or_none()

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        store: ResourceStore,
        manager: SecretLifecycleManager,
    ) -> None:
        """Reconcile a Tenant resource."""
        tenant = tenant_object(meta, spec)

        with trace_span("reconcile_tenant", kind=KIND_TENANT, attributes=tenant_attributes(tenant)):
            try:
                ensure_valid_namespace_management_rules(tenant["spec"])
            except ValidationError as e:
                self.handle_validation_error(meta, status, patch, str(e))
            emit_validate_succeeded(meta)

            with trace_span("namespace_management", kind=KIND_TENANT):
                decisions = reconcile_namespace_management(store, tenant)
                namespaces = desired_cluster_namespaces(store, tenant, decisions)
                add_span_attribute("tenant.managed_namespaces", len(namespaces))

            with trace_span("managed_namespace_rbac", kind=KIND_TENANT):
                kept, release_error = self.release_unpermitted_namespaces(
                    store, manager, tenant, status.get("permittedNamespaces") or [], decisions
                )
                errors = MultiError()
                errors.append(release_error)
                errors.append(self.reconcile_rbac(store, tenant, decisions))
                rbac_error = errors.err_or_none()
            patch.status["permittedNamespaces"] = sorted({d.namespace for d in decisions if d.allowed} | set(kept))

            with trace_span("secrets", kind=KIND_TENANT):
                try:
                    outcomes = manager.reconcile_all(tenant, namespaces)
                except NotReadyError as e:
                    self.handle_dependency_not_ready(meta, status, patch, e)
                    return

            for secret, outcome in outcomes.items():
                if outcome == CREATED:
                    emit_secret_created(meta, secret)
                elif outcome == UPDATED:
                    emit_secret_updated(meta, secret)

            if rbac_error is not None:
                self.handle_reconciliation_error(meta, status, patch, rbac_error)
                raise rbac_error

            conditions = remove_condition(list(status.get("conditions", [])), COND_DEPENDENCY_NOT_READY)
            conditions = set_ready_condition(conditions, True, "Tenant is ready", meta.get("generation"))
            self.log_info(meta, "Tenant reconciled", event="reconciled", reason="Ready", namespaces=namespaces)
            self.update_resource_status(
                patch,
                meta,
                True,
                {
                    "conditions": conditions,
                    "managedNamespaces": namespaces,
                    "secrets": outcomes,
                },
            )

    def run_pre_reconcile_hooks(
        self,
        old: dict[str, Any] | None,
        new: dict[str, Any] | None,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        hooks: HookTable,
    ) -> bool:
        """Run hooks for special spec transitions.

        Returns:
            True if the regular reconcile should run
        """
        old_spec = (old or {}).get("spec")
        new_spec = (new or {}).get("spec")
        transitions = detect_tenant_transitions(old_spec, new_spec)
        if not transitions:
            return True

        tenant = tenant_object(meta, new_spec or {})
        self.log_info(meta, f"Running pre-reconcile hooks for {sorted(transitions)}", reason="Transition")
        proceed = hooks.run(transitions, tenant)
        if not proceed:
            emit_sso_removed(meta)
            conditions = set_sso_condition(
                list(status.get("conditions", [])),
                False,
                "SSODisabled",
                "SSO configuration removed",
                meta.get("generation"),
            )
            patch.status.update({"conditions": conditions})
        return proceed

    def delete(self, meta: dict[str, Any], patch: kopf.Patch, store: ResourceStore) -> None:
        """Release every namespace managed by the tenant.

        Owned secrets are removed by the garbage collector through owner
        references. Removing the management labels lets the namespace handler
        purge the tenant's RBAC in those namespaces.
        """
        tenant_ns = meta.get("namespace", "")
        self.log_info(meta, "Tenant is being deleted", event="deletion", reason="Deletion")

        released: set[str] = set()
        errors = MultiError()
        for label_key in MANAGEMENT_LABELS:
            for ns in store.list_namespaces(Selector([equals(label_key, tenant_ns)])):
                name = ns.metadata.name
                if name in released:
                    continue
                try:
                    strip_management_labels(store, name, owner_ns=tenant_ns)
                    released.add(name)
                except Exception as e:
                    self.log_error(meta, f"Failed to release namespace {name}: {sanitize_exception(e)}", error=e)
                    errors.append(e)
        if errors:
            raise kopf.TemporaryError(f"Failed to release namespaces: {errors}", delay=30)
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = TenantHandler()


@kopf.on.create(API_GROUP, API_VERSION, PLURAL_TENANTS)
@kopf.on.resume(API_GROUP, API_VERSION, PLURAL_TENANTS)
def handle_tenant(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Tenant creation and operator restarts."""
    _handler.ensure_finalizer(meta, patch)
    store = shared.get_store()
    manager = shared.get_secret_manager()
    _handler.reconcile_with_metrics(
        meta, lambda: _handler.reconcile(spec, meta, status, patch, store, manager)
    )


def _update_relevant(old: Any, new: Any, **_: Any) -> bool:
    return tenant_update_relevant(old, new)


@kopf.on.update(API_GROUP, API_VERSION, PLURAL_TENANTS, when=_update_relevant)
def handle_tenant_update(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    old: dict[str, Any] | None = None,
    new: dict[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """Handle Tenant updates, running pre-reconcile hooks first."""
    _handler.ensure_finalizer(meta, patch)
    if not _handler.run_pre_reconcile_hooks(old, new, meta, status, patch, shared.get_hook_table()):
        return
    store = shared.get_store()
    manager = shared.get_secret_manager()
    _handler.reconcile_with_metrics(
        meta, lambda: _handler.reconcile(spec, meta, status, patch, store, manager)
    )


@kopf.on.delete(API_GROUP, API_VERSION, PLURAL_TENANTS)
def handle_tenant_delete(
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Tenant deletion."""
    _handler.delete(meta, patch, shared.get_store())

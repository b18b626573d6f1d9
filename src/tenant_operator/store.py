"""Resource store backed by the Kubernetes API.

The store is the only component that talks to the API server. Core kinds are
returned as kubernetes client models, custom resources as plain dicts. Reads of
a single missing object return None instead of raising.
"""

from __future__ import annotations

import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes import client, config

from . import metrics
from .constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    PLURAL_NAMESPACE_MANAGEMENTS,
    PLURAL_TENANTS,
)
from .selector import Selector

_F = TypeVar("_F", bound=Callable[..., Any])


def _instrumented(operation: str) -> Callable[[_F], _F]:
    """Record call count and latency of a store operation."""

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
                return result
            except Exception:
                metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
                raise
            finally:
                duration = time.time() - start_time
                metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

        return wrapper  # type: ignore

    return decorator


def _selector_arg(selector: Selector | str | None) -> str | None:
    if selector is None:
        return None
    text = str(selector)
    return text or None


def _not_found(e: client.exceptions.ApiException) -> bool:
    return e.status == 404


class ResourceStore:
    """CRUD access to namespaces, secrets, RBAC objects and tenant resources."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        rbac_api: client.RbacAuthorizationV1Api,
        custom_api: client.CustomObjectsApi,
    ):
        self.core_api = core_api
        self.rbac_api = rbac_api
        self.custom_api = custom_api

    @classmethod
    def from_cluster(cls) -> ResourceStore:
        """Create a store from in-cluster config, falling back to kubeconfig."""
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
        return cls(client.CoreV1Api(), client.RbacAuthorizationV1Api(), client.CustomObjectsApi())

    # Namespaces

    @_instrumented("get_namespace")
    def get_namespace(self, name: str) -> client.V1Namespace | None:
        try:
            return self.core_api.read_namespace(name=name)
        except client.exceptions.ApiException as e:
            if _not_found(e):
                return None
            raise

    @_instrumented("list_namespaces")
    def list_namespaces(self, selector: Selector | str | None = None) -> list[client.V1Namespace]:
        return list(self.core_api.list_namespace(label_selector=_selector_arg(selector)).items)

    @_instrumented("patch_namespace_labels")
    def patch_namespace_labels(self, name: str, labels: dict[str, str | None]) -> None:
        """Merge labels into a namespace; a None value removes the label."""
        self.core_api.patch_namespace(
            name=name,
            body={"metadata": {"labels": labels}},
            field_manager=FIELD_MANAGER,
        )

    # Tenants and NamespaceManagement objects

    @_instrumented("list_tenants")
    def list_tenants(self, namespace: str) -> list[dict[str, Any]]:
        result = self.custom_api.list_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_TENANTS,
        )
        return list(result.get("items", []))

    @_instrumented("delete_tenant")
    def delete_tenant(self, namespace: str, name: str) -> None:
        try:
            self.custom_api.delete_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURAL_TENANTS,
                name=name,
            )
        except client.exceptions.ApiException as e:
            if not _not_found(e):
                raise

    @_instrumented("annotate_tenant")
    def annotate_tenant(self, namespace: str, name: str, annotations: dict[str, str]) -> None:
        self.custom_api.patch_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_TENANTS,
            name=name,
            body={"metadata": {"annotations": annotations}},
        )

    @_instrumented("list_namespace_managements")
    def list_namespace_managements(self) -> list[dict[str, Any]]:
        result = self.custom_api.list_cluster_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL_NAMESPACE_MANAGEMENTS,
        )
        return list(result.get("items", []))

    @_instrumented("patch_namespace_management_status")
    def patch_namespace_management_status(self, namespace: str, name: str, status: dict[str, Any]) -> None:
        self.custom_api.patch_namespaced_custom_object_status(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_NAMESPACE_MANAGEMENTS,
            name=name,
            body={"status": status},
        )

    # Secrets

    @_instrumented("get_secret")
    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        try:
            return self.core_api.read_namespaced_secret(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if _not_found(e):
                return None
            raise

    @_instrumented("list_secrets")
    def list_secrets(self, namespace: str, selector: Selector | str | None = None) -> list[client.V1Secret]:
        return list(
            self.core_api.list_namespaced_secret(namespace=namespace, label_selector=_selector_arg(selector)).items
        )

    @_instrumented("create_secret")
    def create_secret(self, secret: client.V1Secret) -> client.V1Secret:
        return self.core_api.create_namespaced_secret(
            namespace=secret.metadata.namespace,
            body=secret,
            field_manager=FIELD_MANAGER,
        )

    @_instrumented("update_secret")
    def update_secret(self, secret: client.V1Secret) -> client.V1Secret:
        """Replace a secret; the resource version on the object guards against lost updates."""
        return self.core_api.replace_namespaced_secret(
            name=secret.metadata.name,
            namespace=secret.metadata.namespace,
            body=secret,
            field_manager=FIELD_MANAGER,
        )

    @_instrumented("delete_secret")
    def delete_secret(self, namespace: str, name: str) -> None:
        try:
            self.core_api.delete_namespaced_secret(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if not _not_found(e):
                raise

    # Roles and role bindings

    @_instrumented("list_roles")
    def list_roles(self, namespace: str, selector: Selector | str | None = None) -> list[client.V1Role]:
        return list(
            self.rbac_api.list_namespaced_role(namespace=namespace, label_selector=_selector_arg(selector)).items
        )

    @_instrumented("create_role")
    def create_role(self, role: client.V1Role) -> client.V1Role:
        return self.rbac_api.create_namespaced_role(
            namespace=role.metadata.namespace,
            body=role,
            field_manager=FIELD_MANAGER,
        )

    @_instrumented("delete_role")
    def delete_role(self, namespace: str, name: str) -> None:
        try:
            self.rbac_api.delete_namespaced_role(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if not _not_found(e):
                raise

    @_instrumented("list_role_bindings")
    def list_role_bindings(
        self, namespace: str, selector: Selector | str | None = None
    ) -> list[client.V1RoleBinding]:
        return list(
            self.rbac_api.list_namespaced_role_binding(
                namespace=namespace, label_selector=_selector_arg(selector)
            ).items
        )

    @_instrumented("create_role_binding")
    def create_role_binding(self, binding: client.V1RoleBinding) -> client.V1RoleBinding:
        return self.rbac_api.create_namespaced_role_binding(
            namespace=binding.metadata.namespace,
            body=binding,
            field_manager=FIELD_MANAGER,
        )

    @_instrumented("delete_role_binding")
    def delete_role_binding(self, namespace: str, name: str) -> None:
        try:
            self.rbac_api.delete_namespaced_role_binding(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if not _not_found(e):
                raise

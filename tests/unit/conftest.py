"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest
from kubernetes import client

from tenant_operator.selector import Selector
from tenant_operator.tracker import OwnershipTracker


def _conflict() -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=409, reason="Conflict")


def _not_found() -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=404, reason="Not Found")


class FakeStore:
    """In-memory implementation of the resource store interface."""

    def __init__(self) -> None:
        self.namespaces: dict[str, client.V1Namespace] = {}
        self.tenants: dict[tuple[str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.roles: dict[tuple[str, str], client.V1Role] = {}
        self.role_bindings: dict[tuple[str, str], client.V1RoleBinding] = {}
        self.namespace_managements: list[dict[str, Any]] = []
        self.nm_status: dict[tuple[str, str], dict[str, Any]] = {}
        self.annotations: dict[tuple[str, str], dict[str, str]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail: dict[str, Exception] = {}

    def _call(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.fail:
            raise self.fail[operation]

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    # Seeding helpers

    def add_namespace(self, name: str, labels: dict[str, str] | None = None, terminating: bool = False) -> None:
        self.namespaces[name] = client.V1Namespace(
            metadata=client.V1ObjectMeta(
                name=name,
                labels=dict(labels or {}),
                deletion_timestamp="2026-01-01T00:00:00Z" if terminating else None,
            ),
            status=client.V1NamespaceStatus(phase="Terminating" if terminating else "Active"),
        )

    def add_tenant(self, namespace: str, name: str, spec: dict[str, Any] | None = None) -> dict[str, Any]:
        tenant = {
            "apiVersion": "delivery.cloud37.dev/v1alpha1",
            "kind": "Tenant",
            "metadata": {"name": name, "namespace": namespace, "uid": f"uid-{namespace}-{name}"},
            "spec": dict(spec or {}),
        }
        self.tenants[(namespace, name)] = tenant
        return tenant

    # Namespaces

    def get_namespace(self, name: str) -> client.V1Namespace | None:
        self._call("get_namespace", name)
        ns = self.namespaces.get(name)
        return copy.deepcopy(ns) if ns is not None else None

    def list_namespaces(self, selector: Selector | None = None) -> list[client.V1Namespace]:
        self._call("list_namespaces", str(selector or ""))
        return [
            copy.deepcopy(ns)
            for ns in self.namespaces.values()
            if selector is None or selector.matches(ns.metadata.labels)
        ]

    def patch_namespace_labels(self, name: str, labels: dict[str, str | None]) -> None:
        self._call("patch_namespace_labels", name, labels)
        ns = self.namespaces[name]
        current = dict(ns.metadata.labels or {})
        for key, value in labels.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value
        ns.metadata.labels = current

    # Tenants

    def list_tenants(self, namespace: str) -> list[dict[str, Any]]:
        self._call("list_tenants", namespace)
        return [copy.deepcopy(t) for (ns, _), t in self.tenants.items() if ns == namespace]

    def delete_tenant(self, namespace: str, name: str) -> None:
        self._call("delete_tenant", namespace, name)
        self.tenants.pop((namespace, name), None)

    def annotate_tenant(self, namespace: str, name: str, annotations: dict[str, str]) -> None:
        self._call("annotate_tenant", namespace, name)
        if (namespace, name) not in self.tenants:
            raise _not_found()
        self.annotations.setdefault((namespace, name), {}).update(annotations)

    def list_namespace_managements(self) -> list[dict[str, Any]]:
        self._call("list_namespace_managements")
        return copy.deepcopy(self.namespace_managements)

    def patch_namespace_management_status(self, namespace: str, name: str, status: dict[str, Any]) -> None:
        self._call("patch_namespace_management_status", namespace, name)
        self.nm_status[(namespace, name)] = status

    # Secrets

    def get_secret(self, namespace: str, name: str) -> client.V1Secret | None:
        self._call("get_secret", namespace, name)
        secret = self.secrets.get((namespace, name))
        return copy.deepcopy(secret) if secret is not None else None

    def list_secrets(self, namespace: str, selector: Selector | None = None) -> list[client.V1Secret]:
        self._call("list_secrets", namespace, str(selector or ""))
        return [
            copy.deepcopy(s)
            for (ns, _), s in self.secrets.items()
            if ns == namespace and (selector is None or selector.matches(s.metadata.labels))
        ]

    def create_secret(self, secret: client.V1Secret) -> client.V1Secret:
        key = (secret.metadata.namespace, secret.metadata.name)
        self._call("create_secret", *key)
        if key in self.secrets:
            raise _conflict()
        stored = copy.deepcopy(secret)
        stored.metadata.resource_version = "1"
        self.secrets[key] = stored
        return copy.deepcopy(stored)

    def update_secret(self, secret: client.V1Secret) -> client.V1Secret:
        key = (secret.metadata.namespace, secret.metadata.name)
        self._call("update_secret", *key)
        current = self.secrets.get(key)
        if current is None:
            raise _not_found()
        if secret.metadata.resource_version != current.metadata.resource_version:
            raise _conflict()
        stored = copy.deepcopy(secret)
        stored.metadata.resource_version = str(int(current.metadata.resource_version) + 1)
        self.secrets[key] = stored
        return copy.deepcopy(stored)

    def delete_secret(self, namespace: str, name: str) -> None:
        self._call("delete_secret", namespace, name)
        self.secrets.pop((namespace, name), None)

    # Roles and role bindings

    def list_roles(self, namespace: str, selector: Selector | None = None) -> list[client.V1Role]:
        self._call("list_roles", namespace, str(selector or ""))
        return [
            copy.deepcopy(r)
            for (ns, _), r in self.roles.items()
            if ns == namespace and (selector is None or selector.matches(r.metadata.labels))
        ]

    def create_role(self, role: client.V1Role) -> client.V1Role:
        key = (role.metadata.namespace, role.metadata.name)
        self._call("create_role", *key)
        if key in self.roles:
            raise _conflict()
        self.roles[key] = copy.deepcopy(role)
        return role

    def delete_role(self, namespace: str, name: str) -> None:
        self._call("delete_role", namespace, name)
        self.roles.pop((namespace, name), None)

    def list_role_bindings(self, namespace: str, selector: Selector | None = None) -> list[client.V1RoleBinding]:
        self._call("list_role_bindings", namespace, str(selector or ""))
        return [
            copy.deepcopy(b)
            for (ns, _), b in self.role_bindings.items()
            if ns == namespace and (selector is None or selector.matches(b.metadata.labels))
        ]

    def create_role_binding(self, binding: client.V1RoleBinding) -> client.V1RoleBinding:
        key = (binding.metadata.namespace, binding.metadata.name)
        self._call("create_role_binding", *key)
        if key in self.role_bindings:
            raise _conflict()
        self.role_bindings[key] = copy.deepcopy(binding)
        return binding

    def delete_role_binding(self, namespace: str, name: str) -> None:
        self._call("delete_role_binding", namespace, name)
        self.role_bindings.pop((namespace, name), None)

    # RBAC seeding

    def add_rbac(self, namespace: str, name: str, labels: dict[str, str]) -> None:
        """Seed a role and a role binding with the same name and labels."""
        meta = client.V1ObjectMeta(name=name, namespace=namespace, labels=dict(labels))
        self.roles[(namespace, name)] = client.V1Role(metadata=copy.deepcopy(meta), rules=[])
        self.role_bindings[(namespace, name)] = client.V1RoleBinding(
            metadata=copy.deepcopy(meta),
            role_ref=client.V1RoleRef(api_group="rbac.authorization.k8s.io", kind="Role", name=name),
        )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def tracker() -> OwnershipTracker:
    t = OwnershipTracker()
    t.initialize()
    return t


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ENABLE_MANAGED_NAMESPACE", "CLUSTER_CONFIG_NAMESPACES"):
        monkeypatch.delenv(name, raising=False)
    # No real sleeping in conflict retries
    monkeypatch.setenv("CONFLICT_RETRY_BASE_DELAY", "0")
    monkeypatch.setenv("CONFLICT_RETRY_MAX_DELAY", "0")


@pytest.fixture
def kopf_events(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture kopf.event calls, which need a running operator context."""
    events: list[dict[str, Any]] = []

    def fake_event(obj: Any, *, type: str, reason: str, message: str = "") -> None:
        events.append({"obj": obj, "type": type, "reason": reason, "message": message})

    monkeypatch.setattr("tenant_operator.utils.events.kopf.event", fake_event)
    return events

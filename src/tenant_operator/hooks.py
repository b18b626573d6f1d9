"""Pre-reconcile hooks keyed by tenant spec transitions.

The tenant dispatcher detects special transitions (see
``predicates.detect_tenant_transitions``) and runs the registered one-shot
compensating actions before the regular reconcile. When a hook ran, the
regular reconcile is skipped for that event.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from . import metrics
from .constants import (
    COMPONENT_SSO,
    KIND_TENANT,
    LABEL_COMPONENT,
    LABEL_TENANT,
    TRANSITION_SSO_REMOVED,
)
from .selector import Selector, equals
from .store import ResourceStore
from .utils.errors import MultiError, sanitize_exception

logger = logging.getLogger(__name__)

Hook = Callable[[dict[str, Any]], None]


class HookTable:
    """Registry of hooks per transition type."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[Hook]] = {}

    def register(self, transition: str, hook: Hook) -> None:
        self._hooks.setdefault(transition, []).append(hook)

    def hooks_for(self, transition: str) -> list[Hook]:
        return list(self._hooks.get(transition, []))

    def run(self, transitions: set[str], tenant: dict[str, Any]) -> bool:
        """Run the hooks of every detected transition.

        Hook failures are logged and counted, never raised.

        Args:
            transitions: Transition names detected for this event
            tenant: The tenant object after the change

        Returns:
            True if the regular reconcile should proceed
        """
        ran = False
        for transition in sorted(transitions):
            for hook in self.hooks_for(transition):
                ran = True
                try:
                    hook(tenant)
                except Exception as e:
                    metrics.error_total.labels(kind=KIND_TENANT, error_type=type(e).__name__).inc()
                    meta = tenant.get("metadata", {})
                    logger.error(
                        f"Pre-reconcile hook for {transition} failed on tenant "
                        f"{meta.get('namespace')}/{meta.get('name')}: {sanitize_exception(e)}"
                    )
        return not ran


class SsoCleaner:
    """Deletes the SSO component resources of a tenant."""

    def __init__(self, store: ResourceStore):
        self.store = store

    def selector(self, tenant: dict[str, Any]) -> Selector:
        name = tenant.get("metadata", {}).get("name", "")
        return Selector([equals(LABEL_COMPONENT, COMPONENT_SSO), equals(LABEL_TENANT, name)])

    def delete_resources(self, tenant: dict[str, Any]) -> MultiError | None:
        """Delete SSO secrets, roles and role bindings in the tenant namespace.

        Returns:
            Aggregated deletion errors, or None if everything was deleted
        """
        namespace = tenant.get("metadata", {}).get("namespace", "")
        selector = self.selector(tenant)
        errors = MultiError()

        targets = (
            ("secret", self.store.list_secrets, self.store.delete_secret),
            ("role", self.store.list_roles, self.store.delete_role),
            ("rolebinding", self.store.list_role_bindings, self.store.delete_role_binding),
        )
        for resource, list_fn, delete_fn in targets:
            try:
                items = list_fn(namespace, selector)
            except Exception as e:
                errors.append(e)
                continue
            for item in items:
                try:
                    delete_fn(namespace, item.metadata.name)
                    logger.info(f"Deleted SSO {resource} {namespace}/{item.metadata.name}")
                except Exception as e:
                    errors.append(e)
        return errors.err_or_none()

    def __call__(self, tenant: dict[str, Any]) -> None:
        err = self.delete_resources(tenant)
        if err is not None:
            raise err


def build_hook_table(store: ResourceStore) -> HookTable:
    """Create the hook table with the operator's built-in hooks."""
    table = HookTable()
    table.register(TRANSITION_SSO_REMOVED, SsoCleaner(store))
    return table

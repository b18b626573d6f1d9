"""Shared collaborators for handlers."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from kubernetes import client

from ..constants import ANNOTATION_RECONCILE_REQUESTED
from ..hooks import HookTable, build_hook_table
from ..mapper import NamespaceMapper, ReconcileRequest
from ..secrets_manager import SecretLifecycleManager
from ..store import ResourceStore
from ..tracker import default_tracker
from ..utils.retry import retry_on_conflict

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_store: ResourceStore | None = None
_manager: SecretLifecycleManager | None = None
_mapper: NamespaceMapper | None = None
_hooks: HookTable | None = None


def get_store() -> ResourceStore:
    """Get the process-wide resource store, created on first use."""
    global _store
    with _lock:
        if _store is None:
            _store = ResourceStore.from_cluster()
        return _store


def get_secret_manager() -> SecretLifecycleManager:
    global _manager
    store = get_store()
    with _lock:
        if _manager is None:
            _manager = SecretLifecycleManager(store)
        return _manager


def get_namespace_mapper() -> NamespaceMapper:
    global _mapper
    manager = get_secret_manager()
    with _lock:
        if _mapper is None:
            _mapper = NamespaceMapper(
                manager.store,
                default_tracker,
                release_fn=manager.remove_namespace_from_permissions_secret,
            )
        return _mapper


def get_hook_table() -> HookTable:
    global _hooks
    store = get_store()
    with _lock:
        if _hooks is None:
            _hooks = build_hook_table(store)
        return _hooks


def reset() -> None:
    """Forget all collaborators; used by tests."""
    global _store, _manager, _mapper, _hooks
    with _lock:
        _store = _manager = _mapper = _hooks = None


def request_reconcile(store: ResourceStore, request: ReconcileRequest) -> bool:
    """Ask kopf to reconcile a tenant by touching an annotation.

    Returns:
        True if the tenant was annotated, False if it no longer exists
    """
    stamp = datetime.now(timezone.utc).isoformat()

    def annotate() -> None:
        store.annotate_tenant(request.namespace, request.name, {ANNOTATION_RECONCILE_REQUESTED: stamp})

    try:
        retry_on_conflict(annotate, operation="annotate_tenant")
    except client.exceptions.ApiException as e:
        if e.status == 404:
            logger.info(f"Tenant {request.namespace}/{request.name} is gone, dropping reconcile request")
            return False
        raise
    return True

"""Process-wide bookkeeping of namespaces with pending RBAC transitions.

Predicates record a transition when they see a management label change and the
namespace mapper drains it when it turns the event into reconcile requests.
Both phases run in different callbacks, so the tracker is shared state guarded
by its own lock. Nothing is persisted: a lost entry is re-derived from the next
label change or requeue.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ManagedNsOpts:
    """One pending RBAC transition of a namespace.

    Attributes:
        resource_deletion_label_value: RBAC type whose label changed
        prev_managing_ns: Namespace of the previous owning tenant ("" if none)
        new_managing_ns: Namespace of the new owning tenant ("" if released)
    """

    resource_deletion_label_value: str
    prev_managing_ns: str = ""
    new_managing_ns: str = ""


class OwnershipTracker:
    """Mutex-guarded map of namespace name to pending transitions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scheduled: dict[str, list[ManagedNsOpts]] | None = None

    def initialize(self) -> None:
        """Allocate the map if needed; a no-op when already allocated."""
        with self._lock:
            if self._scheduled is None:
                self._scheduled = {}

    def record(self, namespace: str, opts: ManagedNsOpts) -> None:
        """Append a transition for a namespace, skipping exact duplicates."""
        with self._lock:
            if self._scheduled is None:
                self._scheduled = {}
            entries = self._scheduled.setdefault(namespace, [])
            if opts not in entries:
                entries.append(opts)

    def pending(self, namespace: str) -> list[ManagedNsOpts]:
        """Return a copy of the transitions pending for a namespace."""
        with self._lock:
            if not self._scheduled:
                return []
            return list(self._scheduled.get(namespace, []))

    def drain(self, namespace: str) -> list[ManagedNsOpts]:
        """Remove and return the transitions pending for a namespace."""
        with self._lock:
            if not self._scheduled:
                return []
            return self._scheduled.pop(namespace, [])

    def namespaces(self) -> list[str]:
        with self._lock:
            return sorted(self._scheduled or {})

    def clear(self) -> None:
        with self._lock:
            if self._scheduled is not None:
                self._scheduled.clear()


default_tracker = OwnershipTracker()

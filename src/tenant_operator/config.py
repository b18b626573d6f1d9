"""Environment-driven configuration for the Tenant Operator.

Values are read from the environment on every call so a reconcile pass always
sees the current settings of the running pod.
"""

from __future__ import annotations

import logging
import os

TRUE_VALUES = {"1", "true", "yes", "on"}

ENV_ENABLE_MANAGED_NAMESPACE = "ENABLE_MANAGED_NAMESPACE"
ENV_CLUSTER_CONFIG_NAMESPACES = "CLUSTER_CONFIG_NAMESPACES"


def config_flag(name: str, default: bool = False) -> bool:
    """Read a boolean feature flag from the environment.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        True if the variable holds a truthy value
    """
    value = os.getenv(name, "").strip().lower()
    if not value:
        return default
    return value in TRUE_VALUES


def config_int(name: str, default: int) -> int:
    """Read an integer setting, falling back to the default on bad input."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def config_float(name: str, default: float) -> float:
    """Read a float setting, falling back to the default on bad input."""
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def namespace_management_enabled() -> bool:
    """Whether NamespaceManagement objects contribute managed namespaces."""
    return config_flag(ENV_ENABLE_MANAGED_NAMESPACE)


def cluster_config_namespaces() -> list[str]:
    """Namespaces whose tenants are granted cluster-wide scope."""
    raw = os.getenv(ENV_CLUSTER_CONFIG_NAMESPACES, "")
    return [ns.strip() for ns in raw.split(",") if ns.strip()]


def is_cluster_scoped(tenant_namespace: str) -> bool:
    """Check whether a tenant living in the given namespace is cluster-scoped.

    Args:
        tenant_namespace: Namespace of the tenant object

    Returns:
        True if the namespace is listed in CLUSTER_CONFIG_NAMESPACES or the list is "*"
    """
    allowed = cluster_config_namespaces()
    return "*" in allowed or tenant_namespace in allowed


def metrics_port() -> int:
    return config_int("METRICS_PORT", 8080)


def max_workers() -> int:
    return config_int("MAX_WORKERS", 4)


def conflict_retry_attempts() -> int:
    return config_int("CONFLICT_RETRY_ATTEMPTS", 5)


def conflict_retry_base_delay() -> float:
    return config_float("CONFLICT_RETRY_BASE_DELAY", 0.1)


def conflict_retry_max_delay() -> float:
    return config_float("CONFLICT_RETRY_MAX_DELAY", 2.0)


def log_level() -> int:
    """Logging level from LOG_LEVEL, INFO when unset or unknown."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO

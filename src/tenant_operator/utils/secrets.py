"""Utilities for building and reading Kubernetes secrets."""

from __future__ import annotations

import base64
from typing import Any

from kubernetes import client

from ..constants import API_GROUP_VERSION, KIND_TENANT, SECRET_TYPE_OPAQUE


def encode_data(data: dict[str, str | bytes]) -> dict[str, str]:
    """Base64 encode secret data values.

    Args:
        data: Plain values keyed by secret data key

    Returns:
        Dictionary suitable for V1Secret.data
    """
    encoded = {}
    for key, value in data.items():
        raw = value if isinstance(value, bytes) else value.encode("utf-8")
        encoded[key] = base64.b64encode(raw).decode("utf-8")
    return encoded


def decode_data(secret: client.V1Secret | None) -> dict[str, str]:
    """Decode all data values of a secret.

    Args:
        secret: Secret object as returned by the API (may be None)

    Returns:
        Dictionary of decoded values, empty when the secret is None or has no data
    """
    if secret is None:
        return {}
    result = {}
    for key, value in (secret.data or {}).items():
        if isinstance(value, bytes):
            result[key] = value.decode("utf-8")
        else:
            result[key] = base64.b64decode(value).decode("utf-8")
    return result


def owner_reference(tenant: dict[str, Any]) -> client.V1OwnerReference:
    """Build a controller owner reference pointing at a tenant."""
    meta = tenant.get("metadata", {})
    return client.V1OwnerReference(
        api_version=API_GROUP_VERSION,
        kind=KIND_TENANT,
        name=meta.get("name"),
        uid=meta.get("uid"),
        controller=True,
        block_owner_deletion=True,
    )


def build_secret(
    name: str,
    namespace: str,
    data: dict[str, str | bytes],
    labels: dict[str, str] | None = None,
    secret_type: str = SECRET_TYPE_OPAQUE,
) -> client.V1Secret:
    """Build a secret object with base64 encoded data.

    Args:
        name: Name of the secret
        namespace: Namespace for the secret
        data: Secret data (will be base64 encoded)
        labels: Labels for the secret
        secret_type: Kubernetes secret type

    Returns:
        Unsaved V1Secret
    """
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=dict(labels or {}),
        ),
        type=secret_type,
        data=encode_data(data),
    )


def set_data(secret: client.V1Secret, data: dict[str, str | bytes]) -> None:
    """Replace the data of a secret in place with encoded values."""
    secret.data = encode_data(data)

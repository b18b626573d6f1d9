"""Certificate and secret lifecycle for tenants.

Every tenant owns five generated secrets: the CA, the TLS leaf signed by that
CA, the admin credentials, the server secret that derives from both, and the
cluster-permissions secret listing the namespaces the tenant may manage.
Secrets are created when absent and only written again when a drift check
finds a concrete difference.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from kubernetes import client

from . import config, metrics
from .constants import (
    CONTROLLER_NAME,
    DEFAULT_CLUSTER_CONFIG,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_SERVER,
    KEY_ADMIN_PASSWORD,
    KEY_ADMIN_PASSWORD_MTIME,
    KEY_CA_CERT,
    KEY_CLUSTER_CONFIG,
    KEY_CLUSTER_NAME,
    KEY_CLUSTER_NAMESPACES,
    KEY_CLUSTER_SERVER,
    KEY_SERVER_SECRET_KEY,
    KEY_TLS_CERT,
    KEY_TLS_KEY,
    KIND_SECRET,
    LABEL_MANAGED_BY_OPERATOR,
    LABEL_SECRET_TYPE,
    LABEL_TENANT,
    SECRET_TYPE_CLUSTER,
    SECRET_TYPE_TLS,
    SUFFIX_CA_SECRET,
    SUFFIX_CLUSTER_PERMISSIONS_SECRET,
    SUFFIX_CREDENTIALS_SECRET,
    SUFFIX_SERVER_SECRET,
    SUFFIX_TLS_SECRET,
)
from .selector import Selector, equals
from .store import ResourceStore
from .tracing import trace_span
from .utils import certs, passwords
from .utils.errors import NotReadyError
from .utils.retry import retry_on_conflict
from .utils.secrets import build_secret, decode_data, owner_reference, set_data

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"

SECRET_CA = "ca"
SECRET_TLS = "tls"
SECRET_CREDENTIALS = "credentials"
SECRET_SERVER = "server"
SECRET_CLUSTER_PERMISSIONS = "cluster-permissions"

Compare = Callable[[client.V1Secret, client.V1Secret], bool]


def ca_secret_name(tenant_name: str) -> str:
    return f"{tenant_name}{SUFFIX_CA_SECRET}"


def tls_secret_name(tenant_name: str) -> str:
    return f"{tenant_name}{SUFFIX_TLS_SECRET}"


def credentials_secret_name(tenant_name: str) -> str:
    return f"{tenant_name}{SUFFIX_CREDENTIALS_SECRET}"


def server_secret_name(tenant_name: str) -> str:
    return f"{tenant_name}{SUFFIX_SERVER_SECRET}"


def cluster_permissions_secret_name(tenant_name: str) -> str:
    return f"{tenant_name}{SUFFIX_CLUSTER_PERMISSIONS_SECRET}"


def split_namespaces(value: str | None) -> list[str]:
    """Parse a comma separated namespace list, dropping blanks."""
    if not value:
        return []
    return [ns.strip() for ns in value.split(",") if ns.strip()]


def merge_namespaces(existing: list[str], desired: list[str]) -> list[str]:
    """Union of two namespace lists, trimmed, sorted and deduplicated."""
    return sorted({ns.strip() for ns in list(existing) + list(desired) if ns and ns.strip()})


def tls_dns_names(tenant: dict[str, Any]) -> list[str]:
    """Subject alternative names for a tenant's TLS leaf certificate."""
    meta = tenant["metadata"]
    name, namespace = meta["name"], meta["namespace"]
    names = [name, f"{name}-grpc", f"{name}.{namespace}.svc.cluster.local"]
    prometheus = tenant.get("spec", {}).get("prometheus") or {}
    if prometheus.get("enabled"):
        names.append(prometheus.get("host") or f"{name}-prometheus")
    return names


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class SecretLifecycleManager:
    """Creates and drift-checks the generated secrets of a tenant."""

    def __init__(self, store: ResourceStore, rsa_key_size: int = certs.DEFAULT_RSA_KEY_SIZE):
        self.store = store
        self.rsa_key_size = rsa_key_size

    def _labels(self, tenant: dict[str, Any], extra: dict[str, str] | None = None) -> dict[str, str]:
        labels = {
            LABEL_TENANT: tenant["metadata"]["name"],
            LABEL_MANAGED_BY_OPERATOR: CONTROLLER_NAME,
        }
        labels.update(extra or {})
        return labels

    def _record(self, kind: str, outcome: str) -> str:
        metrics.secret_operations_total.labels(secret=kind, operation=outcome).inc()
        if outcome == UPDATED:
            metrics.drift_detected_total.labels(kind=KIND_SECRET, resource_type=kind).inc()
        return outcome

    def reconcile_secret(
        self,
        tenant: dict[str, Any],
        desired: client.V1Secret,
        compare: Compare | None = None,
        ignore_drift: bool = False,
    ) -> str:
        """Create a secret when absent, otherwise update it only on drift.

        Args:
            tenant: Owning tenant; set as controller owner on creation
            desired: Freshly computed secret
            compare: Mutates the existing secret towards desired and returns
                True when it changed something
            ignore_drift: Never touch an existing secret

        Returns:
            One of "created", "updated" or "unchanged"
        """
        namespace = desired.metadata.namespace
        name = desired.metadata.name
        desired.metadata.owner_references = [owner_reference(tenant)]

        existing = self.store.get_secret(namespace, name)
        if existing is None:
            self.store.create_secret(desired)
            logger.info(f"Created secret {namespace}/{name}")
            return CREATED
        if ignore_drift or compare is None:
            return UNCHANGED

        first = [existing]

        def attempt() -> str:
            current = first.pop() if first else self.store.get_secret(namespace, name)
            if current is None:
                self.store.create_secret(desired)
                return CREATED
            if not compare(current, desired):
                return UNCHANGED
            self.store.update_secret(current)
            logger.info(f"Updated secret {namespace}/{name} after drift")
            return UPDATED

        return retry_on_conflict(attempt, operation="update_secret")

    # CA

    def reconcile_ca_secret(self, tenant: dict[str, Any]) -> str:
        """Create the self-signed CA secret if it does not exist.

        The CA is never rotated here; rotating it would invalidate the TLS leaf.
        """
        meta = tenant["metadata"]
        name = ca_secret_name(meta["name"])
        if self.store.get_secret(meta["namespace"], name) is not None:
            return self._record(SECRET_CA, UNCHANGED)

        with trace_span("generate_ca", kind=KIND_SECRET, attributes={"secret.name": name}):
            key = certs.new_private_key(self.rsa_key_size)
            cert = certs.new_self_signed_ca(key, meta["name"])
            cert_pem = certs.encode_certificate_pem(cert)
            desired = build_secret(
                name,
                meta["namespace"],
                {
                    KEY_TLS_CERT: cert_pem,
                    KEY_CA_CERT: cert_pem,
                    KEY_TLS_KEY: certs.encode_private_key_pem(key),
                },
                labels=self._labels(tenant),
                secret_type=SECRET_TYPE_TLS,
            )
        return self._record(SECRET_CA, self.reconcile_secret(tenant, desired, ignore_drift=True))

    def _load_ca(self, tenant: dict[str, Any]) -> tuple[Any, Any]:
        meta = tenant["metadata"]
        name = ca_secret_name(meta["name"])
        ca_secret = self.store.get_secret(meta["namespace"], name)
        if ca_secret is None:
            raise NotReadyError(f"secret/{name}", f"CA secret {name} not found")
        data = decode_data(ca_secret)
        return certs.parse_certificate_pem(data.get(KEY_TLS_CERT, "")), certs.parse_private_key_pem(
            data.get(KEY_TLS_KEY, "")
        )

    # TLS

    def _desired_tls_secret(self, tenant: dict[str, Any], ca_cert: Any, ca_key: Any) -> client.V1Secret:
        meta = tenant["metadata"]
        name = tls_secret_name(meta["name"])
        key = certs.new_private_key(self.rsa_key_size)
        cert = certs.new_signed_certificate(
            common_name=name,
            organization=meta["namespace"],
            dns_names=tls_dns_names(tenant),
            key=key,
            ca_cert=ca_cert,
            ca_key=ca_key,
        )
        return build_secret(
            name,
            meta["namespace"],
            {
                KEY_TLS_CERT: certs.encode_certificate_pem(cert),
                KEY_TLS_KEY: certs.encode_private_key_pem(key),
            },
            labels=self._labels(tenant),
            secret_type=SECRET_TYPE_TLS,
        )

    def tls_pair_valid(self, tls_data: dict[str, str], ca_cert: Any) -> bool:
        """Check that a TLS pair parses, matches its key and was signed by the CA."""
        try:
            cert = certs.parse_certificate_pem(tls_data.get(KEY_TLS_CERT, ""))
            key = certs.parse_private_key_pem(tls_data.get(KEY_TLS_KEY, ""))
        except ValueError:
            return False
        return certs.certificate_matches_key(cert, key) and certs.verify_signed_by(cert, ca_cert)

    def reconcile_tls_secret(self, tenant: dict[str, Any], verify_against_ca: bool = False) -> str:
        """Create the TLS leaf secret signed by the tenant CA.

        Args:
            tenant: Tenant object
            verify_against_ca: Drift-checked variant; re-issue the pair when the
                stored certificate no longer validates against the CA

        Raises:
            NotReadyError: If the CA secret does not exist yet
            ValueError: If the CA secret holds unparsable material
        """
        meta = tenant["metadata"]
        name = tls_secret_name(meta["name"])
        existing = self.store.get_secret(meta["namespace"], name)
        if existing is not None and not verify_against_ca:
            return self._record(SECRET_TLS, UNCHANGED)

        ca_cert, ca_key = self._load_ca(tenant)
        if existing is not None and self.tls_pair_valid(decode_data(existing), ca_cert):
            return self._record(SECRET_TLS, UNCHANGED)

        with trace_span("generate_tls", kind=KIND_SECRET, attributes={"secret.name": name}):
            desired = self._desired_tls_secret(tenant, ca_cert, ca_key)

        def compare(current: client.V1Secret, wanted: client.V1Secret) -> bool:
            if self.tls_pair_valid(decode_data(current), ca_cert):
                return False
            current.data = wanted.data
            return True

        return self._record(SECRET_TLS, self.reconcile_secret(tenant, desired, compare=compare))

    # Admin credentials

    def reconcile_credentials_secret(self, tenant: dict[str, Any]) -> str:
        """Create the admin credentials secret; never overwritten once present."""
        meta = tenant["metadata"]
        desired = build_secret(
            credentials_secret_name(meta["name"]),
            meta["namespace"],
            {KEY_ADMIN_PASSWORD: passwords.generate_admin_password()},
            labels=self._labels(tenant),
        )
        return self._record(SECRET_CREDENTIALS, self.reconcile_secret(tenant, desired, ignore_drift=True))

    # Server secret

    def reconcile_server_secret(self, tenant: dict[str, Any]) -> str:
        """Keep the server secret in line with the credentials and TLS secrets.

        Holds the bcrypt hash of the admin password, the password change time,
        the session signing key and a copy of the TLS pair.

        Raises:
            NotReadyError: If the credentials or TLS secret does not exist yet
        """
        meta = tenant["metadata"]
        namespace = meta["namespace"]

        cred_name = credentials_secret_name(meta["name"])
        credentials = self.store.get_secret(namespace, cred_name)
        if credentials is None:
            raise NotReadyError(f"secret/{cred_name}", f"credentials secret {cred_name} not found")
        tls_name = tls_secret_name(meta["name"])
        tls = self.store.get_secret(namespace, tls_name)
        if tls is None:
            raise NotReadyError(f"secret/{tls_name}", f"TLS secret {tls_name} not found")

        admin_password = decode_data(credentials).get(KEY_ADMIN_PASSWORD, "")
        tls_data = decode_data(tls)
        name = server_secret_name(meta["name"])

        existing = self.store.get_secret(namespace, name)
        if existing is None:
            desired = build_secret(
                name,
                namespace,
                {
                    KEY_ADMIN_PASSWORD: passwords.hash_password(admin_password),
                    KEY_ADMIN_PASSWORD_MTIME: _now(),
                    KEY_SERVER_SECRET_KEY: passwords.generate_session_key(),
                    KEY_TLS_CERT: tls_data.get(KEY_TLS_CERT, ""),
                    KEY_TLS_KEY: tls_data.get(KEY_TLS_KEY, ""),
                },
                labels=self._labels(tenant),
            )
        else:
            desired = build_secret(name, namespace, {}, labels=self._labels(tenant))

        def compare(current: client.V1Secret, _wanted: client.V1Secret) -> bool:
            data = decode_data(current)
            changed = False
            if not passwords.verify_password(admin_password, data.get(KEY_ADMIN_PASSWORD, "")):
                logger.info(f"Admin password of {namespace}/{name} changed, updating hash")
                data[KEY_ADMIN_PASSWORD] = passwords.hash_password(admin_password)
                data[KEY_ADMIN_PASSWORD_MTIME] = _now()
                changed = True
            for key in (KEY_TLS_CERT, KEY_TLS_KEY):
                if data.get(key, "") != tls_data.get(key, ""):
                    logger.info(f"TLS pair of {namespace}/{name} changed, updating {key}")
                    data[key] = tls_data.get(key, "")
                    changed = True
            if not data.get(KEY_SERVER_SECRET_KEY):
                data[KEY_SERVER_SECRET_KEY] = passwords.generate_session_key()
                changed = True
            if changed:
                set_data(current, data)
            return changed

        return self._record(SECRET_SERVER, self.reconcile_secret(tenant, desired, compare=compare))

    # Cluster permissions

    def _find_cluster_secret(self, namespace: str) -> client.V1Secret | None:
        selector = Selector([equals(LABEL_SECRET_TYPE, SECRET_TYPE_CLUSTER)])
        for secret in self.store.list_secrets(namespace, selector):
            if decode_data(secret).get(KEY_CLUSTER_SERVER) == DEFAULT_SERVER:
                return secret
        return None

    def _desired_cluster_secret(self, tenant: dict[str, Any], namespaces: list[str]) -> client.V1Secret:
        meta = tenant["metadata"]
        data = {
            KEY_CLUSTER_CONFIG: DEFAULT_CLUSTER_CONFIG,
            KEY_CLUSTER_NAME: DEFAULT_CLUSTER_NAME,
            KEY_CLUSTER_SERVER: DEFAULT_SERVER,
        }
        if not config.is_cluster_scoped(meta["namespace"]):
            data[KEY_CLUSTER_NAMESPACES] = ",".join(merge_namespaces([], namespaces))
        return build_secret(
            cluster_permissions_secret_name(meta["name"]),
            meta["namespace"],
            data,
            labels=self._labels(tenant, {LABEL_SECRET_TYPE: SECRET_TYPE_CLUSTER}),
        )

    def reconcile_cluster_permissions_secret(self, tenant: dict[str, Any], namespaces: list[str]) -> str:
        """Keep the cluster-permissions secret listing the tenant's namespaces.

        An existing default-server cluster secret is merged, never replaced:
        namespaces are only added, unless the tenant is cluster-scoped, in which
        case the namespace list is dropped.

        Args:
            tenant: Tenant object
            namespaces: Namespaces the tenant currently manages

        Returns:
            One of "created", "updated" or "unchanged"
        """
        meta = tenant["metadata"]
        namespace = meta["namespace"]
        cluster_scoped = config.is_cluster_scoped(namespace)
        desired_list = merge_namespaces([], namespaces)

        existing = self._find_cluster_secret(namespace)
        if existing is None:
            desired = self._desired_cluster_secret(tenant, desired_list)
            return self._record(SECRET_CLUSTER_PERMISSIONS, self.reconcile_secret(tenant, desired))

        name = existing.metadata.name
        first = [existing]

        def attempt() -> str:
            current = first.pop() if first else self.store.get_secret(namespace, name)
            if current is None:
                self.store.create_secret(self._desired_cluster_secret(tenant, desired_list))
                return CREATED
            data = decode_data(current)
            if cluster_scoped:
                if KEY_CLUSTER_NAMESPACES not in data:
                    return UNCHANGED
                del data[KEY_CLUSTER_NAMESPACES]
            else:
                merged = ",".join(merge_namespaces(split_namespaces(data.get(KEY_CLUSTER_NAMESPACES)), desired_list))
                if merged == data.get(KEY_CLUSTER_NAMESPACES):
                    return UNCHANGED
                data[KEY_CLUSTER_NAMESPACES] = merged
            set_data(current, data)
            self.store.update_secret(current)
            logger.info(f"Updated namespaces of cluster secret {namespace}/{name}")
            return UPDATED

        return self._record(SECRET_CLUSTER_PERMISSIONS, retry_on_conflict(attempt, operation="update_cluster_secret"))

    def remove_namespace_from_permissions_secret(self, owner_ns: str, released_ns: str) -> bool:
        """Drop a released namespace from the cluster secret of its previous owner.

        Args:
            owner_ns: Namespace of the previously owning tenant
            released_ns: Namespace that is no longer managed by it

        Returns:
            True if the secret was updated
        """
        existing = self._find_cluster_secret(owner_ns)
        if existing is None:
            return False
        name = existing.metadata.name
        first = [existing]

        def attempt() -> bool:
            current = first.pop() if first else self.store.get_secret(owner_ns, name)
            if current is None:
                return False
            data = decode_data(current)
            if KEY_CLUSTER_NAMESPACES not in data:
                return False
            remaining = [ns for ns in split_namespaces(data[KEY_CLUSTER_NAMESPACES]) if ns != released_ns]
            value = ",".join(merge_namespaces([], remaining))
            if value == data[KEY_CLUSTER_NAMESPACES]:
                return False
            data[KEY_CLUSTER_NAMESPACES] = value
            set_data(current, data)
            self.store.update_secret(current)
            logger.info(f"Removed namespace {released_ns} from cluster secret {owner_ns}/{name}")
            return True

        updated = retry_on_conflict(attempt, operation="release_namespace")
        if updated:
            self._record(SECRET_CLUSTER_PERMISSIONS, UPDATED)
        return updated

    def reconcile_all(self, tenant: dict[str, Any], namespaces: list[str]) -> dict[str, str]:
        """Reconcile all tenant secrets in dependency order.

        Raises:
            NotReadyError: At the first secret whose dependency is missing
        """
        outcomes = {
            SECRET_CA: self.reconcile_ca_secret(tenant),
            SECRET_TLS: self.reconcile_tls_secret(tenant, verify_against_ca=True),
            SECRET_CREDENTIALS: self.reconcile_credentials_secret(tenant),
            SECRET_CLUSTER_PERMISSIONS: self.reconcile_cluster_permissions_secret(tenant, namespaces),
        }
        outcomes[SECRET_SERVER] = self.reconcile_server_secret(tenant)
        return outcomes

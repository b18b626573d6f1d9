"""Constants for the Tenant Operator."""

# API Group
API_GROUP = "delivery.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_TENANT = "Tenant"
KIND_NAMESPACE = "Namespace"
KIND_SECRET = "Secret"

PLURAL_TENANTS = "tenants"
PLURAL_NAMESPACE_MANAGEMENTS = "namespacemanagements"

# Management labels placed on namespaces, value is the owning tenant's namespace
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_APPS_MANAGED_BY = f"{API_GROUP}/apps-managed-by"
LABEL_APPSETS_MANAGED_BY = f"{API_GROUP}/appsets-managed-by"
MANAGEMENT_LABELS = (LABEL_MANAGED_BY, LABEL_APPS_MANAGED_BY, LABEL_APPSETS_MANAGED_BY)

# RBAC types
LABEL_RBAC_TYPE = f"{API_GROUP}/rbac-type"
RBAC_TYPE_RESOURCE_MANAGEMENT = "resource-management"
RBAC_TYPE_APP_MANAGEMENT = "app-management"
RBAC_TYPE_APPSET_MANAGEMENT = "appset-management"

# Component label and controller domains
LABEL_COMPONENT = "app.kubernetes.io/component"
COMPONENT_APPLICATION_CONTROLLER = "application-controller"
COMPONENT_APPLICATIONSET_CONTROLLER = "applicationset-controller"
COMPONENT_SERVER = "server"
COMPONENT_SSO = "sso"
CONTROLLER_COMPONENTS = (
    COMPONENT_APPLICATION_CONTROLLER,
    COMPONENT_APPLICATIONSET_CONTROLLER,
    COMPONENT_SERVER,
)

# Other labels
LABEL_MANAGED_BY_OPERATOR = "app.kubernetes.io/managed-by"
LABEL_TENANT = f"{API_GROUP}/tenant"
LABEL_SECRET_TYPE = f"{API_GROUP}/secret-type"
SECRET_TYPE_CLUSTER = "cluster"

# Annotations
ANNOTATION_RECONCILE_REQUESTED = f"{API_GROUP}/reconcile-requested-at"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "tenant-operator"
CONTROLLER_NAME = "tenant-operator"

# Cluster secret
DEFAULT_SERVER = "https://kubernetes.default.svc"
DEFAULT_CLUSTER_NAME = "in-cluster"
DEFAULT_CLUSTER_CONFIG = '{"tlsClientConfig":{"insecure":false}}'

# Secret name suffixes
SUFFIX_CA_SECRET = "-ca"
SUFFIX_TLS_SECRET = "-tls"
SUFFIX_CREDENTIALS_SECRET = "-cluster"
SUFFIX_SERVER_SECRET = "-secret"
SUFFIX_CLUSTER_PERMISSIONS_SECRET = "-default-cluster-config"

# Secret data keys
KEY_TLS_CERT = "tls.crt"
KEY_TLS_KEY = "tls.key"
KEY_CA_CERT = "ca.crt"
KEY_ADMIN_PASSWORD = "admin.password"
KEY_ADMIN_PASSWORD_MTIME = "admin.passwordMtime"
KEY_SERVER_SECRET_KEY = "server.secretkey"
KEY_CLUSTER_CONFIG = "config"
KEY_CLUSTER_NAME = "name"
KEY_CLUSTER_SERVER = "server"
KEY_CLUSTER_NAMESPACES = "namespaces"

SECRET_TYPE_TLS = "kubernetes.io/tls"
SECRET_TYPE_OPAQUE = "Opaque"

# Condition Types
COND_READY = "Ready"
COND_DEPENDENCY_NOT_READY = "DependencyNotReady"
COND_NAMESPACE_MANAGEMENT = "NamespaceManagement"
COND_SSO = "SSO"

# Condition Reasons
REASON_NAMESPACE_PERMITTED = "NamespacePermitted"
REASON_NAMESPACE_DISALLOWED = "NamespaceDisallowed"
REASON_NAMESPACE_NOT_PERMITTED = "NamespaceNotPermitted"
REASON_NAMESPACE_MANAGEMENT_DISABLED = "NamespaceManagementDisabled"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_SECRET_UPDATED = "SecretUpdated"
EVENT_REASON_SSO_REMOVED = "SSORemoved"
EVENT_REASON_DEPENDENCY_NOT_READY = "DependencyNotReady"

# Transitions handled by the pre-reconcile hook table
TRANSITION_SSO_REMOVED = "sso-removed"

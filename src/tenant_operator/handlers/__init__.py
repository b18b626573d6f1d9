"""Handler modules for tenants and the namespaces they manage."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import namespace  # noqa: F401
from . import tenant  # noqa: F401

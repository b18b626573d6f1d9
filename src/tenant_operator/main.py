"""Main entry point for the Tenant Operator.

Run with ``kopf run -m tenant_operator.main --all-namespaces``.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import config, health
from . import logging as structured_logging
from . import handlers  # noqa: F401
from .tracing import initialize_tracing
from .tracker import default_tracker

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use annotation storage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = config.max_workers()

    # Backoff for watch stream errors
    settings.queueing.error_delays = [1, 2, 4, 8, 16, 32, 60]

    default_tracker.initialize()

    health.start_health_server(config.metrics_port())
    health.set_ready(True)
    logger.info(f"Tenant operator started, metrics on port {config.metrics_port()}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Mark the operator as not ready while shutting down."""
    health.set_ready(False)
    pending = default_tracker.namespaces()
    if pending:
        logger.warning(f"Shutting down with unprocessed ownership transitions for namespaces: {pending}")

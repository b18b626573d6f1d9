"""Liveness, readiness and metrics over a single HTTP port."""

from __future__ import annotations

import threading
from typing import Any, Callable

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

_ready = threading.Event()


def set_ready(ready: bool = True) -> None:
    """Flip the readiness flag reported on /readyz."""
    if ready:
        _ready.set()
    else:
        _ready.clear()


def is_ready() -> bool:
    return _ready.is_set()


def _json(body: str, status: int) -> Response:
    return Response(body, mimetype="application/json", status=status)


def _healthz() -> Response:
    return _json('{"status":"ok"}', 200)


def _readyz() -> Response:
    # 503 until the startup handler finished configuring the operator
    if is_ready():
        return _json('{"status":"ready"}', 200)
    return _json('{"status":"starting"}', 503)


PROBES: dict[str, Callable[[], Response]] = {
    "/healthz": _healthz,
    "/readyz": _readyz,
}


def create_combined_wsgi_app() -> Any:
    """Build the WSGI app answering probes and exporting Prometheus metrics.

    Returns:
        WSGI application; paths other than the probes go to prometheus_client
    """
    metrics_app = make_wsgi_app()

    def app(environ: dict[str, Any], start_response: Any) -> Any:
        probe = PROBES.get(Request(environ).path)
        if probe is None:
            return metrics_app(environ, start_response)
        return probe()(environ, start_response)

    return app


def start_health_server(port: int) -> threading.Thread:
    """Serve probes and metrics from a daemon thread.

    Args:
        port: Port to listen on

    Returns:
        The started server thread
    """
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="health-server", daemon=True)
    thread.start()
    return thread

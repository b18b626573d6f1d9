"""Utility functions for the Tenant Operator."""

from .conditions import (
    set_dependency_not_ready_condition,
    set_namespace_management_condition,
    set_ready_condition,
    update_condition,
)
from .errors import MultiError, NotReadyError, ValidationError
from .events import emit_event
from .retry import retry_on_conflict
from .secrets import build_secret, decode_data, encode_data

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_dependency_not_ready_condition",
    "set_namespace_management_condition",
    "emit_event",
    "MultiError",
    "NotReadyError",
    "ValidationError",
    "retry_on_conflict",
    "build_secret",
    "decode_data",
    "encode_data",
]

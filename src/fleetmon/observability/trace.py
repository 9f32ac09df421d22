"""Run correlation ids."""

from contextvars import ContextVar
from uuid import uuid4

_trace_id: ContextVar[str | None] = ContextVar("fleetmon_trace_id", default=None)


def set_trace_id(value: str | None = None) -> str:
    """Set the trace id for the current context, generating one if needed."""
    trace_id = value or uuid4().hex
    _trace_id.set(trace_id)
    return trace_id


def get_trace_id() -> str | None:
    return _trace_id.get()

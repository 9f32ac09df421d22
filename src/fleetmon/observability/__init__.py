"""Observability helpers for fleetmon."""

from fleetmon.observability.metrics import metrics
from fleetmon.observability.trace import get_trace_id, set_trace_id

__all__ = ["metrics", "get_trace_id", "set_trace_id"]

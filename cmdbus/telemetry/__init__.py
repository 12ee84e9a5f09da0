"""
OpenTelemetry Integration Module

Provides tracing and metrics collection for the command bus:
- tracer: Tracer setup and span creation around dispatch cycles
- metrics: Counters and latency histograms for calls and dispatches
"""

from .metrics import (
    setup_metrics,
    increment_counter,
    record_latency,
)
from .tracer import (
    setup_tracer,
    create_span,
)

# Alias for compatibility
get_tracer = setup_tracer

__all__ = [
    "setup_metrics",
    "increment_counter",
    "record_latency",
    "setup_tracer",
    "get_tracer",
    "create_span",
]

"""
Local Command Bus

Lets independently loaded modules send textual commands to a shared provider
without sharing memory:

1. Registry: a provider's bus handle hands each consumer one half of a
   connected Unix socket pair and keeps the other half as a listener
2. Client: a consumer writes one command line (optionally with a here-doc
   payload) and blocks until the status+answer reply arrives
3. Dispatch loop: one thread per provider polls its listeners and runs the
   provider callback for every ready endpoint, in registration order

Failures are fatal by default: see ``cmdbus.errors``.
"""

from .client import Consumer, call, run
from .config import BusConfig
from .errors import (
    BusError,
    BusStateError,
    CallTimeout,
    CapacityExceeded,
    FatalBusError,
    ProtocolViolation,
    ProviderNotFound,
    TransportFailure,
)
from .loop import DispatchLoop
from .registry import BusContext, BusHandle
from .result import CallResult, Status

__version__ = "0.1.0"

__all__ = [
    "BusConfig",
    "BusContext",
    "BusError",
    "BusHandle",
    "BusStateError",
    "CallResult",
    "CallTimeout",
    "CapacityExceeded",
    "Consumer",
    "DispatchLoop",
    "FatalBusError",
    "ProtocolViolation",
    "ProviderNotFound",
    "Status",
    "TransportFailure",
    "call",
    "run",
]

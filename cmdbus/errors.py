"""
Command bus error hierarchy

Every failure the bus can hit is "fatal" in the sense that the framing or the
transport can no longer be trusted. The client path raises these to the
caller; the dispatch loop hands them to the bus's fatal handler.
"""


class BusError(Exception):
    """Base class for all command bus errors"""


class FatalBusError(BusError):
    """An unrecoverable condition: the caller is expected to terminate"""


class ProtocolViolation(FatalBusError):
    """Oversized line, empty command or a malformed reply"""


class TransportFailure(FatalBusError):
    """Short write, read error, EOF or a multiplexing failure"""


class CapacityExceeded(FatalBusError):
    """Too many consumers registered against one provider"""


class CallTimeout(FatalBusError, TimeoutError):
    """The reply did not arrive within the configured read timeout"""


class ProviderNotFound(FatalBusError, LookupError):
    """No bus handle exists under the requested provider name"""


class BusStateError(FatalBusError):
    """Lifecycle ordering broken (no callback, double start, late registration)"""

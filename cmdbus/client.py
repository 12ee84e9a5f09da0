"""
Consumer-side call protocol

Each call writes one command line and blocks until the provider's reply has
been read in full or the read timeout expires.
"""

import logging
import socket
import time

from cmdbus.errors import FatalBusError, ProtocolViolation, TransportFailure
from cmdbus.protocol.cli_result import read_result
from cmdbus.result import CallResult
from cmdbus.telemetry.metrics import increment_counter, record_latency

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 2.0


def _write(sock: socket.socket, data: bytes) -> None:
    """Write to the endpoint, closing it if the write fails"""
    try:
        sock.sendall(data)
    except OSError as e:
        logger.error(f"Write error on CLI socket: {e}")
        sock.close()
        raise TransportFailure(f"Write error on CLI socket: {e}") from e


def call(sock: socket.socket, command: str, timeout: float = DEFAULT_READ_TIMEOUT) -> CallResult:
    """Send a command and wait for the reply

    The newline is added here. A command that already ends in a newline would
    leave an empty line in the stream, so it is refused.

    Args:
        sock: Consumer endpoint returned by registration
        command: Command text, may contain a here-doc payload
        timeout: Seconds to wait for the reply

    Returns:
        CallResult: Status and answer read from the provider

    Raises:
        ProtocolViolation: Empty or newline-terminated command, malformed reply
        TransportFailure: Write or read failure
        CallTimeout: No full reply within ``timeout``

    The endpoint is closed on any of these failures except the argument checks.
    """
    if not command:
        raise ProtocolViolation("Empty command")
    if command.endswith("\n"):
        raise ProtocolViolation("Command must not end with a newline")

    start_time = time.time()
    try:
        _write(sock, command.encode("utf-8") + b"\n")
        increment_counter("cmdbus.client.calls", 1)
        result = read_result(sock, timeout)
    except FatalBusError as e:
        # A late or partial reply would be read as the answer to the next call
        logger.error(f"Call failed, closing endpoint: {e}")
        sock.close()
        increment_counter("cmdbus.client.errors", 1, {"type": type(e).__name__})
        raise

    latency_ms = (time.time() - start_time) * 1000
    record_latency("cmdbus.client.latency", latency_ms, {"status": str(result.status)})
    logger.debug(f"Call returned {result.status}, latency: {latency_ms:.2f}ms")
    return result


def run(sock: socket.socket, fmt: str, *args, timeout: float = DEFAULT_READ_TIMEOUT) -> CallResult:
    """Format a command with ``%`` placeholders, then ``call`` it"""
    command = fmt % args if args else fmt
    return call(sock, command, timeout=timeout)


class Consumer:
    """Consumer endpoint bound to one provider"""

    def __init__(self, sock: socket.socket, provider: str, read_timeout: float = DEFAULT_READ_TIMEOUT):
        self.sock = sock
        self.provider = provider
        self.read_timeout = read_timeout

    def __repr__(self):
        return f"Consumer(provider={self.provider!r}, fd={self.sock.fileno()})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def closed(self) -> bool:
        return self.sock.fileno() == -1

    def fileno(self) -> int:
        return self.sock.fileno()

    def call(self, command: str) -> CallResult:
        if self.closed:
            raise TransportFailure(f"Endpoint for {self.provider} is closed")
        return call(self.sock, command, timeout=self.read_timeout)

    def run(self, fmt: str, *args) -> CallResult:
        if self.closed:
            raise TransportFailure(f"Endpoint for {self.provider} is closed")
        return run(self.sock, fmt, *args, timeout=self.read_timeout)

    def close(self) -> None:
        self.sock.close()

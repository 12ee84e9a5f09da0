"""
Provider dispatch loop

One thread per provider waits on every listener endpoint and serves ready
endpoints one after the other, in registration order. A callback that
blocks, or a consumer that sends half a line, stalls every other consumer
of the same provider until it completes.
"""

import logging
import os
import socket
import threading
import time
from typing import Optional

import zmq

from cmdbus.errors import FatalBusError, TransportFailure
from cmdbus.protocol.cli_result import MAX_ANSWER_LENGTH, MAX_STATUS, write_result
from cmdbus.protocol.line_reader import read_command
from cmdbus.result import CallResult, Status
from cmdbus.telemetry.metrics import increment_counter, record_latency
from cmdbus.telemetry.tracer import create_span

logger = logging.getLogger(__name__)


def abort_process(error: FatalBusError) -> None:
    """Default fatal handler: the framing cannot be resynchronized, so abort"""
    logger.critical(f"Command bus fatal error, aborting: {error}")
    logging.shutdown()
    os.abort()


class DispatchLoop:
    """Handle to a provider's running dispatch thread"""

    def __init__(self, handle):
        """Bind the loop to a bus handle

        Args:
            handle: BusHandle whose listeners, callback and private data are served
        """
        self.handle = handle
        self.fatal_error: Optional[FatalBusError] = None
        self.dispatched = 0
        self.running = False
        self._listeners = handle.listeners
        self._wakeup_recv, self._wakeup_send = socket.socketpair()
        self._thread: Optional[threading.Thread] = None

    def __repr__(self):
        return f"DispatchLoop(provider={self.handle.name!r}, alive={self.is_alive()})"

    def start(self):
        """Start the dispatch thread"""
        self.running = True
        self._thread = threading.Thread(
            target=self._run,
            name=f"cmdbus-{self.handle.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Dispatch loop for {self.handle.name} started with {len(self._listeners)} listeners")

    def stop(self, timeout: float = 1.0):
        """Ask the loop to exit and wait for it

        A dispatch cycle in progress is finished first.
        """
        if self.running:
            self.running = False
            self._wakeup_send.send(b"\0")
        self.join(timeout)
        if not self.is_alive():
            self._wakeup_recv.close()
            self._wakeup_send.close()
        logger.info(f"Dispatch loop for {self.handle.name} stopped")

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        """Loop main body"""
        poller = zmq.Poller()
        for listener in self._listeners:
            poller.register(listener, zmq.POLLIN)
        poller.register(self._wakeup_recv, zmq.POLLIN)
        wakeup_fd = self._wakeup_recv.fileno()
        # Native sockets come back from poll() as their fd, not the registered object
        listener_fds = [(listener.fileno(), listener) for listener in self._listeners]

        try:
            while self.running:
                try:
                    events = {
                        fd if isinstance(fd, int) else fd.fileno(): event
                        for fd, event in poller.poll()
                    }
                except zmq.ZMQError as e:
                    raise TransportFailure(f"Poll failed: {e}") from e
                if wakeup_fd in events:
                    break
                for fd, listener in listener_fds:
                    if events.get(fd, 0) & zmq.POLLIN:
                        self._dispatch(listener)
        except FatalBusError as e:
            self._fatal(e)
        except Exception as e:
            logger.exception(f"Dispatch loop for {self.handle.name} failed unexpectedly")
            error = FatalBusError(f"Dispatch failed: {type(e).__name__}: {e}")
            error.__cause__ = e
            self._fatal(error)
        finally:
            self.running = False

    def _fatal(self, error: FatalBusError):
        self.fatal_error = error
        self.running = False
        logger.critical(f"Dispatch loop for {self.handle.name} hit a fatal error: {error}")
        self.handle.fatal_handler(error)

    def _dispatch(self, listener: socket.socket):
        """Serve one request on a ready listener"""
        name = self.handle.name
        start_time = time.time()

        with create_span("cmdbus.dispatch", {"cmdbus.provider": name}):
            command = read_command(listener, self.handle.config)
            logger.debug(f"Dispatching to {name}: {command[:200]!r}")
            result = self._invoke(command)

        write_result(listener, result.status, result.answer)
        self.dispatched += 1

        latency_ms = (time.time() - start_time) * 1000
        increment_counter("cmdbus.loop.dispatched", 1, {"provider": name, "status": str(result.status)})
        record_latency("cmdbus.loop.latency", latency_ms, {"provider": name})

    def _invoke(self, command: str) -> CallResult:
        """Run the provider callback, turning its failures into a CANT reply"""
        handle = self.handle
        try:
            result = handle.callback(handle.private_data, command)
        except Exception as e:
            logger.exception(f"Callback of {handle.name} failed on {command[:200]!r}")
            increment_counter("cmdbus.loop.callback_errors", 1, {"provider": handle.name})
            return CallResult(Status.CANT, f"{type(e).__name__}: {e}")

        if not isinstance(result, CallResult):
            logger.error(f"Callback of {handle.name} returned {type(result).__name__}, not CallResult")
            increment_counter("cmdbus.loop.callback_errors", 1, {"provider": handle.name})
            return CallResult(Status.CANT, f"Invalid callback result: {type(result).__name__}")

        problem = _check_result(result)
        if problem:
            logger.error(f"Callback of {handle.name} returned an unsendable result: {problem}")
            increment_counter("cmdbus.loop.callback_errors", 1, {"provider": handle.name})
            return CallResult(Status.CANT, f"Invalid callback result: {problem}")
        return result


def _check_result(result: CallResult) -> Optional[str]:
    """Return why the reply codec would refuse this result, or None"""
    status, answer = result.status, result.answer
    if not isinstance(status, int) or isinstance(status, bool) or not 0 <= status <= MAX_STATUS:
        return f"status {status!r} is not an integer in 0..{MAX_STATUS}"
    if answer is not None and not isinstance(answer, str):
        return f"answer is {type(answer).__name__}, not str"
    if answer is not None:
        try:
            size = len(answer.encode("utf-8"))
        except UnicodeEncodeError as e:
            return f"answer is not encodable as UTF-8: {e}"
        if size > MAX_ANSWER_LENGTH:
            return f"answer longer than {MAX_ANSWER_LENGTH} bytes"
    return None

"""
Tests for the consumer-side call protocol
"""
import socket
import threading

import pytest

from cmdbus.client import Consumer, call, run
from cmdbus.errors import CallTimeout, ProtocolViolation, TransportFailure
from cmdbus.protocol.cli_result import write_result


@pytest.fixture
def pair():
    listener, endpoint = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    yield listener, endpoint
    listener.close()
    endpoint.close()


def serve_once(listener, status, answer, received):
    """Answer one request on the listener from a background thread"""
    def serve():
        data = b""
        while not data.endswith(b"\n"):
            data += listener.recv(1024)
        received.append(data)
        write_result(listener, status, answer)

    thread = threading.Thread(target=serve)
    thread.start()
    return thread


class TestCall:
    """Test the synchronous call"""

    def test_appends_single_newline(self, pair):
        listener, endpoint = pair
        received = []
        thread = serve_once(listener, 200, "pong", received)
        result = call(endpoint, "ping", timeout=1.0)
        thread.join()
        assert received == [b"ping\n"]
        assert result.status == 200
        assert result.answer == "pong"

    def test_run_formats_command(self, pair):
        listener, endpoint = pair
        received = []
        thread = serve_once(listener, 200, "", received)
        run(endpoint, "param.set %s %d", "thread_pools", 4, timeout=1.0)
        thread.join()
        assert received == [b"param.set thread_pools 4\n"]

    def test_run_without_arguments_keeps_percent(self, pair):
        listener, endpoint = pair
        received = []
        thread = serve_once(listener, 200, "", received)
        run(endpoint, "echo 100%", timeout=1.0)
        thread.join()
        assert received == [b"echo 100%\n"]

    def test_empty_command(self, pair):
        _, endpoint = pair
        with pytest.raises(ProtocolViolation):
            call(endpoint, "")

    def test_newline_terminated_command(self, pair):
        _, endpoint = pair
        with pytest.raises(ProtocolViolation):
            call(endpoint, "param.set foo bar\n")

    def test_timeout(self, pair):
        """Test a provider that never answers"""
        _, endpoint = pair
        with pytest.raises(CallTimeout):
            call(endpoint, "ping", timeout=0.1)
        assert endpoint.fileno() == -1

    def test_late_reply_is_not_read_by_next_call(self, pair):
        """Test a reply arriving after the timeout cannot answer another call"""
        _, endpoint = pair
        with pytest.raises(CallTimeout):
            call(endpoint, "slow", timeout=0.1)
        with pytest.raises(TransportFailure):
            call(endpoint, "fast", timeout=0.1)

    def test_malformed_reply_closes_endpoint(self, pair):
        listener, endpoint = pair
        listener.sendall(b"garbage-header\n")
        with pytest.raises(ProtocolViolation):
            call(endpoint, "ping", timeout=1.0)
        assert endpoint.fileno() == -1

    def test_timeout_is_a_timeout_error(self):
        assert issubclass(CallTimeout, TimeoutError)

    def test_write_failure_closes_endpoint(self, pair):
        listener, endpoint = pair
        listener.close()
        with pytest.raises(TransportFailure):
            call(endpoint, "ping", timeout=0.1)
        assert endpoint.fileno() == -1


class TestConsumer:
    """Test the consumer endpoint wrapper"""

    def test_call(self, pair):
        listener, endpoint = pair
        received = []
        consumer = Consumer(endpoint, provider="vadmin", read_timeout=1.0)
        thread = serve_once(listener, 200, "ok", received)
        assert consumer.call("status").answer == "ok"
        thread.join()

    def test_closed(self, pair):
        _, endpoint = pair
        consumer = Consumer(endpoint, provider="vadmin")
        assert not consumer.closed
        consumer.close()
        assert consumer.closed
        with pytest.raises(TransportFailure):
            consumer.call("ping")
        with pytest.raises(TransportFailure):
            consumer.run("ping %s", "x")

    def test_context_manager(self, pair):
        _, endpoint = pair
        with Consumer(endpoint, provider="vadmin") as consumer:
            assert consumer.fileno() == endpoint.fileno()
        assert consumer.closed

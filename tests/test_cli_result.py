"""
Tests for the status+answer reply framing
"""
import socket
import threading

import pytest

from cmdbus.errors import CallTimeout, ProtocolViolation, TransportFailure
from cmdbus.protocol.cli_result import (
    HEADER_LENGTH,
    encode_result,
    parse_header,
    read_result,
    write_result,
)
from cmdbus.result import CallResult, Status


@pytest.fixture
def pair():
    left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    yield left, right
    left.close()
    right.close()


class TestEncode:
    """Test reply encoding"""

    def test_header_layout(self):
        """Test status and length are left-justified in a 13 byte header"""
        data = encode_result(200, "ok")
        assert data == b"200 2       \nok\n"
        assert len(data[:HEADER_LENGTH]) == HEADER_LENGTH

    def test_none_answer_is_empty(self):
        assert encode_result(Status.CLOSE, None) == b"500 0       \n\n"

    def test_length_counts_bytes(self):
        """Test multi-byte characters are counted as bytes"""
        data = encode_result(200, "é")
        assert parse_header(data[:HEADER_LENGTH]) == (200, 2)

    @pytest.mark.parametrize("status", [-1, 1000])
    def test_status_out_of_range(self, status):
        with pytest.raises(ValueError):
            encode_result(status, "x")


class TestParseHeader:
    """Test reply header parsing"""

    def test_valid(self):
        assert parse_header(b"101 12      \n") == (101, 12)

    @pytest.mark.parametrize("header", [
        b"200 2\n",
        b"abc 2       \n",
        b"200 2        ",
        b"200 2 3     \n",
    ])
    def test_malformed(self, header):
        with pytest.raises(ProtocolViolation):
            parse_header(header)


class TestReadResult:
    """Test reading replies from a socket"""

    def test_write_then_read(self, pair):
        provider, consumer = pair
        write_result(provider, 300, "multi\nline answer")
        result = read_result(consumer, timeout=1.0)
        assert result == CallResult(300, "multi\nline answer")

    def test_reply_split_across_writes(self, pair):
        """Test a reply delivered in pieces is reassembled"""
        provider, consumer = pair
        data = encode_result(200, "x" * 5000)

        def send_slowly():
            for i in range(0, len(data), 700):
                provider.sendall(data[i:i + 700])

        writer = threading.Thread(target=send_slowly)
        writer.start()
        result = read_result(consumer, timeout=2.0)
        writer.join()
        assert result.status == 200
        assert result.answer == "x" * 5000

    def test_timeout_restores_blocking_mode(self, pair):
        _, consumer = pair
        with pytest.raises(CallTimeout):
            read_result(consumer, timeout=0.1)
        assert consumer.gettimeout() is None

    def test_partial_header_times_out(self, pair):
        provider, consumer = pair
        provider.sendall(b"200 ")
        with pytest.raises(CallTimeout):
            read_result(consumer, timeout=0.1)

    def test_eof(self, pair):
        provider, consumer = pair
        provider.sendall(b"200 5       \nab")
        provider.close()
        with pytest.raises(TransportFailure):
            read_result(consumer, timeout=1.0)

    def test_body_without_newline(self, pair):
        provider, consumer = pair
        provider.sendall(b"200 2       \nokX")
        with pytest.raises(ProtocolViolation):
            read_result(consumer, timeout=1.0)

    def test_write_to_closed_peer(self, pair):
        provider, consumer = pair
        consumer.close()
        with pytest.raises(TransportFailure):
            write_result(provider, 200, "ok")

"""
CLI result framing

A reply is a 13 byte header, ``"%-3d %-8d\\n"`` carrying the status code and
the byte length of the answer, followed by the answer and one newline.
"""

import logging
import socket
import time
from typing import Optional

from cmdbus.errors import CallTimeout, ProtocolViolation, TransportFailure
from cmdbus.result import CallResult

logger = logging.getLogger(__name__)

HEADER_LENGTH = 13
MAX_STATUS = 999
MAX_ANSWER_LENGTH = 99_999_999


def encode_result(status: int, answer: Optional[str]) -> bytes:
    """Frame one reply

    Args:
        status: Status code, three digits at most
        answer: Answer text, None is sent as an empty answer

    Returns:
        bytes: Header, answer and trailing newline
    """
    if not 0 <= int(status) <= MAX_STATUS:
        raise ValueError(f"status out of range: {status}")
    body = (answer or "").encode("utf-8")
    if len(body) > MAX_ANSWER_LENGTH:
        raise ValueError(f"answer too long: {len(body)} bytes")
    header = f"{int(status):<3d} {len(body):<8d}\n".encode("ascii")
    return header + body + b"\n"


def write_result(sock: socket.socket, status: int, answer: Optional[str]) -> None:
    """Write one reply on the provider side of an endpoint

    Raises:
        TransportFailure: The peer is gone or the write failed
    """
    data = encode_result(status, answer)
    try:
        sock.sendall(data)
    except OSError as e:
        raise TransportFailure(f"Write error on CLI socket: {e}") from e


def _recv_exact(sock: socket.socket, size: int, deadline: float) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        timeout = deadline - time.monotonic()
        if timeout <= 0:
            raise CallTimeout("CLI communication error (timeout)")
        sock.settimeout(timeout)
        try:
            chunk = sock.recv(remaining)
        except socket.timeout as e:
            raise CallTimeout("CLI communication error (timeout)") from e
        except OSError as e:
            raise TransportFailure(f"Read error on CLI socket: {e}") from e
        if not chunk:
            raise TransportFailure("CLI communication error (EOF)")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def parse_header(header: bytes):
    """Split a reply header into (status, length)

    Raises:
        ProtocolViolation: The header is not ``status length\\n``
    """
    if len(header) != HEADER_LENGTH or not header.endswith(b"\n"):
        raise ProtocolViolation(f"CLI communication error (hdr): {header!r}")
    fields = header.decode("ascii", errors="replace").split()
    if len(fields) != 2 or not all(field.isdigit() for field in fields):
        raise ProtocolViolation(f"CLI communication error (hdr): {header!r}")
    return int(fields[0]), int(fields[1])


def read_result(sock: socket.socket, timeout: float) -> CallResult:
    """Read one reply on the consumer side of an endpoint

    Args:
        sock: Consumer endpoint
        timeout: Seconds allowed for the whole reply

    Returns:
        CallResult: Status and a freshly decoded answer

    Raises:
        CallTimeout: The deadline expired
        TransportFailure: EOF or read error
        ProtocolViolation: Malformed header or body
    """
    deadline = time.monotonic() + timeout
    previous_timeout = sock.gettimeout()
    try:
        status, length = parse_header(_recv_exact(sock, HEADER_LENGTH, deadline))
        body = _recv_exact(sock, length + 1, deadline)
    finally:
        sock.settimeout(previous_timeout)

    if not body.endswith(b"\n"):
        raise ProtocolViolation("CLI communication error (body not newline terminated)")
    try:
        answer = body[:-1].decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolViolation(f"CLI communication error (body): {e}") from e
    logger.debug(f"Read reply: status={status}, length={length}")
    return CallResult(status, answer)

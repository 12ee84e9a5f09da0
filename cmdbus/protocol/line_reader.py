"""
Request line reader and here-doc assembler

Requests are newline-terminated lines. A first line containing the here-doc
marker (``"<< "`` by default) opens a multi-line payload closed by a line
equal to the text that followed the marker.
"""

import logging
import socket

from cmdbus.config import BusConfig
from cmdbus.errors import ProtocolViolation, TransportFailure

logger = logging.getLogger(__name__)


def read_line(sock: socket.socket, max_length: int) -> bytes:
    """Read one newline-terminated line, one byte at a time

    Bytes past the newline stay in the stream for the next request.

    Args:
        sock: Listener endpoint
        max_length: Upper bound on the line, newline included

    Returns:
        bytes: The line without its newline

    Raises:
        ProtocolViolation: No newline within max_length bytes
        TransportFailure: EOF or read error
    """
    line = bytearray()
    while len(line) < max_length:
        try:
            c = sock.recv(1)
        except OSError as e:
            raise TransportFailure(f"Read error on listener: {e}") from e
        if not c:
            raise TransportFailure("Listener closed by peer")
        if c == b"\n":
            return bytes(line)
        line += c
    raise ProtocolViolation(f"Line exceeds {max_length} bytes without a newline")


def read_command(sock: socket.socket, config: BusConfig) -> str:
    """Read a command, including any here-doc payload

    Args:
        sock: Listener endpoint
        config: Bus configuration (line cap, marker, here-doc mode)

    Returns:
        str: Assembled command text, no newline at either edge

    Raises:
        ProtocolViolation: Oversized line, undecodable or empty command
        TransportFailure: EOF or read error
    """
    first = read_line(sock, config.max_line_length)
    marker = config.heredoc_marker.encode("utf-8")
    position = first.find(marker)

    if position < 0:
        buffer = bytearray(first)
    else:
        terminator = first[position + len(marker):]
        buffer = bytearray()
        if not config.heredoc_body_only:
            buffer += first + b"\n"
        while True:
            line = read_line(sock, config.max_line_length)
            if line == terminator:
                break
            buffer += line + b"\n"
        if config.heredoc_body_only:
            del buffer[-1:]
        else:
            buffer += terminator
        logger.debug(f"Assembled here-doc terminated by {terminator!r}, {len(buffer)} bytes")

    # Usually a stray newline sent by the consumer; nothing sensible can be dispatched.
    if not buffer:
        raise ProtocolViolation("Empty command")
    try:
        return buffer.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolViolation(f"Command is not valid UTF-8: {e}") from e

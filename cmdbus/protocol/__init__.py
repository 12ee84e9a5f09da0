"""
Wire Protocol Module

Line-oriented request framing and the status+answer reply framing:
- line_reader: newline-terminated request lines and here-doc assembly
- cli_result: fixed-width reply header followed by the answer payload
"""

from .cli_result import HEADER_LENGTH, read_result, write_result
from .line_reader import read_command, read_line

__all__ = [
    "HEADER_LENGTH",
    "read_command",
    "read_line",
    "read_result",
    "write_result",
]

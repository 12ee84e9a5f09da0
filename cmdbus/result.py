"""
Call result value object and CLI status codes
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class Status(IntEnum):
    """Reply status codes of the CLI-result protocol"""
    SYNTAX = 100
    UNKNOWN = 101
    UNIMPL = 102
    TOOFEW = 104
    TOOMANY = 105
    PARAM = 106
    AUTH = 107
    OK = 200
    TRUNCATED = 201
    CANT = 300
    COMMS = 400
    CLOSE = 500


@dataclass
class CallResult:
    """Status code plus answer payload exchanged per request/response cycle"""
    status: int
    answer: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def success(cls, answer: Optional[str] = None) -> "CallResult":
        return cls(Status.OK, answer)

    @classmethod
    def failure(cls, answer: Optional[str] = None, status: int = Status.CANT) -> "CallResult":
        return cls(status, answer)

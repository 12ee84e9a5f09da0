"""
Configuration settings for the command bus
"""
import os
from dataclasses import dataclass
from typing import Any, Dict


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BusConfig:
    """Tunables shared by the registry, the client and the dispatch loop"""
    max_listeners: int = 16
    max_line_length: int = 1024  # bytes per request line, newline included
    read_timeout: float = 2.0  # seconds a client waits for its reply
    heredoc_marker: str = "<< "
    heredoc_body_only: bool = True

    def __post_init__(self):
        if self.max_listeners <= 0:
            raise ValueError(f"max_listeners must be positive, got {self.max_listeners}")
        if self.max_line_length <= 1:
            raise ValueError(f"max_line_length must be greater than 1, got {self.max_line_length}")
        if self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be positive, got {self.read_timeout}")
        if not self.heredoc_marker:
            raise ValueError("heredoc_marker must not be empty")

    @classmethod
    def from_env(cls) -> "BusConfig":
        """Create config from environment variables"""
        defaults = cls()
        return cls(
            max_listeners=int(os.getenv("CMDBUS_MAX_LISTENERS", defaults.max_listeners)),
            max_line_length=int(os.getenv("CMDBUS_MAX_LINE_LENGTH", defaults.max_line_length)),
            read_timeout=float(os.getenv("CMDBUS_READ_TIMEOUT", defaults.read_timeout)),
            heredoc_body_only=_env_bool("CMDBUS_HEREDOC_BODY_ONLY", defaults.heredoc_body_only),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and diagnostics"""
        return {
            "max_listeners": self.max_listeners,
            "max_line_length": self.max_line_length,
            "read_timeout": self.read_timeout,
            "heredoc_marker": self.heredoc_marker,
            "heredoc_body_only": self.heredoc_body_only,
        }

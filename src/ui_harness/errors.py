"""Exception types raised by the harness.

Only configuration, authentication and verification failures are meant to stop
a flow. Convergence stalls are reported through ``ConvergenceResult`` and only
become ``ConvergenceStalled`` when the caller asks for it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError):
    """Raised when required configuration (e.g. credentials) is missing."""


class AuthenticationError(HarnessError):
    """Raised when the application rejects a login."""

    def __init__(self, message: str, identity: str = "") -> None:
        super().__init__(message)
        # always the masked form
        self.identity = identity


class VerificationError(HarnessError):
    """Raised when an out-of-band verification handshake cannot complete."""


class ConvergenceStalled(HarnessError):
    """Raised on request when a cleanup loop stopped making progress."""

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


@dataclass
class ToolError(HarnessError):
    """Raised when a browser operation fails."""

    name: str
    payload: Dict[str, Any]
    message: str

    def __str__(self) -> str:  # pragma: no cover - human readable helper
        return f"{self.name} failed ({self.message}) with payload={self.payload}"

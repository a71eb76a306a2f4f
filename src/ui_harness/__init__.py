"""ui-harness: resilient primitives for driving a web UI end to end."""

from ui_harness.errors import (
    AuthenticationError,
    ConfigurationError,
    ConvergenceStalled,
    HarnessError,
    ToolError,
    VerificationError,
)

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ConvergenceStalled",
    "HarnessError",
    "ToolError",
    "VerificationError",
]

__version__ = "1.0.0"

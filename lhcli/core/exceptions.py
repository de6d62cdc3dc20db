"""
Exception classes for lhcli.

Every error raised by the backends is one of these, so the command layer
only has to handle ``LonghornError``.
"""

from typing import Any, Dict, Optional


class LonghornError(Exception):
    """Base exception for all lhcli errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(LonghornError):
    """Raised when the configuration file or a context is unusable."""


class ValidationError(LonghornError):
    """Raised when user input fails local validation."""


class APIError(LonghornError):
    """Raised when the Longhorn manager or Kubernetes API rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        details = {"status_code": status_code} if status_code else {}
        super().__init__(message, details)
        self.status_code = status_code


class NotFoundError(APIError):
    """Raised when a Longhorn resource does not exist."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name} not found", status_code=404)
        self.kind = kind
        self.name = name


class UnsupportedOperationError(LonghornError):
    """Raised when the selected backend cannot perform an operation."""

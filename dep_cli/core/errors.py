"""
Error taxonomy for the DEP client.

Every failure in the request pipeline is raised as one of these. Nothing is
retried internally; callers decide what to do with each kind.
"""

from typing import Any


class DEPError(Exception):
    """Base error class for DEP client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message, "type": type(self).__name__}
        if self.details:
            result["details"] = self.details
        return result


class ConstructionError(DEPError):
    """A request could not be built (bad path or unserializable body)."""


class AuthError(DEPError):
    """The session bootstrap call failed."""


class TransportError(DEPError):
    """The API could not be reached, or the call ran past its deadline."""


class APIError(DEPError):
    """DEP returned a non-200 response. ``body`` holds the raw response text."""

    def __init__(self, message: str, status: int = 0, body: str = "", details: dict | None = None):
        super().__init__(message, details)
        self.status = status
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        result["body"] = self.body
        return result


class DecodeError(DEPError):
    """A 200 response body did not match the expected JSON shape."""


class ValidationError(DEPError):
    """Validation error for local input (not API errors)."""

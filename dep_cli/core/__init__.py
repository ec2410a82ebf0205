"""
Core layer - Request pipeline and types.

This layer provides:
- OAuth1 signing and session-token management
- Low-level HTTP client with request building and error mapping
- Typed dataclasses for DEP request and response bodies
"""

from dep_cli.core.client import APIClient, RequestEnvelope, Transport
from dep_cli.core.errors import (
    APIError,
    AuthError,
    ConstructionError,
    DecodeError,
    DEPError,
    TransportError,
    ValidationError,
)
from dep_cli.core.oauth import OAuth1Signer, OAuthCredentials
from dep_cli.core.session import Credentials, SessionManager
from dep_cli.core.types import (
    Account,
    Device,
    DeviceDetailsResponse,
    DeviceRequestOptions,
    DeviceResponse,
    Profile,
    ProfileResponse,
    cursor,
    limit,
)

__all__ = [
    "APIClient",
    "APIError",
    "Account",
    "AuthError",
    "ConstructionError",
    "Credentials",
    "DEPError",
    "DecodeError",
    "Device",
    "DeviceDetailsResponse",
    "DeviceRequestOptions",
    "DeviceResponse",
    "OAuth1Signer",
    "OAuthCredentials",
    "Profile",
    "ProfileResponse",
    "RequestEnvelope",
    "SessionManager",
    "Transport",
    "TransportError",
    "ValidationError",
    "cursor",
    "limit",
]

"""
DEP CLI - Three-layer client for the device enrollment (DEP) API.

Layers:
- core: Session management, OAuth1 signing, HTTP client and types
- sdk: High-level DEPClient with account/device/profile operations
- cli: Command-line interface
"""

from dep_cli.core.types import cursor, limit
from dep_cli.sdk import DEPClient

__version__ = "0.0.2"
__all__ = ["DEPClient", "cursor", "limit"]

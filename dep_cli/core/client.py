"""
Core HTTP client for the DEP API.

Builds requests, keeps the session token fresh, and maps responses into
decoded results or errors.
"""

import dataclasses
import json
import logging
import sys
import time
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TextIO, TypeVar

from dep_cli.core.errors import APIError, ConstructionError, DecodeError
from dep_cli.core.protocol import SESSION_HEADER, decode_json, protocol_headers, remaining, send
from dep_cli.core.session import Credentials, SessionManager

DEFAULT_TIMEOUT = 60

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class RequestEnvelope:
    """A fully resolved request, ready to execute."""

    method: str
    url: str
    body: bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def with_query(self, **params: Any) -> "RequestEnvelope":
        """Add query parameters to the URL, skipping None values."""
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            parts = urllib.parse.urlsplit(self.url)
            query = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
            query.extend(filtered.items())
            self.url = urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))
        return self

    def to_request(self) -> urllib.request.Request:
        """Convert to a urllib request."""
        return urllib.request.Request(self.url, data=self.body, headers=dict(self.headers), method=self.method)


class Transport(Protocol):
    """What the service facades need from a client: build and execute."""

    def build(self, method: str, path: str, body: Any = None) -> RequestEnvelope: ...

    def execute(
        self,
        envelope: RequestEnvelope,
        into: Callable[[Any], Any] | None = None,
        timeout: float | None = None,
    ) -> Any: ...


def _encode_body(body: Any) -> bytes:
    """Serialize a request body to JSON bytes."""
    if hasattr(body, "to_dict"):
        body = body.to_dict()
    elif dataclasses.is_dataclass(body) and not isinstance(body, type):
        body = dataclasses.asdict(body)
    try:
        return json.dumps(body, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ConstructionError(f"Could not encode request body: {e}") from e


def _resolve_url(base_url: str, path: str) -> str:
    """Resolve path against base_url, rejecting results without a usable host or port."""
    url = urllib.parse.urljoin(base_url, path)
    parts = urllib.parse.urlsplit(url)
    if not parts.scheme or not parts.hostname or parts.port == 0:
        raise ValueError("not an absolute URL")
    return url


class APIClient:
    """
    Low-level HTTP client for the DEP API.

    Handles:
    - Session bootstrap and renewal via the SessionManager
    - Request construction (URL resolution, JSON body, protocol headers)
    - Error handling and response decoding
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        debug_sink: TextIO | None = None,
        session: SessionManager | None = None,
    ):
        """
        Initialize the API client.

        Args:
            credentials: DEP credentials (defaults to DEP_* env vars)
            timeout: Default per-call deadline in seconds
            debug_sink: Stream that receives raw response bodies
            session: Session manager override (shares a token between clients)

        """
        self.credentials = credentials or Credentials.from_env()
        self._validate_base_url(self.credentials.base_url)
        self.timeout = timeout
        if debug_sink is None and self.credentials.debug_echo:
            debug_sink = sys.stderr
        self.debug_sink = debug_sink
        self.session = session or SessionManager(self.credentials, debug_sink=debug_sink)

    @property
    def base_url(self) -> str:
        return self.credentials.base_url

    @staticmethod
    def _validate_base_url(base_url: str) -> None:
        """Reject base URLs that are not absolute http(s) URLs."""
        try:
            parts = urllib.parse.urlsplit(base_url)
        except ValueError as e:
            raise ConstructionError(f"Invalid DEP server URL: {base_url}") from e
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConstructionError(f"Invalid DEP server URL: {base_url}")

    # =========================================================================
    # Request construction
    # =========================================================================

    def build(self, method: str, path: str, body: Any = None) -> RequestEnvelope:
        """
        Build a request against the configured server.

        Args:
            method: HTTP method (GET, POST, PUT)
            path: Path relative to the base URL (e.g. "server/devices")
            body: JSON-serializable body, dataclass, or object with to_dict()

        Returns:
            RequestEnvelope with protocol headers but no session header

        Raises:
            ConstructionError: If the path does not resolve or the body cannot be encoded

        """
        try:
            url = _resolve_url(self.base_url, path)
        except ValueError as e:
            raise ConstructionError(f"Invalid request path {path!r}: {e}") from e

        payload = _encode_body(body) if body is not None else None
        return RequestEnvelope(method=method.upper(), url=url, body=payload, headers=protocol_headers())

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(
        self,
        envelope: RequestEnvelope,
        into: Callable[[Any], T] | None = None,
        timeout: float | None = None,
    ) -> T | Any:
        """
        Send a request with a fresh session token and decode the response.

        Args:
            envelope: Request from build()
            into: Optional parser applied to the decoded JSON (e.g. Account.from_dict)
            timeout: Deadline in seconds for the whole call, session bootstrap included

        Returns:
            Parsed result if ``into`` is given, otherwise the decoded JSON

        Raises:
            AuthError: If a session could not be established (request not sent)
            TransportError: On network failure or an expired deadline
            APIError: On a non-200 response
            DecodeError: If the response body does not match the expected shape

        """
        request_timeout = timeout or self.timeout
        deadline = time.monotonic() + request_timeout

        token = self.session.ensure_valid_session(timeout=remaining(deadline))
        envelope.headers[SESSION_HEADER] = token

        logger.debug("%s %s", envelope.method, envelope.url)
        status, body = send(envelope.to_request(), deadline)

        if status != 200:
            text = body.decode("utf-8", errors="replace")
            logger.debug("%s %s returned HTTP %s", envelope.method, envelope.url, status)
            raise APIError(f"DEP API Error: {text}", status=status, body=text)

        remaining(deadline)
        data = decode_json(body, self.debug_sink)
        if into is None:
            return data
        try:
            return into(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(f"Unexpected response shape: {e!r}") from e


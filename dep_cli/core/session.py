"""
DEP credentials and session-token lifecycle.

DEP uses two layers of credentials: four long-lived OAuth1 secrets issued
with the server token, and a short-lived session token fetched from
``GET /session`` with an OAuth1-signed request. The session token goes on
every other call in the ``X-ADM-Auth-Session`` header.
"""

import logging
import os
import sys
import threading
import time
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TextIO

from dep_cli.core.errors import AuthError, DEPError, TransportError
from dep_cli.core.oauth import OAuth1Signer, OAuthCredentials
from dep_cli.core.protocol import DEFAULT_BASE_URL, SESSION_PATH, decode_json, protocol_headers, send

logger = logging.getLogger(__name__)

# DEP does not report a TTL for session tokens.
SESSION_LIFETIME = timedelta(minutes=3)

_TRUTHY = ("1", "true", "yes", "on")


def _utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credentials:
    """Static DEP configuration: the four OAuth1 secrets plus connection settings."""

    consumer_key: str = ""
    consumer_secret: str = ""
    access_token: str = ""
    access_secret: str = ""
    base_url: str = DEFAULT_BASE_URL
    debug_echo: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "Credentials":
        """
        Build credentials from DEP_* environment variables.

        Keyword arguments that are not None take precedence over the
        environment.
        """
        values = {
            "consumer_key": os.environ.get("DEP_CONSUMER_KEY", ""),
            "consumer_secret": os.environ.get("DEP_CONSUMER_SECRET", ""),
            "access_token": os.environ.get("DEP_ACCESS_TOKEN", ""),
            "access_secret": os.environ.get("DEP_ACCESS_SECRET", ""),
            "base_url": os.environ.get("DEP_SERVER_URL") or DEFAULT_BASE_URL,
            "debug_echo": os.environ.get("DEP_DEBUG", "").lower() in _TRUTHY,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def is_configured(self) -> bool:
        """Check that all four OAuth1 secrets are present."""
        return all((self.consumer_key, self.consumer_secret, self.access_token, self.access_secret))

    def signer(self) -> OAuth1Signer:
        """Signer keyed by the consumer secret, with the access pair as resource owner."""
        return OAuth1Signer(
            OAuthCredentials(self.consumer_key, self.consumer_secret),
            OAuthCredentials(self.access_token, self.access_secret),
        )

    def __repr__(self) -> str:
        return f"Credentials(consumer_key={self.consumer_key!r}, base_url={self.base_url!r})"


class SessionManager:
    """
    Owns the session token for one set of credentials.

    ``ensure_valid_session`` is the only way the token and its expiry change.
    It holds a lock across the freshness check and the bootstrap call, so
    concurrent callers on a stale session share a single bootstrap.
    """

    def __init__(
        self,
        credentials: Credentials,
        signer: OAuth1Signer | None = None,
        clock: Callable[[], datetime] = _utcnow,
        debug_sink: TextIO | None = None,
    ):
        self.credentials = credentials
        self._signer = signer or credentials.signer()
        self._clock = clock
        self._debug_sink = debug_sink
        if credentials.debug_echo and debug_sink is None:
            self._debug_sink = sys.stderr
        self._lock = threading.Lock()
        self._token = ""
        self._expiry = datetime.min.replace(tzinfo=timezone.utc)

    @property
    def session_token(self) -> str:
        """The current session token (may be empty or stale)."""
        return self._token

    @property
    def session_expiry(self) -> datetime:
        """When the current session token stops being reused."""
        return self._expiry

    def is_fresh(self) -> bool:
        """Check if the stored token can be used without a bootstrap."""
        return bool(self._token) and self._clock() < self._expiry

    def ensure_valid_session(self, timeout: float = 60) -> str:
        """
        Return a fresh session token, bootstrapping a new one if needed.

        Args:
            timeout: Seconds allowed for waiting on the lock and the bootstrap call

        Returns:
            The session token to send in the session header

        Raises:
            AuthError: If the bootstrap call fails for any reason
            TransportError: If another caller holds the lock past the timeout

        """
        deadline = time.monotonic() + timeout
        if not self._lock.acquire(timeout=max(timeout, 0)):
            raise TransportError("Request deadline exceeded waiting for DEP session")
        try:
            if not self.is_fresh():
                self._bootstrap(deadline)
            return self._token
        finally:
            self._lock.release()

    def _session_url(self) -> str:
        """Resolve the session endpoint against the configured base URL."""
        try:
            return urllib.parse.urljoin(self.credentials.base_url, SESSION_PATH)
        except ValueError as e:
            raise AuthError(f"Invalid DEP server URL: {self.credentials.base_url}") from e

    def _bootstrap(self, deadline: float) -> None:
        """Fetch a new session token. State is only updated on full success."""
        if not self.credentials.is_configured:
            raise AuthError(
                "DEP credentials not configured. Set DEP_CONSUMER_KEY, DEP_CONSUMER_SECRET, "
                "DEP_ACCESS_TOKEN and DEP_ACCESS_SECRET"
            )

        url = self._session_url()
        headers = protocol_headers()
        headers["Authorization"] = self._signer.authorization_header("GET", url)
        logger.debug("Establishing DEP session at %s", url)

        try:
            status, body = send(urllib.request.Request(url, headers=headers, method="GET"), deadline)
        except DEPError as e:
            raise AuthError(f"Error establishing DEP session: {e.message}") from e

        if status != 200:
            text = body.decode("utf-8", errors="replace")
            raise AuthError(
                f"Error establishing DEP session: HTTP {status}",
                details={"status": status, "body": text},
            )

        try:
            payload = decode_json(body, self._debug_sink)
            token = payload["auth_session_token"]
        except DEPError as e:
            raise AuthError(f"Error establishing DEP session: {e.message}") from e
        except (KeyError, TypeError) as e:
            raise AuthError("Error establishing DEP session: response has no auth_session_token") from e

        if not isinstance(token, str) or not token:
            raise AuthError("Error establishing DEP session: empty auth_session_token")

        self._token = token
        self._expiry = self._clock() + SESSION_LIFETIME
        logger.debug("DEP session established, expires at %s", self._expiry.isoformat())

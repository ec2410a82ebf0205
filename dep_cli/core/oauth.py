"""
OAuth 1.0 HMAC-SHA1 request signing (RFC 5849).

DEP only uses this to bootstrap a session: the consumer key/secret sign the
request and the access token/secret stand in for the resource owner.
"""

import base64
import hashlib
import hmac
import secrets
import time
import urllib.parse
from collections.abc import Callable, Iterable
from dataclasses import dataclass

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


@dataclass(frozen=True)
class OAuthCredentials:
    """A token/secret pair (consumer or access)."""

    token: str
    secret: str


def percent_encode(value: str) -> str:
    """RFC 3986 percent-encoding: everything but unreserved characters."""
    return urllib.parse.quote(str(value), safe="~")


def normalize_url(url: str) -> str:
    """Base string URI: lowercase scheme and host, default port dropped, no query."""
    parts = urllib.parse.urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        host = f"{host}:{port}"
    return f"{scheme}://{host}{parts.path or '/'}"


def normalize_parameters(params: Iterable[tuple[str, str]]) -> str:
    """Encode, sort and join request parameters for the signature base string."""
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
    return "&".join(f"{k}={v}" for k, v in encoded)


def _default_nonce() -> str:
    """Random 32-character hex nonce."""
    return secrets.token_hex(16)


def _default_timestamp() -> str:
    """Current Unix time in whole seconds."""
    return str(int(time.time()))


class OAuth1Signer:
    """
    Produces ``Authorization`` header values for OAuth1-signed requests.

    The nonce and timestamp sources are injectable so signatures can be
    reproduced exactly in tests.
    """

    def __init__(
        self,
        consumer: OAuthCredentials,
        access: OAuthCredentials,
        nonce_source: Callable[[], str] = _default_nonce,
        timestamp_source: Callable[[], str] = _default_timestamp,
    ):
        self.consumer = consumer
        self.access = access
        self._nonce_source = nonce_source
        self._timestamp_source = timestamp_source

    def base_string(self, method: str, url: str, params: list[tuple[str, str]]) -> str:
        """Build the signature base string from method, URL and all parameters."""
        query = urllib.parse.parse_qsl(urllib.parse.urlsplit(url).query, keep_blank_values=True)
        return "&".join(
            [
                percent_encode(method.upper()),
                percent_encode(normalize_url(url)),
                percent_encode(normalize_parameters([*query, *params])),
            ]
        )

    def sign(self, base_string: str) -> str:
        """HMAC-SHA1 over the base string, keyed by both secrets."""
        key = f"{percent_encode(self.consumer.secret)}&{percent_encode(self.access.secret)}"
        digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def oauth_parameters(self, method: str, url: str, form: dict[str, str] | None = None) -> dict[str, str]:
        """Return the full set of ``oauth_*`` parameters, signature included."""
        oauth_params = {
            "oauth_consumer_key": self.consumer.token,
            "oauth_nonce": self._nonce_source(),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": self._timestamp_source(),
            "oauth_token": self.access.token,
            "oauth_version": OAUTH_VERSION,
        }
        params = list(oauth_params.items()) + list((form or {}).items())
        oauth_params["oauth_signature"] = self.sign(self.base_string(method, url, params))
        return oauth_params

    def authorization_header(self, method: str, url: str, form: dict[str, str] | None = None) -> str:
        """Return the ``Authorization`` header value for a request."""
        oauth_params = self.oauth_parameters(method, url, form)
        return "OAuth " + ", ".join(
            f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(oauth_params.items())
        )

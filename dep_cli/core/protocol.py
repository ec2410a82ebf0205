"""
Wire-level constants and helpers shared by the session manager and the client.
"""

import http.client
import json
import threading
import time
import urllib.error
import urllib.request
from typing import Any, TextIO

from dep_cli.core.errors import DecodeError, TransportError

LIBRARY_VERSION = "0.0.2"
DEFAULT_BASE_URL = "https://mdmenrollment.apple.com"
USER_AGENT = f"dep-cli/{LIBRARY_VERSION}"
MEDIA_TYPE = "application/json;charset=UTF8"
PROTOCOL_VERSION_HEADER = "X-Server-Protocol-Version"
PROTOCOL_VERSION = "2"
SESSION_HEADER = "X-ADM-Auth-Session"
SESSION_PATH = "/session"
CHUNK_SIZE = 8192


def protocol_headers() -> dict[str, str]:
    """Headers carried by every DEP request, authenticated or not."""
    return {
        "User-Agent": USER_AGENT,
        "Content-Type": MEDIA_TYPE,
        "Accept": MEDIA_TYPE,
        PROTOCOL_VERSION_HEADER: PROTOCOL_VERSION,
    }


def remaining(deadline: float) -> float:
    """Seconds left before ``deadline`` (a time.monotonic() value)."""
    left = deadline - time.monotonic()
    if left <= 0:
        raise TransportError("Request deadline exceeded")
    return left


def send(request: urllib.request.Request, deadline: float) -> tuple[int, bytes]:
    """
    Perform an HTTP request and return the status code and raw body.

    ``deadline`` is a time.monotonic() value covering the whole exchange:
    connect, response headers and body. Non-2xx responses are returned, not
    raised; failures to talk to the server become a TransportError.
    """
    try:
        response = urllib.request.urlopen(request, timeout=remaining(deadline))
        status = response.status

    except urllib.error.HTTPError as e:
        response, status = e, e.code

    except urllib.error.URLError as e:
        raise TransportError(f"Connection error: {e.reason}") from e

    except TimeoutError as e:
        raise TransportError("Request deadline exceeded") from e

    except (OSError, http.client.HTTPException) as e:
        raise TransportError(f"Connection error: {e}") from e

    try:
        return status, _read_body(response, deadline)
    finally:
        response.close()


def _read_body(response: Any, deadline: float) -> bytes:
    """Read the body chunk by chunk, giving up once the deadline passes."""
    expired = threading.Event()

    def expire() -> None:
        expired.set()
        response.close()

    timer = threading.Timer(remaining(deadline), expire)
    timer.daemon = True
    timer.start()
    chunks = []
    try:
        while True:
            remaining(deadline)
            chunk = response.read1(CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
    except (OSError, ValueError, AttributeError, http.client.HTTPException) as e:
        if expired.is_set() or time.monotonic() >= deadline:
            raise TransportError("Request deadline exceeded") from e
        raise TransportError(f"Connection error: {e}") from e
    finally:
        timer.cancel()

    # a closed response reads as EOF
    if expired.is_set():
        raise TransportError("Request deadline exceeded")
    return b"".join(chunks)


def decode_json(body: bytes, sink: TextIO | None = None) -> Any:
    """Decode a JSON response body, echoing the raw text to ``sink`` if given."""
    if sink is not None:
        sink.write(body.decode("utf-8", errors="replace"))
        sink.write("\n")
        sink.flush()
    try:
        return json.loads(body)
    except ValueError as e:
        raise DecodeError(f"Invalid JSON response: {e}") from e

"""
DEP SDK - High-level client with typed operations.

Each operation picks a path, method and body, then hands off to the core
client's build/execute. Operations depend only on the Transport protocol.
"""

from typing import TextIO

from dep_cli.core.client import DEFAULT_TIMEOUT, APIClient, Transport
from dep_cli.core.session import Credentials
from dep_cli.core.types import (
    Account,
    DeviceDetailsResponse,
    DeviceRequestOption,
    DeviceRequestOptions,
    DeviceResponse,
    Profile,
    ProfileResponse,
    apply_options,
)

ACCOUNT_PATH = "account"
FETCH_DEVICES_PATH = "server/devices"
SYNC_DEVICES_PATH = "devices/sync"
DEVICE_DETAILS_PATH = "devices"
PROFILE_PATH = "profile"
ASSIGN_PROFILE_PATH = "profile/devices"


class DEPClient:
    """
    High-level DEP API client.

    Example:
        client = DEPClient(consumer_key=..., consumer_secret=...,
                           access_token=..., access_secret=...)

        account = client.account.get()
        page = client.devices.fetch(limit(100))
        while page.more_to_follow:
            page = client.devices.fetch(cursor(page.cursor), limit(100))

    """

    def __init__(
        self,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
        access_token: str | None = None,
        access_secret: str | None = None,
        base_url: str | None = None,
        debug: bool | None = None,
        debug_sink: TextIO | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the DEP client.

        Args:
            consumer_key: OAuth1 consumer key (or DEP_CONSUMER_KEY env var)
            consumer_secret: OAuth1 consumer secret (or DEP_CONSUMER_SECRET env var)
            access_token: OAuth1 access token (or DEP_ACCESS_TOKEN env var)
            access_secret: OAuth1 access secret (or DEP_ACCESS_SECRET env var)
            base_url: DEP server URL, e.g. a local simulator (or DEP_SERVER_URL env var)
            debug: Echo raw response bodies to the debug sink (or DEP_DEBUG env var)
            debug_sink: Stream for echoed bodies (default stderr)
            timeout: Per-call deadline in seconds

        """
        credentials = Credentials.from_env(
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
            access_token=access_token,
            access_secret=access_secret,
            base_url=base_url,
            debug_echo=debug,
        )
        self._client = APIClient(credentials, timeout=timeout, debug_sink=debug_sink)

        # Sub-clients for each resource
        self.account = AccountOperations(self._client)
        self.devices = DeviceOperations(self._client)
        self.profiles = ProfileOperations(self._client)

    @property
    def base_url(self) -> str:
        """Get the DEP server URL in use."""
        return self._client.base_url


# =============================================================================
# Account Operations
# =============================================================================


class AccountOperations:
    """Account details for the MDM server."""

    def __init__(self, client: Transport):
        self._client = client

    def get(self) -> Account:
        """Fetch the account details of the MDM server."""
        envelope = self._client.build("GET", ACCOUNT_PATH)
        return self._client.execute(envelope, Account.from_dict)


# =============================================================================
# Device Operations
# =============================================================================


class DeviceOperations:
    """Fetch, sync and look up devices."""

    def __init__(self, client: Transport):
        self._client = client

    def fetch(self, *options: DeviceRequestOption) -> DeviceResponse:
        """
        Fetch devices assigned to the server.

        Args:
            options: cursor() and/or limit() options

        Returns:
            DeviceResponse with a cursor for the next page

        """
        request = apply_options(options)
        envelope = self._client.build("POST", FETCH_DEVICES_PATH, request)
        return self._client.execute(envelope, DeviceResponse.from_dict)

    def sync(self, cursor: str, *options: DeviceRequestOption) -> DeviceResponse:
        """
        Fetch device changes since a previous fetch or sync.

        Args:
            cursor: Cursor from a previous fetch/sync response
            options: Further options; a later cursor() overrides the argument

        Returns:
            DeviceResponse with op_type/op_date set on each device

        """
        request = apply_options(options, DeviceRequestOptions(cursor=cursor))
        envelope = self._client.build("POST", SYNC_DEVICES_PATH, request)
        return self._client.execute(envelope, DeviceResponse.from_dict)

    def details(self, serials: list[str]) -> DeviceDetailsResponse:
        """Get details for specific devices by serial number."""
        envelope = self._client.build("POST", DEVICE_DETAILS_PATH, {"devices": list(serials)})
        return self._client.execute(envelope, DeviceDetailsResponse.from_dict)


# =============================================================================
# Profile Operations
# =============================================================================


class ProfileOperations:
    """Define, assign and fetch setup profiles."""

    def __init__(self, client: Transport):
        self._client = client

    def define(self, profile: Profile) -> ProfileResponse:
        """
        Define a new profile, optionally assigning it to ``profile.devices``.

        Returns:
            ProfileResponse with the new profile UUID and per-device status

        """
        envelope = self._client.build("POST", PROFILE_PATH, profile)
        return self._client.execute(envelope, ProfileResponse.from_dict)

    def assign(self, profile_uuid: str, serials: list[str]) -> ProfileResponse:
        """Assign an existing profile to devices."""
        envelope = self._client.build(
            "PUT",
            ASSIGN_PROFILE_PATH,
            {"profile_uuid": profile_uuid, "devices": list(serials)},
        )
        return self._client.execute(envelope, ProfileResponse.from_dict)

    def get(self, profile_uuid: str) -> Profile:
        """Fetch a profile by UUID."""
        envelope = self._client.build("GET", PROFILE_PATH).with_query(profile_uuid=profile_uuid)
        return self._client.execute(envelope, Profile.from_dict)

"""
Types for DEP API requests and responses.

These dataclasses mirror the JSON bodies of the account, device and profile
endpoints.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dep_cli.core.errors import ValidationError

MAX_LIMIT = 1000


def parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as sent by DEP."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


# =============================================================================
# Pagination Options
# =============================================================================


@dataclass
class DeviceRequestOptions:
    """Cursor and limit for fetch/sync device requests."""

    cursor: str | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request, omitting unset fields."""
        result: dict[str, Any] = {}
        if self.cursor:
            result["cursor"] = self.cursor
        if self.limit:
            result["limit"] = self.limit
        return result


DeviceRequestOption = Callable[[DeviceRequestOptions], None]


def cursor(value: str) -> DeviceRequestOption:
    """Continue a fetch/sync from a previous response's cursor."""

    def apply(opts: DeviceRequestOptions) -> None:
        opts.cursor = value

    return apply


def limit(value: int) -> DeviceRequestOption:
    """
    Cap the number of devices returned per page.

    Raises:
        ValidationError: If value is higher than 1000

    """
    if value > MAX_LIMIT:
        raise ValidationError(f"Limit must not be higher than {MAX_LIMIT}", details={"limit": value})

    def apply(opts: DeviceRequestOptions) -> None:
        opts.limit = value

    return apply


def apply_options(
    options: Iterable[DeviceRequestOption],
    opts: DeviceRequestOptions | None = None,
) -> DeviceRequestOptions:
    """Apply options in order; the last one to set a field wins."""
    opts = opts or DeviceRequestOptions()
    for option in options:
        option(opts)
    return opts


# =============================================================================
# Account Types
# =============================================================================


@dataclass
class Account:
    """A DEP account (the MDM server's view of its organization)."""

    server_name: str
    server_uuid: str
    admin_id: str = ""
    facilitator_id: str = ""
    org_name: str = ""
    org_email: str = ""
    org_phone: str = ""
    org_address: str = ""
    urls: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        """Create from API response dict."""
        return cls(
            server_name=data["server_name"],
            server_uuid=data["server_uuid"],
            admin_id=data.get("admin_id", ""),
            # deprecated by DEP, still sent by some accounts
            facilitator_id=data.get("facilitator_id", ""),
            org_name=data.get("org_name", ""),
            org_email=data.get("org_email", ""),
            org_phone=data.get("org_phone", ""),
            org_address=data.get("org_address", ""),
            urls=data.get("urls") or [],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = {
            "server_name": self.server_name,
            "server_uuid": self.server_uuid,
            "admin_id": self.admin_id,
            "org_name": self.org_name,
            "org_email": self.org_email,
            "org_phone": self.org_phone,
            "org_address": self.org_address,
            "urls": self.urls,
        }
        if self.facilitator_id:
            result["facilitator_id"] = self.facilitator_id
        return result


# =============================================================================
# Device Types
# =============================================================================


@dataclass
class Device:
    """A device assigned to the MDM server in DEP."""

    serial_number: str
    model: str = ""
    description: str = ""
    color: str = ""
    asset_tag: str = ""
    profile_status: str = ""
    profile_uuid: str = ""
    profile_assign_time: datetime | None = None
    profile_push_time: datetime | None = None
    device_assigned_date: datetime | None = None
    device_assigned_by: str = ""
    os: str = ""
    device_family: str = ""
    # Only set on sync responses
    op_type: str = ""
    op_date: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Device":
        """Create from API response dict."""
        return cls(
            serial_number=data["serial_number"],
            model=data.get("model", ""),
            description=data.get("description", ""),
            color=data.get("color", ""),
            asset_tag=data.get("asset_tag", ""),
            profile_status=data.get("profile_status", ""),
            profile_uuid=data.get("profile_uuid", ""),
            profile_assign_time=parse_time(data.get("profile_assign_time")),
            profile_push_time=parse_time(data.get("profile_push_time")),
            device_assigned_date=parse_time(data.get("device_assigned_date")),
            device_assigned_by=data.get("device_assigned_by", ""),
            os=data.get("os", ""),
            device_family=data.get("device_family", ""),
            op_type=data.get("op_type", ""),
            op_date=parse_time(data.get("op_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output, omitting empty fields."""
        result: dict[str, Any] = {}
        for name, value in self.__dict__.items():
            if value in ("", None):
                continue
            result[name] = value.isoformat() if isinstance(value, datetime) else value
        return result


@dataclass
class DeviceResponse:
    """A page of devices from a fetch or sync request."""

    devices: list[Device] = field(default_factory=list)
    cursor: str = ""
    fetched_until: datetime | None = None
    more_to_follow: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceResponse":
        """Create from API response dict."""
        return cls(
            devices=[Device.from_dict(d) for d in data.get("devices") or []],
            cursor=data.get("cursor", ""),
            fetched_until=parse_time(data.get("fetched_until")),
            more_to_follow=data.get("more_to_follow", False),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            "devices": [d.to_dict() for d in self.devices],
            "cursor": self.cursor,
            "fetched_until": self.fetched_until.isoformat() if self.fetched_until else None,
            "more_to_follow": self.more_to_follow,
        }


@dataclass
class DeviceDetailsResponse:
    """Device details keyed by serial number."""

    devices: dict[str, Device] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceDetailsResponse":
        """Create from API response dict."""
        devices = {}
        for serial, device_data in (data.get("devices") or {}).items():
            device_data = {"serial_number": serial, **device_data}
            devices[serial] = Device.from_dict(device_data)
        return cls(devices=devices)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {"devices": {serial: d.to_dict() for serial, d in self.devices.items()}}


# =============================================================================
# Profile Types
# =============================================================================


# Sent even when empty/false; everything else is omitted when unset.
_PROFILE_REQUIRED = ("profile_name", "url", "is_mdm_removable", "org_magic", "devices")


@dataclass
class Profile:
    """A DEP setup profile. Profiles can be defined, assigned and fetched."""

    profile_name: str
    url: str
    allow_pairing: bool = False
    is_supervised: bool = False
    is_multi_user: bool = False
    is_mandatory: bool = False
    await_device_configured: bool = False
    is_mdm_removable: bool = False
    support_phone_number: str = ""
    support_email_address: str = ""
    org_magic: str = ""
    anchor_certs: list[str] = field(default_factory=list)
    supervising_host_certs: list[str] = field(default_factory=list)
    skip_setup_items: list[str] = field(default_factory=list)
    department: str = ""
    devices: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from API response dict."""
        return cls(
            profile_name=data["profile_name"],
            url=data["url"],
            allow_pairing=data.get("allow_pairing", False),
            is_supervised=data.get("is_supervised", False),
            is_multi_user=data.get("is_multi_user", False),
            is_mandatory=data.get("is_mandatory", False),
            await_device_configured=data.get("await_device_configured", False),
            is_mdm_removable=data.get("is_mdm_removable", False),
            support_phone_number=data.get("support_phone_number", ""),
            support_email_address=data.get("support_email_address", ""),
            org_magic=data.get("org_magic", ""),
            anchor_certs=data.get("anchor_certs") or [],
            supervising_host_certs=data.get("supervising_host_certs") or [],
            skip_setup_items=data.get("skip_setup_items") or [],
            department=data.get("department", ""),
            devices=data.get("devices") or [],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        return {
            name: value
            for name, value in self.__dict__.items()
            if name in _PROFILE_REQUIRED or value not in ("", False, [], None)
        }


@dataclass
class ProfileResponse:
    """Result of defining or assigning a profile."""

    profile_uuid: str
    devices: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfileResponse":
        """Create from API response dict."""
        return cls(
            profile_uuid=data["profile_uuid"],
            devices=data.get("devices") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        return {"profile_uuid": self.profile_uuid, "devices": self.devices}

"""
DEP CLI - Command-line interface.

This layer provides the user-facing commands, using the SDK layer for all
operations. It handles:
- Argument parsing
- JSON output (pretty when stdout is a TTY)
- Error reporting as JSON with a non-zero exit code
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dep_cli.core.errors import DEPError, ValidationError
from dep_cli.core.types import Profile, cursor, limit
from dep_cli.sdk import DEPClient

# =============================================================================
# Output Helpers
# =============================================================================


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (machine)."""
    return sys.stdout.isatty()


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(data, indent=indent, default=str))


def error_output(error: DEPError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def _device_options(args: argparse.Namespace) -> list:
    """Collect --cursor and --limit into device request options."""
    options = []
    if getattr(args, "cursor", None):
        options.append(cursor(args.cursor))
    if args.limit is not None:
        options.append(limit(args.limit))
    return options


def _read_json(path: str) -> Any:
    """Load JSON from a file path, or stdin when path is "-"."""
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text()
        return json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Could not read JSON from {path}: {e}") from e


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_account(client: DEPClient, _args: argparse.Namespace) -> None:
    """Show account details."""
    try:
        json_output(client.account.get().to_dict())
    except DEPError as e:
        error_output(e)


def cmd_devices_fetch(client: DEPClient, args: argparse.Namespace) -> None:
    """Fetch devices assigned to the server."""
    try:
        response = client.devices.fetch(*_device_options(args))
        json_output(response.to_dict())
    except DEPError as e:
        error_output(e)


def cmd_devices_sync(client: DEPClient, args: argparse.Namespace) -> None:
    """Sync device changes since a cursor."""
    try:
        response = client.devices.sync(args.sync_cursor, *_device_options(args))
        json_output(response.to_dict())
    except DEPError as e:
        error_output(e)


def cmd_devices_details(client: DEPClient, args: argparse.Namespace) -> None:
    """Get details for devices by serial number."""
    try:
        json_output(client.devices.details(args.serials).to_dict())
    except DEPError as e:
        error_output(e)


def cmd_profile_define(client: DEPClient, args: argparse.Namespace) -> None:
    """Define a profile from a JSON file."""
    try:
        data = _read_json(args.file)
        try:
            profile = Profile.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValidationError(f"Invalid profile: {e!r}") from e
        json_output(client.profiles.define(profile).to_dict())
    except DEPError as e:
        error_output(e)


def cmd_profile_assign(client: DEPClient, args: argparse.Namespace) -> None:
    """Assign a profile to devices."""
    try:
        json_output(client.profiles.assign(args.profile_uuid, args.serials).to_dict())
    except DEPError as e:
        error_output(e)


def cmd_profile_get(client: DEPClient, args: argparse.Namespace) -> None:
    """Fetch a profile by UUID."""
    try:
        json_output(client.profiles.get(args.profile_uuid).to_dict())
    except DEPError as e:
        error_output(e)


# =============================================================================
# Argument Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dep",
        description="Command-line client for the device enrollment (DEP) API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials are read from DEP_CONSUMER_KEY, DEP_CONSUMER_SECRET,
DEP_ACCESS_TOKEN and DEP_ACCESS_SECRET.

Examples:
  dep account
  dep devices fetch --limit 100
  dep devices sync <cursor>
  dep profile assign <profile_uuid> C02XXXXXXXXX
""",
    )
    parser.add_argument("--server-url", "-s", help="DEP server URL (or DEP_SERVER_URL env var)")
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        default=None,
        help="Log requests and echo raw responses to stderr",
    )

    subparsers = parser.add_subparsers(dest="command")

    # ========== Account ==========
    account = subparsers.add_parser("account", help="Show account details")
    account.set_defaults(func=cmd_account)

    # ========== Devices ==========
    devices = subparsers.add_parser("devices", help="Fetch, sync and look up devices")
    devices.set_defaults(func=lambda _c, _a: devices.print_help())
    devices_sub = devices.add_subparsers(dest="subcommand")

    d_fetch = devices_sub.add_parser("fetch", help="Fetch devices assigned to the server")
    d_fetch.add_argument("--cursor", "-c", help="Cursor from a previous response")
    d_fetch.add_argument("--limit", "-l", type=int, help="Devices per page (max 1000)")
    d_fetch.set_defaults(func=cmd_devices_fetch)

    d_sync = devices_sub.add_parser("sync", help="Sync device changes since a cursor")
    d_sync.add_argument("sync_cursor", metavar="cursor", help="Cursor from a previous fetch/sync")
    d_sync.add_argument("--limit", "-l", type=int, help="Devices per page (max 1000)")
    d_sync.set_defaults(func=cmd_devices_sync)

    d_details = devices_sub.add_parser("details", help="Get device details")
    d_details.add_argument("serials", nargs="+", help="Device serial numbers")
    d_details.set_defaults(func=cmd_devices_details)

    # ========== Profile ==========
    profile = subparsers.add_parser("profile", help="Define, assign and fetch profiles")
    profile.set_defaults(func=lambda _c, _a: profile.print_help())
    profile_sub = profile.add_subparsers(dest="subcommand")

    p_define = profile_sub.add_parser("define", help="Define a profile from JSON")
    p_define.add_argument("file", help="Profile JSON file (or - for stdin)")
    p_define.set_defaults(func=cmd_profile_define)

    p_assign = profile_sub.add_parser("assign", help="Assign a profile to devices")
    p_assign.add_argument("profile_uuid", help="Profile UUID")
    p_assign.add_argument("serials", nargs="+", help="Device serial numbers")
    p_assign.set_defaults(func=cmd_profile_assign)

    p_get = profile_sub.add_parser("get", help="Fetch a profile")
    p_get.add_argument("profile_uuid", help="Profile UUID")
    p_get.set_defaults(func=cmd_profile_get)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        client = DEPClient(base_url=args.server_url, debug=args.debug)
    except DEPError as e:
        error_output(e)

    # Run command (all subparsers have default funcs that print help)
    args.func(client, args)


if __name__ == "__main__":
    main()

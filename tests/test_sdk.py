"""Tests for the DEPClient service operations against the fake DEP server."""

import pytest

from dep_cli import DEPClient, cursor, limit
from dep_cli.core.errors import APIError, ValidationError
from dep_cli.core.types import Account, DeviceResponse, Profile, ProfileResponse
from dep_cli.sdk import DeviceOperations


@pytest.fixture
def client(dep_server) -> DEPClient:
    return DEPClient(
        consumer_key="CK_test",
        consumer_secret="CS_test",
        access_token="AT_test",
        access_secret="AS_test",
        base_url=dep_server.url,
        debug=False,
        timeout=5,
    )


class TestAccount:
    def test_get(self, client, dep_server):
        dep_server.route(
            "GET",
            "/account",
            body={
                "server_name": "MDM Server",
                "server_uuid": "677cd8e2-1234",
                "admin_id": "admin@example.com",
                "org_name": "Example Inc",
                "org_email": "it@example.com",
                "org_phone": "555-0100",
                "org_address": "1 Infinite Loop",
                "urls": [],
            },
        )

        account = client.account.get()

        assert isinstance(account, Account)
        assert account.server_name == "MDM Server"
        assert account.org_address == "1 Infinite Loop"
        assert [r.method for r in dep_server.requests] == ["GET", "GET"]


class TestDevices:
    def test_fetch_without_options_sends_empty_object(self, client, dep_server):
        dep_server.route("POST", "/server/devices", body={"devices": [], "cursor": "c1", "more_to_follow": False})

        response = client.devices.fetch()

        assert response == DeviceResponse(cursor="c1")
        (request,) = dep_server.requests_to("/server/devices")
        assert request.json() == {}

    def test_fetch_with_options(self, client, dep_server):
        dep_server.route(
            "POST",
            "/server/devices",
            body={"devices": [{"serial_number": "A1"}], "cursor": "c2", "more_to_follow": True},
        )

        response = client.devices.fetch(cursor("c1"), limit(100))

        assert response.more_to_follow is True
        assert response.devices[0].serial_number == "A1"
        (request,) = dep_server.requests_to("/server/devices")
        assert request.json() == {"cursor": "c1", "limit": 100}

    def test_limit_over_max_fails_before_network(self, client, dep_server):
        with pytest.raises(ValidationError):
            client.devices.fetch(limit(1001))
        assert dep_server.requests == []

    def test_sync_sends_cursor(self, client, dep_server):
        dep_server.route(
            "POST",
            "/devices/sync",
            body={"devices": [{"serial_number": "A1", "op_type": "modified"}], "cursor": "c3"},
        )

        response = client.devices.sync("c2", limit(10))

        assert response.devices[0].op_type == "modified"
        (request,) = dep_server.requests_to("/devices/sync")
        assert request.json() == {"cursor": "c2", "limit": 10}

    def test_sync_cursor_option_overrides_argument(self, client, dep_server):
        dep_server.route("POST", "/devices/sync", body={"devices": []})
        client.devices.sync("c2", cursor("c9"))
        (request,) = dep_server.requests_to("/devices/sync")
        assert request.json() == {"cursor": "c9"}

    def test_details(self, client, dep_server):
        dep_server.route("POST", "/devices", body={"devices": {"A1": {"serial_number": "A1", "model": "iPad"}}})

        response = client.devices.details(["A1"])

        assert response.devices["A1"].model == "iPad"
        (request,) = dep_server.requests_to("/devices")
        assert request.json() == {"devices": ["A1"]}

    def test_api_error_propagates(self, client, dep_server):
        dep_server.route("POST", "/devices", body="INVALID_DEVICE", status=400)
        with pytest.raises(APIError) as exc_info:
            client.devices.details(["nope"])
        assert exc_info.value.body == "INVALID_DEVICE"


class TestProfiles:
    def test_define(self, client, dep_server):
        dep_server.route("POST", "/profile", body={"profile_uuid": "p1", "devices": {"A1": "SUCCESS"}})
        profile = Profile(profile_name="Default", url="https://mdm.example.com/enroll", devices=["A1"])

        response = client.profiles.define(profile)

        assert response == ProfileResponse(profile_uuid="p1", devices={"A1": "SUCCESS"})
        (request,) = dep_server.requests_to("/profile")
        assert request.json() == profile.to_dict()

    def test_assign(self, client, dep_server):
        dep_server.route("PUT", "/profile/devices", body={"profile_uuid": "p1", "devices": {"A1": "SUCCESS"}})

        response = client.profiles.assign("p1", ["A1"])

        assert response.devices == {"A1": "SUCCESS"}
        (request,) = dep_server.requests_to("/profile/devices")
        assert request.method == "PUT"
        assert request.json() == {"profile_uuid": "p1", "devices": ["A1"]}

    def test_get(self, client, dep_server):
        profile = Profile(profile_name="Default", url="https://mdm.example.com/enroll", is_supervised=True)
        dep_server.route("GET", "/profile", body=profile.to_dict())

        assert client.profiles.get("p1") == profile
        (request,) = dep_server.requests_to("/profile")
        assert request.path == "/profile?profile_uuid=p1"
        assert request.body == b""


class TestComposition:
    def test_one_session_across_services(self, client, dep_server):
        dep_server.route("GET", "/account", body={"server_name": "s", "server_uuid": "u"})
        dep_server.route("POST", "/server/devices", body={"devices": []})

        client.account.get()
        client.devices.fetch()

        assert dep_server.session_count == 1

    def test_operations_accept_any_transport(self):
        class RecordingTransport:
            def __init__(self):
                self.calls = []

            def build(self, method, path, body=None):
                self.calls.append((method, path, body))
                return (method, path)

            def execute(self, envelope, into=None, timeout=None):
                return into({"devices": [], "cursor": "x"})

        transport = RecordingTransport()
        response = DeviceOperations(transport).fetch(limit(3))

        assert response.cursor == "x"
        method, path, body = transport.calls[0]
        assert (method, path, body.to_dict()) == ("POST", "server/devices", {"limit": 3})

    def test_env_configuration(self, dep_env):
        dep_env.route("GET", "/account", body={"server_name": "env", "server_uuid": "u"})
        assert DEPClient().account.get().server_name == "env"

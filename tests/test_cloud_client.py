"""Tests for the cloud REST client, connectivity flag and column mapping."""

import json

import httpx
import pytest

from studiosync.cloud.client import (
    CloudClient,
    CloudDuplicateError,
    CloudRequestError,
    CloudUnavailableError,
    eq,
)
from studiosync.cloud.connectivity import Connectivity
from studiosync.cloud.mapping import BOOKING_MAPPING, REMINDER_MAPPING, TASK_MAPPING
from studiosync.config import CloudConfig

from tests.helpers import CLOUD_URL, make_client


def client_replying(status: int, body=None, seen: list = None) -> CloudClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body if body is not None else [])

    return CloudClient(CLOUD_URL, api_key="k", transport=httpx.MockTransport(handler))


class TestErrorClassification:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 503, 408, 429])
    async def test_transient_statuses(self, status):
        client = client_replying(status)
        with pytest.raises(CloudUnavailableError) as exc_info:
            await client.select("bookings")
        assert exc_info.value.status_code == status
        await client.aclose()

    @pytest.mark.asyncio
    async def test_duplicate_key(self):
        client = client_replying(409)
        with pytest.raises(CloudDuplicateError):
            await client.insert("bookings", {"id": "b1"})
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 404, 422])
    async def test_permanent_rejections(self, status):
        client = client_replying(status)
        with pytest.raises(CloudRequestError) as exc_info:
            await client.update("bookings", "b1", {"title": "x"})
        assert not isinstance(exc_info.value, CloudDuplicateError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = CloudClient(CLOUD_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(CloudUnavailableError):
            await client.select("bookings")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = CloudClient(CLOUD_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(CloudUnavailableError, match="timed out"):
            await client.select("bookings")
        await client.aclose()


class TestRequests:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = []
        client = client_replying(200, [{"id": "b1"}], seen)

        rows = await client.select("bookings", {"status": eq("Confirmed")}, order="shoot_date.desc", limit=5)

        assert rows == [{"id": "b1"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/bookings"
        assert request.url.params["status"] == "eq.Confirmed"
        assert request.url.params["order"] == "shoot_date.desc"
        assert request.url.params["limit"] == "5"
        assert request.headers["apikey"] == "k"
        assert request.headers["Authorization"] == "Bearer k"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_upsert_asks_for_merge(self):
        seen = []
        client = client_replying(201, [], seen)
        await client.upsert("reminders", {"id": "r1"})
        assert "merge-duplicates" in seen[0].headers["Prefer"]
        assert json.loads(seen[0].content) == {"id": "r1"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_delete_requires_filter(self):
        client = client_replying(200)
        with pytest.raises(ValueError):
            await client.delete_where("bookings", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_update_of_missing_row_returns_empty(self, cloud):
        client = make_client(cloud)
        assert await client.update("bookings", "nope", {"title": "x"}) == []
        await client.aclose()

    def test_disabled_config_has_no_client(self):
        assert CloudClient.from_config(CloudConfig(url="", api_key="")) is None


class TestConnectivity:
    @pytest.mark.asyncio
    async def test_probe_reflects_health(self, cloud):
        client = make_client(cloud)
        connectivity = Connectivity(client)
        changes = []
        connectivity.on_change(changes.append)

        assert await connectivity.probe()
        cloud.fail_status = 503
        assert not await connectivity.probe()

        assert changes == [True, False]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_client_is_always_offline(self):
        connectivity = Connectivity(None, online=True)
        assert not connectivity.online
        connectivity.set_online(True)
        assert not connectivity.online
        assert not await connectivity.probe()

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self, cloud):
        client = make_client(cloud)
        connectivity = Connectivity(client)
        seen = []

        def broken(online):
            raise RuntimeError("boom")

        connectivity.on_change(broken)
        connectivity.on_change(seen.append)
        connectivity.set_online(True)

        assert connectivity.online
        assert seen == [True]
        await client.aclose()


class TestMapping:
    def test_booking_to_cloud(self):
        row = {
            "id": "b1",
            "clientName": "Sara",
            "details": '{"startTime": "10:00"}',
            "statusHistory": "[]",
            "created_by": "u1",
            "deletedAt": 1767225600000,
        }
        out = BOOKING_MAPPING.to_cloud(row)
        assert out == {
            "id": "b1",
            "client_name": "Sara",
            "details": {"startTime": "10:00"},
            "status_history": [],
            "deleted_at": "2026-01-01T00:00:00+00:00",
        }

    def test_booking_to_local_fills_defaults(self):
        local = BOOKING_MAPPING.to_local({"id": "b1", "created_by": "u1", "deleted_at": None})
        assert local["clientName"] == "Unknown"
        assert local["details"] == "{}"
        assert local["createdBy"] == "u1"
        assert local["created_by"] == "u1"
        assert local["deletedAt"] is None

    def test_flags_and_timestamps(self):
        local = REMINDER_MAPPING.to_local({
            "id": "r1", "title": "x", "date": "2026-05-01", "completed": True,
            "deleted_at": "2026-01-01T00:00:00Z",
        })
        assert local["dueDate"] == "2026-05-01"
        assert local["completed"] == 1
        assert local["deletedAt"] == 1767225600000
        assert TASK_MAPPING.to_cloud({"completed": 0}) == {"completed": False}

    def test_cloud_column_lookup(self):
        assert BOOKING_MAPPING.cloud_column("shootDate") == "shoot_date"
        with pytest.raises(KeyError):
            BOOKING_MAPPING.cloud_column("nonexistent")

"""Test doubles and builders shared across test modules."""

import json
from typing import Any, Optional

import httpx

from studiosync.app import StudioApp
from studiosync.cloud.client import CloudClient
from studiosync.config import settings
from studiosync.store.bridge import InProcessBridge

CLOUD_URL = "http://cloud.test"


def _matches(row: dict[str, Any], column: str, expr: str) -> bool:
    value = row.get(column)
    if expr == "is.null":
        return value is None
    if expr == "not.is.null":
        return value is not None
    op, _, operand = expr.partition(".")
    if value is None:
        return False
    if op == "eq":
        return str(value) == operand
    if op == "lt":
        return str(value) < operand
    raise AssertionError(f"unsupported filter {expr!r}")


class FakeCloud:
    """In-memory PostgREST lookalike served through ``httpx.MockTransport``."""

    RESERVED = {"select", "order", "limit"}

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.requests: list[tuple[str, str]] = []
        self.offline = False
        self.fail_status: Optional[int] = None

    def table(self, name: str) -> dict[str, dict[str, Any]]:
        return self.tables.setdefault(name, {})

    def rows(self, name: str) -> list[dict[str, Any]]:
        return list(self.table(name).values())

    def seed(self, name: str, row: dict[str, Any]) -> None:
        self.table(name)[row["id"]] = dict(row)

    def handler(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        self.requests.append((request.method, table))
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, text="injected failure")

        params = dict(request.url.params)
        filters = {k: v for k, v in params.items() if k not in self.RESERVED}
        rows = self.table(table)
        selected = [
            row for row in rows.values()
            if all(_matches(row, column, expr) for column, expr in filters.items())
        ]

        if request.method == "GET":
            if "order" in params:
                column, _, direction = params["order"].partition(".")
                selected.sort(key=lambda r: str(r.get(column) or ""), reverse=direction == "desc")
            if "limit" in params:
                selected = selected[: int(params["limit"])]
            return httpx.Response(200, json=selected)

        if request.method == "POST":
            body = json.loads(request.content)
            merge = "merge-duplicates" in request.headers.get("Prefer", "")
            if body["id"] in rows and not merge:
                return httpx.Response(409, json={"message": "duplicate key"})
            rows[body["id"]] = {**rows.get(body["id"], {}), **body}
            return httpx.Response(201, json=[rows[body["id"]]])

        if request.method == "PATCH":
            body = json.loads(request.content)
            for row in selected:
                row.update(body)
            return httpx.Response(200, json=selected)

        if request.method == "DELETE":
            for row in selected:
                del rows[row["id"]]
            return httpx.Response(200, json=selected)

        return httpx.Response(405)


def make_client(cloud: FakeCloud) -> CloudClient:
    return CloudClient(CLOUD_URL, api_key="test-key", transport=httpx.MockTransport(cloud.handler))


async def open_app(cloud: Optional[FakeCloud] = None) -> StudioApp:
    """App over an in-memory store; online iff ``cloud`` is given and reachable."""
    client = make_client(cloud) if cloud is not None else None
    app = await StudioApp.open(settings, bridge=InProcessBridge(":memory:"), client=client)
    await app.connectivity.wait_idle()
    return app


async def go_online(app: StudioApp) -> None:
    """Reconnect and wait for the drain triggered by the transition."""
    app.connectivity.set_online(True)
    await app.connectivity.wait_idle()


def booking_input(**overrides: Any) -> dict[str, Any]:
    data = {
        "clientName": "Sara Ahmed",
        "clientPhone": "07701234567",
        "category": "Wedding",
        "title": "Sara & Omar Wedding",
        "location": "Studio A",
        "shootDate": "2026-05-10",
        "totalAmount": 1500.0,
        "paidAmount": 500.0,
        "details": {"startTime": "10:00", "endTime": "14:00", "rentalType": "Partial"},
    }
    data.update(overrides)
    return data

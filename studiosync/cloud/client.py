"""
Cloud relational store client.

Talks to a PostgREST-style REST endpoint (``/rest/v1/<table>``) with
snake_case columns. Every request carries an explicit timeout; failures are
classified so the sync layer can tell transient outages (queue and retry)
from permanent rejections (dead-letter).
"""

import asyncio
from typing import Any, Optional

import httpx

from studiosync.config import CloudConfig
from studiosync.logging_context import get_op_logger

logger = get_op_logger(__name__)

TRANSIENT_STATUS = {408, 425, 429}
HEALTH_TABLE = "bookings"


class CloudError(Exception):
    """Base class for cloud store failures."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CloudUnavailableError(CloudError):
    """Network failure, timeout or a 5xx/408/429 reply. Worth retrying."""


class CloudRequestError(CloudError):
    """The store rejected the request itself (4xx). Retrying will not help."""


class CloudDuplicateError(CloudRequestError):
    """Insert collided with an existing primary key (409)."""


def eq(value: Any) -> str:
    return f"eq.{value}"


def lt(value: Any) -> str:
    return f"lt.{value}"


def is_null() -> str:
    return "is.null"


def not_null() -> str:
    return "not.is.null"


class CloudClient:
    """Thin async wrapper over ``httpx.AsyncClient`` for table CRUD."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        health_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.health_timeout = health_timeout
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: CloudConfig) -> Optional["CloudClient"]:
        if not config.enabled:
            return None
        return cls(
            config.url,
            api_key=config.api_key,
            timeout=config.write_timeout_sec,
            health_timeout=config.health_timeout_sec,
        )

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            raise CloudUnavailableError(f"{method} {table} timed out: {e}") from e
        except httpx.TransportError as e:
            raise CloudUnavailableError(f"{method} {table} failed: {e}") from e

        status = response.status_code
        if status >= 500 or status in TRANSIENT_STATUS:
            raise CloudUnavailableError(
                f"{method} {table} returned {status}: {response.text[:200]}", status
            )
        if status == 409:
            raise CloudDuplicateError(f"{method} {table} conflict: {response.text[:200]}", status)
        if status >= 400:
            raise CloudRequestError(
                f"{method} {table} rejected with {status}: {response.text[:200]}", status
            )
        if not response.content:
            return []
        return response.json()

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, row: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._request("POST", table, json=row, prefer="return=representation")

    async def upsert(self, table: str, row: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._request(
            "POST", table, json=row,
            prefer="resolution=merge-duplicates,return=representation",
        )

    async def update(self, table: str, row_id: str, values: dict[str, Any]) -> list[dict[str, Any]]:
        """PATCH one row. An empty result means no row had that id."""
        return await self._request(
            "PATCH", table, params={"id": eq(row_id)}, json=values, prefer="return=representation"
        )

    async def delete(self, table: str, row_id: str) -> list[dict[str, Any]]:
        return await self.delete_where(table, {"id": eq(row_id)})

    async def delete_where(self, table: str, filters: dict[str, str]) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        return await self._request("DELETE", table, params=filters, prefer="return=representation")

    async def health_check(self) -> bool:
        """Race a one-row read against ``health_timeout``. Timeout counts as down."""
        try:
            await asyncio.wait_for(
                self.select(HEALTH_TABLE, {"select": "id"}, limit=1),
                timeout=self.health_timeout,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning("Cloud health check timed out after %.1fs", self.health_timeout)
            return False
        except CloudError as e:
            logger.warning("Cloud health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        await self._client.aclose()

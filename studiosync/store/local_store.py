"""
Query-builder front end of the local store.

SQLAlchemy Core statements are compiled here into ``(sql, positional
params)`` pairs and shipped across the bridge. Nothing on this side holds a
database connection.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from sqlalchemy import Table, select
from sqlalchemy.dialects import sqlite
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.sql import ClauseElement

from studiosync.logging_context import get_op_logger
from studiosync.store.bridge import BridgeClient
from studiosync.store.tables import metadata

logger = get_op_logger(__name__)

_dialect = sqlite.dialect(paramstyle="qmark")


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    parameters: tuple


def compile_query(statement: ClauseElement) -> CompiledQuery:
    """Compile a Core statement for SQLite with ``?`` placeholders."""
    compiled = statement.compile(dialect=_dialect)
    names = getattr(compiled, "positiontup", None) or ()
    params = compiled.params
    return CompiledQuery(sql=str(compiled), parameters=tuple(params[name] for name in names))


class LocalStore:
    """
    Async facade over a ``BridgeClient``.

    Statements issued outside a transaction wait for any open transaction to
    finish, so concurrent tasks never interleave with a half-applied group of
    writes.
    """

    def __init__(self, bridge: BridgeClient) -> None:
        self.bridge = bridge
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None

    @property
    def available(self) -> bool:
        return self.bridge.available

    async def init_schema(self) -> None:
        async with self.transaction():
            for table in metadata.sorted_tables:
                ddl = CreateTable(table, if_not_exists=True).compile(dialect=_dialect)
                await self.bridge.query(str(ddl).strip())
                for index in table.indexes:
                    ddl = CreateIndex(index, if_not_exists=True).compile(dialect=_dialect)
                    await self.bridge.query(str(ddl).strip())
        logger.info("Local schema ready (%d tables)", len(metadata.sorted_tables))

    async def run(self, query: CompiledQuery) -> list[dict[str, Any]]:
        logger.debug("SQL %s %s", query.sql, query.parameters)
        if self._in_transaction():
            return await self.bridge.query(query.sql, query.parameters)
        async with self._lock:
            return await self.bridge.query(query.sql, query.parameters)

    async def fetch_all(self, statement: ClauseElement) -> list[dict[str, Any]]:
        return await self.run(compile_query(statement))

    async def fetch_one(self, statement: ClauseElement) -> Optional[dict[str, Any]]:
        rows = await self.fetch_all(statement)
        return rows[0] if rows else None

    async def execute(self, statement: ClauseElement) -> None:
        await self.run(compile_query(statement))

    async def get(self, table: Table, row_id: str) -> Optional[dict[str, Any]]:
        return await self.fetch_one(select(table).where(table.c.id == row_id))

    async def upsert(self, table: Table, row: dict[str, Any]) -> None:
        """Insert ``row`` or update the existing row with the same id."""
        values = {key: value for key, value in row.items() if key in table.c}
        stmt = sqlite.insert(table).values(**values)
        updates = {key: stmt.excluded[key] for key in values if key != "id"}
        if updates:
            stmt = stmt.on_conflict_do_update(index_elements=[table.c.id], set_=updates)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=[table.c.id])
        await self.execute(stmt)

    def _in_transaction(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["LocalStore"]:
        """Group statements atomically. Nested calls join the outer transaction."""
        if self._in_transaction():
            yield self
            return
        async with self._lock:
            self._owner = asyncio.current_task()
            try:
                await self.bridge.begin()
                try:
                    yield self
                except BaseException:
                    await self.bridge.rollback()
                    raise
                await self.bridge.commit()
            finally:
                self._owner = None

    async def close(self) -> None:
        await self.bridge.close()

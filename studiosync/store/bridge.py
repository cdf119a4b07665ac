"""
Process boundary between the application and the embedded SQL engine.

The privileged side (``DatabaseBridge``) owns the SQLite connection and
answers ``(sql, positional params) -> rows`` messages. Application code only
talks to a ``BridgeClient``:

- ``ProcessBridge`` runs the privileged side in a child process and
  exchanges messages over a pipe.
- ``InProcessBridge`` runs it in a worker thread of the current process
  (tests, single-process tools).
- ``UnavailableBridge`` stands in when no privileged endpoint exists; every
  query returns no rows and every write is a no-op.

Transactions are forwarded as explicit ``begin`` / ``commit`` / ``rollback``
messages so a group of statements is applied atomically.
"""

import asyncio
import logging
import multiprocessing
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

from studiosync.errors import LocalStoreError

logger = logging.getLogger(__name__)

QUERY = "query"
BEGIN = "begin"
COMMIT = "commit"
ROLLBACK = "rollback"
CLOSE = "close"


class DatabaseBridge:
    """Privileged executor. Never raises; failures come back as error replies."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, isolation_level=None, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        op = message.get("op", QUERY)
        try:
            if op == QUERY:
                return {"success": True, "rows": self._query(message["sql"], message.get("params") or ())}
            if op == BEGIN:
                self._conn.execute("BEGIN IMMEDIATE")
            elif op == COMMIT:
                self._conn.execute("COMMIT")
            elif op == ROLLBACK:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
            elif op == CLOSE:
                self._conn.close()
            else:
                return {"success": False, "error": f"Unknown bridge operation: {op}"}
            return {"success": True, "rows": []}
        except sqlite3.Error as e:
            return {"success": False, "error": f"{type(e).__name__}: {e}"}

    def _query(self, sql: str, params: Any) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, tuple(params))
        if cursor.description is None:
            return []
        columns = [col[0] for col in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _serve(conn, db_path: str) -> None:
    """Child-process loop: answer messages until CLOSE or the pipe closes."""
    bridge = DatabaseBridge(db_path)
    while True:
        try:
            message = conn.recv()
        except EOFError:
            break
        reply = bridge.handle(message)
        conn.send(reply)
        if message.get("op") == CLOSE:
            break
    conn.close()


class BridgeClient(ABC):
    """Application-side handle on the privileged executor."""

    available: bool = True

    @abstractmethod
    async def _call(self, message: dict[str, Any]) -> dict[str, Any]:
        ...

    async def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        reply = await self._call({"op": QUERY, "sql": sql, "params": list(params)})
        if not reply.get("success"):
            raise LocalStoreError(f"{reply.get('error')} [{sql}]")
        return reply.get("rows") or []

    async def begin(self) -> None:
        await self._control(BEGIN)

    async def commit(self) -> None:
        await self._control(COMMIT)

    async def rollback(self) -> None:
        await self._control(ROLLBACK)

    async def close(self) -> None:
        await self._control(CLOSE)

    async def _control(self, op: str) -> None:
        reply = await self._call({"op": op})
        if not reply.get("success"):
            raise LocalStoreError(f"{op} failed: {reply.get('error')}")


class InProcessBridge(BridgeClient):
    """Runs the executor in a worker thread; calls are serialized by a lock."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._bridge = DatabaseBridge(db_path)
        self._lock = threading.Lock()

    def _roundtrip(self, message: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            return self._bridge.handle(message)

    async def _call(self, message: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._roundtrip, message)


class ProcessBridge(BridgeClient):
    """Runs the executor in a spawned child process connected by a pipe."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = None
        self._process: Optional[multiprocessing.Process] = None

    def start(self) -> None:
        if self._process is not None:
            return
        ctx = multiprocessing.get_context("spawn")
        parent_conn, child_conn = ctx.Pipe()
        self._process = ctx.Process(
            target=_serve, args=(child_conn, self.db_path), name="local-store", daemon=True
        )
        self._process.start()
        child_conn.close()
        self._conn = parent_conn
        logger.info("Local store process started (pid=%s, db=%s)", self._process.pid, self.db_path)

    @property
    def available(self) -> bool:  # type: ignore[override]
        return self._process is not None and self._process.is_alive()

    def _roundtrip(self, message: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._conn.send(message)
            return self._conn.recv()

    async def _call(self, message: dict[str, Any]) -> dict[str, Any]:
        if self._conn is None:
            self.start()
        try:
            return await asyncio.to_thread(self._roundtrip, message)
        except (EOFError, BrokenPipeError, OSError) as e:
            logger.warning("Local store process unreachable (%s), returning no rows", e)
            return {"success": True, "rows": []}

    async def close(self) -> None:
        if self._process is None:
            return
        if self._process.is_alive():
            await super().close()
        self._process.join(timeout=5)
        self._process = None
        self._conn = None


class UnavailableBridge(BridgeClient):
    """No privileged endpoint: reads are empty, writes are dropped."""

    available = False

    def __init__(self) -> None:
        self._warned = False

    async def _call(self, message: dict[str, Any]) -> dict[str, Any]:
        if not self._warned:
            logger.warning("Local store is not available in this context; running without local backing")
            self._warned = True
        return {"success": True, "rows": []}


def create_bridge(mode: str, db_path: str) -> BridgeClient:
    """Build the bridge named by ``LOCAL_BRIDGE_MODE``."""
    if mode == "process":
        return ProcessBridge(db_path)
    if mode == "inline":
        return InProcessBridge(db_path)
    if mode == "disabled":
        return UnavailableBridge()
    raise ValueError(f"Unknown bridge mode: {mode!r}")

"""
Drain loop for the outbound sync queue.

One drain pass runs at a time. Within a pass, entries are grouped by
(entity, id): groups run concurrently, entries inside a group run strictly
in enqueue order, and a group stops at its first transient failure so a
later write to the same row can never land before an earlier one.

Drains are triggered by ``request_sync()`` (manual), reconnect events and
the periodic scheduler, which backs off exponentially while passes keep
failing.
"""

import asyncio
import inspect
from collections import OrderedDict
from typing import Any, Callable, Optional

from studiosync.cloud.client import CloudRequestError, CloudUnavailableError
from studiosync.cloud.connectivity import Connectivity
from studiosync.config import SyncConfig, settings
from studiosync.logging_context import get_op_logger, new_operation_id
from studiosync.schemas.sync_schema import DrainReport, SyncQueueEntry
from studiosync.store.locks import KeyedLock
from studiosync.sync.conflicts import ConflictResolver
from studiosync.sync.pusher import CloudPusher, PushOutcome
from studiosync.sync.queue import SyncQueue

logger = get_op_logger(__name__)

SyncListener = Callable[[DrainReport], Any]

DONE = "done"
RETRY = "retry"
DEAD = "dead"
DEFERRED = "deferred"


class SyncEngine:
    def __init__(
        self,
        queue: SyncQueue,
        connectivity: Connectivity,
        pusher: Optional[CloudPusher],
        resolver: Optional[ConflictResolver] = None,
        config: SyncConfig = settings.sync,
    ) -> None:
        self.queue = queue
        self.connectivity = connectivity
        self.pusher = pusher
        self.resolver = resolver
        self.config = config
        self._drain_lock = asyncio.Lock()
        self._entity_locks = KeyedLock()
        self._listeners: list[SyncListener] = []
        self._follow_up: Optional[asyncio.Task] = None
        self._scheduler: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()
        self._background: set[asyncio.Task] = set()
        self.consecutive_failures = 0
        connectivity.on_change(self._on_connectivity_change)

    # -- events ---------------------------------------------------------

    def on_sync_complete(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    def _emit(self, report: DrainReport) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(report)
            except Exception:
                logger.exception("sync-complete listener failed")
                continue
            if inspect.isawaitable(result):
                self._track(asyncio.ensure_future(result))

    def _track(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_connectivity_change(self, online: bool) -> Any:
        if not online:
            return None
        if self._scheduler is not None:
            self._wake.set()
            return None
        return self.drain()

    # -- draining -------------------------------------------------------

    async def drain(self) -> DrainReport:
        """Run one pass over all pending entries."""
        if self.pusher is None or not self.connectivity.online:
            stats = await self.queue.stats()
            return DrainReport(skipped=True, remaining=stats["pending"])
        if self._drain_lock.locked():
            self._schedule_follow_up()
            return DrainReport(skipped=True)

        async with self._drain_lock:
            new_operation_id("drain")
            entries = await self.queue.pending()
            report = DrainReport()
            if entries:
                logger.info("Draining %d queued entries", len(entries))
                groups: "OrderedDict[tuple[str, str], list[SyncQueueEntry]]" = OrderedDict()
                for entry in entries:
                    groups.setdefault(entry.key, []).append(entry)
                outcomes = await asyncio.gather(*(self._drain_group(g) for g in groups.values()))
                for group_outcomes in outcomes:
                    for outcome in group_outcomes:
                        if outcome == DONE:
                            report.processed += 1
                        elif outcome == DEFERRED:
                            report.processed += 1
                            report.deferred += 1
                        elif outcome == DEAD:
                            report.dead_lettered += 1
                        else:
                            report.failed += 1
            report.remaining = (await self.queue.stats())["pending"]

        self.consecutive_failures = self.consecutive_failures + 1 if report.failed else 0
        if entries:
            logger.info(
                "Drain finished: %d processed, %d failed, %d dead-lettered, %d remaining",
                report.processed, report.failed, report.dead_lettered, report.remaining,
            )
        self._emit(report)
        return report

    async def _drain_group(self, entries: list[SyncQueueEntry]) -> list[str]:
        outcomes = []
        async with self._entity_locks.hold(entries[0].key):
            for entry in entries:
                outcome = await self._apply(entry)
                outcomes.append(outcome)
                if outcome == RETRY:
                    break
        return outcomes

    async def _apply(self, entry: SyncQueueEntry) -> str:
        try:
            result = await self.pusher.push(
                entry.entity, entry.action, entry.entity_id, entry.data, entry.base_version
            )
        except CloudUnavailableError as e:
            retries = await self.queue.record_failure(entry.id, str(e))
            if self.config.max_retries and retries >= self.config.max_retries:
                await self.queue.mark_failed(entry.id, f"gave up after {retries} attempts: {e}")
                return DEAD
            logger.warning(
                "Sync of %s %s failed (attempt %d): %s",
                entry.entity.value, entry.entity_id, retries, e,
            )
            return RETRY
        except CloudRequestError as e:
            await self.queue.mark_failed(entry.id, str(e))
            return DEAD

        if result.outcome == PushOutcome.DEFERRED and self.resolver is not None:
            await self.resolver.defer(entry.data, result.stored)
        await self.queue.dequeue(entry.id)
        return DEFERRED if result.outcome == PushOutcome.DEFERRED else DONE

    def _schedule_follow_up(self) -> None:
        """A drain was requested mid-pass: run exactly one more pass shortly."""
        if self._follow_up is not None and not self._follow_up.done():
            return
        self._follow_up = asyncio.create_task(self._delayed_drain(self.config.busy_retry_delay_sec))

    async def _delayed_drain(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._follow_up = None
        await self.drain()

    # -- scheduling -----------------------------------------------------

    def next_delay(self) -> float:
        """Seconds until the next periodic pass."""
        if self.consecutive_failures == 0:
            return self.config.interval_sec
        backoff = self.config.backoff_base_sec * (2 ** (self.consecutive_failures - 1))
        return min(backoff, self.config.backoff_max_sec)

    def request_sync(self) -> None:
        """Ask the scheduler for a pass now (manual sync button)."""
        self._wake.set()

    def start(self) -> None:
        if self._scheduler is None:
            self._scheduler = asyncio.create_task(self._run(), name="sync-scheduler")
            logger.info("Sync scheduler started (interval=%.0fs)", self.config.interval_sec)

    async def stop(self) -> None:
        tasks = [t for t in (self._scheduler, self._follow_up) if t is not None]
        self._scheduler = None
        self._follow_up = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, *self._background, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.next_delay())
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            try:
                if not self.connectivity.online:
                    await self.connectivity.probe()
                if self.connectivity.online:
                    await self.drain()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled sync pass failed")
                self.consecutive_failures += 1

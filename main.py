"""
Studio sync command-line entry point.

Opens the local store, probes the cloud and runs one maintenance action.
Useful for cron jobs and for inspecting a workstation's sync state.

Usage:
    Create schema:        python main.py init
    Drain the queue:      python main.py sync
    Retry dead letters:   python main.py sync --revive
    Retention sweep:      python main.py purge --days 30
    Queue status:         python main.py status
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from studiosync.app import StudioApp
from studiosync.config import settings

logger = logging.getLogger(__name__)


async def _init(app: StudioApp, args: argparse.Namespace) -> int:
    print(f"Local store ready at {settings.store.db_path}")
    return 0


async def _sync(app: StudioApp, args: argparse.Namespace) -> int:
    if args.revive:
        revived = await app.queue.revive_failed()
        print(f"Revived {revived} dead-lettered entries")
    report = await app.engine.drain()
    if report.skipped:
        print(f"Cloud unreachable; {report.remaining} entries still queued")
        return 1
    print(
        f"Synced {report.processed} entries "
        f"({report.deferred} deferred for review, {report.failed} failed, "
        f"{report.dead_lettered} dead-lettered); {report.remaining} remaining"
    )
    return 0 if report.failed == 0 else 1


async def _purge(app: StudioApp, args: argparse.Namespace) -> int:
    purged = await app.lifecycle.sweep(args.days)
    if not purged:
        print("Nothing to purge")
    for entity, count in purged.items():
        print(f"Purged {count} {entity} rows")
    return 0


async def _status(app: StudioApp, args: argparse.Namespace) -> int:
    stats = await app.queue.stats()
    conflicts = await app.resolver.pending()
    print(f"Cloud:      {'online' if app.connectivity.online else 'offline'}")
    print(f"Pending:    {stats['pending']}")
    print(f"Failed:     {stats['failed']}")
    for entity, counts in sorted(stats["by_entity"].items()):
        print(f"  {entity:<16} {counts.get('pending', 0)} pending, {counts.get('failed', 0)} failed")
    print(f"Conflicts:  {len(conflicts)} awaiting a manager")
    return 0


COMMANDS = {"init": _init, "sync": _sync, "purge": _purge, "status": _status}


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Studio local-first sync maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="create the local schema")
    sync = sub.add_parser("sync", help="drain the outbound queue once")
    sync.add_argument("--revive", action="store_true", help="retry dead-lettered entries first")
    purge = sub.add_parser("purge", help="permanently remove rows deleted past retention")
    purge.add_argument("--days", type=int, default=None, help="override the retention window")
    sub.add_parser("status", help="show queue and conflict counts")
    return parser


async def run(argv: Optional[list[str]] = None) -> int:
    args = _parser().parse_args(argv)
    app = await StudioApp.open()
    try:
        return await COMMANDS[args.command](app, args)
    finally:
        await app.close()


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()

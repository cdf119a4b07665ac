from studiosync.sync.conflicts import (
    ConflictResolver, EditStamp, Resolution, ResolutionPolicy, check_edit, resolve,
)
from studiosync.sync.dual_write import DualWriter
from studiosync.sync.engine import SyncEngine
from studiosync.sync.mirror import MirrorFetcher
from studiosync.sync.pusher import CloudPusher, PushOutcome, PushResult
from studiosync.sync.queue import SyncQueue

__all__ = [
    "ConflictResolver", "EditStamp", "Resolution", "ResolutionPolicy", "check_edit", "resolve",
    "DualWriter", "SyncEngine", "MirrorFetcher", "CloudPusher", "PushOutcome", "PushResult",
    "SyncQueue",
]

from studiosync.store.bridge import (
    BridgeClient, InProcessBridge, ProcessBridge, UnavailableBridge, create_bridge,
)
from studiosync.store.local_store import CompiledQuery, LocalStore, compile_query
from studiosync.store.locks import KeyedLock

__all__ = [
    "BridgeClient", "InProcessBridge", "ProcessBridge", "UnavailableBridge", "create_bridge",
    "CompiledQuery", "LocalStore", "compile_query", "KeyedLock",
]

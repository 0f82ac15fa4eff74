"""Offline mode for point registration.

Clock events captured without connectivity (or during a transient write
failure) are queued locally, survive restarts, and sync when the network
comes back. The employee always gets an immediate provisional record.

Usage:
    from pontoflex.offline import OfflineQueue, JsonFileStore, SocketProbeNetwork

    queue = OfflineQueue(JsonFileStore("~/.pontoflex"), remote, SocketProbeNetwork())
    await queue.start()

    # Queue a clock event
    pending = await queue.enqueue(RegistrationAttempt(...))

    # Check queue status
    status = await queue.get_sync_status()
"""
from pontoflex.offline.models import (
    AuthMethod,
    DeadLetter,
    DrainResult,
    PendingRegistration,
    RegistrationAttempt,
)
from pontoflex.offline.network import (
    ManualNetwork,
    NetworkStatus,
    SocketProbeNetwork,
    is_reachable,
)
from pontoflex.offline.queue import OfflineQueue
from pontoflex.offline.remote import (
    ErrorKind,
    InsertResult,
    MemoryRemoteStore,
    RemoteError,
    RestRemoteStore,
)
from pontoflex.offline.store import JsonFileStore, MemoryStore, StoreError

__all__ = [
    # Records
    "AuthMethod",
    "DeadLetter",
    "DrainResult",
    "PendingRegistration",
    "RegistrationAttempt",
    # Queue
    "OfflineQueue",
    # Network
    "ManualNetwork",
    "NetworkStatus",
    "SocketProbeNetwork",
    "is_reachable",
    # Remote
    "ErrorKind",
    "InsertResult",
    "MemoryRemoteStore",
    "RemoteError",
    "RestRemoteStore",
    # Local store
    "JsonFileStore",
    "MemoryStore",
    "StoreError",
]

"""Offline point-registration queue.

Buffers clock events that could not be confirmed against the remote store,
keeps them in a local persistent store across restarts, and drains them
when connectivity returns or right after a new item is queued online.

Guarantees:
- Items are stamped with the time the employee acted, not the sync time
- Queue order is insertion order, kept through partial-failure drains
- Only one drain runs at a time; overlapping requests are dropped
- Every queue mutation is an atomic store update, so an enqueue during a
  drain is never overwritten by the drain's final persist

Usage:
    queue = OfflineQueue(store, remote, network)
    await queue.start()
    pending = await queue.enqueue(RegistrationAttempt(...))
    ...
    await queue.stop()
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from pontoflex.config import features
from pontoflex.config.sync import SyncConfig
from pontoflex.core.constants import (
    DEAD_LETTER_KEY,
    DEFAULT_PEEK,
    DEFAULT_STALE_DAYS,
    LAST_SYNC_KEY,
    PENDING_SYNC_KEY,
)
from pontoflex.core.receipt import emit_receipt, utc_now_iso
from pontoflex.core.schemas import validate_pending
from pontoflex.offline.models import (
    DeadLetter,
    DrainResult,
    PendingRegistration,
    RegistrationAttempt,
)
from pontoflex.offline.network import NetworkProvider, NetworkStatus
from pontoflex.offline.remote import ErrorKind, RemoteError, RemoteStore
from pontoflex.offline.store import LocalStore, StoreError

logger = logging.getLogger("pontoflex.offline")


def _valid_entries(raw) -> list[dict]:
    """Stored queue value as a list of valid item dicts.

    Missing or non-list values read as an empty queue. Entries that fail
    validation are dropped with a warning.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(f"Stored queue is {type(raw).__name__}, not a list; treating as empty")
        return []

    entries = [entry for entry in raw if validate_pending(entry)]
    if len(entries) != len(raw):
        logger.warning(f"Skipped {len(raw) - len(entries)} malformed queue entries")
    return entries


def _same_kind(moment: datetime, like: datetime) -> datetime:
    """moment as aware or naive to match like. Naive values are local time."""
    if like.tzinfo is None and moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    if like.tzinfo is not None and moment.tzinfo is None:
        return moment.astimezone()
    return moment


def _valid_dead_letters(raw) -> list[dict]:
    if not isinstance(raw, list):
        return []
    return [
        entry for entry in raw
        if isinstance(entry, dict)
        and validate_pending(entry.get("registration"))
        and all(isinstance(entry.get(k), str) for k in ("error_kind", "error_message", "failed_at"))
    ]


class OfflineQueue:
    """Durable queue of pending clock events with network-triggered drain."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStore,
        network: NetworkProvider,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.remote = remote
        self.network = network
        self.config = config or SyncConfig()
        self.clock = clock
        self._syncing = False
        self._listener_handle: Optional[int] = None
        self._tasks: set[asyncio.Task] = set()

    # -- lifecycle ---------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._listener_handle is not None

    @property
    def syncing(self) -> bool:
        return self._syncing

    async def start(self) -> None:
        """Subscribe to network changes and drain once if already online."""
        if self.started:
            return
        self._listener_handle = self.network.add_listener(self._on_network_change)
        logger.info("Offline queue listening for network changes")

        status = await self.network.get_status()
        if status.connected:
            self._schedule_drain()

    async def stop(self) -> None:
        """Unsubscribe and wait for scheduled drains to finish."""
        if self._listener_handle is not None:
            self.network.remove_listener(self._listener_handle)
            self._listener_handle = None
            logger.info("Offline queue stopped")
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until every drain scheduled by this queue has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _on_network_change(self, status: NetworkStatus) -> None:
        if status.connected:
            logger.info("Network restored, scheduling sync")
            self._schedule_drain()

    def _schedule_drain(self) -> None:
        task = asyncio.get_running_loop().create_task(self._background_drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _background_drain(self) -> None:
        try:
            await self.drain()
        except StoreError as e:
            logger.error(f"Background sync aborted, queue left unchanged: {e}")
        except Exception:
            logger.exception("Background sync failed")

    # -- queue operations --------------------------------------------------

    async def enqueue(self, attempt: RegistrationAttempt) -> PendingRegistration:
        """Append a clock event to the durable queue.

        The item is stamped from the local clock now. When the network is
        reported connected, a drain is scheduled right away.

        Args:
            attempt: Employee, company, auth method and optional location

        Returns:
            The provisional PendingRegistration

        Raises:
            StoreError: The item could not be persisted
        """
        pending = PendingRegistration.from_attempt(attempt, self.clock())
        entry = pending.to_dict()

        try:
            stored = await self.store.update(
                PENDING_SYNC_KEY,
                lambda current: _valid_entries(current) + [entry],
            )
        except StoreError as e:
            logger.error(f"Could not queue registration for {pending.employee_id}: {e}")
            raise

        emit_receipt("offline_enqueue", {
            "tenant_id": pending.company_id,
            "offline_id": pending.offline_id,
            "employee_id": pending.employee_id,
            "reference_date": pending.reference_date,
            "reference_time": pending.reference_time,
            "queue_size": len(stored),
        })

        if features.FEATURE_DRAIN_ON_ENQUEUE:
            status = await self.network.get_status()
            if status.connected:
                self._schedule_drain()

        return pending

    async def get_queue(self) -> list[PendingRegistration]:
        """Current durable queue contents, oldest first."""
        raw = await self.store.get(PENDING_SYNC_KEY)
        return [PendingRegistration.from_dict(entry) for entry in _valid_entries(raw)]

    async def size(self) -> int:
        return len(await self.get_queue())

    async def peek(self, n: int = DEFAULT_PEEK) -> list[PendingRegistration]:
        """Oldest n items without removing them."""
        return (await self.get_queue())[:n]

    async def pending_for(self, employee_id: str, reference_date: str) -> list[PendingRegistration]:
        """Pending items of one employee on one day."""
        return [
            p for p in await self.get_queue()
            if p.employee_id == employee_id and p.reference_date == reference_date
        ]

    async def get_stale(self, max_age_days: int = DEFAULT_STALE_DAYS) -> list[PendingRegistration]:
        """Items queued more than max_age_days ago, for manual resolution."""
        cutoff = self.clock() - timedelta(days=max_age_days)
        stale = []
        for p in await self.get_queue():
            if p.queued_at:
                queued = datetime.fromisoformat(p.queued_at)
            else:
                queued = datetime.fromisoformat(f"{p.reference_date}T{p.reference_time}")
            if queued < _same_kind(cutoff, queued):
                stale.append(p)
        return stale

    async def clear(self) -> int:
        """Drop every pending item. Returns how many were removed."""
        removed: list[int] = []

        def _clear(current):
            removed.append(len(_valid_entries(current)))
            return []

        await self.store.update(PENDING_SYNC_KEY, _clear)
        emit_receipt("queue_cleared", {"cleared_count": removed[0]})
        logger.info(f"Cleared {removed[0]} pending registrations")
        return removed[0]

    # -- dead letters ------------------------------------------------------

    async def get_dead_letters(self) -> list[DeadLetter]:
        raw = await self.store.get(DEAD_LETTER_KEY)
        return [DeadLetter.from_dict(entry) for entry in _valid_dead_letters(raw)]

    async def retry_dead_letters(self) -> int:
        """Move dead letters back to the tail of the queue with a fresh attempt count."""
        moved: list[dict] = []

        def _take(current):
            moved.extend(_valid_dead_letters(current))
            return []

        await self.store.update(DEAD_LETTER_KEY, _take)
        if not moved:
            return 0

        revived = []
        for entry in moved:
            registration = dict(entry["registration"])
            registration["attempts"] = 0
            registration["last_error"] = None
            revived.append(registration)

        await self.store.update(
            PENDING_SYNC_KEY,
            lambda current: _valid_entries(current) + revived,
        )
        logger.info(f"Requeued {len(revived)} dead-lettered registrations")
        return len(revived)

    # -- sync --------------------------------------------------------------

    async def get_sync_status(self) -> dict:
        """Pending and dead-letter counts, last sync and connectivity."""
        status = await self.network.get_status()
        last_sync = await self.store.get(LAST_SYNC_KEY) or {}
        return {
            "pending_count": await self.size(),
            "dead_letter_count": len(await self.get_dead_letters()),
            "last_sync_time": last_sync.get("ts"),
            "last_sync_batch_id": last_sync.get("batch_id"),
            "syncing": self._syncing,
            "connected": status.connected,
        }

    async def drain(self) -> DrainResult:
        """Try to write every queued item to the remote store.

        Items are attempted one at a time, oldest first. Succeeded items are
        removed; failed items stay in place for the next drain unless the
        failure is permanent, in which case they move to the dead letters.
        A call while another drain is running returns a skipped result.

        Returns:
            DrainResult for this pass

        Raises:
            StoreError: The local store could not be read or written
        """
        if self._syncing:
            logger.debug("Sync already in progress, skipping")
            return DrainResult(skipped=True)

        self._syncing = True
        try:
            return await self._drain_snapshot()
        finally:
            self._syncing = False

    async def _attempt(self, item: PendingRegistration) -> Optional[RemoteError]:
        row = item.to_remote_row(utc_now_iso())
        try:
            result = await self.remote.insert(self.config.table, row)
        except RemoteError as e:
            return e
        except Exception as e:
            return RemoteError(ErrorKind.UNKNOWN, str(e))
        if result.ok:
            return None
        return result.error or RemoteError(ErrorKind.UNKNOWN, "insert failed without error")

    def _should_dead_letter(self, item: PendingRegistration, error: RemoteError) -> bool:
        if not features.FEATURE_DEAD_LETTER_ENABLED:
            return False
        if not error.retryable:
            return True
        max_attempts = self.config.max_attempts
        return max_attempts is not None and item.attempts >= max_attempts

    async def _drain_snapshot(self) -> DrainResult:
        snapshot = await self.get_queue()
        if not snapshot:
            return DrainResult()

        result = DrainResult(batch_id=str(uuid.uuid4()), attempted=len(snapshot))
        logger.info(f"Syncing {len(snapshot)} pending registrations")

        retained: dict[str, dict] = {}
        dead_letters: list[DeadLetter] = []

        for item in snapshot:
            error = await self._attempt(item)
            if error is None:
                result.synced.append(item.offline_id)
                continue

            item.attempts += 1
            item.last_error = error.message
            logger.warning(f"Sync failed for {item.offline_id} ({error.kind}): {error.message}")
            emit_receipt("offline_sync_item_failed", {
                "tenant_id": item.company_id,
                "offline_id": item.offline_id,
                "error_kind": error.kind,
                "error_message": error.message,
                "attempts": item.attempts,
            })

            if self._should_dead_letter(item, error):
                result.dead.append(item.offline_id)
                dead_letters.append(DeadLetter(
                    registration=item,
                    error_kind=error.kind,
                    error_message=error.message,
                    failed_at=utc_now_iso(),
                ))
                emit_receipt("offline_dead_letter", {
                    "tenant_id": item.company_id,
                    "offline_id": item.offline_id,
                    "error_kind": error.kind,
                    "error_message": error.message,
                })
            else:
                result.retained.append(item.offline_id)
                retained[item.offline_id] = item.to_dict()

        # Dead letters are written before removal from the queue: a crash in
        # between duplicates an item, never loses it.
        if dead_letters:
            new_dead = [d.to_dict() for d in dead_letters]
            await self.store.update(
                DEAD_LETTER_KEY,
                lambda current: _valid_dead_letters(current) + new_dead,
            )

        removed = set(result.synced) | set(result.dead)

        def _persist_survivors(current):
            survivors = []
            for entry in _valid_entries(current):
                offline_id = entry["offline_id"]
                if offline_id in removed:
                    continue
                survivors.append(retained.get(offline_id, entry))
            return survivors

        await self.store.update(PENDING_SYNC_KEY, _persist_survivors)
        await self.store.set(LAST_SYNC_KEY, {"ts": utc_now_iso(), "batch_id": result.batch_id})

        emit_receipt("offline_sync", {
            "batch_id": result.batch_id,
            "attempted": result.attempted,
            "synced_count": len(result.synced),
            "retained_count": len(result.retained),
            "dead_count": len(result.dead),
        })

        if result.retained or result.dead:
            logger.warning(f"{len(result.retained) + len(result.dead)} registrations failed to sync")
        else:
            logger.info("Sync completed successfully")

        return result

"""Local persistent key-value stores for the offline queue.

Every store exposes the same async surface:
    get(key) -> value | None
    set(key, value)
    update(key, fn) -> new value   (atomic read-modify-write)

Values are JSON-serializable. update() is the only way the queue mutates
its keys, so an enqueue can never be overwritten by a concurrent drain.
"""
import asyncio
import copy
import fcntl
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger("pontoflex.store")


class StoreError(Exception):
    """Local persistence failed. The operation did not take effect."""
    pass


class LocalStore(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def update(self, key: str, fn: Callable[[Optional[Any]], Any]) -> Any: ...


class MemoryStore:
    """In-process store. Survives queue reconstruction, not process exit."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = copy.deepcopy(value)

    async def update(self, key: str, fn: Callable[[Optional[Any]], Any]) -> Any:
        async with self._lock:
            new_value = fn(copy.deepcopy(self._data.get(key)))
            self._data[key] = copy.deepcopy(new_value)
            return copy.deepcopy(new_value)


class JsonFileStore:
    """Directory-backed store: one JSON document per key.

    Writes go to a temp file then os.replace, so a crash leaves either the
    old or the new document. An asyncio.Lock serializes writers in this
    process and an fcntl lock serializes writers across processes.

    Attributes:
        path: Directory holding <key>.json files
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _file(self, key: str) -> Path:
        return self.path / f"{key}.json"

    def _read(self, key: str) -> Optional[Any]:
        file = self._file(key)
        if not file.exists():
            return None
        try:
            with open(file, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Corrupt value for key {key} in {file}, treating as missing")
            return None
        except OSError as e:
            raise StoreError(f"Read failed for {key}: {e}") from e

    def _write(self, key: str, value: Any) -> None:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, indent=2, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._file(key))
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Write failed for {key}: {e}") from e

    def _locked(self, key: str, op: Callable[[], Any]) -> Any:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            lock_file = open(self.path / f".{key}.lock", "a")
        except OSError as e:
            raise StoreError(f"Lock failed for {key}: {e}") from e

        with lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                return op()
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _update_sync(self, key: str, fn: Callable[[Optional[Any]], Any]) -> Any:
        def op():
            new_value = fn(self._read(key))
            self._write(key, new_value)
            return new_value
        return self._locked(key, op)

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            await asyncio.to_thread(self._locked, key, lambda: self._write(key, value))

    async def update(self, key: str, fn: Callable[[Optional[Any]], Any]) -> Any:
        async with self._lock:
            return await asyncio.to_thread(self._update_sync, key, fn)

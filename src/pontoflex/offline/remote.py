"""Remote data store clients.

insert() never raises: it returns an InsertResult carrying a typed
RemoteError so the drain loop can tell transient failures (retry later)
from permanent ones (dead letter). select() raises RemoteError.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

import requests

from pontoflex.core.constants import DEFAULT_REQUEST_TIMEOUT_S, TRANSPORT_HTTP_STATUSES

logger = logging.getLogger("pontoflex.remote")


class ErrorKind:
    """Remote failure classes."""
    TRANSPORT = "transport"  # network down, timeout, 5xx: retry
    PERMANENT = "permanent"  # rejected by the server (4xx, duplicate key): do not retry
    UNKNOWN = "unknown"  # anything else: retry


class RemoteError(Exception):
    """Typed remote failure."""

    def __init__(self, kind: str, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code

    @property
    def retryable(self) -> bool:
        return self.kind != ErrorKind.PERMANENT

    def __repr__(self) -> str:
        return f"RemoteError({self.kind!r}, {self.message!r}, code={self.code!r})"


@dataclass
class InsertResult:
    ok: bool
    row: Optional[dict] = None
    error: Optional[RemoteError] = None


class RemoteStore(Protocol):
    async def insert(self, table: str, row: dict) -> InsertResult: ...

    async def select(
        self,
        table: str,
        filters: dict,
        order: Optional[str] = None,
    ) -> list[dict]: ...


def classify_status(status_code: int) -> str:
    """Map an HTTP status to an ErrorKind."""
    if status_code >= 500 or status_code in TRANSPORT_HTTP_STATUSES:
        return ErrorKind.TRANSPORT
    if 400 <= status_code < 500:
        return ErrorKind.PERMANENT
    return ErrorKind.UNKNOWN


class RestRemoteStore:
    """PostgREST-style client (Supabase REST API) built on requests.

    Blocking requests calls run in a worker thread so the event loop is
    never blocked.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @staticmethod
    def _error_from_response(response: requests.Response) -> RemoteError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        code = body.get("code") or str(response.status_code)
        return RemoteError(classify_status(response.status_code), message, code)

    def _insert_sync(self, table: str, row: dict) -> InsertResult:
        try:
            response = self.session.post(
                self._url(table),
                json=[row],
                headers={"Prefer": "return=representation"},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            return InsertResult(ok=False, error=RemoteError(ErrorKind.TRANSPORT, str(e)))
        except requests.RequestException as e:
            return InsertResult(ok=False, error=RemoteError(ErrorKind.UNKNOWN, str(e)))

        if response.status_code >= 300:
            return InsertResult(ok=False, error=self._error_from_response(response))

        try:
            rows = response.json()
        except ValueError:
            rows = []
        return InsertResult(ok=True, row=rows[0] if rows else dict(row))

    def _select_sync(self, table: str, filters: dict, order: Optional[str]) -> list[dict]:
        params = {
            key: f"eq.{str(value).lower() if isinstance(value, bool) else value}"
            for key, value in filters.items()
        }
        params["select"] = "*"
        if order:
            params["order"] = order
        try:
            response = self.session.get(self._url(table), params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise RemoteError(ErrorKind.TRANSPORT, str(e)) from e
        except requests.RequestException as e:
            raise RemoteError(ErrorKind.UNKNOWN, str(e)) from e

        if response.status_code >= 300:
            raise self._error_from_response(response)
        return response.json()

    async def insert(self, table: str, row: dict) -> InsertResult:
        return await asyncio.to_thread(self._insert_sync, table, row)

    async def select(
        self,
        table: str,
        filters: dict,
        order: Optional[str] = None,
    ) -> list[dict]:
        return await asyncio.to_thread(self._select_sync, table, filters, order)


@dataclass
class _FailureRule:
    predicate: Callable[[dict], bool]
    error: RemoteError
    remaining: Optional[int]  # None = forever


@dataclass
class MemoryRemoteStore:
    """In-process remote store with scriptable failures.

    Attributes:
        tables: Rows per table name
        online: When False every call fails with a transport error
        delay: Seconds each call suspends before resolving
        insert_log: Every insert attempt, in call order
    """
    tables: dict[str, list[dict]] = field(default_factory=dict)
    online: bool = True
    delay: float = 0.0
    insert_log: list[dict] = field(default_factory=list)
    _rules: list[_FailureRule] = field(default_factory=list)
    _next_id: int = 0

    def fail_when(
        self,
        predicate: Callable[[dict], bool],
        kind: str = ErrorKind.TRANSPORT,
        message: str = "simulated failure",
        times: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        """Fail inserts whose row matches predicate, `times` times (None = always)."""
        self._rules.append(_FailureRule(predicate, RemoteError(kind, message, code), times))

    def clear_failures(self) -> None:
        self._rules.clear()

    def _match_rule(self, row: dict) -> Optional[RemoteError]:
        for rule in self._rules:
            if rule.remaining == 0:
                continue
            if rule.predicate(row):
                if rule.remaining is not None:
                    rule.remaining -= 1
                return rule.error
        return None

    async def insert(self, table: str, row: dict) -> InsertResult:
        self.insert_log.append({"table": table, **row})
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.online:
            return InsertResult(ok=False, error=RemoteError(ErrorKind.TRANSPORT, "Network request failed"))

        error = self._match_rule(row)
        if error is not None:
            return InsertResult(ok=False, error=error)

        self._next_id += 1
        stored = {"id": f"srv-{self._next_id}", **row}
        self.tables.setdefault(table, []).append(stored)
        return InsertResult(ok=True, row=dict(stored))

    async def select(
        self,
        table: str,
        filters: dict,
        order: Optional[str] = None,
    ) -> list[dict]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.online:
            raise RemoteError(ErrorKind.TRANSPORT, "Network request failed")

        rows = [
            dict(r) for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: str(r.get(column, "")), reverse=direction == "desc")
        return rows

    def rows(self, table: str) -> list[dict]:
        return list(self.tables.get(table, []))

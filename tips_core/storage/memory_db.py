"""
In-memory realtime database.

Reference implementation of ``RealtimeDatabaseInterface`` backed by a
nested dict. Change callbacks are delivered asynchronously on the event
loop, like a networked client, so a writer holding a lock never
re-enters its own callback. Each delivery carries the value at the
time it runs, so a burst of writes never replays an older value last.
"""

import asyncio
import copy
import itertools
from typing import Any, Dict, List, Optional, Set, Tuple

from tips_core.interfaces.database import ChangeCallback, RealtimeDatabaseInterface, SubscriptionHandle
from tips_core.utils.async_utils import spawn
from tips_core.utils.exceptions import RemoteError
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)

OPERATIONS = ("get", "set", "remove", "subscribe")


def split_path(path: str) -> List[str]:
    """Split a ``/``-separated path, ignoring empty segments."""
    return [part for part in path.split("/") if part]


def _related(a: List[str], b: List[str]) -> bool:
    """True if one path is a prefix of (or equal to) the other."""
    n = min(len(a), len(b))
    return a[:n] == b[:n]


class InMemoryRealtimeDatabase(RealtimeDatabaseInterface):
    """
    Nested-dict realtime database.

    Features:
    - ``/``-separated paths, empty parents pruned on delete
    - Subscriptions fire once on attach and on every write at, above or
      below the watched path
    - Failure injection per operation for tests
    - Write log for assertions

    Example:
        >>> db = InMemoryRealtimeDatabase()
        >>> await db.set("rooms/r1/treatmentTimer", timer.to_record())
        >>> await db.drain()
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._root: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._subscriptions: Dict[int, Tuple[List[str], ChangeCallback]] = {}
        self._ids = itertools.count(1)
        self._failures: Set[str] = set()
        self._deliveries: Set["asyncio.Task[Any]"] = set()
        self.write_log: List[Tuple[str, str, Any]] = []

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def set_failure(self, operation: str, enabled: bool = True) -> None:
        """
        Make an operation raise ``RemoteError``.

        Args:
            operation: One of get, set, remove, subscribe
            enabled: Turn the failure on or off
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        if enabled:
            self._failures.add(operation)
        else:
            self._failures.discard(operation)

    def _check(self, operation: str, path: str) -> None:
        if operation in self._failures:
            raise RemoteError(
                f"Injected {operation} failure",
                details={"operation": operation, "path": path},
            )

    # ------------------------------------------------------------------
    # Tree access
    # ------------------------------------------------------------------

    def _read(self, parts: List[str]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _write(self, parts: List[str], value: Any) -> None:
        if not parts:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    def _delete(self, parts: List[str]) -> None:
        if not parts:
            self._root = {}
            return
        trail = []
        node: Any = self._root
        for part in parts[:-1]:
            if not isinstance(node, dict) or part not in node:
                return
            trail.append((node, part))
            node = node[part]
        if not isinstance(node, dict):
            return
        node.pop(parts[-1], None)
        # prune empty parents
        for parent, key in reversed(trail):
            if parent[key]:
                break
            del parent[key]

    # ------------------------------------------------------------------
    # RealtimeDatabaseInterface
    # ------------------------------------------------------------------

    async def get(self, path: str) -> Any:
        self._check("get", path)
        return self._read(split_path(path))

    async def set(self, path: str, value: Any) -> None:
        if value is None:
            await self.remove(path)
            return
        self._check("set", path)
        parts = split_path(path)
        self._write(parts, value)
        self.write_log.append(("set", path, copy.deepcopy(value)))
        logger.debug("db_set", path=path)
        self._notify(parts)

    async def remove(self, path: str) -> None:
        self._check("remove", path)
        parts = split_path(path)
        self._delete(parts)
        self.write_log.append(("remove", path, None))
        logger.debug("db_remove", path=path)
        self._notify(parts)

    async def subscribe(self, path: str, callback: ChangeCallback) -> SubscriptionHandle:
        self._check("subscribe", path)
        parts = split_path(path)
        sub_id = next(self._ids)
        self._subscriptions[sub_id] = (parts, callback)
        logger.debug("db_subscribed", path=path, subscription_id=sub_id)
        self._deliver(sub_id, callback, parts)
        return SubscriptionHandle(path, lambda: self._unsubscribe(sub_id))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _unsubscribe(self, sub_id: int) -> None:
        self._subscriptions.pop(sub_id, None)
        logger.debug("db_unsubscribed", subscription_id=sub_id)

    def _notify(self, changed: List[str]) -> None:
        for sub_id, (parts, callback) in list(self._subscriptions.items()):
            if _related(parts, changed):
                self._deliver(sub_id, callback, parts)

    def _deliver(self, sub_id: int, callback: ChangeCallback, parts: List[str]) -> None:
        spawn(self._invoke(sub_id, callback, parts), self._deliveries)

    async def _invoke(self, sub_id: int, callback: ChangeCallback, parts: List[str]) -> None:
        # skip deliveries queued before the subscription was cancelled
        if sub_id not in self._subscriptions:
            return
        try:
            result = callback(self._read(parts))
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error("db_callback_failed", subscription_id=sub_id, error=str(e), exc_info=True)

    async def drain(self) -> None:
        """Wait until every queued change callback has run (including cascades)."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._root)

"""
Local Timer Store.

Persists the foreground room's active timer on this device so it
survives process restarts. Writes go to every source in priority order
(file first, key-value fallback second); reads take the latest valid
record across all of them.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from tips_core.interfaces.storage import FileStoreInterface, KeyValueStoreInterface
from tips_core.models.config import StorageConfig
from tips_core.models.merge import latest_timer
from tips_core.models.timer import TimerState, TreatmentTimer
from tips_core.storage.backends import JsonKeyValueStore, LocalFileStore
from tips_core.utils.clock import Clock
from tips_core.utils.exceptions import CorruptRecordError, StorageError
from tips_core.utils.logging import get_logger
from tips_core.utils.rate_limit import SaveRateLimiter

logger = get_logger(__name__)


class TimerSource(ABC):
    """One durable location holding a serialized ``TimerState``."""

    name: str = "source"

    @abstractmethod
    async def read(self) -> Optional[str]:
        """Raw payload, or None if nothing is stored."""
        pass

    @abstractmethod
    async def write(self, payload: str) -> None:
        pass

    @abstractmethod
    async def remove(self) -> None:
        pass


class FileTimerSource(TimerSource):
    """Timer record stored as a file (primary)."""

    name = "file"

    def __init__(self, store: FileStoreInterface, filename: str):
        self.store = store
        self.filename = filename

    async def read(self) -> Optional[str]:
        return await self.store.read(self.filename)

    async def write(self, payload: str) -> None:
        await self.store.write(self.filename, payload)

    async def remove(self) -> None:
        await self.store.delete(self.filename)


class KeyValueTimerSource(TimerSource):
    """Timer record stored under a key-value key (fallback)."""

    name = "key_value"

    def __init__(self, store: KeyValueStoreInterface, key: str):
        self.store = store
        self.key = key

    async def read(self) -> Optional[str]:
        return await self.store.get(self.key)

    async def write(self, payload: str) -> None:
        await self.store.set(self.key, payload)

    async def remove(self) -> None:
        await self.store.remove(self.key)


class LocalTimerStore:
    """
    Single active-timer record on durable storage.

    Features:
    - Prioritized list of sources, all written on save
    - TTL check on load: expired or inactive records are removed
    - Corrupted records removed and treated as absent
    - Saves debounced by a ``SaveRateLimiter``; clears never are

    Example:
        >>> store = LocalTimerStore.from_config(StorageConfig(directory="./state"))
        >>> await store.save(timer)
        >>> timer = await store.load()
    """

    def __init__(
        self,
        sources: Sequence[TimerSource],
        clock: Optional[Clock] = None,
        rate_limiter: Optional[SaveRateLimiter] = None,
    ):
        """
        Initialize store.

        Args:
            sources: Sources in priority order (must not be empty)
            clock: Time source for expiry checks
            rate_limiter: Debounce for saves (default 5 s window)
        """
        if not sources:
            raise ValueError("LocalTimerStore needs at least one source")
        self.sources: List[TimerSource] = list(sources)
        self.clock = clock or Clock()
        self.rate_limiter = rate_limiter or SaveRateLimiter(clock=self.clock)
        self._pending: Optional[TreatmentTimer] = None
        self._pending_room: Optional[str] = None
        self._dirty = False

    @classmethod
    def from_config(cls, config: StorageConfig, clock: Optional[Clock] = None) -> "LocalTimerStore":
        """Build the standard file + JSON key-value pair under ``config.directory``."""
        clock = clock or Clock()
        file_store = LocalFileStore(config.directory)
        kv_store = JsonKeyValueStore(str(Path(config.directory) / config.kv_file))
        return cls(
            sources=[
                FileTimerSource(file_store, config.state_file),
                KeyValueTimerSource(kv_store, config.kv_key),
            ],
            clock=clock,
            rate_limiter=SaveRateLimiter(config.save_interval, clock=clock),
        )

    @property
    def has_pending_save(self) -> bool:
        """True if a debounced save has not been written yet."""
        return self._dirty

    async def save(
        self,
        timer: Optional[TreatmentTimer],
        force: bool = False,
        room_id: Optional[str] = None,
    ) -> bool:
        """
        Persist ``timer`` or clear storage.

        Args:
            timer: Timer to persist; None, inactive or expired clears storage
            force: Bypass the debounce window
            room_id: Foreground room the snapshot belongs to

        Returns:
            True if storage was written or cleared, False if debounced
        """
        if timer is None or not timer.is_effective(self.clock.now()):
            await self.clear()
            return True

        if not force and not self.rate_limiter.allow():
            self._pending = timer
            self._pending_room = room_id
            self._dirty = True
            logger.debug("timer_save_debounced", timer_id=timer.id)
            return False

        payload = TimerState(timer=timer, room_id=room_id).to_json()
        written = 0
        for source in self.sources:
            try:
                await source.write(payload)
                written += 1
            except StorageError as e:
                logger.error("timer_save_failed", source=source.name, timer_id=timer.id, error=str(e))

        if written:
            self.rate_limiter.record()
            self._pending = None
            self._pending_room = None
            self._dirty = False
            logger.debug("timer_saved", timer_id=timer.id, room_id=room_id, end_time=timer.end_time.isoformat())
        return written > 0

    async def flush(self) -> bool:
        """
        Write a debounced save immediately.

        Returns:
            True if a pending save was written
        """
        if not self._dirty:
            return False
        return await self.save(self._pending, force=True, room_id=self._pending_room)

    async def flush_due(self) -> bool:
        """Write a debounced save once its window has lapsed; True if written."""
        if not self._dirty or not self.rate_limiter.allow():
            return False
        return await self.flush()

    async def load(self, room_id: Optional[str] = None) -> Optional[TreatmentTimer]:
        """
        Load the latest valid timer across all sources.

        Stale or undecodable records are removed from their source.
        Snapshots tagged with a different room are skipped but kept.

        Args:
            room_id: Only accept snapshots written for this room (or untagged)

        Returns:
            Effective timer or None
        """
        now = self.clock.now()
        candidates: List[TreatmentTimer] = []

        for source in self.sources:
            try:
                raw = await source.read()
            except CorruptRecordError as e:
                logger.warning("timer_record_corrupted", source=source.name, error=str(e))
                await self._remove(source)
                continue
            except StorageError as e:
                logger.error("timer_load_failed", source=source.name, error=str(e))
                continue
            if raw is None:
                continue

            try:
                state = TimerState.from_json(raw)
            except PydanticValidationError as e:
                logger.warning("timer_record_corrupted", source=source.name, error=str(e))
                await self._remove(source)
                continue

            timer = state.timer
            if timer is None:
                continue
            if not state.belongs_to(room_id):
                logger.debug("timer_record_other_room", source=source.name, room_id=state.room_id)
                continue
            if not timer.is_effective(now):
                logger.info("timer_record_expired", source=source.name, timer_id=timer.id)
                await self._remove(source)
                continue
            candidates.append(timer)

        winner = latest_timer(*candidates, now=now)
        if winner is not None:
            logger.debug("timer_loaded", timer_id=winner.id, remaining=winner.remaining(now))
        return winner

    async def clear(self) -> None:
        """Remove the record from every source."""
        self._pending = None
        self._pending_room = None
        self._dirty = False
        for source in self.sources:
            await self._remove(source)
        logger.debug("timer_storage_cleared")

    async def _remove(self, source: TimerSource) -> None:
        try:
            await source.remove()
        except StorageError as e:
            logger.error("timer_remove_failed", source=source.name, error=str(e))

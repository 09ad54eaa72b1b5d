"""
Local storage backends.

File store with atomic writes, a JSON-file key-value store, and an
in-memory key-value store.
"""

import json
from pathlib import Path
from typing import Dict, Optional

from tips_core.interfaces.storage import FileStoreInterface, KeyValueStoreInterface
from tips_core.utils.exceptions import CorruptRecordError, StorageError
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)


class LocalFileStore(FileStoreInterface):
    """
    File store rooted in a directory.

    Features:
    - Atomic writes (temp file + replace)
    - Directory created on first use

    Example:
        >>> store = LocalFileStore("./tips_state")
        >>> await store.write("timer_state.json", '{"timer": null}')
    """

    def __init__(self, directory: str):
        """
        Initialize file store.

        Args:
            directory: Root directory for all files
        """
        self.directory = Path(directory)
        logger.info("file_store_initialized", directory=str(self.directory))

    def _path(self, path: str) -> Path:
        return self.directory / path

    async def read(self, path: str) -> Optional[str]:
        target = self._path(path)
        if not target.exists():
            return None
        try:
            return target.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning("file_undecodable", path=str(target), error=str(e))
            raise CorruptRecordError("File is not valid UTF-8", details={"path": str(target)}, cause=e)
        except OSError as e:
            logger.error("file_read_failed", path=str(target), error=str(e))
            raise StorageError("Failed to read file", details={"path": str(target)}, cause=e)

    async def write(self, path: str, data: str) -> None:
        target = self._path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)

            # Write atomically
            temp_file = target.with_suffix(target.suffix + ".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(data)

            temp_file.replace(target)
            logger.debug("file_written", path=str(target))

        except OSError as e:
            logger.error("file_write_failed", path=str(target), error=str(e))
            raise StorageError("Failed to write file", details={"path": str(target)}, cause=e)

    async def delete(self, path: str) -> bool:
        target = self._path(path)
        try:
            if target.exists():
                target.unlink()
                logger.debug("file_deleted", path=str(target))
                return True
            return False
        except OSError as e:
            logger.error("file_delete_failed", path=str(target), error=str(e))
            raise StorageError("Failed to delete file", details={"path": str(target)}, cause=e)

    async def exists(self, path: str) -> bool:
        return self._path(path).exists()


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """
    Dict-backed key-value store.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.set("treatmentTimerState", "{}")
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonKeyValueStore(KeyValueStoreInterface):
    """
    Key-value store persisted as a single JSON object file.

    The whole file is rewritten atomically on each change. An unreadable
    file is treated as empty and overwritten by the next write.

    Example:
        >>> prefs = JsonKeyValueStore("./tips_state/defaults.json")
        >>> await prefs.get("treatmentTimerState")
    """

    def __init__(self, path: str):
        """
        Initialize store.

        Args:
            path: JSON file path
        """
        self.path = Path(path)
        self._cache: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._cache is not None:
            return self._cache

        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = {k: v for k, v in raw.items() if isinstance(v, str)}
            except (OSError, ValueError) as e:
                logger.warning("kv_store_unreadable", path=str(self.path), error=str(e))

        self._cache = data
        return data

    def _flush(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_file.replace(self.path)
        except OSError as e:
            logger.error("kv_store_write_failed", path=str(self.path), error=str(e))
            raise StorageError("Failed to write key-value store", details={"path": str(self.path)}, cause=e)

    async def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        data = dict(self._load())
        data[key] = value
        self._flush(data)
        self._cache = data

    async def remove(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        data = {k: v for k, v in data.items() if k != key}
        self._flush(data)
        self._cache = data

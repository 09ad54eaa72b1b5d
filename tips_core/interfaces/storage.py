"""
Storage Interfaces - on-device durable storage contracts.

Defines the key-value store and the file store the local timer store
writes through.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for a durable key-value store.

    Mirrors a platform preferences store: string keys, string values.

    Example:
        >>> class PrefsStore(KeyValueStoreInterface):
        ...     async def get(self, key):
        ...         ...
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Key to read

        Returns:
            Stored value or None if absent

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Write a value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is a no-op.

        Raises:
            StorageError: If the removal fails
        """
        pass


class FileStoreInterface(ABC):
    """
    Abstract interface for a file store with atomic writes.

    Paths are relative to the store's root.
    """

    @abstractmethod
    async def read(self, path: str) -> Optional[str]:
        """
        Read a file.

        Returns:
            File contents or None if the file does not exist

        Raises:
            StorageError: If the file exists but cannot be read
        """
        pass

    @abstractmethod
    async def write(self, path: str, data: str) -> None:
        """
        Atomically replace a file's contents.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete a file.

        Returns:
            True if a file was deleted, False if it did not exist

        Raises:
            StorageError: If deletion fails
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a file exists."""
        pass

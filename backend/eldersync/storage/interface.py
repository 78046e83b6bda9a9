"""
Key-Value Store Interface - Abstract base class for all storage backends.
This interface enables seamless switching between the local filesystem and the
hosted database table.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class KeyValueStore(ABC):
    """
    Abstract key-value contract: string keys, JSON-serialisable values.

    Writes are upserts. There are no transactions across keys, and every
    failure is raised as ``StoreFailure`` rather than reported by a return value.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Load the value stored under ``key``.

        Args:
            key: Full key (e.g., "user:123:patient:456")

        Returns:
            Optional[Any]: Stored value, or None if the key does not exist
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Insert or replace the value stored under ``key``.

        Args:
            key: Full key
            value: JSON-serialisable value
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete ``key``. Deleting a missing key is not an error.

        Args:
            key: Full key
        """
        pass

    @abstractmethod
    async def get_by_prefix(self, prefix: str) -> Dict[str, Any]:
        """
        Scan every key starting with ``prefix``.

        Args:
            prefix: Key prefix (e.g., "metrics:456:")

        Returns:
            Dict[str, Any]: Matching keys mapped to their values
        """
        pass

    async def mget(self, keys: List[str]) -> List[Any]:
        """Values of the existing keys among ``keys``, in request order."""
        values = []
        for key in keys:
            value = await self.get(key)
            if value is not None:
                values.append(value)
        return values

    async def mset(self, keys: List[str], values: List[Any]) -> None:
        """Upsert several keys."""
        if len(keys) != len(values):
            raise ValueError("keys and values must have the same length")
        for key, value in zip(keys, values):
            await self.set(key, value)

    async def mdel(self, keys: List[str]) -> None:
        """Delete several keys."""
        for key in keys:
            await self.delete(key)

    async def close(self) -> None:
        """Release any connections held by the backend."""
        return None

"""
Local Filesystem Key-Value Store.
Stores each key as a JSON file in a base directory on the server.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote

import aiofiles

from ..core.exceptions import StoreFailure
from .interface import KeyValueStore

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".json"


class LocalKeyValueStore(KeyValueStore):
    """
    Local filesystem key-value store.
    One file per key; the file name is the percent-encoded key.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve() / "kv"
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Map a key to its file within the base directory."""
        if not key:
            raise ValueError("Key must not be empty")
        return self.base_dir / f"{quote(key, safe='')}{FILE_SUFFIX}"

    @staticmethod
    def _key_from_path(path: Path) -> str:
        return unquote(path.name[:-len(FILE_SUFFIX)])

    async def _read(self, path: Path) -> Any:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            return json.loads(await f.read())

    async def get(self, key: str) -> Optional[Any]:
        """Load a value from the filesystem."""
        full_path = self._get_full_path(key)
        if not full_path.exists():
            logger.debug(f"Key fetched: {key}", extra={"extra_fields": {"found": False}})
            return None
        try:
            value = await self._read(full_path)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading key {key}: {e}")
            raise StoreFailure(f"Could not read key {key}: {e}") from e
        logger.debug(f"Key fetched: {key}", extra={"extra_fields": {"found": True}})
        return value

    async def set(self, key: str, value: Any) -> None:
        """Write a value, replacing any previous one."""
        full_path = self._get_full_path(key)
        tmp_path = full_path.with_suffix(".tmp")
        try:
            content = json.dumps(value, ensure_ascii=False, default=str)
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(content)
            tmp_path.replace(full_path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving key {key}: {e}")
            raise StoreFailure(f"Could not save key {key}: {e}") from e
        logger.debug(f"Key saved: {key}")

    async def delete(self, key: str) -> None:
        """Delete a key from the filesystem."""
        full_path = self._get_full_path(key)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error deleting key {key}: {e}")
            raise StoreFailure(f"Could not delete key {key}: {e}") from e
        logger.debug(f"Key deleted: {key}")

    async def get_by_prefix(self, prefix: str) -> Dict[str, Any]:
        """Scan all keys starting with ``prefix``."""
        pattern = f"{quote(prefix, safe='')}*{FILE_SUFFIX}"
        results: Dict[str, Any] = {}
        try:
            for path in sorted(self.base_dir.glob(pattern)):
                key = self._key_from_path(path)
                if key.startswith(prefix):
                    results[key] = await self._read(path)
        except (OSError, ValueError) as e:
            logger.error(f"Error scanning prefix {prefix}: {e}")
            raise StoreFailure(f"Could not scan prefix {prefix}: {e}") from e
        logger.debug(f"Prefix scan: {prefix}", extra={"extra_fields": {"count": len(results)}})
        return results

"""
Hosted Key-Value Store - the ``kv_store`` table of the hosted Postgres
database, reached through its PostgREST HTTP API.

The table has two columns: ``key`` (text, primary key) and ``value`` (jsonb).
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.exceptions import StoreFailure
from .interface import KeyValueStore

logger = logging.getLogger(__name__)


def _in_filter(keys: List[str]) -> str:
    quoted = ",".join(json.dumps(key) for key in keys)
    return f"in.({quoted})"


class SupabaseKeyValueStore(KeyValueStore):
    """
    Key-value store backed by a hosted database table.
    The HTTP client is created once and closed with ``close()``.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        table: str = "kv_store_ba5f214e",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the hosted store.

        Args:
            url: Project URL (e.g., "https://xyz.supabase.co")
            service_role_key: Service role key; bypasses row level security
            table: Name of the key-value table
            timeout: Request timeout in seconds
            client: Optional pre-built HTTP client (used by tests)
        """
        if not url or not service_role_key:
            raise ValueError("Hosted store requires both a project URL and a service role key")
        self.table = table
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        operation: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            resp = await self._client.request(
                method,
                self.endpoint,
                params=params,
                content=json.dumps(payload, default=str) if payload is not None else None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Store request failed: {operation}: {e}")
            raise StoreFailure(f"{operation} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            message = body.get("message", resp.text) if isinstance(body, dict) else resp.text
            logger.error(
                f"Store rejected {operation}",
                extra={"extra_fields": {"status_code": resp.status_code, "error": message}},
            )
            raise StoreFailure(f"{operation} failed: {message}")
        return resp

    async def get(self, key: str) -> Optional[Any]:
        resp = await self._request(
            "GET", f"get {key}", params={"select": "value", "key": f"eq.{key}"}
        )
        rows = resp.json()
        logger.debug(f"Key fetched: {key}", extra={"extra_fields": {"found": bool(rows)}})
        return rows[0]["value"] if rows else None

    async def set(self, key: str, value: Any) -> None:
        await self._request(
            "POST",
            f"set {key}",
            payload={"key": key, "value": value},
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.debug(f"Key saved: {key}")

    async def delete(self, key: str) -> None:
        await self._request("DELETE", f"delete {key}", params={"key": f"eq.{key}"})
        logger.debug(f"Key deleted: {key}")

    async def get_by_prefix(self, prefix: str) -> Dict[str, Any]:
        resp = await self._request(
            "GET",
            f"scan {prefix}",
            params={"select": "key,value", "key": f"like.{prefix}*"},
        )
        rows = resp.json()
        logger.debug(f"Prefix scan: {prefix}", extra={"extra_fields": {"count": len(rows)}})
        return {row["key"]: row["value"] for row in rows}

    async def mget(self, keys: List[str]) -> List[Any]:
        if not keys:
            return []
        resp = await self._request(
            "GET", "mget", params={"select": "key,value", "key": _in_filter(keys)}
        )
        by_key = {row["key"]: row["value"] for row in resp.json()}
        return [by_key[key] for key in keys if key in by_key]

    async def mset(self, keys: List[str], values: List[Any]) -> None:
        if len(keys) != len(values):
            raise ValueError("keys and values must have the same length")
        if not keys:
            return
        await self._request(
            "POST",
            "mset",
            payload=[{"key": k, "value": v} for k, v in zip(keys, values)],
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.debug(f"{len(keys)} keys saved")

    async def mdel(self, keys: List[str]) -> None:
        if not keys:
            return
        await self._request("DELETE", "mdel", params={"key": _in_filter(keys)})
        logger.debug(f"{len(keys)} keys deleted")

    async def close(self) -> None:
        await self._client.aclose()

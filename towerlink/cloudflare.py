"""Workers KV storage used as a fallback channel for tower data."""

from __future__ import annotations

import logging
import os
import time
from urllib.parse import quote

import httpx

API_BASE = "https://api.cloudflare.com/client/v4"
WRITE_TTL_SECONDS = 300

logger = logging.getLogger(__name__)


def _required_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"{name} must be set")
    return value


class CloudflareKV:
    """Reads and writes raw values in a Workers KV namespace."""

    def __init__(
        self,
        token: str,
        account_id: str | None = None,
        namespace_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.account_id = account_id or _required_env("ACCOUNT_ID")
        self.namespace_id = namespace_id or _required_env("NAMESPACE_ID")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()

    def _value_url(self, key: str) -> str:
        return (
            f"{API_BASE}/accounts/{quote(self.account_id, safe='')}"
            f"/storage/kv/namespaces/{quote(self.namespace_id, safe='')}"
            f"/values/{quote(key, safe='')}"
        )

    async def read(self, key: str) -> bytes:
        """Return the raw bytes stored under ``key``."""
        start = time.perf_counter()
        response = await self._client.get(self._value_url(key), headers=self._headers)
        response.raise_for_status()
        logger.debug("KV read key %r took %.3fs", key, time.perf_counter() - start)
        return response.content

    async def write(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key`` with a five-minute expiry."""
        start = time.perf_counter()
        response = await self._client.put(
            self._value_url(key),
            headers={**self._headers, "Content-Type": "application/octet-stream"},
            params={"expiration_ttl": WRITE_TTL_SECONDS},
            content=bytes(value),
        )
        response.raise_for_status()
        logger.debug("KV write key %r took %.3fs", key, time.perf_counter() - start)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CloudflareKV:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
"""Slot-lag monitoring, switch signalling and identity key checks."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path

import httpx

from .constants import MAX_CATCHUP_SLOT

DEFAULT_URL = "http://localhost:8899"
MAX_RETRIES = 5
RETRY_DELAY = 0.1
KEYPAIR_LENGTH = 64

logger = logging.getLogger(__name__)

_switch = threading.Event()


class _RpcError(RuntimeError):
    """The JSON-RPC server answered with an error object."""


def request_switch() -> None:
    """Signal that this node should take over."""
    _switch.set()


def switch_complete() -> None:
    """Clear the switch signal once the takeover is done."""
    _switch.clear()


def should_switch() -> bool:
    """Return whether a switch has been requested."""
    return _switch.is_set()


async def wait_for_switch(poll_interval: float = 0.01) -> None:
    """Wait until a switch has been requested."""
    while not should_switch():
        await asyncio.sleep(poll_interval)


async def _fetch_slot(client: httpx.AsyncClient, url: str) -> int:
    payload = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "getSlot",
        "params": [{"commitment": "confirmed"}],
    }
    response = await client.post(url, json=payload)
    response.raise_for_status()
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"unexpected RPC response from {url}: {body!r}")
    if "error" in body:
        raise _RpcError(f"RPC error from {url}: {body['error']!r}")
    result = body.get("result")
    if isinstance(result, bool) or not isinstance(result, int) or result < 0:
        raise ValueError(f"invalid slot from {url}: {result!r}")
    return result


async def get_slot(client: httpx.AsyncClient, url: str) -> int:
    """Fetch the confirmed slot from ``url``, retrying a few times on failure."""
    retries = 0
    while True:
        try:
            return await _fetch_slot(client, url)
        except (httpx.HTTPError, ValueError, _RpcError) as exc:
            if retries >= MAX_RETRIES:
                raise
            retries += 1
            logger.debug("getSlot on %s failed (%s), retry %d", url, exc, retries)
            await asyncio.sleep(RETRY_DELAY)


async def _watch(client: httpx.AsyncClient, node_url: str, rpc_url: str) -> None:
    while True:
        node_slot = await get_slot(client, node_url)
        rpc_slot = await get_slot(client, rpc_url)
        distance = max(rpc_slot - node_slot, 0)
        if distance > MAX_CATCHUP_SLOT:
            logger.info("node is %d slots behind, requesting switch", distance)
            request_switch()


async def check_rpc(
    node_url: str | None = None,
    rpc_url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Compare slots forever, requesting a switch when the node falls behind.

    Returns only by raising once a slot cannot be fetched.
    """
    node_url = node_url or os.environ.get("NODE_URL", DEFAULT_URL)
    rpc_url = rpc_url or os.environ.get("RPC_URL", DEFAULT_URL)
    if client is None:
        async with httpx.AsyncClient() as owned:
            await _watch(owned, node_url, rpc_url)
    else:
        await _watch(client, node_url, rpc_url)


def read_keypair_pubkey(path: str | os.PathLike[str]) -> bytes:
    """Read a JSON keypair file and return its 32-byte public key."""
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"keypair file {path} is not valid JSON") from exc
    if (
        not isinstance(data, list)
        or len(data) != KEYPAIR_LENGTH
        or not all(
            isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255
            for b in data
        )
    ):
        raise ValueError(f"keypair file {path} must hold {KEYPAIR_LENGTH} bytes")
    return bytes(data[KEYPAIR_LENGTH // 2 :])


def check_keys() -> bool:
    """Return whether the reference and primary keypairs share a public key."""
    ref_path = os.environ["NODE_REFERNCE_KEY_PATH"]
    primary_path = os.environ["NODE_PRIMARY_KEY_PATH"]
    return read_keypair_pubkey(ref_path) == read_keypair_pubkey(primary_path)
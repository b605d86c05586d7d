"""Tower file exchange between a primary node and the node taking over."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
import os
from pathlib import Path

from .checker import check_keys, switch_complete, wait_for_switch
from .config import DEFAULT_SERVER_NAME, Endpoint
from .constants import TOWER_RECEIVE_CONFIRM_CMD, TOWER_REQUEST_CMD, TOWER_SIZE

COMMAND_CHUNK = 32

logger = logging.getLogger(__name__)


def parse_socket_addr(text: str) -> tuple[str, int]:
    """Parse ``ip:port`` or ``[ipv6]:port`` into a host and port pair."""
    host, sep, port_text = text.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid socket address: {text!r}")
    try:
        if host.startswith("[") and host.endswith("]"):
            ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv6Address(
                host[1:-1]
            )
        else:
            ip = ipaddress.IPv4Address(host)
    except ValueError as exc:
        raise ValueError(f"invalid socket address: {text!r}") from exc
    if not (port_text.isascii() and port_text.isdigit()):
        raise ValueError(f"invalid port in socket address: {text!r}")
    port = int(port_text)
    if port > 65535:
        raise ValueError(f"invalid port in socket address: {text!r}")
    return str(ip), port


async def _send(writer: asyncio.StreamWriter, data: bytes) -> None:
    writer.write(data)
    await writer.drain()


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(ConnectionError, OSError):
        await writer.wait_closed()


async def _serve_tower(writer: asyncio.StreamWriter) -> None:
    try:
        is_primary = check_keys()
    except (KeyError, OSError, ValueError) as exc:
        logger.error("Error: unable to check keys: %r", exc)
        return
    if not is_primary:
        logger.warning("tower requested but this node is not the primary")
        return
    tower_data = Path(os.environ["TOWER_FILE_PATH"]).read_bytes()
    try:
        await _send(writer, tower_data)
    except (ConnectionError, OSError) as exc:
        logger.error("Error: unable to send tower: %r", exc)


async def handle_stream_server(
    reader: asyncio.StreamReader, writer: asyncio.StreamWriter
) -> None:
    """Answer tower requests and confirmations until the peer closes the stream."""
    while True:
        try:
            chunk = await reader.read(COMMAND_CHUNK)
        except (ConnectionError, OSError) as exc:
            logger.error("Error reading stream: %r", exc)
            raise
        if not chunk:
            logger.info("Stream closed.")
            return
        command = chunk.decode("utf-8", errors="replace").strip()
        if command == TOWER_REQUEST_CMD:
            await _serve_tower(writer)
        elif command == TOWER_RECEIVE_CONFIRM_CMD:
            switch_complete()
        else:
            logger.debug("ignoring unknown command %r", command)


async def _serve_connection(
    reader: asyncio.StreamReader, writer: asyncio.StreamWriter
) -> None:
    try:
        await handle_stream_server(reader, writer)
    except Exception as exc:  # one bad peer must not stop the server
        logger.error("Error: Unable to handle stream: %r", exc)
    finally:
        await _close(writer)


async def run_server(endpoint: Endpoint) -> None:
    """Accept connections on ``endpoint`` and serve tower requests forever."""
    server = await endpoint.serve(_serve_connection)
    async with server:
        await server.serve_forever()


async def _read_tower(reader: asyncio.StreamReader) -> bytes:
    data = bytearray()
    while len(data) < TOWER_SIZE:
        chunk = await reader.read(TOWER_SIZE - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


async def handle_stream_client(
    reader: asyncio.StreamReader, writer: asyncio.StreamWriter
) -> bytes | None:
    """Request the tower, store it at ``TOWER_FILE_PATH`` and confirm receipt.

    Returns the received tower, or None when the request could not be sent.
    """
    try:
        await _send(writer, TOWER_REQUEST_CMD.encode())
    except (ConnectionError, OSError) as exc:
        logger.warning("unable to send tower request: %r", exc)
        return None

    try:
        tower_data = await _read_tower(reader)
    except (ConnectionError, OSError) as exc:
        logger.error("Error: Unable to read tower %r", exc)
        raise ConnectionError("Error: unable to read tower") from exc

    Path(os.environ["TOWER_FILE_PATH"]).write_bytes(tower_data)

    try:
        await _send(writer, TOWER_RECEIVE_CONFIRM_CMD.encode())
    except (ConnectionError, OSError) as exc:
        logger.error("unable to confirm tower receipt: %r", exc)
    return tower_data


async def run_client(endpoint: Endpoint) -> None:
    """Wait for a switch request, then fetch the tower from ``QUIC_SERVER_URL``."""
    address = parse_socket_addr(os.environ["QUIC_SERVER_URL"])
    await wait_for_switch()
    try:
        reader, writer = await endpoint.connect(address, DEFAULT_SERVER_NAME)
    except OSError as exc:
        logger.error("Error: Unable to connect to server: %r", exc)
        return
    logger.info("Connected to server")
    try:
        await handle_stream_client(reader, writer)
    except ConnectionError as exc:
        logger.error("Error: tower transfer failed: %r", exc)
    finally:
        await _close(writer)
"""TLS configuration and the network endpoint used for tower transfer."""

from __future__ import annotations

import asyncio
import os
import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

LOCALHOST = "127.0.0.1"
DEFAULT_CERT = "cert.pem"
DEFAULT_KEY = "key.pem"
DEFAULT_SERVER_NAME = "server"

Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


def make_server_config(
    cert_path: str | os.PathLike[str] = DEFAULT_CERT,
    key_path: str | os.PathLike[str] = DEFAULT_KEY,
) -> ssl.SSLContext:
    """Build a server TLS context from a PEM certificate and private key."""
    if not Path(cert_path).is_file():
        raise FileNotFoundError(f"Error reading certificate file: {cert_path}")
    if not Path(key_path).is_file():
        raise FileNotFoundError(f"Error reading private key file: {key_path}")
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    return context


def make_client_config(cafile: str | os.PathLike[str] | None = None) -> ssl.SSLContext:
    """Build a client TLS context trusting ``cafile`` or the system roots."""
    return ssl.create_default_context(cafile=str(cafile) if cafile is not None else None)


@dataclass
class Endpoint:
    """A local address that can both accept and open TLS stream connections."""

    host: str = LOCALHOST
    port: int = 0
    server_ssl: ssl.SSLContext | None = None
    client_ssl: ssl.SSLContext | None = None

    async def serve(self, handler: Handler) -> asyncio.Server:
        """Start listening and hand every connection to ``handler``."""
        return await asyncio.start_server(
            handler, self.host, self.port, ssl=self.server_ssl
        )

    async def connect(
        self, address: tuple[str, int], server_name: str = DEFAULT_SERVER_NAME
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open a stream connection to ``address``."""
        host, port = address
        return await asyncio.open_connection(
            host,
            port,
            ssl=self.client_ssl,
            server_hostname=server_name if self.client_ssl is not None else None,
        )


def _port_from_env() -> int:
    raw = os.environ.get("PORT")
    if raw is None:
        raise RuntimeError("Error: unable to get port from environment variable")
    try:
        port = int(raw)
    except ValueError as exc:
        raise ValueError(f"Error: unable to parse port: {raw!r}") from exc
    if not 0 <= port <= 65535:
        raise ValueError(f"Error: unable to parse port: {raw!r}")
    return port


def make_endpoint() -> Endpoint:
    """Build the localhost endpoint from ``PORT`` and the PEM files in the cwd."""
    port = _port_from_env()
    server_ssl = make_server_config()
    client_ssl = make_client_config(DEFAULT_CERT)
    return Endpoint(LOCALHOST, port, server_ssl, client_ssl)
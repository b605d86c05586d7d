"""Command entry point running the tower server and client side by side."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import time
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .config import Endpoint, make_endpoint
from .transfer import run_client, run_server

DEFAULT_LOG_LEVEL = "ERROR"
LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(threadName)s %(filename)s:%(lineno)d %(message)s"
)
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

logger = logging.getLogger(__name__)


def configure_logging(level: str | int | None = None) -> int:
    """Set the root log level from ``level`` or ``LOG_LEVEL`` and return it."""
    if level is None:
        level = os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    if isinstance(level, int):
        resolved: Any = level
    else:
        resolved = logging.getLevelName(str(level).strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"unknown log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(resolved)
    if not root.handlers:
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        formatter.converter = time.gmtime
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return resolved


async def run(endpoint: Endpoint) -> list[Any]:
    """Run server and client on ``endpoint`` until both end; return their outcomes."""
    results = await asyncio.gather(
        run_server(endpoint), run_client(endpoint), return_exceptions=True
    )
    for name, result in zip(("server", "client"), results):
        if isinstance(result, BaseException):
            logger.error("%s task failed: %r", name, result)
    return list(results)


def main(argv: list[str] | None = None) -> int:
    """Load settings, build the endpoint and run the tower transfer service."""
    parser = argparse.ArgumentParser(
        prog="towerlink",
        description="Serve and fetch validator tower files between nodes.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="log level (defaults to LOG_LEVEL or ERROR)",
    )
    args = parser.parse_args(argv)

    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)
    configure_logging(args.log_level)

    endpoint = make_endpoint()
    try:
        asyncio.run(run(endpoint))
    except KeyboardInterrupt:
        return 130
    return 0
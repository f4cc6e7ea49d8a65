"""Command line entry point: run as sync server or as discovering client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Optional, Sequence

from .discovery import start_discovery, start_responder
from .server import SERVER_PORT, SyncServer
from .service import SyncService

logger = logging.getLogger(__name__)

VERSION = "1.0"
REGISTER_REQUEST = b"GET /register HTTP/1.1\r\nHost: server\r\nConnection: close\r\n\r\n"


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser."""
    parser = argparse.ArgumentParser(
        prog="SimpleCacheServer", description="Cache Server with UDP Discovery"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-m", "--mode", default="", help="Mode to run: server or client")
    return parser


async def register(host: str, port: int = SERVER_PORT) -> bytes:
    """Register with the server at ``host``:``port`` and return its response."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        writer.write(REGISTER_REQUEST)
        await writer.drain()
        return await reader.read()
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass


async def _run_server() -> None:
    server = SyncServer()
    await server.listen("0.0.0.0", SERVER_PORT)
    transport, _ = await start_responder()
    try:
        await asyncio.Event().wait()
    finally:
        transport.close()
        await server.stop()


async def _connect_service(address: str, services: list[SyncService]) -> None:
    logger.info("Discovered server at %s", address)
    try:
        response = await register(address, SERVER_PORT)
    except OSError as exc:
        logger.warning("Socket error: %s", exc)
        return
    logger.info("Response:\n%r", response)
    service = SyncService(address, SERVER_PORT)
    services.append(service)
    await service.start()


async def _run_client() -> None:
    loop = asyncio.get_running_loop()
    tasks: set[asyncio.Task[Any]] = set()
    services: list[SyncService] = []

    def discovered(address: str) -> None:
        task = loop.create_task(_connect_service(address, services))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    transport, _ = await start_discovery(discovered)
    try:
        await asyncio.Event().wait()
    finally:
        transport.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the program; returns the exit status."""
    args = build_parser().parse_args(argv)
    mode = args.mode.lower()
    logging.basicConfig(level=logging.INFO)

    if mode == "server":
        logger.info("Running in SERVER mode")
        runner = _run_server()
    elif mode == "client":
        logger.info("Running in CLIENT mode")
        runner = _run_client()
    else:
        print("Specify --mode server or --mode client", file=sys.stderr)
        return 1

    try:
        asyncio.run(runner)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Failed to listen on port {SERVER_PORT}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
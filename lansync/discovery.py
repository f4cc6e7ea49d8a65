"""UDP broadcast discovery of a sync server on the local network."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DISCOVERY_PORT = 45454
DISCOVER_REQUEST = b"DISCOVER_REQUEST"
DISCOVER_RESPONSE = b"DISCOVER_RESPONSE"
BROADCAST_ADDRESS = "255.255.255.255"

_REUSE_PORT: Optional[bool] = True if hasattr(socket, "SO_REUSEPORT") else None


class DiscoveryResponder(asyncio.DatagramProtocol):
    """Answers discovery requests so clients can find this server."""

    def __init__(self) -> None:
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: Any) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr: tuple[Any, ...]) -> None:
        if data != DISCOVER_REQUEST or self.transport is None:
            return
        logger.debug("Received DISCOVER_REQUEST from %s", addr[0])
        self.transport.sendto(DISCOVER_RESPONSE, addr)


class DiscoveryClient(asyncio.DatagramProtocol):
    """Listens for discovery responses and reports each server's address."""

    def __init__(self, on_discovered: Callable[[str], None]) -> None:
        self.on_discovered = on_discovered
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: Any) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr: tuple[Any, ...]) -> None:
        if data != DISCOVER_RESPONSE:
            return
        logger.debug("Received DISCOVER_RESPONSE from %s", addr[0])
        self.on_discovered(addr[0])


async def start_responder(
    host: str = "0.0.0.0", port: int = DISCOVERY_PORT
) -> tuple[asyncio.DatagramTransport, DiscoveryResponder]:
    """Bind a responder to ``host``:``port`` and return its transport and protocol."""
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(
        DiscoveryResponder, local_addr=(host, port), reuse_port=_REUSE_PORT
    )


async def start_discovery(
    on_discovered: Callable[[str], None], port: int = DISCOVERY_PORT
) -> tuple[asyncio.DatagramTransport, DiscoveryClient]:
    """Broadcast a discovery request; ``on_discovered`` is called for every server that answers."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: DiscoveryClient(on_discovered),
        local_addr=("0.0.0.0", 0),
        allow_broadcast=True,
    )
    transport.sendto(DISCOVER_REQUEST, (BROADCAST_ADDRESS, port))
    logger.debug("Broadcasted DISCOVER_REQUEST")
    return transport, protocol
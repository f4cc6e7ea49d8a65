"""The sync client: pings the server and exchanges files with it."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from typing import Any, Iterable, Optional
from urllib.parse import quote

from .entry import FileEntry
from .monitor import FileMonitor
from .protocol import HEADER_END, split_response

logger = logging.getLogger(__name__)

DEFAULT_DIRECTORY = "/home/user/sync"
PING_INTERVAL = 30.0

PING_REQUEST = b"GET /ping HTTP/1.1\r\nHost: sync\r\nConnection: close\r\n\r\n"


def build_sync_list_request(files: Iterable[FileEntry]) -> bytes:
    """Build the POST /sync-list request announcing ``files`` with their versions."""
    items = [
        {"path": entry.path, "version": str(entry.version), "type": entry.type}
        for entry in files
    ]
    body = (json.dumps(items, indent=4, sort_keys=True) + "\n").encode("utf-8")
    head = (
        "POST /sync-list HTTP/1.1\r\n"
        "Host: dummy\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n\r\n"
    )
    return head.encode("utf-8") + body


def build_upload_request(entry: FileEntry, data: bytes) -> bytes:
    """Build the POST /upload request carrying ``data`` as the content of ``entry``."""
    head = (
        "POST /upload HTTP/1.1\r\n"
        "Host: syncserver\r\n"
        f"Content-Length: {len(data)}\r\n"
        f"X-File-Path: {entry.path}\r\n"
        f"X-File-Version: {entry.version}\r\n"
        f"X-File-Type: {entry.type}\r\n"
        "Content-Type: application/octet-stream\r\n"
        "Connection: close\r\n\r\n"
    )
    return head.encode("utf-8") + bytes(data)


def build_download_request(relative_path: str) -> bytes:
    """Build the GET /download request for ``relative_path``."""
    encoded = quote(relative_path, safe="")
    return (
        f"GET /download?path={encoded} HTTP/1.1\r\n"
        "Host: syncserver\r\n"
        "Connection: close\r\n\r\n"
    ).encode("utf-8")


async def _exchange(host: str, port: int, request: bytes) -> bytes:
    reader, writer = await asyncio.open_connection(host, port)
    try:
        writer.write(request)
        await writer.drain()
        return await reader.read()
    finally:
        writer.close()
        with contextlib.suppress(ConnectionError):
            await writer.wait_closed()


class SyncService:
    """A client of one sync server, mirroring a local directory."""

    def __init__(
        self,
        server_host: str,
        server_port: int,
        directory: str | os.PathLike[str] = DEFAULT_DIRECTORY,
    ) -> None:
        self.server_host = server_host
        self.server_port = server_port
        self.directory = os.path.abspath(os.fspath(directory))
        self._task: Optional[asyncio.Task[Any]] = None
        self.monitor = FileMonitor(self.directory, self._on_file_changed, self._on_file_removed)
        self.monitor.start()

    def _on_file_changed(self, entry: FileEntry) -> None:
        logger.debug("changed/added: %s %s", entry.path, entry.version)

    def _on_file_removed(self, relative_path: str) -> None:
        logger.debug("removed: %s", relative_path)

    def _full_path(self, relative_path: str) -> str:
        return f"{self.directory}/{relative_path}"

    async def _ping_quietly(self) -> None:
        try:
            await self.send_ping()
        except OSError as exc:
            logger.warning("Ping failed: %s", exc)

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(PING_INTERVAL)
            await self._ping_quietly()

    async def _run(self) -> None:
        await asyncio.gather(self._ping_loop(), self.monitor.run())

    async def start(self) -> asyncio.Task[Any]:
        """Ping the server now, then keep pinging and watching files in a background task."""
        logger.info("SyncService started")
        await self._ping_quietly()
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def send_ping(self) -> bytes:
        """Send GET /ping and return the server's response."""
        response = await _exchange(self.server_host, self.server_port, PING_REQUEST)
        logger.debug("Response:\n%r", response)
        return response

    async def send_sync_list(self, files: Iterable[FileEntry]) -> bytes:
        """Send the list of ``files`` to the server and return its response."""
        response = await _exchange(
            self.server_host, self.server_port, build_sync_list_request(files)
        )
        logger.debug("Response to sync-list:\n%r", response)
        return response

    async def upload_file(self, entry: FileEntry) -> Optional[bytes]:
        """Upload the local file of ``entry``; return the response, or None if it cannot be read."""
        try:
            with open(self._full_path(entry.path), "rb") as handle:
                data = handle.read()
        except OSError:
            logger.warning("Failed to open file for upload: %s", entry.path)
            return None
        response = await _exchange(
            self.server_host, self.server_port, build_upload_request(entry, data)
        )
        logger.debug("Upload response: %r", response)
        return response

    async def get_file(self, relative_path: str) -> Optional[str]:
        """Download ``relative_path`` into the local directory; return where it was saved."""
        response = await _exchange(
            self.server_host, self.server_port, build_download_request(relative_path)
        )
        if HEADER_END not in response:
            logger.warning("Incomplete response while downloading %s", relative_path)
            return None
        _, body = split_response(response)
        full_path = self._full_path(relative_path)
        try:
            os.makedirs(os.path.dirname(os.path.abspath(full_path)), exist_ok=True)
            with open(full_path, "wb") as handle:
                handle.write(body)
        except OSError:
            logger.warning("Failed to save downloaded file: %s", full_path)
            return None
        logger.debug("Downloaded file: %s", relative_path)
        return full_path

    async def handle_notify(self, body: bytes) -> Optional[str]:
        """Handle an update notification by fetching the named file; return where it was saved."""
        try:
            document = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            document = None
        if not isinstance(document, dict):
            logger.warning("Invalid JSON in /notify")
            return None
        path = document.get("path")
        if not isinstance(path, str) or not path:
            return None
        logger.debug("Received update notification for %s", path)
        return await self.get_file(path)
"""The sync server: keeps the authoritative file tree and answers client requests."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import re
from datetime import datetime
from typing import Any, Coroutine, Mapping, Optional

from .entry import FileEntry
from .monitor import FileMonitor
from .protocol import Request, build_response, parse_request, query_value, split_response

logger = logging.getLogger(__name__)

DEFAULT_DIRECTORY = "/home/user/sync-server"
SERVER_PORT = 8080
NOTIFY_PORT = 8080
CLEANUP_INTERVAL = 60.0
CLIENT_TIMEOUT = 180
REMOTE_TIMEOUT = 5.0

REGISTERED = b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\nRegistered\n"
PONG = b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\nPong\n"
UNKNOWN_COMMAND = b"HTTP/1.1 404 Not Found\r\nContent-Type: text/plain\r\n\r\nUnknown command\n"
INVALID_JSON = b"HTTP/1.1 400 Bad Request\r\n\r\nInvalid JSON"
ALL_ACCEPTED = b"HTTP/1.1 200 OK\r\n\r\nAll files accepted"
SOME_OUTDATED = b"HTTP/1.1 409 Conflict\r\n\r\nSome files are outdated"

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _to_int(text: str) -> int:
    text = text.strip()
    if not _SIGNED.fullmatch(text):
        return 0
    value = int(text)
    return value if -(2**31) <= value < 2**31 else 0


def _to_unsigned(value: Any) -> int:
    if not isinstance(value, str):
        return 0
    text = value.strip()
    if not _UNSIGNED.fullmatch(text):
        return 0
    number = int(text)
    return number if number < 2**64 else 0


class SyncServer:
    """Holds the server's file entries and registered clients and serves requests."""

    def __init__(self, directory: str | os.PathLike[str] = DEFAULT_DIRECTORY) -> None:
        self.directory = os.path.abspath(os.fspath(directory))
        self.file_entries: dict[str, FileEntry] = {}
        self.registered_clients: dict[str, datetime] = {}
        self.notify_port = NOTIFY_PORT
        self._server: Optional[asyncio.AbstractServer] = None
        self._tasks: set[asyncio.Task[Any]] = set()

        self.monitor = FileMonitor(self.directory, self._on_file_changed, self._on_file_removed)
        self.monitor.start()
        for entry in self.monitor.current_files():
            self.file_entries[entry.path] = entry

    def _on_file_changed(self, entry: FileEntry) -> None:
        logger.debug("[SERVER] changed/added: %s %s", entry.path, entry.version)
        self.file_entries[entry.path] = entry

    def _on_file_removed(self, path: str) -> None:
        logger.debug("[SERVER] removed: %s", path)
        self.file_entries.pop(path, None)

    def _full_path(self, relative_path: str) -> str:
        return f"{self.directory}/{relative_path}"

    def handle_request(self, request: Request, peer: str) -> bytes:
        """Dispatch one request from the client at ``peer`` and return the response bytes."""
        data = request.raw
        logger.debug("Request: %r", data)

        if data.startswith(b"GET /register"):
            self.register(peer)
            return REGISTERED
        if data.startswith(b"GET /ping"):
            self.registered_clients[peer] = datetime.now()
            logger.debug("Ping from %s", peer)
            return PONG
        if data.startswith(b"POST /sync-list"):
            return self.handle_sync_list(request.body)
        if data.startswith(b"POST /upload"):
            return self.handle_upload(request.headers, request.body)
        if data.startswith(b"GET /download"):
            return self.handle_download(query_value(request.path, "path"))
        return UNKNOWN_COMMAND

    def register(self, ip: str) -> None:
        """Record ``ip`` as a registered client, seen now."""
        self.registered_clients[ip] = datetime.now()
        logger.debug("Registered client: %s", ip)

    def handle_sync_list(self, body: bytes) -> bytes:
        """Check a client's list of files against the server's versions."""
        try:
            document = json.loads(body)
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("Invalid sync-list JSON: %s", exc)
            return INVALID_JSON
        if not isinstance(document, list):
            logger.warning("Invalid sync-list JSON: not an array")
            return INVALID_JSON

        all_accepted = True
        for item in document:
            if not isinstance(item, dict):
                continue
            path = item.get("path")
            path = path if isinstance(path, str) else ""
            version = _to_unsigned(item.get("version"))
            current = self.file_entries.get(path)
            if current is None or version > current.version:
                logger.debug("[SyncServer] Accept newer file: %s ver: %s", path, version)
            else:
                logger.debug("[SyncServer] Reject outdated file: %s", path)
                all_accepted = False

        return ALL_ACCEPTED if all_accepted else SOME_OUTDATED

    def handle_upload(self, headers: Mapping[str, str], body: bytes) -> bytes:
        """Store an uploaded file if its version is newer than the one held."""
        relative_path = headers.get("x-file-path", "")
        version = _to_int(headers.get("x-file-version", ""))
        file_type = headers.get("x-file-type", "").lower() or "modified"

        if not relative_path or version <= 0 or not body:
            return build_response(400, "Bad Request", "Missing headers or body")

        current = self.file_entries.get(relative_path, FileEntry(relative_path, "unknown", 0))
        if version <= current.version:
            logger.debug(
                "Upload rejected: incoming version %s <= current version %s",
                version,
                current.version,
            )
            return build_response(409, "Conflict", "Older or same version received")

        full_path = self._full_path(relative_path)
        try:
            os.makedirs(os.path.dirname(os.path.abspath(full_path)), exist_ok=True)
            with open(full_path, "wb") as handle:
                handle.write(body)
        except OSError:
            return build_response(500, "Internal Server Error", "Cannot write file")

        self.file_entries[relative_path] = FileEntry(relative_path, file_type, version)
        logger.debug("Accepted new version for %s version: %s", relative_path, version)
        self._schedule_notify(relative_path)
        return build_response(200, "OK", "File uploaded")

    def handle_download(self, relative_path: str) -> bytes:
        """Return the file at ``relative_path`` or a 404 response."""
        try:
            with open(self._full_path(relative_path), "rb") as handle:
                data = handle.read()
        except OSError:
            return build_response(404, "Not Found", "File not found")
        return build_response(200, "OK", data, "application/octet-stream")

    def cleanup_inactive_clients(self, now: Optional[datetime] = None) -> list[str]:
        """Forget clients not seen for more than three minutes; return their addresses."""
        now = now or datetime.now()
        stale = [
            ip
            for ip, seen in self.registered_clients.items()
            if int((now - seen).total_seconds()) > CLIENT_TIMEOUT
        ]
        for ip in stale:
            logger.debug("Removing inactive client: %s", ip)
            del self.registered_clients[ip]
        return stale

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule_notify(self, relative_path: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._spawn(self.notify_update(relative_path))

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL)
            self.cleanup_inactive_clients()

    async def _serve_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peername = writer.get_extra_info("peername")
        peer = peername[0] if peername else ""
        logger.debug("New client connected from %s", peer)
        buffer = b""
        try:
            while True:
                try:
                    request = parse_request(buffer)
                except ValueError:
                    return
                if request is not None and len(request.body) >= _to_int(
                    request.headers.get("content-length", "")
                ):
                    break
                chunk = await reader.read(65536)
                if not chunk:
                    if request is None:
                        return
                    break
                buffer += chunk
            writer.write(self.handle_request(request, peer))
            await writer.drain()
        except ConnectionError as exc:
            logger.debug("Client %s connection error: %s", peer, exc)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            logger.debug("Client disconnected: %s", peer)

    async def listen(self, host: str = "0.0.0.0", port: int = SERVER_PORT) -> asyncio.AbstractServer:
        """Start accepting connections; raises ``OSError`` when the address cannot be bound."""
        self._server = await asyncio.start_server(self._serve_client, host, port)
        address = self._server.sockets[0].getsockname()
        logger.info("Sync server listening on %s:%s", address[0], address[1])
        self._spawn(self._cleanup_loop())
        self._spawn(self.monitor.run())
        return self._server

    async def stop(self) -> None:
        """Stop accepting connections and cancel background work."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Sync server stopped")

    async def _notify_client(self, ip: str, payload: bytes) -> None:
        _, writer = await asyncio.open_connection(ip, self.notify_port)
        try:
            request = (
                "POST /notify HTTP/1.1\r\n"
                f"Host: {ip}\r\n"
                "Content-Type: application/json\r\n"
                f"Content-Length: {len(payload)}\r\n"
                "Connection: close\r\n\r\n"
            ).encode("utf-8") + payload
            writer.write(request)
            await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def notify_update(self, relative_path: str) -> list[str]:
        """Tell every registered client that ``relative_path`` changed; return those reached."""
        payload = json.dumps({"path": relative_path}).encode("utf-8")
        clients = list(self.registered_clients)
        results = await asyncio.gather(
            *(self._notify_client(ip, payload) for ip in clients), return_exceptions=True
        )
        notified = []
        for ip, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.warning("Failed to notify %s: %s", ip, result)
            else:
                notified.append(ip)
        return notified


async def fetch_from_remote(
    path: str,
    host: str = "example.com",
    port: int = 80,
    timeout: float = REMOTE_TIMEOUT,
) -> bytes:
    """GET ``path`` from a remote host and return the response body.

    Whatever has arrived when ``timeout`` seconds pass is returned.
    """
    reader, writer = await asyncio.open_connection(host, port)
    data = bytearray()
    try:
        request = f"GET {path} HTTP/1.1\r\nHost: {host}\r\nConnection: close\r\n\r\n"
        writer.write(request.encode("utf-8"))
        await writer.drain()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                chunk = await asyncio.wait_for(reader.read(65536), remaining)
            except asyncio.TimeoutError:
                break
            if not chunk:
                break
            data += chunk
    finally:
        writer.close()
        with contextlib.suppress(ConnectionError):
            await writer.wait_closed()
    _, body = split_response(bytes(data))
    return body
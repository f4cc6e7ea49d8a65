"""Minimal HTTP/1.1 framing used between sync clients and the server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import unquote, urlsplit

HEADER_END = b"\r\n\r\n"


@dataclass
class Request:
    """A parsed request: its method, target, lower-cased headers and body."""

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    raw: bytes = b""


def parse_request(data: bytes) -> Optional[Request]:
    """Parse ``data`` as a request.

    Returns ``None`` while the header block is still incomplete and raises
    ``ValueError`` when the request line lacks a method or a target.
    """
    header_end = data.find(HEADER_END)
    if header_end == -1:
        return None

    head = data[: header_end + len(HEADER_END)]
    lines = head.split(b"\n")
    parts = lines[0].strip().split(b" ")
    if len(parts) < 2:
        raise ValueError(f"malformed request line: {lines[0]!r}")

    headers: dict[str, str] = {}
    for line in lines[1:]:
        line = line.strip()
        key, colon, value = line.partition(b":")
        if colon and key:
            headers[key.decode("utf-8", "replace").lower()] = value.decode("utf-8", "replace").strip()

    return Request(
        method=parts[0].decode("latin-1"),
        path=parts[1].decode("latin-1"),
        headers=headers,
        body=data[header_end + len(HEADER_END):],
        raw=data,
    )


def build_response(
    code: int,
    status: str,
    body: Union[str, bytes] = b"",
    content_type: str = "text/plain",
) -> bytes:
    """Build a complete response carrying ``body`` with a Content-Length header."""
    payload = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    head = (
        f"HTTP/1.1 {code} {status}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n\r\n"
    )
    return head.encode("utf-8") + payload


def query_value(path: str, name: str) -> str:
    """Return the decoded value of query item ``name`` in ``path``, or an empty string."""
    query = urlsplit(path).query
    for item in query.split("&"):
        key, _, value = item.partition("=")
        if unquote(key) == name:
            return unquote(value)
    return ""


def split_response(data: bytes) -> tuple[bytes, bytes]:
    """Split a response into its header block and body.

    Without a header terminator the whole of ``data`` is taken as the body.
    """
    index = data.find(HEADER_END)
    if index == -1:
        return b"", data
    return data[:index], data[index + len(HEADER_END):]
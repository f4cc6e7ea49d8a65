import pytest

from lansync.protocol import (
    Request,
    build_response,
    parse_request,
    query_value,
    split_response,
)


def test_incomplete_header_returns_none():
    assert parse_request(b"GET /ping HTTP/1.1\r\nHost: sync\r\n") is None


def test_empty_data_returns_none():
    assert parse_request(b"") is None


def test_parse_request_line_and_headers():
    raw = b"POST /upload HTTP/1.1\r\nX-File-Path: a.txt\r\nContent-Length: 3\r\n\r\nabc"
    request = parse_request(raw)
    assert isinstance(request, Request)
    assert request.method == "POST"
    assert request.path == "/upload"
    assert request.headers["x-file-path"] == "a.txt"
    assert request.headers["content-length"] == "3"
    assert request.body == b"abc"
    assert request.raw == raw


def test_header_keys_are_lowercased_and_values_trimmed():
    request = parse_request(b"GET / HTTP/1.1\r\nX-File-Type:   TXT  \r\n\r\n")
    assert request.headers == {"x-file-type": "TXT"}


def test_lines_without_colon_are_ignored():
    request = parse_request(b"GET / HTTP/1.1\r\nbogus\r\n:novalue\r\n\r\n")
    assert request.headers == {}


def test_malformed_request_line_raises():
    with pytest.raises(ValueError):
        parse_request(b"GARBAGE\r\n\r\n")


def test_build_response_layout():
    response = build_response(404, "Not Found", "File not found")
    head, body = split_response(response)
    assert body == b"File not found"
    lines = head.split(b"\r\n")
    assert lines[0] == b"HTTP/1.1 404 Not Found"
    assert b"Content-Type: text/plain" in lines
    assert b"Connection: close" in lines
    assert f"Content-Length: {len(body)}".encode() in lines


def test_build_response_binary_body_and_type():
    payload = bytes(range(256))
    response = build_response(200, "OK", payload, "application/octet-stream")
    head, body = split_response(response)
    assert body == payload
    assert b"Content-Type: application/octet-stream" in head.split(b"\r\n")


def test_build_response_round_trips_through_parser_headers():
    response = build_response(200, "OK", "File uploaded")
    # A response has the same header shape as a request, so the parser reads it back.
    parsed = parse_request(response)
    assert parsed.body == b"File uploaded"
    assert int(parsed.headers["content-length"]) == len(parsed.body)


def test_query_value_decodes_percent_encoding():
    assert query_value("/download?path=sub%2Fa%20b.txt", "path") == "sub/a b.txt"


def test_query_value_keeps_plus_sign():
    assert query_value("/download?path=a+b", "path") == "a+b"


def test_query_value_missing_item():
    assert query_value("/download?other=x", "path") == ""
    assert query_value("/download", "path") == ""


def test_split_response_without_separator_is_all_body():
    assert split_response(b"just data") == (b"", b"just data")


def test_split_response_with_separator():
    assert split_response(b"HTTP/1.1 200 OK\r\n\r\nPong\n") == (b"HTTP/1.1 200 OK", b"Pong\n")
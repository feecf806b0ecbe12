"""HTTP request message: construction, parsing and serialisation."""

from __future__ import annotations

import io
from dataclasses import dataclass, field

from embhttp.headers import (
    CRLF,
    HEADERS_TERMINATOR,
    Headers,
    HttpError,
    Writable,
    parse_headers,
)

SPACE = b" "
_DEFAULT_HEADERS_CAPACITY = 1024


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


@dataclass
class Request:
    """An HTTP request; method, path and version must not be empty."""

    method: bytes
    path: bytes
    http_version: bytes
    headers: Headers = field(default_factory=lambda: Headers(_DEFAULT_HEADERS_CAPACITY))
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = _as_bytes(self.method)
        self.path = _as_bytes(self.path)
        self.http_version = _as_bytes(self.http_version)
        self.body = _as_bytes(self.body)
        if not (self.method and self.path and self.http_version):
            raise ValueError("method, path and http_version must not be empty")

    def serialize_to(self, stream: Writable) -> None:
        """Write the request line, headers, blank line and body to ``stream``."""
        for part in (self.method, SPACE, self.path, SPACE, self.http_version, CRLF):
            stream.write(part)
        self.headers.serialize_to(stream)
        stream.write(CRLF)
        if self.body:
            stream.write(self.body)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.serialize_to(buffer)
        return buffer.getvalue()


def parse_request(raw: bytes | bytearray | str) -> Request:
    """Parse a request line, headers and any body following the blank line."""
    data = _as_bytes(raw)
    method, sep, rest = data.partition(SPACE)
    if not sep:
        raise HttpError("request line has no method")
    path, sep, rest = rest.partition(SPACE)
    if not sep:
        raise HttpError("request line has no path")
    version, sep, rest = rest.partition(CRLF)
    if not sep:
        raise HttpError("request line is not terminated")

    headers_part, body = rest, b""
    term = rest.find(HEADERS_TERMINATOR)
    if term != -1:
        headers_part = rest[: term + len(CRLF)]
        body = rest[term + len(HEADERS_TERMINATOR) :]

    try:
        return Request(method, path, version, parse_headers(headers_part), body)
    except ValueError as exc:
        raise HttpError(str(exc)) from exc
"""HTTP response message: construction, parsing and serialisation."""

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
class Response:
    """An HTTP response; version, code and reason phrase must not be empty."""

    http_version: bytes
    code: bytes
    reason_phrase: bytes
    headers: Headers = field(default_factory=lambda: Headers(_DEFAULT_HEADERS_CAPACITY))
    body: bytes = b""

    def __post_init__(self) -> None:
        self.http_version = _as_bytes(self.http_version)
        self.code = _as_bytes(self.code)
        self.reason_phrase = _as_bytes(self.reason_phrase)
        self.body = _as_bytes(self.body)
        if not (self.http_version and self.code and self.reason_phrase):
            raise ValueError("http_version, code and reason_phrase must not be empty")

    def serialize_to(self, stream: Writable) -> None:
        """Write the status line, headers, blank line and body to ``stream``."""
        for part in (self.http_version, SPACE, self.code, SPACE, self.reason_phrase, CRLF):
            stream.write(part)
        self.headers.serialize_to(stream)
        stream.write(CRLF)
        if self.body:
            stream.write(self.body)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.serialize_to(buffer)
        return buffer.getvalue()


def parse_response(raw: bytes | bytearray | str) -> Response:
    """Parse a status line, headers and any body following the blank line."""
    data = _as_bytes(raw)
    if not data:
        raise ValueError("raw response must not be empty")
    version, sep, rest = data.partition(SPACE)
    if not sep:
        raise HttpError("status line has no version")
    code, sep, rest = rest.partition(SPACE)
    if not sep:
        raise HttpError("status line has no code")
    reason, sep, rest = rest.partition(CRLF)
    if not sep:
        raise HttpError("status line is not terminated")

    headers_part, body = rest, b""
    term = rest.find(HEADERS_TERMINATOR)
    if term != -1:
        headers_part = rest[: term + len(CRLF)]
        body = rest[term + len(HEADERS_TERMINATOR) :]

    try:
        return Response(version, code, reason, parse_headers(headers_part), body)
    except ValueError as exc:
        raise HttpError(str(exc)) from exc
"""Incremental parser that assembles a request from a growing buffer."""

from __future__ import annotations

import enum

from embhttp.headers import HEADERS_TERMINATOR, HttpError, parse_headers
from embhttp.request import SPACE, Request

CONTENT_LENGTH = b"Content-Length"
_CRLF = b"\r\n"
_UINT32_MAX = 0xFFFFFFFF


class ParserState(enum.Enum):
    """Where the parser is in reading a request."""

    REQUEST_LINE = "request_line"
    HEADERS = "headers"
    BODY = "body"
    COMPLETE = "complete"
    ERROR = "error"


class ParseError(HttpError):
    """Raised when the bytes fed to the parser are not a valid request."""


def _parse_uint32(value: bytes) -> int:
    if not value or not value.isdigit():
        raise ParseError(f"invalid Content-Length {value!r}")
    number = int(value)
    if number > _UINT32_MAX:
        raise ParseError(f"Content-Length {value!r} is too large")
    return number


class RequestParser:
    """Parse a request from a buffer that grows between calls to ``feed``.

    Each call receives the whole buffer collected so far, starting at the
    first byte of the request.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Forget any progress and wait for a new request line."""
        self._state = ParserState.REQUEST_LINE
        self._headers_end = 0
        self._content_length = 0
        self._request: Request | None = None

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def request(self) -> Request | None:
        """The request parsed so far; None until the header block is complete."""
        return self._request

    @property
    def consumed(self) -> int:
        """Bytes of the buffer taken by the request head and its body."""
        return self._headers_end + self._content_length

    def feed(self, buffer: bytes | bytearray | memoryview) -> bool:
        """Return True once the request is complete, False if more bytes are needed.

        Raises ParseError if the request is malformed, and on every call
        after that.
        """
        if self._state is ParserState.COMPLETE:
            return True
        if self._state is ParserState.ERROR:
            raise ParseError("parser is in the error state")

        data = bytes(buffer)

        if self._headers_end == 0:
            term = data.find(HEADERS_TERMINATOR)
            if term == -1:
                self._state = (
                    ParserState.REQUEST_LINE if not data else ParserState.HEADERS
                )
                return False
            try:
                self._parse_head(data, term + len(HEADERS_TERMINATOR))
            except (HttpError, ValueError) as exc:
                self._state = ParserState.ERROR
                raise ParseError(str(exc)) from exc
            self._state = ParserState.BODY

        needed = self._headers_end + self._content_length
        if len(data) < needed:
            self._state = ParserState.BODY
            return False

        assert self._request is not None
        self._request.body = data[self._headers_end : needed]
        self._state = ParserState.COMPLETE
        return True

    def _parse_head(self, data: bytes, headers_end: int) -> None:
        head = data[:headers_end]
        method, sep, rest = head.partition(SPACE)
        if not sep:
            raise ParseError("request line has no method")
        path, sep, rest = rest.partition(SPACE)
        if not sep:
            raise ParseError("request line has no path")
        version, sep, rest = rest.partition(_CRLF)
        if not sep:
            raise ParseError("request line is not terminated")

        request = Request(method, path, version, parse_headers(rest))
        value = request.headers.find(CONTENT_LENGTH)
        content_length = 0 if value is None else _parse_uint32(value)

        self._request = request
        self._content_length = content_length
        self._headers_end = headers_end
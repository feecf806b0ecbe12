"""A connected socket carrying HTTP requests and responses."""

from __future__ import annotations

import socket
import ssl
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

from embhttp.headers import HEADERS_TERMINATOR, BufferOverflowError, Headers, HttpError
from embhttp.request import Request, parse_request
from embhttp.response import Response, parse_response

if TYPE_CHECKING:
    from embhttp.endpoint import Endpoint

_CONTENT_LENGTH = b"Content-Length"
_RETRY_ERRORS = (BlockingIOError, ssl.SSLWantReadError, ssl.SSLWantWriteError)

_Message = TypeVar("_Message", Request, Response)


class ConnectionClosedError(HttpError):
    """Raised when the peer closes the connection before a message is complete."""


def _content_length(headers: Headers) -> int | None:
    try:
        value = headers.find(_CONTENT_LENGTH)
    except HttpError:
        return None
    if value is None:
        return None
    if not value.isdigit() or int(value) > 0xFFFFFFFF:
        raise HttpError(f"invalid Content-Length {value!r}")
    return int(value)


class Connection:
    """One HTTP connection over a connected (optionally TLS) socket.

    Bytes that arrive beyond the end of a message are kept and used by the
    next receive call.
    """

    def __init__(self, sock: socket.socket, endpoint: Endpoint | None = None) -> None:
        self._sock = sock
        self.endpoint = endpoint
        self._pending = b""

    def _read_more(self, buffer: bytearray, capacity: int) -> None:
        room = capacity - len(buffer)
        if room <= 0:
            raise BufferOverflowError(f"message does not fit in {capacity} bytes")
        while True:
            try:
                chunk = self._sock.recv(room)
            except _RETRY_ERRORS:
                time.sleep(0)
                continue
            if not chunk:
                raise ConnectionClosedError("peer closed the connection")
            buffer += chunk
            return

    def _receive(self, buffer_size: int, parse: Callable[[bytes], _Message]) -> _Message:
        buffer = bytearray(self._pending)
        self._pending = b""

        while (term := buffer.find(HEADERS_TERMINATOR)) == -1:
            self._read_more(buffer, buffer_size)
        head_end = term + len(HEADERS_TERMINATOR)

        message = parse(bytes(buffer[:head_end]))
        length = _content_length(message.headers)
        if length is None or length == 0:
            message.body = bytes(buffer[head_end:])
            return message

        needed = head_end + length
        while len(buffer) < needed:
            self._read_more(buffer, buffer_size)
        message.body = bytes(buffer[head_end:needed])
        self._pending = bytes(buffer[needed:])
        return message

    def receive_request(self, buffer_size: int) -> Request:
        """Read one request using at most ``buffer_size`` bytes of buffer."""
        return self._receive(buffer_size, parse_request)

    def receive_response(self, buffer_size: int) -> Response:
        """Read one response using at most ``buffer_size`` bytes of buffer."""
        return self._receive(buffer_size, parse_response)

    def send_request(self, request: Request) -> None:
        self._sock.sendall(request.to_bytes())

    def send_response(self, response: Response) -> None:
        self._sock.sendall(response.to_bytes())

    def close(self) -> None:
        """Close the socket and detach from the endpoint."""
        self._sock.close()
        self.endpoint = None

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
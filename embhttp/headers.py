"""HTTP header block stored in a fixed-capacity buffer."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

CRLF = b"\r\n"
HEADERS_TERMINATOR = b"\r\n\r\n"
NAME_VALUE_SEPARATOR = b": "


class HttpError(Exception):
    """Raised when HTTP data is malformed or cannot be processed."""


class BufferOverflowError(HttpError):
    """Raised when data does not fit in the space reserved for it."""


class Writable(Protocol):
    def write(self, data: bytes) -> object: ...


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


class Headers:
    """An ordered block of ``Name: value`` lines limited to ``capacity`` bytes."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._data = b""

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def raw(self) -> bytes:
        """The header lines, each ending in CRLF, without the closing blank line."""
        return self._data

    def add(self, name: bytes | str, value: bytes | str) -> None:
        """Append a header line; raise BufferOverflowError if it does not fit."""
        entry = _as_bytes(name) + NAME_VALUE_SEPARATOR + _as_bytes(value) + CRLF
        if len(self._data) + len(entry) > self._capacity:
            raise BufferOverflowError(
                f"header needs {len(entry)} bytes, "
                f"{self._capacity - len(self._data)} available"
            )
        self._data += entry

    def find(self, name: bytes | str) -> bytes | None:
        """Return the value of the first header called ``name``, or None."""
        wanted = _as_bytes(name)
        if not wanted:
            raise ValueError("header name must not be empty")
        malformed = False
        for line in self._data.split(CRLF):
            if not line:
                continue
            current_name, sep, current_value = line.partition(NAME_VALUE_SEPARATOR)
            if not sep:
                malformed = True
                continue
            if current_name == wanted:
                return current_value
        if malformed:
            raise HttpError("malformed header line")
        return None

    def __iter__(self) -> Iterator[tuple[bytes, bytes]]:
        rest = self._data
        while rest and rest != CRLF:
            line, sep, rest = rest.partition(CRLF)
            if not sep:
                raise HttpError("header line is not terminated by CRLF")
            name, sep, value = line.partition(NAME_VALUE_SEPARATOR)
            if not sep:
                raise HttpError("header line has no name/value separator")
            yield name, value

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Headers(capacity={self._capacity}, raw={self._data!r})"

    def serialize_to(self, stream: Writable) -> None:
        """Write the header lines to ``stream``; an empty block writes one CRLF."""
        stream.write(self._data if self._data else CRLF)


def parse_headers(raw: bytes | bytearray | str) -> Headers:
    """Build Headers over ``raw``, cut just after the CRLF of the last header line."""
    data = _as_bytes(raw)
    term_pos = data.rfind(HEADERS_TERMINATOR)
    if term_pos == -1:
        single = data.rfind(CRLF)
        size = len(data) if single == -1 else single + len(CRLF)
    else:
        size = term_pos + len(CRLF)
    headers = Headers(len(data))
    headers._data = data[:size]
    return headers
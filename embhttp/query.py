"""Lookup and decoding of query-string parameters."""

from __future__ import annotations

import string
from collections.abc import Iterator

from embhttp.headers import BufferOverflowError, HttpError

_HEX_DIGITS = frozenset(string.hexdigits.encode("ascii"))


class QueryDecodeError(HttpError):
    """Raised when a percent-encoded value is malformed."""


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


def _locate_query(path: bytes) -> bytes:
    _, sep, query = path.partition(b"?")
    return query if sep else path


def iter_query(path: bytes | str) -> Iterator[tuple[bytes, bytes]]:
    """Yield (name, value) pairs of the query in ``path``.

    Without a '?' the whole input is treated as the query string.
    Empty pairs are skipped; a pair without '=' has an empty value.
    """
    for pair in _locate_query(_as_bytes(path)).split(b"&"):
        if not pair:
            continue
        name, _, value = pair.partition(b"=")
        yield name, value


def find(path: bytes | str, name: bytes | str) -> bytes | None:
    """Return the raw value of the first parameter called ``name``, or None."""
    wanted = _as_bytes(name)
    for key, value in iter_query(path):
        if key == wanted:
            return value
    return None


def find_decoded(path: bytes | str, name: bytes | str, capacity: int) -> bytes | None:
    """Return the decoded value of ``name``, at most ``capacity`` bytes long.

    '+' becomes a space and '%XX' its byte. Returns None if the parameter is
    absent; raises BufferOverflowError or QueryDecodeError on failure.
    """
    raw = find(path, name)
    if raw is None:
        return None
    out = bytearray()
    i = 0
    while i < len(raw):
        if len(out) >= capacity:
            raise BufferOverflowError("decoded value does not fit")
        c = raw[i]
        if c == ord("+"):
            out.append(ord(" "))
        elif c == ord("%"):
            digits = raw[i + 1 : i + 3]
            if len(digits) < 2 or not all(d in _HEX_DIGITS for d in digits):
                raise QueryDecodeError(f"malformed percent escape at offset {i}")
            out.append(int(digits, 16))
            i += 2
        else:
            out.append(c)
        i += 1
    return bytes(out)


def needs_decoding(value: bytes | str) -> bool:
    """True if ``value`` holds '%' or '+'."""
    data = _as_bytes(value)
    return b"%" in data or b"+" in data
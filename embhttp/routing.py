"""Route table that maps a request to a handler and builds its response."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from embhttp.headers import BufferOverflowError, Headers, HttpError
from embhttp.request import Request
from embhttp.response import Response

HTTP_VERSION_1_1 = b"HTTP/1.1"
CODE_200, REASON_200 = b"200", b"OK"
CODE_404, REASON_404 = b"404", b"Not Found"
CODE_405, REASON_405 = b"405", b"Method Not Allowed"

_CONNECTION = b"Connection"
_CLOSE = b"close"
_MAX_MATCHES = 5
_RESPONSE_HEADERS_CAPACITY = 1024

Handler = Callable[[Request, tuple[bytes, ...], Response, Any], object]


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


@dataclass(frozen=True)
class Route:
    """A method, a path pattern and the handler that serves them."""

    method: bytes
    path: bytes
    handler: Handler
    context: Any
    pattern: re.Pattern[bytes]

    def match(self, path: bytes) -> tuple[bytes, ...] | None:
        """Return the whole match and its groups (at most five), or None."""
        found = self.pattern.search(path)
        if found is None:
            return None
        groups = (found.group(0),) + tuple(g or b"" for g in found.groups())
        return groups[:_MAX_MATCHES]


def default_response(code: bytes | str, reason: bytes | str) -> Response:
    """An HTTP/1.1 response with the given status, no headers and no body."""
    return Response(
        HTTP_VERSION_1_1,
        _as_bytes(code),
        _as_bytes(reason),
        Headers(_RESPONSE_HEADERS_CAPACITY),
        b"",
    )


def client_wants_close(request: Request) -> bool:
    """True if the client asked to close, or does not speak HTTP/1.1."""
    try:
        value = request.headers.find(_CONNECTION)
    except HttpError:
        value = None
    if value == _CLOSE:
        return True
    return request.http_version != HTTP_VERSION_1_1


class Router:
    """An ordered table of at most ``capacity`` routes."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._routes: list[Route] = []

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def add_route(
        self,
        method: bytes | str,
        path: bytes | str,
        handler: Handler,
        context: Any = None,
    ) -> Route:
        """Register ``handler`` for ``method`` and the regular expression ``path``."""
        method_bytes, path_bytes = _as_bytes(method), _as_bytes(path)
        if not method_bytes or not path_bytes or handler is None:
            raise ValueError("method, path and handler are required")
        if len(self._routes) >= self.capacity:
            raise BufferOverflowError(f"route table is full ({self.capacity} routes)")
        try:
            pattern = re.compile(path_bytes)
        except re.error as exc:
            raise HttpError(f"invalid route pattern {path_bytes!r}: {exc}") from exc
        route = Route(method_bytes, path_bytes, handler, context, pattern)
        self._routes.append(route)
        return route

    def dispatch(self, request: Request) -> Response:
        """Run the first matching route's handler and return its response.

        Gives 404 when no path matches, 405 when no route has the method.
        """
        method_matched = False
        for route in self._routes:
            if route.method != request.method:
                continue
            method_matched = True
            matches = route.match(request.path)
            if matches is not None:
                response = default_response(CODE_200, REASON_200)
                route.handler(request, matches, response, route.context)
                return response

        if not method_matched and self._routes:
            return default_response(CODE_405, REASON_405)
        return default_response(CODE_404, REASON_404)

    def __len__(self) -> int:
        return len(self._routes)
"""Fixed sizing profiles for the connection slots and routes of a server."""

from __future__ import annotations

import functools
from dataclasses import dataclass

HOST_CONNECTIONS = 256
HOST_ROUTES = 32
HOST_REQUEST_BUFFER_SIZE = 8192
HOST_RESPONSE_BUFFER_SIZE = 8192

MCU_CONNECTIONS = 4
MCU_ROUTES = 8
MCU_REQUEST_BUFFER_SIZE = 1024
MCU_RESPONSE_BUFFER_SIZE = 1024


@dataclass(frozen=True)
class ServerStorage:
    """How many connections and routes a server holds, and its buffer sizes."""

    slot_count: int
    route_count: int
    request_buffer_size: int
    response_buffer_size: int

    def __post_init__(self) -> None:
        if self.slot_count <= 0:
            raise ValueError("slot_count must be positive")
        if self.route_count <= 0:
            raise ValueError("route_count must be positive")
        if self.request_buffer_size <= 0 or self.response_buffer_size <= 0:
            raise ValueError("buffer sizes must be positive")


@functools.lru_cache(maxsize=None)
def for_server_host() -> ServerStorage:
    """The shared profile for a server host: many connections, large buffers."""
    return ServerStorage(
        slot_count=HOST_CONNECTIONS,
        route_count=HOST_ROUTES,
        request_buffer_size=HOST_REQUEST_BUFFER_SIZE,
        response_buffer_size=HOST_RESPONSE_BUFFER_SIZE,
    )


@functools.lru_cache(maxsize=None)
def for_microcontroller() -> ServerStorage:
    """The shared profile for a small device: few connections, small buffers."""
    return ServerStorage(
        slot_count=MCU_CONNECTIONS,
        route_count=MCU_ROUTES,
        request_buffer_size=MCU_REQUEST_BUFFER_SIZE,
        response_buffer_size=MCU_RESPONSE_BUFFER_SIZE,
    )
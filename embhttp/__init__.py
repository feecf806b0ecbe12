"""Compact HTTP/1.1 toolkit: header blocks, query strings, messages, an incremental parser, endpoints, routing and a slot-based server."""

__version__ = "0.1.0"

__all__ = [
    "connection",
    "endpoint",
    "headers",
    "query",
    "request",
    "request_parser",
    "response",
    "routing",
    "server",
    "storage",
]
"""Listening and connecting sides of an HTTP transport."""

from __future__ import annotations

import enum
import socket
import ssl
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field

from embhttp.connection import Connection
from embhttp.headers import HttpError


class EndpointRole(enum.Enum):
    SERVER = "server"
    CLIENT = "client"


@dataclass
class TlsConfig:
    """TLS settings; file paths are only read when ``enable`` is true."""

    enable: bool = False
    certificate_file: str | None = None
    private_key_file: str | None = None
    trusted_certificate_file: str | None = None


@dataclass
class EndpointConfig:
    """Configuration of an endpoint; servers use ``local``, clients ``remote``."""

    role: EndpointRole = EndpointRole.SERVER
    local: tuple[str, int] = ("0.0.0.0", 0)
    remote: tuple[str, int] | None = None
    tls: TlsConfig = field(default_factory=TlsConfig)
    backlog: int = 16


class Endpoint:
    """A server that accepts connections or a client that opens them."""

    def __init__(self, config: EndpointConfig) -> None:
        self.config = config
        self.role = config.role
        self._listener: socket.socket | None = None
        self._ssl_context: ssl.SSLContext | None = None

        if self.role is EndpointRole.SERVER:
            if config.tls.enable:
                if not config.tls.certificate_file:
                    raise ValueError("a TLS server needs a certificate file")
                context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
                context.load_cert_chain(
                    config.tls.certificate_file, config.tls.private_key_file
                )
                self._ssl_context = context
            self._listener = socket.create_server(config.local, backlog=config.backlog)
        elif config.tls.enable:
            context = ssl.create_default_context(
                cafile=config.tls.trusted_certificate_file
            )
            if config.tls.certificate_file:
                context.load_cert_chain(
                    config.tls.certificate_file, config.tls.private_key_file
                )
            self._ssl_context = context

    @property
    def address(self) -> tuple[str, int]:
        """Bound address for a server, remote address for a client."""
        if self.role is EndpointRole.CLIENT:
            if self.config.remote is None:
                raise ValueError("client endpoint has no remote address")
            return self.config.remote
        if self._listener is None:
            raise HttpError("endpoint is closed")
        host, port = self._listener.getsockname()[:2]
        return host, port

    def wait_for_connection(self) -> Connection:
        """Block until a client connects and return the connection."""
        if self.role is not EndpointRole.SERVER:
            raise ValueError("only a server endpoint accepts connections")
        if self._listener is None:
            raise HttpError("endpoint is closed")
        sock, _ = self._listener.accept()
        if self._ssl_context is not None:
            try:
                sock = self._ssl_context.wrap_socket(sock, server_side=True)
            except (OSError, ssl.SSLError):
                sock.close()
                raise
        return Connection(sock, self)

    def wait_for_connection_async(self) -> Future[Connection]:
        """Accept a connection on a background thread; the future holds it."""
        future: Future[Connection] = Future()

        def accept() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.wait_for_connection())
            except Exception as exc:
                future.set_exception(exc)

        threading.Thread(target=accept, daemon=True).start()
        return future

    def connect(self) -> Connection:
        """Open a connection to the configured remote address."""
        if self.role is not EndpointRole.CLIENT:
            raise ValueError("only a client endpoint connects")
        if self.config.remote is None:
            raise ValueError("client endpoint has no remote address")
        sock = socket.create_connection(self.config.remote)
        if self._ssl_context is not None:
            try:
                sock = self._ssl_context.wrap_socket(
                    sock, server_hostname=self.config.remote[0]
                )
            except (OSError, ssl.SSLError):
                sock.close()
                raise
        return Connection(sock, self)

    def close(self) -> None:
        """Stop listening; calling it again does nothing."""
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> Endpoint:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
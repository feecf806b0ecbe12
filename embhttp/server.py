"""Single-threaded, non-blocking HTTP server driven by a selector loop."""

from __future__ import annotations

import enum
import functools
import logging
import selectors
import socket
import ssl
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from embhttp.endpoint import TlsConfig
from embhttp.headers import HttpError
from embhttp.request import Request
from embhttp.request_parser import ParseError, RequestParser
from embhttp.routing import Handler, Route, Router, client_wants_close
from embhttp.storage import ServerStorage

logger = logging.getLogger(__name__)

_STOP_WAIT_SECONDS = 1.0
_SELECT_TIMEOUT = 0.5


class ServerState(enum.Enum):
    """Lifecycle of a server."""

    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


StateCallback = Callable[["HttpServer", ServerState, Any], object]


@dataclass
class ServerConfig:
    """Where the server listens, its TLS settings and a state-change callback."""

    port: int = 0
    host: str = "0.0.0.0"
    tls: TlsConfig = field(default_factory=lambda: TlsConfig(enable=True))
    on_state_changed: StateCallback | None = None
    on_state_changed_context: Any = None
    backlog: int = 16


class _SlotState(enum.Enum):
    HANDSHAKING = "handshaking"
    RECEIVING = "receiving"
    SENDING = "sending"


class _Slot:
    """Per-connection state held while a client is connected."""

    def __init__(self, sock: socket.socket, tls: bool) -> None:
        self.sock = sock
        self.tls = tls
        self.state = _SlotState.HANDSHAKING
        self.recv = bytearray()
        self.send = b""
        self.send_offset = 0
        self.events = 0
        self.parser = RequestParser()
        self.client_wants_close = False
        self.closed = False
        self.callback: Callable[[int], None] | None = None


class HttpServer:
    """Serve registered routes on one thread, multiplexing connections."""

    def __init__(self, config: ServerConfig, storage: ServerStorage) -> None:
        if config is None or storage is None:
            raise ValueError("config and storage are required")
        self.config = config
        self.storage = storage
        self._router = Router(storage.route_count)
        self._cond = threading.Condition()
        self._state = ServerState.INITIALIZED
        self._stop_requested = threading.Event()
        self._listener: socket.socket | None = None
        self._selector: selectors.BaseSelector | None = None
        self._wake_w: socket.socket | None = None
        self._ssl_context: ssl.SSLContext | None = None
        self._slots: list[_Slot] = []
        self._listen_registered = False

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> ServerState:
        with self._cond:
            return self._state

    def _set_state(self, state: ServerState) -> None:
        with self._cond:
            self._state = state
            self._cond.notify_all()
        callback = self.config.on_state_changed
        if callback is not None:
            callback(self, state, self.config.on_state_changed_context)

    @property
    def address(self) -> tuple[str, int]:
        """The address the server is listening on."""
        with self._cond:
            listener = self._listener
        if listener is None:
            raise HttpError("server is not listening")
        try:
            host, port = listener.getsockname()[:2]
        except OSError as exc:
            raise HttpError("server is not listening") from exc
        return host, port

    # ----------------------------------------------------------------- routes

    def add_route(
        self,
        method: bytes | str,
        path: bytes | str,
        handler: Handler,
        context: Any = None,
    ) -> Route:
        """Register ``handler`` for ``method`` and the regular expression ``path``."""
        return self._router.add_route(method, path, handler, context)

    # -------------------------------------------------------------- lifecycle

    def _make_ssl_context(self) -> ssl.SSLContext | None:
        tls = self.config.tls
        if not tls.enable:
            return None
        if not tls.certificate_file:
            raise HttpError("TLS is enabled but no certificate file is configured")
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_cert_chain(tls.certificate_file, tls.private_key_file)
        except (OSError, ssl.SSLError) as exc:
            raise HttpError(f"cannot load TLS certificate: {exc}") from exc
        return context

    def run(self) -> None:
        """Listen and serve until ``stop`` is called."""
        if self.state is ServerState.RUNNING:
            raise HttpError("server is already running")

        ssl_context = self._make_ssl_context()
        try:
            listener = socket.create_server(
                (self.config.host, self.config.port), backlog=self.config.backlog
            )
        except OSError as exc:
            raise HttpError(f"cannot listen on port {self.config.port}: {exc}") from exc
        listener.setblocking(False)

        selector = selectors.DefaultSelector()
        wake_r, wake_w = socket.socketpair()
        wake_r.setblocking(False)
        wake_w.setblocking(False)
        selector.register(listener, selectors.EVENT_READ, self._on_listen_readable)
        selector.register(wake_r, selectors.EVENT_READ, functools.partial(_drain, wake_r))

        self._ssl_context = ssl_context
        self._selector = selector
        self._listen_registered = True
        with self._cond:
            self._listener = listener
            self._wake_w = wake_w
            publish_running = self._state is ServerState.INITIALIZED
        if publish_running:
            self._set_state(ServerState.RUNNING)

        try:
            while not self._stop_requested.is_set():
                for key, mask in selector.select(timeout=_SELECT_TIMEOUT):
                    key.data(mask)
        finally:
            for slot in list(self._slots):
                if slot.events:
                    _unregister(selector, slot.sock)
                    slot.events = 0
                slot.closed = True
                slot.sock.close()
            self._slots.clear()
            if self._listen_registered:
                _unregister(selector, listener)
                self._listen_registered = False
            _unregister(selector, wake_r)
            selector.close()
            with self._cond:
                self._listener = None
                self._wake_w = None
            listener.close()
            wake_r.close()
            wake_w.close()
            self._selector = None
            self._set_state(ServerState.STOPPED)

    def run_async(self) -> Future[None]:
        """Run the server on a background thread; the future completes when it stops."""
        future: Future[None] = Future()

        def serve() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                self.run()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(None)

        threading.Thread(target=serve, daemon=True).start()
        return future

    def stop(self) -> None:
        """Ask a running server to stop; waits up to a second for it to start."""
        with self._cond:
            self._cond.wait_for(
                lambda: self._state in (ServerState.RUNNING, ServerState.STOPPED),
                timeout=_STOP_WAIT_SECONDS,
            )
            already_stopped = self._state is ServerState.STOPPED
        if already_stopped:
            return
        self._set_state(ServerState.STOPPING)
        self._stop_requested.set()
        with self._cond:
            if self._wake_w is not None:
                try:
                    self._wake_w.send(b"\0")
                except OSError:
                    pass

    def close(self) -> None:
        """Forget every registered route."""
        self._router = Router(self.storage.route_count)

    # ------------------------------------------------------------- listening

    def _on_listen_readable(self, mask: int) -> None:
        if self.state is not ServerState.RUNNING:
            return
        assert self._listener is not None and self._selector is not None

        if len(self._slots) >= self.storage.slot_count:
            _unregister(self._selector, self._listener)
            self._listen_registered = False
            return

        try:
            sock, _ = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.error("accept failed: %s", exc)
            return
        sock.setblocking(False)

        if self._ssl_context is not None:
            try:
                sock = self._ssl_context.wrap_socket(
                    sock, server_side=True, do_handshake_on_connect=False
                )
            except (OSError, ssl.SSLError) as exc:
                logger.error("TLS setup failed: %s", exc)
                sock.close()
                return

        slot = _Slot(sock, tls=self._ssl_context is not None)
        slot.callback = functools.partial(self._on_connection_io, slot)
        self._slots.append(slot)
        self._drive_handshake(slot)

    def _release(self, slot: _Slot) -> None:
        if slot in self._slots:
            self._slots.remove(slot)
        if (
            not self._listen_registered
            and self._listener is not None
            and self._selector is not None
            and self.state is ServerState.RUNNING
        ):
            try:
                self._selector.register(
                    self._listener, selectors.EVENT_READ, self._on_listen_readable
                )
            except (KeyError, ValueError, OSError):
                return
            self._listen_registered = True

    # ------------------------------------------------------------ connections

    def _arm(self, slot: _Slot, events: int) -> None:
        if slot.closed or self._selector is None:
            return
        if slot.events == 0:
            self._selector.register(slot.sock, events, slot.callback)
        elif slot.events != events:
            self._selector.modify(slot.sock, events, slot.callback)
        slot.events = events

    def _close_slot(self, slot: _Slot) -> None:
        if slot.closed:
            return
        slot.closed = True
        if slot.events and self._selector is not None:
            _unregister(self._selector, slot.sock)
            slot.events = 0
        try:
            slot.sock.close()
        except OSError:
            pass
        self._release(slot)

    def _on_connection_io(self, slot: _Slot, mask: int) -> None:
        if slot.closed:
            return
        if slot.state is _SlotState.HANDSHAKING:
            self._drive_handshake(slot)
        elif slot.state is _SlotState.RECEIVING:
            self._drive_receive(slot)
        elif slot.state is _SlotState.SENDING:
            self._drive_send(slot)
        else:
            self._close_slot(slot)

    def _drive_handshake(self, slot: _Slot) -> None:
        if slot.tls:
            try:
                slot.sock.do_handshake()  # type: ignore[attr-defined]
            except ssl.SSLWantReadError:
                self._arm(slot, selectors.EVENT_READ)
                return
            except ssl.SSLWantWriteError:
                self._arm(slot, selectors.EVENT_WRITE)
                return
            except OSError as exc:
                logger.error("TLS handshake failed: %s", exc)
                self._close_slot(slot)
                return
        slot.state = _SlotState.RECEIVING
        slot.parser.reset()
        self._arm(slot, selectors.EVENT_READ)

    def _drive_receive(self, slot: _Slot) -> None:
        capacity = self.storage.request_buffer_size
        while True:
            if len(slot.recv) >= capacity:
                logger.error("recv buffer full (%d bytes), closing", len(slot.recv))
                self._close_slot(slot)
                return
            try:
                chunk = slot.sock.recv(capacity - len(slot.recv))
            except (BlockingIOError, InterruptedError, ssl.SSLWantReadError):
                self._arm(slot, selectors.EVENT_READ)
                return
            except ssl.SSLWantWriteError:
                self._arm(slot, selectors.EVENT_WRITE)
                return
            except OSError:
                self._close_slot(slot)
                return
            if not chunk:
                self._close_slot(slot)
                return
            slot.recv += chunk

            try:
                complete = slot.parser.feed(slot.recv)
            except ParseError:
                logger.error("request parse error")
                self._close_slot(slot)
                return
            if complete:
                request = slot.parser.request
                assert request is not None
                self._dispatch(slot, request)
                return

    def _dispatch(self, slot: _Slot, request: Request) -> None:
        slot.client_wants_close = client_wants_close(request)
        try:
            response = self._router.dispatch(request)
            data = response.to_bytes()
        except Exception:
            logger.exception("request handler failed")
            self._close_slot(slot)
            return
        if len(data) > self.storage.response_buffer_size:
            logger.error("response serialise failed (overflow=%d)", len(data))
            self._close_slot(slot)
            return
        slot.send = data
        slot.send_offset = 0
        slot.state = _SlotState.SENDING
        self._arm(slot, selectors.EVENT_WRITE)

    def _drive_send(self, slot: _Slot) -> None:
        view = memoryview(slot.send)
        while slot.send_offset < len(slot.send):
            try:
                written = slot.sock.send(view[slot.send_offset :])
            except (BlockingIOError, InterruptedError, ssl.SSLWantWriteError):
                self._arm(slot, selectors.EVENT_WRITE)
                return
            except ssl.SSLWantReadError:
                self._arm(slot, selectors.EVENT_READ)
                return
            except OSError:
                self._close_slot(slot)
                return
            slot.send_offset += written
        self._finish_send(slot)

    def _finish_send(self, slot: _Slot) -> None:
        if slot.client_wants_close:
            self._close_slot(slot)
            return

        consumed = min(slot.parser.consumed, len(slot.recv))
        del slot.recv[:consumed]
        slot.send = b""
        slot.send_offset = 0
        slot.state = _SlotState.RECEIVING
        slot.parser.reset()

        if slot.recv:
            try:
                complete = slot.parser.feed(slot.recv)
            except ParseError:
                self._close_slot(slot)
                return
            if complete:
                request = slot.parser.request
                assert request is not None
                self._dispatch(slot, request)
                return

        self._arm(slot, selectors.EVENT_READ)


def _drain(sock: socket.socket, mask: int) -> None:
    try:
        while sock.recv(64):
            pass
    except (BlockingIOError, InterruptedError, OSError):
        pass


def _unregister(selector: selectors.BaseSelector, sock: socket.socket) -> None:
    try:
        selector.unregister(sock)
    except (KeyError, ValueError):
        pass
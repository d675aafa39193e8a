from __future__ import annotations

"""
Transport Connection: the only code that touches the raw byte stream.

A `Connection` owns exactly one stream handle to one peer. Every operation is
guarded by a lock so that `close()` may race an in-flight `write()` without
operating on a released handle; the racing write simply fails.
"""

import errno
import logging
import socket
import threading
from enum import Enum
from typing import Protocol

from touchpointer.protocol import SERIAL_PORT_SERVICE_UUID, PeerHandle

from .errors import ConnectFailed, LinkError, PeerUnavailable, PermissionDenied, WriteFailed

logger = logging.getLogger(__name__)

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)


class Stream(Protocol):
    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class StreamOpener(Protocol):
    def open(self, peer: PeerHandle) -> Stream: ...


class DiscoveryControl(Protocol):
    def cancel_discovery(self) -> None: ...


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class SocketStream:
    """Stream over a connected stream socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    def write(self, data: bytes) -> None:
        self._sock.sendall(data)

    def close(self) -> None:
        # shutdown first so a sendall blocked on another thread returns
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()


class RfcommOpener:
    """Opens an RFCOMM channel to the peer's serial port service."""

    def __init__(self, channel: int = 1, timeout_s: float = 12.0) -> None:
        self.channel = channel
        self.timeout_s = timeout_s

    def open(self, peer: PeerHandle) -> Stream:
        if peer.services and SERIAL_PORT_SERVICE_UUID not in peer.services:
            raise ConnectFailed(f"{peer.label} does not offer the serial port service")
        if not hasattr(socket, "AF_BLUETOOTH"):
            raise PeerUnavailable("Bluetooth sockets are not supported on this platform")

        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        try:
            sock.settimeout(self.timeout_s)
            sock.connect((peer.address, self.channel))
            # writes may block; the dispatch worker absorbs that latency
            sock.settimeout(None)
        except BaseException:
            sock.close()
            raise
        return SocketStream(sock)


class WebSocketStream:
    def __init__(self, ws) -> None:
        self._ws = ws

    def write(self, data: bytes) -> None:
        try:
            self._ws.send(data.decode("ascii"))
        except Exception as e:
            raise OSError(f"websocket send failed: {e}") from e

    def close(self) -> None:
        self._ws.close()


class WebSocketOpener:
    """
    Development backend: one text frame per command line.

    The peer address is the receiver's ws:// URL (see touchpointer.tools.receiver).
    """

    def __init__(self, timeout_s: float = 12.0) -> None:
        self.timeout_s = timeout_s

    def open(self, peer: PeerHandle) -> Stream:
        from websockets.sync.client import connect as ws_connect

        try:
            ws = ws_connect(peer.address, open_timeout=self.timeout_s, max_size=2**16)
        except Exception as e:
            raise OSError(f"websocket open failed: {e}") from e
        return WebSocketStream(ws)


class Connection:
    def __init__(
        self,
        peer: PeerHandle,
        opener: StreamOpener,
        discovery: DiscoveryControl | None = None,
    ) -> None:
        self.peer = peer
        self._opener = opener
        self._discovery = discovery
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._stream: Stream | None = None
        self._connect_called = False
        self._attempt = 0

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    def connect(self) -> Connection:
        with self._lock:
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                raise RuntimeError(f"connection to {self.peer.label} already {self._state.value}")
            self._state = ConnectionState.CONNECTING
            self._connect_called = True
            self._attempt += 1
            attempt = self._attempt

        try:
            if self._discovery is not None:
                self._discovery.cancel_discovery()
            stream = self._opener.open(self.peer)
        except LinkError:
            self._fail(attempt)
            raise
        except OSError as e:
            self._fail(attempt)
            if e.errno in _PERMISSION_ERRNOS or isinstance(e, PermissionError):
                raise PermissionDenied(f"not authorized to connect to {self.peer.label}") from e
            raise ConnectFailed(f"could not open channel to {self.peer.label}: {e}") from e
        except Exception:
            self._fail(attempt)
            raise

        with self._lock:
            if self._state is ConnectionState.CONNECTING and self._attempt == attempt:
                self._stream = stream
                self._state = ConnectionState.CONNECTED
                logger.info("connected to %s [%s]", self.peer.label, self.peer.address)
                return self
        # closed while the channel was opening
        _release(stream)
        raise ConnectFailed("cancelled")

    def _fail(self, attempt: int) -> None:
        with self._lock:
            if self._attempt == attempt and self._state is ConnectionState.CONNECTING:
                self._state = ConnectionState.FAILED

    def write(self, data: bytes) -> None:
        with self._lock:
            if not self._connect_called:
                raise RuntimeError("write() called before connect()")
            if self._state is not ConnectionState.CONNECTED or self._stream is None:
                raise WriteFailed(f"connection is {self._state.value}")
            stream = self._stream

        try:
            with self._write_lock:
                stream.write(data)
        except OSError as e:
            with self._lock:
                if self._stream is stream:
                    self._state = ConnectionState.FAILED
                    self._stream = None
                else:
                    stream = None
            if stream is not None:
                _release(stream)
            raise WriteFailed(f"IOError: {e}") from e

    def close(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
            if self._state is not ConnectionState.DISCONNECTED:
                logger.info("closing connection to %s", self.peer.label)
            self._state = ConnectionState.DISCONNECTED
            # a connect() still in flight must not publish its stream
            self._attempt += 1
        if stream is not None:
            _release(stream)


def _release(stream: Stream) -> None:
    try:
        stream.close()
    except OSError as e:
        logger.debug("error while releasing stream: %s", e)


def connect(
    peer: PeerHandle | None,
    opener: StreamOpener,
    discovery: DiscoveryControl | None = None,
) -> Connection:
    if peer is None:
        raise PeerUnavailable("no bonded peer selected")
    return Connection(peer, opener, discovery).connect()

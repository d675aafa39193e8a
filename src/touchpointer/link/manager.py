from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from pydantic import BaseModel, ConfigDict

from touchpointer.protocol import PeerHandle

from .errors import ConnectFailed, LinkError, PeerUnavailable
from .scheduler import SendScheduler
from .transport import Connection, DiscoveryControl, StreamOpener

logger = logging.getLogger(__name__)


class LinkState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class LinkStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: LinkState = LinkState.IDLE
    peer: PeerHandle | None = None
    # Failed only: human-readable reason + error kind (PeerUnavailable, ...)
    reason: str | None = None
    error: str | None = None
    detail: str | None = None

    def __str__(self) -> str:
        if self.state is LinkState.FAILED:
            return f"failed({self.reason})"
        if self.peer is not None:
            return f"{self.state.value} {self.peer.label}"
        return self.state.value


StatusObserver = Callable[[LinkStatus], None]


class ConnectionManager:
    """
    Drives one Connection through its lifecycle and broadcasts LinkStatus.

    At most one connection attempt or session exists at a time; the scheduler's
    output path is enabled only while the status is CONNECTED.
    """

    def __init__(
        self,
        scheduler: SendScheduler,
        opener: StreamOpener,
        discovery: DiscoveryControl | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.scheduler.on_write_failed = self._on_write_failed
        self._opener = opener
        self._discovery = discovery
        self._lock = threading.Lock()
        self._status = LinkStatus()
        self._connection: Connection | None = None
        self._connect_thread: threading.Thread | None = None
        self._observers: list[StatusObserver] = []

    @property
    def status(self) -> LinkStatus:
        with self._lock:
            return self._status

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def request_connect(self, peer: PeerHandle | None, *, block: bool = False) -> bool:
        """Start connecting to `peer`; no-op while connecting or connected."""
        with self._lock:
            if self._status.state in (LinkState.CONNECTING, LinkState.CONNECTED):
                logger.info("connect request ignored: already %s", self._status.state.value)
                return False
            if peer is not None:
                conn = self._connection = Connection(peer, self._opener, self._discovery)
                status = self._status = LinkStatus(state=LinkState.CONNECTING, peer=peer)
        if peer is None:
            self._publish_failure(PeerUnavailable("no bonded peer selected"))
            return False
        self._notify(status)

        if block:
            self._connect(conn)
        else:
            self._connect_thread = threading.Thread(
                target=self._connect, args=(conn,), name="touchpointer-connect", daemon=True
            )
            self._connect_thread.start()
        return True

    def wait(self, timeout: float | None = None) -> None:
        """Wait for a background connect attempt to finish."""
        t = self._connect_thread
        if t is not None:
            t.join(timeout=timeout)

    def request_disconnect(self) -> None:
        with self._lock:
            conn, self._connection = self._connection, None
            self.scheduler.disable()
            changed = self._status.state is not LinkState.IDLE
            status = self._status = LinkStatus(state=LinkState.IDLE)
        if conn is not None:
            conn.close()
        if changed:
            logger.info("disconnected")
            self._notify(status)

    def shutdown(self) -> None:
        self.request_disconnect()
        self.scheduler.stop()

    def _connect(self, conn: Connection) -> None:
        error: LinkError | None = None
        try:
            conn.connect()
        except LinkError as e:
            error = e
        except Exception as e:
            logger.exception("unexpected error connecting to %s", conn.peer.label)
            error = ConnectFailed(f"{type(e).__name__}: {e}")

        if error is not None:
            with self._lock:
                if self._connection is not conn:
                    return
                self._connection = None
            conn.close()
            logger.warning("connect to %s failed: %s", conn.peer.label, error.reason)
            self._publish_failure(error, peer=conn.peer)
            return

        with self._lock:
            if self._connection is not conn:
                stale = True
            else:
                stale = False
                self.scheduler.enable(conn)
                status = self._status = LinkStatus(state=LinkState.CONNECTED, peer=conn.peer)
        if stale:
            conn.close()
            return
        self._notify(status)

    def _on_write_failed(self, target: Connection, exc: OSError) -> None:
        with self._lock:
            conn = self._connection
            if conn is None or conn is not target:
                # the failed session was already replaced or torn down
                return
            self._connection = None
            status = self._status = LinkStatus(
                state=LinkState.FAILED,
                peer=conn.peer,
                reason="IOError",
                error="WriteFailed",
                detail=str(exc),
            )
        conn.close()
        self._notify(status)

    def _publish_failure(self, error: LinkError, peer: PeerHandle | None = None) -> None:
        with self._lock:
            status = self._status = LinkStatus(
                state=LinkState.FAILED,
                peer=peer,
                reason=error.reason,
                error=error.kind,
            )
        self._notify(status)

    def _notify(self, status: LinkStatus) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(status)
            except Exception:
                logger.exception("status observer raised")

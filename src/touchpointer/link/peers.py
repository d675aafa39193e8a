from __future__ import annotations

import logging
import re
import shutil
import subprocess
from typing import Callable, Iterable

from touchpointer.protocol import PeerHandle

from .errors import PeerUnavailable, PermissionDenied

logger = logging.getLogger(__name__)

Runner = Callable[[list[str]], str]

_DEVICE_RE = re.compile(r"^Device\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})\s*(.*)$")
_UUID_RE = re.compile(r"^\s*UUID:.*\(([0-9A-Fa-f-]{36})\)\s*$")
_DENIED_MARKERS = ("not authorized", "access denied", "permission denied")


def _run_bluetoothctl(args: list[str], timeout_s: float = 5.0) -> str:
    exe = shutil.which("bluetoothctl")
    if exe is None:
        raise PeerUnavailable("bluetoothctl not found (is BlueZ installed?)")
    try:
        proc = subprocess.run(
            [exe, *args],
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise PeerUnavailable(f"bluetoothctl {' '.join(args)} timed out") from e
    except PermissionError as e:
        raise PermissionDenied(f"not allowed to run bluetoothctl: {e}") from e
    return proc.stdout + proc.stderr


def parse_devices(text: str) -> list[tuple[str, str]]:
    """Parse `bluetoothctl devices` output into (address, name) pairs."""
    out: list[tuple[str, str]] = []
    for line in text.splitlines():
        m = _DEVICE_RE.match(line.strip())
        if m:
            out.append((m.group(1).upper(), m.group(2).strip()))
    return out


def parse_service_uuids(text: str) -> frozenset[str]:
    return frozenset(m.group(1).lower() for m in map(_UUID_RE.match, text.splitlines()) if m)


class BluezAdapter:
    """
    Bonded-peer access through `bluetoothctl`.

    Errors:
    - no controller / adapter off / BlueZ missing -> PeerUnavailable
    - D-Bus authorization failures -> PermissionDenied
    """

    def __init__(self, run: Runner | None = None) -> None:
        self._run = run or _run_bluetoothctl

    def _call(self, args: list[str]) -> str:
        text = self._run(args)
        low = text.lower()
        if any(marker in low for marker in _DENIED_MARKERS):
            raise PermissionDenied(f"bluetoothctl {' '.join(args)}: not authorized")
        if "no default controller" in low:
            raise PeerUnavailable("no Bluetooth adapter available")
        return text

    def is_powered(self) -> bool:
        for line in self._call(["show"]).splitlines():
            line = line.strip()
            if line.startswith("Powered:"):
                return line.split(":", 1)[1].strip().lower() == "yes"
        return False

    def bonded_peers(self) -> list[PeerHandle]:
        if not self.is_powered():
            raise PeerUnavailable("Bluetooth adapter is powered off")
        peers: list[PeerHandle] = []
        for address, name in parse_devices(self._call(["devices", "Paired"])):
            services = parse_service_uuids(self._call(["info", address]))
            logger.debug("paired: %s [%s] services=%d", name, address, len(services))
            peers.append(PeerHandle(address=address, name=name, services=services))
        return peers

    def cancel_discovery(self) -> None:
        # "scan off" fails when no discovery is running; only authorization matters here
        text = self._call(["scan", "off"])
        logger.debug("scan off: %s", text.strip())


def find_peer(peers: Iterable[PeerHandle], query: str) -> PeerHandle | None:
    """Select a peer by address or case-insensitive name."""
    q = query.strip()
    peers = list(peers)
    for peer in peers:
        if peer.address.upper() == q.upper():
            return peer
    for peer in peers:
        if peer.name.lower() == q.lower():
            return peer
    return None

from __future__ import annotations


class LinkError(Exception):
    """Base for every recoverable link failure."""

    kind = "LinkError"

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason or self.kind)
        self.reason = reason or self.kind


class PeerUnavailable(LinkError):
    """No bonded peer selected, or the local adapter is missing or off."""

    kind = "PeerUnavailable"


class ConnectFailed(LinkError):
    kind = "ConnectFailed"


class PermissionDenied(LinkError):
    """Platform authorization is missing; prompt instead of retrying."""

    kind = "PermissionDenied"


class WriteFailed(LinkError, OSError):
    kind = "WriteFailed"

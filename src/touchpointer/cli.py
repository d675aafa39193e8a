from __future__ import annotations

import argparse
import logging
import sys
import time

from touchpointer.bridge import TouchscreenReader, resolve_input_device
from touchpointer.input import GestureRecognizer, GestureThresholds
from touchpointer.link.config import Settings, get_settings
from touchpointer.link.errors import LinkError
from touchpointer.link.manager import ConnectionManager, LinkState, LinkStatus
from touchpointer.link.peers import BluezAdapter, find_peer
from touchpointer.link.scheduler import SendScheduler
from touchpointer.link.transport import RfcommOpener, StreamOpener, WebSocketOpener
from touchpointer.pad import TouchPad
from touchpointer.protocol import SERIAL_PORT_SERVICE_UUID, PeerHandle


def _print_status(status: LinkStatus) -> None:
    print(f"[link] {status}")


def _make_opener(settings: Settings) -> StreamOpener:
    if settings.transport == "websocket":
        return WebSocketOpener(timeout_s=settings.connect_timeout_s)
    return RfcommOpener(channel=settings.rfcomm_channel, timeout_s=settings.connect_timeout_s)


def cmd_peers() -> int:
    try:
        peers = BluezAdapter().bonded_peers()
    except LinkError as e:
        print(f"[peers] {e.kind}: {e.reason}", file=sys.stderr)
        return 1
    if not peers:
        print("No paired Bluetooth devices found")
        return 0
    for peer in peers:
        serial = "yes" if SERIAL_PORT_SERVICE_UUID in peer.services else "unknown"
        print(f"{peer.name or '?'} [{peer.address}] serial-port={serial}")
    return 0


def _resolve_peer(query: str, adapter: BluezAdapter | None) -> PeerHandle | None:
    if adapter is None:
        # websocket transport: the query is the receiver URL
        return PeerHandle(address=query, name=query)
    return find_peer(adapter.bonded_peers(), query)


def cmd_run(settings: Settings, query: str, device: str | None, reconnect: bool) -> int:
    adapter = BluezAdapter() if settings.transport == "rfcomm" else None
    try:
        peer = _resolve_peer(query, adapter)
    except LinkError as e:
        print(f"[run] {e.kind}: {e.reason}", file=sys.stderr)
        return 1

    try:
        device_path = resolve_input_device(device or settings.input_device)
    except RuntimeError as e:
        print(f"[run] {e}", file=sys.stderr)
        return 1

    scheduler = SendScheduler.from_settings(settings)
    manager = ConnectionManager(scheduler, _make_opener(settings), adapter)
    manager.subscribe(_print_status)
    pad = TouchPad(
        GestureRecognizer(GestureThresholds.from_settings(settings)),
        scheduler,
        poll_interval_s=settings.poll_interval_s,
    )
    reader = TouchscreenReader(device_path, pad.handle_sample, grab=settings.grab_device)

    pad.start()
    reader.start()
    try:
        while reader.alive:
            if manager.status.state in (LinkState.IDLE, LinkState.FAILED):
                if manager.status.state is LinkState.FAILED and not reconnect:
                    return 1
                if not manager.request_connect(peer, block=True):
                    return 1
                if manager.status.state is not LinkState.CONNECTED and reconnect:
                    # best-effort reconnect loop (radio links can be flaky)
                    time.sleep(settings.reconnect_delay_s)
                continue
            time.sleep(0.1)
        if reader.error is not None:
            print(f"[run] input device {reader.path}: {reader.error}", file=sys.stderr)
            return 1
        return 0
    except KeyboardInterrupt:
        print("\nStopping...")
        return 0
    finally:
        reader.stop()
        pad.stop()
        manager.shutdown()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="touchpointer", description="Use a touchscreen as a remote pointer.")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("peers", help="List paired Bluetooth devices")

    run = sub.add_parser("run", help="Connect to a peer and stream touch gestures")
    run.add_argument("--peer", required=True, help="Paired device name or address (ws:// URL for websocket)")
    run.add_argument("--device", default=None, help="Input device, e.g. /dev/input/event2")
    run.add_argument(
        "--transport",
        choices=("rfcomm", "websocket"),
        default=None,
        help="Stream backend (default: TOUCHPOINTER_TRANSPORT or rfcomm)",
    )
    run.add_argument("--reconnect", action="store_true", help="Retry after connect or write failures")
    args = ap.parse_args(argv)

    settings = get_settings()
    if getattr(args, "transport", None):
        settings = settings.model_copy(update={"transport": args.transport})
    logging.basicConfig(level=settings.log_level.upper(), format="[%(name)s] %(message)s")

    if args.cmd == "peers":
        return cmd_peers()
    return cmd_run(settings, args.peer, args.device, args.reconnect)


if __name__ == "__main__":
    raise SystemExit(main())

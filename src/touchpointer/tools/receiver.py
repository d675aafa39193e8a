from __future__ import annotations

import argparse
import asyncio
import json
import time
from pathlib import Path
from typing import TextIO

import websockets

from touchpointer.protocol import DELIMITER, is_valid_command


def _now_ms() -> int:
    return int(time.time() * 1000)


def split_lines(frame: str | bytes) -> list[str]:
    """Split a received frame into command lines (delimiters dropped)."""
    if isinstance(frame, bytes):
        frame = frame.decode("ascii", errors="replace")
    return [line for line in frame.split(DELIMITER) if line]


def record_line(line: str, out: TextIO | None, *, echo: bool) -> None:
    ok = is_valid_command(line)
    if echo:
        print(f"[receiver] {line}" + ("" if ok else "  (malformed)"))
    if out is not None:
        out.write(json.dumps({"ts": _now_ms(), "line": line, "ok": ok}, ensure_ascii=False) + "\n")
        out.flush()


async def serve(host: str, port: int, out_path: Path | None, *, echo: bool) -> None:
    out: TextIO | None = None
    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out = out_path.open("a", encoding="utf-8")

    async def handler(ws) -> None:
        print(f"[receiver] peer connected: {ws.remote_address}")
        try:
            async for frame in ws:
                for line in split_lines(frame):
                    record_line(line, out, echo=echo)
        except websockets.ConnectionClosed as e:
            print(f"[receiver] connection closed: {e}")
            return
        print("[receiver] peer disconnected")

    try:
        async with websockets.serve(handler, host, port, max_size=2**16):
            print(f"[receiver] listening on ws://{host}:{port}")
            await asyncio.Future()
    finally:
        if out is not None:
            out.close()


def main() -> None:
    ap = argparse.ArgumentParser(description="Development peer: print and record pointer commands.")
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--port", type=int, default=8765)
    ap.add_argument("--out", default=None, help="Append received lines to this JSONL path")
    ap.add_argument("--quiet", action="store_true", help="Do not print received lines")
    args = ap.parse_args()

    asyncio.run(serve(args.host, args.port, Path(args.out) if args.out else None, echo=not args.quiet))


if __name__ == "__main__":
    main()

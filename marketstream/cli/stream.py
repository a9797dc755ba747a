"""
Minimal CLI entrypoint to watch a live tick or quote stream.

Usage: mstream quotes US88160R1014 DE000TUAG000 --duration 60

Options:
  kind                  "ticks" or "quotes" [REQUIRED]
  isins ...             One or more ISINs to subscribe to [REQUIRED]
  --config FILE         TOML settings file (endpoints, connection, sink)
  --raw                 Also print raw payloads as received
  --duration FLOAT      Seconds to run; runs until interrupted if omitted
  --log-level LEVEL     Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional, TextIO

from marketstream.calendar import is_exchange_open
from marketstream.live.errors import ConfigurationError, ConnectFailed, StreamError
from marketstream.live.settings import StreamSettings, load_settings
from marketstream.live.stream import open_stream
from marketstream.live.types import Quote, Tick, UpdateKind
from marketstream.ports.transport import Transport

logger = logging.getLogger(__name__)

_KINDS = {"ticks": UpdateKind.TICK, "quotes": UpdateKind.QUOTE}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mstream", description="Watch a live market data stream")
    parser.add_argument("kind", choices=sorted(_KINDS), help="Stream to open")
    parser.add_argument("isins", nargs="+", help="Space-separated ISINs, e.g., US88160R1014")
    parser.add_argument("--config", type=Path, help="TOML settings file")
    parser.add_argument("--raw", action="store_true", help="Also print raw payloads.")
    parser.add_argument(
        "--duration",
        type=float,
        help="Seconds to run. Runs until interrupted if omitted.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )
    return parser


def format_update(update: Tick | Quote) -> str:
    if isinstance(update, Tick):
        trade = f" qty={update.quantity}" if update.was_trade else ""
        return f"tick  {update.isin} price={update.price}{trade}"
    return (
        f"quote {update.isin} bid={update.bid}x{update.bid_size} "
        f"ask={update.ask}x{update.ask_size}"
    )


def format_error(error: StreamError) -> str:
    return f"error [{error.kind.value}] {error}"


def format_raw(payload: bytes) -> str:
    return f"raw   {payload.decode('utf-8', errors='replace')}"


async def _print_queue(
    queue: asyncio.Queue[Any], render: Callable[[Any], str], out: TextIO
) -> None:
    while True:
        item = await queue.get()
        print(render(item), file=out, flush=True)
        queue.task_done()


async def run(
    args: argparse.Namespace,
    *,
    transport: Optional[Transport] = None,
    out: TextIO = sys.stdout,
) -> int:
    """Open the stream, subscribe, print until the duration elapses."""
    settings = load_settings(args.config) if args.config else StreamSettings()
    kind = settings.stream_kind(_KINDS[args.kind])
    queue_size = settings.sink.queue_size

    updates: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
    errors: asyncio.Queue[StreamError] = asyncio.Queue(maxsize=queue_size)
    raw: Optional[asyncio.Queue[bytes]] = asyncio.Queue(maxsize=queue_size) if args.raw else None

    if not is_exchange_open():
        logger.warning("Exchange is closed right now, expect no updates until it opens")

    try:
        stream = await open_stream(
            kind,
            updates,
            errors,
            transport=transport,
            config=settings.connection_config(),
            sink_config=settings.sink_config(),
        )
    except ConnectFailed as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1

    outputs: list[tuple[asyncio.Queue[Any], Callable[[Any], str]]] = [
        (updates, format_update),
        (errors, format_error),
    ]
    if raw is not None:
        stream.set_raw_message_tap(raw)
        outputs.append((raw, format_raw))
    printers = [asyncio.create_task(_print_queue(q, render, out)) for q, render in outputs]

    try:
        for isin in args.isins:
            await stream.subscribe(isin)

        if args.duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(args.duration)
    finally:
        await stream.disconnect()
        for task in printers:
            task.cancel()
        await asyncio.gather(*printers, return_exceptions=True)
        # Print what was delivered but not yet consumed
        for queue, render in outputs:
            while not queue.empty():
                print(render(queue.get_nowait()), file=out, flush=True)

    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(run(args))
    except ConfigurationError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted by user.")
        return 130


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

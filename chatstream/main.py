"""Entry point: replay recorded backend frames through the chat service.

Usage:
  python -m chatstream.main frames.jsonl --prompt "hi"
  chatstream-replay frames.txt --reply-deep 1 --config config/local.yaml

Notifications go to stdout as JSON lines, or to Redis when redis.enabled.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING, Optional, Sequence

from chatstream.config import get_config
from chatstream.core.events import AskOptions, AskType
from chatstream.core.logging_config import setup_logging

if TYPE_CHECKING:
    from chatstream.config.loader import Config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatstream-replay", description="Replay recorded chat frames through the interpreter"
    )
    parser.add_argument("frames", help="File with one JSON frame per line or \\x1e-delimited frames")
    parser.add_argument("--prompt", default="", help="Prompt of the replayed request")
    parser.add_argument("--context", default="", help="Preceding chat context")
    parser.add_argument("--image-url", default="", help="Image reference URL")
    parser.add_argument("--reply-deep", type=int, default=0, help="Revoke retries so far")
    parser.add_argument("--type", type=int, default=int(AskType.SYDNEY), help="Backend variant")
    parser.add_argument("--config", default=None, help="YAML config path")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config(args.config)
    setup_logging(config.logging.level, use_json=config.logging.json_format)
    options = AskOptions(
        type=args.type,
        chat_context=args.context,
        prompt=args.prompt,
        image_url=args.image_url,
        reply_deep=args.reply_deep,
    )
    try:
        asyncio.run(run_replay(config, options, args.frames))
    except KeyboardInterrupt:
        return 130
    except OSError as e:
        logger.error("cannot read frames: %s", e)
        return 1
    return 0


async def run_replay(config: Config, options: AskOptions, frames_path: str) -> None:
    from chatstream.core.dispatch import ChatService
    from chatstream.core.sink import StreamSink
    from chatstream.core.source import ReplayFrameSource

    source = ReplayFrameSource.from_file(frames_path)

    async def open_source(_: AskOptions) -> ReplayFrameSource:
        return source

    if not config.redis.enabled:
        await ChatService(config, StreamSink(sys.stdout), open_source).ask(options)
        return

    from chatstream.core.bus import EventBus

    bus = EventBus(config.redis.url, config.chat.session_id)
    await bus.connect()
    service = ChatService(config, bus, open_source)
    bus.on_stop(service.stop)
    listener = asyncio.create_task(bus.run_listener())
    try:
        await service.ask(options)
    finally:
        bus.stop()
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        await bus.disconnect()


if __name__ == "__main__":
    sys.exit(main())

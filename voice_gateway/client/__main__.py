"""
Command line reference client.

Usage:
    python -m voice_gateway.client [--url URL] [--text TEXT ...] [--mic SECONDS]
                                   [--wait SECONDS] [--no-playback]
"""

import argparse
import asyncio
import logging
import sys

from voice_gateway.client.audio_player import (
    NullAudioOutput,
    PyAudioOutput,
    init_audio_player,
    shutdown_audio_player,
)
from voice_gateway.client.event_router import EventRouter
from voice_gateway.client.gateway_client import DEFAULT_GATEWAY_URL, GatewayClient
from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.config.logging_config import configure_logging

logger = logging.getLogger(LOGGER_NAME)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Talk to a running Voice Gateway")
    parser.add_argument("--url", default=DEFAULT_GATEWAY_URL, help="Gateway WebSocket URL")
    parser.add_argument("--text", action="append", default=[], help="Text message to send (repeatable)")
    parser.add_argument("--mic", type=float, default=0.0, help="Seconds of microphone audio to send")
    parser.add_argument("--wait", type=float, default=10.0, help="Seconds to wait for replies after each message")
    parser.add_argument("--no-playback", action="store_true", help="Do not play received audio")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


async def run_client(args) -> int:
    player = init_audio_player(NullAudioOutput() if args.no_playback else PyAudioOutput())
    router = EventRouter(player, on_error=lambda error: print(f"[error] {error}"))
    client = GatewayClient(args.url, router)

    try:
        await client.connect()
        listener = asyncio.create_task(client.listen())

        # Let the greeting arrive before the first message
        await asyncio.sleep(args.wait / 2)
        for text in args.text:
            await client.send_text(text)
            await asyncio.sleep(args.wait)
        if args.mic > 0:
            router.start_turn()
            await client.stream_microphone(args.mic)
            await asyncio.sleep(args.wait)

        await player.wait_idle()
        await client.close()
        await listener
    except OSError as e:
        logger.error(f"Could not connect to {args.url}: {e}")
        return 1
    finally:
        await shutdown_audio_player()

    for message in router.messages:
        print(f"{message.role}: {message.content}")
    for event in router.tool_events:
        print(f"[{event['type']}] {event.get('tool') or event.get('to')} {event.get('output', '')}".rstrip())
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(run_client(args))


if __name__ == "__main__":
    sys.exit(main())

"""
WebSocket client for the gateway's browser dialect.
"""

import asyncio
import json
import logging
from typing import Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed

from voice_gateway.client.event_router import EventRouter
from voice_gateway.config.constants import CLIENT_SAMPLE_RATE, LOGGER_NAME
from voice_gateway.models.message_schemas import (
    AudioCommand,
    ClientCommand,
    CommitAudioCommand,
    InterruptCommand,
    TextMessageCommand,
)

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_GATEWAY_URL = "ws://localhost:8000/ws"
MIC_FRAME_SIZE = 4096


class GatewayClient:
    """Sends commands to the gateway and feeds received events to an EventRouter."""

    def __init__(self, url: str = DEFAULT_GATEWAY_URL, router: Optional[EventRouter] = None):
        self.url = url
        self.router = router or EventRouter()
        self.ws = None

    @property
    def is_connected(self) -> bool:
        return self.ws is not None

    async def connect(self) -> None:
        self.ws = await websockets.connect(self.url, max_size=16 * 1024 * 1024)
        logger.info(f"Connected to gateway at {self.url}")

    async def send_command(self, command: ClientCommand) -> None:
        if self.ws is None:
            raise RuntimeError("Not connected to the gateway")
        await self.ws.send(command.model_dump_json())

    async def send_text(self, text: str) -> None:
        """Start a new turn with a typed message."""
        self.router.start_turn()
        await self.send_command(TextMessageCommand(text=text))
        logger.info(f"Sent text message: {text}")

    async def send_audio(self, samples: Sequence[int]) -> None:
        await self.send_command(AudioCommand(data=list(samples)))

    async def commit_audio(self) -> None:
        await self.send_command(CommitAudioCommand())

    async def interrupt(self) -> None:
        self.router.start_turn()
        await self.send_command(InterruptCommand())

    async def listen(self) -> None:
        """Route incoming events until the gateway closes the connection."""
        try:
            async for message in self.ws:
                try:
                    event = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring non-JSON message: {message[:100]}")
                    continue
                if isinstance(event, dict):
                    self.router.handle_event(event)
        except ConnectionClosed as e:
            logger.info(f"Gateway connection closed: {e}")

    async def stream_microphone(self, seconds: float, sample_rate: int = CLIENT_SAMPLE_RATE) -> None:
        """Capture the default input device for a number of seconds, then commit."""
        import numpy as np
        import pyaudio

        pa = pyaudio.PyAudio()
        stream = pa.open(format=pyaudio.paInt16, channels=1, rate=sample_rate,
                         input=True, frames_per_buffer=MIC_FRAME_SIZE)
        try:
            frames = int(seconds * sample_rate / MIC_FRAME_SIZE)
            logger.info(f"Recording {seconds}s from microphone")
            for _ in range(frames):
                data = await asyncio.to_thread(stream.read, MIC_FRAME_SIZE, False)
                await self.send_audio(np.frombuffer(data, dtype="<i2").tolist())
        finally:
            stream.stop_stream()
            stream.close()
            pa.terminate()
        await self.commit_audio()

    async def close(self) -> None:
        if self.ws is not None:
            await self.ws.close()
            self.ws = None

"""
Serial audio player for audio events received from the gateway.

Chunks are queued as base64 strings and played strictly one after another.
Each chunk is first tried as a packaged audio file (WAV); anything else is
treated as raw little-endian mono PCM16 at the chunk's sample rate, or 44.1 kHz
when none was given. stop() discards the queue and silences the current chunk.

The player is a process-wide resource: init_audio_player() creates it,
get_audio_player() returns it and shutdown_audio_player() releases the device.
"""

import abc
import asyncio
import base64
import logging
import threading
import wave
from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np

from voice_gateway.config.constants import CLIENT_SAMPLE_RATE, LOGGER_NAME
from voice_gateway.utils.audio import decode_wav, float_to_pcm16, pcm16_to_float

logger = logging.getLogger(LOGGER_NAME)

POLL_INTERVAL = 0.05  # seconds between playback-finished checks
FRAMES_PER_BUFFER = 1024


class PlaybackHandle(abc.ABC):
    """A single buffer being played by an AudioOutput."""

    @property
    @abc.abstractmethod
    def is_playing(self) -> bool:
        ...

    @abc.abstractmethod
    def stop(self) -> None:
        ...


class AudioOutput(abc.ABC):
    """Audio device the player renders to."""

    @abc.abstractmethod
    async def resume(self) -> None:
        """Make sure the device is open and running."""

    @abc.abstractmethod
    def play(self, samples: np.ndarray, sample_rate: int) -> PlaybackHandle:
        """Start playing mono float32 samples and return immediately."""

    @abc.abstractmethod
    def close(self) -> None:
        ...


class _FinishedPlayback(PlaybackHandle):
    @property
    def is_playing(self) -> bool:
        return False

    def stop(self) -> None:
        pass


class NullAudioOutput(AudioOutput):
    """Discards audio; every buffer finishes immediately."""

    async def resume(self) -> None:
        pass

    def play(self, samples: np.ndarray, sample_rate: int) -> PlaybackHandle:
        return _FinishedPlayback()

    def close(self) -> None:
        pass


class _ThreadPlayback(PlaybackHandle):
    def __init__(self, pa, samples: np.ndarray, sample_rate: int):
        self._pa = pa
        self._pcm = float_to_pcm16(samples)
        self._sample_rate = sample_rate
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        import pyaudio

        stream = self._pa.open(format=pyaudio.paInt16, channels=1, rate=self._sample_rate, output=True)
        try:
            chunk_bytes = FRAMES_PER_BUFFER * 2
            for offset in range(0, len(self._pcm), chunk_bytes):
                if self._stop.is_set():
                    break
                stream.write(self._pcm[offset:offset + chunk_bytes])
        finally:
            stream.stop_stream()
            stream.close()

    @property
    def is_playing(self) -> bool:
        return self._thread.is_alive()

    def stop(self) -> None:
        self._stop.set()


class PyAudioOutput(AudioOutput):
    """Plays through the default output device with pyaudio."""

    def __init__(self):
        self._pa = None

    async def resume(self) -> None:
        if self._pa is None:
            import pyaudio

            self._pa = pyaudio.PyAudio()
            logger.info("Audio output opened")

    def play(self, samples: np.ndarray, sample_rate: int) -> PlaybackHandle:
        return _ThreadPlayback(self._pa, samples, sample_rate)

    def close(self) -> None:
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None


class AudioPlayer:
    """FIFO player; at most one chunk plays at any time."""

    def __init__(self, output: AudioOutput, poll_interval: float = POLL_INTERVAL,
                 default_sample_rate: int = CLIENT_SAMPLE_RATE):
        self.output = output
        self.poll_interval = poll_interval
        self.default_sample_rate = default_sample_rate
        self.queue: Deque[Tuple[str, Optional[int]]] = deque()
        self._current: Optional[PlaybackHandle] = None
        # A stopped source may still be flushing its last buffer
        self._stopping: Optional[PlaybackHandle] = None
        self._drain_task: Optional[asyncio.Task] = None
        # Bumped by stop() so a chunk popped before the stop is never started
        self._generation = 0

    @property
    def is_playing(self) -> bool:
        return self._current is not None and self._current.is_playing

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    def enqueue(self, audio: str, sample_rate: Optional[int] = None) -> None:
        """Queue a base64 chunk and start draining if nothing is playing."""
        self.queue.append((audio, sample_rate))
        logger.debug(f"Queued audio chunk ({len(audio)} chars, rate {sample_rate})")
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self.queue:
            audio, sample_rate = self.queue.popleft()
            try:
                await self._play_item(audio, sample_rate, self._generation)
            except Exception as e:
                logger.error(f"Error playing queued audio: {e}")
                self._current = None

    async def _play_item(self, audio: str, sample_rate: Optional[int], generation: int) -> None:
        await self.output.resume()
        samples, rate = self.decode(base64.b64decode(audio), sample_rate)
        while self._stopping is not None and self._stopping.is_playing:
            await asyncio.sleep(self.poll_interval)
        self._stopping = None
        if generation != self._generation:
            return

        self._current = self.output.play(samples, rate)
        while self._current is not None and self._current.is_playing:
            await asyncio.sleep(self.poll_interval)
        self._current = None

    def decode(self, data: bytes, sample_rate: Optional[int] = None) -> Tuple[np.ndarray, int]:
        """Decode a chunk as WAV, falling back to raw PCM16."""
        try:
            return decode_wav(data)
        except (wave.Error, EOFError, ValueError):
            return pcm16_to_float(data), sample_rate or self.default_sample_rate

    def stop(self) -> None:
        """Discard queued chunks and stop the one playing."""
        self.queue.clear()
        self._generation += 1
        if self._current is not None:
            self._current.stop()
            self._stopping = self._current
            self._current = None
            logger.debug("Playback stopped")

    async def wait_idle(self) -> None:
        """Wait until the queue has drained."""
        if self._drain_task is not None:
            await self._drain_task

    async def destroy(self) -> None:
        self.stop()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
        self.output.close()


_player: Optional[AudioPlayer] = None


def init_audio_player(output: Optional[AudioOutput] = None, **kwargs) -> AudioPlayer:
    """Create the process-wide player, replacing none that already exists."""
    global _player
    if _player is None:
        _player = AudioPlayer(output or PyAudioOutput(), **kwargs)
    return _player


def get_audio_player() -> AudioPlayer:
    if _player is None:
        raise RuntimeError("Audio player not initialized, call init_audio_player() first")
    return _player


async def shutdown_audio_player() -> None:
    global _player
    if _player is not None:
        player, _player = _player, None
        await player.destroy()

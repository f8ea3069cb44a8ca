"""
PCM16 helpers.

The browser sends microphone frames as integer arrays and the gateway forwards
them upstream as base64 little-endian int16. The reference client decodes
received audio back into float samples for playback.
"""

import base64
import io
import wave
from typing import Sequence

import numpy as np

INT16_MIN = -32768
INT16_MAX = 32767
INT16_SCALE = 32768.0


def encode_pcm16(samples: Sequence[int]) -> bytes:
    """
    Pack samples as little-endian signed 16-bit PCM.

    Raises:
        ValueError: If the samples are not a flat sequence of int16 values
    """
    arr = np.asarray(samples, dtype=np.int64)
    if arr.ndim != 1:
        raise ValueError("audio data must be a flat array of samples")
    if arr.size and (arr.min() < INT16_MIN or arr.max() > INT16_MAX):
        raise ValueError("audio sample out of int16 range")
    return arr.astype("<i2").tobytes()


def encode_pcm16_base64(samples: Sequence[int]) -> str:
    return base64.b64encode(encode_pcm16(samples)).decode("ascii")


def decode_pcm16(data: bytes) -> np.ndarray:
    """Decode little-endian int16 bytes into integer samples."""
    if len(data) % 2:
        raise ValueError(f"PCM16 data has odd length: {len(data)} bytes")
    return np.frombuffer(data, dtype="<i2")


def pcm16_to_float(data: bytes) -> np.ndarray:
    """Decode PCM16 bytes into float32 samples in [-1, 1)."""
    return decode_pcm16(data).astype(np.float32) / INT16_SCALE


def float_to_pcm16(samples: np.ndarray) -> bytes:
    clipped = np.clip(samples * INT16_SCALE, INT16_MIN, INT16_MAX)
    return clipped.astype("<i2").tobytes()


def decode_wav(data: bytes):
    """
    Decode a WAV file into mono float32 samples.

    Returns:
        Tuple of (samples, sample_rate)

    Raises:
        wave.Error, EOFError: If the bytes are not a WAV file
        ValueError: If the WAV sample width is not 16-bit
    """
    with wave.open(io.BytesIO(data), "rb") as wav:
        if wav.getsampwidth() != 2:
            raise ValueError(f"Unsupported WAV sample width: {wav.getsampwidth()}")
        channels = wav.getnchannels()
        sample_rate = wav.getframerate()
        frames = wav.readframes(wav.getnframes())
    samples = pcm16_to_float(frames)
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1).astype(np.float32)
    return samples, sample_rate

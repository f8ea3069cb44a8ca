"""
Client for the upstream speech synthesis (TTS) REST endpoint.

The endpoint accepts a form-encoded POST and answers with raw audio bytes. The
client is synchronous; async callers run it in a worker thread.
"""

import logging
import random
from typing import Optional

import requests
from pydantic import BaseModel

from voice_gateway.config.constants import (
    LOGGER_NAME,
    TTS_FORMAT_LPCM,
    TTS_SAMPLE_RATE,
    TTS_URL,
)
from voice_gateway.config.profiles import VoiceProfile

logger = logging.getLogger(LOGGER_NAME)

REQUEST_TIMEOUT = 15  # seconds

GREETING_TEMPLATES = [
    "Привет! Я {name}. Чем могу помочь?",
    "Здравствуйте! {name} к вашим услугам.",
    "Привет! {name} на связи. Готов помочь!",
]


class TTSError(Exception):
    """Raised when the synthesis endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"TTS API error: {status_code} - {body}")


class Greeting(BaseModel):
    text: str
    audio: bytes
    sample_rate: int


class YandexTTSClient:
    """Synchronous client for the speech synthesis endpoint."""

    def __init__(self, api_key: str, folder_id: str, url: str = TTS_URL,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.folder_id = folder_id
        self.url = url
        self.http = session or requests.Session()

    def synthesize(
        self,
        text: str,
        voice: str,
        emotion: Optional[str] = None,
        speed: Optional[float] = None,
        fmt: str = TTS_FORMAT_LPCM,
        sample_rate_hz: int = TTS_SAMPLE_RATE,
    ) -> bytes:
        """
        Synthesize text into audio.

        Args:
            text: Text to speak
            voice: Voice id from the profile catalog
            emotion: Optional emotion supported by the voice
            speed: Optional speech rate multiplier
            fmt: Output format, raw little-endian PCM by default
            sample_rate_hz: Output sample rate for PCM output

        Returns:
            bytes: Raw audio bytes

        Raises:
            TTSError: If the endpoint answers with a non-2xx status
            requests.RequestException: On transport failures
        """
        data = {
            "text": text,
            "voice": voice,
            "format": fmt,
            "sampleRateHertz": str(sample_rate_hz),
            "folderId": self.folder_id,
        }
        if emotion:
            data["emotion"] = emotion
        if speed:
            data["speed"] = str(speed)

        response = self.http.post(
            self.url,
            headers={"Authorization": f"Api-Key {self.api_key}"},
            data=data,
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            raise TTSError(response.status_code, response.text)

        logger.debug(f"Synthesized {len(response.content)} bytes for voice {voice}")
        return response.content

    def create_greeting(self, profile: VoiceProfile) -> Greeting:
        """Synthesize one of the greeting templates in the profile's voice."""
        text = random.choice(GREETING_TEMPLATES).format(name=profile.display_name)
        emotion = "good" if profile.supports("good") else "neutral"
        audio = self.synthesize(
            text,
            voice=profile.name,
            emotion=emotion,
            speed=1.0,
            fmt=TTS_FORMAT_LPCM,
            sample_rate_hz=TTS_SAMPLE_RATE,
        )
        return Greeting(text=text, audio=audio, sample_rate=TTS_SAMPLE_RATE)


def fallback_greeting_text(profile: VoiceProfile) -> str:
    return f"Привет! Я {profile.display_name}. Как дела? Чем могу помочь?"

"""
Routes gateway events to the audio player and the conversation log.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from voice_gateway.client.audio_player import AudioPlayer, get_audio_player
from voice_gateway.config.constants import LOGGER_NAME, VOICED_REPLY_PLACEHOLDER

logger = logging.getLogger(LOGGER_NAME)

TOOL_EVENT_TYPES = ("tool_start", "tool_end", "handoff")

# content part type -> key holding its text
TEXT_KEYS = {
    "text": "text",
    "input_text": "text",
    "output_text": "text",
    "input_audio": "transcript",
    "audio": "transcript",
    "output_audio_transcript": "transcript",
}


class ConversationMessage(BaseModel):
    """A user or assistant message shown in the conversation log."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: str
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    audio: Optional[str] = None


def extract_text(item: Dict[str, Any]) -> str:
    """Join the textual parts of a conversation item."""
    content = item.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    texts = []
    for part in content:
        if not isinstance(part, dict):
            continue
        key = TEXT_KEYS.get(part.get("type"))
        value = part.get(key) if key else None
        if isinstance(value, str) and value:
            texts.append(value)
    return "".join(texts)


class EventRouter:
    def __init__(self, player: Optional[AudioPlayer] = None,
                 on_error: Optional[Callable[[str], None]] = None):
        self.player = player
        self.on_error = on_error
        self.events: List[Dict[str, Any]] = []
        self.tool_events: List[Dict[str, Any]] = []
        self.messages: List[ConversationMessage] = []
        self.errors: List[str] = []
        self.turn_audio: List[str] = []

        self.handlers = {
            "audio": self._on_audio,
            "audio_interrupted": self._on_audio_interrupted,
            "agent_end": self._on_agent_end,
            "history_added": self._on_history_added,
            "error": self._on_error,
        }

    def _player(self) -> AudioPlayer:
        return self.player if self.player is not None else get_audio_player()

    def handle_event(self, event: Dict[str, Any]) -> None:
        """Record an event and apply its effect."""
        record = dict(event, timestamp=datetime.now().isoformat())
        self.events.append(record)

        event_type = event.get("type")
        if event_type in TOOL_EVENT_TYPES:
            self.tool_events.append(record)
            logger.info(f"{event_type}: {event.get('tool') or event.get('to')}")

        handler = self.handlers.get(event_type)
        if handler:
            handler(event)

    def _on_audio(self, event: Dict[str, Any]) -> None:
        audio = event.get("audio")
        if not audio:
            return
        self._player().enqueue(audio, event.get("sampleRate"))
        self.turn_audio.append(audio)

    def _on_audio_interrupted(self, event: Dict[str, Any]) -> None:
        self._player().stop()
        self.turn_audio.clear()

    def _on_agent_end(self, event: Dict[str, Any]) -> None:
        self.turn_audio.clear()

    def _on_history_added(self, event: Dict[str, Any]) -> None:
        item = event.get("item")
        if isinstance(item, dict):
            self.add_message_from_item(item)

    def _on_error(self, event: Dict[str, Any]) -> None:
        error = str(event.get("error", "Unknown error"))
        self.errors.append(error)
        logger.error(f"Gateway error: {error}")
        if self.on_error:
            self.on_error(error)

    def add_message_from_item(self, item: Dict[str, Any]) -> Optional[ConversationMessage]:
        """Append a message for a history item that carries text or turn audio."""
        if item.get("type") != "message":
            return None
        role = item.get("role", "assistant")
        text = extract_text(item)
        has_audio = role == "assistant" and bool(self.turn_audio)

        if not text.strip() and not has_audio:
            return None
        if not text.strip():
            text = VOICED_REPLY_PLACEHOLDER

        message = ConversationMessage(
            role=role,
            content=text,
            audio="".join(self.turn_audio) if has_audio else None,
        )
        self.messages.append(message)
        return message

    def start_turn(self) -> None:
        """Silence playback and forget the previous turn's audio."""
        self._player().stop()
        self.turn_audio.clear()

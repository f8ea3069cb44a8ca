"""
Pydantic models for the browser-facing WebSocket dialect.

Commands flow from the browser to the gateway; events flow from the gateway to
the browser. Events are serialized with ``to_json()`` which uses field aliases
(``from``, ``sampleRate``) and omits unset optional fields.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Commands (browser -> gateway)
class ClientCommand(BaseModel):
    """Base model for all browser commands."""

    type: str = Field(..., description="Command type identifier")


class AudioCommand(ClientCommand):
    """Microphone frame as mono int16 samples."""

    type: Literal["audio"] = "audio"
    data: List[int] = Field(default_factory=list, description="Signed 16-bit PCM samples")


class TextMessageCommand(ClientCommand):
    type: Literal["text_message"] = "text_message"
    text: str


class CommitAudioCommand(ClientCommand):
    type: Literal["commit_audio"] = "commit_audio"


class InterruptCommand(ClientCommand):
    type: Literal["interrupt"] = "interrupt"


# Events (gateway -> browser)
class ClientEvent(BaseModel):
    """Base model for all events sent to the browser."""

    model_config = ConfigDict(populate_by_name=True)

    type: str

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class AgentStartEvent(ClientEvent):
    type: Literal["agent_start"] = "agent_start"
    agent: str


class AgentEndEvent(ClientEvent):
    type: Literal["agent_end"] = "agent_end"
    agent: str


class HandoffEvent(ClientEvent):
    """The active agent label changed."""

    type: Literal["handoff"] = "handoff"
    from_agent: str = Field(..., alias="from")
    to_agent: str = Field(..., alias="to")


class ToolStartEvent(ClientEvent):
    type: Literal["tool_start"] = "tool_start"
    tool: str


class ToolEndEvent(ClientEvent):
    type: Literal["tool_end"] = "tool_end"
    tool: str
    output: str


class AudioEvent(ClientEvent):
    """A chunk of base64 audio; sampleRate is set for synthesized greetings only."""

    type: Literal["audio"] = "audio"
    audio: str
    sample_rate: Optional[int] = Field(None, alias="sampleRate")


class AudioInterruptedEvent(ClientEvent):
    type: Literal["audio_interrupted"] = "audio_interrupted"


class AudioEndEvent(ClientEvent):
    type: Literal["audio_end"] = "audio_end"


class HistoryAddedEvent(ClientEvent):
    type: Literal["history_added"] = "history_added"
    item: Dict[str, Any]


class ErrorEvent(ClientEvent):
    type: Literal["error"] = "error"
    error: str


class RawModelEvent(ClientEvent):
    """Upstream event passed through untouched for diagnostics."""

    type: Literal["raw_model_event"] = "raw_model_event"
    raw_model_event: Dict[str, Any]


def message_item(role: str, parts: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Build a conversation message item in the upstream item shape."""
    return {"type": "message", "role": role, "content": parts}

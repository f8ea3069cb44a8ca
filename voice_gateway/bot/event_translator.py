"""
Translation of upstream realtime events into client events.

translate_event() is a pure function: it reads the upstream event and the
current agent label and returns at most one ClientEvent. It performs no I/O,
logs nothing and never mutates its input. All side effects of an upstream
event (handoff, tool execution, speak-result) live in the SessionController.
"""

from typing import Any, Callable, Dict, Mapping, Optional

from voice_gateway.models.message_schemas import (
    AgentEndEvent,
    AgentStartEvent,
    AudioEndEvent,
    AudioEvent,
    AudioInterruptedEvent,
    ClientEvent,
    ErrorEvent,
    HistoryAddedEvent,
    RawModelEvent,
    ToolStartEvent,
    message_item,
)

UpstreamEvent = Mapping[str, Any]
Translator = Callable[[UpstreamEvent, str], Optional[ClientEvent]]

# Upstream events that carry nothing the client needs
SILENT_EVENTS = frozenset({
    "session.created",
    "session.updated",
    "input_audio_buffer.committed",
})


def _item(event: UpstreamEvent) -> Mapping[str, Any]:
    item = event.get("item")
    return item if isinstance(item, Mapping) else {}


def is_function_call(item: Mapping[str, Any]) -> bool:
    return item.get("type") == "function_call"


def is_completed_function_call(item: Mapping[str, Any]) -> bool:
    return is_function_call(item) and item.get("status") == "completed"


def error_text(event: UpstreamEvent) -> str:
    """Pick the most specific error text an upstream error event carries."""
    error = event.get("error")
    if isinstance(error, Mapping):
        text = error.get("error") or error.get("message")
        if text:
            return str(text)
    elif error:
        return str(error)
    return str(event.get("message") or "Unknown error")


def _speech_started(event, agent):
    return AudioInterruptedEvent()


def _audio_end(event, agent):
    return AudioEndEvent()


def _item_created(event, agent):
    item = _item(event)
    if item.get("type") == "message":
        return HistoryAddedEvent(item=dict(item))
    return None


def _response_created(event, agent):
    return AgentStartEvent(agent=agent)


def _response_done(event, agent):
    return AgentEndEvent(agent=agent)


def _output_item_added(event, agent):
    item = _item(event)
    if is_function_call(item):
        return ToolStartEvent(tool=item.get("name") or "unknown")
    if item.get("type") == "message":
        return HistoryAddedEvent(item=dict(item))
    return None


def _output_item_done(event, agent):
    item = _item(event)
    if is_completed_function_call(item):
        return HistoryAddedEvent(item=dict(item))
    return None


def _audio_delta(event, agent):
    delta = event.get("delta")
    if delta:
        return AudioEvent(audio=delta)
    return None


def _transcription_completed(event, agent):
    part = {"type": "input_audio", "transcript": event.get("transcript")}
    return HistoryAddedEvent(item=message_item("user", [part]))


def _error(event, agent):
    return ErrorEvent(error=error_text(event))


def _raw(event, agent):
    return RawModelEvent(raw_model_event=dict(event))


HANDLERS: Dict[str, Translator] = {
    "input_audio_buffer.speech_started": _speech_started,
    "input_audio_buffer.speech_stopped": _audio_end,
    "conversation.item.created": _item_created,
    "response.created": _response_created,
    "response.done": _response_done,
    "response.output_item.added": _output_item_added,
    "response.output_item.done": _output_item_done,
    "response.audio.delta": _audio_delta,
    "response.output_audio.delta": _audio_delta,
    "response.audio.done": _audio_end,
    "response.output_audio.done": _audio_end,
    "conversation.item.input_audio_transcription.completed": _transcription_completed,
    "error": _error,
    # Content part lifecycle and "done" markers are surfaced for diagnostics
    "response.content_part.added": _raw,
    "response.content_part.done": _raw,
    "response.output_text.done": _raw,
    "response.output_audio_transcript.done": _raw,
}


def translate_event(event: UpstreamEvent, agent: str) -> Optional[ClientEvent]:
    """
    Translate one upstream event into a client event.

    Args:
        event: Decoded upstream event
        agent: Current active agent label, used for agent_start/agent_end

    Returns:
        The client event to relay, or None when nothing should be sent
    """
    event_type = event.get("type")
    if event_type in SILENT_EVENTS:
        return None
    handler = HANDLERS.get(event_type, _raw)
    return handler(event, agent)

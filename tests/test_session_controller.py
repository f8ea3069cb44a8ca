"""
Tests for the SessionController.

These cover browser command dispatch, upstream event handling with its side
effects (handoff, tool execution, speak-result), and the session lifecycle.
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from conftest import FakeUpstream, sent_events
from voice_gateway.bot.realtime_api import UpstreamConnectionError
from voice_gateway.bot.session_controller import (
    SessionController,
    build_session_update,
    normalize_error_event,
    parse_arguments,
)
from voice_gateway.bot.tools import FAQ_BAGGAGE_ANSWER, create_default_registry
from voice_gateway.config.profiles import get_profile_by_name
from voice_gateway.services.tts_client import Greeting, TTSError


def function_call(name, call_id="c1", item_id="i1", **extra):
    item = {"type": "function_call", "name": name, "call_id": call_id, "id": item_id}
    item.update(extra)
    return item


async def run_events(controller, events):
    for event in events:
        await controller.handle_upstream_event(event)
    if controller.background_tasks:
        await asyncio.gather(*list(controller.background_tasks))


@pytest.mark.asyncio
async def test_faq_tool_turn(controller, session, upstream):
    """A full FAQ tool turn produces the expected client and upstream traffic"""
    await controller.handle_client_message(json.dumps({"type": "text_message", "text": "расскажи про багаж"}))
    assert upstream.sent_types() == ["conversation.item.create", "response.create"]
    assert upstream.sent[0]["item"]["content"] == [{"type": "input_text", "text": "расскажи про багаж"}]

    await run_events(controller, [
        {"type": "response.created"},
        {"type": "response.output_item.added", "item": function_call("faq_lookup_tool")},
        {"type": "response.output_item.done", "item": function_call(
            "faq_lookup_tool", status="completed",
            arguments=json.dumps({"question": "расскажи про багаж"}))},
        {"type": "response.done"},
    ])

    events = sent_events(session.websocket)
    assert [e["type"] for e in events] == ["agent_start", "tool_start", "tool_end", "history_added", "agent_end"]
    assert events[0] == {"type": "agent_start", "agent": "FAQ Agent"}
    assert events[1] == {"type": "tool_start", "tool": "faq_lookup_tool"}
    assert events[2] == {"type": "tool_end", "tool": "faq_lookup_tool", "output": FAQ_BAGGAGE_ANSWER}
    assert events[4] == {"type": "agent_end", "agent": "FAQ Agent"}

    function_output = upstream.sent[2]
    assert function_output == {
        "type": "conversation.item.create",
        "item": {"type": "function_call_output", "call_id": "c1", "output": FAQ_BAGGAGE_ANSWER},
    }

    speak_item, speak_response = upstream.sent[3], upstream.sent[4]
    assert speak_item["type"] == "conversation.item.create"
    assert speak_item["item"]["content"][0]["text"].startswith("Озвучь результат:")
    assert speak_response["type"] == "response.create"
    assert speak_response["response"]["modalities"] == ["audio"]
    assert session.pending_speak_text is None


@pytest.mark.asyncio
async def test_temperature_tool_hands_off_before_tool_start(controller, session, upstream):
    await run_events(controller, [
        {"type": "response.output_item.added", "item": function_call("convert_temperature_tool")},
        {"type": "response.output_item.done", "item": function_call(
            "convert_temperature_tool", status="completed", arguments='{"value_celsius":12}')},
    ])

    events = sent_events(session.websocket)
    assert events[0] == {"type": "handoff", "from": "FAQ Agent", "to": "Temperature Agent"}
    assert events[1] == {"type": "tool_start", "tool": "convert_temperature_tool"}
    assert events[2]["output"] == "12°C = 53.6°F"
    assert session.active_agent == "Temperature Agent"
    assert session.pending_speak_text == "12°C = 53.6°F"


@pytest.mark.asyncio
async def test_agent_stays_after_response_done(controller, session):
    """The active agent is not reset when a response ends"""
    await run_events(controller, [
        {"type": "response.output_item.added", "item": function_call("convert_temperature_tool")},
        {"type": "response.done"},
        {"type": "response.created"},
    ])
    events = sent_events(session.websocket)
    assert events[-1] == {"type": "agent_start", "agent": "Temperature Agent"}


@pytest.mark.asyncio
async def test_no_handoff_for_current_agent(controller, session):
    await controller.handle_upstream_event(
        {"type": "response.output_item.added", "item": function_call("faq_lookup_tool")})
    assert [e["type"] for e in sent_events(session.websocket)] == ["tool_start"]


@pytest.mark.asyncio
async def test_speech_started_interrupts_audio(controller, session):
    await run_events(controller, [
        {"type": "response.audio.delta", "delta": "AAAA"},
        {"type": "response.output_audio.delta", "delta": "BBBB"},
        {"type": "input_audio_buffer.speech_started"},
    ])
    events = sent_events(session.websocket)
    assert events == [
        {"type": "audio", "audio": "AAAA"},
        {"type": "audio", "audio": "BBBB"},
        {"type": "audio_interrupted"},
    ]


@pytest.mark.asyncio
async def test_error_message_is_normalized(controller, session):
    event = {"type": "error", "message": "bad token"}
    await controller.handle_upstream_event(event)

    assert sent_events(session.websocket) == [{"type": "error", "error": "bad token"}]
    assert event == {"type": "error", "message": "bad token"}


@pytest.mark.asyncio
async def test_unknown_tool_reports_error_without_speaking(controller, session, upstream):
    await run_events(controller, [
        {"type": "response.output_item.added", "item": function_call("unknown_tool")},
        {"type": "response.output_item.done", "item": function_call("unknown_tool", status="completed")},
        {"type": "response.done"},
    ])

    events = sent_events(session.websocket)
    assert events[0] == {"type": "handoff", "from": "FAQ Agent", "to": "General Agent"}
    assert events[1] == {"type": "tool_start", "tool": "unknown_tool"}
    assert events[2] == {"type": "tool_end", "tool": "unknown_tool", "output": "Ошибка: Unknown tool: unknown_tool"}
    assert session.pending_speak_text is None
    # Only the function_call_output went upstream, no speak-result turn
    assert upstream.sent_types() == ["conversation.item.create"]
    assert upstream.sent[0]["item"]["type"] == "function_call_output"


@pytest.mark.asyncio
async def test_audio_frame_is_packed_as_pcm16(controller, upstream):
    await controller.handle_client_message(json.dumps({"type": "audio", "data": [0, 1, -1, 32767, -32768]}))

    assert upstream.sent == [{
        "type": "input_audio_buffer.append",
        "audio": base64.b64encode(bytes([0x00, 0x00, 0x01, 0x00, 0xFF, 0xFF, 0xFF, 0x7F, 0x00, 0x80])).decode(),
    }]


@pytest.mark.asyncio
async def test_audio_dropped_when_upstream_closed(controller, session, upstream):
    upstream.is_open = False
    await controller.handle_client_message(json.dumps({"type": "audio", "data": [1, 2, 3]}))

    assert upstream.sent == []
    session.websocket.send_text.assert_not_called()


@pytest.mark.asyncio
async def test_text_message_without_upstream_reports_error(controller, session, upstream):
    session.upstream = None
    await controller.handle_client_message(json.dumps({"type": "text_message", "text": "привет"}))

    assert upstream.sent == []
    assert sent_events(session.websocket) == [{"type": "error", "error": "Соединение с Yandex Cloud не установлено"}]


@pytest.mark.asyncio
async def test_commit_and_interrupt(controller, upstream):
    await controller.handle_client_message('{"type": "commit_audio"}')
    await controller.handle_client_message('{"type": "interrupt"}')
    assert upstream.sent == [{"type": "input_audio_buffer.commit"}, {"type": "response.cancel"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("frame", [
    "not json",
    "[1, 2, 3]",
    '{"type": "audio", "data": [40000]}',
    '{"type": "text_message"}',
])
async def test_invalid_client_message(controller, session, upstream, frame):
    await controller.handle_client_message(frame)

    assert upstream.sent == []
    assert sent_events(session.websocket) == [{"type": "error", "error": "Неверный формат сообщения"}]


@pytest.mark.asyncio
async def test_unknown_client_message_is_ignored(controller, session, upstream):
    await controller.handle_client_message('{"type": "image_start"}')
    assert upstream.sent == []
    session.websocket.send_text.assert_not_called()


@pytest.mark.asyncio
async def test_call_id_recovered_from_item_id(controller, upstream):
    await run_events(controller, [
        {"type": "response.output_item.added", "item": function_call("faq_lookup_tool", call_id="c9", item_id="i9")},
        {"type": "response.output_item.done", "item": {
            "type": "function_call", "status": "completed", "id": "i9", "arguments": '{"question": "еда"}'}},
    ])
    assert upstream.sent[0]["item"]["call_id"] == "c9"
    assert "i9" not in controller.pending_calls


@pytest.mark.asyncio
async def test_missing_call_id_skips_output(controller, session, upstream):
    await controller.handle_upstream_event({"type": "response.output_item.done", "item": {
        "type": "function_call", "status": "completed", "name": "faq_lookup_tool", "arguments": "{}"}})

    assert upstream.sent == []
    assert [e["type"] for e in sent_events(session.websocket)] == ["history_added"]
    assert session.pending_speak_text is None


@pytest.mark.asyncio
async def test_malformed_upstream_message_is_dropped(controller, session):
    await controller.handle_upstream_message("{not json")
    await controller.handle_upstream_message('["list"]')
    session.websocket.send_text.assert_not_called()


@pytest.mark.asyncio
async def test_client_send_failure_does_not_raise(controller, session):
    session.websocket.send_text.side_effect = RuntimeError("socket closed")
    assert await controller.send_to_client(MagicMock(type="audio_end", to_json=lambda: "{}")) is False


@pytest.mark.asyncio
async def test_start_sends_session_update(session):
    upstream = FakeUpstream(hold_open=True)
    controller = SessionController(
        session, upstream,
        greeting_enabled=False,
        profile_selector=lambda: get_profile_by_name("anton"),
    )

    assert await controller.start() is True
    assert session.upstream is upstream
    assert session.profile.name == "anton"
    assert upstream.sent[0]["type"] == "session.update"
    assert upstream.sent[0]["session"]["voice"] == "anton"

    await controller.close()
    assert upstream.closed
    assert session.is_connected is False
    assert session.upstream is None


@pytest.mark.asyncio
async def test_start_failure_reports_error(session):
    upstream = FakeUpstream(connect_error=UpstreamConnectionError("refused"))
    controller = SessionController(session, upstream, greeting_enabled=False)

    assert await controller.start() is False
    events = sent_events(session.websocket)
    assert events == [{"type": "error", "error": "Ошибка подключения к Yandex Cloud: refused"}]


@pytest.mark.asyncio
async def test_upstream_close_notifies_owner(session):
    on_closed = AsyncMock()
    upstream = FakeUpstream(messages=[{"type": "response.created"}])
    controller = SessionController(
        session, upstream, greeting_enabled=False, on_closed=on_closed,
        profile_selector=lambda: get_profile_by_name("marina"),
    )

    await controller.start()
    await controller._receive_task

    on_closed.assert_awaited_once_with("test-session")
    assert sent_events(session.websocket) == [{"type": "agent_start", "agent": "FAQ Agent"}]
    await controller.close()


@pytest.mark.asyncio
async def test_greeting_with_audio(session):
    tts = MagicMock()
    tts.create_greeting.return_value = Greeting(text="Привет! Я Марина.", audio=b"\x01\x00\x02\x00", sample_rate=16000)
    upstream = FakeUpstream(hold_open=True)
    controller = SessionController(
        session, upstream, tts=tts, greeting_delay=0,
        profile_selector=lambda: get_profile_by_name("marina"),
    )

    await controller.start()
    await asyncio.gather(*list(controller.background_tasks))

    events = sent_events(session.websocket)
    assert events[0]["type"] == "history_added"
    assert events[0]["item"]["role"] == "assistant"
    assert events[0]["item"]["content"] == [{"type": "text", "text": "Привет! Я Марина."}]
    assert events[1] == {"type": "audio", "audio": base64.b64encode(b"\x01\x00\x02\x00").decode(), "sampleRate": 16000}
    assert events[2] == {"type": "audio_end"}
    await controller.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [TTSError(500, "boom"), requests.ConnectionError("down")])
async def test_greeting_falls_back_to_text(session, error):
    tts = MagicMock()
    tts.create_greeting.side_effect = error
    upstream = FakeUpstream(hold_open=True)
    controller = SessionController(
        session, upstream, tts=tts, greeting_delay=0,
        profile_selector=lambda: get_profile_by_name("filipp"),
    )

    await controller.start()
    await asyncio.gather(*list(controller.background_tasks))

    events = sent_events(session.websocket)
    assert len(events) == 1
    assert events[0]["item"]["content"][0]["text"] == "Привет! Я Филипп. Как дела? Чем могу помочь?"
    await controller.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_speak_result(controller, session, upstream):
    controller.speak_result_delay = 10
    session.pending_speak_text = "12°C = 53.6°F"
    await controller.handle_upstream_event({"type": "response.done"})
    assert len(controller.background_tasks) == 1

    await controller.close()
    assert controller.background_tasks == set()
    assert upstream.sent == []


def test_build_session_update():
    profile = get_profile_by_name("jane")
    update = build_session_update(profile, create_default_registry())

    assert update["type"] == "session.update"
    session = update["session"]
    assert session["voice"] == "jane"
    assert session["modalities"] == ["text", "audio"]
    assert session["input_audio_format"] == "pcm16"
    assert session["output_audio_format"] == "pcm16"
    assert session["input_audio_transcription"] == {"model": "whisper-1"}
    assert session["turn_detection"] == {
        "type": "server_vad",
        "threshold": 0.5,
        "prefix_padding_ms": 300,
        "silence_duration_ms": 500,
    }
    assert session["tool_choice"] == "auto"
    assert session["temperature"] == 0.8
    assert session["max_response_output_tokens"] == 4096
    assert session["speed"] == 1.0
    assert {tool["name"] for tool in session["tools"]} == {"faq_lookup_tool", "convert_temperature_tool"}
    assert "Джейн" in session["instructions"]


def test_normalize_error_event_keeps_structured_errors():
    event = {"type": "error", "error": {"message": "quota"}}
    assert normalize_error_event(event) is event
    other = {"type": "response.done", "message": "x"}
    assert normalize_error_event(other) is other


def test_parse_arguments():
    assert parse_arguments('{"question": "багаж"}') == {"question": "багаж"}
    assert parse_arguments({"value_celsius": 1}) == {"value_celsius": 1}
    assert parse_arguments(None) == {}
    assert parse_arguments("") == {}
    assert parse_arguments("{broken") == {}
    assert parse_arguments("[1, 2]") == {}

"""
Per-session controller mediating between a browser and the realtime service.

The controller owns both channels of one session. Browser commands are
dispatched by type and forwarded upstream. Every upstream event goes through
two passes: first the side effects (error normalization, agent handoff,
function-call bookkeeping, tool execution, the spoken follow-up for a tool
result), then the pure translator whose output is relayed to the browser.
"""

import asyncio
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set

import requests

from voice_gateway.bot.event_translator import (
    Translator,
    is_completed_function_call,
    is_function_call,
    translate_event,
)
from voice_gateway.bot.function_calls import PendingFunctionCalls
from voice_gateway.bot.realtime_api import RealtimeClient, UpstreamConnectionError
from voice_gateway.bot.tools import ToolRegistry, agent_for_tool, create_default_registry
from voice_gateway.config.constants import (
    COMMAND_AUDIO,
    COMMAND_COMMIT_AUDIO,
    COMMAND_INTERRUPT,
    COMMAND_TEXT_MESSAGE,
    ERROR_INVALID_MESSAGE,
    ERROR_UPSTREAM_CONNECTION,
    ERROR_UPSTREAM_NOT_CONNECTED,
    GREETING_DELAY,
    LOGGER_NAME,
    SPEAK_RESULT_DELAY,
    SPEAK_RESULT_INSTRUCTIONS,
    SPEAK_RESULT_PREFIX,
    TOOL_ERROR_PREFIX,
    UPSTREAM_AUDIO_APPEND,
    UPSTREAM_AUDIO_COMMIT,
    UPSTREAM_ITEM_CREATE,
    UPSTREAM_RESPONSE_CANCEL,
    UPSTREAM_RESPONSE_CREATE,
    UPSTREAM_SESSION_UPDATE,
)
from voice_gateway.config.profiles import VoiceProfile, get_random_profile
from voice_gateway.models.message_schemas import (
    AudioEndEvent,
    AudioEvent,
    ClientEvent,
    ErrorEvent,
    HandoffEvent,
    HistoryAddedEvent,
    TextMessageCommand,
    ToolEndEvent,
    message_item,
)
from voice_gateway.models.session import Session
from voice_gateway.services.tts_client import TTSError, YandexTTSClient, fallback_greeting_text
from voice_gateway.utils.audio import encode_pcm16_base64
from voice_gateway.utils.logging_utils import LogThrottle, sanitize_strings_deep

logger = logging.getLogger(LOGGER_NAME)

ClosedCallback = Callable[[str], Awaitable[None]]

AUDIO_DELTA_EVENTS = ("response.audio.delta", "response.output_audio.delta")


def system_instructions(profile: Optional[VoiceProfile]) -> str:
    name = profile.display_name if profile else "Марина"
    return (
        "# Системный контекст\n"
        "Вы — голосовой помощник авиакомпании.\n"
        "Отвечайте на вопросы клиента коротко и дружелюбно.\n"
        "Используйте инструменты, не придумывайте ответы сами.\n\n"
        f"Ты {name}, специалист по часто задаваемым вопросам\n"
        "Отвечайте на вопросы пользователя, вызывая нужный инструмент.\n"
        "Отвечайте максимально коротко и естественно, без приветствий и без фраз "
        "вроде \"Чем ещё могу помочь?\"."
    )


def build_session_update(profile: VoiceProfile, tools: ToolRegistry) -> Dict[str, Any]:
    """The session.update command sent once the upstream channel opens."""
    return {
        "type": UPSTREAM_SESSION_UPDATE,
        "session": {
            "modalities": ["text", "audio"],
            "instructions": system_instructions(profile),
            "voice": profile.name,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": "whisper-1"},
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.5,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 500,
            },
            "tools": tools.definitions(),
            "tool_choice": "auto",
            "temperature": 0.8,
            "max_response_output_tokens": 4096,
            "speed": 1.0,
        },
    }


def normalize_error_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return an error event whose text lives under ``error.error``.

    Events of the form ``{"type": "error", "message": ...}`` are rewritten into
    a new dict; the input is never modified.
    """
    if event.get("type") == "error" and event.get("message") and not event.get("error"):
        normalized = {key: value for key, value in event.items() if key != "message"}
        normalized["error"] = {"error": event["message"]}
        return normalized
    return event


def parse_arguments(raw: Any, session_id: str = "-") -> Dict[str, Any]:
    """Decode function-call arguments; anything unparseable becomes an empty object."""
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    try:
        args = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"[{session_id}] Could not parse tool arguments {raw!r}: {e}")
        return {}
    if not isinstance(args, dict):
        logger.error(f"[{session_id}] Tool arguments are not an object: {raw!r}")
        return {}
    return args


class SessionController:
    """
    State machine for one browser session.

    The controller is created by the gateway when a browser connects, opens
    the upstream channel in start(), and is torn down with close() when either
    side disconnects.
    """

    def __init__(
        self,
        session: Session,
        upstream: RealtimeClient,
        tools: Optional[ToolRegistry] = None,
        tts: Optional[YandexTTSClient] = None,
        translator: Translator = translate_event,
        greeting_enabled: bool = True,
        profile_selector: Callable[[], VoiceProfile] = get_random_profile,
        speak_result_delay: float = SPEAK_RESULT_DELAY,
        greeting_delay: float = GREETING_DELAY,
        on_closed: Optional[ClosedCallback] = None,
        throttle: Optional[LogThrottle] = None,
    ):
        self.session = session
        self.upstream = upstream
        self.tools = tools or create_default_registry()
        self.tts = tts
        self.translator = translator
        self.greeting_enabled = greeting_enabled
        self.profile_selector = profile_selector
        self.speak_result_delay = speak_result_delay
        self.greeting_delay = greeting_delay
        self.on_closed = on_closed
        self.throttle = throttle or LogThrottle()
        self.pending_calls = PendingFunctionCalls()
        self.background_tasks: Set[asyncio.Task] = set()
        self._receive_task: Optional[asyncio.Task] = None
        self._closed = False

        self.command_handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            COMMAND_AUDIO: self._handle_audio,
            COMMAND_TEXT_MESSAGE: self._handle_text_message,
            COMMAND_COMMIT_AUDIO: self._handle_commit_audio,
            COMMAND_INTERRUPT: self._handle_interrupt,
        }

    @property
    def upstream_open(self) -> bool:
        return self.session.upstream is not None and self.upstream.is_open

    # Lifecycle

    async def start(self) -> bool:
        """
        Open the upstream channel, configure it and start relaying its events.

        Returns:
            bool: False if the upstream channel could not be opened
        """
        try:
            await self.upstream.connect()
        except UpstreamConnectionError as e:
            logger.error(f"[{self.session.id}] Realtime connection failed: {e}")
            await self.send_to_client(ErrorEvent(error=f"{ERROR_UPSTREAM_CONNECTION}: {e}"))
            return False

        self.session.upstream = self.upstream
        await self._on_upstream_open()
        self._receive_task = asyncio.create_task(self._receive_loop())
        return True

    async def close(self) -> None:
        """Cancel pending work, close the upstream channel and mark the session disconnected."""
        if self._closed:
            return
        self._closed = True
        self.session.is_connected = False

        current = asyncio.current_task()
        tasks = [task for task in self.background_tasks if task is not current]
        if self._receive_task is not None and self._receive_task is not current:
            tasks.append(self._receive_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.background_tasks.clear()

        await self.upstream.close()
        self.session.upstream = None
        self.throttle.forget(self.session.id)
        logger.info(f"[{self.session.id}] Session controller closed")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def _on_upstream_open(self) -> None:
        profile = self.profile_selector()
        self.session.profile = profile
        logger.info(f"[{self.session.id}] Connected upstream, assistant: {profile.display_name} ({profile.gender})")

        await self.send_upstream(build_session_update(profile, self.tools))
        if self.greeting_enabled:
            self._spawn(self._send_greeting(profile))

    async def _send_greeting(self, profile: VoiceProfile) -> None:
        await asyncio.sleep(self.greeting_delay)
        if self.tts is None:
            await self._send_assistant_text(fallback_greeting_text(profile))
            return

        try:
            greeting = await asyncio.to_thread(self.tts.create_greeting, profile)
        except (TTSError, requests.RequestException) as e:
            logger.error(f"[{self.session.id}] Greeting synthesis failed, sending text only: {e}")
            await self._send_assistant_text(fallback_greeting_text(profile))
            return

        await self._send_assistant_text(greeting.text)
        await self.send_to_client(AudioEvent(
            audio=base64.b64encode(greeting.audio).decode("ascii"),
            sample_rate=greeting.sample_rate,
        ))
        await self.send_to_client(AudioEndEvent())
        logger.info(f"[{self.session.id}] Greeting sent ({len(greeting.audio)} bytes of audio)")

    async def _send_assistant_text(self, text: str) -> None:
        item = message_item("assistant", [{"type": "text", "text": text}])
        await self.send_to_client(HistoryAddedEvent(item=item))

    async def _receive_loop(self) -> None:
        try:
            async for raw in self.upstream.messages():
                await self.handle_upstream_message(raw)
            logger.info(f"[{self.session.id}] Realtime connection closed")
        except asyncio.CancelledError:
            logger.debug(f"[{self.session.id}] Upstream receive task cancelled")
            raise
        except UpstreamConnectionError as e:
            logger.error(f"[{self.session.id}] Realtime connection error: {e}")
            await self.send_to_client(ErrorEvent(error=f"{ERROR_UPSTREAM_CONNECTION}: {e}"))

        if not self._closed and self.on_closed is not None:
            await self.on_closed(self.session.id)

    # Channels

    async def send_to_client(self, event: ClientEvent) -> bool:
        if not self.session.is_connected:
            logger.warning(f"[{self.session.id}] Cannot send {event.type} - client disconnected")
            return False
        try:
            await self.session.websocket.send_text(event.to_json())
        except Exception as e:
            logger.warning(f"[{self.session.id}] Failed to send {event.type} to client: {e}")
            return False
        if event.type != "audio":
            logger.debug(f"[{self.session.id}] Sent to client: {event.type}")
        return True

    async def send_upstream(self, event: Dict[str, Any]) -> bool:
        if not self.upstream_open:
            if event.get("type") == UPSTREAM_AUDIO_APPEND:
                self.throttle.log(self.session.id, "upstream_send_audio_failed", lambda: logger.error(
                    f"[{self.session.id}] Cannot send audio upstream, connection not open"), 3.0)
            else:
                logger.error(f"[{self.session.id}] Cannot send {event.get('type')} upstream, connection not open")
            return False
        if event.get("type") == UPSTREAM_AUDIO_APPEND:
            self.throttle.log(self.session.id, "upstream_send_audio", lambda: logger.info(
                f"[{self.session.id}] Sending audio upstream, {len(event.get('audio', ''))} base64 chars"), 5.0)
        else:
            logger.info(f"[{self.session.id}] Sending upstream: {event.get('type')}")
        return await self.upstream.send_event(event)

    # Ingress (browser -> upstream)

    async def handle_client_message(self, data: str) -> None:
        """Parse one browser frame and dispatch it by type."""
        try:
            message = json.loads(data)
            if not isinstance(message, dict):
                raise ValueError("message must be a JSON object")
            message_type = message.get("type")
            if message_type != COMMAND_AUDIO:
                logger.info(f"[{self.session.id}] Client message type: {message_type}")

            handler = self.command_handlers.get(message_type)
            if handler is None:
                logger.warning(f"[{self.session.id}] Unknown client message type: {message_type}")
                return
            await handler(message)
        except (ValueError, TypeError, OverflowError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.error(f"[{self.session.id}] Invalid client message: {e}")
            await self.send_to_client(ErrorEvent(error=ERROR_INVALID_MESSAGE))
        except Exception as e:
            logger.error(f"[{self.session.id}] Error handling client message: {e}", exc_info=True)

    async def _handle_audio(self, message: Dict[str, Any]) -> None:
        samples = message.get("data") or []
        self.throttle.log(self.session.id, "audio_received", lambda: logger.info(
            f"[{self.session.id}] Audio frame received, {len(samples)} samples"), 5.0)

        if not self.upstream_open:
            self.throttle.log(self.session.id, "upstream_audio_not_connected", lambda: logger.error(
                f"[{self.session.id}] Upstream not connected, dropping audio"), 3.0)
            return

        await self.send_upstream({
            "type": UPSTREAM_AUDIO_APPEND,
            "audio": encode_pcm16_base64(samples),
        })

    async def _handle_text_message(self, message: Dict[str, Any]) -> None:
        command = TextMessageCommand.model_validate(message)
        logger.info(f"[{self.session.id}] Text message: {command.text!r}")

        if not self.upstream_open:
            logger.error(f"[{self.session.id}] Upstream not connected, cannot send text")
            await self.send_to_client(ErrorEvent(error=ERROR_UPSTREAM_NOT_CONNECTED))
            return

        await self.send_upstream({
            "type": UPSTREAM_ITEM_CREATE,
            "item": message_item("user", [{"type": "input_text", "text": command.text}]),
        })
        await self.send_upstream({"type": UPSTREAM_RESPONSE_CREATE})

    async def _handle_commit_audio(self, message: Dict[str, Any]) -> None:
        # Upstream VAD decides when to respond
        await self.send_upstream({"type": UPSTREAM_AUDIO_COMMIT})

    async def _handle_interrupt(self, message: Dict[str, Any]) -> None:
        await self.send_upstream({"type": UPSTREAM_RESPONSE_CANCEL})

    # Upstream events (upstream -> browser)

    async def handle_upstream_message(self, raw: str) -> None:
        """Decode one upstream frame and process it; bad frames are logged and dropped."""
        try:
            event = json.loads(raw)
        except ValueError as e:
            preview = raw if len(raw) <= 500 else raw[:500] + "..."
            logger.error(f"[{self.session.id}] Could not parse upstream message {preview!r}: {e}")
            return
        if not isinstance(event, dict):
            logger.warning(f"[{self.session.id}] Ignoring non-object upstream message")
            return

        logger.debug(f"[{self.session.id}] Upstream event: {json.dumps(sanitize_strings_deep(event), ensure_ascii=False)}")
        try:
            await self.handle_upstream_event(event)
        except Exception as e:
            logger.error(f"[{self.session.id}] Error handling upstream event {event.get('type')}: {e}", exc_info=True)

    async def handle_upstream_event(self, event: Dict[str, Any]) -> None:
        event = normalize_error_event(event)
        await self._apply_side_effects(event)

        client_event = self.translator(event, self.session.active_agent)
        if client_event is not None:
            await self.send_to_client(client_event)

    async def _apply_side_effects(self, event: Mapping[str, Any]) -> None:
        event_type = event.get("type")
        item = event.get("item") if isinstance(event.get("item"), Mapping) else {}

        if event_type in AUDIO_DELTA_EVENTS and event.get("delta"):
            self.throttle.log(self.session.id, f"{event_type}_received", lambda: logger.info(
                f"[{self.session.id}] Audio delta ({event_type}), {len(event['delta'])} chars"), 3.0)

        if event_type == "response.output_item.added" and is_function_call(item):
            await self._switch_agent(item.get("name") or "unknown")
            self.pending_calls.register(item)

        elif event_type == "response.output_item.done" and is_completed_function_call(item):
            await self.execute_function_call(item)

        elif event_type == "response.done" and self.session.pending_speak_text:
            text = self.session.pending_speak_text
            self.session.pending_speak_text = None
            self._spawn(self._speak_result(text))

    async def _switch_agent(self, tool_name: str) -> None:
        target = agent_for_tool(tool_name)
        current = self.session.active_agent
        if target != current:
            logger.info(f"[{self.session.id}] Handoff: {current} -> {target}")
            await self.send_to_client(HandoffEvent(from_agent=current, to_agent=target))
            self.session.active_agent = target

    async def execute_function_call(self, item: Mapping[str, Any]) -> None:
        """
        Run the tool a completed function-call item asks for and report back.

        The output goes upstream as a function_call_output item and to the
        browser as tool_end. A successful non-empty output is kept as the
        pending speak text for the next response.done.
        """
        tool_name = self.pending_calls.resolve_tool_name(item) or "unknown"
        call_id = self.pending_calls.resolve_call_id(item)
        self.pending_calls.complete(item)
        logger.info(f"[{self.session.id}] Executing tool: {tool_name}")

        arguments = parse_arguments(item.get("arguments"), self.session.id)
        result = await self.tools.execute(tool_name, arguments)
        output = result.result if result.success else f"{TOOL_ERROR_PREFIX}: {result.error}"

        if not call_id:
            logger.error(f"[{self.session.id}] Missing call_id for {tool_name}, cannot send function_call_output")
            return

        await self.send_upstream({
            "type": UPSTREAM_ITEM_CREATE,
            "item": {"type": "function_call_output", "call_id": call_id, "output": output},
        })
        await self.send_to_client(ToolEndEvent(tool=tool_name, output=output))

        if result.success and output.strip():
            self.session.pending_speak_text = output
            logger.info(f"[{self.session.id}] Tool result saved for speaking: {output}")

    async def _speak_result(self, text: str) -> None:
        await asyncio.sleep(self.speak_result_delay)
        await self.send_upstream({
            "type": UPSTREAM_ITEM_CREATE,
            "item": message_item("user", [
                {"type": "input_text", "text": f"{SPEAK_RESULT_PREFIX}: {text}"},
            ]),
        })
        await self.send_upstream({
            "type": UPSTREAM_RESPONSE_CREATE,
            "response": {"modalities": ["audio"], "instructions": SPEAK_RESULT_INSTRUCTIONS},
        })

import asyncio
import json
import logging
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket

from voice_gateway.bot.session_controller import SessionController
from voice_gateway.bot.tools import create_default_registry
from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.config.profiles import get_profile_by_name
from voice_gateway.models.session import Session


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)

    app_logger = logging.getLogger(LOGGER_NAME)
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True
    yield


class FakeUpstream:
    """In-memory stand-in for RealtimeClient that records sent events."""

    def __init__(self, messages=None, connect_error=None, hold_open=False):
        self.sent = []
        self.is_open = False
        self.closed = False
        self.connect_error = connect_error
        self._messages = list(messages or [])
        self._hold_open = hold_open
        self._closed_event = asyncio.Event()

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        self.is_open = True

    async def send_event(self, event):
        self.sent.append(event)
        return True

    async def messages(self):
        for message in self._messages:
            yield message if isinstance(message, str) else json.dumps(message)
        if self._hold_open:
            await self._closed_event.wait()

    async def close(self):
        self.closed = True
        self.is_open = False
        self._closed_event.set()

    def sent_types(self):
        return [event["type"] for event in self.sent]


def sent_events(websocket):
    """Decode every event the controller wrote to a mocked WebSocket."""
    return [json.loads(c.args[0]) for c in websocket.send_text.call_args_list]


@pytest.fixture
def websocket():
    return AsyncMock(spec=WebSocket)


@pytest.fixture
def session(websocket):
    return Session("test-session", websocket)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def controller(session, upstream):
    """A controller whose upstream channel is already open."""
    controller = SessionController(
        session,
        upstream,
        tools=create_default_registry(),
        greeting_enabled=False,
        profile_selector=lambda: get_profile_by_name("marina"),
        speak_result_delay=0,
        greeting_delay=0,
    )
    upstream.is_open = True
    session.upstream = upstream
    return controller

"""
WebSocket client for the upstream realtime speech service.

The client owns a single WebSocket connection, sends JSON commands and yields
raw text messages to its owner. It does not interpret events; that is the job
of the SessionController.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from voice_gateway.config.constants import LOGGER_NAME, UPSTREAM_AUDIO_APPEND

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32
WS_PING_INTERVAL = 5  # seconds between pings
WS_PING_TIMEOUT = 10


class UpstreamConnectionError(Exception):
    """The realtime channel could not be opened or failed while open."""


class RealtimeClient:
    """
    Client for the realtime service over WebSocket.

    The connection URL has the form ``<base>?model=gpt://<folder-id>/<model>``
    and authenticates with an ``Authorization: api-key <key>`` header.
    """

    def __init__(self, url: str, api_key: str, folder_id: str, model_name: str):
        self.base_url = url
        self.api_key = api_key
        self.folder_id = folder_id
        self.model_name = model_name
        self.ws = None
        self._connection_active = False
        self._is_closing = False
        self._last_activity = 0.0

    @property
    def url(self) -> str:
        return f"{self.base_url}?model=gpt://{self.folder_id}/{self.model_name}"

    @property
    def is_open(self) -> bool:
        return self.ws is not None and self._connection_active and not self._is_closing

    async def connect(self) -> None:
        """
        Open the WebSocket connection.

        Raises:
            UpstreamConnectionError: If the connection could not be established
        """
        if self._is_closing:
            raise UpstreamConnectionError("client is closing")

        headers = {"Authorization": f"api-key {self.api_key}"}
        logger.info(f"Connecting to realtime service: {self.url}")
        logger.debug("Using headers: Authorization: api-key [API_KEY_HIDDEN]")

        connection_start = time.time()
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    self.url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=WS_PING_TIMEOUT,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            self._connection_active = False
            raise UpstreamConnectionError(f"timeout after {CONNECTION_TIMEOUT}s") from e
        except (OSError, WebSocketException) as e:
            self._connection_active = False
            raise UpstreamConnectionError(str(e)) from e

        self._connection_active = True
        self._last_activity = time.time()
        logger.info(f"Connected to realtime service in {time.time() - connection_start:.2f} seconds")

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """
        Send one JSON command upstream.

        Returns:
            bool: True if the message was written to the socket
        """
        if not self.is_open:
            logger.warning(f"Cannot send {event.get('type')} - realtime connection not open")
            return False

        message = json.dumps(event, ensure_ascii=False)
        try:
            await asyncio.wait_for(self.ws.send(message), timeout=SEND_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Timeout while sending {event.get('type')}")
            return False
        except ConnectionClosedOK:
            logger.info("Realtime connection closed normally while sending")
            self._connection_active = False
            return False
        except ConnectionClosedError as e:
            logger.warning(f"Realtime connection closed while sending: {e}")
            self._connection_active = False
            return False

        self._last_activity = time.time()
        if event.get("type") != UPSTREAM_AUDIO_APPEND:
            logger.debug(f"Sent {event.get('type')} ({len(message)} bytes)")
        return True

    async def messages(self) -> AsyncIterator[str]:
        """
        Yield text messages until the connection closes.

        Raises:
            UpstreamConnectionError: If the connection drops with an error
        """
        if self.ws is None:
            raise UpstreamConnectionError("not connected")

        try:
            async for message in self.ws:
                self._last_activity = time.time()
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                yield message
        except ConnectionClosedError as e:
            if not self._is_closing:
                raise UpstreamConnectionError(f"connection closed: {e}") from e
        finally:
            self._connection_active = False

    async def close(self) -> None:
        """Close the WebSocket connection."""
        self._is_closing = True
        self._connection_active = False
        if self.ws is not None:
            logger.debug("Closing realtime WebSocket connection")
            try:
                await self.ws.close()
            except WebSocketException as e:
                logger.warning(f"Error closing realtime WebSocket: {e}")
            finally:
                self.ws = None

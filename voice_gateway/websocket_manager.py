"""
WebSocket connection manager for browser voice sessions.

This module implements the gateway side of the browser protocol:
- Accept WebSocket connections and mint a session id for each
- Create a SessionController that owns the session's upstream channel
- Feed every inbound frame to the controller
- Tear the session down when either side closes

The WebSocketManager also owns the session table, the only state shared
between sessions.
"""

import logging
import uuid
from typing import Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from voice_gateway.bot.realtime_api import RealtimeClient
from voice_gateway.bot.session_controller import ClosedCallback, SessionController
from voice_gateway.bot.tools import ToolRegistry, create_default_registry
from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.config.settings import GatewaySettings
from voice_gateway.models.session import Session, SessionManager
from voice_gateway.services.tts_client import YandexTTSClient
from voice_gateway.utils.logging_utils import LogThrottle

logger = logging.getLogger(LOGGER_NAME)

ControllerFactory = Callable[[Session, ClosedCallback], SessionController]


class WebSocketManager:
    """Accepts browser connections and runs one SessionController per connection."""

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        tools: Optional[ToolRegistry] = None,
        tts_client: Optional[YandexTTSClient] = None,
        controller_factory: Optional[ControllerFactory] = None,
    ):
        self.settings = settings or GatewaySettings.from_env()
        self.session_manager = SessionManager()
        self.controllers: Dict[str, SessionController] = {}
        self.tools = tools or create_default_registry()
        self.tts_client = tts_client or YandexTTSClient(self.settings.api_key, self.settings.folder_id)
        self.throttle = LogThrottle()
        self.controller_factory = controller_factory or self._create_controller

    def _create_controller(self, session: Session, on_closed: ClosedCallback) -> SessionController:
        upstream = RealtimeClient(
            self.settings.realtime_url,
            self.settings.api_key,
            self.settings.folder_id,
            self.settings.model_name,
        )
        return SessionController(
            session,
            upstream,
            tools=self.tools,
            tts=self.tts_client,
            greeting_enabled=self.settings.greeting_enabled,
            on_closed=on_closed,
            throttle=self.throttle,
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a browser WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Accepts the connection and registers a new session
        2. Starts the session's controller, which opens the upstream channel
        3. Feeds inbound frames to the controller until the client leaves
        4. Tears the session down
        """
        await websocket.accept()
        session_id = str(uuid.uuid4())
        session = Session(session_id, websocket)
        self.session_manager.add_session(session)
        controller = self.controller_factory(session, self._on_upstream_closed)
        self.controllers[session_id] = controller
        logger.info(f"[{session_id}] New WebSocket connection")

        try:
            if not await controller.start():
                return
            while True:
                data = await websocket.receive_text()
                await controller.handle_client_message(data)
        except WebSocketDisconnect as e:
            logger.info(f"[{session_id}] Client disconnected (code {e.code})")
        except RuntimeError as e:
            # Socket closed on our side after the upstream went away
            logger.info(f"[{session_id}] WebSocket closed: {e}")
        except Exception as e:
            logger.error(f"[{session_id}] Error in WebSocket connection: {e}", exc_info=True)
        finally:
            await self.teardown(session_id)

    async def _on_upstream_closed(self, session_id: str) -> None:
        # Closing the browser socket ends the receive loop, which tears down
        session = self.session_manager.get_session(session_id)
        if session is not None:
            logger.info(f"[{session_id}] Upstream closed, closing client connection")
            await self._close_websocket(session)

    async def teardown(self, session_id: str) -> None:
        controller = self.controllers.pop(session_id, None)
        session = self.session_manager.remove_session(session_id)
        if controller is not None:
            await controller.close()
        if session is not None:
            session.is_connected = False
            await self._close_websocket(session)
        logger.info(f"[{session_id}] Session removed, {len(self.session_manager)} active")

    async def _close_websocket(self, session: Session) -> None:
        try:
            await session.websocket.close()
        except RuntimeError as e:
            # Already closed by the peer
            logger.debug(f"[{session.id}] WebSocket already closed: {e}")

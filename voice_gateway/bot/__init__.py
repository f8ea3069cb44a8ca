"""
Bot module: the realtime mediation core of the gateway.

Key components:
- RealtimeClient: WebSocket client for the upstream realtime service.
- SessionController: Per-session state machine translating between the
  browser dialect and the upstream event protocol.
- translate_event: Pure mapping from upstream events to client events.
- ToolRegistry: Local tools the model can call, with agent labels per tool.

Usage examples:
```python
from voice_gateway.bot import RealtimeClient, SessionController
from voice_gateway.models.session import Session

async def serve(websocket, settings):
    session = Session("session-id", websocket)
    upstream = RealtimeClient(settings.realtime_url, settings.api_key,
                              settings.folder_id, settings.model_name)
    controller = SessionController(session, upstream)
    if await controller.start():
        await controller.handle_client_message('{"type": "text_message", "text": "hi"}')
    await controller.close()
```
"""

from voice_gateway.bot.event_translator import translate_event
from voice_gateway.bot.realtime_api import RealtimeClient, UpstreamConnectionError
from voice_gateway.bot.session_controller import SessionController
from voice_gateway.bot.tools import ToolRegistry, ToolResult, create_default_registry

__all__ = [
    "RealtimeClient",
    "SessionController",
    "ToolRegistry",
    "ToolResult",
    "UpstreamConnectionError",
    "create_default_registry",
    "translate_event",
]

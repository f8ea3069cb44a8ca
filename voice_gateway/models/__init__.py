"""
Models module for data structures and state management in the voice gateway.

Key components:
- message_schemas: Pydantic models for browser commands and the client event
  vocabulary sent back to the browser.
- session: Per-connection Session state and the SessionManager session table.
"""

from voice_gateway.models.message_schemas import (
    AgentEndEvent,
    AgentStartEvent,
    AudioCommand,
    AudioEndEvent,
    AudioEvent,
    AudioInterruptedEvent,
    ClientCommand,
    ClientEvent,
    CommitAudioCommand,
    ErrorEvent,
    HandoffEvent,
    HistoryAddedEvent,
    InterruptCommand,
    RawModelEvent,
    TextMessageCommand,
    ToolEndEvent,
    ToolStartEvent,
)
from voice_gateway.models.session import ImageBuffer, Session, SessionManager

"""
Session state and the gateway's session table.

A Session is created when a browser connects and is mutated only by the
SessionController that owns it. The SessionManager is the one structure shared
across sessions; each entry is added and removed by its own session's lifecycle.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from voice_gateway.config.constants import DEFAULT_AGENT
from voice_gateway.config.profiles import VoiceProfile


class ImageBuffer(BaseModel):
    """Partially uploaded image: caption text plus ordered base64 chunks."""

    text: str = ""
    chunks: List[str] = Field(default_factory=list)


class Session:
    """A single live browser connection and its paired upstream channel."""

    def __init__(self, session_id: str, websocket: Any, default_agent: str = DEFAULT_AGENT):
        self.id = session_id
        self.websocket = websocket
        self.upstream = None
        # Reserved for image uploads; not consumed by the current dispatch
        self.image_buffers: Dict[str, ImageBuffer] = {}
        self.is_connected = True
        self.default_agent = default_agent
        self.active_agent = default_agent
        self.pending_speak_text: Optional[str] = None
        self.profile: Optional[VoiceProfile] = None

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, active_agent={self.active_agent!r}, connected={self.is_connected})"


class SessionManager:
    """
    Registry of active sessions keyed by session id.

    This class maintains the gateway's session table, providing methods to add,
    retrieve, and remove sessions during the connection lifecycle.
    """

    def __init__(self):
        """Initialize an empty dictionary of active sessions."""
        self.active_sessions: Dict[str, Session] = {}

    def add_session(self, session: Session) -> None:
        self.active_sessions[session.id] = session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.active_sessions.get(session_id)

    def remove_session(self, session_id: str) -> Optional[Session]:
        """Remove a session from the table, returning it if it was present."""
        return self.active_sessions.pop(session_id, None)

    def get_all_sessions(self) -> Dict[str, Session]:
        return self.active_sessions

    def __len__(self) -> int:
        return len(self.active_sessions)

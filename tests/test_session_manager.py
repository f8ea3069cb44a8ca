from unittest.mock import MagicMock

import pytest

from voice_gateway.models.session import Session, SessionManager


@pytest.fixture
def session_manager():
    return SessionManager()


def test_new_session_defaults():
    session = Session("s1", MagicMock())
    assert session.active_agent == "FAQ Agent"
    assert session.default_agent == "FAQ Agent"
    assert session.upstream is None
    assert session.pending_speak_text is None
    assert session.image_buffers == {}
    assert session.is_connected is True


def test_add_and_get_session(session_manager):
    session = Session("s1", MagicMock())
    session_manager.add_session(session)

    assert session_manager.get_session("s1") is session
    assert session_manager.get_all_sessions() == {"s1": session}
    assert len(session_manager) == 1


def test_remove_session(session_manager):
    session = Session("s1", MagicMock())
    session_manager.add_session(session)

    assert session_manager.remove_session("s1") is session
    assert session_manager.get_session("s1") is None
    assert session_manager.remove_session("s1") is None
    assert len(session_manager) == 0

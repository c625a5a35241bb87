"""Tests for session expiry and teardown through the session manager."""

from datetime import datetime, timedelta

from gadget_scout.audio.pipeline import VoiceState
from gadget_scout.config import get_settings
from gadget_scout.core.orchestrator import ConversationOrchestrator
from gadget_scout.core.prompts import PromptComposer
from gadget_scout.core.session import ChatMode, ChatSession, SessionManager
from gadget_scout.tools.recommend import RecommendationProtocol, build_tool_registry

from conftest import FakeLiveService, FakeLLMService, FakeSink, FakeSource, StaticRetriever

settings = get_settings()


def idle_for_too_long(session):
    session.last_activity = datetime.now() - timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES + 1)


def build(catalog):
    registry = build_tool_registry()
    orchestrator = ConversationOrchestrator(
        catalog=catalog,
        retriever=StaticRetriever(catalog),
        composer=PromptComposer(catalog),
        llm_service=FakeLLMService(),
        protocol=RecommendationProtocol(catalog, registry),
        registry=registry,
        live_service=FakeLiveService()
    )
    return orchestrator, SessionManager(closer=orchestrator.close_session)


def test_idle_text_session_expires():
    session = ChatSession()
    assert not session.is_expired()

    idle_for_too_long(session)
    assert session.is_expired()

    session.touch()
    assert not session.is_expired()


async def test_expired_session_is_removed(catalog):
    orchestrator, manager = build(catalog)
    session = await manager.create_session()
    idle_for_too_long(session)

    assert await manager.get_session(session.session_id) is None
    assert session.is_active is False


async def test_live_voice_call_keeps_session_alive(catalog):
    orchestrator, manager = build(catalog)
    session = await manager.create_session()
    source, sink = FakeSource(), FakeSink()
    await orchestrator.enter_voice_mode(session, source, sink)
    pipeline = session.voice

    idle_for_too_long(session)

    assert await manager.get_session(session.session_id) is session
    assert await manager.get_active_session_count() == 1
    assert pipeline.state == VoiceState.STREAMING
    assert session.mode == ChatMode.VOICE
    assert not source.closed

    await orchestrator.exit_voice_mode(session)

    assert await manager.get_session(session.session_id) is None


async def test_deleting_session_closes_voice(catalog):
    orchestrator, manager = build(catalog)
    session = await manager.create_session()
    source, sink = FakeSource(), FakeSink()
    await orchestrator.enter_voice_mode(session, source, sink)
    pipeline = session.voice

    assert await manager.delete_session(session.session_id) is True

    assert pipeline.state == VoiceState.CLOSED
    assert source.closed and sink.closed
    assert session.mode == ChatMode.TEXT

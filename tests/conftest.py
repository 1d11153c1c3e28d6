"""Shared fixtures for chatgroup tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio

from chatgroup.events.bus import ChatEvent, EventBus
from chatgroup.history.file_store import HistoryFileStore
from chatgroup.models.config import ChatGroupConfig, HistoryConfig, StoreConfig
from chatgroup.models.history import SimplifiedMessage
from chatgroup.models.message import (
    ChatAgent,
    ChatMessage,
    ChatSession,
    CreateChatMessage,
    SenderType,
    SessionStatus,
)
from chatgroup.store.base import SessionNotFoundError
from chatgroup.store.sqlite import SqliteChatStore
from chatgroup.tokens.estimator import TokenEstimator


@pytest.fixture
def config(tmp_path):
    """ChatGroupConfig with a temp database and history directory."""
    return ChatGroupConfig(
        store=StoreConfig(db_path=str(tmp_path / "test.db")),
        history=HistoryConfig(directory=str(tmp_path / "history")),
    )


@pytest_asyncio.fixture
async def store(config):
    """Initialized SqliteChatStore backed by a temp database."""
    s = SqliteChatStore(config.store)
    await s.initialize()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def session_id(store):
    """A pre-created, active session ID in the store."""
    sid = "sess_TEST01"
    await store.create_session(sid, title="test")
    return sid


@pytest.fixture
def estimator():
    """TokenEstimator using heuristic only (no tiktoken required in tests)."""
    e = TokenEstimator()
    e._force_heuristic = True
    return e


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[ChatEvent, dict[str, Any]]] = []

    def _collect(event: ChatEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


@pytest.fixture
def history(config, estimator, event_bus):
    """HistoryFileStore in the temp history directory."""
    return HistoryFileStore(config.history, estimator, event_bus)


class MemoryChatStore:
    """
    In-memory ChatStore that records every call it receives.

    ``calls`` lists method names in call order, so tests can assert that a
    rejected message never reached the store.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, ChatSession] = {}
        self.agents: dict[str, ChatAgent] = {}
        self.messages: list[ChatMessage] = []
        self.calls: list[str] = []
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def add_session(self, session_id: str, status: SessionStatus = SessionStatus.ACTIVE) -> None:
        self.sessions[session_id] = ChatSession(
            id=session_id, status=status, created_at=self._clock, updated_at=self._clock
        )

    def add_agent(self, agent_id: str, name: str) -> None:
        self.agents[agent_id] = ChatAgent(id=agent_id, name=name)

    async def get_session(self, session_id: str) -> ChatSession:
        self.calls.append("get_session")
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.sessions[session_id]

    async def touch_session(self, session_id: str) -> None:
        self.calls.append("touch_session")
        session = self.sessions[session_id]
        self.sessions[session_id] = session.model_copy(update={"updated_at": self._tick()})

    async def get_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessage]:
        self.calls.append("get_messages")
        rows = [m for m in self.messages if m.session_id == session_id]
        return rows[-limit:] if limit is not None else rows

    async def list_agents(self) -> list[ChatAgent]:
        self.calls.append("list_agents")
        return list(self.agents.values())

    async def get_agent(self, agent_id: str) -> ChatAgent | None:
        self.calls.append("get_agent")
        return self.agents.get(agent_id)

    async def insert_message(self, draft: CreateChatMessage, message_id: str) -> ChatMessage:
        self.calls.append("insert_message")
        message = ChatMessage(id=message_id, created_at=self._tick(), **draft.model_dump())
        self.messages.append(message)
        return message

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock


@pytest.fixture
def memory_store():
    store = MemoryChatStore()
    store.add_session("sess_MEM01")
    return store


def make_chat_message(
    session_id: str,
    index: int,
    content: str | None = None,
    sender_type: SenderType = SenderType.USER,
    sender_id: str | None = None,
    meta: dict[str, Any] | None = None,
) -> ChatMessage:
    """Helper to create a stored-looking ChatMessage with increasing timestamps."""
    return ChatMessage(
        id=f"msg_{index:04d}",
        session_id=session_id,
        sender_type=sender_type,
        sender_id=sender_id,
        content=content if content is not None else f"message {index}",
        meta=meta or {},
        created_at=datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=index),
    )


def make_simplified(
    index: int, content: str | None = None, sender: str = "user:alice"
) -> SimplifiedMessage:
    """Helper to create a SimplifiedMessage."""
    return SimplifiedMessage(
        sender=sender,
        content=content if content is not None else f"message {index}",
        timestamp=f"2026-01-01T10:{index % 60:02d}:00+00:00",
    )

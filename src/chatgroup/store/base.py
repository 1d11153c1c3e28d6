"""The chat store interface consumed by the context assembler and message pipeline."""

from __future__ import annotations

from typing import Protocol

from chatgroup.models.message import ChatAgent, ChatMessage, ChatSession, CreateChatMessage

# ── Exceptions ─────────────────────────────────────────────────────────────────


class ChatStoreError(Exception):
    """Base class for store errors."""


class SessionNotFoundError(ChatStoreError):
    """Raised when a session_id does not exist in the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id!r}")
        self.session_id = session_id


class DuplicateIDError(ChatStoreError):
    """Raised when attempting to insert a record with a duplicate primary key."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Duplicate ID: {record_id!r}")
        self.record_id = record_id


# ── Interface ──────────────────────────────────────────────────────────────────


class ChatStore(Protocol):
    """
    The narrow slice of the message/session/agent store this package needs.

    Each operation is assumed to be individually atomic. Any object with these
    coroutines works, which keeps in-memory fakes trivial to write.
    """

    async def get_session(self, session_id: str) -> ChatSession:
        """Fetch a session. Raises :class:`SessionNotFoundError` when absent."""
        ...

    async def touch_session(self, session_id: str) -> None:
        """Refresh a session's last-activity timestamp."""
        ...

    async def get_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessage]:
        """Messages of a session in creation order; with ``limit``, only the newest ones."""
        ...

    async def list_agents(self) -> list[ChatAgent]:
        """The whole agent directory."""
        ...

    async def get_agent(self, agent_id: str) -> ChatAgent | None:
        """A single directory entry, or None."""
        ...

    async def insert_message(self, draft: CreateChatMessage, message_id: str) -> ChatMessage:
        """Persist a fully formed draft under ``message_id`` and return the stored row."""
        ...

"""Chat message, session, agent and context entry models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def to_rfc3339(dt: datetime) -> str:
    """Render a datetime as an RFC 3339 string, assuming UTC for naive values."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


class SenderType(StrEnum):
    """Who authored a message."""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class SessionStatus(StrEnum):
    """Lifecycle status of a chat session."""

    ACTIVE = "active"
    ARCHIVED = "archived"


# ── Store records ──────────────────────────────────────────────────────────────


class ChatAgent(BaseModel):
    """An entry in the agent directory."""

    id: str
    name: str
    created_at: datetime = Field(default_factory=utc_now)


class ChatSession(BaseModel):
    """A chat session. New messages are only accepted while it is active."""

    id: str
    title: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    summary_text: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    """Last activity. Refreshed whenever a message is created."""

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


class CreateChatMessage(BaseModel):
    """A fully formed message draft, as handed to ``ChatStore.insert_message``."""

    session_id: str
    sender_type: SenderType
    sender_id: str | None = None
    content: str
    mentions: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    """A persisted chat message."""

    id: str
    session_id: str
    sender_type: SenderType
    sender_id: str | None = None
    content: str
    mentions: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)
    """Open JSON object. Known keys are read through :mod:`chatgroup.models.meta`."""
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _agent_requires_sender_id(self) -> ChatMessage:
        if self.sender_type == SenderType.AGENT and self.sender_id is None:
            raise ValueError("agent messages must carry a sender_id")
        return self


# ── Metadata sub-structures ────────────────────────────────────────────────────


class AttachmentMeta(BaseModel):
    """One entry of ``meta["attachments"]``."""

    id: str
    name: str
    mime_type: str | None = None
    size_bytes: int
    kind: str
    relative_path: str


class SenderDescriptor(BaseModel):
    """Resolved sender of a message, for display and agent context."""

    type: SenderType
    id: str | None = None
    handle: str | None = None
    name: str | None = None
    """Agent display name from the directory, when the sender is a known agent."""
    label: str


class StructuredSnapshot(BaseModel):
    """
    The ``meta["structured"]`` block recorded when a message is created.

    Always overwritten on creation, so it reflects exactly what the pipeline
    saw rather than anything the caller supplied.
    """

    sender_type: SenderType
    sender_id: str | None = None
    sender_handle: str | None = None
    sender_label: str
    content: str
    mentions: list[str] = Field(default_factory=list)
    created_at: str
    """RFC 3339 generation timestamp."""


# ── Derived context ────────────────────────────────────────────────────────────


class StructuredContextEntry(BaseModel):
    """
    One message as presented to an agent.

    Produced by :class:`~chatgroup.context.assembler.ContextAssembler` and
    never written back to the store. ``compressed`` entries carry shortened
    content and a metadata object reduced to its ``sender`` block.
    """

    id: str
    session_id: str
    created_at: datetime
    sender: SenderDescriptor
    content: str
    mentions: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)
    compressed: bool = False

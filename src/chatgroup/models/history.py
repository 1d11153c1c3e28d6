"""On-disk chat history file models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SimplifiedMessage(BaseModel):
    """
    A message reduced to what a replayable history needs.

    ``sender`` is ``"user:{handle}"``, ``"agent:{name}"`` or ``"system"``.
    """

    sender: str
    content: str
    timestamp: str
    """RFC 3339 timestamp of the original message."""

    def render(self) -> str:
        """The ``"{sender}: {content}"`` line used for token estimation."""
        return f"{self.sender}: {self.content}"


class ChatHistoryMetadata(BaseModel):
    """Bookkeeping stored alongside the messages of a history file."""

    token_count: int = Field(default=0, ge=0)
    compression_applied: bool = False
    split_file: str | None = None
    """File name of the overflow split file, when messages were evicted."""


class ChatHistoryFile(BaseModel):
    """A session's main or split history file."""

    session_id: str
    created_at: str
    updated_at: str
    messages: list[SimplifiedMessage] = Field(default_factory=list)
    metadata: ChatHistoryMetadata = Field(default_factory=ChatHistoryMetadata)

"""Structured context assembly with windowing and recency-tiered compression."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from chatgroup.models.config import ContextConfig
from chatgroup.models.history import SimplifiedMessage
from chatgroup.models.message import (
    ChatMessage,
    SenderDescriptor,
    SenderType,
    StructuredContextEntry,
    to_rfc3339,
)
from chatgroup.models.meta import sender_handle
from chatgroup.store.base import ChatStore
from chatgroup.text.compress import compress_content


def describe_sender(
    sender_type: SenderType,
    sender_id: str | None,
    handle: str | None,
    name: str | None,
) -> SenderDescriptor:
    """
    Build a sender descriptor, choosing the display label by sender kind.

    Users are labelled by handle (else ``"user"``), agents by display name,
    then raw id (else ``"agent"``), and system messages ``"system"``.
    """
    if sender_type == SenderType.USER:
        label = handle or "user"
    elif sender_type == SenderType.AGENT:
        label = name or sender_id or "agent"
    else:
        label = "system"
    return SenderDescriptor(type=sender_type, id=sender_id, handle=handle, name=name, label=label)


def resolve_sender(message: ChatMessage, agent_names: Mapping[str, str]) -> SenderDescriptor:
    """Describe the sender of a stored message using the agent directory."""
    name = agent_names.get(message.sender_id) if message.sender_id is not None else None
    handle = sender_handle(message.meta)
    return describe_sender(message.sender_type, message.sender_id, handle, name)


def to_simplified(entry: StructuredContextEntry) -> SimplifiedMessage:
    """Project a context entry onto the history file's message format."""
    if entry.sender.type == SenderType.SYSTEM:
        sender = "system"
    else:
        sender = f"{entry.sender.type.value}:{entry.sender.label}"
    return SimplifiedMessage(
        sender=sender,
        content=entry.content,
        timestamp=to_rfc3339(entry.created_at),
    )


class ContextAssembler:
    """
    Turns a session's stored messages into the structured context an agent sees.

    Two views are offered:

    * :meth:`build_full_context`: every message, untouched. Used for export.
    * :meth:`build_compacted_context`: the bounded view for agent prompts:

      1. Only the newest ``max_context_messages`` messages are considered;
         older ones are dropped outright.
      2. The newest ``recent_full_messages`` of those are kept verbatim.
      3. Every earlier message in the window is compressed to
         ``compression_ratio`` of its length, clamped to
         ``[min_compressed_chars, max_compressed_chars]``, and its metadata
         is reduced to the ``sender`` block.

    The assembler is stateless between calls.
    """

    def __init__(self, store: ChatStore, config: ContextConfig | None = None) -> None:
        self._store = store
        self._config = config or ContextConfig()
        self._logger = structlog.get_logger("chatgroup.context")

    @property
    def config(self) -> ContextConfig:
        return self._config

    async def build_full_context(self, session_id: str) -> list[StructuredContextEntry]:
        """
        Every message of the session, oldest first, with resolved senders.

        Content and metadata are returned unmodified and no entry is flagged
        as compressed.
        """
        messages = await self._store.get_messages(session_id)
        agent_names = await self._agent_names()
        return [self._entry(msg, agent_names) for msg in messages]

    async def build_compacted_context(self, session_id: str) -> list[StructuredContextEntry]:
        """
        The windowed, recency-tiered context for an agent, oldest first.

        Returns:
            At most ``max_context_messages`` entries. The last
            ``recent_full_messages`` are verbatim; the rest have
            ``compressed=True``.
        """
        cfg = self._config
        messages = await self._store.get_messages(session_id, limit=cfg.max_context_messages)
        # The window is enforced here too; ``limit`` is only a query hint.
        messages = messages[-cfg.max_context_messages :]
        agent_names = await self._agent_names()

        full_from = max(len(messages) - cfg.recent_full_messages, 0)
        entries: list[StructuredContextEntry] = []
        for idx, msg in enumerate(messages):
            if idx >= full_from:
                entries.append(self._entry(msg, agent_names))
            else:
                entries.append(self._compressed_entry(msg, agent_names))

        self._logger.debug(
            "context_built",
            session_id=session_id,
            entry_count=len(entries),
            compressed_count=full_from,
        )
        return entries

    def _entry(
        self, message: ChatMessage, agent_names: Mapping[str, str]
    ) -> StructuredContextEntry:
        return StructuredContextEntry(
            id=message.id,
            session_id=message.session_id,
            created_at=message.created_at,
            sender=resolve_sender(message, agent_names),
            content=message.content,
            mentions=list(message.mentions),
            meta=message.meta,
            compressed=False,
        )

    def _compressed_entry(
        self, message: ChatMessage, agent_names: Mapping[str, str]
    ) -> StructuredContextEntry:
        budget = self._config.compression_budget(len(message.content))
        minimal_meta = {"sender": message.meta["sender"]} if "sender" in message.meta else {}
        return StructuredContextEntry(
            id=message.id,
            session_id=message.session_id,
            created_at=message.created_at,
            sender=resolve_sender(message, agent_names),
            content=compress_content(message.content, budget),
            mentions=list(message.mentions),
            meta=minimal_meta,
            compressed=True,
        )

    async def _agent_names(self) -> dict[str, str]:
        agents = await self._store.list_agents()
        return {agent.id: agent.name for agent in agents}

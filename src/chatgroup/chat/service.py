"""Message creation, history snapshots and session export."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from chatgroup.context.assembler import ContextAssembler, describe_sender, to_simplified
from chatgroup.events.bus import ChatEvent, EventBus
from chatgroup.history.file_store import HistoryFileStore
from chatgroup.ids import make_id
from chatgroup.models.history import ChatHistoryFile, SimplifiedMessage
from chatgroup.models.message import (
    ChatMessage,
    ChatSession,
    CreateChatMessage,
    SenderType,
    StructuredSnapshot,
    to_rfc3339,
    utc_now,
)
from chatgroup.models.meta import has_attachments, sender_handle
from chatgroup.store.base import ChatStore
from chatgroup.text.mentions import parse_mentions

# ── Exceptions ─────────────────────────────────────────────────────────────────


class ChatServiceError(Exception):
    """Base class for message pipeline errors."""


class MessageValidationError(ChatServiceError):
    """Raised when a message is rejected before anything is written."""


class SessionArchivedError(ChatServiceError):
    """Raised when creating a message on a session that no longer accepts messages."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Chat session is archived: {session_id!r}")
        self.session_id = session_id


# ── ChatService ────────────────────────────────────────────────────────────────


class ChatService:
    """
    Entry point for other layers: creates messages and snapshots history.

    Example::

        service = ChatService(store, history=HistoryFileStore(config.history))
        msg = await service.create_message(
            session_id, SenderType.USER, None, "@planner draft the rollout"
        )
        assert msg.mentions == ["planner"]
        await service.snapshot_history(session_id, max_tokens=8_000)
    """

    def __init__(
        self,
        store: ChatStore,
        *,
        assembler: ContextAssembler | None = None,
        history: HistoryFileStore | None = None,
        event_bus: EventBus | None = None,
        id_generator: Callable[[str], str] = make_id,
    ) -> None:
        self._store = store
        self._assembler = assembler or ContextAssembler(store)
        self._history = history
        self._event_bus = event_bus
        self._make_id = id_generator
        self._logger = structlog.get_logger("chatgroup.chat")

    @property
    def assembler(self) -> ContextAssembler:
        return self._assembler

    # ── Message creation ───────────────────────────────────────────────────────

    async def create_message(
        self,
        session_id: str,
        sender_type: SenderType | str,
        sender_id: str | None,
        content: str,
        meta: Any = None,
    ) -> ChatMessage:
        """Create a message under a freshly generated id. See :meth:`create_message_with_id`."""
        return await self.create_message_with_id(
            session_id, sender_type, sender_id, content, meta, self._make_id("msg")
        )

    async def create_message_with_id(
        self,
        session_id: str,
        sender_type: SenderType | str,
        sender_id: str | None,
        content: str,
        meta: Any,
        message_id: str,
    ) -> ChatMessage:
        """
        Validate and persist one message.

        Checks run in order and stop at the first failure; nothing is written
        unless all of them pass:

        1. ``sender_type`` must name a :class:`SenderType` and agent messages
           need a ``sender_id``;
        2. the session must exist;
        3. the session must be active;
        4. non-dict ``meta`` is wrapped as ``{"raw_meta": meta}``;
        5. content must be non-blank unless ``meta`` carries attachments.

        The stored metadata gains a ``sender`` block (only when the caller did
        not supply one) and a ``structured`` snapshot (always replaced).

        Args:
            session_id: Target session.
            sender_type: Who is speaking.
            sender_id: Agent id for agent messages; optional otherwise.
            content: Raw message text.
            meta: Optional JSON metadata. Caller dicts are copied, not mutated.
            message_id: Primary key for the new message.

        Returns:
            The persisted message.

        Raises:
            MessageValidationError: On an unknown sender type, a missing agent id
                or empty content.
            SessionNotFoundError: If the session does not exist.
            SessionArchivedError: If the session is archived.
        """
        try:
            sender_type = SenderType(sender_type)
        except ValueError as exc:
            raise MessageValidationError(f"unknown sender type: {sender_type!r}") from exc
        if sender_type == SenderType.AGENT and sender_id is None:
            raise MessageValidationError("sender_id is required for agent messages")

        session = await self._store.get_session(session_id)
        if not session.is_active:
            raise SessionArchivedError(session_id)

        if meta is None:
            meta = {}
        elif isinstance(meta, dict):
            meta = dict(meta)
        else:
            meta = {"raw_meta": meta}

        if not content.strip() and not has_attachments(meta):
            raise MessageValidationError("content cannot be empty")

        mentions = parse_mentions(content)
        handle = sender_handle(meta)
        name = None
        if sender_type == SenderType.AGENT and sender_id is not None:
            agent = await self._store.get_agent(sender_id)
            name = agent.name if agent is not None else None
        sender = describe_sender(sender_type, sender_id, handle, name)

        if "sender" not in meta:
            meta["sender"] = sender.model_dump(mode="json")
        meta["structured"] = StructuredSnapshot(
            sender_type=sender_type,
            sender_id=sender_id,
            sender_handle=handle,
            sender_label=sender.label,
            content=content,
            mentions=mentions,
            created_at=to_rfc3339(utc_now()),
        ).model_dump(mode="json")

        message = await self._store.insert_message(
            CreateChatMessage(
                session_id=session_id,
                sender_type=sender_type,
                sender_id=sender_id,
                content=content,
                mentions=mentions,
                meta=meta,
            ),
            message_id,
        )
        await self._store.touch_session(session_id)

        self._logger.info(
            "message_created",
            session_id=session_id,
            message_id=message.id,
            sender_type=sender_type.value,
            mention_count=len(mentions),
        )
        if self._event_bus is not None:
            self._event_bus.publish(
                ChatEvent.MESSAGE_CREATED,
                {
                    "message_id": message.id,
                    "session_id": session_id,
                    "sender_type": sender_type.value,
                    "mentions": mentions,
                },
            )
        return message

    # ── History snapshots ──────────────────────────────────────────────────────

    async def snapshot_history(
        self, session_id: str, *, max_tokens: int | None = None
    ) -> ChatHistoryFile:
        """
        Write the session's compacted context to its history file.

        When ``max_tokens`` is given and the compacted history is estimated
        above it, the oldest messages are moved to the split file until the
        rest fits. The newest message always stays in the main file.

        Returns:
            The main history record as written.

        Raises:
            ChatServiceError: If no history store was configured.
        """
        history = self._history_or_raise()
        entries = await self._assembler.build_compacted_context(session_id)
        messages = [to_simplified(entry) for entry in entries]
        compression_applied = any(entry.compressed for entry in entries)

        evicted: list[SimplifiedMessage] = []
        if max_tokens is not None:
            estimator = history.estimator
            while len(messages) > 1 and estimator.estimate_messages(messages) > max_tokens:
                evicted.append(messages.pop(0))

        if evicted:
            existing = await history.read_split(session_id)
            known: set[tuple[str, str]] = set()
            if existing is not None:
                known = {(m.sender, m.timestamp) for m in existing.messages}
            fresh = [m for m in evicted if (m.sender, m.timestamp) not in known]
            if fresh:
                await history.append_to_split(session_id, fresh)
            self._logger.info(
                "history_overflow",
                session_id=session_id,
                evicted_count=len(evicted),
                appended_count=len(fresh),
            )

        split_path = history.split_path(session_id)
        split_file = split_path.name if split_path.exists() else None  # noqa: ASYNC240
        return await history.write(session_id, messages, compression_applied, split_file)

    async def delete_history(self, session_id: str) -> None:
        """Purge the session's history files."""
        await self._history_or_raise().delete(session_id)

    # ── Export ─────────────────────────────────────────────────────────────────

    async def export_session_archive(self, session: ChatSession, archive_dir: str | Path) -> str:
        """
        Export a session's full context and summary into ``archive_dir``.

        Writes ``messages_export.jsonl`` (one full-context entry per line) and
        ``session_summary.md``.

        Returns:
            The archive directory as a string.
        """
        directory = Path(archive_dir)
        directory.mkdir(parents=True, exist_ok=True)  # noqa: ASYNC240

        entries = await self._assembler.build_full_context(session.id)
        export_path = directory / "messages_export.jsonl"
        with export_path.open("w", encoding="utf-8") as fh:  # noqa: ASYNC230
            for entry in entries:
                fh.write(json.dumps(entry.model_dump(mode="json"), ensure_ascii=False))
                fh.write("\n")

        summary = session.summary_text or "No summary available."
        (directory / "session_summary.md").write_text(summary, encoding="utf-8")  # noqa: ASYNC240

        self._logger.info(
            "session_exported",
            session_id=session.id,
            message_count=len(entries),
            archive_dir=str(directory),
        )
        return str(directory)

    def _history_or_raise(self) -> HistoryFileStore:
        if self._history is None:
            raise ChatServiceError("No history file store configured.")
        return self._history

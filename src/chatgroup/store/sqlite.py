"""SQLite-backed chat store."""

from __future__ import annotations

import json
import time
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import structlog

from chatgroup.models.config import StoreConfig
from chatgroup.models.message import (
    ChatAgent,
    ChatMessage,
    ChatSession,
    CreateChatMessage,
    SenderType,
    SessionStatus,
)
from chatgroup.store.base import ChatStoreError, DuplicateIDError, SessionNotFoundError


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, UTC)


class SqliteChatStore:
    """
    Session, agent directory and message tables on a single SQLite file.

    Implements :class:`~chatgroup.store.base.ChatStore` and adds the
    administrative operations (creating sessions and agents, archiving) that
    the rest of the package never calls but an application needs.

    Usage::

        store = SqliteChatStore(StoreConfig(db_path="/tmp/chat.db"))
        await store.initialize()
        try:
            await store.create_session("sess_01", title="Planning")
            messages = await store.get_messages("sess_01")
        finally:
            await store.close()
    """

    def __init__(self, config: StoreConfig) -> None:
        self._config = config
        self._db_path = str(Path(config.db_path).expanduser())
        self._conn: aiosqlite.Connection | None = None
        self._logger = structlog.get_logger("chatgroup.store")

    async def initialize(self) -> None:
        """
        Open the database connection and apply the schema.

        Raises:
            aiosqlite.Error: If the database cannot be opened or the schema fails.
        """
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._db_path, timeout=self._config.connection_timeout)
        try:
            conn.row_factory = aiosqlite.Row
            if self._config.wal_mode:
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute("PRAGMA synchronous=NORMAL")

            schema = (Path(__file__).parent / "schema.sql").read_text()
            await conn.executescript(schema)
            await conn.commit()
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        self._logger.info("store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _conn_or_raise(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise ChatStoreError("Store is not initialized. Call initialize() first.")
        return self._conn

    # ── Session Methods ────────────────────────────────────────────────────────

    async def create_session(
        self,
        id: str,
        *,
        title: str | None = None,
        summary_text: str | None = None,
    ) -> ChatSession:
        """
        Insert a new, active session.

        Raises:
            DuplicateIDError: If a session with this ID already exists.
        """
        conn = self._conn_or_raise()
        now = _now_ms()
        try:
            await conn.execute(
                """
                INSERT INTO chat_sessions (id, title, status, summary_text, created_at, updated_at)
                VALUES (?, ?, 'active', ?, ?, ?)
                """,
                (id, title, summary_text, now, now),
            )
            await conn.commit()
        except aiosqlite.IntegrityError as exc:
            raise DuplicateIDError(id) from exc

        return ChatSession(
            id=id,
            title=title,
            status=SessionStatus.ACTIVE,
            summary_text=summary_text,
            created_at=_ms_to_datetime(now),
            updated_at=_ms_to_datetime(now),
        )

    async def get_session(self, session_id: str) -> ChatSession:
        """
        Fetch a session by ID.

        Raises:
            SessionNotFoundError: If no session with this ID exists.
        """
        conn = self._conn_or_raise()
        async with conn.execute(
            "SELECT * FROM chat_sessions WHERE id = ?", (session_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return self._row_to_session(row)

    async def touch_session(self, session_id: str) -> None:
        """
        Set a session's ``updated_at`` to now.

        Raises:
            SessionNotFoundError: If no session with this ID exists.
        """
        await self._update_session(session_id, "UPDATE chat_sessions SET updated_at=? WHERE id=?")

    async def archive_session(self, session_id: str) -> None:
        """Mark a session archived. Its messages are retained but it accepts no new ones."""
        await self._update_session(
            session_id, "UPDATE chat_sessions SET status='archived', updated_at=? WHERE id=?"
        )

    async def set_summary(self, session_id: str, summary_text: str | None) -> None:
        """Replace a session's summary text."""
        conn = self._conn_or_raise()
        cursor = await conn.execute(
            "UPDATE chat_sessions SET summary_text=? WHERE id=?", (summary_text, session_id)
        )
        await conn.commit()
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session_id)

    async def _update_session(self, session_id: str, sql: str) -> None:
        conn = self._conn_or_raise()
        cursor = await conn.execute(sql, (_now_ms(), session_id))
        await conn.commit()
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session_id)

    # ── Agent Methods ──────────────────────────────────────────────────────────

    async def create_agent(self, id: str, name: str) -> ChatAgent:
        """
        Add an agent to the directory.

        Raises:
            DuplicateIDError: If an agent with this ID already exists.
        """
        conn = self._conn_or_raise()
        now = _now_ms()
        try:
            await conn.execute(
                "INSERT INTO chat_agents (id, name, created_at) VALUES (?, ?, ?)",
                (id, name, now),
            )
            await conn.commit()
        except aiosqlite.IntegrityError as exc:
            raise DuplicateIDError(id) from exc
        return ChatAgent(id=id, name=name, created_at=_ms_to_datetime(now))

    async def get_agent(self, agent_id: str) -> ChatAgent | None:
        conn = self._conn_or_raise()
        async with conn.execute("SELECT * FROM chat_agents WHERE id = ?", (agent_id,)) as cursor:
            row = await cursor.fetchone()
        return self._row_to_agent(row) if row is not None else None

    async def list_agents(self) -> list[ChatAgent]:
        conn = self._conn_or_raise()
        async with conn.execute("SELECT * FROM chat_agents ORDER BY created_at, rowid") as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_agent(r) for r in rows]

    # ── Message Methods ────────────────────────────────────────────────────────

    async def insert_message(self, draft: CreateChatMessage, message_id: str) -> ChatMessage:
        """
        Persist a message draft.

        Args:
            draft: The validated, fully formed message.
            message_id: Primary key for the new row.

        Returns:
            The stored message.

        Raises:
            SessionNotFoundError: If ``draft.session_id`` does not exist.
            DuplicateIDError: If a message with this ID already exists.
        """
        conn = self._conn_or_raise()
        now = _now_ms()
        try:
            await conn.execute(
                """
                INSERT INTO chat_messages
                    (id, session_id, sender_type, sender_id, content, mentions, meta, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    draft.session_id,
                    draft.sender_type.value,
                    draft.sender_id,
                    draft.content,
                    json.dumps(draft.mentions),
                    json.dumps(draft.meta),
                    now,
                ),
            )
            await conn.commit()
        except aiosqlite.IntegrityError as exc:
            if "FOREIGN KEY" in str(exc):
                raise SessionNotFoundError(draft.session_id) from exc
            raise DuplicateIDError(message_id) from exc

        return ChatMessage(
            id=message_id,
            session_id=draft.session_id,
            sender_type=draft.sender_type,
            sender_id=draft.sender_id,
            content=draft.content,
            mentions=list(draft.mentions),
            meta=draft.meta,
            created_at=_ms_to_datetime(now),
        )

    async def get_messages(self, session_id: str, *, limit: int | None = None) -> list[ChatMessage]:
        """
        Messages of a session, oldest first.

        Args:
            session_id: The session to read.
            limit: When set, only the newest ``limit`` messages are returned
                (still oldest first).
        """
        conn = self._conn_or_raise()
        if limit is None:
            sql = "SELECT * FROM chat_messages WHERE session_id = ? ORDER BY created_at, rowid"
            params: tuple[object, ...] = (session_id,)
        else:
            sql = """
                SELECT * FROM (
                    SELECT *, rowid AS _seq FROM chat_messages
                    WHERE session_id = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?
                ) ORDER BY created_at, _seq
            """
            params = (session_id, limit)
        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_message(r) for r in rows]

    # ── Private Helpers ────────────────────────────────────────────────────────

    def _row_to_session(self, row: aiosqlite.Row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            title=row["title"],
            status=SessionStatus(row["status"]),
            summary_text=row["summary_text"],
            created_at=_ms_to_datetime(row["created_at"]),
            updated_at=_ms_to_datetime(row["updated_at"]),
        )

    def _row_to_agent(self, row: aiosqlite.Row) -> ChatAgent:
        return ChatAgent(
            id=row["id"],
            name=row["name"],
            created_at=_ms_to_datetime(row["created_at"]),
        )

    def _row_to_message(self, row: aiosqlite.Row) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            session_id=row["session_id"],
            sender_type=SenderType(row["sender_type"]),
            sender_id=row["sender_id"],
            content=row["content"],
            mentions=json.loads(row["mentions"]),
            meta=json.loads(row["meta"]),
            created_at=_ms_to_datetime(row["created_at"]),
        )

"""ChatGroup wires the store, context assembler, history files and service together."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from chatgroup.chat.service import ChatService
from chatgroup.context.assembler import ContextAssembler
from chatgroup.events.bus import EventBus
from chatgroup.history.file_store import HistoryFileStore
from chatgroup.models.config import ChatGroupConfig
from chatgroup.store.sqlite import SqliteChatStore
from chatgroup.tokens.estimator import TokenEstimator

_logger = structlog.get_logger("chatgroup.group")


class ChatGroup:
    """
    A ready-to-use chat backend on one SQLite database and one history directory.

    Usage::

        async with ChatGroup.open(db_path="chat.db", history_dir="history/") as group:
            await group.store.create_session("sess_01")
            await group.service.create_message("sess_01", SenderType.USER, None, "hi @coder")
            context = await group.assembler.build_compacted_context("sess_01")

    Manual lifecycle::

        group = await ChatGroup.create()
        try:
            ...
        finally:
            await group.close()
    """

    def __init__(
        self,
        config: ChatGroupConfig,
        store: SqliteChatStore,
        assembler: ContextAssembler,
        history: HistoryFileStore,
        service: ChatService,
        event_bus: EventBus,
    ) -> None:
        self._config = config
        self._store = store
        self._assembler = assembler
        self._history = history
        self._service = service
        self._event_bus = event_bus

    @classmethod
    async def create(
        cls,
        *,
        config: ChatGroupConfig | None = None,
        db_path: str | None = None,
        history_dir: str | None = None,
        event_bus: EventBus | None = None,
    ) -> ChatGroup:
        """
        Open the database and assemble all components.

        Args:
            config: Full configuration. Defaults to ``ChatGroupConfig()``.
            db_path: Override ``config.store.db_path``.
            history_dir: Override ``config.history.directory``.
            event_bus: Bus to publish on. A private one is created when omitted.

        Raises:
            aiosqlite.Error: If the database cannot be initialized.
        """
        cfg = config or ChatGroupConfig()
        if db_path is not None:
            cfg = cfg.model_copy(
                update={"store": cfg.store.model_copy(update={"db_path": db_path})}
            )
        if history_dir is not None:
            cfg = cfg.model_copy(
                update={"history": cfg.history.model_copy(update={"directory": history_dir})}
            )

        store = SqliteChatStore(cfg.store)
        await store.initialize()

        bus = event_bus or EventBus()
        assembler = ContextAssembler(store, cfg.context)
        history = HistoryFileStore(cfg.history, TokenEstimator(cfg.history.encoding), bus)
        service = ChatService(store, assembler=assembler, history=history, event_bus=bus)

        _logger.info(
            "chat_group_opened",
            db_path=cfg.store.db_path,
            history_dir=str(cfg.history.path),
        )
        return cls(cfg, store, assembler, history, service, bus)

    @classmethod
    @asynccontextmanager
    async def open(cls, **kwargs: Any) -> AsyncGenerator[ChatGroup, None]:
        """
        Create a group and close it when the ``async with`` block exits.

        Accepts the same keyword arguments as :meth:`create`.
        """
        group = await cls.create(**kwargs)
        try:
            yield group
        finally:
            await group.close()

    async def close(self) -> None:
        """Release the database connection."""
        await self._store.close()
        _logger.info("chat_group_closed")

    async def __aenter__(self) -> ChatGroup:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def config(self) -> ChatGroupConfig:
        return self._config

    @property
    def store(self) -> SqliteChatStore:
        return self._store

    @property
    def assembler(self) -> ContextAssembler:
        return self._assembler

    @property
    def history(self) -> HistoryFileStore:
        return self._history

    @property
    def service(self) -> ChatService:
        return self._service

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

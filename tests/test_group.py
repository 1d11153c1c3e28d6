"""End-to-end tests for the ChatGroup facade on SQLite and real history files."""

from __future__ import annotations

import pytest

from chatgroup.chat.service import SessionArchivedError
from chatgroup.events.bus import ChatEvent, EventBus
from chatgroup.group import ChatGroup
from chatgroup.models.config import ChatGroupConfig, ContextConfig
from chatgroup.models.message import SenderType


@pytest.fixture
def group_kwargs(tmp_path):
    return {"db_path": str(tmp_path / "group.db"), "history_dir": str(tmp_path / "history")}


class TestChatGroup:
    async def test_open_applies_path_overrides(self, group_kwargs, tmp_path):
        async with ChatGroup.open(**group_kwargs) as group:
            assert group.config.store.db_path == str(tmp_path / "group.db")
            assert group.history.directory == tmp_path / "history"
            assert group.assembler.config.max_context_messages == 30

    async def test_conversation_round_trip(self, group_kwargs):
        async with ChatGroup.open(**group_kwargs) as group:
            group.history.estimator._force_heuristic = True
            await group.store.create_session("sess_01", title="Rollout")
            await group.store.create_agent("agent_coder", "coder")

            await group.service.create_message(
                "sess_01", SenderType.USER, None, "@coder ship it", meta={"sender_handle": "ana"}
            )
            reply = await group.service.create_message(
                "sess_01", SenderType.AGENT, "agent_coder", "On it."
            )
            assert reply.meta["sender"]["label"] == "coder"

            entries = await group.assembler.build_compacted_context("sess_01")
            assert [e.content for e in entries] == ["@coder ship it", "On it."]
            assert entries[0].mentions == ["coder"]

            record = await group.service.snapshot_history("sess_01")
            assert [m.sender for m in record.messages] == ["user:ana", "agent:coder"]
            assert await group.history.read("sess_01") == record

    async def test_archived_session_rejects_messages(self, group_kwargs):
        async with ChatGroup.open(**group_kwargs) as group:
            await group.store.create_session("sess_01")
            await group.store.archive_session("sess_01")
            with pytest.raises(SessionArchivedError):
                await group.service.create_message("sess_01", SenderType.USER, None, "hello")
            assert await group.store.get_messages("sess_01") == []

    async def test_custom_config_and_event_bus(self, group_kwargs):
        bus = EventBus()
        seen: list[ChatEvent] = []
        bus.subscribe(ChatEvent.MESSAGE_CREATED, lambda event, payload: seen.append(event))
        config = ChatGroupConfig(
            context=ContextConfig(max_context_messages=3, recent_full_messages=1)
        )

        async with ChatGroup.open(config=config, event_bus=bus, **group_kwargs) as group:
            assert group.event_bus is bus
            await group.store.create_session("sess_01")
            for i in range(5):
                await group.service.create_message("sess_01", SenderType.USER, None, f"m{i}")

            entries = await group.assembler.build_compacted_context("sess_01")
            assert [e.content for e in entries] == ["m2", "m3", "m4"]
            assert [e.compressed for e in entries] == [True, True, False]

        assert seen == [ChatEvent.MESSAGE_CREATED] * 5

    async def test_manual_lifecycle(self, group_kwargs):
        group = await ChatGroup.create(**group_kwargs)
        try:
            session = await group.store.create_session("sess_01")
            assert session.is_active
        finally:
            await group.close()

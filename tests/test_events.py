"""Tests for the EventBus."""

from __future__ import annotations

import asyncio
from typing import Any

from structlog.testing import capture_logs

from chatgroup.events.bus import ChatEvent, EventBus


class TestEventBus:
    def test_subscribe_receives_only_its_event(self):
        bus = EventBus()
        seen: list[tuple[ChatEvent, dict[str, Any]]] = []
        bus.subscribe(ChatEvent.HISTORY_DELETED, lambda e, p: seen.append((e, p)))

        bus.publish(ChatEvent.MESSAGE_CREATED, {"message_id": "msg_1"})
        bus.publish(ChatEvent.HISTORY_DELETED, {"session_id": "sess_A"})

        assert seen == [(ChatEvent.HISTORY_DELETED, {"session_id": "sess_A"})]

    def test_subscribe_all(self, event_bus):
        event_bus.publish(ChatEvent.MESSAGE_CREATED, {})
        event_bus.publish(ChatEvent.HISTORY_WRITTEN, {})
        assert [e for e, _ in event_bus.collected] == [
            ChatEvent.MESSAGE_CREATED,
            ChatEvent.HISTORY_WRITTEN,
        ]

    def test_unsubscribe(self):
        bus = EventBus()
        seen: list[ChatEvent] = []

        def handler(event: ChatEvent, payload: dict[str, Any]) -> None:
            seen.append(event)

        bus.subscribe(ChatEvent.MESSAGE_CREATED, handler)
        bus.unsubscribe(ChatEvent.MESSAGE_CREATED, handler)
        bus.unsubscribe(ChatEvent.MESSAGE_CREATED, handler)
        bus.publish(ChatEvent.MESSAGE_CREATED, {})
        assert seen == []

    def test_handler_error_does_not_reach_publisher(self):
        bus = EventBus()
        seen: list[ChatEvent] = []

        def broken(event: ChatEvent, payload: dict[str, Any]) -> None:
            raise RuntimeError("boom")

        bus.subscribe(ChatEvent.MESSAGE_CREATED, broken)
        bus.subscribe(ChatEvent.MESSAGE_CREATED, lambda e, p: seen.append(e))
        with capture_logs() as logs:
            bus.publish(ChatEvent.MESSAGE_CREATED, {})

        assert seen == [ChatEvent.MESSAGE_CREATED]
        errors = [entry for entry in logs if entry["event"] == "event_handler_error"]
        assert len(errors) == 1
        assert errors[0]["event_type"] == "message.created"
        assert errors[0]["error"] == "boom"

    async def test_async_handler_scheduled(self):
        bus = EventBus()
        done = asyncio.Event()

        async def handler(event: ChatEvent, payload: dict[str, Any]) -> None:
            done.set()

        bus.subscribe(ChatEvent.HISTORY_WRITTEN, handler)
        bus.publish(ChatEvent.HISTORY_WRITTEN, {})
        await asyncio.wait_for(done.wait(), timeout=1)

    def test_async_handler_without_loop_is_dropped(self):
        bus = EventBus()
        calls: list[ChatEvent] = []

        async def handler(event: ChatEvent, payload: dict[str, Any]) -> None:
            calls.append(event)

        bus.subscribe(ChatEvent.HISTORY_WRITTEN, handler)
        bus.publish(ChatEvent.HISTORY_WRITTEN, {})
        assert calls == []

    def test_event_values(self):
        assert ChatEvent.MESSAGE_CREATED == "message.created"
        assert ChatEvent.HISTORY_SPLIT_WRITTEN == "history.split_written"

    async def test_async_handler_error_is_logged(self):
        bus = EventBus()

        async def broken(event: ChatEvent, payload: dict[str, Any]) -> None:
            raise RuntimeError("async boom")

        bus.subscribe(ChatEvent.HISTORY_WRITTEN, broken)
        with capture_logs() as logs:
            bus.publish(ChatEvent.HISTORY_WRITTEN, {})
            await asyncio.sleep(0.01)

        errors = [entry for entry in logs if entry["event"] == "event_handler_error"]
        assert len(errors) == 1
        assert errors[0]["event_type"] == "history.written"
        assert errors[0]["error"] == "async boom"
        assert bus._tasks == set()

    async def test_pending_tasks_are_held_until_done(self):
        bus = EventBus()
        release = asyncio.Event()

        async def slow(event: ChatEvent, payload: dict[str, Any]) -> None:
            await release.wait()

        bus.subscribe(ChatEvent.HISTORY_WRITTEN, slow)
        bus.publish(ChatEvent.HISTORY_WRITTEN, {})
        assert len(bus._tasks) == 1

        release.set()
        await asyncio.sleep(0.01)
        assert bus._tasks == set()

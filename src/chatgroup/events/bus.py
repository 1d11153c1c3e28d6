"""In-process pub/sub event bus for chat and history lifecycle events."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["ChatEvent", dict[str, Any]], None | Awaitable[None]]


class ChatEvent(StrEnum):
    """All event types published by chatgroup components.

    **Payload schemas by event** (TypedDicts in :mod:`chatgroup.events.payloads`):

    ``MESSAGE_CREATED``
        ``message_id``, ``session_id``, ``sender_type``, ``mentions``

    ``HISTORY_WRITTEN``
        ``session_id``, ``path``, ``message_count``, ``token_count``

    ``HISTORY_SPLIT_WRITTEN``
        ``session_id``, ``path``, ``message_count``

    ``HISTORY_DELETED``
        ``session_id``
    """

    MESSAGE_CREATED = "message.created"

    HISTORY_WRITTEN = "history.written"
    HISTORY_SPLIT_WRITTEN = "history.split_written"
    HISTORY_DELETED = "history.deleted"


class EventBus:
    """
    Simple in-process pub/sub event bus.

    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled via ``asyncio.create_task()``. The bus holds a
      reference to each task until it finishes.
    - Handler exceptions, sync or async, are logged but never propagate to the
      publisher.

    Example::

        bus = EventBus()

        def on_message(event, payload):
            print(f"{payload['sender_type']} mentioned {payload['mentions']}")

        bus.subscribe(ChatEvent.MESSAGE_CREATED, on_message)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[ChatEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._logger = logger or structlog.get_logger("chatgroup.events")

    def subscribe(self, event: ChatEvent, handler: Handler) -> None:
        """Register a handler, sync or async, for one event type."""
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for every event type."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event: ChatEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: ChatEvent, payload: dict[str, Any]) -> None:
        """
        Publish an event to all registered handlers.

        Args:
            event: The event type to publish.
            payload: Event-specific data dictionary.
        """
        all_handlers = list(self._handlers.get(event, [])) + list(self._global_handlers)
        for handler in all_handlers:
            try:
                result = handler(event, payload)
                if asyncio.iscoroutine(result):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        # No running event loop, so the coroutine can never run
                        result.close()
                        continue
                    task = loop.create_task(result)
                    self._tasks.add(task)
                    task.add_done_callback(functools.partial(self._task_done, event, handler))
            except Exception as exc:
                self._log_handler_error(event, handler, exc)

    def _task_done(self, event: ChatEvent, handler: Handler, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log_handler_error(event, handler, exc)

    def _log_handler_error(self, event: ChatEvent, handler: Handler, exc: BaseException) -> None:
        self._logger.error(
            "event_handler_error",
            event_type=str(event),
            handler=getattr(handler, "__qualname__", repr(handler)),
            error=str(exc),
        )

"""chatgroup event bus."""

from chatgroup.events.bus import ChatEvent, EventBus, Handler
from chatgroup.events.payloads import (
    HistoryDeletedPayload,
    HistorySplitWrittenPayload,
    HistoryWrittenPayload,
    MessageCreatedPayload,
)

__all__ = [
    "ChatEvent",
    "EventBus",
    "Handler",
    "HistoryDeletedPayload",
    "HistorySplitWrittenPayload",
    "HistoryWrittenPayload",
    "MessageCreatedPayload",
]

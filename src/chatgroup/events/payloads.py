"""Typed payloads for :class:`~chatgroup.events.bus.ChatEvent`."""

from __future__ import annotations

from typing import TypedDict


class MessageCreatedPayload(TypedDict):
    message_id: str
    session_id: str
    sender_type: str
    mentions: list[str]


class HistoryWrittenPayload(TypedDict):
    session_id: str
    path: str
    message_count: int
    token_count: int


class HistorySplitWrittenPayload(TypedDict):
    session_id: str
    path: str
    message_count: int


class HistoryDeletedPayload(TypedDict):
    session_id: str

"""Typed, tolerant readers for the open ``meta`` object of a chat message."""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError

from chatgroup.models.message import AttachmentMeta

_ATTACHMENTS: TypeAdapter[list[AttachmentMeta]] = TypeAdapter(list[AttachmentMeta])


def extract_attachments(meta: dict[str, Any]) -> list[AttachmentMeta]:
    """Attachments listed under ``meta["attachments"]``; [] if absent or malformed."""
    value = meta.get("attachments")
    if value is None:
        return []
    try:
        return _ATTACHMENTS.validate_python(value)
    except ValidationError:
        return []


def has_attachments(meta: dict[str, Any]) -> bool:
    return bool(extract_attachments(meta))


def extract_reference_message_id(meta: dict[str, Any]) -> str | None:
    """
    The id of the message this one replies to, if any.

    Read from ``meta["reference"]["message_id"]``, falling back to the flat
    ``meta["reference_message_id"]`` key.
    """
    reference = meta.get("reference")
    if isinstance(reference, dict):
        value = reference.get("message_id")
        if isinstance(value, str) and value:
            return value
    value = meta.get("reference_message_id")
    if isinstance(value, str) and value:
        return value
    return None


def sender_handle(meta: dict[str, Any]) -> str | None:
    value = meta.get("sender_handle")
    return value if isinstance(value, str) else None

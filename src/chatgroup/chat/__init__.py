"""Message creation pipeline and chat-level operations."""

from chatgroup.chat.service import (
    ChatService,
    ChatServiceError,
    MessageValidationError,
    SessionArchivedError,
)

__all__ = [
    "ChatService",
    "ChatServiceError",
    "MessageValidationError",
    "SessionArchivedError",
]

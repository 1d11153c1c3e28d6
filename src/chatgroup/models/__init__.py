"""chatgroup data models."""

from chatgroup.models.config import (
    ChatGroupConfig,
    ContextConfig,
    HistoryConfig,
    StoreConfig,
)
from chatgroup.models.history import (
    ChatHistoryFile,
    ChatHistoryMetadata,
    SimplifiedMessage,
)
from chatgroup.models.message import (
    AttachmentMeta,
    ChatAgent,
    ChatMessage,
    ChatSession,
    CreateChatMessage,
    SenderDescriptor,
    SenderType,
    SessionStatus,
    StructuredContextEntry,
    StructuredSnapshot,
    to_rfc3339,
    utc_now,
)

__all__ = [
    # Config
    "ChatGroupConfig",
    "ContextConfig",
    "HistoryConfig",
    "StoreConfig",
    # Store records
    "ChatAgent",
    "ChatMessage",
    "ChatSession",
    "CreateChatMessage",
    "SenderType",
    "SessionStatus",
    # Metadata
    "AttachmentMeta",
    "SenderDescriptor",
    "StructuredSnapshot",
    # Context
    "StructuredContextEntry",
    # History files
    "ChatHistoryFile",
    "ChatHistoryMetadata",
    "SimplifiedMessage",
    # Helpers
    "to_rfc3339",
    "utc_now",
]

"""
chatgroup: bounded, token-budgeted conversational context for multi-agent chat.

Primary entry point::

    from chatgroup import ChatGroup, SenderType

    async with ChatGroup.open(db_path="chat.db", history_dir="history/") as group:
        await group.store.create_session("sess_01")
        await group.service.create_message("sess_01", SenderType.USER, None, "@coder ping")
        context = await group.assembler.build_compacted_context("sess_01")
"""

from chatgroup.chat.service import (
    ChatService,
    ChatServiceError,
    MessageValidationError,
    SessionArchivedError,
)
from chatgroup.context.assembler import ContextAssembler, resolve_sender, to_simplified
from chatgroup.events.bus import ChatEvent, EventBus
from chatgroup.group import ChatGroup
from chatgroup.history.file_store import (
    HistoryFileCorruptError,
    HistoryFileError,
    HistoryFileStore,
)
from chatgroup.ids import make_id
from chatgroup.models import (
    AttachmentMeta,
    ChatAgent,
    ChatGroupConfig,
    ChatHistoryFile,
    ChatHistoryMetadata,
    ChatMessage,
    ChatSession,
    ContextConfig,
    CreateChatMessage,
    HistoryConfig,
    SenderDescriptor,
    SenderType,
    SessionStatus,
    SimplifiedMessage,
    StoreConfig,
    StructuredContextEntry,
    StructuredSnapshot,
)
from chatgroup.store import (
    ChatStore,
    ChatStoreError,
    DuplicateIDError,
    SessionNotFoundError,
    SqliteChatStore,
)
from chatgroup.text import TRUNCATION_MARKER, compress_content, parse_mentions
from chatgroup.tokens.estimator import TokenEstimator

__version__ = "0.1.0"

__all__ = [
    # Core
    "ChatGroup",
    "ChatService",
    "ContextAssembler",
    "HistoryFileStore",
    "make_id",
    # Config
    "ChatGroupConfig",
    "ContextConfig",
    "HistoryConfig",
    "StoreConfig",
    # Models
    "AttachmentMeta",
    "ChatAgent",
    "ChatHistoryFile",
    "ChatHistoryMetadata",
    "ChatMessage",
    "ChatSession",
    "CreateChatMessage",
    "SenderDescriptor",
    "SenderType",
    "SessionStatus",
    "SimplifiedMessage",
    "StructuredContextEntry",
    "StructuredSnapshot",
    # Store
    "ChatStore",
    "SqliteChatStore",
    # Errors
    "ChatServiceError",
    "ChatStoreError",
    "DuplicateIDError",
    "HistoryFileCorruptError",
    "HistoryFileError",
    "MessageValidationError",
    "SessionArchivedError",
    "SessionNotFoundError",
    # Events
    "ChatEvent",
    "EventBus",
    # Text and tokens
    "TRUNCATION_MARKER",
    "TokenEstimator",
    "compress_content",
    "parse_mentions",
    "resolve_sender",
    "to_simplified",
]

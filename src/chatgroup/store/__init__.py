"""chatgroup persistence layer."""

from chatgroup.store.base import (
    ChatStore,
    ChatStoreError,
    DuplicateIDError,
    SessionNotFoundError,
)
from chatgroup.store.sqlite import SqliteChatStore

__all__ = [
    "ChatStore",
    "SqliteChatStore",
    "ChatStoreError",
    "SessionNotFoundError",
    "DuplicateIDError",
]

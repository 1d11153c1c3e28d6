"""On-disk chat history persistence."""

from chatgroup.history.file_store import (
    HistoryFileCorruptError,
    HistoryFileError,
    HistoryFileStore,
)

__all__ = ["HistoryFileCorruptError", "HistoryFileError", "HistoryFileStore"]

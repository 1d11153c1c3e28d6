"""
Replayable chat history files.

Each session owns two JSON documents in the history directory:

* ``{session_id}.json``: the main history, rewritten in full on every write.
* ``{session_id}_split.json``: the overflow destination for messages evicted
  from the main file. The main file names it in ``metadata.split_file``.

Both share the :class:`~chatgroup.models.history.ChatHistoryFile` schema.
Writes go to a temporary file in the same directory followed by
``os.replace``, so a reader sees either the previous or the new document,
never a partial one.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import weakref
from collections.abc import Sequence
from pathlib import Path

import structlog
from pydantic import ValidationError

from chatgroup.events.bus import ChatEvent, EventBus
from chatgroup.models.config import HistoryConfig
from chatgroup.models.history import ChatHistoryFile, ChatHistoryMetadata, SimplifiedMessage
from chatgroup.models.message import to_rfc3339, utc_now
from chatgroup.tokens.estimator import TokenEstimator

SPLIT_SUFFIX = "_split"

# ── Exceptions ─────────────────────────────────────────────────────────────────


class HistoryFileError(Exception):
    """Base class for history file errors."""


class HistoryFileCorruptError(HistoryFileError):
    """Raised when a history file exists but is not a valid history document."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Malformed history file {str(path)!r}: {reason}")
        self.path = path


# ── HistoryFileStore ───────────────────────────────────────────────────────────


class HistoryFileStore:
    """
    Reads and writes per-session history files under one base directory.

    Every operation for a given session runs under that session's
    ``asyncio.Lock``, so the read-modify-write in :meth:`append_to_split`
    cannot interleave with another write for the same session through this
    instance. Separate instances (or processes) sharing a directory are not
    coordinated; give each directory a single owner.

    Usage::

        history = HistoryFileStore(HistoryConfig(directory=str(tmp_dir)), TokenEstimator())
        await history.write("sess_01", messages)
        record = await history.read("sess_01")
    """

    def __init__(
        self,
        config: HistoryConfig,
        estimator: TokenEstimator | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._dir = config.path
        self._estimator = estimator or TokenEstimator(config.encoding)
        self._event_bus = event_bus
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._logger = structlog.get_logger("chatgroup.history")

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    def main_path(self, session_id: str) -> Path:
        """Path of the main history file for ``session_id``."""
        return self._dir / f"{_checked(session_id)}.json"

    def split_path(self, session_id: str) -> Path:
        """Path of the overflow split file for ``session_id``."""
        return self._dir / f"{_checked(session_id)}{SPLIT_SUFFIX}.json"

    def lock(self, session_id: str) -> asyncio.Lock:
        """
        The per-session lock every operation for ``session_id`` holds.

        Locks are weakly referenced and vanish once no operation holds or awaits them.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    # ── Main file ──────────────────────────────────────────────────────────────

    async def write(
        self,
        session_id: str,
        messages: Sequence[SimplifiedMessage],
        compression_applied: bool = False,
        split_file: str | None = None,
    ) -> ChatHistoryFile:
        """
        Replace the main history file of a session.

        Args:
            session_id: Owning session.
            messages: The complete message list for the main file.
            compression_applied: Whether any of ``messages`` was compressed.
            split_file: File name of the split file, when messages overflowed.

        Returns:
            The record as written, with a fresh token estimate and timestamps.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        async with self.lock(session_id):
            record = self._build_record(session_id, messages, compression_applied, split_file)
            path = self.main_path(session_id)
            _atomic_write(path, record)

        self._logger.info(
            "history_written",
            session_id=session_id,
            message_count=len(record.messages),
            token_count=record.metadata.token_count,
            split_file=split_file,
        )
        self._publish(
            ChatEvent.HISTORY_WRITTEN,
            {
                "session_id": session_id,
                "path": str(path),
                "message_count": len(record.messages),
                "token_count": record.metadata.token_count,
            },
        )
        return record

    async def read(self, session_id: str) -> ChatHistoryFile | None:
        """
        Load the main history file.

        Returns:
            The record, or None when the session has no history file.

        Raises:
            HistoryFileCorruptError: If the file exists but does not parse.
            OSError: If the file cannot be read.
        """
        async with self.lock(session_id):
            return _read_record(self.main_path(session_id))

    # ── Split file ─────────────────────────────────────────────────────────────

    async def read_split(self, session_id: str) -> ChatHistoryFile | None:
        """Load the split file; None when absent. Same errors as :meth:`read`."""
        async with self.lock(session_id):
            return _read_record(self.split_path(session_id))

    async def create_split(
        self, session_id: str, messages: Sequence[SimplifiedMessage]
    ) -> ChatHistoryFile:
        """
        Replace the split file of a session with ``messages``.

        Split files never reference a further split file and are never marked
        as compressed.
        """
        async with self.lock(session_id):
            return self._write_split(session_id, messages)

    async def append_to_split(
        self, session_id: str, new_messages: Sequence[SimplifiedMessage]
    ) -> ChatHistoryFile:
        """
        Append ``new_messages`` after the split file's existing messages.

        A missing split file is treated as empty. A malformed one raises
        :class:`HistoryFileCorruptError` and is left untouched.
        """
        async with self.lock(session_id):
            existing = _read_record(self.split_path(session_id))
            messages = list(existing.messages) if existing is not None else []
            messages.extend(new_messages)
            return self._write_split(session_id, messages)

    # ── Removal ────────────────────────────────────────────────────────────────

    async def delete(self, session_id: str) -> None:
        """Remove the main and split files. Missing files are not an error."""
        async with self.lock(session_id):
            for path in (self.main_path(session_id), self.split_path(session_id)):
                path.unlink(missing_ok=True)  # noqa: ASYNC240

        self._logger.info("history_deleted", session_id=session_id)
        self._publish(ChatEvent.HISTORY_DELETED, {"session_id": session_id})

    # ── Private Helpers ────────────────────────────────────────────────────────

    def _write_split(
        self, session_id: str, messages: Sequence[SimplifiedMessage]
    ) -> ChatHistoryFile:
        record = self._build_record(session_id, messages, False, None)
        path = self.split_path(session_id)
        _atomic_write(path, record)
        self._logger.info(
            "history_split_written",
            session_id=session_id,
            message_count=len(record.messages),
        )
        self._publish(
            ChatEvent.HISTORY_SPLIT_WRITTEN,
            {"session_id": session_id, "path": str(path), "message_count": len(record.messages)},
        )
        return record

    def _build_record(
        self,
        session_id: str,
        messages: Sequence[SimplifiedMessage],
        compression_applied: bool,
        split_file: str | None,
    ) -> ChatHistoryFile:
        now = to_rfc3339(utc_now())
        return ChatHistoryFile(
            session_id=session_id,
            created_at=now,
            updated_at=now,
            messages=list(messages),
            metadata=ChatHistoryMetadata(
                token_count=self._estimator.estimate_messages(messages),
                compression_applied=compression_applied,
                split_file=split_file,
            ),
        )

    def _publish(self, event: ChatEvent, payload: dict[str, object]) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event, payload)


def _checked(session_id: str) -> str:
    if not session_id or session_id in (".", "..") or "/" in session_id or "\\" in session_id:
        raise ValueError(f"Invalid session id for a history file name: {session_id!r}")
    return session_id


def _read_record(path: Path) -> ChatHistoryFile | None:
    if not path.exists():
        return None
    content = path.read_bytes()
    try:
        return ChatHistoryFile.model_validate_json(content)
    except (ValidationError, UnicodeDecodeError) as exc:
        raise HistoryFileCorruptError(path, str(exc)) from exc


def _atomic_write(path: Path, record: ChatHistoryFile) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = record.model_dump_json(indent=2)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

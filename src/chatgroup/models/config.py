"""Configuration models for chatgroup components."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class ContextConfig(BaseModel):
    """Configuration for the compacted context assembler."""

    max_context_messages: int = Field(
        default=30,
        ge=1,
        le=1_000,
        description="Only the most recent N messages of a session are ever shown to an agent.",
    )

    recent_full_messages: int = Field(
        default=5,
        ge=0,
        description="The most recent N messages of the window are kept at full fidelity.",
    )

    compression_ratio: float = Field(
        default=0.4,
        gt=0.0,
        le=1.0,
        description="Target length of a compressed message as a fraction of the original.",
    )

    min_compressed_chars: int = Field(default=100, ge=1)
    """Lower clamp for the per-message compression budget."""

    max_compressed_chars: int = Field(default=500, ge=1)
    """Upper clamp for the per-message compression budget."""

    @model_validator(mode="after")
    def validate_bounds(self) -> ContextConfig:
        if self.recent_full_messages > self.max_context_messages:
            raise ValueError("recent_full_messages must not exceed max_context_messages")
        if self.min_compressed_chars > self.max_compressed_chars:
            raise ValueError("min_compressed_chars must not exceed max_compressed_chars")
        return self

    def compression_budget(self, original_chars: int) -> int:
        """Return the character budget for compressing a message of ``original_chars``."""
        target = int(original_chars * self.compression_ratio)
        return min(max(target, self.min_compressed_chars), self.max_compressed_chars)


class HistoryConfig(BaseModel):
    """Configuration for the on-disk chat history files."""

    directory: str = Field(
        default="~/.agents-chatgroup/chat_history",
        description="Directory holding one main and one split file per session. "
        "~ is expanded at runtime.",
    )

    encoding: str = Field(
        default="cl100k_base",
        description="tiktoken encoding used for history token estimates.",
    )

    @property
    def path(self) -> Path:
        """The expanded history directory."""
        return Path(self.directory).expanduser()


class StoreConfig(BaseModel):
    """Configuration for the SQLite chat store."""

    db_path: str = Field(
        default="~/.agents-chatgroup/chatgroup.db",
        description="Path to the SQLite database file. ~ is expanded at runtime.",
    )

    wal_mode: bool = True
    """Use WAL journal mode for better concurrent read performance."""

    connection_timeout: float = 30.0
    """Seconds to wait for the database connection before raising."""


class ChatGroupConfig(BaseModel):
    """
    Top-level configuration for a chat group.

    All sub-configs have sensible defaults and can be overridden individually.

    Example::

        config = ChatGroupConfig(
            context=ContextConfig(max_context_messages=50),
            history=HistoryConfig(directory="/var/lib/chatgroup/history"),
        )
    """

    context: ContextConfig = Field(default_factory=ContextConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def default(cls) -> ChatGroupConfig:
        """Return a config instance with all defaults."""
        return cls()

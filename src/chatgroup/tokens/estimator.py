"""History token estimation with a tiktoken primary path and a heuristic fallback."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from chatgroup.models.history import SimplifiedMessage

DEFAULT_ENCODING = "cl100k_base"


class TokenEstimator:
    """
    Estimates model tokens for rendered ``"{sender}: {content}"`` lines.

    Priority order:
    1. tiktoken with the configured encoding (``cl100k_base`` by default).
    2. If the encoder cannot be loaded (missing package, no network for the
       BPE download, unknown encoding), a character heuristic:
       ``(len(sender) + len(content) + 2) // 3`` summed over messages.

    A failed encoder load is remembered, so the warning is logged once and
    later calls go straight to the heuristic. The encoder object is cached
    per encoding name.
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING) -> None:
        self._encoding = encoding
        self._encoder_cache: dict[str, Any] = {}
        self._tokenizer_unavailable: bool = False
        self._force_heuristic: bool = False
        """Set to True in tests to skip tiktoken import."""
        self._logger = structlog.get_logger("chatgroup.tokens")

    @property
    def uses_tokenizer(self) -> bool:
        """False once the estimator has degraded to the character heuristic."""
        return not (self._force_heuristic or self._tokenizer_unavailable)

    def estimate(self, text: str) -> int:
        """
        Estimate the token count of a single string.

        Returns:
            Token count; 0 for empty text.
        """
        if not text:
            return 0
        encoder = self._encoder()
        if encoder is None:
            return len(text) // 3
        return len(encoder.encode(text, allowed_special="all"))

    def estimate_messages(self, messages: Sequence[SimplifiedMessage]) -> int:
        """
        Estimate the total tokens of a history.

        Args:
            messages: Simplified messages, each rendered as ``"{sender}: {content}"``.

        Returns:
            Estimated token count; 0 for an empty sequence.
        """
        if not messages:
            return 0
        encoder = self._encoder()
        if encoder is None:
            return self.heuristic(messages)
        return sum(len(encoder.encode(msg.render(), allowed_special="all")) for msg in messages)

    @staticmethod
    def heuristic(messages: Sequence[SimplifiedMessage]) -> int:
        """Conservative fallback: three characters per token over all rendered lines."""
        total_chars = sum(len(msg.sender) + len(msg.content) + 2 for msg in messages)
        return total_chars // 3

    def _encoder(self) -> Any | None:
        if self._force_heuristic or self._tokenizer_unavailable:
            return None
        if self._encoding not in self._encoder_cache:
            try:
                import tiktoken

                self._encoder_cache[self._encoding] = tiktoken.get_encoding(self._encoding)
            except Exception as exc:
                self._tokenizer_unavailable = True
                self._logger.warning(
                    "tokenizer_unavailable",
                    encoding=self._encoding,
                    error=str(exc),
                )
                return None
        return self._encoder_cache[self._encoding]

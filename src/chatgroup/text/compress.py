"""Deterministic truncation of message content at natural break points."""

from __future__ import annotations

TRUNCATION_MARKER = "...[truncated]"

_SENTENCE_TERMINALS: frozenset[str] = frozenset(".!?。！？")


def compress_content(content: str, max_chars: int) -> str:
    """
    Shorten ``content`` to roughly ``max_chars`` characters.

    Content that fits after trimming is returned trimmed and otherwise
    unchanged. Longer content is cut at the best break point found scanning
    backward from ``max_chars`` to ``max_chars // 2``:

    1. just after a sentence terminal (``. ! ?`` and their full-width forms),
    2. else at whitespace or a comma,
    3. else exactly at ``max_chars``.

    The kept prefix is trimmed and :data:`TRUNCATION_MARKER` is appended.
    Positions are code points, never bytes.

    Args:
        content: The text to compress.
        max_chars: Character budget, at least 1.

    Returns:
        The original trimmed text, or a marked, shortened prefix of it.

    Raises:
        ValueError: If ``max_chars`` is less than 1.
    """
    if max_chars < 1:
        raise ValueError(f"max_chars must be >= 1, got {max_chars}")

    text = content.strip()
    if len(text) <= max_chars:
        return text

    break_point = _find_break(text, max_chars)
    return f"{text[:break_point].strip()}{TRUNCATION_MARKER}"


def _find_break(text: str, max_chars: int) -> int:
    window = range(max_chars - 1, max_chars // 2 - 1, -1)

    for i in window:
        if text[i] in _SENTENCE_TERMINALS:
            return i + 1

    for i in window:
        if text[i].isspace() or text[i] == ",":
            return i

    return max_chars

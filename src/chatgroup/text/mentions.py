"""``@handle`` mention extraction."""

from __future__ import annotations

import string

_HANDLE_CHARS: frozenset[str] = frozenset(string.ascii_letters + string.digits + "_-")
# A mention may not directly follow one of these (rules out e-mail addresses).
_BLOCKING_PREFIX_CHARS: frozenset[str] = _HANDLE_CHARS | {"."}


def parse_mentions(text: str) -> list[str]:
    """
    Extract the distinct ``@handle`` references in ``text``.

    Handles are returned in first-occurrence order, case-sensitive and
    unnormalised. An ``@`` only opens a mention when it starts the text or
    follows a character outside ``[A-Za-z0-9_.-]``, so ``test@example.com``
    yields nothing.

    Example::

        >>> parse_mentions("@coder please check @planner, thanks @coder")
        ['coder', 'planner']
    """
    mentions: list[str] = []
    seen: set[str] = set()
    length = len(text)

    for i, char in enumerate(text):
        if char != "@":
            continue
        if i > 0 and text[i - 1] in _BLOCKING_PREFIX_CHARS:
            continue

        end = i + 1
        while end < length and text[end] in _HANDLE_CHARS:
            end += 1

        handle = text[i + 1 : end]
        if handle and handle not in seen:
            seen.add(handle)
            mentions.append(handle)

    return mentions

"""Text analysis helpers: mention parsing and content compression."""

from chatgroup.text.compress import TRUNCATION_MARKER, compress_content
from chatgroup.text.mentions import parse_mentions

__all__ = ["TRUNCATION_MARKER", "compress_content", "parse_mentions"]

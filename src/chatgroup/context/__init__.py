"""Context assembly."""

from chatgroup.context.assembler import (
    ContextAssembler,
    describe_sender,
    resolve_sender,
    to_simplified,
)

__all__ = ["ContextAssembler", "describe_sender", "resolve_sender", "to_simplified"]

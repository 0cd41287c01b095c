"""Frontend: invocation parsing and source unit parsing."""

from .parser import SpecParser, INVOCATION_SOURCE
from .source_parser import SourceParser
from .invocation import find_invocations, invocation_text, is_invocation

__all__ = [
    "SpecParser", "SourceParser", "INVOCATION_SOURCE",
    "find_invocations", "invocation_text", "is_invocation",
]

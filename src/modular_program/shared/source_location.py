"""
Source Location (Span)

Locations point either into a source unit or into the text of a
modular_program invocation.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourceLocation:
    """
    Source location (span).

    - File, line, column (1-based), optional end line/column
    - Code snippets are extracted from source text when needed (not stored here)
    - Immutable (frozen) for hashability
    """
    file: str
    line: int
    column: int
    end_line: int = 0
    end_column: int = 0

    def __str__(self) -> str:
        """Format as file:line:column"""
        return f"{self.file}:{self.line}:{self.column}"

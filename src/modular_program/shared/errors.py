"""
Error Reporting

Diagnostics are rendered in a compiler style (header, location arrow,
source snippet with carets, help/note annotations). Every failure of an
expansion is a ModularProgramError carrying an ErrorKind; nothing is
recovered locally.
"""

import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Dict

from .source_location import SourceLocation
from ..utils.config import COLOR_ENV_VAR


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set or not a TTY)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get(COLOR_ENV_VAR, "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    if explicit in ("1", "true", "yes", "always"):
        return True
    return sys.stderr.isatty()

_BOLD   = "\033[1m"
_RED    = "\033[31m"
_BLUE   = "\033[34m"
_CYAN   = "\033[36m"
_RESET  = "\033[0m"

def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color:
        return text
    prefix = "".join(codes)
    return f"{prefix}{text}{_RESET}" if prefix else text


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------

class ErrorKind(Enum):
    """Error taxonomy; the value is the diagnostic code."""
    # Invocation syntax
    SYNTAX = "E0100"
    EXPECTED_MODULES_KEYWORD = "E0101"
    UNKNOWN_FIELD = "E0102"
    DUPLICATE_FIELD = "E0103"
    MISSING_REQUIRED_FIELD = "E0104"
    INVALID_FIELD_VALUE = "E0105"
    # Resolution
    FILE_NOT_FOUND = "E0200"
    UNREADABLE = "E0201"
    SOURCE_PARSE = "E0202"
    PROGRAM_PARSE = "E0203"
    # Structural invariants
    FALLBACK_IN_SECONDARY_UNIT = "E0300"
    MISSING_MODULE_BODY = "E0301"
    PROGRAM_NOT_FOUND = "E0302"
    MULTIPLE_INVOCATIONS = "E0303"
    # Downstream validation
    DUPLICATE_IDENTIFIER = "E0400"
    DUPLICATE_DISCRIMINATOR = "E0401"
    INVALID_DISCRIMINATOR = "E0402"
    MULTIPLE_FALLBACKS = "E0403"

    @property
    def code(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Error dataclass
# ---------------------------------------------------------------------------

@dataclass
class Error:
    """A single rendered-on-demand diagnostic."""
    message: str
    location: Optional[SourceLocation]
    code: Optional[str] = None
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Formatting engine
# ---------------------------------------------------------------------------

def _format_diagnostic(
    error: Error,
    source_files: Dict[str, str],
    color: bool = False,
) -> str:
    """
    Render a single diagnostic.

    Example output (plain, no color)::

        error[E0103]: duplicate field `prefix` in module entry
         --> <modular_program>:1:38
          |
        1 | modules = [{ module: foo, prefix: "a", prefix: "b" }]
          |                                        ^^^^^^ declared again here
          |
          = help: each field may appear at most once
    """
    out: List[str] = []

    # ---- header -----------------------------------------------------------
    code_str = f"[{error.code}]" if error.code else ""
    out.append(
        _style(f"error{code_str}", _BOLD, _RED, color=color)
        + _style(f": {error.message}", _BOLD, color=color)
    )

    # ---- location arrow ---------------------------------------------------
    if error.location is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + "<unknown location>")
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    loc = error.location

    # ---- source snippet ---------------------------------------------------
    source = source_files.get(loc.file)
    if source is None:
        out.append(
            _style(" --> ", _BOLD, _BLUE, color=color)
            + f"{loc.file}:{loc.line}:{loc.column}"
        )
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    src_lines = source.split("\n")

    err_line = loc.line
    err_col = max(loc.column, 1)
    err_end_col = loc.end_column if loc.end_line in (0, err_line) else 0

    gw = max(len(str(err_line)), 1)

    out.append(_style(" " * gw + "--> ", _BOLD, _BLUE, color=color) + f"{loc.file}:{loc.line}:{loc.column}")
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))

    idx = err_line - 1
    code_line = src_lines[idx] if 0 <= idx < len(src_lines) else ""
    out.append(_style(str(err_line).rjust(gw) + " | ", _BOLD, _BLUE, color=color) + code_line)

    col_start = err_col - 1
    if err_end_col > err_col:
        span_len = err_end_col - err_col
    else:
        span_len = _guess_span(code_line, col_start)
    carets = " " * col_start + "^" * max(1, span_len)
    label_suffix = f" {error.label}" if error.label else ""
    out.append(
        _style(" " * (gw + 1) + "| ", _BOLD, _BLUE, color=color)
        + _style(carets + label_suffix, _BOLD, _RED, color=color)
    )

    _append_annotations(out, error, gw, color)

    return "\n".join(out)


def _guess_span(code_line: str, col_start: int) -> int:
    """Guess token length when end_column is unavailable."""
    if col_start >= len(code_line):
        return 1
    length = 0
    for ch in code_line[col_start:]:
        if ch in (" ", "\t", ",", ":", "]", "}", ")"):
            break
        length += 1
    return max(1, length)


def _append_annotations(
    out: List[str],
    error: Error,
    gw: int,
    color: bool,
) -> None:
    if not (error.help or error.note):
        return
    out.append(_style(" " * (gw + 1) + "|", _BOLD, _BLUE, color=color))
    pad = " " * (gw + 1)
    if error.help:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("help: ", _BOLD, color=color)
            + error.help
        )
    if error.note:
        out.append(
            _style(f"{pad}= ", _BOLD, _CYAN, color=color)
            + _style("note: ", _BOLD, color=color)
            + error.note
        )


# ---------------------------------------------------------------------------
# ErrorReporter
# ---------------------------------------------------------------------------

class ErrorReporter:
    """Collects diagnostics for one expansion and renders them."""

    def __init__(self, source_files: Optional[Dict[str, str]] = None):
        self.source_files: Dict[str, str] = dict(source_files or {})
        self.errors: List[Error] = []

    def report_error(
        self,
        message: str,
        location: Optional[SourceLocation],
        code: Optional[str] = None,
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.errors.append(Error(
            message=message,
            location=location,
            code=code,
            help=help,
            note=note,
            label=label,
        ))

    def report_exception(self, exc: "ModularProgramError") -> None:
        """Record a raised ModularProgramError, keeping its source text for snippets."""
        if exc.source_code is not None and exc.location is not None:
            self.source_files.setdefault(exc.location.file, exc.source_code)
        self.errors.append(exc.to_diagnostic())

    def format_error(self, error: Error, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return _format_diagnostic(error, self.source_files, color=use_color)

    def format_all_errors(self, color: Optional[bool] = None) -> str:
        parts = [self.format_error(e, color=color) for e in self.errors]
        use_color = color if color is not None else _use_color()
        count = len(self.errors)
        summary = f"aborting due to {count} previous error{'s' if count != 1 else ''}"
        parts.append(
            _style("error", _BOLD, _RED, color=use_color)
            + _style(f": {summary}", _BOLD, color=use_color)
        )
        return "\n\n".join(parts)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def print_errors(self) -> None:
        print(self.format_all_errors(), file=sys.stderr)


# ============================================================================
# Exception Classes
# ============================================================================

class ModularProgramError(Exception):
    """
    Base exception for every expansion failure.

    Carries an ErrorKind, an optional location and, when available, the
    source text the location points into so the diagnostic can show it.
    """
    default_kind: ErrorKind = ErrorKind.SYNTAX

    def __init__(self,
                 message: str,
                 kind: Optional[ErrorKind] = None,
                 location: Optional[SourceLocation] = None,
                 source_code: Optional[str] = None,
                 help: Optional[str] = None,
                 note: Optional[str] = None,
                 label: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind if kind is not None else self.default_kind
        self.location = location
        self.source_code = source_code
        self.help_text = help
        self.note_text = note
        self.label_text = label

    def to_diagnostic(self) -> Error:
        return Error(
            message=self.message,
            location=self.location,
            code=self.kind.code,
            help=self.help_text,
            note=self.note_text,
            label=self.label_text,
        )

    def __str__(self):
        source_files: Dict[str, str] = {}
        if self.source_code is not None and self.location:
            source_files[self.location.file] = self.source_code
        return _format_diagnostic(self.to_diagnostic(), source_files, color=False)


class SpecSyntaxError(ModularProgramError):
    """Malformed modular_program invocation (reported at the invocation site)."""
    default_kind = ErrorKind.SYNTAX


class ModuleResolutionError(ModularProgramError):
    """A secondary unit could not be located or read."""
    default_kind = ErrorKind.FILE_NOT_FOUND


class SourceParseError(ModularProgramError):
    """Source text is not valid Python."""
    default_kind = ErrorKind.SOURCE_PARSE


class ProgramParseError(ModularProgramError):
    """A module body does not describe a valid program."""
    default_kind = ErrorKind.PROGRAM_PARSE


class StructuralError(ModularProgramError):
    """A structural invariant of the merged program is violated."""
    default_kind = ErrorKind.MISSING_MODULE_BODY


class ValidationError(ModularProgramError):
    """The merged program was rejected by the validator/emitter."""
    default_kind = ErrorKind.DUPLICATE_IDENTIFIER

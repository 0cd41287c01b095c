"""
Tests for diagnostics: the error reporter formatter and ModularProgramError.
"""

import re

from modular_program.shared.errors import (
    Error,
    ErrorKind,
    ErrorReporter,
    ModularProgramError,
    SpecSyntaxError,
    StructuralError,
)
from modular_program.shared.source_location import SourceLocation

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


class TestErrorReporterProblematic:
    """Problematic/edge cases for the error reporter formatter."""

    def test_location_none(self):
        err = Error(message="something failed", location=None, code="E0200")
        reporter = ErrorReporter({})
        out = reporter.format_error(err, color=False)
        assert "error[E0200]" in out
        assert "something failed" in out
        assert "unknown location" in out

    def test_file_not_in_source_files(self):
        loc = SourceLocation(file="missing.py", line=1, column=1)
        err = Error(message="oops", location=loc, code="E0202")
        out = ErrorReporter({}).format_error(err, color=False)
        assert "error[E0202]" in out
        assert "missing.py:1:1" in out

    def test_line_beyond_source(self):
        loc = SourceLocation(file="x.py", line=10, column=1)
        err = Error(message="bad", location=loc)
        out = ErrorReporter({"x.py": "a = 1\nb = 2\n"}).format_error(err, color=False)
        assert " --> x.py:10:1" in out
        assert " |" in out

    def test_single_line_with_label(self):
        text = 'modules = [{ module: foo, prefix: "a", prefix: "b" }]'
        loc = SourceLocation(file="<modular_program>", line=1, column=text.rindex("prefix") + 1)
        err = Error(message="duplicate field `prefix`", location=loc, code="E0103", label="declared again here")
        out = ErrorReporter({"<modular_program>": text}).format_error(err, color=False)
        assert "1 | " + text in out
        assert "^^^^^^ declared again here" in out

    def test_explicit_span(self):
        loc = SourceLocation(file="f.py", line=1, column=5, end_line=1, end_column=8)
        err = Error(message="m", location=loc)
        out = ErrorReporter({"f.py": "abc defgh"}).format_error(err, color=False)
        assert "    ^^^" in out
        assert "^^^^" not in out

    def test_help_and_note(self):
        err = Error(message="m", location=None, help="try this", note="in src/foo.py")
        out = ErrorReporter().format_error(err, color=False)
        assert "= help: try this" in out
        assert "= note: in src/foo.py" in out

    def test_color_output(self):
        err = Error(message="m", location=None, code="E0100")
        out = ErrorReporter().format_error(err, color=True)
        assert "\x1b[" in out
        assert "error[E0100]: m" in _strip_ansi(out)


class TestErrorReporter:

    def test_summary_counts(self):
        reporter = ErrorReporter()
        reporter.report_error("one", None, code="E0100")
        assert "aborting due to 1 previous error" in reporter.format_all_errors(color=False)
        reporter.report_error("two", None, code="E0100")
        assert "aborting due to 2 previous errors" in reporter.format_all_errors(color=False)
        assert reporter.has_errors()

    def test_report_exception_keeps_source(self):
        loc = SourceLocation(file="<modular_program>", line=1, column=12)
        exc = SpecSyntaxError("bad entry", location=loc, source_code="modules = [???]")
        reporter = ErrorReporter()
        reporter.report_exception(exc)
        out = reporter.format_all_errors(color=False)
        assert "error[E0100]: bad entry" in out
        assert "1 | modules = [???]" in out

    def test_print_errors(self, capsys):
        reporter = ErrorReporter()
        reporter.report_error("printed", None)
        reporter.print_errors()
        assert "printed" in _strip_ansi(capsys.readouterr().err)


class TestModularProgramError:

    def test_default_kinds(self):
        assert SpecSyntaxError("x").kind is ErrorKind.SYNTAX
        assert StructuralError("x").kind is ErrorKind.MISSING_MODULE_BODY

    def test_explicit_kind(self):
        err = StructuralError("x", kind=ErrorKind.FALLBACK_IN_SECONDARY_UNIT)
        assert err.kind.code == "E0300"
        assert err.to_diagnostic().code == "E0300"

    def test_str_is_plain(self):
        err = ModularProgramError("plain", kind=ErrorKind.UNKNOWN_FIELD, help="h")
        text = str(err)
        assert "\x1b[" not in text
        assert text.startswith("error[E0102]: plain")
        assert "= help: h" in text

    def test_codes_are_unique(self):
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))

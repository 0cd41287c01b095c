"""
Spec Parser

Parses the argument text of a modular_program invocation:

    modules = [ bar::instructions, { module: foo, prefix: "oof" } ]

into an ordered list of ModuleSpec.
"""

import logging
from pathlib import Path
from typing import List, Optional

from lark import Lark
from lark.exceptions import UnexpectedInput, VisitError

from .transformers.specs import ModuleSpecTransformer
from ..shared.errors import ErrorKind, SpecSyntaxError
from ..shared.nodes import ModuleSpec
from ..shared.source_location import SourceLocation
from ..utils.config import DEFAULT_PARSER_CACHE_FILE, MODULES_KEYWORD

logger = logging.getLogger(__name__)

INVOCATION_SOURCE = "<modular_program>"


class SpecParser:
    """
    Invocation parser backed by a Lark LALR grammar.

    The parser is stateless between calls and can be shared.
    """

    def __init__(self, cache_file: Optional[str] = DEFAULT_PARSER_CACHE_FILE):
        grammar_path = Path(__file__).parent / "grammar.lark"
        self.parser = Lark.open(
            str(grammar_path),
            start="start",
            parser="lalr",              # Required for caching
            cache=cache_file or False,
            propagate_positions=True,   # Locations for field-level diagnostics
            maybe_placeholders=False,
        )

    def parse(self, text: str, source_file: str = INVOCATION_SOURCE) -> List[ModuleSpec]:
        """
        Parse invocation text.

        Raises:
            SpecSyntaxError: on grammar violations, unknown or duplicate fields,
                a missing `module` field or a leading keyword other than `modules`
        """
        try:
            tree = self.parser.parse(text)
        except UnexpectedInput as e:
            location = SourceLocation(file=source_file, line=e.line, column=e.column) if e.line > 0 else None
            raise SpecSyntaxError(
                f"invalid modular_program arguments: {_describe(e)}",
                kind=ErrorKind.SYNTAX,
                location=location,
                source_code=text,
                help=f"expected `{MODULES_KEYWORD} = [path, {{ module: path, ... }}, ...]`",
            ) from e

        transformer = ModuleSpecTransformer(source_file=source_file, source_code=text)
        try:
            specs = transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, SpecSyntaxError):
                raise e.orig_exc from None
            raise

        for spec in specs:
            logger.debug(f"Module spec: module={spec.module} prefix={spec.prefix!r} "
                         f"file_path={spec.file_path!r} wrapper={spec.wrapper}")
        return specs


def _describe(e: UnexpectedInput) -> str:
    """Short description of a Lark error without its context dump"""
    token = getattr(e, "token", None)
    if token is not None:
        if token.type == "$END":
            return "unexpected end of input"
        return f"unexpected `{token}`"
    char = getattr(e, "char", None)
    if char is not None:
        return f"unexpected character {char!r}"
    return str(e).splitlines()[0]

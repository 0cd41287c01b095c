"""
Invocation discovery

A primary source file names its secondary modules with a top-level call:

    modular_program("modules = [foo::instructions, bar::instructions]")

These helpers find such statements and extract their argument text.
"""

import ast
from typing import List, Optional

from ..shared.annotations import names_end_with
from ..shared.errors import ErrorKind, SpecSyntaxError
from ..shared.source_location import SourceLocation
from ..utils.config import INVOCATION_NAME


def is_invocation(stmt: ast.stmt) -> bool:
    """True for a top-level `modular_program(...)` expression statement"""
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Call)
        and names_end_with(stmt.value.func, INVOCATION_NAME)
    )


def find_invocations(body: List[ast.stmt]) -> List[ast.Expr]:
    return [stmt for stmt in body if is_invocation(stmt)]


def invocation_text(stmt: ast.Expr, source_file: str, source_code: Optional[str] = None) -> str:
    """
    The string literal passed to the invocation.

    Raises:
        SpecSyntaxError: the call does not take exactly one string literal
    """
    call = stmt.value
    if (
        len(call.args) == 1
        and not call.keywords
        and isinstance(call.args[0], ast.Constant)
        and isinstance(call.args[0].value, str)
    ):
        return call.args[0].value

    raise SpecSyntaxError(
        f"`{INVOCATION_NAME}` takes a single string literal",
        kind=ErrorKind.SYNTAX,
        location=SourceLocation(file=source_file, line=stmt.lineno, column=stmt.col_offset + 1),
        source_code=source_code,
        help=f'write `{INVOCATION_NAME}("modules = [...]")`',
    )

"""
Program Parser

Turns a module envelope into a ProgramDescriptor:

- instructions: top-level public (no leading underscore) `def` statements,
  in declaration order
- fallback: a function named `fallback` or decorated with `@fallback`

Everything else in the body (imports, classes, constants, private helpers)
is ignored.
"""

import ast
import logging
from typing import List, Optional

from ..shared.annotations import is_mut, names_end_with
from ..shared.errors import ProgramParseError
from ..shared.nodes import EntryPoint, ModuleEnvelope, Parameter, ParameterKind, ProgramDescriptor
from ..shared.source_location import SourceLocation
from ..utils.config import FALLBACK_NAME

logger = logging.getLogger(__name__)


def is_fallback(node: ast.AST) -> bool:
    """True for the catch-all handler of a program module"""
    if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return False
    if node.name == FALLBACK_NAME:
        return True
    return any(names_end_with(d, FALLBACK_NAME) for d in node.decorator_list)


def extract_parameters(arguments: ast.arguments) -> List[Parameter]:
    """Flatten `ast.arguments` into declaration-ordered parameters with their defaults"""
    params: List[Parameter] = []

    positional = [(a, ParameterKind.POSITIONAL_ONLY) for a in arguments.posonlyargs]
    positional += [(a, ParameterKind.POSITIONAL_OR_KEYWORD) for a in arguments.args]
    # Defaults align with the tail of the positional parameters
    defaults: List[Optional[ast.expr]] = [None] * (len(positional) - len(arguments.defaults))
    defaults += list(arguments.defaults)

    for (arg, kind), default in zip(positional, defaults):
        params.append(Parameter(arg.arg, arg.annotation, kind, default, is_mut(arg.annotation)))

    if arguments.vararg is not None:
        arg = arguments.vararg
        params.append(Parameter(arg.arg, arg.annotation, ParameterKind.VAR_POSITIONAL, None, is_mut(arg.annotation)))

    for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults):
        params.append(Parameter(arg.arg, arg.annotation, ParameterKind.KEYWORD_ONLY, default, is_mut(arg.annotation)))

    if arguments.kwarg is not None:
        arg = arguments.kwarg
        params.append(Parameter(arg.arg, arg.annotation, ParameterKind.VAR_KEYWORD, None, is_mut(arg.annotation)))

    return params


class ProgramParser:
    """Domain parser: module envelope → ProgramDescriptor"""

    def parse(self, envelope: ModuleEnvelope) -> ProgramDescriptor:
        """
        Raises:
            ProgramParseError: the envelope has no body, an instruction is
                `async`, or an instruction takes no context parameter
        """
        source_file = envelope.source_file or f"<{envelope.name}>"
        if envelope.body is None:
            raise ProgramParseError(f"program module `{envelope.name}` has no body")

        descriptor = ProgramDescriptor()
        for stmt in envelope.body:
            if is_fallback(stmt):
                descriptor.fallback_names.append(stmt.name)
                continue

            if isinstance(stmt, ast.AsyncFunctionDef) and not stmt.name.startswith("_"):
                raise ProgramParseError(
                    f"instruction `{stmt.name}` cannot be async",
                    location=self._location(stmt, source_file),
                )

            if not isinstance(stmt, ast.FunctionDef) or stmt.name.startswith("_"):
                continue

            parameters = extract_parameters(stmt.args)
            if not parameters or parameters[0].kind not in (
                ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL_OR_KEYWORD
            ):
                raise ProgramParseError(
                    f"instruction `{stmt.name}` must take the context as its first parameter",
                    location=self._location(stmt, source_file),
                    help=f"declare it as `def {stmt.name}(ctx: Context[Accounts], ...)`",
                )

            descriptor.instructions.append(EntryPoint(
                name=stmt.name,
                parameters=parameters,
                type_params=list(getattr(stmt, "type_params", None) or []),
                returns=stmt.returns,
                decorators=list(stmt.decorator_list),
                node=stmt,
                location=self._location(stmt, source_file),
            ))

        logger.debug(f"Program {envelope.name}: instructions={descriptor.names()} "
                     f"fallbacks={descriptor.fallback_names}")
        return descriptor

    @staticmethod
    def _location(node: ast.AST, source_file: str) -> Optional[SourceLocation]:
        # Generated declarations carry no position
        if not hasattr(node, "lineno"):
            return None
        return SourceLocation(
            file=source_file,
            line=getattr(node, "lineno", 1),
            column=getattr(node, "col_offset", 0) + 1,
        )

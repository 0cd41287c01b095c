"""
Validator / Emitter

Final stage of an expansion: checks the merged primary module the way the
program framework would, then renders it back to Python source with the
`modular_program(...)` invocation removed.

Checks:
- instruction names are unique
- at most one fallback handler
- discriminators are well formed and unambiguous (explicit literal
  discriminators and the sighash default of every other instruction)
"""

import ast
import logging
from typing import Dict, List, Optional, Protocol

from ..analysis.program_parser import ProgramParser
from ..frontend.invocation import is_invocation
from ..runtime.discriminators import coerce_discriminator, overlaps, sighash
from ..shared.annotations import names_end_with
from ..shared.errors import ErrorKind, ValidationError
from ..shared.nodes import EntryPoint, ModuleEnvelope, ProgramDescriptor
from ..utils.config import DISCRIMINATOR_KEYWORD, INSTRUCTION_DECORATOR_NAME

logger = logging.getLogger(__name__)


class Emitter(Protocol):
    """Validator/emitter interface consumed by the driver"""

    def validate_and_emit(self, merged: ModuleEnvelope) -> str:
        ...


def discriminator_expression(entry_point: EntryPoint) -> Optional[ast.expr]:
    """The `discriminator=` argument of an `@instruction(...)` decorator, if any"""
    for decorator in entry_point.decorators:
        if not (isinstance(decorator, ast.Call) and names_end_with(decorator.func, INSTRUCTION_DECORATOR_NAME)):
            continue
        for keyword in decorator.keywords:
            if keyword.arg == DISCRIMINATOR_KEYWORD:
                return keyword.value
    return None


def is_deferred(expr: Optional[ast.expr]) -> bool:
    """True for a discriminator that is not a literal and is only known when the program runs"""
    if expr is None:
        return False
    try:
        ast.literal_eval(expr)
    except (ValueError, TypeError):
        return True
    return False


def explicit_discriminator(entry_point: EntryPoint) -> Optional[bytes]:
    """
    Literal discriminator from `@instruction(discriminator=...)`, if any.

    Returns None when there is none, when the literal is `None` (the
    default discriminator applies, as in `instruction`), or when it is not a
    literal and can only be checked when the program runs.

    Raises:
        ValidationError: the literal is not a valid discriminator
    """
    expr = discriminator_expression(entry_point)
    if expr is None:
        return None
    if is_deferred(expr):
        logger.debug(f"Discriminator of {entry_point.name} is not a literal; left to the runtime")
        return None
    value = ast.literal_eval(expr)
    if value is None:
        return None
    try:
        return coerce_discriminator(value)
    except ValueError as e:
        raise ValidationError(
            f"invalid discriminator on instruction `{entry_point.name}`: {e}",
            kind=ErrorKind.INVALID_DISCRIMINATOR,
            location=entry_point.location,
        ) from e


class SourceEmitter:
    """Default validator/emitter producing Python source"""

    def __init__(self, program_parser: Optional[ProgramParser] = None):
        self.program_parser = program_parser if program_parser is not None else ProgramParser()

    def validate(self, merged: ModuleEnvelope) -> ProgramDescriptor:
        program = self.program_parser.parse(merged)

        seen: Dict[str, EntryPoint] = {}
        for entry_point in program.instructions:
            if entry_point.name in seen:
                raise ValidationError(
                    f"instruction `{entry_point.name}` is defined more than once in `{merged.name}`",
                    kind=ErrorKind.DUPLICATE_IDENTIFIER,
                    location=entry_point.location or seen[entry_point.name].location,
                    help="use a distinct `prefix` for one of the modules",
                )
            seen[entry_point.name] = entry_point

        if len(program.fallback_names) > 1:
            raise ValidationError(
                f"program `{merged.name}` declares {len(program.fallback_names)} fallback handlers "
                f"({', '.join(program.fallback_names)})",
                kind=ErrorKind.MULTIPLE_FALLBACKS,
            )

        self._check_discriminators(program.instructions)
        logger.debug(f"Validated {merged.name}: {len(program.instructions)} instructions")
        return program

    def _check_discriminators(self, instructions: List[EntryPoint]) -> None:
        known = []
        for entry_point in instructions:
            explicit = explicit_discriminator(entry_point)
            if explicit is None and is_deferred(discriminator_expression(entry_point)):
                continue
            discriminator = explicit if explicit is not None else sighash(entry_point.name)
            for other, other_discriminator in known:
                if overlaps(discriminator, other_discriminator):
                    raise ValidationError(
                        f"instructions `{other.name}` and `{entry_point.name}` have ambiguous "
                        f"discriminators ({other_discriminator.hex()} / {discriminator.hex()})",
                        kind=ErrorKind.DUPLICATE_DISCRIMINATOR,
                        location=entry_point.location,
                    )
            known.append((entry_point, discriminator))

    def emit(self, merged: ModuleEnvelope) -> str:
        body = [stmt for stmt in merged.body if not is_invocation(stmt)]
        module = ast.fix_missing_locations(ast.Module(body=body, type_ignores=[]))
        return ast.unparse(module) + "\n"

    def validate_and_emit(self, merged: ModuleEnvelope) -> str:
        self.validate(merged)
        return self.emit(merged)

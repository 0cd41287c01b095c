"""
Program framework runtime

The minimal framework expanded programs run on. A program is a Python
module: its public functions are instructions, each taking a Context as
its first parameter, and an optional `fallback` handles instruction data
that matches no discriminator.

    from modular_program.runtime import Context, instruction, entry

    @instruction(discriminator=[1, 2, 3, 4, 5, 6, 7, 8])
    def deposit(ctx: Context[DepositAccounts], amount: int) -> None:
        ...

    entry(program_module, program_id, accounts, data)
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Mapping, Optional, Sequence, TypeVar, Union

from .codec import InstructionError, decode_arguments, encode_arguments
from .discriminators import coerce_discriminator, overlaps, sighash
from ..utils.config import FALLBACK_NAME

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Context(Generic[T]):
    """Execution context handed to every instruction as its first argument"""

    def __init__(
        self,
        program_id: bytes,
        accounts: Sequence[Any],
        remaining_accounts: Sequence[Any] = (),
        instruction_name: Optional[str] = None,
    ):
        self.program_id = program_id
        self.accounts = list(accounts)
        self.remaining_accounts = list(remaining_accounts)
        self.instruction_name = instruction_name

    def __repr__(self) -> str:
        return f"Context(instruction={self.instruction_name!r}, accounts={len(self.accounts)})"


class Mut:
    """`Mut[T]` marks a parameter binding as mutable; it evaluates to `T`"""

    def __class_getitem__(cls, item):
        return item


def instruction(discriminator: Optional[Union[bytes, Sequence[int]]] = None) -> Callable[[Callable], Callable]:
    """Declare an instruction, optionally with an explicit discriminator"""
    def decorate(function: Callable) -> Callable:
        if discriminator is not None:
            function.__discriminator__ = coerce_discriminator(discriminator)
        return function
    return decorate


def fallback(function: Callable) -> Callable:
    """Mark the catch-all handler of a program"""
    function.__fallback__ = True
    return function


@dataclass
class InstructionHandler:
    name: str
    function: Callable
    discriminator: bytes


class Program:
    """Instruction table of a program module"""

    def __init__(self, name: str, handlers: List[InstructionHandler], fallback_handler: Optional[Callable] = None):
        self.name = name
        self.handlers = handlers
        self.fallback_handler = fallback_handler
        self._check_discriminators()

    @classmethod
    def from_namespace(cls, name: str, namespace: Mapping[str, Any]) -> "Program":
        """Collect the public functions defined in `namespace` (module `name`), in definition order"""
        handlers = []
        fallback_handler = None
        for attr, value in namespace.items():
            if attr.startswith("_") or not inspect.isfunction(value):
                continue
            if value.__module__ != name:
                continue
            if attr == FALLBACK_NAME or getattr(value, "__fallback__", False):
                fallback_handler = value
                continue
            discriminator = getattr(value, "__discriminator__", None) or sighash(attr)
            handlers.append(InstructionHandler(attr, value, discriminator))
        return cls(name, handlers, fallback_handler)

    @classmethod
    def from_module(cls, module: Any) -> "Program":
        return cls.from_namespace(module.__name__, vars(module))

    def _check_discriminators(self) -> None:
        for i, a in enumerate(self.handlers):
            for b in self.handlers[i + 1:]:
                if overlaps(a.discriminator, b.discriminator):
                    raise InstructionError(
                        f"instructions `{a.name}` and `{b.name}` have ambiguous discriminators",
                        code="DuplicateDiscriminator",
                    )

    def handler(self, name: str) -> InstructionHandler:
        for handler in self.handlers:
            if handler.name == name:
                return handler
        raise KeyError(name)

    def instruction_data(self, name: str, *args: Any) -> bytes:
        """Discriminator plus encoded arguments for a call to `name`"""
        handler = self.handler(name)
        return handler.discriminator + encode_arguments(handler.function, *args)

    def dispatch(self, program_id: bytes, accounts: Sequence[Any], data: bytes) -> Any:
        for handler in self.handlers:
            if data.startswith(handler.discriminator):
                args = decode_arguments(handler.function, data[len(handler.discriminator):])
                logger.debug(f"{self.name}: dispatching {handler.name}{tuple(args)}")
                ctx = Context(program_id, accounts, instruction_name=handler.name)
                return handler.function(ctx, *args)

        if self.fallback_handler is not None:
            logger.debug(f"{self.name}: no instruction matched, calling fallback")
            return self.fallback_handler(program_id, accounts, data)
        if not data:
            raise InstructionError("instruction data is empty", code="InstructionMissing")
        raise InstructionError(
            f"no instruction of `{self.name}` matches discriminator {data[:8].hex()}",
            code="InstructionFallbackNotFound",
        )


def program(module: Any) -> Program:
    """Instruction table for a program module"""
    return Program.from_module(module)


def entry(program_or_module: Any, program_id: bytes, accounts: Sequence[Any], data: bytes) -> Any:
    """Program entrypoint: dispatch raw instruction data"""
    target = program_or_module if isinstance(program_or_module, Program) else Program.from_module(program_or_module)
    return target.dispatch(program_id, accounts, bytes(data))


def modular_program(invocation: str):
    """
    Marker for an unexpanded primary module.

    Expansion replaces the call; when the unexpanded module is imported the
    invocation is still parsed, so malformed module lists fail early.
    """
    from ..frontend.parser import SpecParser
    return SpecParser().parse(invocation)

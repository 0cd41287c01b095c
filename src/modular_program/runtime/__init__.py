"""Framework runtime for expanded programs."""

from .codec import InstructionError, decode_arguments, encode_arguments
from .discriminators import sighash
from .framework import (
    Context, Mut, instruction, fallback, InstructionHandler, Program,
    program, entry, modular_program,
)

__all__ = [
    "Context", "Mut", "instruction", "fallback", "InstructionHandler", "Program",
    "program", "entry", "modular_program", "InstructionError",
    "decode_arguments", "encode_arguments", "sighash",
]

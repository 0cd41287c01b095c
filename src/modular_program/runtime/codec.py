"""
Instruction data codec

Instruction data is a discriminator followed by the instruction's
arguments, each encoded little-endian with the numpy dtype of its
annotation (`int` → int64, `np.uint64` → uint64, `bool` → 1 byte, ...).
The first parameter (the context) is not part of the data.
"""

import ast
import builtins
import inspect
from typing import Any, Callable, List, Tuple

import numpy as np


class InstructionError(Exception):
    """Instruction dispatch or argument decoding failed"""
    def __init__(self, message: str, code: str = "InstructionError"):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        return f"[{self.code}] {self.message}"


def argument_dtype(annotation: Any) -> np.dtype:
    """Little-endian numpy dtype for a fixed-size scalar annotation"""
    try:
        dtype = np.dtype(annotation)
    except TypeError as e:
        raise InstructionError(
            f"unsupported argument type {annotation!r}", code="InstructionDidNotDeserialize"
        ) from e
    if dtype.hasobject or dtype.itemsize == 0:
        raise InstructionError(
            f"argument type {annotation!r} has no fixed-size encoding", code="InstructionDidNotDeserialize"
        )
    return dtype.newbyteorder("<")


def _evaluate(annotation: Any, function: Callable) -> Any:
    """
    Resolve a string annotation (postponed evaluation) in the defining module.

    Data annotations are dotted names (`int`, `np.uint8`); they are looked up
    in the function's globals, then builtins, without evaluating code.
    """
    if not isinstance(annotation, str):
        return annotation

    def unresolved(reason: str) -> InstructionError:
        return InstructionError(
            f"cannot resolve annotation {annotation!r} of `{function.__name__}`: {reason}",
            code="InstructionDidNotDeserialize",
        )

    try:
        node = ast.parse(annotation, mode="eval").body
    except SyntaxError as e:
        raise unresolved("not a valid expression") from e

    attributes = []
    while isinstance(node, ast.Attribute):
        attributes.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        raise unresolved("expected a dotted type name")

    if node.id in function.__globals__:
        value = function.__globals__[node.id]
    elif hasattr(builtins, node.id):
        value = getattr(builtins, node.id)
    else:
        raise unresolved(f"name `{node.id}` is not defined")

    for attr in reversed(attributes):
        try:
            value = getattr(value, attr)
        except AttributeError as e:
            raise unresolved(f"no attribute `{attr}`") from e
    return value


def argument_layout(function: Callable) -> List[Tuple[str, np.dtype]]:
    """(name, dtype) for every data argument of an instruction, in order"""
    layout = []
    parameters = list(inspect.signature(function).parameters.values())[1:]
    for param in parameters:
        if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            raise InstructionError(
                f"parameter `{param.name}` of `{function.__name__}` cannot be decoded from instruction data",
                code="InstructionDidNotDeserialize",
            )
        if param.annotation is inspect.Parameter.empty:
            raise InstructionError(
                f"parameter `{param.name}` of `{function.__name__}` has no type annotation",
                code="InstructionDidNotDeserialize",
            )
        layout.append((param.name, argument_dtype(_evaluate(param.annotation, function))))
    return layout


def decode_arguments(function: Callable, data: bytes) -> List[Any]:
    """Decode instruction arguments (without the discriminator) as Python scalars"""
    values = []
    offset = 0
    for name, dtype in argument_layout(function):
        if offset + dtype.itemsize > len(data):
            raise InstructionError(
                f"instruction data too short for argument `{name}`", code="InstructionDidNotDeserialize"
            )
        values.append(np.frombuffer(data, dtype=dtype, count=1, offset=offset)[0].item())
        offset += dtype.itemsize
    return values


def encode_arguments(function: Callable, *values: Any) -> bytes:
    """Encode instruction arguments in the layout `decode_arguments` reads"""
    layout = argument_layout(function)
    if len(values) != len(layout):
        raise InstructionError(
            f"`{function.__name__}` takes {len(layout)} data arguments, got {len(values)}",
            code="InstructionDidNotSerialize",
        )
    return b"".join(np.array(value, dtype=dtype).tobytes() for (_, dtype), value in zip(layout, values))

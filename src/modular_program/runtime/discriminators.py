"""
Instruction discriminators

The default discriminator of an instruction is the first eight bytes of
sha256("global:<name>"). Explicit discriminators are any non-empty byte
string (or list of ints in 0..255).
"""

import hashlib
from typing import Any

from ..utils.config import DISCRIMINATOR_LENGTH, DISCRIMINATOR_NAMESPACE


def sighash(name: str, namespace: str = DISCRIMINATOR_NAMESPACE) -> bytes:
    """Default discriminator for an instruction name"""
    digest = hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()
    return digest[:DISCRIMINATOR_LENGTH]


def coerce_discriminator(value: Any) -> bytes:
    """
    bytes / bytearray / sequence of ints → bytes.

    Raises:
        ValueError: empty, out-of-range or non-integer values
    """
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    elif isinstance(value, (list, tuple)):
        if not all(isinstance(b, int) and not isinstance(b, bool) for b in value):
            raise ValueError(f"discriminator must contain integers, got {value!r}")
        try:
            data = bytes(value)
        except ValueError as e:
            raise ValueError(f"discriminator bytes must be in 0..255, got {value!r}") from e
    else:
        raise ValueError(f"discriminator must be bytes or a list of ints, got {type(value).__name__}")
    if not data:
        raise ValueError("discriminator must not be empty")
    return data


def overlaps(a: bytes, b: bytes) -> bool:
    """Two discriminators are ambiguous when one is a prefix of the other"""
    return a.startswith(b) or b.startswith(a)

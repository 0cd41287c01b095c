"""Expansion driver and validator/emitter."""

from .driver import ExpansionResult, ModularProgramDriver
from .emitter import Emitter, SourceEmitter, explicit_discriminator

__all__ = ["ExpansionResult", "ModularProgramDriver", "Emitter", "SourceEmitter", "explicit_discriminator"]

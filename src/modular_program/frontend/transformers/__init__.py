"""
Invocation transformers
=======================

Lark tree transformers for the modular_program invocation grammar.
"""

from .specs import ModuleSpecTransformer, RawField

__all__ = [
    'ModuleSpecTransformer',
    'RawField',
]

"""Code generation: relay declarations and module merging."""

from .relay import RelayGenerator, relay_name, normalize_context_annotation
from .merger import ModuleMerger, default_wrapper_definition, relay_imports

__all__ = [
    "RelayGenerator",
    "relay_name",
    "normalize_context_annotation",
    "ModuleMerger",
    "default_wrapper_definition",
    "relay_imports",
]

"""Module system: path resolution and secondary unit loading."""

from .path_resolver import PathResolver
from .module_loader import SecondaryUnitLoader

__all__ = [
    'PathResolver',
    'SecondaryUnitLoader',
]

"""
Build context and expansion options

The build context replaces an implicit process-wide project root: it is
created once (explicitly or from the environment) and passed to the path
resolver, which only reads it.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from ..utils.config import PROJECT_ROOT_ENV_VAR


@dataclass(frozen=True)
class BuildContext:
    """Read-only build configuration: the root every relative path is resolved against"""
    project_root: Path

    def __post_init__(self):
        if not isinstance(self.project_root, Path):
            object.__setattr__(self, "project_root", Path(self.project_root))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BuildContext":
        """Root from MODULAR_PROGRAM_ROOT, falling back to the current directory"""
        env = os.environ if environ is None else environ
        root = env.get(PROJECT_ROOT_ENV_VAR)
        return cls(Path(root) if root else Path.cwd())

    @classmethod
    def for_root(cls, root: Union[str, Path]) -> "BuildContext":
        return cls(Path(root))


@dataclass(frozen=True)
class ExpansionOptions:
    """
    Relay generation policy.

    normalize_context: rewrite the context parameter to the canonical
        `Context[Accounts]` form and strip `Mut[...]` markers
    always_wrap: route relays without a custom wrapper through the
        injected default wrapper instead of calling the target directly
    """
    normalize_context: bool = True
    always_wrap: bool = False

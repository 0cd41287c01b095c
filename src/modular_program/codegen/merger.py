"""
Module Merger

Appends generated relays to the primary module. The merged body is the
original body followed by:

1. one aliased `import` per secondary module and wrapper module the relays
   refer to
2. the default wrapper definition, when a relay routes through it
3. the relays, in spec order then declaration order

Nothing in the original body is changed or deduplicated; clashing relay
names are left for the validator to report.
"""

import ast
import copy
import logging
from typing import Dict, List, Optional

from ..shared.context import ExpansionOptions
from ..shared.errors import ErrorKind, StructuralError, ValidationError
from ..shared.nodes import ModuleEnvelope, RelayDeclaration, SymbolicPath
from ..utils.config import DEFAULT_WRAPPER_NAME

logger = logging.getLogger(__name__)

DEFAULT_WRAPPER_SOURCE = f'''
def {DEFAULT_WRAPPER_NAME}(ix, /, *args, **kwargs):
    """Default relay wrapper: forwards the call unchanged."""
    return ix(*args, **kwargs)
'''


def default_wrapper_definition() -> ast.FunctionDef:
    """Fresh AST for the injected default wrapper"""
    return ast.parse(DEFAULT_WRAPPER_SOURCE).body[0]


def relay_imports(relays: List[RelayDeclaration]) -> List[ast.Import]:
    """
    `import <module> as <alias>` statements making every relay target and
    wrapper resolvable, in first-use order. Single-segment wrappers are
    expected to be defined in the primary module itself.

    Modules are bound to private aliases so they never share a name with an
    instruction of the primary module or a relay.

    Raises:
        ValidationError: two distinct modules map to the same alias
    """
    modules: Dict[str, SymbolicPath] = {}
    for relay in relays:
        candidates = [relay.spec.module]
        if relay.spec.wrapper is not None and relay.spec.wrapper.parent is not None:
            candidates.append(relay.spec.wrapper.parent)
        for path in candidates:
            known = modules.setdefault(path.alias, path)
            if known.dotted != path.dotted:
                raise ValidationError(
                    f"modules `{known}` and `{path}` cannot both be imported as `{path.alias}`",
                    kind=ErrorKind.DUPLICATE_IDENTIFIER,
                    location=relay.spec.location,
                    help="rename one of the modules",
                )
    return [ast.Import(names=[ast.alias(name=path.dotted, asname=alias)]) for alias, path in modules.items()]


class ModuleMerger:
    """Merges relays into a primary module envelope, returning a new envelope"""

    def __init__(self, options: Optional[ExpansionOptions] = None):
        self.options = options if options is not None else ExpansionOptions()

    def merge(self, primary: ModuleEnvelope, relays: List[RelayDeclaration]) -> ModuleEnvelope:
        """
        Raises:
            StructuralError: the primary module is a declaration without a body
        """
        if primary.body is None:
            raise StructuralError(
                f"program module `{primary.name}` has no body",
                kind=ErrorKind.MISSING_MODULE_BODY,
                help="declare the primary program module with a body",
            )

        appended: List[ast.stmt] = []
        appended.extend(relay_imports(relays))

        if self.options.always_wrap or any(r.uses_default_wrapper for r in relays):
            appended.append(default_wrapper_definition())

        appended.extend(copy.deepcopy(r.node) for r in relays)

        merged = ModuleEnvelope(
            name=primary.name,
            body=list(primary.body) + appended,
            is_public=primary.is_public,
            source_file=primary.source_file,
        )
        logger.debug(f"Merged {len(relays)} relays into {primary.name} "
                     f"({len(primary.body)} → {len(merged.body)} statements)")
        return merged

"""
Expansion data model

Pure data structures shared by the parser, the module system, relay
generation and the merger. Declarations are kept as Python `ast` nodes so
they can be copied onto relays verbatim.
"""

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .source_location import SourceLocation
from ..utils.config import MODULE_ALIAS_PREFIX, MODULE_SEPARATOR, PYTHON_MODULE_SEPARATOR


@dataclass(frozen=True)
class SymbolicPath:
    """
    Symbolic path such as `foo::instructions` (or `foo.instructions`).

    Segments are stored as a tuple; `dotted` is the form used in `import`
    statements and `alias` the private name the module is bound to.
    """
    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, text: str) -> "SymbolicPath":
        """Build a path from `a::b` or `a.b` notation"""
        normalized = text.strip().replace(MODULE_SEPARATOR, PYTHON_MODULE_SEPARATOR)
        segments = tuple(part for part in normalized.split(PYTHON_MODULE_SEPARATOR))
        if not segments or not all(part.isidentifier() for part in segments):
            raise ValueError(f"invalid symbolic path: {text!r}")
        return cls(segments)

    @property
    def first(self) -> str:
        return self.segments[0]

    @property
    def last(self) -> str:
        return self.segments[-1]

    @property
    def parent(self) -> Optional["SymbolicPath"]:
        if len(self.segments) < 2:
            return None
        return SymbolicPath(self.segments[:-1])

    @property
    def dotted(self) -> str:
        return PYTHON_MODULE_SEPARATOR.join(self.segments)

    def child(self, name: str) -> "SymbolicPath":
        return SymbolicPath(self.segments + (name,))

    @property
    def alias(self) -> str:
        """Private name a module path is imported as (`foo.instructions` → `__mp_foo_instructions`)"""
        return MODULE_ALIAS_PREFIX + "_".join(self.segments)

    def to_aliased_expr(self) -> ast.expr:
        """
        Reference through the parent module's import alias
        (`foo::instructions::go` → `__mp_foo_instructions.go`). A single
        segment names something in the current module and stays bare.
        """
        if self.parent is None:
            return ast.Name(id=self.first, ctx=ast.Load())
        return ast.Attribute(value=ast.Name(id=self.parent.alias, ctx=ast.Load()), attr=self.last, ctx=ast.Load())

    def __str__(self) -> str:
        return MODULE_SEPARATOR.join(self.segments)


@dataclass(frozen=True)
class ModuleSpec:
    """
    One entry of the `modules = [...]` list.

    - module: symbolic path of the secondary unit (required)
    - prefix: None derives the prefix from the first module segment,
      "" disables prefixing
    - file_path: overrides the conventional file location
    - wrapper: symbolic path of a forwarding callable
    """
    module: SymbolicPath
    prefix: Optional[str] = None
    file_path: Optional[str] = None
    wrapper: Optional[SymbolicPath] = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    @property
    def effective_prefix(self) -> str:
        if self.prefix is not None:
            return self.prefix
        return self.module.first


class ParameterKind(Enum):
    """Python parameter binding kinds, in declaration order"""
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


@dataclass
class Parameter:
    """Parameter of an entry point; `mutable` is set by a `Mut[...]` annotation"""
    name: str
    annotation: Optional[ast.expr] = None
    kind: ParameterKind = ParameterKind.POSITIONAL_OR_KEYWORD
    default: Optional[ast.expr] = None
    mutable: bool = False

    def __str__(self) -> str:
        star = {ParameterKind.VAR_POSITIONAL: "*", ParameterKind.VAR_KEYWORD: "**"}.get(self.kind, "")
        if self.annotation is None:
            return f"{star}{self.name}"
        return f"{star}{self.name}: {ast.unparse(self.annotation)}"


@dataclass
class EntryPoint:
    """
    Entry point ("instruction") declared in a program module.

    The first parameter is the execution context. `decorators` are the
    attributes copied verbatim onto relays (discriminators and the like).
    """
    name: str
    parameters: List[Parameter]
    type_params: List[ast.AST]
    returns: Optional[ast.expr]
    decorators: List[ast.expr]
    node: ast.FunctionDef
    location: Optional[SourceLocation] = None

    @property
    def context_parameter(self) -> Parameter:
        return self.parameters[0]

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        return f"def {self.name}({params})"


@dataclass
class ProgramDescriptor:
    """Instructions of a program module in declaration order, plus its fallback handlers"""
    instructions: List[EntryPoint] = field(default_factory=list)
    fallback_names: List[str] = field(default_factory=list)

    @property
    def has_fallback(self) -> bool:
        return len(self.fallback_names) > 0

    def names(self) -> List[str]:
        return [ix.name for ix in self.instructions]


@dataclass
class ModuleEnvelope:
    """
    A module declaration with an optional body.

    Used for the synthetic envelope around a secondary unit and for the
    primary module. `body is None` is a forward declaration without content.
    """
    name: str
    body: Optional[List[ast.stmt]]
    is_public: bool = True
    source_file: Optional[str] = None

    def __str__(self) -> str:
        size = "no body" if self.body is None else f"{len(self.body)} statements"
        return f"Module({self.name}, {size})"


@dataclass
class RelayDeclaration:
    """
    Generated forwarding declaration.

    `target` is the fully qualified path of the relayed entry point and
    `uses_default_wrapper` records whether the body calls the injected
    default wrapper.
    """
    name: str
    spec: ModuleSpec
    entry_point: EntryPoint
    target: SymbolicPath
    node: ast.FunctionDef
    uses_default_wrapper: bool = False

    def __str__(self) -> str:
        return f"relay {self.name} -> {self.target.dotted}"

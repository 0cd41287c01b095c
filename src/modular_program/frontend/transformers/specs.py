"""
Module Spec Transformer

Converts the Lark parse tree of a modular_program invocation into
ModuleSpec objects. Field validation happens in three steps, in order:
unknown names and value kinds per field, then duplicate names, then the
required `module` field.
"""

import ast
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from lark import Transformer, v_args
from lark.lexer import Token
from typing_extensions import TypeAlias

from ...shared.errors import ErrorKind, SpecSyntaxError
from ...shared.nodes import ModuleSpec, SymbolicPath
from ...shared.source_location import SourceLocation
from ...utils.config import MODULES_KEYWORD

logger = logging.getLogger(__name__)

# Lark's internal Meta object
LarkMeta: TypeAlias = Any
FieldValue: TypeAlias = Union[SymbolicPath, str]

STRING_FIELDS = ("file_path", "prefix")
PATH_FIELDS = ("module", "wrapper")


@dataclass
class RawField:
    """A `name: value` pair before validation"""
    name: str
    value: FieldValue
    location: Optional[SourceLocation]


@dataclass
class StringValue:
    """String literal value, kept apart from paths until the field is validated"""
    value: str
    location: Optional[SourceLocation]


@v_args(meta=True)
class ModuleSpecTransformer(Transformer):
    """
    Tree → List[ModuleSpec]

    `source_file` and `source_code` are attached to every raised
    SpecSyntaxError so the diagnostic can show the offending invocation.
    """

    def __init__(self, source_file: str = "<modular_program>", source_code: Optional[str] = None) -> None:
        super().__init__()
        self.source_file = source_file
        self.source_code = source_code

    def _location(self, meta: LarkMeta) -> Optional[SourceLocation]:
        if meta is None or getattr(meta, "empty", True):
            return None
        return SourceLocation(
            file=self.source_file,
            line=meta.line,
            column=meta.column,
            end_line=meta.end_line,
            end_column=meta.end_column,
        )

    def _token_location(self, token: Token) -> SourceLocation:
        return SourceLocation(
            file=self.source_file,
            line=token.line,
            column=token.column,
            end_line=token.end_line or token.line,
            end_column=token.end_column or 0,
        )

    def _error(self, message: str, kind: ErrorKind, location: Optional[SourceLocation], **extra) -> SpecSyntaxError:
        return SpecSyntaxError(message, kind=kind, location=location, source_code=self.source_code, **extra)

    # ---- rules ------------------------------------------------------------

    def start(self, meta: LarkMeta, children: List[Any]) -> List[ModuleSpec]:
        keyword, *entries = children
        if str(keyword) != MODULES_KEYWORD:
            raise self._error(
                f"expected `{MODULES_KEYWORD}`, found `{keyword}`",
                ErrorKind.EXPECTED_MODULES_KEYWORD,
                self._token_location(keyword),
                help=f"write the list as `{MODULES_KEYWORD} = [...]`",
            )
        logger.debug(f"Parsed {len(entries)} module specs")
        return list(entries)

    def path(self, meta: LarkMeta, children: List[Token]) -> SymbolicPath:
        return SymbolicPath(tuple(str(t) for t in children))

    def string_value(self, meta: LarkMeta, children: List[Token]) -> StringValue:
        (token,) = children
        return StringValue(ast.literal_eval(str(token)), self._token_location(token))

    def field(self, meta: LarkMeta, children: List[Any]) -> RawField:
        name_token, value = children
        name = str(name_token)
        location = self._token_location(name_token)

        if name in STRING_FIELDS:
            if not isinstance(value, StringValue):
                raise self._error(
                    f"field `{name}` expects a string literal",
                    ErrorKind.INVALID_FIELD_VALUE,
                    self._location(meta),
                )
            return RawField(name, value.value, location)

        if name in PATH_FIELDS:
            if not isinstance(value, SymbolicPath):
                raise self._error(
                    f"field `{name}` expects a module path, not a string literal",
                    ErrorKind.INVALID_FIELD_VALUE,
                    value.location if isinstance(value, StringValue) else self._location(meta),
                )
            return RawField(name, value, location)

        raise self._error(
            f"invalid module spec field `{name}`",
            ErrorKind.UNKNOWN_FIELD,
            location,
            help=f"expected one of: {', '.join(PATH_FIELDS[:1] + STRING_FIELDS + PATH_FIELDS[1:])}",
        )

    def bare_entry(self, meta: LarkMeta, children: List[SymbolicPath]) -> ModuleSpec:
        (module,) = children
        return ModuleSpec(module=module, location=self._location(meta))

    def object_entry(self, meta: LarkMeta, children: List[RawField]) -> ModuleSpec:
        fields: Dict[str, RawField] = {}
        for raw in children:
            fields.setdefault(raw.name, raw)

        if len(fields) != len(children):
            seen = set()
            for raw in children:
                if raw.name in seen:
                    raise self._error(
                        f"duplicate field `{raw.name}` in module entry",
                        ErrorKind.DUPLICATE_FIELD,
                        raw.location,
                        label="declared again here",
                        help="each field may appear at most once",
                    )
                seen.add(raw.name)

        if "module" not in fields:
            raise self._error(
                "module entry is missing the required field `module`",
                ErrorKind.MISSING_REQUIRED_FIELD,
                self._location(meta),
                help="add `module: path::to::instructions`",
            )

        def value(name: str) -> Optional[FieldValue]:
            raw = fields.get(name)
            return raw.value if raw is not None else None

        return ModuleSpec(
            module=value("module"),
            prefix=value("prefix"),
            file_path=value("file_path"),
            wrapper=value("wrapper"),
            location=self._location(meta),
        )

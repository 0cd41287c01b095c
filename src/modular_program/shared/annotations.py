"""
Helpers for inspecting annotation and decorator expressions.

String annotations ("Context[Foo]") are looked through: they are parsed,
inspected or rewritten, and re-wrapped as strings.
"""

import ast
from typing import Callable, Optional

from ..utils.config import MUT_MARKER_NAME


def dotted_name(expr: Optional[ast.expr]) -> Optional[str]:
    """`a.b.c` for Name/Attribute chains, the callee for calls, else None"""
    if isinstance(expr, ast.Call):
        return dotted_name(expr.func)
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        base = dotted_name(expr.value)
        return f"{base}.{expr.attr}" if base is not None else None
    return None


def names_end_with(expr: Optional[ast.expr], name: str) -> bool:
    """True when expr refers to `name` directly or as the last attribute (`rt.name`)"""
    dotted = dotted_name(expr)
    return dotted is not None and dotted.split(".")[-1] == name


def _parse_string_annotation(expr: ast.expr) -> Optional[ast.expr]:
    if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
        try:
            return ast.parse(expr.value, mode="eval").body
        except SyntaxError:
            return None
    return None


def map_annotation(expr: Optional[ast.expr], rewrite: Callable[[ast.expr], ast.expr]) -> Optional[ast.expr]:
    """Apply rewrite to an annotation, looking through string annotations"""
    if expr is None:
        return None
    inner = _parse_string_annotation(expr)
    if inner is not None:
        return ast.Constant(value=ast.unparse(rewrite(inner)))
    return rewrite(expr)


def is_mut(expr: Optional[ast.expr]) -> bool:
    """True for `Mut[T]` annotations"""
    if expr is None:
        return False
    inner = _parse_string_annotation(expr)
    if inner is not None:
        expr = inner
    return isinstance(expr, ast.Subscript) and names_end_with(expr.value, MUT_MARKER_NAME)


def unwrap_mut(expr: ast.expr) -> ast.expr:
    """`Mut[T]` → `T` on a plain (non-string) annotation"""
    while isinstance(expr, ast.Subscript) and names_end_with(expr.value, MUT_MARKER_NAME):
        expr = expr.slice
    return expr


def strip_mut(expr: Optional[ast.expr]) -> Optional[ast.expr]:
    """`Mut[T]` → `T`; anything else is returned unchanged"""
    return map_annotation(expr, unwrap_mut)

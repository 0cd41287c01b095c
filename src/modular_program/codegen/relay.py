"""
Relay Generation

Builds one forwarding declaration per (module spec, entry point). For
`foo::instructions::do_thing` with the derived prefix:

    @instruction(...)                      # decorators copied verbatim
    def foo_do_thing(ctx: Context[Accounts], n: int = __mp_foo_instructions.LIMIT) -> None:
        return __mp_foo_instructions.do_thing(ctx, n)

and with `wrapper: wrappers::log_call`:

    def foo_do_thing(ctx: Context[Accounts], n: int) -> None:
        return __mp_wrappers.log_call(__mp_foo_instructions.do_thing, ctx=ctx, n=n)

Modules are referenced through the private aliases the merger imports them
as. Names in parameter defaults are qualified the same way, since defaults
are evaluated in the primary module.
"""

import ast
import builtins
import copy
import logging
from typing import List, Optional, Tuple

from ..shared.annotations import map_annotation, names_end_with, strip_mut, unwrap_mut
from ..shared.context import ExpansionOptions
from ..shared.errors import ProgramParseError
from ..shared.nodes import (
    EntryPoint, ModuleSpec, Parameter, ParameterKind, ProgramDescriptor, RelayDeclaration,
)
from ..utils.config import (
    CONTEXT_FALLBACK_ACCOUNTS, CONTEXT_TYPE_NAME, DEFAULT_WRAPPER_NAME, PREFIX_SEPARATOR,
)

logger = logging.getLogger(__name__)

POSITIONAL_KINDS = (ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL_OR_KEYWORD)


def relay_name(spec: ModuleSpec, name: str) -> str:
    """`{prefix}_{name}`, or `name` unchanged when the effective prefix is empty"""
    prefix = spec.effective_prefix
    if not prefix:
        return name
    return f"{prefix}{PREFIX_SEPARATOR}{name}"


def _canonical_context(expr: ast.expr) -> ast.expr:
    expr = unwrap_mut(expr)
    if isinstance(expr, ast.Subscript) and names_end_with(expr.value, CONTEXT_TYPE_NAME):
        # Context[a, b, Accounts] → Context[Accounts]
        accounts = expr.slice
        if isinstance(accounts, ast.Tuple) and accounts.elts:
            accounts = accounts.elts[-1]
        return ast.Subscript(value=expr.value, slice=accounts, ctx=ast.Load())
    if names_end_with(expr, CONTEXT_TYPE_NAME):
        return ast.Subscript(
            value=expr,
            slice=ast.Name(id=CONTEXT_FALLBACK_ACCOUNTS, ctx=ast.Load()),
            ctx=ast.Load(),
        )
    logger.debug(f"Context annotation `{ast.unparse(expr)}` left as declared")
    return expr


def normalize_context_annotation(annotation: Optional[ast.expr]) -> Optional[ast.expr]:
    """
    Rewrite a context annotation to the canonical `Context[Accounts]` form.

    The accounts type is the last type argument of the declared annotation;
    an unparameterized `Context` gets `Context[object]`. A missing annotation
    stays missing: the primary module need not import `Context` at all.
    """
    if annotation is None:
        return None
    return map_annotation(annotation, _canonical_context)


class _DefaultQualifier(ast.NodeTransformer):
    """Rewrites free names of a default value to attributes of the defining module's alias"""

    def __init__(self, module_alias: str):
        self.module_alias = module_alias

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if not isinstance(node.ctx, ast.Load) or hasattr(builtins, node.id):
            return node
        return ast.Attribute(value=ast.Name(id=self.module_alias, ctx=ast.Load()), attr=node.id, ctx=ast.Load())


SCOPED_DEFAULT_NODES = (ast.Lambda, ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp, ast.NamedExpr)


def qualify_default(default: ast.expr, spec: ModuleSpec, entry_point: EntryPoint) -> ast.expr:
    """
    Copy of a parameter default that evaluates in the primary module to the
    same value it has in the secondary unit (`LIMIT` → `__mp_bar.LIMIT`).

    Raises:
        ProgramParseError: the default binds names of its own (lambda,
            comprehension, assignment expression)
    """
    if any(isinstance(node, SCOPED_DEFAULT_NODES) for node in ast.walk(default)):
        raise ProgramParseError(
            f"default value `{ast.unparse(default)}` of instruction `{entry_point.name}` cannot be relayed",
            location=entry_point.location,
            help="move the value to a module-level constant and use its name as the default",
        )
    return _DefaultQualifier(spec.module.alias).visit(copy.deepcopy(default))


def normalize_parameters(parameters: List[Parameter], normalize_context: bool) -> List[Parameter]:
    """
    Copy parameters for a relay signature.

    With normalization the context parameter gets the canonical context type
    and every `Mut[...]` marker is stripped, so the relay's own bindings are
    immutable. Without it parameters are copied verbatim.
    """
    result = []
    for index, param in enumerate(parameters):
        param = copy.deepcopy(param)
        if normalize_context:
            if index == 0:
                param.annotation = normalize_context_annotation(param.annotation)
            else:
                param.annotation = strip_mut(param.annotation)
            param.mutable = False
        result.append(param)
    return result


def build_arguments(parameters: List[Parameter]) -> ast.arguments:
    """Rebuild `ast.arguments` from declaration-ordered parameters"""
    def arg(param: Parameter) -> ast.arg:
        return ast.arg(arg=param.name, annotation=param.annotation)

    posonly = [p for p in parameters if p.kind is ParameterKind.POSITIONAL_ONLY]
    regular = [p for p in parameters if p.kind is ParameterKind.POSITIONAL_OR_KEYWORD]
    kwonly = [p for p in parameters if p.kind is ParameterKind.KEYWORD_ONLY]
    vararg = next((p for p in parameters if p.kind is ParameterKind.VAR_POSITIONAL), None)
    kwarg = next((p for p in parameters if p.kind is ParameterKind.VAR_KEYWORD), None)

    positional = posonly + regular
    defaults = [p.default for p in positional if p.default is not None]

    return ast.arguments(
        posonlyargs=[arg(p) for p in posonly],
        args=[arg(p) for p in regular],
        vararg=arg(vararg) if vararg is not None else None,
        kwonlyargs=[arg(p) for p in kwonly],
        kw_defaults=[p.default for p in kwonly],
        kwarg=arg(kwarg) if kwarg is not None else None,
        defaults=defaults,
    )


def _load(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def direct_call_arguments(parameters: List[Parameter]) -> Tuple[List[ast.expr], List[ast.keyword]]:
    """Parameter identifiers in declaration order (keyword-only ones as `k=k`)"""
    args: List[ast.expr] = []
    keywords: List[ast.keyword] = []
    for param in parameters:
        if param.kind in POSITIONAL_KINDS:
            args.append(_load(param.name))
        elif param.kind is ParameterKind.VAR_POSITIONAL:
            args.append(ast.Starred(value=_load(param.name), ctx=ast.Load()))
        elif param.kind is ParameterKind.KEYWORD_ONLY:
            keywords.append(ast.keyword(arg=param.name, value=_load(param.name)))
        else:
            keywords.append(ast.keyword(arg=None, value=_load(param.name)))
    return args, keywords


def wrapper_call_arguments(parameters: List[Parameter]) -> Tuple[List[ast.expr], List[ast.keyword]]:
    """
    The full declared parameter list, bound by name: `ctx=ctx, n=n`.

    Positional-only parameters stay positional, and so does everything
    before a `*args` (binding them by name would clash with the unpacking).
    """
    has_varargs = any(p.kind is ParameterKind.VAR_POSITIONAL for p in parameters)
    args: List[ast.expr] = []
    keywords: List[ast.keyword] = []
    for param in parameters:
        if param.kind is ParameterKind.POSITIONAL_ONLY:
            args.append(_load(param.name))
        elif param.kind is ParameterKind.POSITIONAL_OR_KEYWORD:
            if has_varargs:
                args.append(_load(param.name))
            else:
                keywords.append(ast.keyword(arg=param.name, value=_load(param.name)))
        elif param.kind is ParameterKind.VAR_POSITIONAL:
            args.append(ast.Starred(value=_load(param.name), ctx=ast.Load()))
        elif param.kind is ParameterKind.KEYWORD_ONLY:
            keywords.append(ast.keyword(arg=param.name, value=_load(param.name)))
        else:
            keywords.append(ast.keyword(arg=None, value=_load(param.name)))
    return args, keywords


class RelayGenerator:
    """
    Generates relay declarations under the configured ExpansionOptions.

    - spec.wrapper set: body calls the wrapper with the target and the full
      parameter list
    - no wrapper, always_wrap: same, through the injected default wrapper
    - otherwise: body calls the target directly with the parameter names
    """

    def __init__(self, options: Optional[ExpansionOptions] = None):
        self.options = options if options is not None else ExpansionOptions()

    def build_all(self, spec: ModuleSpec, program: ProgramDescriptor) -> List[RelayDeclaration]:
        """Relays for every instruction of one unit, in declaration order"""
        return [self.build(spec, entry_point) for entry_point in program.instructions]

    def build(self, spec: ModuleSpec, entry_point: EntryPoint) -> RelayDeclaration:
        name = relay_name(spec, entry_point.name)
        target = spec.module.child(entry_point.name)
        parameters = normalize_parameters(entry_point.parameters, self.options.normalize_context)
        for param in parameters:
            if param.default is not None:
                param.default = qualify_default(param.default, spec, entry_point)

        # The call forwards the original parameter list, never the normalized one
        uses_default_wrapper = False
        if spec.wrapper is not None:
            wrapper = spec.wrapper.to_aliased_expr()
        elif self.options.always_wrap:
            wrapper = _load(DEFAULT_WRAPPER_NAME)
            uses_default_wrapper = True
        else:
            wrapper = None

        if wrapper is None:
            args, keywords = direct_call_arguments(entry_point.parameters)
            call = ast.Call(func=target.to_aliased_expr(), args=args, keywords=keywords)
        else:
            args, keywords = wrapper_call_arguments(entry_point.parameters)
            call = ast.Call(func=wrapper, args=[target.to_aliased_expr()] + args, keywords=keywords)

        fields = dict(
            name=name,
            args=build_arguments(parameters),
            body=[ast.Return(value=call)],
            decorator_list=[copy.deepcopy(d) for d in entry_point.decorators],
            returns=copy.deepcopy(entry_point.returns),
            type_comment=None,
        )
        if "type_params" in ast.FunctionDef._fields:
            fields["type_params"] = [copy.deepcopy(t) for t in entry_point.type_params]
        node = ast.FunctionDef(**fields)

        relay = RelayDeclaration(
            name=name,
            spec=spec,
            entry_point=entry_point,
            target=target,
            node=node,
            uses_default_wrapper=uses_default_wrapper,
        )
        logger.debug(f"Built {relay}")
        return relay

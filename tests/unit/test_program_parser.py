"""
Tests for ProgramParser: instruction discovery, parameters and fallback handlers.
"""

import ast
import textwrap

import pytest

from modular_program.analysis.program_parser import ProgramParser, extract_parameters, is_fallback
from modular_program.shared.errors import ProgramParseError
from modular_program.shared.nodes import ModuleEnvelope, ParameterKind


def envelope(source: str, name: str = "lib") -> ModuleEnvelope:
    return ModuleEnvelope(name=name, body=ast.parse(textwrap.dedent(source)).body, source_file=f"{name}.py")


def signature(source: str):
    return extract_parameters(ast.parse(textwrap.dedent(source)).body[0].args)


class TestInstructions:

    def test_public_functions_only(self):
        program = ProgramParser().parse(envelope("""
            X = 1

            class Accounts:
                def method(self, ctx):
                    pass

            def deposit(ctx, amount: int):
                pass

            def _private(ctx):
                pass

            def withdraw(ctx, amount: int):
                pass
        """))
        assert program.names() == ["deposit", "withdraw"]

    def test_entry_point_details(self):
        program = ProgramParser().parse(envelope("""
            @instruction(discriminator=[1, 2])
            def deposit(ctx: Context[A], amount: int) -> None:
                pass
        """))
        (ix,) = program.instructions
        assert ix.name == "deposit"
        assert ast.unparse(ix.context_parameter.annotation) == "Context[A]"
        assert ast.unparse(ix.returns) == "None"
        assert [ast.unparse(d) for d in ix.decorators] == ["instruction(discriminator=[1, 2])"]
        assert ix.location.file == "lib.py"
        assert ix.location.line == 3
        assert str(ix) == "def deposit(ctx: Context[A], amount: int)"

    def test_no_body(self):
        with pytest.raises(ProgramParseError):
            ProgramParser().parse(ModuleEnvelope(name="lib", body=None))

    def test_async_instruction_rejected(self):
        with pytest.raises(ProgramParseError) as info:
            ProgramParser().parse(envelope("async def deposit(ctx):\n    pass\n"))
        assert "async" in info.value.message

    def test_private_async_helper_allowed(self):
        program = ProgramParser().parse(envelope("async def _poll(ctx):\n    pass\n"))
        assert program.instructions == []

    @pytest.mark.parametrize("source", [
        "def deposit():\n    pass\n",
        "def deposit(*args):\n    pass\n",
        "def deposit(*, ctx):\n    pass\n",
    ])
    def test_context_parameter_required(self, source):
        with pytest.raises(ProgramParseError) as info:
            ProgramParser().parse(envelope(source))
        assert info.value.help_text is not None

    def test_generated_nodes_have_no_location(self):
        node = ast.parse("def relay(ctx):\n    pass\n").body[0]
        for attr in ("lineno", "col_offset", "end_lineno", "end_col_offset"):
            if hasattr(node, attr):
                delattr(node, attr)
        (ix,) = ProgramParser().parse(ModuleEnvelope(name="lib", body=[node])).instructions
        assert ix.location is None


class TestFallback:

    def test_named_fallback(self):
        program = ProgramParser().parse(envelope("def fallback(program_id, accounts, data):\n    pass\n"))
        assert program.has_fallback
        assert program.fallback_names == ["fallback"]
        assert program.instructions == []

    def test_decorated_fallback(self):
        program = ProgramParser().parse(envelope("""
            @runtime.fallback
            def catch_all(program_id, accounts, data):
                pass
        """))
        assert program.fallback_names == ["catch_all"]

    def test_is_fallback_ignores_other_statements(self):
        assert not is_fallback(ast.parse("fallback = 1").body[0])


class TestParameters:

    def test_kinds_in_declaration_order(self):
        params = signature("def f(a, /, b, *rest, c, **extra): pass")
        assert [(p.name, p.kind) for p in params] == [
            ("a", ParameterKind.POSITIONAL_ONLY),
            ("b", ParameterKind.POSITIONAL_OR_KEYWORD),
            ("rest", ParameterKind.VAR_POSITIONAL),
            ("c", ParameterKind.KEYWORD_ONLY),
            ("extra", ParameterKind.VAR_KEYWORD),
        ]

    def test_defaults_align_with_tail(self):
        params = signature("def f(ctx, a, b=2, *, c=3, d): pass")
        assert [None if p.default is None else ast.unparse(p.default) for p in params] == [
            None, None, "2", "3", None,
        ]

    def test_mut_marks_mutable(self):
        params = signature("def f(ctx: Mut[Context[A]], n: int, m: 'Mut[int]'): pass")
        assert [p.mutable for p in params] == [True, False, True]

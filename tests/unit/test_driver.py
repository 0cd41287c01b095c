"""
Tests for ModularProgramDriver: stage orchestration and failure handling.
"""

import ast
import textwrap

import pytest

from modular_program.runtime import Program, entry
from modular_program.shared.errors import (
    ErrorKind, ModularProgramError, ModuleResolutionError, SpecSyntaxError, StructuralError, ValidationError,
)
from modular_program.shared.nodes import ModuleEnvelope

PRIMARY = '''\
from modular_program.runtime import Context, modular_program

def initialize(ctx: Context[object]) -> None:
    pass

modular_program("modules = [foo::instructions]")
'''

FOO = """
def instr(ctx, n: int):
    pass

def other(ctx):
    pass
"""


def function_names(source: str):
    return [s.name for s in ast.parse(source).body if isinstance(s, ast.FunctionDef)]


class TestExpandSource:

    def test_relays_appended_and_invocation_removed(self, project, make_driver):
        root = project({"src/foo/instructions.py": FOO})
        out = make_driver(root).expand_source(PRIMARY, "lib.py")
        assert function_names(out) == ["initialize", "foo_instr", "foo_other"]
        assert "modular_program(" not in out
        assert "import foo.instructions as __mp_foo_instructions" in out

    def test_modules_argument_overrides_invocation(self, project, make_driver):
        root = project({"src/foo/instructions.py": FOO, "src/bar.py": "def go(ctx):\n    pass\n"})
        out = make_driver(root).expand_source(PRIMARY, "lib.py", modules="modules = [bar]")
        assert function_names(out) == ["initialize", "bar_go"]

    def test_modules_argument_without_invocation(self, project, make_driver):
        root = project({"src/bar.py": "def go(ctx):\n    pass\n"})
        out = make_driver(root).expand_source("x = 1\n", "lib.py", modules='modules = [{ module: bar, prefix: "" }]')
        assert function_names(out) == ["go"]

    def test_no_invocation(self, tmp_path, make_driver):
        with pytest.raises(StructuralError) as info:
            make_driver(tmp_path).expand_source("x = 1\n", "lib.py")
        assert info.value.kind is ErrorKind.PROGRAM_NOT_FOUND

    def test_multiple_invocations(self, tmp_path, make_driver):
        source = 'modular_program("modules = []")\nmodular_program("modules = []")\n'
        with pytest.raises(StructuralError) as info:
            make_driver(tmp_path).expand_source(source, "lib.py")
        assert info.value.kind is ErrorKind.MULTIPLE_INVOCATIONS
        assert info.value.location.line == 2

    def test_empty_module_list(self, tmp_path, make_driver):
        out = make_driver(tmp_path).expand_source('y = 2\nmodular_program("modules = []")\n', "lib.py")
        assert out == "y = 2\n"

    def test_always_wrap(self, project, make_driver):
        root = project({"src/foo/instructions.py": FOO})
        out = make_driver(root, always_wrap=True).expand_source(PRIMARY, "lib.py")
        assert function_names(out) == ["initialize", "__modular_program_relay__", "foo_instr", "foo_other"]
        assert "return __modular_program_relay__(__mp_foo_instructions.instr, ctx=ctx, n=n)" in out

    def test_duplicate_relay_name_reported_by_validator(self, project, make_driver):
        root = project({"src/a.py": "def instr(ctx):\n    pass\n", "src/b.py": "def instr(ctx):\n    pass\n"})
        source = 'modular_program(\'modules = [{ module: a, prefix: "x" }, { module: b, prefix: "x" }]\')\n'
        with pytest.raises(ValidationError) as info:
            make_driver(root).expand_source(source, "lib.py")
        assert info.value.kind is ErrorKind.DUPLICATE_IDENTIFIER

    def test_relay_clashing_with_primary_instruction(self, project, make_driver):
        root = project({"src/foo.py": "def initialize(ctx):\n    pass\n"})
        source = 'def initialize(ctx):\n    pass\n\nmodular_program(\'modules = [{ module: foo, prefix: "" }]\')\n'
        with pytest.raises(ValidationError) as info:
            make_driver(root).expand_source(source, "lib.py")
        # The second definition is the generated relay, reported at the primary's one
        assert info.value.location.line == 1
        assert info.value.source_code == source


class TestEmittedModuleImports:
    """The emitted source is imported and its instruction table inspected"""

    def _load(self, root, load_module, make_driver, source):
        out = make_driver(root).expand_source(textwrap.dedent(source), "lib.py")
        return load_module(out, root, root / "src")

    def test_primary_instruction_named_like_a_module(self, project, make_driver, load_module):
        root = project({"src/foo/instructions.py": "def go(ctx, n: int) -> int:\n    return n\n"})
        module = self._load(root, load_module, make_driver, """
            from modular_program.runtime import Context, modular_program

            def foo(ctx: Context[object]) -> str:
                return "primary"

            modular_program("modules = [foo::instructions]")
        """)
        program = Program.from_module(module)
        assert [h.name for h in program.handlers] == ["foo", "foo_go"]
        assert entry(program, b"id", [], program.instruction_data("foo")) == "primary"
        assert entry(program, b"id", [], program.instruction_data("foo_go", 4)) == 4

    def test_relay_named_like_its_module(self, project, make_driver, load_module):
        root = project({"src/foo.py": "def foo(ctx, n: int) -> int:\n    return n + 1\n"})
        module = self._load(root, load_module, make_driver, """
            from modular_program.runtime import modular_program

            modular_program('modules = [{ module: foo, prefix: "" }]')
        """)
        assert module.foo(None, 1) == 2

    def test_unannotated_context_needs_no_import(self, project, make_driver, load_module):
        root = project({"src/foo.py": "def go(ctx, n: int) -> int:\n    return n\n"})
        module = self._load(root, load_module, make_driver, """
            from modular_program.runtime import modular_program

            modular_program("modules = [foo]")
        """)
        assert "ctx" not in module.foo_go.__annotations__
        assert module.foo_go(None, 7) == 7

    def test_default_from_secondary_unit(self, project, make_driver, load_module):
        root = project({"src/bar.py": "LIMIT = 3\n\ndef go(ctx, n: int = LIMIT) -> int:\n    return n\n"})
        module = self._load(root, load_module, make_driver, """
            from modular_program.runtime import modular_program

            modular_program("modules = [bar]")
        """)
        assert module.bar_go(None) == 3


class TestFailFast:

    def test_fallback_aborts_before_merge(self, project, make_driver, monkeypatch):
        root = project({
            "src/a.py": "def instr(ctx):\n    pass\n",
            "src/b.py": "def instr(ctx):\n    pass\n\ndef fallback(program_id, accounts, data):\n    pass\n",
        })
        driver = make_driver(root)
        built = []
        original_build_all = driver.relay_generator.build_all
        monkeypatch.setattr(driver.relay_generator, "build_all",
                            lambda spec, program: built.append(spec) or original_build_all(spec, program))
        merged = []
        monkeypatch.setattr(driver.merger, "merge", lambda *args: merged.append(args))

        with pytest.raises(StructuralError) as info:
            driver.expand_source('modular_program("modules = [a, b]")\n', "lib.py")
        assert info.value.kind is ErrorKind.FALLBACK_IN_SECONDARY_UNIT
        assert merged == []
        assert [str(s.module) for s in built] == ["a"]

    def test_fallback_in_only_unit_generates_nothing(self, project, make_driver):
        root = project({"src/b.py": "def fallback(program_id, accounts, data):\n    pass\n"})
        driver = make_driver(root)
        with pytest.raises(StructuralError):
            driver.resolve_relays(driver.spec_parser.parse("modules = [b]"))

    def test_missing_unit(self, tmp_path, make_driver):
        with pytest.raises(ModuleResolutionError) as info:
            make_driver(tmp_path).expand_source('modular_program("modules = [nope::instructions]")\n', "lib.py")
        assert info.value.kind is ErrorKind.FILE_NOT_FOUND
        # Located at the entry inside the invocation, with its text attached
        assert info.value.location.file == "<modular_program>"
        assert info.value.source_code == "modules = [nope::instructions]"

    def test_spec_error_attaches_invocation(self, tmp_path, make_driver):
        with pytest.raises(SpecSyntaxError) as info:
            make_driver(tmp_path).expand_source('modular_program("modules = [{ module: a, x: b }]")\n', "lib.py")
        assert info.value.kind is ErrorKind.UNKNOWN_FIELD
        assert "modules = [{ module: a, x: b }]" in str(info.value)

    def test_expand_module_without_body(self, tmp_path, make_driver):
        with pytest.raises(StructuralError) as info:
            make_driver(tmp_path).expand_module(ModuleEnvelope(name="lib", body=None), "modules = []")
        assert info.value.kind is ErrorKind.MISSING_MODULE_BODY


class TestExpansionResult:

    def test_success(self, project, make_driver):
        root = project({"src/foo/instructions.py": FOO})
        result = make_driver(root).expand(PRIMARY, "lib.py")
        assert result.success
        assert not result.has_errors()
        assert result.get_errors() == []
        assert [s.name for s in result.merged.body if isinstance(s, ast.FunctionDef)][-2:] == ["foo_instr", "foo_other"]

    def test_failure_is_collected(self, tmp_path, make_driver):
        result = make_driver(tmp_path).expand('modular_program("modules = [missing]")\n', "lib.py")
        assert not result.success
        assert result.output is None
        assert result.has_errors()
        (text,) = result.get_errors()
        assert "error[E0200]" in text
        assert "aborting due to 1 previous error" in text

    def test_expand_file(self, project, make_driver):
        root = project({"src/foo/instructions.py": FOO, "lib.py": PRIMARY})
        result = make_driver(root).expand_file(root / "lib.py")
        assert result.success
        assert "def foo_instr(ctx, n: int):" in result.output

    def test_expand_file_missing(self, tmp_path, make_driver):
        result = make_driver(tmp_path).expand_file(tmp_path / "nope.py")
        assert not result.success
        assert "error[E0200]" in result.get_errors()[0]

    def test_source_errors_are_reported_with_snippet(self, tmp_path, make_driver):
        result = make_driver(tmp_path).expand("def broken(:\n", "lib.py")
        assert "1 | def broken(:" in result.get_errors()[0]

    def test_only_expansion_errors_are_collected(self, tmp_path, make_driver, monkeypatch):
        driver = make_driver(tmp_path)

        def boom(*args):
            raise RuntimeError("bug")

        monkeypatch.setattr(driver.source_parser, "parse", boom)
        with pytest.raises(RuntimeError):
            driver.expand("x = 1\n", "lib.py")

    def test_error_type_hierarchy(self):
        assert issubclass(ValidationError, ModularProgramError)

"""
Pytest configuration and shared fixtures for the modular_program tests.

The invocation parser is built once per session (Lark caches the LALR
tables); everything else is cheap and created per test.
"""

import importlib.util
import sys
import textwrap
import pytest
from pathlib import Path
from typing import Callable, Dict

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from modular_program.compiler.driver import ModularProgramDriver
from modular_program.frontend.parser import SpecParser
from modular_program.shared.context import BuildContext, ExpansionOptions

EXAMPLE_PROGRAM_ROOT = Path(__file__).parent / "examples" / "test_program"


# =============================================================================
# Session-scoped fixtures (shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def session_spec_parser():
    """Stateless invocation parser shared across all tests."""
    return SpecParser()


@pytest.fixture
def spec_parser(session_spec_parser):
    return session_spec_parser


# =============================================================================
# Project fixtures
# =============================================================================

@pytest.fixture
def example_root() -> Path:
    """Root of the example program under tests/examples/test_program."""
    return EXAMPLE_PROGRAM_ROOT


@pytest.fixture
def project(tmp_path):
    """
    Factory writing files under a temporary project root.

    Usage:
        def test_something(project):
            root = project({"src/foo.py": "def go(ctx): ..."})
    """
    def _write(files: Dict[str, str]) -> Path:
        for relative, text in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text), encoding="utf-8")
        return tmp_path
    return _write


@pytest.fixture
def make_driver(session_spec_parser) -> Callable[..., ModularProgramDriver]:
    """Factory for drivers rooted at a given project root."""
    def _make(root: Path, **options) -> ModularProgramDriver:
        return ModularProgramDriver(
            build_context=BuildContext.for_root(root),
            options=ExpansionOptions(**options),
            spec_parser=session_spec_parser,
        )
    return _make


@pytest.fixture
def import_isolation():
    """
    Restores sys.path and sys.modules after a test that imports generated
    modules, so example packages (`foo`, `bar`, ...) don't leak between tests.
    """
    saved_path = list(sys.path)
    saved_modules = set(sys.modules)
    yield
    sys.path[:] = saved_path
    for name in set(sys.modules) - saved_modules:
        del sys.modules[name]


@pytest.fixture
def load_module(import_isolation):
    """
    Import Python source as a fresh module.

    `search_path` is put on sys.path first so the module's own imports
    resolve; both are undone after the test.
    """
    counter = iter(range(1_000_000))

    def _load(source: str, directory: Path, search_path: Path, name: str = "expanded_program"):
        sys.path.insert(0, str(search_path))
        module_name = f"{name}_{next(counter)}"
        file_path = directory / f"{module_name}.py"
        file_path.write_text(source, encoding="utf-8")
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    return _load


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "integration: marks tests as end-to-end expansion tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )

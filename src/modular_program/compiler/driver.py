"""
Expansion Driver

Orchestrates one expansion of a primary program module:

1. parse the invocation text into module specs
2. for every spec: resolve its file, load the secondary unit and build
   its relays (the first failure aborts before anything is merged)
3. merge the relays into the primary module
4. hand the merged module to the validator/emitter

`expand_module` and `expand_source` raise ModularProgramError; `expand`
and `expand_file` collect the error into an ExpansionResult instead.
"""

import ast
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .emitter import Emitter, SourceEmitter
from ..analysis.module_system import PathResolver, SecondaryUnitLoader
from ..analysis.program_parser import ProgramParser
from ..codegen.merger import ModuleMerger
from ..codegen.relay import RelayGenerator
from ..frontend.invocation import find_invocations, invocation_text
from ..frontend.parser import INVOCATION_SOURCE, SpecParser
from ..frontend.source_parser import SourceParser
from ..shared.context import BuildContext, ExpansionOptions
from ..shared.errors import ErrorKind, ErrorReporter, ModularProgramError, StructuralError
from ..shared.nodes import ModuleEnvelope, ModuleSpec, RelayDeclaration
from ..shared.source_location import SourceLocation
from ..utils.config import INVOCATION_NAME
from ..utils.io_utils import read_source_file

logger = logging.getLogger(__name__)


class ExpansionResult:
    """Expansion result"""
    def __init__(
        self,
        output: Optional[str] = None,
        merged: Optional[ModuleEnvelope] = None,
        reporter: Optional[ErrorReporter] = None,
        success: bool = False,
    ):
        self.output = output
        self.merged = merged
        self.reporter = reporter
        self.success = success

    def has_errors(self) -> bool:
        if self.reporter is not None:
            return self.reporter.has_errors()
        return not self.success

    def get_errors(self) -> list:
        if self.reporter is not None and self.reporter.has_errors():
            return [self.reporter.format_all_errors(color=False)]
        return []


class ModularProgramDriver:
    """
    Expansion driver.

    Every stage is injectable; the defaults are the lark invocation parser,
    the `ast` source parser, the program parser and the source emitter.
    """

    def __init__(
        self,
        build_context: Optional[BuildContext] = None,
        options: Optional[ExpansionOptions] = None,
        spec_parser: Optional[SpecParser] = None,
        source_parser: Optional[SourceParser] = None,
        program_parser: Optional[ProgramParser] = None,
        emitter: Optional[Emitter] = None,
    ):
        self.build_context = build_context if build_context is not None else BuildContext.from_env()
        self.options = options if options is not None else ExpansionOptions()
        self.spec_parser = spec_parser if spec_parser is not None else SpecParser()
        self.source_parser = source_parser if source_parser is not None else SourceParser()
        self.program_parser = program_parser if program_parser is not None else ProgramParser()
        self.emitter = emitter if emitter is not None else SourceEmitter(self.program_parser)

        self.resolver = PathResolver(self.build_context)
        self.loader = SecondaryUnitLoader(self.source_parser, self.program_parser)
        self.relay_generator = RelayGenerator(self.options)
        self.merger = ModuleMerger(self.options)

    def resolve_relays(self, specs: List[ModuleSpec]) -> List[RelayDeclaration]:
        """Relays for every spec, in spec order then declaration order"""
        relays: List[RelayDeclaration] = []
        for spec in specs:
            file_path = self.resolver.resolve(spec)
            logger.debug(f"Resolved {spec.module} → {file_path}")
            program = self.loader.load(file_path, spec)
            relays.extend(self.relay_generator.build_all(spec, program))
        return relays

    def expand_module(self, primary: ModuleEnvelope, invocation: str) -> ModuleEnvelope:
        """
        Expand a primary module envelope with the modules named in `invocation`.

        Raises:
            ModularProgramError: any stage failed; nothing is merged
        """
        try:
            specs = self.spec_parser.parse(invocation)
            relays = self.resolve_relays(specs)
            merged = self.merger.merge(primary, relays)
        except ModularProgramError as e:
            # Locations inside the invocation need its text for the snippet
            if e.source_code is None and e.location is not None and e.location.file == INVOCATION_SOURCE:
                e.source_code = invocation
            raise

        logger.info(f"Expanded {primary.name}: {len(specs)} modules, {len(relays)} relays")
        return merged

    def expand_source(self, source: str, source_file: str = "<primary>", modules: Optional[str] = None) -> str:
        """
        Expand primary module source text and return the emitted source.

        The module list comes from `modules` when given, otherwise from the
        single top-level `modular_program(...)` call in the source.

        Raises:
            ModularProgramError: any stage failed
        """
        return self._expand_source(source, source_file, modules)[1]

    def _expand_source(self, source: str, source_file: str, modules: Optional[str]) -> Tuple[ModuleEnvelope, str]:
        tree = self.source_parser.parse(source, source_file)
        invocations = find_invocations(tree.body)

        if len(invocations) > 1:
            second = invocations[1]
            raise StructuralError(
                f"`{INVOCATION_NAME}` is called {len(invocations)} times in {source_file}",
                kind=ErrorKind.MULTIPLE_INVOCATIONS,
                location=self._location(second, source_file),
                source_code=source,
                help="list every module in a single invocation",
            )

        if modules is None:
            if not invocations:
                raise StructuralError(
                    f"no `{INVOCATION_NAME}(...)` call found in {source_file}",
                    kind=ErrorKind.PROGRAM_NOT_FOUND,
                    help=f'add `{INVOCATION_NAME}("modules = [...]")` or pass the module list explicitly',
                )
            modules = invocation_text(invocations[0], source_file, source)

        primary = ModuleEnvelope(name=Path(source_file).stem, body=list(tree.body), source_file=source_file)
        merged = self.expand_module(primary, modules)

        try:
            return merged, self.emitter.validate_and_emit(merged)
        except ModularProgramError as e:
            if e.source_code is None and e.location is not None and e.location.file == source_file:
                e.source_code = source
            raise

    def expand(self, source: str, source_file: str = "<primary>", modules: Optional[str] = None) -> ExpansionResult:
        """Expand source text, collecting a failure into the result instead of raising"""
        reporter = ErrorReporter({source_file: source})
        try:
            merged, output = self._expand_source(source, source_file, modules)
        except ModularProgramError as e:
            logger.debug(f"Expansion of {source_file} failed: {e.kind.code} {e.message}")
            reporter.report_exception(e)
            return ExpansionResult(reporter=reporter, success=False)
        return ExpansionResult(output=output, merged=merged, reporter=reporter, success=True)

    def expand_file(self, path: Union[str, Path], modules: Optional[str] = None) -> ExpansionResult:
        path = Path(path)
        try:
            source = read_source_file(path)
        except (OSError, UnicodeDecodeError) as e:
            reporter = ErrorReporter()
            reporter.report_error(
                f"could not read {path}: {e}",
                location=None,
                code=(ErrorKind.FILE_NOT_FOUND if isinstance(e, FileNotFoundError) else ErrorKind.UNREADABLE).code,
            )
            return ExpansionResult(reporter=reporter, success=False)
        return self.expand(source, str(path), modules)

    @staticmethod
    def _location(node: ast.AST, source_file: str) -> SourceLocation:
        return SourceLocation(file=source_file, line=node.lineno, column=node.col_offset + 1)

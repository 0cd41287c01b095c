"""
Secondary Unit Loader

Loads one secondary unit:

1. read the resolved file fully (no caching, no retry)
2. parse it into an `ast.Module`
3. wrap its top-level statements in a public synthetic module envelope
4. run the program parser on the envelope
5. reject units that declare a fallback handler: only the primary module
   may have one
"""

import logging
from pathlib import Path
from typing import Optional

from ..program_parser import ProgramParser
from ...frontend.source_parser import SourceParser
from ...shared.errors import ErrorKind, ModularProgramError, ModuleResolutionError, StructuralError
from ...shared.nodes import ModuleEnvelope, ModuleSpec, ProgramDescriptor
from ...utils.config import SYNTHETIC_MODULE_NAME
from ...utils.io_utils import read_source_file

logger = logging.getLogger(__name__)


class SecondaryUnitLoader:
    """
    Loader for secondary units.

    Parsers are injectable; defaults are the `ast` based SourceParser and
    the ProgramParser.
    """

    def __init__(
        self,
        source_parser: Optional[SourceParser] = None,
        program_parser: Optional[ProgramParser] = None,
    ):
        self.source_parser = source_parser if source_parser is not None else SourceParser()
        self.program_parser = program_parser if program_parser is not None else ProgramParser()

    def load(self, file_path: Path, spec: Optional[ModuleSpec] = None) -> ProgramDescriptor:
        """
        Load a secondary unit and return its program descriptor.

        Raises:
            ModuleResolutionError: file missing or unreadable
            SourceParseError: file is not valid Python
            ProgramParseError: file does not describe a valid program
            StructuralError: file declares a fallback handler
        """
        label = str(spec.module) if spec is not None else str(file_path)
        source_code = self._read(file_path, spec, label)

        tree = self.source_parser.parse(source_code, str(file_path))
        envelope = ModuleEnvelope(
            name=SYNTHETIC_MODULE_NAME,
            body=list(tree.body),
            is_public=True,
            source_file=str(file_path),
        )

        try:
            program = self.program_parser.parse(envelope)
        except ModularProgramError as e:
            if e.source_code is None:
                e.source_code = source_code
            raise

        if program.has_fallback:
            raise StructuralError(
                f"secondary unit `{label}` declares a fallback handler "
                f"(`{program.fallback_names[0]}`); additional program modules can't have a fallback",
                kind=ErrorKind.FALLBACK_IN_SECONDARY_UNIT,
                location=spec.location if spec is not None else None,
                note=f"in {file_path}",
                help="move the fallback handler into the primary program module",
            )

        logger.debug(f"Loaded secondary unit {label} from {file_path}: {len(program.instructions)} instructions")
        return program

    @staticmethod
    def _read(file_path: Path, spec: Optional[ModuleSpec], label: str) -> str:
        location = spec.location if spec is not None else None
        if not file_path.is_file():
            raise ModuleResolutionError(
                f"secondary unit `{label}` not found: {file_path}",
                kind=ErrorKind.FILE_NOT_FOUND,
                location=location,
                help="set `file_path` to override the default location",
            )
        try:
            return read_source_file(file_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ModuleResolutionError(
                f"could not read secondary unit `{label}` ({file_path}): {e}",
                kind=ErrorKind.UNREADABLE,
                location=location,
            ) from e

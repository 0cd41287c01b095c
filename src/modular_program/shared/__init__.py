"""
Shared data model, locations, errors and build configuration.
"""

from .source_location import SourceLocation
from .errors import (
    Error, ErrorKind, ErrorReporter,
    ModularProgramError, SpecSyntaxError, ModuleResolutionError, SourceParseError,
    ProgramParseError, StructuralError, ValidationError,
)
from .nodes import (
    SymbolicPath, ModuleSpec, Parameter, ParameterKind, EntryPoint,
    ProgramDescriptor, ModuleEnvelope, RelayDeclaration,
)
from .context import BuildContext, ExpansionOptions

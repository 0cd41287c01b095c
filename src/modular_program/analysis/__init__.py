"""Analysis: program parsing and the module system."""

from .program_parser import ProgramParser, extract_parameters, is_fallback

__all__ = ["ProgramParser", "extract_parameters", "is_fallback"]

"""
Configuration constants for the modular program expander
"""

import os
import tempfile

# Parser configuration constants (cache under temp dir to avoid cluttering project root)
DEFAULT_PARSER_CACHE_FILE = os.path.join(tempfile.gettempdir(), "modular_program_spec_parser.cache")

# Invocation constants
MODULES_KEYWORD = "modules"
INVOCATION_NAME = "modular_program"

# Module resolution constants
MODULE_SEPARATOR = "::"
PYTHON_MODULE_SEPARATOR = "."
SOURCE_ROOT_SEGMENT = "src"
MODULE_FILE_EXTENSION = ".py"
PACKAGE_INIT_FILE = "__init__.py"

# Build context environment variables
PROJECT_ROOT_ENV_VAR = "MODULAR_PROGRAM_ROOT"
COLOR_ENV_VAR = "MODULAR_PROGRAM_COLOR"

# Relay generation constants
PREFIX_SEPARATOR = "_"
DEFAULT_WRAPPER_NAME = "__modular_program_relay__"
MODULE_ALIAS_PREFIX = "__mp_"
CONTEXT_TYPE_NAME = "Context"
MUT_MARKER_NAME = "Mut"
CONTEXT_FALLBACK_ACCOUNTS = "object"

# Framework attribute names
INSTRUCTION_DECORATOR_NAME = "instruction"
FALLBACK_NAME = "fallback"
DISCRIMINATOR_KEYWORD = "discriminator"

# Discriminator constants (sighash of "global:<name>")
DISCRIMINATOR_NAMESPACE = "global"
DISCRIMINATOR_LENGTH = 8

# File encoding constants
DEFAULT_FILE_ENCODING = "utf-8"

# Synthetic envelope name for secondary units
SYNTHETIC_MODULE_NAME = "__secondary__"

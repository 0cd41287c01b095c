"""
Source Parser

Text-to-tree parser for Python source units, built on the standard `ast`
module. Syntax errors become SourceParseError with the failing location.
"""

import ast
import logging

from ..shared.errors import SourceParseError
from ..shared.source_location import SourceLocation

logger = logging.getLogger(__name__)


class SourceParser:
    """Parses a source unit into an `ast.Module`"""

    def parse(self, source: str, source_file: str = "<unknown>") -> ast.Module:
        try:
            tree = ast.parse(source, filename=source_file)
        except SyntaxError as e:
            location = SourceLocation(
                file=source_file,
                line=e.lineno or 1,
                column=e.offset or 1,
            )
            raise SourceParseError(
                f"could not parse source unit: {e.msg}",
                location=location,
                source_code=source,
            ) from e
        logger.debug(f"Parsed {source_file}: {len(tree.body)} top-level statements")
        return tree

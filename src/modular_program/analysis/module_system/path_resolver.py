"""
Module Path Resolution

Maps a ModuleSpec to the file that holds its instructions:

- file_path given → project_root / file_path (absolute paths verbatim)
- foo::instructions → project_root/src/foo/instructions.py
  (or project_root/src/foo/instructions/__init__.py for a package)

This class is stateless apart from its read-only build context and can be
shared/reused.
"""

import logging
from pathlib import Path

from ...shared.context import BuildContext
from ...shared.nodes import ModuleSpec, SymbolicPath
from ...utils.config import MODULE_FILE_EXTENSION, PACKAGE_INIT_FILE, SOURCE_ROOT_SEGMENT

logger = logging.getLogger(__name__)


class PathResolver:
    """
    Path resolution for secondary units.

    The project root comes from an explicit BuildContext instead of global
    process state, so resolution can be tested with any root.
    """

    def __init__(self, build_context: BuildContext):
        self.build_context = build_context

    @property
    def project_root(self) -> Path:
        return self.build_context.project_root

    def resolve(self, spec: ModuleSpec) -> Path:
        """
        Resolve the file location for a spec.

        An explicit file_path always wins; otherwise the conventional path
        is derived from the module's symbolic path.

        Examples:
            {module: foo::instructions} → R/src/foo/instructions.py
            {module: foo, file_path: "src/foo/__init__.py"} → R/src/foo/__init__.py
        """
        if spec.file_path is not None:
            path = self.project_root / spec.file_path
            logger.debug(f"PathResolver: {spec.module} → {path} (file_path override)")
            return path

        path = self.conventional_path(spec.module)
        logger.debug(f"PathResolver: {spec.module} → {path}")
        return path

    def conventional_path(self, module: SymbolicPath) -> Path:
        """
        R/src/<segments>.py, or R/src/<segments>/__init__.py when only the
        package form exists on disk.
        """
        path_obj = self.project_root / SOURCE_ROOT_SEGMENT
        for part in module.segments:
            path_obj = path_obj / part

        single_file = path_obj.with_suffix(MODULE_FILE_EXTENSION)
        if single_file.exists():
            return single_file

        package_init = path_obj / PACKAGE_INIT_FILE
        if package_init.exists():
            return package_init

        # Neither exists: report the primary convention, the loader raises
        return single_file

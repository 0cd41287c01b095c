"""CLI entry point: `modular-program lib.py` or `python -m modular_program lib.py`."""

import logging
import sys
from pathlib import Path


def main(argv=None) -> int:
    import argparse
    from .compiler.driver import ModularProgramDriver
    from .shared.context import BuildContext, ExpansionOptions
    from .utils.io_utils import write_source_file

    parser = argparse.ArgumentParser(
        prog="modular-program",
        description="Expand a primary program module with relays to its secondary modules.",
    )
    parser.add_argument("file", type=Path, help="Path to the primary module (.py)")
    parser.add_argument("--root", type=Path, default=None,
                        help="Project root; a module a::b resolves to ROOT/src/a/b.py, or to "
                             "ROOT/src/a/b/__init__.py when only the package exists "
                             "(default: $MODULAR_PROGRAM_ROOT or the current directory)")
    parser.add_argument("--modules", default=None,
                        help="Module list, e.g. 'modules = [foo::instructions]' (default: read from the file)")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Write the expanded module here (default: stdout)")
    parser.add_argument("--always-wrap", action="store_true",
                        help="Route relays without a wrapper through the default wrapper")
    parser.add_argument("--no-normalize", action="store_true",
                        help="Copy relay parameters verbatim instead of normalizing the context type")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging")
    args = parser.parse_args(argv)

    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    path = args.file.resolve()
    if not path.exists():
        sys.stderr.write(f"modular-program: error: file not found: {path}\n")
        return 1
    if not path.is_file():
        sys.stderr.write(f"modular-program: error: not a file: {path}\n")
        return 1

    build_context = BuildContext.for_root(args.root) if args.root is not None else BuildContext.from_env()
    options = ExpansionOptions(normalize_context=not args.no_normalize, always_wrap=args.always_wrap)
    driver = ModularProgramDriver(build_context=build_context, options=options)
    result = driver.expand_file(path, modules=args.modules)

    if not result.success:
        if result.reporter is not None and result.reporter.has_errors():
            sys.stderr.write(result.reporter.format_all_errors() + "\n")
        else:
            sys.stderr.write("modular-program: expansion failed\n")
        return 1

    if args.output is None:
        sys.stdout.write(result.output)
        return 0

    try:
        write_source_file(args.output, result.output)
    except OSError as e:
        sys.stderr.write(f"modular-program: error: could not write {args.output}: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

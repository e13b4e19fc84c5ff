"""
Command-line entry point: ``brslint [--rootDir DIR] [--lintConfig FILE] [--fix] [--checkUsage]``.

Prints one line per diagnostic (or a JSON array with ``--json``) and a
summary on stderr.

Exit codes:
  • 0  no error-severity diagnostic
  • 1  at least one error-severity diagnostic
  • 2  the run could not complete (bad configuration, missing project root
       or entry point)
"""

import sys
import json
import logging
import argparse
from typing import List, Optional, Sequence

from brslint.config import resolve_config
from brslint.diagnostics import Diagnostic, Severity
from brslint.errors import BrsLintError
from brslint.linter import Linter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_FAILURE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brslint",
        description="Code-flow and usage linter for BrightScript / BrighterScript projects.",
    )
    parser.add_argument(
        "--rootDir",
        dest="root_dir",
        default=".",
        metavar="DIR",
        help="Root of the project (where the manifest lives). Defaults to the current directory.",
    )
    parser.add_argument(
        "--lintConfig",
        dest="lint_config",
        default=None,
        metavar="FILE",
        help="Path to a bslint.json configuration file.",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Apply automatic fixes (variable casing).",
    )
    parser.add_argument(
        "--checkUsage",
        dest="check_usage",
        action="store_true",
        help="Look for unused components and scripts.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print diagnostics as a JSON array.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    return parser


def _configure_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def _print_diagnostics(diagnostics: List[Diagnostic], as_json: bool):
    if as_json:
        print(json.dumps([d.to_dict() for d in diagnostics], indent=2))
        return
    for d in diagnostics:
        print(d.format())


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the linter once; returns the process exit code."""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = resolve_config(args.root_dir, args.lint_config)
        updates = {}
        if args.check_usage:
            updates["check_usage"] = True
        if args.fix:
            updates["fix"] = True
        if updates:
            config = config.model_copy(update=updates)
        result = Linter(config).run(args.root_dir)
    except BrsLintError as e:
        logger.error("%s", e)
        return EXIT_FAILURE
    except FileNotFoundError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    _print_diagnostics(result.diagnostics, args.json)

    s = result.summary()
    print(f"{s['total']} diagnostic(s): {s['errors']} error(s), {s['warnings']} warning(s), "
          f"{s['infos']} info", file=sys.stderr)
    for skipped in result.skipped:
        print(f"skipped {skipped.path}: {skipped.reason}", file=sys.stderr)
    if result.applied:
        print(f"fixed {sum(result.applied.values())} issue(s) in {len(result.applied)} file(s)",
              file=sys.stderr)

    if any(d.severity == Severity.ERROR for d in result.diagnostics):
        return EXIT_ERRORS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""
Linter driver: runs the analyzers over a whole project.

Phases (each one completes before the next starts):

  1. index     discover and parse every script and component once
  2. code flow: per file, every function body (return + variable tracking)
  3. scopes    deferred LINT1001 candidates resolved per scope
  4. usage     usage graph built and walked (``checkUsage`` only)
  5. fix       case-mismatch renames written back (``fix`` only)
"""

import os
import logging
from collections import Counter
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from brslint.batch_fixer import BatchFixer
from brslint.brs_parser import parse_source
from brslint.code_flow import analyze_file, finalize_scope
from brslint.config import LintConfig, LintContext
from brslint.diagnostics import Diagnostic, TextEdit, fixes_for
from brslint.usage_graph import ENTRY_POINTS, UsageGraph
from brslint.var_tracking import DeferredValidation
from brslint.workspace_index import BUILTIN_FUNCTIONS, Scope, SkippedFile, WorkspaceIndex

logger = logging.getLogger(__name__)


@dataclass
class LintResult:
    root_dir: str
    diagnostics: List[Diagnostic] = field(default_factory=list)
    fixes: Dict[str, List[TextEdit]] = field(default_factory=dict)    # pkg path → edits
    applied: Dict[str, int] = field(default_factory=dict)             # pkg path → edits written
    skipped: List[SkippedFile] = field(default_factory=list)
    index: Optional[WorkspaceIndex] = None
    graph: Optional[UsageGraph] = None

    def by_file(self) -> Dict[str, List[Diagnostic]]:
        grouped: Dict[str, List[Diagnostic]] = {}
        for d in self.diagnostics:
            grouped.setdefault(d.file, []).append(d)
        return grouped

    def summary(self) -> Dict:
        severities = Counter(d.severity.value for d in self.diagnostics)
        return {
            "total": len(self.diagnostics),
            "errors": severities.get("error", 0),
            "warnings": severities.get("warn", 0),
            "infos": severities.get("info", 0),
            "by_code": dict(sorted(Counter(d.code for d in self.diagnostics).items())),
            "files_with_diagnostics": len(self.by_file()),
            "fixable": sum(len(edits) for edits in self.fixes.values()),
            "skipped": len(self.skipped),
        }

    def broken_entry_point(self) -> Optional[SkippedFile]:
        """The entry script, if it exists but could not be parsed."""
        return next((s for s in self.skipped if s.path.lower() in ENTRY_POINTS), None)


class Linter:
    """
    Usage:
        result = Linter(config).run("/path/to/channel")
        for d in result.diagnostics:
            print(d.format())
    """

    def __init__(self, config: Optional[LintConfig] = None, context: Optional[LintContext] = None):
        self.context = context or LintContext(config)

    def run(self, root_dir: str, fix: Optional[bool] = None) -> LintResult:
        context = self.context
        result = LintResult(root_dir=root_dir)

        index = WorkspaceIndex(root_dir)
        index.build()
        result.index = index
        result.skipped = list(index.skipped)

        session = DeferredValidation()
        diagnostics: List[Diagnostic] = []
        for key in sorted(index.scripts):
            diagnostics.extend(analyze_file(index.scripts[key], context, session))

        for scope in index.scopes:
            diagnostics.extend(finalize_scope(scope, context, session))

        broken_entry = result.broken_entry_point()
        if context.check_usage and broken_entry is not None:
            logger.warning("Usage check skipped: entry point %s could not be parsed (%s)",
                           broken_entry.path, broken_entry.reason)
        elif context.check_usage:
            graph = UsageGraph(context)
            for pkg_path in sorted(index.components):
                graph.add_component(index.components[pkg_path])
            for scope in index.scopes:
                graph.add_scope(scope)
            diagnostics.extend(graph.check())
            result.graph = graph

        diagnostics = [d for d in diagnostics if not context.ignores(d.file)]
        result.diagnostics = sorted(diagnostics, key=lambda d: d.sort_key())

        for d in result.diagnostics:
            edits = fixes_for(d)
            if edits:
                result.fixes.setdefault(d.file, []).extend(edits)

        if fix is None:
            fix = context.config.fix
        if fix:
            result.applied = self.apply_fixes(result)

        logger.info("Linted %s: %d diagnostic(s), %d file(s) skipped",
                    root_dir, len(result.diagnostics), len(result.skipped))
        return result

    @staticmethod
    def apply_fixes(result: LintResult, dry_run: bool = False) -> Dict[str, int]:
        """Write the pending edits of ``result`` to disk; returns pkg path → count."""
        file_map = {
            os.path.join(result.root_dir, pkg_path): edits
            for pkg_path, edits in result.fixes.items()
        }
        applied = BatchFixer().apply_fixes_by_file(file_map, dry_run=dry_run)
        return {
            os.path.relpath(path, result.root_dir).replace("\\", "/"): count
            for path, count in applied.items()
        }


def lint_source(text: str, pkg_path: str = "source/main.brs",
                context: Optional[LintContext] = None) -> List[Diagnostic]:
    """Lint a single script as if it were alone in the ``source`` scope."""
    context = context or LintContext()
    file = parse_source(text, pkg_path, pkg_path)
    session = DeferredValidation()
    diagnostics = analyze_file(file, context, session)
    scope = Scope(name="source", callables=set(BUILTIN_FUNCTIONS))
    scope.add_file(file)
    diagnostics.extend(finalize_scope(scope, context, session))
    return sorted(diagnostics, key=lambda d: d.sort_key())

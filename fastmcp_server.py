"""
BrightScript Lint Agent: MCP Server

Exposes tools to coding assistants via the Model Context Protocol:

  1.  lint_project      lint a Roku project (code flow + optional usage check)
  2.  list_diagnostics  list diagnostics for a file, or the whole project
  3.  explain_rule      full rule explanation with examples
  4.  usage_report      usage graph summary and unused components/scripts
  5.  apply_fixes       apply automatic fixes (variable casing), then re-lint
  6.  coverage_report   list all supported rules and their severities
"""

from mcp.server.fastmcp import FastMCP
import os
import sys
import logging

from brslint.config import resolve_config
from brslint.errors import BrsLintError
from brslint.linter import Linter, LintResult
from brslint.rules_knowledge_base import format_rule_explanation, get_all_rules, get_rule
from brslint.usage_graph import UsageGraph

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("BrightScript Lint Agent")

linter = None
result = None

_SEVERITY_BADGE = {"error": "ERROR", "warn": "WARN", "info": "INFO"}


def _require_result():
    if result is None:
        return "Error: No project linted. Call lint_project first."
    return None


def _format_summary(res: LintResult) -> str:
    s = res.summary()
    text = (
        f"**{s['total']} diagnostic(s)**: {s['errors']} error(s), "
        f"{s['warnings']} warning(s), {s['infos']} info.\n"
    )
    if s["by_code"]:
        text += "By code: " + ", ".join(f"`{code}` x{n}" for code, n in s["by_code"].items()) + "\n"
    if s["fixable"]:
        text += f"{s['fixable']} diagnostic(s) can be fixed automatically (apply_fixes).\n"
    if res.skipped:
        text += f"\n**{len(res.skipped)} file(s) skipped** (syntax errors):\n"
        for skipped in res.skipped[:10]:
            text += f"- `{skipped.path}`: {skipped.reason}\n"
    return text


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1: Lint Project
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def lint_project(project_root: str, config_path: str = "", check_usage: bool = False) -> str:
    """
    Lints a BrightScript / BrighterScript project.

    Every function body is analysed for uninitialised and unsafe variables,
    unused variables, case mismatches, unreachable code and inconsistent
    returns.  With ``check_usage`` the component/script usage graph is
    walked from ``source/main.brs`` to report dead components and scripts.

    Args:
        project_root: Root directory of the channel (contains ``source/``).
        config_path:  Optional path to a ``bslint.json``; defaults to the one
                      in project_root, if any.
        check_usage:  Also report unused components and scripts.
    """
    global linter, result

    if not os.path.isdir(project_root):
        return f"Error: Project root not found at {project_root}"

    try:
        config = resolve_config(project_root, config_path or None)
        if check_usage:
            config = config.model_copy(update={"check_usage": True})
        linter = Linter(config)
        result = linter.run(project_root, fix=False)
    except BrsLintError as e:
        return f"Error: {e}"

    idx = result.index.get_summary()
    return (
        f"Linted `{project_root}`.\n"
        f"Workspace indexed: {idx['scripts']} scripts, {idx['components']} components, "
        f"{idx['scopes']} scopes.\n\n"
        + _format_summary(result)
    )


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2: List Diagnostics
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_diagnostics(file_path: str = "") -> str:
    """
    Lists the diagnostics of the last lint run.

    Args:
        file_path: Package path of a file (e.g. ``source/main.brs``).  Empty
                   lists every file.
    """
    error = _require_result()
    if error:
        return error

    grouped = result.by_file()
    if file_path:
        norm = file_path.replace("\\", "/")
        matches = {f: d for f, d in grouped.items() if f.lower() == norm.lower()}
        if not matches:
            return f"No diagnostics found for {file_path}"
        grouped = matches
    if not grouped:
        return "No diagnostics found."

    text = ""
    for fpath in sorted(grouped):
        diagnostics = grouped[fpath]
        text += f"**{len(diagnostics)} diagnostic(s) in {fpath}**:\n\n"
        for d in diagnostics:
            rule = get_rule(d.code)
            title = rule.title if rule else "Unknown rule"
            text += (
                f"- **[{d.code}]** Line {d.range.start.line + 1}, col {d.range.start.character + 1} "
                f"({_SEVERITY_BADGE[d.severity.value]}): {d.message}\n"
                f"  *{title}*\n"
            )
        text += "\n"
    return text


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3: Explain Rule
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def explain_rule(rule_id: str) -> str:
    """
    Provides a full explanation of a lint rule: rationale, examples and fix.

    Args:
        rule_id: Diagnostic code (e.g. 'LINT1003') or rule key (e.g. 'assign-all-paths').
    """
    return format_rule_explanation(rule_id)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4: Usage Report
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def usage_report() -> str:
    """
    Reports the usage graph of the last linted project: vertex counts and
    every component or script not reachable from ``source/main.brs``.
    """
    error = _require_result()
    if error:
        return error

    graph = result.graph
    unused = [d for d in result.diagnostics if d.code in ("LINT4001", "LINT4002")]
    broken = result.broken_entry_point()
    if graph is None and broken is not None:
        return f"Usage check skipped: `{broken.path}` could not be parsed ({broken.reason})."
    if graph is None:
        graph = UsageGraph(linter.context)
        for pkg_path in sorted(result.index.components):
            graph.add_component(result.index.components[pkg_path])
        for scope in result.index.scopes:
            graph.add_scope(scope)
        try:
            unused = graph.check()
        except BrsLintError as e:
            return f"Error: {e}"

    s = graph.get_summary()
    report = "# Usage Report\n\n"
    report += (
        f"**Vertices**: {s['vertices']} ({s['components']} components, {s['scripts']} scripts), "
        f"{s['edges']} edges, {s['reached']} reached.\n\n"
    )
    if not unused:
        return report + "Every component and script is reachable from the entry point."

    report += "| Code | File | Message |\n"
    report += "|------|------|---------|\n"
    for d in unused:
        report += f"| {d.code} | `{d.file}` | {d.message} |\n"
    return report


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5: Apply Fixes
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def apply_fixes(file_path: str = "", dry_run: bool = False) -> str:
    """
    Applies the automatic fixes of the last lint run and re-lints the project.

    Args:
        file_path: Package path of a single file to fix.  Empty fixes every file.
        dry_run:   Only report what would change.
    """
    global result

    error = _require_result()
    if error:
        return error
    if not result.fixes:
        return "No automatic fixes available."

    pending = result
    if file_path:
        norm = file_path.replace("\\", "/").lower()
        fixes = {f: e for f, e in result.fixes.items() if f.lower() == norm}
        if not fixes:
            return f"No automatic fixes available for {file_path}"
        pending = LintResult(root_dir=result.root_dir, fixes=fixes)

    applied = Linter.apply_fixes(pending, dry_run=dry_run)
    text = "**[Dry Run]** " if dry_run else ""
    text += f"Fixes for {len(applied)} file(s):\n\n"
    for fpath, count in sorted(applied.items()):
        text += f"- `{fpath}`: {count} edit(s)\n"

    if not dry_run:
        try:
            result = linter.run(result.root_dir, fix=False)
        except BrsLintError as e:
            return text + f"\nError re-linting: {e}"
        text += "\nRe-linted after fixes.\n\n" + _format_summary(result)
    return text


# ═══════════════════════════════════════════════════════════════════════
#  Tool 6: Coverage Report
# ═══════════════════════════════════════════════════════════════════════

_FAMILIES = {"1": "Variables", "2": "Returns", "4": "Unused code"}


@mcp.tool()
def coverage_report() -> str:
    """
    Returns a markdown report of all supported rules, grouped by family,
    with their default (and, after lint_project, configured) severities.
    """
    rules = get_all_rules()
    report = "# BrightScript Lint Coverage Report\n\n"
    report += f"**Total Rules Supported**: {len(rules)}\n\n"
    report += "| Family | Code | Title | Rule | Default | Configured |\n"
    report += "|--------|------|-------|------|---------|------------|\n"

    for code in sorted(rules):
        rule = rules[code]
        family = _FAMILIES.get(code[4], "Other")
        configured = linter.context.rules.get(rule.rule, "off") if linter else "-"
        report += (
            f"| {family} | {code} | {rule.title} | `{rule.rule}` | "
            f"{rule.default_severity} | {configured} |\n"
        )
    return report


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    mcp.run()

"""
Code flow analysis: walks each function body once, driving the return and
variable trackers over the same block arena.

Walk protocol per statement:

  1. a StatementInfo is created (branches = 2 for if/loops/try, else 1)
  2. return tracker visits it, then the variable tracker
  3. its expressions are visited until the first child statement, which
     *opens* the statement as a block (pushed on the stack)
  4. once all children are walked an opened block is *closed*: popped, then
     the return tracker and the variable tracker close it

Nested function expressions are not entered; every function found in the
file is analysed on its own.

Entry points:
  • analyze_file(file, context, session)   → per-function diagnostics
  • finalize_scope(scope, context, session) → deferred LINT1001 diagnostics
"""

import logging
from typing import List

from brslint.brs_ast import (
    AssignmentStatement, BrsFile, DimStatement, Expression, FunctionExpression, Statement,
    is_branched_statement, is_loop_statement, walk_expressions,
)
from brslint.block_model import FlowState, StatementInfo
from brslint.config import LintContext
from brslint.diagnostics import Diagnostic
from brslint.return_tracking import ReturnLinter
from brslint.var_tracking import DeferredValidation, ValidationInfo, VarLinter

logger = logging.getLogger(__name__)


class _FlowWalker:

    def __init__(self, state: FlowState, returns: ReturnLinter, variables: VarLinter,
                 loops_as_branches: bool):
        self.state = state
        self.returns = returns
        self.variables = variables
        self.loops_as_branches = loops_as_branches

    def _branches(self, stat: Statement) -> int:
        if not is_branched_statement(stat):
            return 1
        if is_loop_statement(stat) and not self.loops_as_branches:
            return 1
        return 2

    def run(self, body: Statement):
        """Walk a function body; the root block is always opened and closed."""
        info = self.state.create(body, 1)
        self._open(info)
        for child in body.children():
            self._walk_child(child, info)
        self._close(info)

    def visit(self, stat: Statement):
        info = self.state.create(stat, self._branches(stat))
        self.returns.visit_statement(info)
        if isinstance(stat, (AssignmentStatement, DimStatement)):
            # the value is read before the name is bound
            for child in stat.children():
                self._visit_expression(child, info)
            self.variables.visit_statement(info)
            return
        self.variables.visit_statement(info)

        opened = False
        for child in stat.children():
            if isinstance(child, Statement) and not opened:
                self._open(info)
                opened = True
            self._walk_child(child, info)
        if opened:
            self._close(info)

    def _walk_child(self, child, info: StatementInfo):
        if isinstance(child, Statement):
            self.visit(child)
        elif isinstance(child, Expression):
            self._visit_expression(child, info)

    def _visit_expression(self, expr: Expression, curr: StatementInfo):
        for node, parent in walk_expressions(expr):
            self.variables.visit_expression(node, parent, curr)

    def _open(self, info: StatementInfo):
        self.variables.open_block(info)
        self.state.push(info)

    def _close(self, info: StatementInfo):
        self.state.pop()
        self.returns.close_block(info)
        self.variables.close_block(info)


def analyze_function(func: FunctionExpression, file: BrsFile, context: LintContext,
                     deferred: List[ValidationInfo]) -> List[Diagnostic]:
    """Run both trackers over one function body."""
    diagnostics: List[Diagnostic] = []
    state = FlowState(func)
    returns = ReturnLinter(context, file, func, state, diagnostics)
    variables = VarLinter(context, file, func, state, diagnostics, deferred)
    _FlowWalker(state, returns, variables, context.loops_as_branches).run(func.body)
    return diagnostics


def analyze_file(file: BrsFile, context: LintContext, session: DeferredValidation) -> List[Diagnostic]:
    """Per-file analysis: function-level diagnostics, deferred candidates into ``session``."""
    deferred = session.reset(file.path)
    if context.ignores(file.path):
        logger.debug("Ignoring %s", file.pkg_path)
        return []
    diagnostics: List[Diagnostic] = []
    for func in file.find_functions():
        diagnostics.extend(analyze_function(func, file, context, deferred))
    return diagnostics


def finalize_scope(scope, context: LintContext, session: DeferredValidation) -> List[Diagnostic]:
    """Resolve the deferred candidates of every file in ``scope``."""
    diagnostics = session.resolve(scope, context)
    logger.debug("Scope '%s': %d deferred diagnostic(s)", scope.name, len(diagnostics))
    return diagnostics

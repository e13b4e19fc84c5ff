"""
Return Consistency Tracker.

Per function: flags statements that follow a block already known to
return (LINT2001), then on finalization compares the declared return type
with the observed returns:

  • LINT2002  sub / ``as void`` returning a value        (per return)
  • LINT2004  some path falls through without a value    (at the signature)
  • LINT2006  bare ``return`` where others carry a value  (per return)
"""

import logging
from typing import List

from brslint.brs_ast import (
    BrsFile, CatchStatement, CommentStatement, FunctionExpression, IfStatement,
    ReturnStatement, ThrowStatement, TryCatchStatement,
)
from brslint.block_model import FlowState, ReturnInfo, StatementInfo, ThrowInfo
from brslint.config import LintContext
from brslint.diagnostics import Diagnostic, ReturnLintError

logger = logging.getLogger(__name__)

# Statements whose children are mutually exclusive paths
_BRANCH_OWNERS = (IfStatement, TryCatchStatement, CatchStatement)


class ReturnLinter:

    def __init__(self, context: LintContext, file: BrsFile, func: FunctionExpression,
                 state: FlowState, diagnostics: List[Diagnostic]):
        self.context = context
        self.file = file
        self.func = func
        self.state = state
        self.diagnostics = diagnostics
        self.returns: List[ReturnInfo] = []
        self.throws: List[ThrowInfo] = []

    def _report(self, code: str, message: str, range, tags=None):
        diagnostic = self.context.create_diagnostic(code, message, range, self.file.pkg_path, tags=tags)
        if diagnostic is not None:
            self.diagnostics.append(diagnostic)

    def visit_statement(self, curr: StatementInfo):
        parent = self.state.parent
        stat = curr.stat
        if parent is not None and parent.returns:
            if not isinstance(stat, CommentStatement):
                self._report(ReturnLintError.UNREACHABLE_CODE, "Unreachable code", stat.range,
                             tags=["unnecessary"])
        elif isinstance(stat, ReturnStatement):
            self.returns.append(ReturnInfo(stat, stat.value is not None))
            self._mark_returning(parent)
        elif isinstance(stat, ThrowStatement):
            self.throws.append(ThrowInfo(stat))
            self._mark_returning(parent)

    @staticmethod
    def _mark_returning(parent: StatementInfo):
        # only a single-path block is ended by a return
        if parent is not None and parent.branches == 1:
            parent.returns = True

    def close_block(self, closed: StatementInfo):
        parent = self.state.parent
        if parent is None:
            self.finalize(closed)
        elif isinstance(closed.stat, _BRANCH_OWNERS):
            if closed.branches == 0:
                parent.returns = True
                parent.branches -= 1
        elif closed.returns and isinstance(parent.stat, _BRANCH_OWNERS):
            parent.branches -= 1

    def finalize(self, last: StatementInfo):
        func = self.func
        kind = "Sub" if func.kind == "sub" else "Function"
        values = [r for r in self.returns if r.has_value]

        # explicit `as void`, or a sub without return type, never returns a value
        if func.return_type == "void" or (kind == "Sub" and func.return_type is None):
            for r in values:
                self._report(ReturnLintError.RETURN_VALUE_UNEXPECTED,
                             f"{kind} as void should not return a value", r.stat.range)
            return

        requires_value = (func.return_type is not None
                          or len(values) > 0
                          or (kind == "Function" and len(self.returns) > 0))
        missing_branches = not last.returns

        if requires_value and (missing_branches or len(self.returns) + len(self.throws) == 0):
            self._report(ReturnLintError.UNSAFE_RETURN_VALUE,
                         "Not all code paths return a value", func.signature_range)

        if requires_value and len(values) != len(self.returns):
            for r in self.returns:
                if not r.has_value:
                    self._report(ReturnLintError.RETURN_VALUE_MISSING,
                                 f"{kind} should consistently return a value", r.stat.range)

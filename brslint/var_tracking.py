"""
Variable Safety Tracker + Deferred Cross-Scope Validator.

VarLinter follows one function body through the walk driven by code_flow:

  • assignments bind names in the innermost open block
  • reads resolve against parameters, then open blocks innermost → outermost
  • closing a block merges its bindings into the parent, flagging the ones
    not assigned on every branch as unsafe
  • reads of names with no binding are deferred: whether ``foo`` is an
    uninitialised variable or a callable depends on the scope the file is
    included in, which is only known once every file has been indexed

Diagnostics: LINT1002 iterator used outside its loop, LINT1003 not assigned
on all paths, LINT1004 casing mismatch, LINT1005 set but never used, and
(deferred) LINT1001 uninitialised variable.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass

from brslint.brs_ast import (
    AssignmentStatement, BinaryExpression, BrsFile, CatchStatement, DimStatement, EMPTY_RANGE,
    Expression, ForEachStatement, ForStatement, FunctionExpression, GotoStatement,
    Identifier, IfStatement, LabelStatement, LiteralExpression, Range,
    TryCatchStatement, VariableExpression, is_loop_statement,
)
from brslint.block_model import (
    FlowState, NarrowingInfo, StatementInfo, VarInfo, VarRestriction,
)
from brslint.config import LintContext
from brslint.diagnostics import CasingFixData, Diagnostic, VarLintError

logger = logging.getLogger(__name__)


class ValidationKind(Enum):
    UNINITIALIZED_VAR = "UninitializedVar"
    UNINITIALIZED_FN = "UninitializedFn"


@dataclass
class ValidationInfo:
    kind: ValidationKind
    name: str
    range: Range
    namespace: Optional[str] = None     # namespace of the function holding the reference


def _is_invalid(expr: Expression) -> bool:
    return isinstance(expr, LiteralExpression) and expr.kind == "invalid"


# ═══════════════════════════════════════════════════════════════════════
#  Per-function tracker
# ═══════════════════════════════════════════════════════════════════════

class VarLinter:

    def __init__(self, context: LintContext, file: BrsFile, func: FunctionExpression,
                 state: FlowState, diagnostics: List[Diagnostic], deferred: List[ValidationInfo]):
        self.context = context
        self.file = file
        self.func = func
        self.state = state
        self.diagnostics = diagnostics
        self.deferred = deferred

        self.args: Dict[str, VarInfo] = {
            "m": VarInfo("m", EMPTY_RANGE, is_param=True, is_used=True),
        }
        for param in func.parameters:
            self.args[param.name.text.lower()] = VarInfo(param.name.text, param.name.range, is_param=True)
        if func.is_method:
            self.args["super"] = VarInfo("super", EMPTY_RANGE, is_param=True, is_used=True)

    def _report(self, code: str, message: str, range: Range, data=None):
        diagnostic = self.context.create_diagnostic(code, message, range, self.file.pkg_path, data=data)
        if diagnostic is not None:
            self.diagnostics.append(diagnostic)

    # ── Bindings ─────────────────────────────────────────────────────

    def _verify_casing(self, known: Optional[VarInfo], name: Identifier):
        if known is not None and known.name != name.text:
            self._report(
                VarLintError.CASE_MISMATCH,
                f"Variable '{name.text}' was previously set with a different casing as '{known.name}'",
                name.range,
                data=CasingFixData(known.name, name.range),
            )

    def _visible(self, key: str, block: StatementInfo) -> Optional[VarInfo]:
        if block.locals and key in block.locals:
            return block.locals[key]
        for info in self.state.enclosing():
            if info.locals and key in info.locals:
                return info.locals[key]
        return None

    def set_local(self, block: StatementInfo, name: Identifier,
                  restriction: VarRestriction = VarRestriction.NONE) -> VarInfo:
        key = name.text.lower()
        local = VarInfo(name=name.text, range=name.range, restriction=restriction,
                        order=self.state.next_order(), parent=block.index)
        arg = self.args.get(key)
        if arg is not None:
            # re-assigning a parameter does not create a local
            self._verify_casing(arg, name)
            return local

        self._verify_casing(self._visible(key, block), name)
        if block.locals is None:
            block.locals = {}
        block.locals[key] = local
        return local

    def _resolve(self, key: str) -> Tuple[Optional[VarInfo], Optional[VarInfo]]:
        """Return ``(most specific binding, first safe binding)`` for ``key``."""
        arg = self.args.get(key)
        if arg is not None:
            return arg, arg
        specific = None
        for info in self.state.enclosing():
            local = info.locals.get(key) if info.locals else None
            if local is None:
                continue
            if specific is None:
                specific = local
            if not local.is_unsafe:
                return specific, local
        return specific, None

    # ── Walk hooks ───────────────────────────────────────────────────

    def open_block(self, block: StatementInfo):
        stat = block.stat
        parent = self.state.parent
        if isinstance(stat, ForEachStatement):
            self.set_local(block, stat.item, VarRestriction.ITERATOR)
        elif isinstance(stat, CatchStatement):
            if stat.exception_variable is not None:
                self.set_local(block, stat.exception_variable, VarRestriction.CATCHED_ERROR)
        elif parent is not None and parent.narrows:
            self._narrow_block(block, parent)

    def _narrow_block(self, block: StatementInfo, parent: StatementInfo):
        stat = block.stat
        if isinstance(stat, IfStatement) and isinstance(parent.stat, IfStatement):
            # else-if: the outer conditions still apply
            block.narrows = list(parent.narrows) + list(block.narrows or [])
            return
        for narrow in parent.narrows:
            narrowed = narrow if narrow.block is stat else narrow.opposite()
            local = self.set_local(block, Identifier(narrow.text, narrow.range))
            local.narrowed = narrowed
            local.is_used = True

    def visit_statement(self, curr: StatementInfo):
        stat = curr.stat
        parent = self.state.parent
        if isinstance(stat, AssignmentStatement) and parent is not None:
            restriction = (VarRestriction.ITERATOR if isinstance(parent.stat, ForStatement)
                           else VarRestriction.NONE)
            self.set_local(parent, stat.name, restriction)
        elif isinstance(stat, DimStatement) and parent is not None:
            self.set_local(parent, stat.name)
        elif isinstance(stat, LabelStatement):
            order = self.state.next_order()
            self.state.labels[stat.name.text.lower()] = order
            self.state.last_label = order
        elif isinstance(stat, GotoStatement):
            self._jump(stat)

    def _jump(self, stat: GotoStatement):
        """A goto after a label: trust every unsafe binding created since the label."""
        if self.state.last_label is None:
            return
        target = self.state.labels.get(stat.label.text.lower(), self.state.last_label)
        for info in self.state.enclosing():
            for local in (info.locals or {}).values():
                if local.is_unsafe and local.order >= target:
                    local.is_unsafe = False
                    local.is_used = True

    def visit_expression(self, expr: Expression, parent: Optional[Expression], curr: StatementInfo):
        if not isinstance(expr, VariableExpression):
            return
        name = expr.name.text
        if name.lower() == "m":
            return

        local, safe = self._resolve(name.lower())
        if local is None:
            kind = ValidationKind.UNINITIALIZED_FN if expr.is_called else ValidationKind.UNINITIALIZED_VAR
            self.deferred.append(ValidationInfo(kind, name, expr.range, namespace=self.func.namespace))
            return

        local.is_used = True
        if safe is not None:
            safe.is_used = True
        self._verify_casing(local, expr.name)
        if safe is not None:
            return

        if local.restriction == VarRestriction.ITERATOR:
            self._report(VarLintError.UNSAFE_ITERATOR_VAR,
                         f"Using iterator variable '{name}' outside loop", expr.range)
        elif not self._is_narrowing(local, parent, curr):
            self._report(VarLintError.UNSAFE_INITIALIZATION,
                         f"Not all the code paths assign '{name}'", expr.range)

    def _is_narrowing(self, local: VarInfo, parent: Optional[Expression], curr: StatementInfo) -> bool:
        """Is this read an ``if`` condition testing the variable against ``invalid``?"""
        stat = curr.stat
        if not isinstance(stat, IfStatement):
            return False
        if not (isinstance(parent, BinaryExpression)
                and (_is_invalid(parent.left) or _is_invalid(parent.right))):
            # e.g. second `x` in: if x <> invalid and x.y = z
            key = local.name.lower()
            return any(n.text.lower() == key for n in (curr.narrows or []))
        if parent.operator not in ("=", "<>"):
            return False
        narrow = NarrowingInfo(
            text=local.name,
            range=local.range,
            type="invalid" if parent.operator == "=" else "valid",
            block=stat.then_branch,
        )
        if curr.narrows is None:
            curr.narrows = []
        curr.narrows.append(narrow)
        return True

    # ── Block close ──────────────────────────────────────────────────

    def close_block(self, closed: StatementInfo):
        locals_ = closed.locals
        parent = self.state.parent
        if parent is None:
            if locals_:
                self._report_unused(locals_.values())
            return
        if not locals_:
            return

        if closed.branches > 1:
            # bindings not met in every branch are unsafe after the block
            for local in locals_.values():
                if local.met_branches < closed.branches:
                    local.is_unsafe = True
                local.met_branches = 1
        elif isinstance(parent.stat, (IfStatement, TryCatchStatement, CatchStatement)):
            dropped = []
            for key, local in list(locals_.items()):
                if closed.returns:
                    # only the `x = invalid` narrowing survives a returning branch
                    if local.narrowed is None or local.narrowed.type == "valid":
                        dropped.append(locals_.pop(key))
                elif local.narrowed is not None:
                    locals_.pop(key)
            self._report_unused(dropped)

        if isinstance(closed.stat, CatchStatement):
            for key, local in list(locals_.items()):
                if local.restriction == VarRestriction.CATCHED_ERROR:
                    locals_.pop(key)

        self._merge(closed, parent, isinstance(parent.stat, (IfStatement, TryCatchStatement)))

    def _merge(self, closed: StatementInfo, parent: StatementInfo, parent_is_branch: bool):
        """Move the bindings of ``closed`` into ``parent``."""
        if not closed.locals:
            return
        if parent.locals is None:
            parent.locals = {}
        is_loop = is_loop_statement(closed.stat)
        for key, local in closed.locals.items():
            parent_local = parent.locals.get(key)
            if local.restriction == VarRestriction.ITERATOR:
                local.is_unsafe = True
            if parent_is_branch:
                if parent_local is not None:
                    local.is_unsafe = parent_local.is_unsafe or local.is_unsafe
                    local.met_branches = parent_local.met_branches + 1
            elif parent_local is not None and not parent_local.is_unsafe:
                # assigned safely before entering the block
                local.is_unsafe = False
            if parent_local is not None and parent_local.restriction == VarRestriction.ITERATOR:
                local.restriction = VarRestriction.ITERATOR
            if is_loop and not local.is_used:
                # set in a loop, read by an earlier iteration
                visible, _ = self._resolve(key)
                if visible is not None and visible.is_used:
                    local.is_used = True
            local.parent = parent.index
            parent.locals[key] = local

    def _report_unused(self, locals_: Iterable[VarInfo]):
        for local in locals_:
            if not local.is_used and local.restriction == VarRestriction.NONE:
                self._report(VarLintError.UNUSED_VARIABLE,
                             f"Variable '{local.name}' is set but value is never used", local.range)


# ═══════════════════════════════════════════════════════════════════════
#  Deferred validation
# ═══════════════════════════════════════════════════════════════════════

class DeferredValidation:
    """Session-owned buffer of deferred candidates, keyed by file path."""

    def __init__(self):
        self._deferred: Dict[str, List[ValidationInfo]] = {}

    def reset(self, file_path: str) -> List[ValidationInfo]:
        self._deferred[file_path] = []
        return self._deferred[file_path]

    def get(self, file_path: str) -> List[ValidationInfo]:
        return self._deferred.get(file_path, [])

    def resolve(self, scope, context: LintContext) -> List[Diagnostic]:
        """Report deferred reads that are not callable/declared names in ``scope``.

        ``scope`` provides ``name``, ``files``, ``callables`` and
        ``toplevel`` (lower-cased name sets).
        """
        known = set(scope.callables) | set(scope.toplevel) | set(context.globals)
        diagnostics: List[Diagnostic] = []
        for file in scope.files:
            for info in self._deferred.get(file.path, []):
                if _candidate_names(info.name, info.namespace) & known:
                    continue
                diagnostic = context.create_diagnostic(
                    VarLintError.UNINITIALIZED_VAR,
                    f"Using uninitialised variable '{info.name}' when this file is included in scope '{scope.name}'",
                    info.range,
                    file.pkg_path,
                )
                if diagnostic is not None:
                    diagnostics.append(diagnostic)
        return diagnostics


def _candidate_names(name: str, namespace: Optional[str]) -> set:
    """``foo`` inside namespace ``a.b`` may mean ``a.b.foo``, ``a.foo`` or ``foo``."""
    key = name.lower()
    names = {key}
    if namespace:
        parts = namespace.lower().split(".")
        for i in range(len(parts), 0, -1):
            names.add(".".join(parts[:i] + [key]))
    return names

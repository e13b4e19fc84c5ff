"""
BrightScript AST: the generic tree the analyzers consume.

The front end (brs_parser.py) produces these nodes; the analyzers only ever
read them.  Positions follow the LSP convention: 0-based lines and
characters, end-exclusive ranges.

Every node exposes ``children()`` returning its direct child nodes in
source (walk) order, mixing statements and expressions.  Walk helpers at
the bottom of the module never descend into a nested function body: each
function is analysed on its own.
"""

from typing import Iterator, List, Optional, Tuple, Union
from dataclasses import dataclass, field


# ═══════════════════════════════════════════════════════════════════════
#  Positions
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Position:
    line: int               # 0-indexed
    character: int          # 0-indexed


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def create(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "Range":
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    @classmethod
    def between(cls, first: "Range", last: "Range") -> "Range":
        """Range spanning from the start of ``first`` to the end of ``last``."""
        return cls(first.start, last.end)

    def __str__(self):
        return (f"{self.start.line}:{self.start.character}-"
                f"{self.end.line}:{self.end.character}")


EMPTY_RANGE = Range.create(0, 0, 0, 0)


@dataclass
class Identifier:
    """A name token with its original casing."""
    text: str
    range: Range


# ═══════════════════════════════════════════════════════════════════════
#  Base classes
# ═══════════════════════════════════════════════════════════════════════

class Node:
    range: Range

    def children(self) -> List["Node"]:
        return []


class Expression(Node):
    pass


class Statement(Node):
    pass


# ═══════════════════════════════════════════════════════════════════════
#  Expressions
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class VariableExpression(Expression):
    name: Identifier
    range: Range
    is_called: bool = False


@dataclass
class LiteralExpression(Expression):
    kind: str               # "string" | "number" | "boolean" | "invalid"
    text: str               # raw token text (strings keep their quotes)
    range: Range


@dataclass
class BinaryExpression(Expression):
    left: Expression
    operator: str           # lower-cased operator text ("=", "<>", "and", ...)
    right: Expression
    range: Range

    def children(self):
        return [self.left, self.right]


@dataclass
class UnaryExpression(Expression):
    operator: str
    right: Expression
    range: Range

    def children(self):
        return [self.right]


@dataclass
class GroupingExpression(Expression):
    expression: Expression
    range: Range

    def children(self):
        return [self.expression]


@dataclass
class DottedGetExpression(Expression):
    obj: Expression
    name: Identifier
    range: Range

    def children(self):
        return [self.obj]


@dataclass
class IndexedGetExpression(Expression):
    obj: Expression
    index: Expression
    range: Range

    def children(self):
        return [self.obj, self.index]


@dataclass
class CallExpression(Expression):
    callee: Expression
    args: List[Expression]
    range: Range

    def children(self):
        return [self.callee] + list(self.args)


@dataclass
class TernaryExpression(Expression):
    """BrighterScript `test ? consequent : alternate`."""
    test: Expression
    consequent: Expression
    alternate: Expression
    range: Range

    def children(self):
        return [self.test, self.consequent, self.alternate]


@dataclass
class TemplateStringExpression(Expression):
    text: str               # raw token text, backticks included
    expressions: List[Expression]
    range: Range

    def children(self):
        return list(self.expressions)


@dataclass
class NewExpression(Expression):
    call: CallExpression
    range: Range

    def children(self):
        return [self.call]


@dataclass
class ArrayLiteralExpression(Expression):
    elements: List[Expression]
    range: Range

    def children(self):
        return list(self.elements)


@dataclass
class AAMember:
    key: str
    value: Expression


@dataclass
class AALiteralExpression(Expression):
    members: List[AAMember]
    range: Range

    def children(self):
        return [m.value for m in self.members]


@dataclass
class Parameter:
    name: Identifier
    type_name: Optional[str] = None
    default_value: Optional[Expression] = None


@dataclass
class FunctionExpression(Expression):
    """A function or sub body, named or anonymous."""
    kind: str                           # "sub" | "function"
    parameters: List[Parameter]
    body: "Block"
    range: Range
    signature_range: Range              # keyword up to the return type or ')'
    return_type: Optional[str] = None   # lower-cased type name, if declared
    name: Optional[Identifier] = None   # None for anonymous functions
    is_method: bool = False
    namespace: Optional[str] = None     # lower-cased dotted namespace

    # No children: nested functions (body and default values) are analysed
    # on their own.


# ═══════════════════════════════════════════════════════════════════════
#  Statements
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Block(Statement):
    statements: List[Statement]
    range: Range

    def children(self):
        return list(self.statements)


@dataclass
class CommentStatement(Statement):
    text: str
    range: Range


@dataclass
class AssignmentStatement(Statement):
    name: Identifier
    value: Expression
    range: Range
    operator: str = "="

    def children(self):
        return [self.value]


@dataclass
class DottedSetStatement(Statement):
    obj: Expression
    name: Identifier
    value: Expression
    range: Range

    def children(self):
        return [self.obj, self.value]


@dataclass
class IndexedSetStatement(Statement):
    obj: Expression
    index: Expression
    value: Expression
    range: Range

    def children(self):
        return [self.obj, self.index, self.value]


@dataclass
class IncrementStatement(Statement):
    value: Expression
    operator: str           # "++" | "--"
    range: Range

    def children(self):
        return [self.value]


@dataclass
class DimStatement(Statement):
    name: Identifier
    dimensions: List[Expression]
    range: Range

    def children(self):
        return list(self.dimensions)


@dataclass
class ExpressionStatement(Statement):
    expression: Expression
    range: Range

    def children(self):
        return [self.expression]


@dataclass
class PrintStatement(Statement):
    expressions: List[Expression]
    range: Range

    def children(self):
        return list(self.expressions)


@dataclass
class IfStatement(Statement):
    condition: Expression
    then_branch: Block
    range: Range
    else_branch: Optional[Union[Block, "IfStatement"]] = None
    is_inline: bool = False

    def children(self):
        nodes: List[Node] = [self.condition, self.then_branch]
        if self.else_branch is not None:
            nodes.append(self.else_branch)
        return nodes


@dataclass
class ForStatement(Statement):
    counter: AssignmentStatement
    final_value: Expression
    body: Block
    range: Range
    increment: Optional[Expression] = None

    def children(self):
        nodes: List[Node] = [self.counter, self.final_value]
        if self.increment is not None:
            nodes.append(self.increment)
        nodes.append(self.body)
        return nodes


@dataclass
class ForEachStatement(Statement):
    item: Identifier
    target: Expression
    body: Block
    range: Range

    def children(self):
        return [self.target, self.body]


@dataclass
class WhileStatement(Statement):
    condition: Expression
    body: Block
    range: Range

    def children(self):
        return [self.condition, self.body]


@dataclass
class ExitStatement(Statement):
    loop: str               # "for" | "while"
    range: Range


@dataclass
class ReturnStatement(Statement):
    range: Range
    value: Optional[Expression] = None

    def children(self):
        return [self.value] if self.value is not None else []


@dataclass
class ThrowStatement(Statement):
    expression: Expression
    range: Range

    def children(self):
        return [self.expression]


@dataclass
class CatchStatement(Statement):
    catch_branch: Block
    range: Range
    exception_variable: Optional[Identifier] = None

    def children(self):
        return [self.catch_branch]


@dataclass
class TryCatchStatement(Statement):
    try_branch: Block
    range: Range
    catch_statement: Optional[CatchStatement] = None

    def children(self):
        nodes: List[Node] = [self.try_branch]
        if self.catch_statement is not None:
            nodes.append(self.catch_statement)
        return nodes


@dataclass
class LabelStatement(Statement):
    name: Identifier
    range: Range


@dataclass
class GotoStatement(Statement):
    label: Identifier
    range: Range


@dataclass
class EndStatement(Statement):
    range: Range


@dataclass
class StopStatement(Statement):
    range: Range


# ── Top-level declarations ───────────────────────────────────────────

@dataclass
class FunctionStatement(Statement):
    name: Identifier
    func: FunctionExpression
    range: Range


@dataclass
class FieldStatement(Statement):
    name: Identifier
    range: Range
    type_name: Optional[str] = None
    initial_value: Optional[Expression] = None


@dataclass
class MethodStatement(Statement):
    name: Identifier
    func: FunctionExpression
    range: Range


@dataclass
class ClassStatement(Statement):
    name: Identifier
    range: Range
    parent_name: Optional[str] = None
    members: List[Statement] = field(default_factory=list)
    namespace: Optional[str] = None

    @property
    def methods(self) -> List[MethodStatement]:
        return [m for m in self.members if isinstance(m, MethodStatement)]


@dataclass
class NamespaceStatement(Statement):
    name: str               # dotted, original casing
    range: Range
    body: List[Statement] = field(default_factory=list)


@dataclass
class ConstStatement(Statement):
    name: Identifier
    value: Expression
    range: Range
    namespace: Optional[str] = None


@dataclass
class EnumStatement(Statement):
    name: Identifier
    range: Range
    members: List[Identifier] = field(default_factory=list)
    namespace: Optional[str] = None


@dataclass
class ImportStatement(Statement):
    path: str               # unquoted import path
    range: Range


@dataclass
class LibraryStatement(Statement):
    path: str
    range: Range


# ═══════════════════════════════════════════════════════════════════════
#  Files
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class BrsFile:
    """A parsed BrightScript / BrighterScript source file."""
    path: str                       # absolute path on disk (or a pseudo path in tests)
    pkg_path: str                   # posix path relative to the project root
    source: str
    statements: List[Statement] = field(default_factory=list)

    @property
    def function_statements(self) -> List[FunctionStatement]:
        return [s for s in iter_declarations(self.statements) if isinstance(s, FunctionStatement)]

    @property
    def classes(self) -> List[ClassStatement]:
        return [s for s in iter_declarations(self.statements) if isinstance(s, ClassStatement)]

    @property
    def namespaces(self) -> List[NamespaceStatement]:
        return [s for s in iter_declarations(self.statements) if isinstance(s, NamespaceStatement)]

    @property
    def imports(self) -> List[ImportStatement]:
        return [s for s in self.statements if isinstance(s, ImportStatement)]

    def find_functions(self) -> List[FunctionExpression]:
        """All function expressions in the file, nested ones included."""
        found: List[FunctionExpression] = []
        for decl in iter_declarations(self.statements):
            if isinstance(decl, FunctionStatement):
                _collect_functions(decl.func, found)
            elif isinstance(decl, ClassStatement):
                for member in decl.members:
                    if isinstance(member, MethodStatement):
                        _collect_functions(member.func, found)
                    elif isinstance(member, FieldStatement) and member.initial_value is not None:
                        for expr, _ in walk_expressions(member.initial_value):
                            if isinstance(expr, FunctionExpression):
                                _collect_functions(expr, found)
        return found


def iter_declarations(statements: List[Statement]) -> Iterator[Statement]:
    """Yield top-level declarations, flattening namespaces (the namespace first)."""
    for stat in statements:
        yield stat
        if isinstance(stat, NamespaceStatement):
            yield from iter_declarations(stat.body)


def _collect_functions(func: FunctionExpression, found: List[FunctionExpression]):
    found.append(func)
    for param in func.parameters:
        if param.default_value is not None:
            for expr, _ in walk_expressions(param.default_value):
                if isinstance(expr, FunctionExpression):
                    _collect_functions(expr, found)
    for stat in walk_statements(func.body):
        for child in stat.children():
            if isinstance(child, Expression):
                for expr, _ in walk_expressions(child):
                    if isinstance(expr, FunctionExpression):
                        _collect_functions(expr, found)


# ═══════════════════════════════════════════════════════════════════════
#  Walk helpers
# ═══════════════════════════════════════════════════════════════════════

def walk_expressions(expr: Expression,
                     parent: Optional[Expression] = None
                     ) -> Iterator[Tuple[Expression, Optional[Expression]]]:
    """Pre-order walk yielding ``(expression, parent_expression)`` pairs.

    Nested function expressions are yielded but their bodies are not entered.
    """
    stack: List[Tuple[Expression, Optional[Expression]]] = [(expr, parent)]
    while stack:
        node, node_parent = stack.pop()
        yield node, node_parent
        kids = [c for c in node.children() if isinstance(c, Expression)]
        for child in reversed(kids):
            stack.append((child, node))


def walk_statements(root: Statement) -> Iterator[Statement]:
    """Pre-order walk over ``root`` and every nested statement."""
    stack: List[Statement] = [root]
    while stack:
        node = stack.pop()
        yield node
        kids = [c for c in node.children() if isinstance(c, Statement)]
        stack.extend(reversed(kids))


def is_branched_statement(stat: Statement) -> bool:
    """``if``, loops and ``try`` split the flow into two paths."""
    return isinstance(stat, (IfStatement, ForStatement, ForEachStatement,
                             WhileStatement, TryCatchStatement))


def is_loop_statement(stat: Statement) -> bool:
    return isinstance(stat, (ForStatement, ForEachStatement, WhileStatement))

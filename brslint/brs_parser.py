"""
BrightScript front end: lark grammar + tree → AST transformer.

``parse_source(text, path, pkg_path)`` returns a BrsFile whose statements
are the nodes of brs_ast.  Lark reports 1-indexed line/column pairs; the
AST stores 0-indexed LSP-style ranges.

Failures surface as BrsSyntaxError so callers never see lark exceptions.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedInput, VisitError

from brslint.brs_ast import (
    AAMember, AALiteralExpression, ArrayLiteralExpression, AssignmentStatement,
    BinaryExpression, Block, BrsFile, CallExpression, CatchStatement,
    ClassStatement, ConstStatement, DimStatement, DottedGetExpression, DottedSetStatement,
    EMPTY_RANGE, EndStatement, EnumStatement, ExitStatement, Expression,
    ExpressionStatement, FieldStatement, ForEachStatement, ForStatement,
    FunctionExpression, FunctionStatement, GotoStatement, GroupingExpression,
    Identifier, IfStatement, ImportStatement, IncrementStatement,
    IndexedGetExpression, IndexedSetStatement, LabelStatement,
    LibraryStatement, LiteralExpression, MethodStatement, NamespaceStatement,
    NewExpression, Parameter, PrintStatement, Range, ReturnStatement,
    Statement, StopStatement, TemplateStringExpression, TernaryExpression,
    ThrowStatement, TryCatchStatement, UnaryExpression, VariableExpression, WhileStatement,
)
from brslint.errors import BrsSyntaxError

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text(encoding="utf-8")

_PARSER = Lark(
    _GRAMMAR_SRC,
    parser="earley",
    lexer="basic",
    start=["start", "template_expr"],
    ambiguity="resolve",
    propagate_positions=True,
    maybe_placeholders=False,
)


# ═══════════════════════════════════════════════════════════════════════
#  Position helpers
# ═══════════════════════════════════════════════════════════════════════

def _tok_range(tok: Token) -> Range:
    return Range.create(tok.line - 1, tok.column - 1, tok.end_line - 1, tok.end_column - 1)


def _meta_range(meta) -> Range:
    if getattr(meta, "empty", True):
        return EMPTY_RANGE
    return Range.create(meta.line - 1, meta.column - 1, meta.end_line - 1, meta.end_column - 1)


def _ident(tok: Token) -> Identifier:
    return Identifier(str(tok), _tok_range(tok))


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1].replace('""', '"')
    return text


class _ParamList:
    def __init__(self, params: List[Parameter], range: Range):
        self.params = params
        self.range = range


class _TypeRef:
    def __init__(self, text: str, range: Range):
        self.text = text
        self.range = range


# ═══════════════════════════════════════════════════════════════════════
#  Tree → AST
# ═══════════════════════════════════════════════════════════════════════

@v_args(meta=True)
class _AstBuilder(Transformer):
    """Builds brs_ast nodes bottom-up from the lark parse tree."""

    def start(self, meta, children):
        return list(children)

    # ── Declarations ─────────────────────────────────────────────────

    def _function(self, meta, kind_tok: Token, name: Optional[Identifier], rest) -> FunctionExpression:
        params: _ParamList = rest[0]
        ret: Optional[_TypeRef] = next((r for r in rest if isinstance(r, _TypeRef)), None)
        body: Block = rest[-1]
        kind_range = _tok_range(kind_tok)
        end = ret.range.end if ret is not None else params.range.end
        return FunctionExpression(
            kind=kind_tok.value.lower(),
            parameters=params.params,
            body=body,
            range=_meta_range(meta),
            signature_range=Range(kind_range.start, end),
            return_type=ret.text if ret is not None else None,
            name=name,
        )

    def function_decl(self, meta, children):
        kind_tok, name_tok = children[0], children[1]
        name = _ident(name_tok)
        func = self._function(meta, kind_tok, name, children[2:])
        return FunctionStatement(name=name, func=func, range=func.range)

    def anon_function(self, meta, children):
        return self._function(meta, children[0], None, children[1:])

    def params(self, meta, children):
        return _ParamList(list(children), _meta_range(meta))

    def param(self, meta, children):
        param = Parameter(name=_ident(children[0]))
        for child in children[1:]:
            if isinstance(child, _TypeRef):
                param.type_name = child.text
            elif isinstance(child, Expression):
                param.default_value = child
        return param

    def return_type(self, meta, children):
        return children[0]

    def type_ref(self, meta, children):
        return _TypeRef(".".join(str(t) for t in children).lower(), _meta_range(meta))

    def dotted_name(self, meta, children):
        return ".".join(str(t) for t in children)

    def class_decl(self, meta, children):
        name = _ident(children[0])
        parent_name = None
        members = []
        for child in children[1:]:
            if isinstance(child, str) and not isinstance(child, Token):
                parent_name = child
            elif isinstance(child, Statement):
                members.append(child)
        for member in members:
            if isinstance(member, MethodStatement):
                member.func.is_method = True
        return ClassStatement(name=name, range=_meta_range(meta),
                              parent_name=parent_name, members=members)

    def method_decl(self, meta, children):
        rest = [c for c in children if not (isinstance(c, Token) and c.type == "MODIFIER")]
        kind_tok, name_tok = rest[0], rest[1]
        name = _ident(name_tok)
        func = self._function(meta, kind_tok, name, rest[2:])
        return MethodStatement(name=name, func=func, range=func.range)

    def field_decl(self, meta, children):
        rest = [c for c in children if not (isinstance(c, Token) and c.type == "MODIFIER")]
        stat = FieldStatement(name=_ident(rest[0]), range=_meta_range(meta))
        for child in rest[1:]:
            if isinstance(child, _TypeRef):
                stat.type_name = child.text
            elif isinstance(child, Expression):
                stat.initial_value = child
        return stat

    def namespace_decl(self, meta, children):
        return NamespaceStatement(name=children[0], range=_meta_range(meta), body=list(children[1:]))

    def const_decl(self, meta, children):
        return ConstStatement(name=_ident(children[0]), value=children[-1], range=_meta_range(meta))

    def enum_decl(self, meta, children):
        return EnumStatement(name=_ident(children[0]), range=_meta_range(meta), members=list(children[1:]))

    def enum_member(self, meta, children):
        return _ident(children[0])

    def import_stmt(self, meta, children):
        return ImportStatement(path=_unquote(str(children[0])), range=_meta_range(meta))

    def library_stmt(self, meta, children):
        return LibraryStatement(path=_unquote(str(children[0])), range=_meta_range(meta))

    # ── Statements ───────────────────────────────────────────────────

    def block(self, meta, children):
        return Block(statements=list(children), range=_meta_range(meta))

    def assignment(self, meta, children):
        name_tok, op_tok, value = children
        name = _ident(name_tok)
        op = str(op_tok)
        rng = _meta_range(meta)
        if op != "=":
            # a += b  →  a = a + b
            value = BinaryExpression(VariableExpression(name, name.range), op[:-1], value, rng)
        return AssignmentStatement(name=name, value=value, range=rng, operator=op)

    def dotted_set(self, meta, children):
        obj, name_tok, op_tok, value = children
        name = _ident(name_tok)
        rng = _meta_range(meta)
        op = str(op_tok)
        if op != "=":
            target = DottedGetExpression(obj, name, Range.between(obj.range, name.range))
            value = BinaryExpression(target, op[:-1], value, rng)
        return DottedSetStatement(obj=obj, name=name, value=value, range=rng)

    def indexed_set(self, meta, children):
        obj, index, op_tok, value = children
        rng = _meta_range(meta)
        op = str(op_tok)
        if op != "=":
            target = IndexedGetExpression(obj, index, Range.between(obj.range, index.range))
            value = BinaryExpression(target, op[:-1], value, rng)
        return IndexedSetStatement(obj=obj, index=index, value=value, range=rng)

    def increment(self, meta, children):
        return IncrementStatement(value=children[0], operator=str(children[1]), range=_meta_range(meta))

    def call_stmt(self, meta, children):
        call = self.call(meta, children)
        return ExpressionStatement(expression=call, range=call.range)

    def print_stmt(self, meta, children):
        return PrintStatement(expressions=list(children), range=_meta_range(meta))

    def if_stmt(self, meta, children):
        else_branch = children[2] if len(children) > 2 else None
        return IfStatement(condition=children[0], then_branch=children[1],
                           range=_meta_range(meta), else_branch=else_branch)

    elseif_clause = if_stmt

    def else_clause(self, meta, children):
        return children[0]

    def inline_if(self, meta, children):
        stat = children[1]
        else_branch = children[2] if len(children) > 2 else None
        return IfStatement(condition=children[0],
                           then_branch=Block([stat], stat.range),
                           range=_meta_range(meta),
                           else_branch=else_branch,
                           is_inline=True)

    inline_elseif = inline_if

    def inline_else(self, meta, children):
        stat = children[0]
        return Block([stat], stat.range)

    def for_stmt(self, meta, children):
        counter, final_value = children[0], children[1]
        increment = children[2] if len(children) == 4 else None
        return ForStatement(counter=counter, final_value=final_value, body=children[-1],
                            range=_meta_range(meta), increment=increment)

    def for_each_stmt(self, meta, children):
        return ForEachStatement(item=_ident(children[0]), target=children[1],
                                body=children[2], range=_meta_range(meta))

    def while_stmt(self, meta, children):
        return WhileStatement(condition=children[0], body=children[1], range=_meta_range(meta))

    def exit_stmt(self, meta, children):
        loop = "for" if children[0].type == "EXIT_FOR" else "while"
        return ExitStatement(loop=loop, range=_meta_range(meta))

    def return_stmt(self, meta, children):
        return ReturnStatement(range=_meta_range(meta), value=children[0] if children else None)

    def throw_stmt(self, meta, children):
        return ThrowStatement(expression=children[0], range=_meta_range(meta))

    def try_stmt(self, meta, children):
        return TryCatchStatement(try_branch=children[0], range=_meta_range(meta),
                                 catch_statement=children[1])

    def catch_clause(self, meta, children):
        variable = _ident(children[0]) if len(children) > 1 else None
        return CatchStatement(catch_branch=children[-1], range=_meta_range(meta),
                              exception_variable=variable)

    def label_stmt(self, meta, children):
        tok = children[0]
        rng = _tok_range(tok)
        # drop the trailing ':'
        name_range = Range.create(rng.start.line, rng.start.character,
                                  rng.end.line, rng.end.character - 1)
        return LabelStatement(name=Identifier(str(tok)[:-1], name_range), range=rng)

    def goto_stmt(self, meta, children):
        return GotoStatement(label=_ident(children[0]), range=_meta_range(meta))

    def end_stmt(self, meta, children):
        return EndStatement(range=_meta_range(meta))

    def stop_stmt(self, meta, children):
        return StopStatement(range=_meta_range(meta))

    def dim_stmt(self, meta, children):
        return DimStatement(name=_ident(children[0]), dimensions=list(children[1:]), range=_meta_range(meta))

    # ── Expressions ──────────────────────────────────────────────────

    def binary(self, meta, children):
        left, op_tok, right = children
        return BinaryExpression(left, str(op_tok).lower(), right, _meta_range(meta))

    def unary(self, meta, children):
        op_tok, right = children
        return UnaryExpression(str(op_tok).lower(), right, _meta_range(meta))

    def ternary(self, meta, children):
        test, consequent, alternate = children
        return TernaryExpression(test, consequent, alternate, _meta_range(meta))

    def variable(self, meta, children):
        name = _ident(children[0])
        return VariableExpression(name, name.range)

    def string(self, meta, children):
        return LiteralExpression("string", str(children[0]), _tok_range(children[0]))

    def template_string(self, meta, children):
        tok = children[0]
        return TemplateStringExpression(str(tok), _template_expressions(tok), _tok_range(tok))

    def template_expr(self, meta, children):
        return children[0]

    def number(self, meta, children):
        return LiteralExpression("number", str(children[0]), _tok_range(children[0]))

    def boolean(self, meta, children):
        return LiteralExpression("boolean", str(children[0]).lower(), _tok_range(children[0]))

    def invalid(self, meta, children):
        return LiteralExpression("invalid", "invalid", _tok_range(children[0]))

    def grouping(self, meta, children):
        return GroupingExpression(children[0], _meta_range(meta))

    def dotted_get(self, meta, children):
        return DottedGetExpression(children[0], _ident(children[1]), _meta_range(meta))

    def indexed_get(self, meta, children):
        return IndexedGetExpression(children[0], children[1], _meta_range(meta))

    def call(self, meta, children):
        callee, args = children
        if isinstance(callee, VariableExpression):
            callee.is_called = True
        return CallExpression(callee, args, _meta_range(meta))

    def call_args(self, meta, children):
        return list(children)

    def new_expr(self, meta, children):
        names = [c for c in children[1:] if isinstance(c, Token)]
        args = children[-1]
        callee: Expression = VariableExpression(_ident(names[0]), _tok_range(names[0]),
                                                is_called=len(names) == 1)
        for tok in names[1:]:
            callee = DottedGetExpression(callee, _ident(tok), Range.between(callee.range, _tok_range(tok)))
        rng = _meta_range(meta)
        call = CallExpression(callee, args, Range(callee.range.start, rng.end))
        return NewExpression(call, rng)

    def array(self, meta, children):
        return ArrayLiteralExpression(list(children), _meta_range(meta))

    def aa(self, meta, children):
        return AALiteralExpression(list(children), _meta_range(meta))

    def aa_member(self, meta, children):
        key_tok, value = children
        return AAMember(_unquote(str(key_tok)), value)


_BUILDER = _AstBuilder()


# ═══════════════════════════════════════════════════════════════════════
#  Template strings
# ═══════════════════════════════════════════════════════════════════════

def _template_spans(text: str) -> List[Tuple[int, int]]:
    """(start, end) offsets of every `${...}` expression in a template token."""
    spans = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch != "$" or not text.startswith("{", i + 1):
            i += 1
            continue
        start = j = i + 2
        depth = 1
        in_string = False
        while j < len(text):
            c = text[j]
            if in_string:
                in_string = c != '"'
            elif c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    break
            j += 1
        spans.append((start, j))
        i = j + 1
    return spans


def _template_expressions(tok: Token) -> List[Expression]:
    """Parse the embedded expressions of a template string in place.

    Each snippet is padded with newlines and spaces so lark reports the
    positions it has in the file.
    """
    text = str(tok)
    expressions = []
    for start, end in _template_spans(text):
        before = text[:start]
        newlines = before.count("\n")
        line = tok.line - 1 + newlines
        if newlines:
            column = start - before.rfind("\n") - 1
        else:
            column = tok.column - 1 + start
        padded = "\n" * line + " " * column + text[start:end]
        tree = _PARSER.parse(padded, start="template_expr")
        expressions.append(_BUILDER.transform(tree))
    return expressions


# ═══════════════════════════════════════════════════════════════════════
#  Namespaces
# ═══════════════════════════════════════════════════════════════════════

def _assign_namespaces(statements: List[Statement], prefix: Optional[str] = None):
    """Record the enclosing (lower-cased, dotted) namespace on declarations."""
    for stat in statements:
        if isinstance(stat, NamespaceStatement):
            if prefix:
                stat.name = f"{prefix}.{stat.name}"
            _assign_namespaces(stat.body, stat.name.lower())
        elif isinstance(stat, FunctionStatement):
            stat.func.namespace = prefix
        elif isinstance(stat, ClassStatement):
            stat.namespace = prefix
            for method in stat.methods:
                method.func.namespace = prefix
        elif isinstance(stat, (ConstStatement, EnumStatement)):
            stat.namespace = prefix


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def parse_statements(text: str, path: str = "<string>") -> List[Statement]:
    """Parse BrightScript source text into top-level statements."""
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        tree = _PARSER.parse(text, start="start")
    except UnexpectedInput as e:
        line = getattr(e, "line", None)
        column = getattr(e, "column", None)
        if line is not None and line < 1:
            line, column = None, None
        raise BrsSyntaxError(path, _describe(e), line, column) from e
    try:
        statements = _BUILDER.transform(tree)
    except VisitError as e:
        raise BrsSyntaxError(path, f"cannot build syntax tree: {e.orig_exc}") from e
    _assign_namespaces(statements)
    return statements


def parse_source(text: str, path: str = "<string>", pkg_path: Optional[str] = None) -> BrsFile:
    """Parse ``text`` into a BrsFile.  Raises BrsSyntaxError on failure."""
    statements = parse_statements(text, path)
    logger.debug("Parsed %s: %d top-level statement(s)", path, len(statements))
    return BrsFile(path=path, pkg_path=pkg_path or path, source=text, statements=statements)


def parse_file(path: str, pkg_path: str) -> BrsFile:
    """Read and parse a script file from disk."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_source(text, path, pkg_path)


def _describe(e: UnexpectedInput) -> str:
    token = getattr(e, "token", None)
    if token is not None and getattr(token, "type", None) == "$END":
        return "unexpected end of file"
    if token is not None:
        return f"unexpected token {str(token)!r}"
    char = getattr(e, "char", None)
    if char is not None:
        return f"unexpected character {char!r}"
    return "syntax error"

"""
Front-end Tests: BrightScript grammar and AST construction.

Validates that the parser:
  1. Builds functions, parameters and signatures with 0-indexed ranges
  2. Treats keywords case-insensitively
  3. Distinguishes block and inline ``if`` and both ``for`` terminators
  4. Desugars compound assignments into reads
  5. Records namespaces, classes and methods
  6. Accepts multi-line call arguments, arrays and associative arrays
  7. Parses dim, shifts, ``@``, ternary, ``??``, ``?.`` and template strings
  8. Reports malformed input as BrsSyntaxError
"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from brslint.brs_ast import (
    AALiteralExpression, ArrayLiteralExpression, AssignmentStatement, BinaryExpression,
    CallExpression, ClassStatement, DimStatement, DottedGetExpression, ForStatement,
    FunctionStatement, GotoStatement, IfStatement, LabelStatement,
    NamespaceStatement, Position, PrintStatement, Range, TemplateStringExpression,
    TernaryExpression, TryCatchStatement, VariableExpression,
)
from brslint.brs_parser import parse_source
from brslint.errors import BrsSyntaxError


def _body(text: str):
    """Statements of the first function in ``text``."""
    file = parse_source(text)
    return file.function_statements[0].func.body.statements


class TestFunctions(unittest.TestCase):

    def test_sub_declaration(self):
        file = parse_source("sub main()\n  print 1\nend sub\n")
        funcs = file.function_statements
        self.assertEqual(len(funcs), 1)
        self.assertEqual(funcs[0].name.text, "main")
        self.assertEqual(funcs[0].func.kind, "sub")
        self.assertIsNone(funcs[0].func.return_type)

    def test_parameters_and_return_type(self):
        file = parse_source("function add(a as integer, b = 2) as Integer\n  return a + b\nend function\n")
        func = file.function_statements[0].func
        self.assertEqual([p.name.text for p in func.parameters], ["a", "b"])
        self.assertEqual(func.parameters[0].type_name, "integer")
        self.assertIsNotNone(func.parameters[1].default_value)
        self.assertEqual(func.return_type, "integer")

    def test_signature_range_ends_at_return_type(self):
        file = parse_source("function f() as integer\n  return 1\nend function\n")
        func = file.function_statements[0].func
        self.assertEqual(func.signature_range, Range.create(0, 0, 0, 23))

    def test_signature_range_ends_at_paren(self):
        file = parse_source("sub f(x)\nend sub\n")
        func = file.function_statements[0].func
        self.assertEqual(func.signature_range, Range.create(0, 0, 0, 8))

    def test_ranges_are_zero_indexed(self):
        stats = _body("sub main()\n  a = 1\nend sub\n")
        self.assertIsInstance(stats[0], AssignmentStatement)
        self.assertEqual(stats[0].name.range.start, Position(1, 2))
        self.assertEqual(stats[0].name.range.end, Position(1, 3))

    def test_keywords_are_case_insensitive(self):
        stats = _body("SUB Main()\n  IF x THEN\n    Print x\n  END IF\nEND SUB\n")
        self.assertIsInstance(stats[0], IfStatement)
        self.assertIsInstance(stats[0].then_branch.statements[0], PrintStatement)

    def test_multiple_functions_and_comments(self):
        text = (
            "' helpers\n"
            "sub a()\n"
            "end sub\n"
            "\n"
            "rem another one\n"
            "function b()\n"
            "  return 1 ' inline\n"
            "end function\n"
        )
        file = parse_source(text)
        self.assertEqual([f.name.text for f in file.function_statements], ["a", "b"])

    def test_anonymous_functions_are_found(self):
        text = "sub main()\n  cb = function(x)\n    return x\n  end function\n  cb(1)\nend sub\n"
        file = parse_source(text)
        self.assertEqual(len(file.find_functions()), 2)


class TestStatements(unittest.TestCase):

    def test_block_if_else_if_else(self):
        text = (
            "sub main(x)\n"
            "  if x = 1 then\n    a = 1\n"
            "  else if x = 2\n    a = 2\n"
            "  else\n    a = 3\n"
            "  end if\n"
            "end sub\n"
        )
        stat = _body(text)[0]
        self.assertIsInstance(stat, IfStatement)
        self.assertFalse(stat.is_inline)
        self.assertIsInstance(stat.else_branch, IfStatement)
        self.assertIsNotNone(stat.else_branch.else_branch)

    def test_inline_if(self):
        stat = _body("sub main(x)\n  if x then print x else print 0\nend sub\n")[0]
        self.assertIsInstance(stat, IfStatement)
        self.assertTrue(stat.is_inline)
        self.assertIsInstance(stat.then_branch.statements[0], PrintStatement)
        self.assertIsInstance(stat.else_branch.statements[0], PrintStatement)

    def test_for_with_next(self):
        stat = _body("sub main()\n  for i = 0 to 10 step 2\n    print i\n  next\nend sub\n")[0]
        self.assertIsInstance(stat, ForStatement)
        self.assertEqual(stat.counter.name.text, "i")
        self.assertIsNotNone(stat.increment)

    def test_compound_assignment_reads_target(self):
        stat = _body("sub main()\n  total += 1\nend sub\n")[0]
        self.assertIsInstance(stat, AssignmentStatement)
        self.assertEqual(stat.operator, "+=")
        self.assertIsInstance(stat.value, BinaryExpression)
        self.assertEqual(stat.value.operator, "+")
        self.assertIsInstance(stat.value.left, VariableExpression)

    def test_label_and_goto(self):
        stats = _body("sub main()\n  retry:\n  goto retry\nend sub\n")
        self.assertIsInstance(stats[0], LabelStatement)
        self.assertEqual(stats[0].name.text, "retry")
        self.assertIsInstance(stats[1], GotoStatement)

    def test_try_catch(self):
        stat = _body("sub main()\n  try\n    x = 1\n  catch e\n    print e\n  end try\nend sub\n")[0]
        self.assertIsInstance(stat, TryCatchStatement)
        self.assertEqual(stat.catch_statement.exception_variable.text, "e")

    def test_call_marks_callee(self):
        stat = _body("sub main()\n  doWork(1, 2)\nend sub\n")[0]
        self.assertTrue(stat.expression.callee.is_called)

    def test_colon_separates_statements(self):
        stats = _body("sub main()\n  a = 1 : print a\nend sub\n")
        self.assertEqual(len(stats), 2)


class TestDeclarations(unittest.TestCase):

    def test_namespace_functions(self):
        text = (
            "namespace util.strings\n"
            "  function trim(s)\n    return s\n  end function\n"
            "end namespace\n"
        )
        file = parse_source(text)
        self.assertIsInstance(file.statements[0], NamespaceStatement)
        func = file.function_statements[0]
        self.assertIsInstance(func, FunctionStatement)
        self.assertEqual(func.func.namespace, "util.strings")

    def test_class_methods(self):
        text = (
            "class Greeter extends Base\n"
            "  name as string\n"
            "  public function greet() as string\n    return m.name\n  end function\n"
            "end class\n"
        )
        file = parse_source(text)
        cls = file.classes[0]
        self.assertIsInstance(cls, ClassStatement)
        self.assertEqual(cls.parent_name, "Base")
        self.assertEqual(len(cls.methods), 1)
        self.assertTrue(cls.methods[0].func.is_method)

    def test_imports(self):
        file = parse_source('import "pkg:/source/util.bs"\nsub main()\nend sub\n')
        self.assertEqual([i.path for i in file.imports], ["pkg:/source/util.bs"])


class TestMultiLineLiterals(unittest.TestCase):

    def test_call_args_across_lines(self):
        stat = _body("sub main()\n  doWork(\n    1,\n    2\n  )\nend sub\n")[0]
        self.assertIsInstance(stat.expression, CallExpression)
        self.assertEqual(len(stat.expression.args), 2)

    def test_empty_call_with_newline(self):
        stat = _body("sub main()\n  doWork(\n  )\nend sub\n")[0]
        self.assertEqual(stat.expression.args, [])

    def test_array_with_trailing_newline(self):
        stat = _body("sub main()\n  items = [\n    1\n    2,\n    3\n  ]\nend sub\n")[0]
        self.assertIsInstance(stat.value, ArrayLiteralExpression)
        self.assertEqual(len(stat.value.elements), 3)

    def test_aa_with_trailing_newline(self):
        stat = _body('sub main()\n  cfg = {\n    a: 1,\n    b: "x"\n  }\nend sub\n')[0]
        self.assertIsInstance(stat.value, AALiteralExpression)
        self.assertEqual([m.key for m in stat.value.members], ["a", "b"])


class TestExtendedSyntax(unittest.TestCase):

    def test_dim_statement(self):
        stat = _body("sub main()\n  dim grid[3, 4]\nend sub\n")[0]
        self.assertIsInstance(stat, DimStatement)
        self.assertEqual(stat.name.text, "grid")
        self.assertEqual(len(stat.dimensions), 2)

    def test_shift_operators(self):
        stats = _body("sub main()\n  a = 1 << 2\n  b = a >> 1\n  a <<= 1\nend sub\n")
        self.assertEqual(stats[0].value.operator, "<<")
        self.assertEqual(stats[1].value.operator, ">>")
        self.assertEqual(stats[2].value.operator, "<<")

    def test_shift_binds_tighter_than_comparison(self):
        stat = _body("sub main(a)\n  b = a << 1 = 4\nend sub\n")[0]
        self.assertEqual(stat.value.operator, "=")
        self.assertEqual(stat.value.left.operator, "<<")

    def test_attribute_access(self):
        stat = _body("sub main(xml)\n  print xml@name\nend sub\n")[0]
        expr = stat.expressions[0]
        self.assertIsInstance(expr, DottedGetExpression)
        self.assertEqual(expr.name.text, "name")

    def test_ternary(self):
        stat = _body("sub main(flag)\n  x = flag ? 1 : 2\nend sub\n")[0]
        self.assertIsInstance(stat.value, TernaryExpression)
        self.assertIsInstance(stat.value.test, VariableExpression)

    def test_null_coalescing(self):
        stat = _body("sub main(a, b)\n  x = a ?? b\nend sub\n")[0]
        self.assertIsInstance(stat.value, BinaryExpression)
        self.assertEqual(stat.value.operator, "??")

    def test_optional_chaining(self):
        stat = _body("sub main(node)\n  x = node?.title\nend sub\n")[0]
        self.assertIsInstance(stat.value, DottedGetExpression)
        self.assertEqual(stat.value.name.text, "title")

    def test_template_string_expressions(self):
        stat = _body("sub main(name)\n  x = `hello ${name}!`\nend sub\n")[0]
        self.assertIsInstance(stat.value, TemplateStringExpression)
        expr = stat.value.expressions[0]
        self.assertIsInstance(expr, VariableExpression)
        self.assertEqual(expr.range, Range.create(1, 15, 1, 19))

    def test_template_string_without_expressions(self):
        stat = _body("sub main()\n  x = `plain text`\nend sub\n")[0]
        self.assertEqual(stat.value.expressions, [])

    def test_broken_template_expression(self):
        with self.assertRaises(BrsSyntaxError):
            parse_source("sub main()\n  x = `a ${1 +}`\nend sub\n")


class TestSyntaxErrors(unittest.TestCase):

    def test_unterminated_function(self):
        with self.assertRaises(BrsSyntaxError) as ctx:
            parse_source("sub main(\n", "bad.brs")
        self.assertEqual(ctx.exception.path, "bad.brs")

    def test_missing_end_if(self):
        with self.assertRaises(BrsSyntaxError):
            parse_source("sub main(x)\n  if x then\n    print x\nend sub\n")


if __name__ == "__main__":
    unittest.main()

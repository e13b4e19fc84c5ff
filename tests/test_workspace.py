"""
Project-level Tests: WorkspaceIndex, component reader, UsageGraph, fixer, Linter.

Validates that the project-wide pipeline can:
  1. Discover and parse scripts and components, skipping broken files
  2. Build the ``source`` scope and one scope per component
  3. Read component names, includes and child nodes with ranges
  4. Walk the usage graph from main and report unused units once
  5. Apply casing fixes to disk
  6. Run the whole lint over tests/mock_project
  7. Skip the usage check when the entry point cannot be parsed
"""

import os
import sys
import shutil
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_PROJECT = os.path.join(PROJECT_ROOT, "tests", "mock_project")

from brslint.batch_fixer import BatchFixer, apply_edits, get_line_offsets
from brslint.brs_ast import Range
from brslint.brs_parser import parse_source
from brslint.config import LintConfig, resolve_config
from brslint.diagnostics import TextEdit
from brslint.errors import BrsSyntaxError, MissingEntryPointError
from brslint.linter import Linter
from brslint.usage_graph import UsageGraph, component_vertex_name
from brslint.workspace_index import Scope, WorkspaceIndex
from brslint.xml_component import (
    SGNode, XmlComponent, parse_component, resolve_script_uri,
)


def _write(root: str, rel_path: str, content: str):
    path = os.path.join(root, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


class TestWorkspaceIndex(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.index = WorkspaceIndex(MOCK_PROJECT)
        cls.index.build()

    def test_index_is_built(self):
        self.assertTrue(self.index.is_built)

    def test_file_discovery(self):
        summary = self.index.get_summary()
        self.assertEqual(summary["scripts"], 6)
        self.assertEqual(summary["components"], 4)
        self.assertEqual(summary["files_indexed"], 10)
        self.assertEqual(summary["skipped"], 0)

    def test_scopes(self):
        names = [s.name for s in self.index.scopes]
        self.assertEqual(names, [
            "source",
            "components/HomeScreen.xml",
            "components/LegacyDialog.xml",
            "components/MainScene.xml",
            "components/RowItem.xml",
        ])

    def test_source_scope(self):
        scope = self.index.get_scope("source")
        self.assertEqual(sorted(f.pkg_path for f in scope.files), ["source/main.brs", "source/utils.brs"])
        self.assertIn("buildgreeting", scope.callables)
        self.assertIn("createobject", scope.callables)

    def test_component_scope_resolves_relative_uri(self):
        scope = self.index.get_scope("components/HomeScreen.xml")
        self.assertEqual([f.pkg_path for f in scope.files], ["components/HomeScreen.brs"])
        self.assertIn("formattitle", scope.callables)

    def test_find_component(self):
        self.assertEqual(self.index.find_component("mainscene").pkg_path, "components/MainScene.xml")
        self.assertIsNone(self.index.find_component("Missing"))


class TestWorkspaceIndexEdgeCases(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_syntax_error_skips_file(self):
        _write(self.tmpdir, "source/main.brs", "sub main()\nend sub\n")
        _write(self.tmpdir, "source/bad.brs", "sub broken(\n")
        index = WorkspaceIndex(self.tmpdir)
        with self.assertLogs("brslint.workspace_index", level="WARNING"):
            index.build()
        self.assertEqual([s.path for s in index.skipped], ["source/bad.brs"])
        self.assertEqual([f.pkg_path for f in index.get_scope("source").files], ["source/main.brs"])

    def test_inherited_component_scripts(self):
        _write(self.tmpdir, "components/Base.xml",
               '<component name="Base" extends="Group">\n'
               '  <script uri="pkg:/components/Base.brs" />\n'
               '</component>\n')
        _write(self.tmpdir, "components/Base.brs", "function baseHelper()\n  return 1\nend function\n")
        _write(self.tmpdir, "components/Child.xml",
               '<component name="Child" extends="Base">\n'
               '  <script uri="Child.brs" />\n'
               '</component>\n')
        _write(self.tmpdir, "components/Child.brs", "sub init()\n  print baseHelper()\nend sub\n")
        index = WorkspaceIndex(self.tmpdir)
        index.build()
        scope = index.get_scope("components/Child.xml")
        self.assertEqual([f.pkg_path for f in scope.files], ["components/Base.brs", "components/Child.brs"])
        self.assertIn("basehelper", scope.callables)

    def test_imports_join_the_scope(self):
        _write(self.tmpdir, "source/main.bs", 'import "pkg:/lib/strings.bs"\nsub main()\nend sub\n')
        _write(self.tmpdir, "lib/strings.bs", "namespace strings\n  function upper(s)\n    return UCase(s)\n  end function\nend namespace\n")
        index = WorkspaceIndex(self.tmpdir)
        index.build()
        scope = index.get_scope("source")
        self.assertIn("lib/strings.bs", [f.pkg_path for f in scope.files])
        self.assertIn("strings.upper", scope.callables)
        self.assertIn("strings", scope.toplevel)

    def test_missing_root(self):
        with self.assertRaises(FileNotFoundError):
            WorkspaceIndex(os.path.join(self.tmpdir, "nope")).build()


class TestXmlComponent(unittest.TestCase):

    XML = (
        '<?xml version="1.0" encoding="utf-8" ?>\n'
        '<component name="MainScene" extends="Scene">\n'
        '    <script type="text/brightscript" uri="MainScene.brs" />\n'
        '    <children>\n'
        '        <Poster id="bg">\n'
        '            <MarkupList itemComponentName="Tile" />\n'
        '        </Poster>\n'
        '    </children>\n'
        '</component>\n'
    )

    def test_name_and_extends(self):
        xml = parse_component(self.XML, "/p/components/MainScene.xml", "components/MainScene.xml")
        self.assertEqual(xml.name, "MainScene")
        self.assertEqual(xml.extends, "Scene")
        self.assertEqual(xml.name_range, Range.create(1, 17, 1, 26))

    def test_scripts(self):
        xml = parse_component(self.XML, "/p/components/MainScene.xml", "components/MainScene.xml")
        self.assertEqual([s.pkg_path for s in xml.scripts], ["components/MainScene.brs"])

    def test_children(self):
        xml = parse_component(self.XML, "/p/components/MainScene.xml", "components/MainScene.xml")
        nodes = list(xml.iter_nodes())
        self.assertEqual([n.tag for n in nodes], ["Poster", "MarkupList"])
        self.assertEqual(nodes[1].get_attribute("itemcomponentname"), "Tile")
        self.assertEqual(nodes[0].range, Range.create(4, 9, 4, 15))

    def test_malformed_xml(self):
        with self.assertRaises(BrsSyntaxError):
            parse_component("<component name='x'>", "bad.xml", "bad.xml")

    def test_resolve_script_uri(self):
        self.assertEqual(resolve_script_uri("pkg:/source/a.brs", "components/x.xml"), "source/a.brs")
        self.assertEqual(resolve_script_uri("../lib/b.brs", "components/views/x.xml"), "components/lib/b.brs")


class TestUsageGraph(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.index = WorkspaceIndex(MOCK_PROJECT)
        cls.index.build()

    def _graph(self) -> UsageGraph:
        graph = UsageGraph()
        for pkg_path in sorted(self.index.components):
            graph.add_component(self.index.components[pkg_path])
        for scope in self.index.scopes:
            graph.add_scope(scope)
        return graph

    def test_unused_component_and_script(self):
        diagnostics = self._graph().check()
        found = sorted((d.code, d.file) for d in diagnostics)
        self.assertEqual(found, [
            ("LINT4001", "components/LegacyDialog.xml"),
            ("LINT4002", "components/LegacyDialog.brs"),
        ])

    def test_diagnostic_locations(self):
        diagnostics = {d.code: d for d in self._graph().check()}
        self.assertEqual(diagnostics["LINT4001"].range, Range.create(1, 17, 1, 29))
        self.assertEqual(diagnostics["LINT4001"].message,
                         "Component 'components/LegacyDialog.xml' does not seem to be used")
        self.assertEqual(diagnostics["LINT4002"].range, Range.create(0, 0, 1, 0))

    def test_string_literal_reaches_component(self):
        graph = self._graph()
        graph.check()
        self.assertIn(component_vertex_name("MainScene"), graph.walked)
        self.assertIn(component_vertex_name("RowItem"), graph.walked)
        self.assertIn("source/utils.brs", graph.walked)

    def test_missing_entry_point(self):
        graph = UsageGraph()
        graph.add_component(self.index.components["components/MainScene.xml"])
        with self.assertRaises(MissingEntryPointError):
            graph.check()

    def test_cycles_terminate(self):
        a = XmlComponent("a.xml", "components/A.xml", name="A", name_range=Range.create(0, 0, 0, 1),
                         children=[SGNode("B")])
        b = XmlComponent("b.xml", "components/B.xml", name="B", name_range=Range.create(0, 0, 0, 1),
                         children=[SGNode("A")])
        main = parse_source('sub main()\n  print "A"\nend sub\n', "main.brs", "source/main.brs")
        graph = UsageGraph()
        graph.add_component(a)
        graph.add_component(b)
        source = Scope(name="source")
        source.add_file(main)
        graph.add_scope(source)
        self.assertEqual(graph.check(), [])

    def test_rule_off(self):
        graph = UsageGraph(Linter(LintConfig(rules={"unused-code": "off"})).context)
        for pkg_path in sorted(self.index.components):
            graph.add_component(self.index.components[pkg_path])
        for scope in self.index.scopes:
            graph.add_scope(scope)
        self.assertEqual(graph.check(), [])


class TestBatchFixer(unittest.TestCase):

    def test_line_offsets(self):
        self.assertEqual(get_line_offsets("ab\ncd\n"), [0, 3, 6])

    def test_apply_edits_bottom_up(self):
        text = "a = 1\nprint A\nprint A\n"
        edits = [TextEdit(Range.create(1, 6, 1, 7), "a"), TextEdit(Range.create(2, 6, 2, 7), "a")]
        new_text, applied = apply_edits(text, edits)
        self.assertEqual(new_text, "a = 1\nprint a\nprint a\n")
        self.assertEqual(applied, 2)

    def test_overlapping_edit_is_skipped(self):
        edits = [TextEdit(Range.create(0, 0, 0, 4), "x"), TextEdit(Range.create(0, 2, 0, 6), "y")]
        new_text, applied = apply_edits("abcdefgh", edits)
        self.assertEqual(applied, 1)
        self.assertEqual(new_text, "abygh")

    def test_dry_run_leaves_file(self):
        tmpdir = tempfile.mkdtemp()
        try:
            path = os.path.join(tmpdir, "a.brs")
            with open(path, "w", encoding="utf-8") as f:
                f.write("print A\n")
            summary = BatchFixer().apply_fixes_by_file(
                {path: [TextEdit(Range.create(0, 6, 0, 7), "a")]}, dry_run=True)
            self.assertEqual(summary[path], 1)
            with open(path, encoding="utf-8") as f:
                self.assertEqual(f.read(), "print A\n")
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)


class TestLinterOnMockProject(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.result = Linter(resolve_config(MOCK_PROJECT)).run(MOCK_PROJECT, fix=False)

    def test_expected_diagnostics(self):
        found = [(d.file, d.code) for d in self.result.diagnostics]
        self.assertEqual(found, [
            ("components/HomeScreen.brs", "LINT2004"),
            ("components/LegacyDialog.brs", "LINT4002"),
            ("components/LegacyDialog.brs", "LINT1005"),
            ("components/LegacyDialog.xml", "LINT4001"),
            ("components/MainScene.brs", "LINT1004"),
            ("components/RowItem.brs", "LINT1002"),
        ])

    def test_summary(self):
        summary = self.result.summary()
        self.assertEqual(summary["total"], 6)
        self.assertEqual(summary["errors"], 2)
        self.assertEqual(summary["warnings"], 4)
        self.assertEqual(summary["fixable"], 1)
        self.assertEqual(summary["skipped"], 0)

    def test_pending_fix(self):
        edits = self.result.fixes["components/MainScene.brs"]
        self.assertEqual(edits, [TextEdit(Range.create(4, 19, 4, 24), "title")])

    def test_usage_off_by_default(self):
        result = Linter().run(MOCK_PROJECT, fix=False)
        codes = {d.code for d in result.diagnostics}
        self.assertNotIn("LINT4001", codes)
        self.assertIsNone(result.graph)

    def test_ignores(self):
        result = Linter(LintConfig(check_usage=True, ignores=["components/Legacy*"])).run(MOCK_PROJECT, fix=False)
        self.assertFalse(any("Legacy" in d.file for d in result.diagnostics))


class TestLinterEntryPoint(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_broken_main_skips_usage_check(self):
        _write(self.tmpdir, "source/main.brs", "sub main(\n")
        _write(self.tmpdir, "components/Lonely.xml",
               '<component name="Lonely" extends="Group">\n'
               '  <script uri="Lonely.brs" />\n'
               '</component>\n')
        _write(self.tmpdir, "components/Lonely.brs", "sub init()\nend sub\n")
        with self.assertLogs("brslint.linter", level="WARNING") as logs:
            result = Linter(LintConfig(check_usage=True)).run(self.tmpdir, fix=False)
        self.assertTrue(any("source/main.brs" in line for line in logs.output))
        self.assertIsNone(result.graph)
        self.assertEqual(result.broken_entry_point().path, "source/main.brs")
        codes = [d.code for d in result.diagnostics]
        self.assertNotIn("LINT4001", codes)
        self.assertNotIn("LINT4002", codes)

    def test_extended_syntax_in_main(self):
        _write(self.tmpdir, "source/main.brs",
               "sub main()\n  dim grid[3]\n  grid[0] = 1 << 2\n  print `size ${grid.count()}`\nend sub\n")
        result = Linter(LintConfig(check_usage=True)).run(self.tmpdir, fix=False)
        self.assertEqual(result.skipped, [])
        self.assertIsNone(result.broken_entry_point())
        self.assertEqual(result.diagnostics, [])


class TestLinterFix(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.project = os.path.join(self.tmpdir, "channel")
        shutil.copytree(MOCK_PROJECT, self.project)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_fix_renames_and_relint_is_clean(self):
        result = Linter(resolve_config(self.project)).run(self.project, fix=True)
        self.assertEqual(result.applied, {"components/MainScene.brs": 1})
        with open(os.path.join(self.project, "components", "MainScene.brs"), encoding="utf-8") as f:
            self.assertIn("m.home.title = title", f.read())
        again = Linter(resolve_config(self.project)).run(self.project, fix=False)
        self.assertNotIn("LINT1004", [d.code for d in again.diagnostics])


if __name__ == "__main__":
    unittest.main()

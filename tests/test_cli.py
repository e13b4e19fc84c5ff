"""
Command-line Tests: ``brslint`` options, output and exit codes.

Validates that the CLI:
  1. Exits 1 when an error-severity diagnostic is reported, 0 otherwise
  2. Exits 2 when the configuration or project root is unusable
  3. Prints diagnostics as text or as a JSON array
  4. Honours --checkUsage and --fix
"""

import io
import os
import sys
import json
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_PROJECT = os.path.join(PROJECT_ROOT, "tests", "mock_project")

from brslint.cli import EXIT_ERRORS, EXIT_FAILURE, EXIT_OK, main


def _write(root: str, rel_path: str, content: str):
    path = os.path.join(root, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def run_cli(*argv):
    """Run ``main`` and return (exit code, stdout, stderr)."""
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(list(argv))
    return code, out.getvalue(), err.getvalue()


class TestExitCodes(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_errors_exit_one(self):
        code, out, err = run_cli("--rootDir", MOCK_PROJECT)
        self.assertEqual(code, EXIT_ERRORS)
        self.assertIn("components/RowItem.brs:", out)
        self.assertIn("6 diagnostic(s): 2 error(s), 4 warning(s)", err)

    def test_clean_project_exits_zero(self):
        _write(self.tmpdir, "source/main.brs", "sub main()\n  a = 1\n  print a\nend sub\n")
        code, out, _ = run_cli("--rootDir", self.tmpdir)
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(out, "")

    def test_warnings_only_exit_zero(self):
        _write(self.tmpdir, "source/main.brs", "sub main()\n  a = 1\nend sub\n")
        code, out, _ = run_cli("--rootDir", self.tmpdir)
        self.assertEqual(code, EXIT_OK)
        self.assertIn("LINT1005", out)

    def test_missing_root_exits_two(self):
        code, _, _ = run_cli("--rootDir", os.path.join(self.tmpdir, "nope"))
        self.assertEqual(code, EXIT_FAILURE)

    def test_bad_config_exits_two(self):
        _write(self.tmpdir, "source/main.brs", "sub main()\nend sub\n")
        _write(self.tmpdir, "custom.json", "{ not json")
        code, _, _ = run_cli("--rootDir", self.tmpdir,
                             "--lintConfig", os.path.join(self.tmpdir, "custom.json"))
        self.assertEqual(code, EXIT_FAILURE)


class TestOptions(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_json_output(self):
        code, out, _ = run_cli("--rootDir", MOCK_PROJECT, "--json")
        self.assertEqual(code, EXIT_ERRORS)
        entries = json.loads(out)
        self.assertEqual(len(entries), 6)
        first = entries[0]
        self.assertEqual(first["file"], "components/HomeScreen.brs")
        self.assertEqual(first["code"], "LINT2004")
        self.assertEqual(first["severity"], "error")

    def test_check_usage_flag(self):
        _write(self.tmpdir, "source/main.brs", "sub main()\nend sub\n")
        _write(self.tmpdir, "components/Lonely.xml",
               '<component name="Lonely" extends="Group">\n</component>\n')
        code, out, _ = run_cli("--rootDir", self.tmpdir)
        self.assertNotIn("LINT4001", out)
        code, out, _ = run_cli("--rootDir", self.tmpdir, "--checkUsage")
        self.assertIn("LINT4001", out)
        self.assertEqual(code, EXIT_OK)

    def test_check_usage_without_main_exits_two(self):
        _write(self.tmpdir, "source/utils.brs", "sub helper()\nend sub\n")
        code, _, _ = run_cli("--rootDir", self.tmpdir, "--checkUsage")
        self.assertEqual(code, EXIT_FAILURE)

    def test_fix_rewrites_files(self):
        project = os.path.join(self.tmpdir, "channel")
        shutil.copytree(MOCK_PROJECT, project)
        code, _, err = run_cli("--rootDir", project, "--fix")
        self.assertIn("fixed 1 issue(s) in 1 file(s)", err)
        with open(os.path.join(project, "components", "MainScene.brs"), encoding="utf-8") as f:
            self.assertIn("m.home.title = title", f.read())
        self.assertEqual(code, EXIT_ERRORS)


if __name__ == "__main__":
    unittest.main()

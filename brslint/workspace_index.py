"""
Workspace Index: project-wide view of a Roku channel.

Scans a project root for scripts (.brs/.bs) and SceneGraph components
(.xml), parses each once and groups the scripts into scopes:

  • ``source``            every script under ``source/``
  • one per component     the scripts its XML includes (and those of the
                            components it extends), plus BrighterScript
                            ``import`` closures

Each scope exposes the names it makes visible to its files:

  • callables  functions (``name`` and ``namespace.name``) + built-ins
  • toplevel   namespaces, classes, enums and constants

Files that do not parse are recorded in ``skipped`` and left out of every
scope.
"""

import os
import logging
from typing import Dict, List, Set, Optional
from dataclasses import dataclass, field

from brslint.brs_ast import (
    BrsFile, ClassStatement, ConstStatement, EnumStatement, FunctionStatement,
    NamespaceStatement, iter_declarations,
)
from brslint.brs_parser import parse_file
from brslint.errors import BrsSyntaxError
from brslint.xml_component import XmlComponent, parse_component_file, resolve_script_uri

logger = logging.getLogger(__name__)

_SCRIPT_EXTENSIONS = {".brs", ".bs"}
_XML_EXTENSIONS = {".xml"}

_SKIP_DIRS = {
    ".git", "out", "dist", "build", "__pycache__", "node_modules",
    ".vscode", ".idea", "venv", ".roku-deploy-staging",
}

SOURCE_SCOPE = "source"

# Global functions provided by the BrightScript runtime (lower-cased)
BUILTIN_FUNCTIONS = frozenset(name.lower() for name in (
    "CreateObject", "Type", "GetGlobalAA", "Box", "Run", "Eval",
    "GetLastRunCompileError", "GetLastRunRuntimeError", "Sleep", "Wait",
    "GetInterface", "FindMemberFunction", "UpTime", "RebootSystem",
    "ListDir", "ReadAsciiFile", "WriteAsciiFile", "CopyFile", "MoveFile",
    "MatchFiles", "DeleteFile", "DeleteDirectory", "CreateDirectory",
    "FormatDrive", "StrToI", "RunGarbageCollector", "ParseJson", "FormatJson",
    "Tr", "Asc", "Chr", "Instr", "LCase", "Left", "Len", "Mid", "Right",
    "Str", "StrI", "String", "StringI", "UCase", "Val", "Substitute",
    "Abs", "Atn", "Cdbl", "Cint", "Cos", "Csng", "Exp", "Fix", "Int", "Log",
    "Rnd", "Sgn", "Sin", "Sqr", "Tan",
))


def _norm_path(p: str) -> str:
    """Normalise a path to forward slashes."""
    return p.replace("\\", "/")


# ═══════════════════════════════════════════════════════════════════════
#  Data types
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Scope:
    """A set of scripts loaded together at runtime."""
    name: str                                     # "source" or the component's pkg path
    files: List[BrsFile] = field(default_factory=list)
    callables: Set[str] = field(default_factory=set)
    toplevel: Set[str] = field(default_factory=set)
    xml: Optional[XmlComponent] = None

    def add_file(self, file: BrsFile):
        if any(f.path == file.path for f in self.files):
            return
        self.files.append(file)
        self.callables |= collect_callables(file)
        self.toplevel |= collect_toplevel(file)


@dataclass
class SkippedFile:
    path: str               # pkg path
    reason: str


def collect_callables(file: BrsFile) -> Set[str]:
    """Lower-cased function names a file declares, plain and namespace-qualified."""
    names: Set[str] = set()
    for decl in iter_declarations(file.statements):
        if isinstance(decl, FunctionStatement):
            name = decl.name.text.lower()
            namespace = decl.func.namespace
            names.add(f"{namespace}.{name}" if namespace else name)
    return names


def collect_toplevel(file: BrsFile) -> Set[str]:
    """Lower-cased namespaces, classes, enums and constants a file declares."""
    names: Set[str] = set()
    for decl in iter_declarations(file.statements):
        if isinstance(decl, NamespaceStatement):
            parts = decl.name.lower().split(".")
            for i in range(1, len(parts) + 1):
                names.add(".".join(parts[:i]))
        elif isinstance(decl, (ClassStatement, EnumStatement, ConstStatement)):
            name = decl.name.text.lower()
            names.add(f"{decl.namespace}.{name}" if decl.namespace else name)
    return names


# ═══════════════════════════════════════════════════════════════════════
#  WorkspaceIndex: Main class
# ═══════════════════════════════════════════════════════════════════════

class WorkspaceIndex:
    """
    Scans a project to build its scripts, components and scopes.

    Usage:
        index = WorkspaceIndex("/path/to/channel")
        index.build()
        for scope in index.scopes:
            ...
    """

    def __init__(self, workspace_root: str):
        self.workspace_root = workspace_root
        self.scripts: Dict[str, BrsFile] = {}           # lower pkg path → file
        self.components: Dict[str, XmlComponent] = {}   # pkg path → component
        self.skipped: List[SkippedFile] = []
        self.scopes: List[Scope] = []
        self._files: List[str] = []
        self._built = False

    @property
    def is_built(self) -> bool:
        return self._built

    def build(self):
        """Scan workspace, parse every file and build the scopes."""
        if not os.path.isdir(self.workspace_root):
            raise FileNotFoundError(f"Project root not found: {self.workspace_root}")

        self._files = self._discover_files()
        logger.info("WorkspaceIndex: found %d files to index", len(self._files))

        for rel_path in self._files:
            self._index_file(rel_path)

        self.scopes = self._build_scopes()
        self._built = True
        logger.info(
            "WorkspaceIndex built: %d scripts, %d components, %d scopes, %d skipped",
            len(self.scripts), len(self.components), len(self.scopes), len(self.skipped),
        )

    def get_summary(self) -> Dict:
        return {
            "files_indexed": len(self._files),
            "scripts": len(self.scripts),
            "components": len(self.components),
            "scopes": len(self.scopes),
            "skipped": len(self.skipped),
        }

    # ────────────────────────────────────────────────────────────────
    #  Queries
    # ────────────────────────────────────────────────────────────────

    def get_script(self, pkg_path: str) -> Optional[BrsFile]:
        return self.scripts.get(_norm_path(pkg_path).lower())

    def get_scope(self, name: str) -> Optional[Scope]:
        for scope in self.scopes:
            if scope.name == name:
                return scope
        return None

    def find_component(self, name: str) -> Optional[XmlComponent]:
        """Component declared as ``<component name="...">`` (case-insensitive)."""
        key = name.lower()
        for component in self.components.values():
            if component.name and component.name.lower() == key:
                return component
        return None

    # ────────────────────────────────────────────────────────────────
    #  Internal: discovery and parsing
    # ────────────────────────────────────────────────────────────────

    def _discover_files(self) -> List[str]:
        """Find all script and component files in the workspace."""
        files = []
        for root, dirs, filenames in os.walk(self.workspace_root):
            dirs[:] = [d for d in dirs if d not in _SKIP_DIRS]
            for fname in filenames:
                ext = os.path.splitext(fname)[1].lower()
                if ext in _SCRIPT_EXTENSIONS or ext in _XML_EXTENSIONS:
                    rel = _norm_path(os.path.relpath(os.path.join(root, fname), self.workspace_root))
                    files.append(rel)
        return sorted(files)

    def _index_file(self, rel_path: str):
        """Parse a single file; a syntax error skips it with a warning."""
        full_path = os.path.join(self.workspace_root, rel_path)
        ext = os.path.splitext(rel_path)[1].lower()
        try:
            if ext in _XML_EXTENSIONS:
                self.components[rel_path] = parse_component_file(full_path, rel_path)
            else:
                self.scripts[rel_path.lower()] = parse_file(full_path, rel_path)
        except BrsSyntaxError as e:
            logger.warning("Skipping %s: %s", rel_path, e)
            self.skipped.append(SkippedFile(rel_path, str(e)))
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read %s: %s", rel_path, e)
            self.skipped.append(SkippedFile(rel_path, f"cannot read file: {e}"))

    # ────────────────────────────────────────────────────────────────
    #  Internal: scopes
    # ────────────────────────────────────────────────────────────────

    def _new_scope(self, name: str, xml: Optional[XmlComponent] = None) -> Scope:
        scope = Scope(name=name, xml=xml)
        scope.callables |= BUILTIN_FUNCTIONS
        return scope

    def _build_scopes(self) -> List[Scope]:
        scopes: List[Scope] = []

        source = self._new_scope(SOURCE_SCOPE)
        for key in sorted(self.scripts):
            if key.startswith(SOURCE_SCOPE + "/"):
                self._add_with_imports(source, self.scripts[key])
        scopes.append(source)

        for pkg_path in sorted(self.components):
            xml = self.components[pkg_path]
            if xml.name is None:
                continue
            scope = self._new_scope(pkg_path, xml)
            for script_pkg_path in self._component_scripts(xml, set()):
                file = self.get_script(script_pkg_path)
                if file is None:
                    logger.debug("%s: script '%s' not found", pkg_path, script_pkg_path)
                    continue
                self._add_with_imports(scope, file)
            scopes.append(scope)
        return scopes

    def _component_scripts(self, xml: XmlComponent, seen: Set[str]) -> List[str]:
        """Scripts of ``xml`` and of the components it extends (parents first)."""
        if xml.pkg_path in seen:
            return []
        seen.add(xml.pkg_path)
        scripts: List[str] = []
        if xml.extends:
            parent = self.find_component(xml.extends)
            if parent is not None:
                scripts.extend(self._component_scripts(parent, seen))
        scripts.extend(s.pkg_path for s in xml.scripts)
        return scripts

    def _add_with_imports(self, scope: Scope, file: BrsFile):
        pending = [file]
        while pending:
            current = pending.pop()
            if any(f.path == current.path for f in scope.files):
                continue
            scope.add_file(current)
            for imp in current.imports:
                imported = self.get_script(resolve_script_uri(imp.path, current.pkg_path))
                if imported is None:
                    logger.debug("%s: import '%s' not found", current.pkg_path, imp.path)
                    continue
                pending.append(imported)

"""
Usage Graph: dead component / dead script detection.

Vertices:
  • components  → ``'"' + name.lower() + '"'`` (quoted, never collides with a path)
  • scripts     → lower-cased forward-slash package path
  • ``source``  → the main scope; the entry script points at it

Edges (a "uses" relation):
  • component → parent component, child node tags, ``itemComponentName``
  • scope owner (component or ``source``) → each script of the scope
  • script → component whose quoted name appears as a string literal

``check()`` walks from ``source/main.brs`` (or ``.bs``) and reports every
vertex with an owning file that was not reached.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple, Union
from dataclasses import dataclass, field

from brslint.brs_ast import (
    BrsFile, Expression, LiteralExpression, Range, walk_expressions, walk_statements,
)
from brslint.config import LintContext
from brslint.diagnostics import Diagnostic, UnusedCode
from brslint.errors import MissingEntryPointError
from brslint.workspace_index import SOURCE_SCOPE, Scope
from brslint.xml_component import SGNode, XmlComponent

logger = logging.getLogger(__name__)

ENTRY_POINTS = ("source/main.brs", "source/main.bs")

# SceneGraph components provided by the firmware
BUILTIN_COMPONENTS = frozenset((
    "animation", "busyspinner", "buttongroup", "channelstore", "checklist", "colorfieldinterpolator",
    "contentnode", "dialog", "dynamiccustomkeyboard", "dynamickeyboard", "dynamickeygrid",
    "dynamicminikeyboard", "dynamicpinpad", "floatfieldinterpolator", "font", "group", "keyboard",
    "keyboarddialog", "label", "labellist", "layoutgroup", "markupgrid", "markuplist", "maskgroup",
    "minikeyboard", "node", "parallelanimation", "pindialog", "pinpad", "poster", "progressdialog",
    "radiobuttonlist", "rectangle", "rowlist", "scene", "scrollabletext", "scrollinglabel",
    "sequentialanimation", "simplelabel", "standarddialog", "standardkeyboarddialog",
    "standardmessagedialog", "standardpinpaddialog", "standardprogressdialog", "targetgroup",
    "targetlist", "targetset", "task", "texteditbox", "timegrid", "timer", "vector2dfieldinterpolator",
    "video", "voicetexteditbox", "zoomrowlist",
))

_SCRIPT_RANGE = Range.create(0, 0, 1, 0)


def component_vertex_name(name: str) -> str:
    return f'"{name.lower()}"'


def script_vertex_name(pkg_path: str) -> str:
    return pkg_path.replace("\\", "/").lower()


# ═══════════════════════════════════════════════════════════════════════
#  Data types
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class Edge:
    name: str                       # target vertex
    range: Optional[Range] = None   # None for structurally implied edges
    file: Optional[str] = None      # pkg path of the originating file


@dataclass
class Vertice:
    name: str
    file: Optional[Union[XmlComponent, BrsFile]] = None
    edges: List[Edge] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════
#  Graph
# ═══════════════════════════════════════════════════════════════════════

class UsageGraph:
    """
    Usage:
        graph = UsageGraph(context)
        for xml in components: graph.add_component(xml)
        for scope in scopes:   graph.add_scope(scope)
        diagnostics = graph.check()
    """

    def __init__(self, context: Optional[LintContext] = None):
        self.context = context or LintContext()
        self.vertices: List[Vertice] = []
        self.map: Dict[str, Vertice] = {}
        self.main: Optional[Vertice] = None
        self.walked: Set[str] = set()
        self._parsed: Set[str] = set()
        # script vertex → candidate string literals, resolved in check()
        self._literals: Dict[str, List[Tuple[str, Range]]] = {}

    def _vertex(self, name: str) -> Vertice:
        v = self.map.get(name)
        if v is None:
            v = Vertice(name)
            self.vertices.append(v)
            self.map[name] = v
        return v

    # ────────────────────────────────────────────────────────────────
    #  Registration
    # ────────────────────────────────────────────────────────────────

    def add_component(self, xml: XmlComponent):
        """Register a component vertex and its structural edges."""
        if not xml.name:
            return
        v = self._vertex(component_vertex_name(xml.name))
        v.file = xml
        if xml.extends:
            v.edges.append(Edge(component_vertex_name(xml.extends), xml.extends_range, xml.pkg_path))
        self._walk_children(v, xml.children, xml)

    def _walk_children(self, v: Vertice, children: List[SGNode], xml: XmlComponent):
        for node in children:
            v.edges.append(Edge(component_vertex_name(node.tag), node.range, xml.pkg_path))
            item_component = node.get_attribute("itemComponentName")
            if item_component:
                v.edges.append(Edge(component_vertex_name(item_component), node.range, xml.pkg_path))
            self._walk_children(v, node.children, xml)

    def add_scope(self, scope: Scope):
        """Link the scope owner to its scripts; register each script once."""
        if scope.name == SOURCE_SCOPE:
            owner = self._vertex(SOURCE_SCOPE)
        else:
            if scope.xml is None:
                logger.debug("Scope XML component not found: %s", scope.name)
                return
            if not scope.xml.name:
                logger.debug("Component not found: %s", scope.name)
                return
            owner = self._vertex(component_vertex_name(scope.xml.name))

        for file in scope.files:
            name = script_vertex_name(file.pkg_path)
            owner.edges.append(Edge(name, None, file.pkg_path))
            if name in self._parsed:
                continue
            self._parsed.add(name)
            fv = self._vertex(name)
            fv.file = file
            if name in ENTRY_POINTS:
                self.main = fv
                # main is loaded with every other script of the source scope
                fv.edges.append(Edge(SOURCE_SCOPE, None, file.pkg_path))
            self._literals[name] = _string_literals(file)

    # ────────────────────────────────────────────────────────────────
    #  Walk
    # ────────────────────────────────────────────────────────────────

    def _resolve_literals(self):
        for name, literals in self._literals.items():
            fv = self.map[name]
            for text, range in literals:
                if text in self.map:
                    fv.edges.append(Edge(text, range, fv.file.pkg_path))
        self._literals = {}

    def _walk(self, start: str):
        stack = [start]
        while stack:
            name = stack.pop()
            if name in self.walked:
                continue
            self.walked.add(name)
            v = self.map.get(name)
            if v is None:
                logger.debug("Unknown component: %s", name)
                continue
            stack.extend(reversed([e.name for e in v.edges]))

    def check(self) -> List[Diagnostic]:
        """Walk from the entry script and report unreached units."""
        if self.main is None:
            raise MissingEntryPointError()
        self._resolve_literals()
        self.walked = {component_vertex_name(n) for n in BUILTIN_COMPONENTS}
        self._walk(self.main.name)

        diagnostics: List[Diagnostic] = []
        for v in self.vertices:
            if v.name in self.walked or v.file is None:
                continue
            if isinstance(v.file, BrsFile):
                diagnostic = self.context.create_diagnostic(
                    UnusedCode.UNUSED_SCRIPT,
                    f"Script '{v.file.pkg_path}' does not seem to be used",
                    _SCRIPT_RANGE, v.file.pkg_path)
            elif v.file.name_range is not None:
                diagnostic = self.context.create_diagnostic(
                    UnusedCode.UNUSED_COMPONENT,
                    f"Component '{v.file.pkg_path}' does not seem to be used",
                    v.file.name_range, v.file.pkg_path)
            else:
                continue
            if diagnostic is not None:
                diagnostics.append(diagnostic)
        logger.info("Usage graph: %d vertices, %d reached, %d unused",
                    len(self.vertices), len(self.walked & set(self.map)), len(diagnostics))
        return diagnostics

    def get_summary(self) -> Dict:
        return {
            "vertices": len(self.vertices),
            "components": len([v for v in self.vertices if isinstance(v.file, XmlComponent)]),
            "scripts": len([v for v in self.vertices if isinstance(v.file, BrsFile)]),
            "edges": sum(len(v.edges) for v in self.vertices),
            "reached": len(self.walked & set(self.map)),
        }


def _string_literals(file: BrsFile) -> List[Tuple[str, Range]]:
    """Lower-cased non-empty string literals found in the file's functions."""
    found: List[Tuple[str, Range]] = []

    def scan(expr: Expression):
        for node, _ in walk_expressions(expr):
            if isinstance(node, LiteralExpression) and node.kind == "string" and node.text != '""':
                found.append((node.text.lower(), node.range))

    for func in file.find_functions():
        for param in func.parameters:
            if param.default_value is not None:
                scan(param.default_value)
        for stat in walk_statements(func.body):
            for child in stat.children():
                if isinstance(child, Expression):
                    scan(child)
    return found

"""
SceneGraph XML component reader.

Reads the parts of a component file the usage graph needs:

  • ``<component name="..." extends="...">``
  • ``<script uri="..."/>`` includes, resolved to package paths
  • the ``<children>`` node tree (tag names, ``itemComponentName``)

ElementTree carries no source positions, so ranges are recovered from the
raw text: the component name from its attribute, child tags by scanning
forward for each ``<Tag`` in document order.
"""

import bisect
import logging
import posixpath
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from brslint.brs_ast import Position, Range
from brslint.batch_fixer import get_line_offsets
from brslint.errors import BrsSyntaxError

logger = logging.getLogger(__name__)

_COMPONENT_TAG_RE = re.compile(r"<\s*component\b", re.IGNORECASE)
_ATTR_RE_TEMPLATE = r"""\b{name}\s*=\s*(["'])(.*?)\1"""


@dataclass
class SGNode:
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)   # keys lower-cased
    range: Optional[Range] = None                              # range of the tag name
    children: List["SGNode"] = field(default_factory=list)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name.lower())


@dataclass
class ScriptInclude:
    uri: str
    pkg_path: str           # resolved, posix, relative to the project root


@dataclass
class XmlComponent:
    path: str
    pkg_path: str
    name: Optional[str] = None
    name_range: Optional[Range] = None
    extends: Optional[str] = None
    extends_range: Optional[Range] = None
    scripts: List[ScriptInclude] = field(default_factory=list)
    children: List[SGNode] = field(default_factory=list)

    def iter_nodes(self):
        """All child nodes, depth first."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class _Locator:
    """Offset → position for one text."""

    def __init__(self, text: str):
        self.text = text
        self.offsets = get_line_offsets(text)

    def range(self, start: int, end: int) -> Range:
        return Range(self._position(start), self._position(end))

    def _position(self, offset: int) -> Position:
        line = bisect.bisect_right(self.offsets, offset) - 1
        return Position(line, offset - self.offsets[line])


def resolve_script_uri(uri: str, component_pkg_path: str) -> str:
    """``pkg:/a/b.brs`` → ``a/b.brs``; relative URIs resolve against the XML's folder."""
    uri = uri.strip().replace("\\", "/")
    lowered = uri.lower()
    if lowered.startswith("pkg:/"):
        return posixpath.normpath(uri[5:].lstrip("/"))
    base = posixpath.dirname(component_pkg_path)
    return posixpath.normpath(posixpath.join(base, uri))


def parse_component(text: str, path: str, pkg_path: str) -> XmlComponent:
    """Parse a component file.  Raises BrsSyntaxError on malformed XML."""
    try:
        root = ET.fromstring(text.encode("utf-8"))
    except ET.ParseError as e:
        line, column = e.position if hasattr(e, "position") else (None, None)
        raise BrsSyntaxError(path, f"invalid XML: {e}", line, column) from e

    component = XmlComponent(path=path, pkg_path=pkg_path)
    if root.tag.lower() != "component":
        logger.debug("%s is not a SceneGraph component (root <%s>)", pkg_path, root.tag)
        return component

    locator = _Locator(text)
    attrs = {k.lower(): v for k, v in root.attrib.items()}
    component.name = attrs.get("name")
    component.extends = attrs.get("extends")
    component.name_range = _attribute_range(text, locator, "name")
    component.extends_range = _attribute_range(text, locator, "extends")

    for element in root:
        tag = element.tag.lower()
        if tag == "script":
            uri = {k.lower(): v for k, v in element.attrib.items()}.get("uri")
            if uri:
                component.scripts.append(ScriptInclude(uri, resolve_script_uri(uri, pkg_path)))
        elif tag == "children":
            component.children = [_build_node(child) for child in element]

    _locate_nodes(component, text, locator)
    return component


def parse_component_file(path: str, pkg_path: str) -> XmlComponent:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_component(text, path, pkg_path)


# ═══════════════════════════════════════════════════════════════════════
#  Internals
# ═══════════════════════════════════════════════════════════════════════

def _build_node(element: ET.Element) -> SGNode:
    return SGNode(
        tag=element.tag,
        attributes={k.lower(): v for k, v in element.attrib.items()},
        children=[_build_node(child) for child in element],
    )


def _attribute_range(text: str, locator: _Locator, name: str) -> Optional[Range]:
    """Range of the value of attribute ``name`` on the ``<component>`` tag."""
    tag = _COMPONENT_TAG_RE.search(text)
    if not tag:
        return None
    tag_end = text.find(">", tag.end())
    if tag_end < 0:
        tag_end = len(text)
    attr = re.compile(_ATTR_RE_TEMPLATE.format(name=name), re.IGNORECASE | re.DOTALL)
    m = attr.search(text, tag.end(), tag_end)
    if not m:
        return None
    return locator.range(m.start(2), m.end(2))


def _locate_nodes(component: XmlComponent, text: str, locator: _Locator):
    children = re.search(r"<\s*children\b", text, re.IGNORECASE)
    offset = children.end() if children else 0
    for node in component.iter_nodes():
        m = re.compile(r"<\s*(" + re.escape(node.tag) + r")\b").search(text, offset)
        if not m:
            continue
        node.range = locator.range(m.start(1), m.end(1))
        offset = m.end()

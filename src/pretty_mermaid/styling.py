"""
Post-render styling pipeline.

Re-skins an engine-generated SVG to match a ``ThemeOverride`` by matching
elements on structural role (node shape, edge path, label, marker) instead
of identity, so it works for documents of any size and naming.

Matching is done on ``NodeView`` objects (tag, classes, parent chain) and
knows nothing about ElementTree; only the final attribute writes touch the
concrete document.  Applying the same theme twice is a no-op.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from pretty_mermaid.models import SvgDocument, class_list, local_name, set_style_property
from pretty_mermaid.theme import ThemeOverride

logger = logging.getLogger(__name__)

SHADOW_FILTER_ID = "pretty-shadow"

NODE_SHAPE_TAGS = frozenset({"rect", "circle", "ellipse", "polygon"})
DEFAULT_FILL_TAGS = frozenset({"rect", "polygon"})


# ---------------------------------------------------------------------------
# Tree view
# ---------------------------------------------------------------------------

@dataclass
class NodeView:
    """Representation-independent view of one document node."""
    tag: str
    classes: frozenset[str] = frozenset()
    parent: Optional[NodeView] = None
    element: Any = field(default=None, repr=False, compare=False)

    def ancestors(self) -> Iterator[NodeView]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def has_ancestor(self, *, tag: Optional[str] = None, cls: Optional[str] = None) -> bool:
        for node in self.ancestors():
            if tag is not None and node.tag != tag:
                continue
            if cls is not None and cls not in node.classes:
                continue
            return True
        return False


def walk(root: ET.Element) -> Iterator[NodeView]:
    """Depth-first pre-order traversal yielding a view per element."""
    stack: list[tuple[ET.Element, Optional[NodeView]]] = [(root, None)]
    while stack:
        el, parent = stack.pop()
        tag = local_name(el.tag)
        if not tag:
            continue
        view = NodeView(tag=tag, classes=class_list(el), parent=parent, element=el)
        yield view
        for child in reversed(list(el)):
            stack.append((child, view))


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class Category(Enum):
    """Structural roles, in the order their styles are applied."""
    NODE_SHAPE = "node_shape"
    DEFAULT_NODE_SHAPE = "default_node_shape"
    HTML_LABEL = "html_label"
    TEXT = "text"
    EDGE_PATH = "edge_path"
    MARKER = "marker"
    NODE_GROUP = "node_group"


def is_node_group(node: NodeView) -> bool:
    return node.tag == "g" and "node" in node.classes


def is_node_shape(node: NodeView) -> bool:
    return node.tag in NODE_SHAPE_TAGS and any(is_node_group(a) for a in node.ancestors())


def is_default_node_shape(node: NodeView) -> bool:
    """Direct rect/polygon child of a node group tagged ``default``."""
    parent = node.parent
    return (
        node.tag in DEFAULT_FILL_TAGS
        and parent is not None
        and is_node_group(parent)
        and "default" in parent.classes
    )


def is_html_label(node: NodeView) -> bool:
    if node.classes & {"nodeLabel", "label"}:
        return True
    return node.tag == "span" and node.has_ancestor(cls="edgeLabel")


def is_text(node: NodeView) -> bool:
    return node.tag == "text"


def is_edge_path(node: NodeView) -> bool:
    if "flowchart-link" in node.classes:
        return True
    return "path" in node.classes and node.has_ancestor(cls="edgePath")


def is_marker(node: NodeView) -> bool:
    if "marker" in node.classes:
        return True
    return node.tag == "path" and node.has_ancestor(tag="marker")


PREDICATES = {
    Category.NODE_SHAPE: is_node_shape,
    Category.DEFAULT_NODE_SHAPE: is_default_node_shape,
    Category.HTML_LABEL: is_html_label,
    Category.TEXT: is_text,
    Category.EDGE_PATH: is_edge_path,
    Category.MARKER: is_marker,
    Category.NODE_GROUP: is_node_group,
}


def classify(node: NodeView) -> list[Category]:
    """Return every category *node* belongs to, in application order."""
    return [cat for cat, pred in PREDICATES.items() if pred(node)]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass
class StyleReport:
    """How many elements were styled per category."""
    counts: Counter = field(default_factory=Counter)
    filter_inserted: bool = False

    def __getitem__(self, category: Category) -> int:
        return self.counts[category]


def _style_element(el: ET.Element, category: Category, theme: ThemeOverride) -> None:
    if category is Category.NODE_SHAPE:
        if local_name(el.tag) == "rect":
            el.set("rx", str(theme.border_radius))
            el.set("ry", str(theme.border_radius))
        el.set("stroke", theme.border_color)
    elif category is Category.DEFAULT_NODE_SHAPE:
        el.set("fill", theme.secondary_fill)
    elif category is Category.HTML_LABEL:
        set_style_property(el, "color", theme.text_color)
    elif category is Category.TEXT:
        el.set("fill", theme.text_color)
    elif category is Category.EDGE_PATH:
        el.set("stroke", theme.edge_color)
    elif category is Category.MARKER:
        el.set("fill", theme.edge_color)
        el.set("stroke", theme.edge_color)
    elif category is Category.NODE_GROUP:
        set_style_property(el, "filter", f"url(#{SHADOW_FILTER_ID})")


def ensure_shadow_filter(doc: SvgDocument) -> bool:
    """Insert the shared drop-shadow filter once.  Returns True if inserted."""
    defs = next(doc.iter("defs"), None)
    if defs is None:
        defs = ET.Element(doc.qname("defs"))
        doc.root.insert(0, defs)
    for el in defs.iter():
        if el.get("id") == SHADOW_FILTER_ID:
            return False
    filt = ET.SubElement(defs, doc.qname("filter"), attrib={
        "id": SHADOW_FILTER_ID,
        "x": "-20%",
        "y": "-20%",
        "width": "140%",
        "height": "140%",
    })
    ET.SubElement(filt, doc.qname("feDropShadow"), attrib={
        "dx": "0",
        "dy": "2",
        "stdDeviation": "3",
        "flood-opacity": "0.1",
    })
    return True


def apply_theme(doc: SvgDocument, theme: ThemeOverride) -> StyleReport:
    """Re-skin *doc* in place to match *theme*.

    Missing categories are skipped silently.  Only attributes change, apart
    from the shared shadow filter which is added at most once.
    """
    report = StyleReport()

    set_style_property(doc.root, "max-width", "100%")
    set_style_property(doc.root, "height", "auto")

    # Classify before mutating so the new <defs> is never visited.
    matches = [(view, classify(view)) for view in walk(doc.root)]
    for view, categories in matches:
        for category in categories:
            _style_element(view.element, category, theme)
            report.counts[category] += 1

    report.filter_inserted = ensure_shadow_filter(doc)
    logger.debug(
        "Styled document %s: %s",
        doc.diagram_id or "<anonymous>",
        {c.value: n for c, n in report.counts.items()},
    )
    return report

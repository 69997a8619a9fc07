"""
Core SVG document model for rendered diagrams.

Wraps an ElementTree ``<svg>`` root with the operations the styling and
export pipelines need: parsing, deep cloning, serialization with explicit
namespace declarations, and content bounds.
"""

from __future__ import annotations

import copy
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterator, Optional


SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def local_name(tag: object) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    if not isinstance(tag, str):
        # Comments and processing instructions
        return ""
    return tag.rsplit("}", 1)[-1]


def class_list(el: ET.Element) -> frozenset[str]:
    return frozenset(el.get("class", "").split())


def _parse_length(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    m = re.match(r"^\s*(-?[\d.]+)\s*(px)?\s*$", value)
    if not m:
        return None
    return float(m.group(1))


# ---------------------------------------------------------------------------
# Inline style builder
# ---------------------------------------------------------------------------

class InlineStyle:
    """Editable view of a CSS ``style`` attribute (``key: value; ...``)."""

    def __init__(self, raw: str = "") -> None:
        self._parts: dict[str, str] = {}
        if raw:
            self._parse(raw)

    def _parse(self, raw: str) -> None:
        tokens = [t.strip() for t in raw.split(";") if t.strip()]
        for tok in tokens:
            if ":" in tok:
                k, v = tok.split(":", 1)
                self._parts[k.strip()] = v.strip()

    def get(self, key: str) -> Optional[str]:
        return self._parts.get(key)

    def set(self, key: str, value: str) -> InlineStyle:
        self._parts[key] = value
        return self

    def build(self) -> str:
        return "; ".join(f"{k}: {v}" for k, v in self._parts.items())


def set_style_property(el: ET.Element, key: str, value: str) -> None:
    """Set one CSS property in *el*'s inline style, keeping the others."""
    el.set("style", InlineStyle(el.get("style", "")).set(key, value).build())


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class Bounds:
    """Axis-aligned bounding box of the drawn content."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def expanded(self, margin: float) -> Bounds:
        """Return the size grown by *margin* on each side."""
        return Bounds(
            self.x - margin, self.y - margin,
            self.width + 2 * margin, self.height + 2 * margin,
        )


class SvgDocument:
    """A rendered vector document.

    Instances are replaced wholesale on every successful render; styling
    mutates attributes in place but never the element structure.
    """

    def __init__(self, root: ET.Element, diagram_id: str = "") -> None:
        if local_name(root.tag) != "svg":
            raise ValueError(f"Expected an <svg> root element, got <{local_name(root.tag)}>.")
        self.root = root
        self.diagram_id = diagram_id or root.get("id", "")

    @classmethod
    def parse(cls, text: str, diagram_id: str = "") -> SvgDocument:
        return cls(ET.fromstring(text), diagram_id)

    @property
    def namespace(self) -> str:
        """Namespace of the root tag ("" for un-namespaced documents)."""
        tag = self.root.tag
        return tag[1:].split("}", 1)[0] if tag.startswith("{") else ""

    def qname(self, name: str) -> str:
        """Qualify *name* with the document namespace."""
        ns = self.namespace
        return f"{{{ns}}}{name}" if ns else name

    def iter(self, name: Optional[str] = None) -> Iterator[ET.Element]:
        for el in self.root.iter():
            if name is None or local_name(el.tag) == name:
                yield el

    def find_by_id(self, element_id: str) -> Optional[ET.Element]:
        for el in self.root.iter():
            if el.get("id") == element_id:
                return el
        return None

    def clone(self) -> SvgDocument:
        return SvgDocument(copy.deepcopy(self.root), self.diagram_id)

    def element_count(self) -> int:
        return sum(1 for _ in self.root.iter())

    def content_bounds(self) -> Bounds:
        """Bounds of the drawn content.

        Uses the ``viewBox`` the engine sizes to its content, falling back to
        the ``width``/``height`` attributes.
        """
        view_box = self.root.get("viewBox", "")
        parts = [p for p in re.split(r"[\s,]+", view_box.strip()) if p]
        if len(parts) == 4:
            try:
                x, y, w, h = (float(p) for p in parts)
                return Bounds(x, y, w, h)
            except ValueError:
                pass
        w = _parse_length(self.root.get("width")) or 0.0
        h = _parse_length(self.root.get("height")) or 0.0
        return Bounds(0.0, 0.0, w, h)

    def to_string(self) -> str:
        """Serialize to SVG text with explicit ``xmlns`` / ``xmlns:xlink``."""
        text = ET.tostring(self.root, encoding="unicode")
        return _ensure_namespaces(text)


def _ensure_namespaces(text: str) -> str:
    """Add missing namespace declarations to the root start tag."""
    m = re.match(r"^(<(?:svg:)?svg\b)([^>]*)>", text)
    if not m:
        return text
    head, attrs = m.group(1), m.group(2)
    extra = ""
    if not re.search(r'\sxmlns="', attrs):
        extra += f' xmlns="{SVG_NS}"'
    if not re.search(r"\sxmlns:xlink=", attrs):
        extra += f' xmlns:xlink="{XLINK_NS}"'
    return head + extra + text[len(head):]

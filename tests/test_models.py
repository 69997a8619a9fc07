"""Tests for the SVG document model."""

import xml.etree.ElementTree as ET

import pytest

from pretty_mermaid.models import (
    SVG_NS,
    XLINK_NS,
    Bounds,
    InlineStyle,
    SvgDocument,
    local_name,
    set_style_property,
)


def test_parse_keeps_diagram_id(svg_text: str) -> None:
    doc = SvgDocument.parse(svg_text)
    assert doc.diagram_id == "mermaid-diagram-1"
    assert doc.namespace == SVG_NS
    assert doc.qname("rect") == f"{{{SVG_NS}}}rect"


def test_parse_rejects_non_svg_root() -> None:
    with pytest.raises(ValueError):
        SvgDocument.parse("<html><body/></html>")


def test_local_name() -> None:
    assert local_name(f"{{{SVG_NS}}}rect") == "rect"
    assert local_name("g") == "g"
    assert local_name(ET.Comment) == ""


def test_content_bounds_from_view_box(svg_text: str) -> None:
    b = SvgDocument.parse(svg_text).content_bounds()
    assert (b.x, b.y, b.width, b.height) == (-8, -8, 120, 200)
    assert b.right == 112
    assert b.bottom == 192


def test_content_bounds_from_size_attributes() -> None:
    doc = SvgDocument.parse('<svg width="300px" height="150"><g/></svg>')
    b = doc.content_bounds()
    assert (b.width, b.height) == (300, 150)


def test_bounds_expanded() -> None:
    b = Bounds(0, 0, 100, 50).expanded(20)
    assert (b.x, b.y, b.width, b.height) == (-20, -20, 140, 90)


def test_clone_is_deep(svg_text: str) -> None:
    doc = SvgDocument.parse(svg_text)
    clone = doc.clone()
    next(clone.iter("rect")).set("fill", "#000000")
    assert next(doc.iter("rect")).get("fill") is None
    assert clone.element_count() == doc.element_count()
    assert clone.diagram_id == doc.diagram_id


def test_find_by_id(svg_text: str) -> None:
    doc = SvgDocument.parse(svg_text)
    node = doc.find_by_id("flowchart-B-1")
    assert node is not None
    assert local_name(node.tag) == "g"
    assert doc.find_by_id("missing") is None


def test_to_string_declares_namespaces(svg_text: str) -> None:
    text = SvgDocument.parse(svg_text).to_string()
    assert text.startswith("<svg")
    assert f'xmlns="{SVG_NS}"' in text
    assert f'xmlns:xlink="{XLINK_NS}"' in text
    assert text.count('xmlns="') >= 1
    ET.fromstring(text)


def test_to_string_adds_namespaces_to_bare_document() -> None:
    text = SvgDocument.parse('<svg viewBox="0 0 10 10"><rect/></svg>').to_string()
    assert f'xmlns="{SVG_NS}"' in text
    assert f'xmlns:xlink="{XLINK_NS}"' in text
    root = ET.fromstring(text)
    assert root.tag == f"{{{SVG_NS}}}svg"


def test_inline_style_round_trip() -> None:
    s = InlineStyle("max-width: 120px; color:red;")
    assert s.get("max-width") == "120px"
    assert s.get("color") == "red"
    s.set("color", "#fff").set("filter", "url(#x)")
    assert s.build() == "max-width: 120px; color: #fff; filter: url(#x)"


def test_set_style_property_keeps_other_properties() -> None:
    el = ET.Element("g", attrib={"style": "opacity: 0.5"})
    set_style_property(el, "filter", "url(#pretty-shadow)")
    set_style_property(el, "filter", "url(#pretty-shadow)")
    assert el.get("style") == "opacity: 0.5; filter: url(#pretty-shadow)"

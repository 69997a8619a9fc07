"""Shared fixtures: a Mermaid-shaped SVG and an in-process engine."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pretty_mermaid.config import EditorConfig
from pretty_mermaid.errors import ParseError
from pretty_mermaid.export import ExportPipeline
from pretty_mermaid.session import EditorSession, Notifier
from pretty_mermaid.storage import KeyValueStore


SAMPLE_SVG = """\
<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" id="{id}" width="100%" style="max-width: 120px;" viewBox="-8 -8 120 200" role="graphics-document document" aria-roledescription="flowchart-v2">
  <style>#{id} {{ font-family: trebuchet ms; }}</style>
  <g>
    <marker id="flowchart-pointEnd" class="marker flowchart" viewBox="0 0 10 10" refX="6" refY="5" markerWidth="12" markerHeight="12" orient="auto">
      <path d="M 0 0 L 10 5 L 0 10 z" class="arrowMarkerPath" />
    </marker>
    <g class="root">
      <g class="clusters" />
      <g class="edgePaths">
        <path d="M23,34L23,84" id="L-A-B-0" class=" edge-thickness-normal edge-pattern-solid flowchart-link LS-A LE-B" marker-end="url(#flowchart-pointEnd)" />
      </g>
      <g class="edgeLabels">
        <g class="edgeLabel">
          <g class="label" transform="translate(0, 0)">
            <foreignObject width="0" height="0">
              <div xmlns="http://www.w3.org/1999/xhtml"><span class="edgeLabel">yes</span></div>
            </foreignObject>
          </g>
        </g>
      </g>
      <g class="nodes">
        <g class="node default default flowchart-label" id="flowchart-A-0" transform="translate(23, 17)">
          <rect class="basic label-container" rx="0" ry="0" x="-23" y="-17" width="46" height="34" />
          <g class="label" transform="translate(-8, -9.5)">
            <foreignObject width="16" height="19">
              <div xmlns="http://www.w3.org/1999/xhtml"><span class="nodeLabel">A</span></div>
            </foreignObject>
          </g>
        </g>
        <g class="node default default flowchart-label" id="flowchart-B-1" transform="translate(23, 101)">
          <rect class="basic label-container" rx="0" ry="0" x="-23" y="-17" width="46" height="34" />
        </g>
        <g class="node default flowchart-label" id="flowchart-C-2" transform="translate(23, 160)">
          <polygon points="20,0 40,-20 20,-40 0,-20" class="label-container" />
        </g>
        <g class="node custom" id="flowchart-D-3">
          <circle r="10" />
        </g>
      </g>
    </g>
    <text x="0" y="0" class="flowchartTitleText">Title</text>
  </g>
</svg>
"""


def sample_svg(diagram_id: str = "mermaid-diagram-1") -> str:
    return SAMPLE_SVG.format(id=diagram_id)


class FakeEngine:
    """Engine double.

    Text containing ``--`` at the end of a line is a parse error.  Per-call
    delays can be queued to make renders resolve out of order.
    """

    def __init__(self) -> None:
        self.parse_calls: list[str] = []
        self.render_calls: list[tuple[str, str, dict[str, Any]]] = []
        self.delays: list[float] = []

    async def parse(self, text: str) -> None:
        self.parse_calls.append(text)
        delay = self.delays.pop(0) if self.delays else 0
        await asyncio.sleep(delay)
        for line in text.splitlines():
            if line.rstrip().endswith("--"):
                raise ParseError("Parse error on line 2: Expecting 'ARROW', got 'EOF'")

    async def render(self, diagram_id: str, text: str, config: dict[str, Any]) -> str:
        self.render_calls.append((diagram_id, text, config))
        return sample_svg(diagram_id)


class FakeClipboard:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.text: str | None = None

    async def write_text(self, text: str) -> None:
        if self.error is not None:
            raise self.error
        self.text = text


@pytest.fixture
def svg_text() -> str:
    return sample_svg()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def store(tmp_path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "storage.json")


@pytest.fixture
def make_session(engine, store, clipboard):
    """Factory for sessions wired to the fakes; debounce shortened."""

    def factory(**overrides: Any) -> EditorSession:
        config = overrides.pop("config", None) or EditorConfig(debounce_ms=10)
        exporter = overrides.pop("exporter", None) or ExportPipeline(
            rasterizer=overrides.pop("rasterizer", solid_png),
            clipboard=overrides.pop("clipboard", clipboard),
            fallback_copy=overrides.pop("fallback_copy", lambda text: None),
        )
        return EditorSession(
            engine=overrides.pop("engine", engine),
            store=overrides.pop("store", store),
            exporter=exporter,
            notifier=Notifier(config.toast_duration_ms),
            config=config,
        )

    return factory


def solid_png(svg: bytes, width: int, height: int) -> bytes:
    """Rasterizer double: an opaque red image of the requested size."""
    import io

    from PIL import Image

    out = io.BytesIO()
    Image.new("RGBA", (width, height), "#ff0000").save(out, format="PNG")
    return out.getvalue()

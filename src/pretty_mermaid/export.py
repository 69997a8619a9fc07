"""
Export pipeline: standalone SVG, 2x PNG, and clipboard text.

All exports work on a deep clone of the styled document, never on the
displayed one, so the viewport transform cannot leak into the output and
the live document is never mutated.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import shutil
import subprocess
import xml.etree.ElementTree as ET
from typing import Callable, Optional, Protocol

from PIL import Image, UnidentifiedImageError

from pretty_mermaid.errors import ClipboardDenied, ExportSourceMissing, RasterDecodeFailure
from pretty_mermaid.models import InlineStyle, SvgDocument, local_name

logger = logging.getLogger(__name__)

EXPORT_MARGIN = 20
EXPORT_SCALE = 2

# (svg_bytes, width_px, height_px) -> PNG bytes of the decoded image
Rasterizer = Callable[[bytes, int, int], bytes]


# ---------------------------------------------------------------------------
# Rasterizer
# ---------------------------------------------------------------------------

def cairosvg_rasterize(svg: bytes, width: int, height: int) -> bytes:
    """Decode *svg* into a PNG of exactly ``width`` x ``height`` pixels.

    cairosvg draws no ``foreignObject`` content, so HTML labels must already
    have been converted with ``inline_html_labels``.
    """
    if b"foreignObject" in svg:
        raise RasterDecodeFailure("SVG still contains HTML labels (foreignObject)")
    try:
        import cairosvg
    except (ImportError, OSError) as exc:
        raise RasterDecodeFailure(f"cairosvg is unavailable: {exc}") from exc
    try:
        return cairosvg.svg2png(bytestring=svg, output_width=width, output_height=height)
    except Exception as exc:
        raise RasterDecodeFailure(f"Could not rasterize SVG: {exc}") from exc


# ---------------------------------------------------------------------------
# HTML labels
# ---------------------------------------------------------------------------

DEFAULT_LABEL_COLOR = "#333333"
DEFAULT_LABEL_FONT = "sans-serif"
DEFAULT_LABEL_SIZE = "16px"
LINE_HEIGHT_EM = 1.2


def _label_lines(el: ET.Element, lines: list[str]) -> None:
    if local_name(el.tag) == "br":
        lines.append("")
    elif el.text:
        lines[-1] += el.text
    for child in el:
        _label_lines(child, lines)
        if child.tail:
            lines[-1] += child.tail


def _style_lookup(chain: list[ET.Element], prop: str, default: str) -> str:
    for el in chain:
        value = InlineStyle(el.get("style", "")).get(prop)
        if value:
            return value
    return default


def _length(el: ET.Element, name: str) -> float:
    try:
        return float(el.get(name, "0").rstrip("px") or 0)
    except ValueError:
        return 0.0


def inline_html_labels(doc: SvgDocument) -> int:
    """Replace each ``foreignObject`` label with an equivalent SVG ``<text>``.

    The text is centred in the foreignObject box and keeps the label's
    ``color``, font family and size, looked up on the label content first and
    then on its enclosing groups.  Line breaks become ``<tspan>`` lines.
    Returns the number of labels converted.
    """
    parents = {child: parent for parent in doc.root.iter() for child in parent}
    targets = [el for el in doc.root.iter() if local_name(el.tag) == "foreignObject"]
    converted = 0
    for fo in targets:
        parent = parents[fo]
        ancestors = []
        node = parent
        while node is not None:
            ancestors.append(node)
            node = parents.get(node)
        chain = list(fo.iter()) + ancestors

        lines = [""]
        _label_lines(fo, lines)
        lines = [" ".join(line.split()) for line in lines]
        lines = [line for line in lines if line]

        index = list(parent).index(fo)
        parent.remove(fo)
        if not lines:
            continue

        x = _length(fo, "x") + _length(fo, "width") / 2
        y = _length(fo, "y") + _length(fo, "height") / 2
        text = ET.Element(doc.qname("text"), attrib={
            "x": f"{x:g}",
            "y": f"{y:g}",
            "text-anchor": "middle",
            "dominant-baseline": "central",
            "fill": _style_lookup(chain, "color", DEFAULT_LABEL_COLOR),
            "font-family": _style_lookup(chain, "font-family", DEFAULT_LABEL_FONT),
            "font-size": _style_lookup(chain, "font-size", DEFAULT_LABEL_SIZE),
        })
        if len(lines) == 1:
            text.text = lines[0]
        else:
            first_dy = -(len(lines) - 1) * LINE_HEIGHT_EM / 2
            for i, line in enumerate(lines):
                tspan = ET.SubElement(text, doc.qname("tspan"), attrib={
                    "x": f"{x:g}",
                    "dy": f"{first_dy if i == 0 else LINE_HEIGHT_EM:g}em",
                })
                tspan.text = line
        parent.insert(index, text)
        converted += 1
    return converted


# ---------------------------------------------------------------------------
# Clipboard
# ---------------------------------------------------------------------------

class Clipboard(Protocol):
    async def write_text(self, text: str) -> None:
        """Place *text* on the clipboard or raise ``ClipboardDenied``."""


def _clipboard_command() -> Optional[list[str]]:
    if shutil.which("pbcopy"):
        return ["pbcopy"]
    if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
        return ["wl-copy"]
    if os.environ.get("DISPLAY") and shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("clip"):
        return ["clip"]
    return None


class SystemClipboard:
    """Asynchronous write through the platform clipboard tool."""

    async def write_text(self, text: str) -> None:
        cmd = _clipboard_command()
        if cmd is None:
            raise ClipboardDenied("No clipboard tool available")
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate(text.encode("utf-8"))
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() if stderr else ""
            raise ClipboardDenied(f"{cmd[0]} exited with {process.returncode}: {detail}")


def selection_copy(text: str) -> None:
    """Synchronous fallback: copy via the X selection tool."""
    if not shutil.which("xsel"):
        raise ClipboardDenied("No selection tool available")
    result = subprocess.run(
        ["xsel", "--clipboard", "--input"], input=text, text=True, check=False,
    )
    if result.returncode != 0:
        raise ClipboardDenied(f"xsel exited with {result.returncode}")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ExportPipeline:
    """Serializes and rasterizes the current styled document."""

    def __init__(
        self,
        rasterizer: Rasterizer = cairosvg_rasterize,
        clipboard: Optional[Clipboard] = None,
        fallback_copy: Callable[[str], None] = selection_copy,
        *,
        margin: int = EXPORT_MARGIN,
        scale: int = EXPORT_SCALE,
    ) -> None:
        self.rasterizer = rasterizer
        self.clipboard = clipboard if clipboard is not None else SystemClipboard()
        self.fallback_copy = fallback_copy
        self.margin = margin
        self.scale = scale

    @staticmethod
    def prepare(doc: Optional[SvgDocument], background: str) -> SvgDocument:
        """Clone *doc* and insert a full-size background rectangle first."""
        if doc is None:
            raise ExportSourceMissing()
        clone = doc.clone()
        rect = ET.Element(clone.qname("rect"), attrib={
            "width": "100%",
            "height": "100%",
            "fill": background,
        })
        clone.root.insert(0, rect)
        return clone

    def svg_text(self, doc: Optional[SvgDocument], background: str) -> str:
        return self.prepare(doc, background).to_string()

    def export_svg(self, doc: Optional[SvgDocument], background: str) -> bytes:
        """UTF-8 bytes of the standalone SVG file."""
        return self.svg_text(doc, background).encode("utf-8")

    async def export_png(self, doc: Optional[SvgDocument], background: str) -> bytes:
        """Rasterize onto a background-filled canvas at ``scale`` x.

        The canvas is the content box plus ``margin`` on each side.  HTML
        labels are converted to SVG text first so the rasterizer draws them.
        Raises ``RasterDecodeFailure`` rather than returning a blank image.
        """
        clone = self.prepare(doc, background)
        labels = inline_html_labels(clone)
        logger.debug("Converted %d HTML labels for rasterization", labels)
        svg = clone.to_string().encode("utf-8")
        bounds = clone.content_bounds()
        s = self.scale
        img_w = max(1, round(bounds.width * s))
        img_h = max(1, round(bounds.height * s))

        decoded = await asyncio.to_thread(self.rasterizer, svg, img_w, img_h)
        return await asyncio.to_thread(
            self._compose, decoded, bounds.width, bounds.height, background,
        )

    def _compose(self, decoded: bytes, width: float, height: float, background: str) -> bytes:
        s, m = self.scale, self.margin
        try:
            image = Image.open(io.BytesIO(decoded))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise RasterDecodeFailure(f"Rasterizer returned an unreadable image: {exc}") from exc
        try:
            canvas = Image.new("RGBA", (round((width + 2 * m) * s), round((height + 2 * m) * s)), background)
        except ValueError as exc:
            raise RasterDecodeFailure(f"Unusable background color '{background}'") from exc
        canvas.alpha_composite(image.convert("RGBA"), (m * s, m * s))
        out = io.BytesIO()
        canvas.save(out, format="PNG")
        return out.getvalue()

    async def copy_svg(self, doc: Optional[SvgDocument], background: str) -> str:
        """Copy the SVG text.  Returns ``"clipboard"`` or ``"fallback"``.

        Raises ``ClipboardDenied`` only when the fallback fails too.
        """
        text = self.svg_text(doc, background)
        try:
            await self.clipboard.write_text(text)
            return "clipboard"
        except ClipboardDenied as exc:
            logger.warning("Clipboard write denied (%s); using selection fallback", exc.message)
        self.fallback_copy(text)
        return "fallback"

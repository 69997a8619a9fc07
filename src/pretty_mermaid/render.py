"""
Render adapter around the external Mermaid engine.

The engine itself (layout, validation) is a black box reached through the
``DiagramEngine`` protocol.  The adapter adds what the editor needs on top:
blank-input short-circuit, a unique diagram id per invocation, and a
monotonically increasing generation token so that a slow render finishing
after a newer request is discarded instead of replacing the newer result.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pretty_mermaid.errors import EngineError, ParseError, RenderStale
from pretty_mermaid.models import SvgDocument

logger = logging.getLogger(__name__)

DEFAULT_PARSE_MESSAGE = "Invalid Mermaid syntax"

# stderr markers of a rejected diagram, as opposed to an engine that failed to run
DIAGRAM_ERROR_RE = re.compile(
    r"Parse error|Lexical error|Syntax error|UnknownDiagramError|No diagram type detected"
)


# ---------------------------------------------------------------------------
# Engine boundary
# ---------------------------------------------------------------------------

class DiagramEngine(Protocol):
    """The two operations consumed from the rendering engine."""

    async def parse(self, text: str) -> None:
        """Raise ``ParseError`` if *text* is not a valid diagram."""

    async def render(self, diagram_id: str, text: str, config: dict[str, Any]) -> str:
        """Return SVG markup for *text*; *diagram_id* must be unique per call."""


def is_diagram_error(stderr: str) -> bool:
    """True if *stderr* reports a problem with the diagram text itself."""
    return DIAGRAM_ERROR_RE.search(stderr) is not None


def extract_error_message(stderr: str) -> str:
    """Reduce engine stderr to the human-readable part of the error."""
    lines: list[str] = []
    for line in stderr.splitlines():
        if re.match(r"^\s+at\s", line):
            break
        if line.strip():
            lines.append(line.rstrip())
    message = "\n".join(lines).strip()
    message = re.sub(r"^(?:Error|UnknownDiagramError):\s*", "", message)
    return message or DEFAULT_PARSE_MESSAGE


class MermaidCliEngine:
    """Runs ``mmdc`` (mermaid-cli) in a subprocess.

    mmdc has no parse-only mode: ``parse`` performs a throwaway render with
    the default configuration, and ``render`` already reports syntax errors,
    so the adapter skips ``parse`` for this engine.
    """

    validates_on_render = True

    def __init__(self, command: str = "mmdc", timeout: float = 60.0) -> None:
        self.command = command
        self.timeout = timeout

    async def parse(self, text: str) -> None:
        await self._run(text, {}, diagram_id="")

    async def render(self, diagram_id: str, text: str, config: dict[str, Any]) -> str:
        return await self._run(text, config, diagram_id=diagram_id)

    async def _run(self, text: str, config: dict[str, Any], diagram_id: str) -> str:
        with tempfile.TemporaryDirectory(prefix="pretty-mermaid-") as tmp:
            tmp_path = Path(tmp)
            src = tmp_path / "input.mmd"
            out = tmp_path / "output.svg"
            cfg = tmp_path / "config.json"
            src.write_text(text, encoding="utf-8")
            cfg.write_text(json.dumps(config), encoding="utf-8")
            cmd = [self.command, "-q", "-i", str(src), "-o", str(out), "-c", str(cfg)]
            if diagram_id:
                cmd += ["-I", diagram_id]

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                raise EngineError(
                    f"'{self.command}' not found. Install it with: npm install -g @mermaid-js/mermaid-cli"
                ) from exc

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                process.kill()
                await process.wait()
                raise EngineError(f"Mermaid render timed out after {self.timeout:g} seconds") from exc

            stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
            if process.returncode != 0:
                if is_diagram_error(stderr_text):
                    raise ParseError(extract_error_message(stderr_text))
                detail = stderr_text.strip().splitlines()[0] if stderr_text.strip() else "no output"
                raise EngineError(f"'{self.command}' exited with {process.returncode}: {detail}")
            if not out.exists() or out.stat().st_size == 0:
                raise EngineError("Mermaid render produced no output")
            return out.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class RenderStatus(Enum):
    RENDERED = "rendered"
    EMPTY = "empty"


@dataclass
class RenderOutcome:
    """Result of an authoritative render request."""
    status: RenderStatus
    generation: int
    document: Optional[SvgDocument] = None


class RenderAdapter:
    """Turns diagram text into an ``SvgDocument`` through a ``DiagramEngine``."""

    def __init__(self, engine: DiagramEngine, id_prefix: str = "mermaid-diagram") -> None:
        self.engine = engine
        self.id_prefix = id_prefix
        self._generation = 0

    @property
    def latest(self) -> int:
        """Token of the most recently issued request."""
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _check(self, generation: int) -> None:
        if not self.is_current(generation):
            raise RenderStale(generation, self._generation)

    async def render(self, text: str, config: dict[str, Any]) -> RenderOutcome:
        """Render *text* with *config*.

        Raises ``ParseError`` for invalid text, ``EngineError`` when the
        engine cannot run and ``RenderStale`` when a newer request was
        issued while this one was suspended.
        """
        self._generation += 1
        generation = self._generation
        code = text.strip()
        if not code:
            return RenderOutcome(RenderStatus.EMPTY, generation)

        diagram_id = f"{self.id_prefix}-{generation}"
        try:
            if not getattr(self.engine, "validates_on_render", False):
                await self.engine.parse(code)
            svg = await self.engine.render(diagram_id, code, config)
        except (ParseError, EngineError):
            self._check(generation)
            raise
        self._check(generation)

        try:
            doc = SvgDocument.parse(svg, diagram_id)
        except (ValueError, SyntaxError) as exc:
            raise EngineError(f"Engine returned an unreadable document: {exc}") from exc
        logger.debug("Render #%d produced %d bytes", generation, len(svg))
        return RenderOutcome(RenderStatus.RENDERED, generation, doc)

"""
Editor session: the single owner of theme, viewport and document state.

Built once from persistence, then mutated only through the methods below.
Everything runs on one asyncio event loop; concurrency is interleaved
continuations (engine calls, raster decode, clipboard writes), never
parallel access, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pretty_mermaid.config import EditorConfig
from pretty_mermaid.errors import (
    ClipboardDenied,
    EngineError,
    ExportSourceMissing,
    ParseError,
    RasterDecodeFailure,
    RenderStale,
)
from pretty_mermaid.export import ExportPipeline
from pretty_mermaid.models import SvgDocument
from pretty_mermaid.render import DiagramEngine, MermaidCliEngine, RenderAdapter, RenderStatus
from pretty_mermaid.storage import KeyValueStore
from pretty_mermaid.styling import apply_theme
from pretty_mermaid.theme import (
    DEFAULT_PRESET,
    Presets,
    ThemeOverride,
    apply_edit,
    derive_preset,
    engine_config,
)
from pretty_mermaid.viewport import ViewportController, ViewportTransform

logger = logging.getLogger(__name__)

PLACEHOLDER = "Enter Mermaid code to see your diagram"

DEFAULT_DIAGRAM = """flowchart TD
    A[📦 Start Project] --> B{Choose Framework?}
    B -->|React| C[⚛️ Create React App]
    B -->|Vue| D[💚 Vue CLI]
    B -->|Vanilla| E[📝 Plain HTML/CSS/JS]

    C --> F[Install Dependencies]
    D --> F
    E --> G[Start Coding!]

    F --> H[Configure Build Tools]
    H --> G

    G --> I{Tests Passing?}
    I -->|Yes| J[🚀 Deploy!]
    I -->|No| K[🔧 Debug]
    K --> G

    J --> L[🎉 Success!]

    style A fill:#6366f1,stroke:#4f46e5,color:#fff
    style L fill:#10b981,stroke:#059669,color:#fff
    style K fill:#f59e0b,stroke:#d97706,color:#fff"""


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@dataclass
class Toast:
    message: str
    duration_ms: int


@dataclass
class Notifier:
    """Fire-and-forget transient messages.  Keeps the most recent ones."""
    duration_ms: int = 2500
    history: list[Toast] = field(default_factory=list)
    limit: int = 50

    def __call__(self, message: str) -> None:
        logger.info("Toast: %s", message)
        self.history.append(Toast(message, self.duration_ms))
        del self.history[:-self.limit]

    @property
    def last(self) -> Optional[str]:
        return self.history[-1].message if self.history else None


class Debouncer:
    """Runs an async callback after a quiet period.

    Each ``trigger`` cancels a pending (not yet started) run and schedules a
    new one.  Runs that already started are never cancelled.
    """

    def __init__(self, delay_ms: int, callback: Callable[[], Awaitable[Any]]) -> None:
        self.delay = delay_ms / 1000
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.ensure_future(self.callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until nothing is scheduled or running."""
        while self._handle is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks)
            else:
                await asyncio.sleep(self.delay / 2 or 0.001)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class EditorSession:
    """Process-scoped editor state and its documented transitions."""

    def __init__(
        self,
        engine: Optional[DiagramEngine] = None,
        store: Optional[KeyValueStore] = None,
        exporter: Optional[ExportPipeline] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[EditorConfig] = None,
    ) -> None:
        self.config = config or EditorConfig()
        cfg = self.config
        self.store = store if store is not None else KeyValueStore(cfg.store_path)
        self.notify = notifier or Notifier(cfg.toast_duration_ms)
        self.adapter = RenderAdapter(
            engine or MermaidCliEngine(cfg.mmdc_command, cfg.render_timeout),
            cfg.diagram_id_prefix,
        )
        self.exporter = exporter or ExportPipeline(
            margin=cfg.export_margin, scale=cfg.export_scale,
        )
        self.display_transform = ""
        self.zoom_readout = "100%"
        self.viewport = ViewportController(
            self._on_transform,
            zoom_step=cfg.zoom_step,
            wheel_step=cfg.wheel_step,
            min_zoom=cfg.min_zoom,
            max_zoom=cfg.max_zoom,
        )
        self.document: Optional[SvgDocument] = None
        self.placeholder: Optional[str] = None
        self.error: Optional[str] = None
        self._debouncer = Debouncer(cfg.debounce_ms, self._debounced_render)

        # -- load persisted state --
        preset = self.store.get(cfg.key_theme) or DEFAULT_PRESET
        if preset not in Presets.names():
            logger.warning("Unknown persisted preset '%s', using %s", preset, DEFAULT_PRESET)
            preset = DEFAULT_PRESET
        self.preset = preset
        self.theme = self._load_theme(preset)
        self.code = self.store.get(cfg.key_code) or DEFAULT_DIAGRAM
        self.viewport.apply()

    def _load_theme(self, preset: str) -> ThemeOverride:
        raw = self.store.get(self.config.key_custom_theme)
        if raw:
            try:
                data = json.loads(raw)
                if isinstance(data, dict):
                    return ThemeOverride.from_dict(data, preset)
                logger.warning("Persisted custom theme is not an object; using preset")
            except json.JSONDecodeError as exc:
                logger.warning("Persisted custom theme is corrupt (%s); using preset", exc)
        return derive_preset(preset)

    # -- persistence --

    def _persist(self, key: str, value: str) -> None:
        try:
            self.store.set(key, value)
        except OSError as exc:
            logger.warning("Could not persist '%s': %s", key, exc)

    def _save_theme(self) -> None:
        self._persist(self.config.key_custom_theme, json.dumps(self.theme.to_dict()))

    # -- derived --

    @property
    def background(self) -> str:
        return self.config.background or Presets.get(self.preset).background

    @property
    def engine_config(self) -> dict[str, Any]:
        return engine_config(self.theme, self.preset)

    def _on_transform(self, t: ViewportTransform) -> None:
        self.display_transform = t.css
        self.zoom_readout = t.percent

    # -- editing --

    def set_code(self, text: str) -> None:
        """Record an edit and (re)schedule a debounced render."""
        self.code = text
        self._debouncer.trigger()

    async def _debounced_render(self) -> None:
        await self.render()
        self._persist(self.config.key_code, self.code)

    async def flush(self) -> None:
        """Wait for any scheduled or running debounced render."""
        await self._debouncer.wait_idle()

    async def render(self) -> bool:
        """Render the current code.  Returns True if a document was committed."""
        try:
            outcome = await self.adapter.render(self.code, self.engine_config)
        except RenderStale as exc:
            logger.debug("Discarding stale render #%d (latest #%d)", exc.generation, exc.latest)
            return False
        except (ParseError, EngineError) as exc:
            logger.info("Render failed: %s", exc.message)
            self.error = exc.message
            return False

        self.error = None
        if outcome.status is RenderStatus.EMPTY:
            self.document = None
            self.placeholder = PLACEHOLDER
            return False

        doc = outcome.document
        apply_theme(doc, self.theme)
        self.document = doc
        self.placeholder = None
        self.viewport.apply()
        logger.info("Committed render #%d (%s)", outcome.generation, doc.diagram_id)
        return True

    # -- theme --

    async def select_preset(self, preset: str) -> None:
        self.preset = preset if preset in Presets.names() else DEFAULT_PRESET
        self._persist(self.config.key_theme, self.preset)
        self.theme = derive_preset(self.preset)
        self._save_theme()
        await self.render()

    async def edit_theme(self, field_name: str, value: Any) -> ThemeOverride:
        apply_edit(self.theme, field_name, value)
        self._save_theme()
        await self.render()
        return self.theme

    async def reset_theme(self) -> None:
        self.theme = derive_preset(self.preset)
        self._save_theme()
        await self.render()
        self.notify("Reset to preset defaults")

    # -- export --

    def export_svg(self, directory: Optional[Path] = None) -> Optional[Path]:
        try:
            data = self.exporter.export_svg(self.document, self.background)
        except ExportSourceMissing as exc:
            self.notify(exc.message)
            return None
        path = self._write_export(directory, self.config.svg_filename, data)
        self.notify("SVG downloaded!")
        return path

    async def export_png(self, directory: Optional[Path] = None) -> Optional[Path]:
        try:
            data = await self.exporter.export_png(self.document, self.background)
        except ExportSourceMissing as exc:
            self.notify(exc.message)
            return None
        except RasterDecodeFailure as exc:
            logger.warning("PNG export failed: %s", exc.message)
            self.notify("Failed to generate PNG")
            return None
        path = self._write_export(directory, self.config.png_filename, data)
        self.notify("PNG downloaded!")
        return path

    async def copy_svg(self) -> bool:
        try:
            await self.exporter.copy_svg(self.document, self.background)
        except ExportSourceMissing as exc:
            self.notify(exc.message)
            return False
        except ClipboardDenied as exc:
            logger.warning("Copy failed: %s", exc.message)
            self.notify("Failed to copy SVG")
            return False
        self.notify("SVG copied to clipboard!")
        return True

    def _write_export(self, directory: Optional[Path], filename: str, data: bytes) -> Path:
        path = Path(directory or Path.cwd()) / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Exported %s (%d bytes)", path, len(data))
        return path

    # -- keyboard --

    async def shortcut(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """Handle editor shortcuts.  Returns True if the key was consumed."""
        if not ctrl:
            return False
        if shift and key.upper() == "C":
            await self.copy_svg()
            return True
        if not shift and key == "s":
            self.notify("Auto-saved!")
            return True
        return False

    # -- snapshot --

    def status(self) -> dict[str, Any]:
        t = self.viewport.transform
        return {
            "preset": self.preset,
            "state": "error" if self.error else (
                "empty" if self.placeholder else ("rendered" if self.document else "idle")
            ),
            "error": self.error,
            "placeholder": self.placeholder,
            "diagram_id": self.document.diagram_id if self.document else None,
            "render_generation": self.adapter.latest,
            "zoom": t.zoom,
            "pan": {"x": t.pan_x, "y": t.pan_y},
            "transform": self.display_transform,
            "zoom_label": self.zoom_readout,
        }

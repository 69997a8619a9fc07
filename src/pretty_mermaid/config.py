"""
Editor configuration.

Plain dataclass defaults, optionally overridden from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_store_path() -> Path:
    return Path.home() / ".pretty-mermaid" / "storage.json"


@dataclass
class EditorConfig:
    """Timings, viewport limits, export settings and storage keys."""
    debounce_ms: int = 400
    toast_duration_ms: int = 2500
    # Viewport
    zoom_step: float = 1.25
    wheel_step: float = 1.1
    min_zoom: float = 0.1
    max_zoom: float = 5.0
    # Export
    export_margin: int = 20
    export_scale: int = 2
    background: str = ""  # empty = use the preset background
    svg_filename: str = "diagram.svg"
    png_filename: str = "diagram.png"
    # Engine
    mmdc_command: str = "mmdc"
    render_timeout: float = 60.0
    diagram_id_prefix: str = "mermaid-diagram"
    # Persistence
    store_path: Path = field(default_factory=_default_store_path)
    key_theme: str = "pretty-mermaid-theme"
    key_code: str = "pretty-mermaid-code"
    key_custom_theme: str = "pretty-mermaid-custom-theme"

    @classmethod
    def from_env(cls) -> EditorConfig:
        """Build a config, honouring ``PRETTY_MERMAID_*`` variables."""
        cfg = cls()
        store = os.environ.get("PRETTY_MERMAID_STORE")
        if store:
            cfg.store_path = Path(store).expanduser()
        mmdc = os.environ.get("PRETTY_MERMAID_MMDC")
        if mmdc:
            cfg.mmdc_command = mmdc
        background = os.environ.get("PRETTY_MERMAID_BACKGROUND")
        if background:
            cfg.background = background
        return cfg

"""
Theme model: immutable palette presets and the live, user-editable override.

A ``ThemeOverride`` is always fully populated.  It is created by copying a
preset palette plus fixed structural defaults, then mutated one field at a
time as the user edits controls.  The override also drives the engine
configuration handed to the renderer (font, curve, spacing).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class EdgeCurve(Enum):
    """Edge interpolation curves understood by the flowchart renderer."""
    BASIS = "basis"
    LINEAR = "linear"
    CARDINAL = "cardinal"
    CATMULL_ROM = "catmullRom"
    MONOTONE_X = "monotoneX"
    MONOTONE_Y = "monotoneY"
    NATURAL = "natural"
    STEP = "step"
    STEP_BEFORE = "stepBefore"
    STEP_AFTER = "stepAfter"


DEFAULT_BORDER_RADIUS = 10
DEFAULT_NODE_SPACING = 50
DEFAULT_FONT = "Inter, system-ui, sans-serif"
DEFAULT_EDGE_CURVE = EdgeCurve.BASIS.value
DEFAULT_PRESET = "modern"

COLOR_FIELDS = ("primaryFill", "secondaryFill", "borderColor", "edgeColor", "textColor")
INT_FIELDS = ("borderRadius", "nodeSpacing")
EDITABLE_FIELDS = COLOR_FIELDS + INT_FIELDS + ("font", "edgeStyle")


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThemePreset:
    """A named, immutable starting palette."""
    name: str
    primary_fill: str
    secondary_fill: str
    border_color: str
    edge_color: str
    text_color: str
    engine_theme: str = "default"
    background: str = "#ffffff"


class Presets:
    """Built-in theme presets, loaded once at import time."""
    MODERN = ThemePreset(
        name="modern", primary_fill="#6366f1", secondary_fill="#f1f5f9",
        border_color="#c7d2fe", edge_color="#94a3b8", text_color="#1e293b",
    )
    MINIMAL = ThemePreset(
        name="minimal", primary_fill="#171717", secondary_fill="#f5f5f5",
        border_color="#d4d4d4", edge_color="#737373", text_color="#171717",
        engine_theme="neutral",
    )
    DARK = ThemePreset(
        name="dark", primary_fill="#818cf8", secondary_fill="#334155",
        border_color="#64748b", edge_color="#94a3b8", text_color="#f1f5f9",
        engine_theme="dark", background="#1e293b",
    )
    PASTEL = ThemePreset(
        name="pastel", primary_fill="#f0abfc", secondary_fill="#fbcfe8",
        border_color="#e879f9", edge_color="#c084fc", text_color="#701a75",
    )
    CORPORATE = ThemePreset(
        name="corporate", primary_fill="#3182ce", secondary_fill="#e2e8f0",
        border_color="#90cdf4", edge_color="#4a5568", text_color="#1a365d",
    )

    @classmethod
    def all(cls) -> list[ThemePreset]:
        return [
            val for name, val in vars(cls).items()
            if not name.startswith("_") and isinstance(val, ThemePreset)
        ]

    @classmethod
    def names(cls) -> list[str]:
        return [p.name for p in cls.all()]

    @classmethod
    def get(cls, name: Optional[str]) -> ThemePreset:
        """Look up a preset by identifier, falling back to ``modern``."""
        for preset in cls.all():
            if preset.name == name:
                return preset
        return cls.MODERN


# ---------------------------------------------------------------------------
# Override
# ---------------------------------------------------------------------------

# Persisted / public field name -> attribute name
FIELD_ATTRS = {
    "primaryFill": "primary_fill",
    "secondaryFill": "secondary_fill",
    "borderColor": "border_color",
    "edgeColor": "edge_color",
    "textColor": "text_color",
    "borderRadius": "border_radius",
    "font": "font",
    "nodeSpacing": "node_spacing",
    "edgeStyle": "edge_style",
}


@dataclass
class ThemeOverride:
    """The live custom theme (colors, radius, font, spacing, edge curve)."""
    primary_fill: str
    secondary_fill: str
    border_color: str
    edge_color: str
    text_color: str
    border_radius: int = DEFAULT_BORDER_RADIUS
    font: str = DEFAULT_FONT
    node_spacing: int = DEFAULT_NODE_SPACING
    edge_style: str = DEFAULT_EDGE_CURVE

    def get(self, field_name: str) -> Any:
        return getattr(self, FIELD_ATTRS[field_name])

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used in storage."""
        return {key: getattr(self, attr) for key, attr in FIELD_ATTRS.items()}

    def copy(self) -> ThemeOverride:
        return replace(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any], preset: Optional[str] = None) -> ThemeOverride:
        """Build an override from persisted data.

        Keys missing from *data* inherit the preset default so the result is
        always fully populated; unknown keys are ignored.
        """
        result = derive_preset(preset)
        for key, value in data.items():
            if key in FIELD_ATTRS:
                setattr(result, FIELD_ATTRS[key], value)
        return result


def derive_preset(preset_id: Optional[str]) -> ThemeOverride:
    """Return a fresh override carrying the preset palette and fixed defaults."""
    p = Presets.get(preset_id)
    return ThemeOverride(
        primary_fill=p.primary_fill,
        secondary_fill=p.secondary_fill,
        border_color=p.border_color,
        edge_color=p.edge_color,
        text_color=p.text_color,
    )


def apply_edit(override: ThemeOverride, field_name: str, value: Any) -> ThemeOverride:
    """Set one field on *override* in place and return it.

    *field_name* is the public (camelCase) name.  Persistence and
    re-rendering are the caller's job.
    """
    if field_name not in FIELD_ATTRS:
        raise ValueError(f"Unknown theme field '{field_name}'.")
    setattr(override, FIELD_ATTRS[field_name], value)
    return override


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------

def engine_config(override: ThemeOverride, preset_id: Optional[str] = None) -> dict[str, Any]:
    """Build the renderer configuration for the current theme.

    Rebuilt whenever the theme changes; layout start is always manual.
    """
    spacing = override.node_spacing
    return {
        "startOnLoad": False,
        "theme": Presets.get(preset_id).engine_theme,
        "securityLevel": "loose",
        "fontFamily": override.font,
        "flowchart": {
            "htmlLabels": True,
            "curve": override.edge_style,
            "padding": 20,
            "nodeSpacing": spacing,
            "rankSpacing": spacing,
        },
        "sequence": {
            "diagramMarginX": 20,
            "diagramMarginY": 20,
            "actorMargin": spacing,
            "boxMargin": 10,
        },
    }

"""
Input validation for pretty-mermaid tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from MCP / LLM callers.  Theme edits are checked for
type only; numeric ranges are deliberately left to the rendering engine.
"""

from __future__ import annotations

import re
from typing import Any

from pretty_mermaid.theme import (
    COLOR_FIELDS,
    EDITABLE_FIELDS,
    INT_FIELDS,
    EdgeCurve,
    Presets,
)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def validate_color(value: Any, field_name: str) -> str:
    """Validate a CSS-style hex color (#RGB, #RRGGBB, #RRGGBBAA)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a color string, got {type(value).__name__}.")
    value = value.strip()
    if not re.match(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$", value):
        raise ValidationError(
            f"'{field_name}' must be a valid hex color (#RGB, #RRGGBB, or #RRGGBBAA), got '{value}'."
        )
    return value


def validate_number(value: Any, field_name: str) -> float:
    """Validate a numeric value (bools rejected)."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    return float(value)


def validate_int(value: Any, field_name: str) -> int:
    """Validate an integer value.

    Integral strings (slider input values) are accepted and converted.
    """
    if isinstance(value, str) and re.match(r"^\s*-?\d+\s*$", value):
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive).

    Returns the canonical spelling from *allowed*.
    """
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    lookup = {a.lower(): a for a in allowed}
    canonical = lookup.get(value.strip().lower())
    if canonical is None:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return canonical


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_EDITOR_ACTIONS = {"GET_CODE", "SET_CODE", "RENDER", "STATUS", "GET_SVG", "SHORTCUT"}
_THEME_ACTIONS = {"GET", "SELECT_PRESET", "EDIT", "RESET", "LIST_PRESETS"}
_VIEW_ACTIONS = {
    "ZOOM_IN", "ZOOM_OUT", "WHEEL", "RESET",
    "DRAG_START", "DRAG_MOVE", "DRAG_END", "STATE",
}
_EXPORT_ACTIONS = {"SVG", "PNG", "COPY"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_preset(value: Any) -> str:
    """Validate a theme preset identifier (modern, minimal, dark, ...)."""
    return validate_enum(value, "preset", set(Presets.names()))


def validate_edge_curve(value: Any) -> str:
    """Validate an edge curve style (basis, linear, step, ...)."""
    return validate_enum(value, "edgeStyle", {c.value for c in EdgeCurve})


def validate_theme_edit(field_name: Any, value: Any) -> tuple[str, Any]:
    """Validate one theme field edit and return ``(field, coerced_value)``.

    Only the type of *value* is checked.  Negative spacing or radius values
    pass through unchanged.
    """
    if not isinstance(field_name, str) or field_name not in EDITABLE_FIELDS:
        choices = ", ".join(EDITABLE_FIELDS)
        raise ValidationError(
            f"'field' must be one of [{choices}], got '{field_name}'."
        )
    if field_name in COLOR_FIELDS:
        return field_name, validate_color(value, field_name)
    if field_name in INT_FIELDS:
        return field_name, validate_int(value, field_name)
    if field_name == "edgeStyle":
        return field_name, validate_edge_curve(value)
    return field_name, validate_non_empty_string(value, field_name)


def validate_pointer(x: Any, y: Any) -> tuple[float, float]:
    """Validate a pointer position in client coordinates."""
    return validate_number(x, "x"), validate_number(y, "y")

"""
Pretty Mermaid MCP Server — a themed Mermaid diagram editor via Model Context Protocol.

Exposes 4 tools that let an LLM agent edit diagram code, restyle the
rendered SVG, pan/zoom the preview and export the result.

Tools:
  1. editor — code & rendering: get_code, set_code, render, status, get_svg, shortcut
  2. theme  — appearance: get, select_preset, edit, reset, list_presets
  3. view   — viewport: zoom_in, zoom_out, wheel, reset, drag_start, drag_move,
              drag_end, state
  4. export — output: svg, png, copy
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

from mcp.server.fastmcp import FastMCP

from pretty_mermaid.config import EditorConfig
from pretty_mermaid.session import DEFAULT_DIAGRAM, EditorSession
from pretty_mermaid.theme import EDITABLE_FIELDS, EdgeCurve, Presets
from pretty_mermaid.validation import (
    ValidationError,
    validate_action,
    validate_number,
    validate_pointer,
    validate_preset,
    validate_string,
    validate_theme_edit,
    _EDITOR_ACTIONS,
    _EXPORT_ACTIONS,
    _THEME_ACTIONS,
    _VIEW_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: suppress routine FastMCP INFO messages that clients show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("pretty-mermaid")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "pretty-mermaid",
    instructions=(
        "MCP server for editing, theming and exporting Mermaid diagrams.\n\n"
        "=== ONLY 4 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. editor(action, ...) — get_code, set_code, render, status, get_svg, shortcut.\n"
        "2. theme(action, ...) — get, select_preset, edit, reset, list_presets.\n"
        "3. view(action, ...) — zoom_in, zoom_out, wheel, reset, drag_start,\n"
        "   drag_move, drag_end, state.\n"
        "4. export(action, ...) — svg, png, copy.\n\n"
        "=== RULES ===\n"
        "- set_code renders automatically; a parse error keeps the previous diagram.\n"
        "- theme edits restyle the current diagram and are persisted.\n"
        "- Exports ignore zoom and pan: they always reproduce the full diagram.\n"
    ),
)

# The single editor session for this process.
_session: Optional[EditorSession] = None


def get_session() -> EditorSession:
    global _session
    if _session is None:
        _session = EditorSession(config=EditorConfig.from_env())
    return _session


def set_session(session: Optional[EditorSession]) -> None:
    """Replace the process session (``None`` rebuilds it lazily)."""
    global _session
    _session = session


def _status_json(session: EditorSession) -> str:
    return json.dumps(session.status(), indent=2)


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("pretty-mermaid://presets")
def preset_catalog() -> str:
    """Return all theme presets and their palettes."""
    entries: list[str] = []
    for p in Presets.all():
        entries.append(
            f"  {p.name}: primary={p.primary_fill} secondary={p.secondary_fill} "
            f"border={p.border_color} edge={p.edge_color} text={p.text_color} "
            f"background={p.background}"
        )
    return "Available theme presets:\n" + "\n".join(entries)


@mcp.resource("pretty-mermaid://edge-curves")
def edge_curve_catalog() -> str:
    """Return all edge curve styles accepted by theme(action='edit', field='edgeStyle')."""
    return "Available edge curves:\n" + "\n".join(f"  {c.value}" for c in EdgeCurve)


@mcp.resource("pretty-mermaid://default-diagram")
def default_diagram() -> str:
    """Return the starter diagram used when no code has been saved."""
    return DEFAULT_DIAGRAM


# ===================================================================
# TOOL 1: editor — code & rendering
# ===================================================================

@mcp.tool()
async def editor(
    action: str,
    code: str = "",
    key: str = "",
    ctrl: bool = False,
    shift: bool = False,
) -> str:
    """Diagram code and rendering.

    Actions:
      get_code — Return the current Mermaid code.
      set_code — Replace the code and render it (debounced). Params: code.
      render   — Re-render the current code now.
      status   — Render state, last error, zoom and pan as JSON.
      get_svg  — The styled SVG currently displayed.
      shortcut — Keyboard shortcut. Params: key, ctrl, shift
                 (ctrl+s: auto-save notice, ctrl+shift+C: copy SVG).

    Returns:
        Code, SVG markup or JSON status depending on action.
    """
    try:
        action = validate_action(action, "editor", _EDITOR_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = get_session()

    if action == "get_code":
        return session.code

    elif action == "set_code":
        try:
            code = validate_string(code, "code")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        session.set_code(code)
        await session.flush()
        return _status_json(session)

    elif action == "render":
        await session.render()
        return _status_json(session)

    elif action == "status":
        return _status_json(session)

    elif action == "get_svg":
        if session.document is None:
            return "Error: no diagram is displayed."
        return session.document.to_string()

    elif action == "shortcut":
        try:
            key = validate_string(key, "key", allow_empty=False)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        handled = await session.shortcut(key, ctrl=ctrl, shift=shift)
        if not handled:
            return f"Shortcut '{key}' ignored."
        return session.notify.last or "OK"

    return f"Error: unhandled action '{action}'."


# ===================================================================
# TOOL 2: theme — appearance
# ===================================================================

@mcp.tool()
async def theme(
    action: str,
    preset: str = "",
    field: str = "",
    value: Union[str, int, None] = None,
) -> str:
    """Theme presets and custom overrides.

    Actions:
      get           — Current preset and custom theme as JSON.
      select_preset — Switch preset and reset overrides. Params: preset.
      edit          — Change one field. Params: field, value.
                      Fields: primaryFill, secondaryFill, borderColor, edgeColor,
                      textColor (hex colors), borderRadius, nodeSpacing (integers),
                      font (font-family), edgeStyle (basis, linear, step, ...).
      reset         — Reset overrides to the current preset's defaults.
      list_presets  — List preset names.

    Returns:
        JSON theme state or a listing.
    """
    try:
        action = validate_action(action, "theme", _THEME_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = get_session()

    if action == "get":
        pass

    elif action == "select_preset":
        try:
            preset = validate_preset(preset)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        await session.select_preset(preset)

    elif action == "edit":
        try:
            field, value = validate_theme_edit(field, value)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        await session.edit_theme(field, value)

    elif action == "reset":
        await session.reset_theme()

    elif action == "list_presets":
        return json.dumps(Presets.names())

    return json.dumps({
        "preset": session.preset,
        "custom": session.theme.to_dict(),
        "fields": list(EDITABLE_FIELDS),
        "error": session.error,
    }, indent=2)


# ===================================================================
# TOOL 3: view — pan & zoom
# ===================================================================

@mcp.tool()
async def view(
    action: str,
    x: float = 0,
    y: float = 0,
    button: int = 0,
    delta_y: float = 0,
) -> str:
    """Preview pan and zoom.

    Actions:
      zoom_in / zoom_out — Step zoom by 1.25x (clamped to 10%..500%).
      wheel      — Wheel step; negative delta_y zooms in. Params: delta_y.
      reset      — Back to 100% with no pan.
      drag_start — Begin panning at a pointer position. Params: x, y, button.
      drag_move  — Pan to a pointer position while dragging. Params: x, y.
      drag_end   — Stop panning.
      state      — Current transform.

    Returns:
        JSON with zoom, pan, CSS transform and zoom label.
    """
    try:
        action = validate_action(action, "view", _VIEW_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    vp = get_session().viewport

    try:
        if action == "zoom_in":
            vp.zoom_in()
        elif action == "zoom_out":
            vp.zoom_out()
        elif action == "wheel":
            vp.wheel(validate_number(delta_y, "delta_y"))
        elif action == "reset":
            vp.reset()
        elif action == "drag_start":
            px, py = validate_pointer(x, y)
            vp.drag_start(px, py, button)
        elif action == "drag_move":
            px, py = validate_pointer(x, y)
            vp.drag_move(px, py)
        elif action == "drag_end":
            vp.drag_end()
    except ValidationError as exc:
        return f"Error: {exc.message}"

    t = vp.transform
    return json.dumps({
        "zoom": t.zoom,
        "pan": {"x": t.pan_x, "y": t.pan_y},
        "panning": vp.panning,
        "transform": t.css,
        "zoom_label": t.percent,
    }, indent=2)


# ===================================================================
# TOOL 4: export — files & clipboard
# ===================================================================

@mcp.tool()
async def export(action: str, directory: str = "") -> str:
    """Export the styled diagram.

    Actions:
      svg  — Write diagram.svg (with background rect and namespaces). Params: directory.
      png  — Write diagram.png at 2x resolution. Params: directory.
      copy — Copy the SVG markup to the system clipboard.

    Returns:
        The notification text, plus the written path for file exports.
    """
    try:
        action = validate_action(action, "export", _EXPORT_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"
    session = get_session()
    target = Path(directory).expanduser() if directory.strip() else None

    if action == "svg":
        path = session.export_svg(target)
    elif action == "png":
        path = await session.export_png(target)
    else:
        ok = await session.copy_svg()
        message = session.notify.last or ""
        return message if ok else f"Error: {message}"

    message = session.notify.last or ""
    if path is None:
        return f"Error: {message}"
    return f"{message} Saved to {path.resolve()}"


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()

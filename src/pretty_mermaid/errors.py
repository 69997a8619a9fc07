"""
Error kinds raised by the editor core.

Every error carries a human-readable ``message``.  None of them is fatal:
the editor session catches them at the operation boundary and either records
them (parse errors), shows a notification (export failures) or drops them
silently (stale renders).
"""

from __future__ import annotations


class EditorError(Exception):
    """Base class for all per-operation editor failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParseError(EditorError):
    """The diagram text failed engine validation."""


class RenderStale(EditorError):
    """A render resolved after a newer render had already been issued."""

    def __init__(self, generation: int, latest: int) -> None:
        self.generation = generation
        self.latest = latest
        super().__init__(
            f"Render #{generation} superseded by render #{latest}."
        )


class ExportSourceMissing(EditorError):
    """Export requested while no diagram is displayed."""

    def __init__(self, message: str = "No diagram to export!") -> None:
        super().__init__(message)


class RasterDecodeFailure(EditorError):
    """The SVG stream could not be rasterized."""


class ClipboardDenied(EditorError):
    """A clipboard write was rejected or is unavailable."""


class EngineError(EditorError):
    """The rendering engine could not be run or produced no document."""

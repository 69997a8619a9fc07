"""
Pan/zoom viewport state machine.

Holds a ``ViewportTransform`` over whatever is currently displayed and maps
zoom buttons, wheel steps and primary-button drags onto it.  Every
transition ends with one call to the ``on_apply`` hook, which receives the
CSS transform string and the zoom percentage readout.

The transform is applied as: translate by the pan offset, then scale by
the zoom factor, relative to the rendered document's box.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional


MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 1.25
WHEEL_STEP = 1.1
PRIMARY_BUTTON = 0


@dataclass(frozen=True)
class ViewportTransform:
    """Zoom factor plus pan offset in screen pixels."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    @property
    def css(self) -> str:
        return f"translate({_fmt(self.pan_x)}px, {_fmt(self.pan_y)}px) scale({_fmt(self.zoom)})"

    @property
    def percent(self) -> str:
        return f"{round(self.zoom * 100)}%"


IDENTITY = ViewportTransform()


def _fmt(value: float) -> str:
    return f"{value:g}"


def clamp_zoom(value: float, lo: float = MIN_ZOOM, hi: float = MAX_ZOOM) -> float:
    return min(max(value, lo), hi)


ApplyHook = Callable[[ViewportTransform], None]


class ViewportController:
    """Zoom/pan transitions over a single ``ViewportTransform``."""

    def __init__(
        self,
        on_apply: Optional[ApplyHook] = None,
        *,
        zoom_step: float = ZOOM_STEP,
        wheel_step: float = WHEEL_STEP,
        min_zoom: float = MIN_ZOOM,
        max_zoom: float = MAX_ZOOM,
    ) -> None:
        self.transform = IDENTITY
        self.panning = False
        self._anchor = (0.0, 0.0)
        self._on_apply = on_apply
        self.zoom_step = zoom_step
        self.wheel_step = wheel_step
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

    def _set(self, zoom: Optional[float] = None, pan_x: Optional[float] = None,
             pan_y: Optional[float] = None) -> ViewportTransform:
        t = self.transform
        self.transform = ViewportTransform(
            zoom=clamp_zoom(t.zoom if zoom is None else zoom, self.min_zoom, self.max_zoom),
            pan_x=t.pan_x if pan_x is None else pan_x,
            pan_y=t.pan_y if pan_y is None else pan_y,
        )
        self.apply()
        return self.transform

    def apply(self) -> None:
        """Push the current transform to the display surface."""
        if self._on_apply is not None:
            self._on_apply(self.transform)

    # -- zoom --

    def zoom_in(self) -> ViewportTransform:
        return self._set(zoom=self.transform.zoom * self.zoom_step)

    def zoom_out(self) -> ViewportTransform:
        return self._set(zoom=self.transform.zoom / self.zoom_step)

    def wheel(self, delta_y: float) -> ViewportTransform:
        """Scroll up (negative delta) zooms in, anything else zooms out."""
        factor = self.wheel_step if delta_y < 0 else 1 / self.wheel_step
        return self._set(zoom=self.transform.zoom * factor)

    def reset(self) -> ViewportTransform:
        self.transform = IDENTITY
        self.apply()
        return self.transform

    # -- pan --

    def drag_start(self, x: float, y: float, button: int = PRIMARY_BUTTON) -> bool:
        """Enter panning mode.  Non-primary buttons are ignored."""
        if button != PRIMARY_BUTTON:
            return False
        self.panning = True
        self._anchor = (x - self.transform.pan_x, y - self.transform.pan_y)
        return True

    def drag_move(self, x: float, y: float) -> Optional[ViewportTransform]:
        if not self.panning:
            return None
        ax, ay = self._anchor
        return self._set(pan_x=x - ax, pan_y=y - ay)

    def drag_end(self) -> bool:
        if not self.panning:
            return False
        self.panning = False
        return True

"""Visible window onto a chart raster."""

import math
from dataclasses import dataclass

from vfrplan.core.config import EngineSettings


@dataclass(frozen=True)
class ViewState:
    """What part of a chart is on screen.

    Every transition returns a new ViewState; instances are never mutated.

    Attributes:
        center_x: Chart pixel column shown at the viewport centre.
        center_y: Chart pixel row shown at the viewport centre.
        zoom: Screen pixels per chart pixel.
        rotation_deg: Chart rotation on screen, clockwise, in [0, 360).
        viewport_width: Viewport width in screen pixels (at least 1).
        viewport_height: Viewport height in screen pixels (at least 1).
    """

    center_x: float
    center_y: float
    zoom: float
    rotation_deg: float
    viewport_width: int
    viewport_height: int

    @property
    def viewport_center(self) -> tuple[float, float]:
        return self.viewport_width / 2.0, self.viewport_height / 2.0


@dataclass(frozen=True)
class ViewLimits:
    """Zoom limits applied to every view transition.

    Attributes:
        min_zoom: Smallest allowed zoom (most zoomed out).
        max_zoom: Largest allowed zoom (most magnified).
        fill_viewport: Also forbid zooming out past the point where the
            raster fills the viewport, and keep the raster edges on screen.
    """

    min_zoom: float = 1.0 / 8.0
    max_zoom: float = 1.0
    fill_viewport: bool = False

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min_zoom) and math.isfinite(self.max_zoom)):
            raise ValueError("zoom limits must be finite")
        if self.min_zoom <= 0:
            raise ValueError(f"min_zoom must be positive, got {self.min_zoom}")
        if self.max_zoom < self.min_zoom:
            raise ValueError(f"max_zoom ({self.max_zoom}) is below min_zoom ({self.min_zoom})")

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "ViewLimits":
        return cls(settings.min_zoom, settings.max_zoom, settings.fill_viewport)

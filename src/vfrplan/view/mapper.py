"""Pan, zoom and rotate a chart view, and map between screen and chart.

Screen coordinates have their origin at the viewport's top-left corner with
y pointing down. A chart pixel p appears on screen at

    screen = R(rotation) * (p - center) * zoom + viewport_center

where R rotates clockwise on screen. Transitions never fail on out-of-range
results: zoom is clamped to the limits and the centre to the raster, so
the visible window always overlaps the chart.

Typical usage:
    from vfrplan.view import ViewLimits, ViewMapper

    mapper = ViewMapper(georef, ViewLimits(min_zoom=0.125, max_zoom=1.0))
    view = mapper.initial_view(1280, 800)
    view = mapper.zoom(view, 2.0, pivot=(640, 400))
    lat, lon = mapper.screen_to_geodetic(view, 100, 100)
"""

import logging
import math
from dataclasses import replace

from vfrplan.chart.georeference import ChartGeoreference
from vfrplan.view.view_state import ViewLimits, ViewState

logger = logging.getLogger(__name__)


def _check_finite(name: str, *values: float) -> None:
    if not all(math.isfinite(v) for v in values):
        raise ValueError(f"{name} must be finite, got {values}")


def _rotate(x: float, y: float, degrees: float) -> tuple[float, float]:
    theta = math.radians(degrees)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    return x * cos_t - y * sin_t, x * sin_t + y * cos_t


class ViewMapper:
    """View transitions and coordinate mapping for one chart.

    The mapper holds the chart's georeference and the zoom limits; the
    ViewState it produces is owned by the caller.

    Examples:
        >>> mapper = ViewMapper(georef)
        >>> view = mapper.initial_view(800, 600)
        >>> mapper.zoom(view, 0.0001).zoom == mapper.min_zoom(view)
        True
    """

    def __init__(self, georef: ChartGeoreference, limits: ViewLimits | None = None) -> None:
        self.georef = georef
        self.limits = limits or ViewLimits()

    @property
    def raster_size(self) -> tuple[int, int]:
        return self.georef.width, self.georef.height

    def min_zoom(self, view: ViewState) -> float:
        """Smallest zoom allowed for a view's viewport."""
        minimum = self.limits.min_zoom
        if self.limits.fill_viewport:
            width, height = self.raster_size
            fill = max(view.viewport_width / width, view.viewport_height / height)
            minimum = max(minimum, fill)
        return min(minimum, self.limits.max_zoom)

    def _clamp(self, view: ViewState) -> ViewState:
        """Bring zoom within limits and the centre within the raster."""
        zoom = min(max(view.zoom, self.min_zoom(view)), self.limits.max_zoom)
        if zoom != view.zoom:
            logger.debug("Zoom %.4f clamped to %.4f", view.zoom, zoom)

        width, height = self.raster_size
        half_x = half_y = 0.0
        if self.limits.fill_viewport:
            # Half extents of the rotated viewport, in chart pixels.
            theta = math.radians(view.rotation_deg)
            cos_t, sin_t = abs(math.cos(theta)), abs(math.sin(theta))
            half_x = (cos_t * view.viewport_width + sin_t * view.viewport_height) / (2.0 * zoom)
            half_y = (sin_t * view.viewport_width + cos_t * view.viewport_height) / (2.0 * zoom)

        center_x = self._clamp_axis(view.center_x, half_x, width)
        center_y = self._clamp_axis(view.center_y, half_y, height)
        return replace(view, center_x=center_x, center_y=center_y, zoom=zoom)

    @staticmethod
    def _clamp_axis(value: float, half_extent: float, size: float) -> float:
        if 2.0 * half_extent >= size:
            return size / 2.0
        return min(max(value, half_extent), size - half_extent)

    def initial_view(self, viewport_width: int, viewport_height: int) -> ViewState:
        """A north-up view of the whole raster, centred.

        Raises:
            ValueError: If a viewport dimension is not finite.
        """
        _check_finite("viewport size", viewport_width, viewport_height)
        width, height = self.raster_size
        vw, vh = max(1, int(viewport_width)), max(1, int(viewport_height))
        fit = min(vw / width, vh / height)
        return self._clamp(ViewState(width / 2.0, height / 2.0, fit, 0.0, vw, vh))

    def pan(self, view: ViewState, dx: float, dy: float) -> ViewState:
        """Drag the chart by a screen-pixel delta.

        The chart content moves with the delta, so the point under the
        cursor stays under it unless the centre is clamped.

        Raises:
            ValueError: If the delta is not finite.
        """
        _check_finite("pan delta", dx, dy)
        chart_dx, chart_dy = _rotate(dx, dy, -view.rotation_deg)
        moved = replace(
            view,
            center_x=view.center_x - chart_dx / view.zoom,
            center_y=view.center_y - chart_dy / view.zoom,
        )
        return self._clamp(moved)

    def zoom(self, view: ViewState, factor: float, pivot: tuple[float, float] | None = None) -> ViewState:
        """Scale the view by a factor, keeping a screen point fixed.

        Args:
            view: Current view.
            factor: Zoom multiplier; above 1 magnifies.
            pivot: Screen point that stays put; the viewport centre when None.

        Returns:
            The new view, with zoom clamped to the limits.

        Raises:
            ValueError: If the factor is not a positive finite number.
        """
        _check_finite("zoom factor", factor)
        if factor <= 0:
            raise ValueError(f"zoom factor must be positive, got {factor}")

        pivot = pivot or view.viewport_center
        _check_finite("zoom pivot", *pivot)
        anchor_x, anchor_y = self.screen_to_chart_pixel(view, *pivot)

        zoomed = self._clamp(replace(view, zoom=view.zoom * factor))
        offset_x, offset_y = _rotate(
            pivot[0] - view.viewport_width / 2.0, pivot[1] - view.viewport_height / 2.0, -view.rotation_deg
        )
        moved = replace(
            zoomed,
            center_x=anchor_x - offset_x / zoomed.zoom,
            center_y=anchor_y - offset_y / zoomed.zoom,
        )
        return self._clamp(moved)

    def rotate(self, view: ViewState, delta_deg: float) -> ViewState:
        """Rotate about the viewport centre; the angle wraps into [0, 360).

        Raises:
            ValueError: If the angle is not finite.
        """
        _check_finite("rotation", delta_deg)
        rotation = (view.rotation_deg + delta_deg) % 360.0
        # A tiny negative sum rounds up to a full turn.
        if rotation >= 360.0:
            rotation = 0.0
        return self._clamp(replace(view, rotation_deg=rotation))

    def resize(self, view: ViewState, viewport_width: int, viewport_height: int) -> ViewState:
        """Change the viewport size; each side is kept at least one pixel.

        Raises:
            ValueError: If a dimension is not finite.
        """
        _check_finite("viewport size", viewport_width, viewport_height)
        resized = replace(view, viewport_width=max(1, int(viewport_width)), viewport_height=max(1, int(viewport_height)))
        return self._clamp(resized)

    def center_on(self, view: ViewState, latitude: float, longitude: float) -> ViewState:
        """Centre the view on a geodetic position.

        Raises:
            ValueError: If the position cannot be projected.
        """
        px, py = self.georef.to_pixel(latitude, longitude)
        return self._clamp(replace(view, center_x=px, center_y=py))

    def chart_pixel_to_screen(self, view: ViewState, px: float, py: float) -> tuple[float, float]:
        rx, ry = _rotate(px - view.center_x, py - view.center_y, view.rotation_deg)
        cx, cy = view.viewport_center
        return rx * view.zoom + cx, ry * view.zoom + cy

    def screen_to_chart_pixel(self, view: ViewState, sx: float, sy: float) -> tuple[float, float]:
        cx, cy = view.viewport_center
        rx, ry = _rotate((sx - cx) / view.zoom, (sy - cy) / view.zoom, -view.rotation_deg)
        return rx + view.center_x, ry + view.center_y

    def screen_to_geodetic(self, view: ViewState, sx: float, sy: float) -> tuple[float, float]:
        """Convert a screen point to (latitude, longitude).

        Points beyond the raster edge are extrapolated through the same
        projection.

        Raises:
            ValueError: If the point is not finite.
        """
        _check_finite("screen point", sx, sy)
        px, py = self.screen_to_chart_pixel(view, sx, sy)
        return self.georef.to_geodetic(px, py)

    def geodetic_to_screen(self, view: ViewState, latitude: float, longitude: float) -> tuple[float, float] | None:
        """Convert (latitude, longitude) to a screen point.

        Returns:
            The screen point, or None if the position is off the chart or
            outside the viewport.
        """
        try:
            px, py = self.georef.to_pixel(latitude, longitude)
        except ValueError:
            return None
        if not self.georef.contains_pixel(px, py):
            return None

        sx, sy = self.chart_pixel_to_screen(view, px, py)
        if 0.0 <= sx < view.viewport_width and 0.0 <= sy < view.viewport_height:
            return sx, sy
        return None

    def visible_pixel_rect(self, view: ViewState) -> tuple[float, float, float, float] | None:
        """Axis-aligned raster rectangle covering the viewport.

        Returns:
            (left, top, right, bottom) in chart pixels, cut to the raster, or
            None if the viewport shows none of it.
        """
        corners = [
            self.screen_to_chart_pixel(view, sx, sy)
            for sx, sy in ((0, 0), (view.viewport_width, 0), (view.viewport_width, view.viewport_height), (0, view.viewport_height))
        ]
        width, height = self.raster_size
        left = max(0.0, min(x for x, _ in corners))
        top = max(0.0, min(y for _, y in corners))
        right = min(float(width), max(x for x, _ in corners))
        bottom = min(float(height), max(y for _, y in corners))
        if left >= right or top >= bottom:
            return None
        return left, top, right, bottom

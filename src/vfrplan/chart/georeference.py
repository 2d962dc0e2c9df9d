"""Pixel to geodetic mapping for one chart raster.

A ChartGeoreference combines the raster's affine geo transform (pixel to
projected chart coordinates) with its projection (chart coordinates to
latitude/longitude). Both directions are closed-form, so a round trip
returns the starting point to floating-point precision.

Typical usage:
    from vfrplan.chart.georeference import ChartGeoreference, RasterGeoTags

    tags = RasterGeoTags(width=16000, height=12000,
                         geo_transform=(-364000.0, 42.3, 0.0, 254000.0, 0.0, -42.3),
                         spatial_ref=proj4_text)
    georef = ChartGeoreference.from_raster_metadata(tags)
    lat, lon = georef.to_geodetic(8000.0, 6000.0)
    px, py = georef.to_pixel(lat, lon)
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from vfrplan.chart.projection import Projection, projection_from_spatial_ref
from vfrplan.core.errors import MissingGeoreference

logger = logging.getLogger(__name__)

# Determinants smaller than this (in squared chart units per pixel) are degenerate.
_MIN_DETERMINANT = 1e-18


@dataclass(frozen=True)
class RasterGeoTags:
    """Georeferencing metadata read from a raster.

    Attributes:
        width: Raster width in pixels.
        height: Raster height in pixels.
        geo_transform: Affine transform in GDAL order (x0, dx, rx, y0, ry, dy):
            X = x0 + px*dx + py*rx, Y = y0 + px*ry + py*dy.
        spatial_ref: Spatial reference text (proj4, WKT or "EPSG:n").
    """

    width: int
    height: int
    geo_transform: tuple[float, float, float, float, float, float] | None
    spatial_ref: str | None


class AffineTransform:
    """Invertible 2-D affine transform between pixel and chart coordinates."""

    def __init__(self, geo_transform: Sequence[float]) -> None:
        """Build from a GDAL-order geo transform.

        Raises:
            MissingGeoreference: If the transform is malformed or not invertible.
        """
        if len(geo_transform) != 6:
            raise MissingGeoreference(f"geo transform needs 6 coefficients, got {len(geo_transform)}")
        if not all(math.isfinite(v) for v in geo_transform):
            raise MissingGeoreference(f"geo transform has non-finite coefficients: {tuple(geo_transform)}")

        x0, dx, rx, y0, ry, dy = (float(v) for v in geo_transform)
        det = dx * dy - rx * ry
        if abs(det) < _MIN_DETERMINANT:
            raise MissingGeoreference(f"geo transform is not invertible: {tuple(geo_transform)}")

        self.coefficients = (x0, dx, rx, y0, ry, dy)
        self._forward = np.array([[dx, rx, x0], [ry, dy, y0], [0.0, 0.0, 1.0]])
        self._inverse = np.linalg.inv(self._forward)

    def apply(self, px: float, py: float) -> tuple[float, float]:
        """Pixel to chart coordinates."""
        x, y, _ = self._forward @ np.array([px, py, 1.0])
        return float(x), float(y)

    def invert(self, x: float, y: float) -> tuple[float, float]:
        """Chart coordinates to pixel."""
        px, py, _ = self._inverse @ np.array([x, y, 1.0])
        return float(px), float(py)

    @property
    def pixel_size(self) -> tuple[float, float]:
        """Chart units per pixel along the raster x and y axes."""
        x0, dx, rx, y0, ry, dy = self.coefficients
        return math.hypot(dx, ry), math.hypot(rx, dy)


class Bounds:
    """Polygon in chart coordinates with extent pre-check and ray casting."""

    def __init__(self, polygon: Sequence[tuple[float, float]]) -> None:
        if len(polygon) < 3:
            raise ValueError("a bounds polygon needs at least three points")
        self.polygon = tuple((float(x), float(y)) for x, y in polygon)
        xs = [x for x, _ in self.polygon]
        ys = [y for _, y in self.polygon]
        self.extent = (min(xs), min(ys), max(xs), max(ys))

    def contains(self, x: float, y: float) -> bool:
        """Return True if the point lies inside the polygon."""
        min_x, min_y, max_x, max_y = self.extent
        if not (min_x <= x <= max_x and min_y <= y <= max_y):
            return False

        inside = False
        count = len(self.polygon)
        for idx in range(count):
            start_x, start_y = self.polygon[idx]
            end_x, end_y = self.polygon[(idx + 1) % count]

            # Edge straddles the horizontal ray through the point.
            if (start_y > y) != (end_y > y):
                cross_x = (end_x - start_x) * (y - start_y) / (end_y - start_y) + start_x
                if x < cross_x:
                    inside = not inside
        return inside


class ChartGeoreference:
    """Bidirectional pixel to geodetic mapping for one chart.

    Immutable once built, so it can be shared across threads.

    Examples:
        >>> georef = ChartGeoreference.from_raster_metadata(tags)
        >>> lat, lon = georef.to_geodetic(100.0, 200.0)
        >>> georef.to_pixel(lat, lon)
        (100.0..., 200.0...)
    """

    def __init__(self, width: int, height: int, affine: AffineTransform, projection: Projection, spatial_ref: str) -> None:
        self.width = width
        self.height = height
        self.affine = affine
        self.projection = projection
        self.spatial_ref = spatial_ref
        self.bounds = Bounds([affine.apply(px, py) for px, py in self._corners()])

    @classmethod
    def from_raster_metadata(cls, tags: RasterGeoTags) -> "ChartGeoreference":
        """Build a georeference from raster metadata.

        Raises:
            MissingGeoreference: If the size, transform or spatial reference
                is missing or degenerate.
            UnsupportedProjection: If the projection cannot be inverted analytically.
        """
        if tags.width <= 0 or tags.height <= 0:
            raise MissingGeoreference(f"raster has no pixels ({tags.width}x{tags.height})")
        if tags.geo_transform is None:
            raise MissingGeoreference("raster has no geo transform")
        if not tags.spatial_ref or not tags.spatial_ref.strip():
            raise MissingGeoreference("raster has no spatial reference")

        affine = AffineTransform(tags.geo_transform)
        projection = projection_from_spatial_ref(tags.spatial_ref)
        logger.info(
            "Georeferenced %dx%d raster with %s projection", tags.width, tags.height, type(projection).__name__
        )
        return cls(tags.width, tags.height, affine, projection, tags.spatial_ref)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def proj4(self) -> str:
        """The projection as a proj4 string."""
        return self.projection.proj4()

    def _corners(self) -> list[tuple[float, float]]:
        w, h = float(self.width), float(self.height)
        return [(0.0, 0.0), (w, 0.0), (w, h), (0.0, h)]

    def pixel_to_chart(self, px: float, py: float) -> tuple[float, float]:
        return self.affine.apply(px, py)

    def chart_to_pixel(self, x: float, y: float) -> tuple[float, float]:
        return self.affine.invert(x, y)

    def to_geodetic(self, px: float, py: float) -> tuple[float, float]:
        """Convert a pixel position to (latitude, longitude).

        Raises:
            ValueError: If the coordinates are not finite.
        """
        x, y = self.affine.apply(px, py)
        return self.projection.inverse(x, y)

    def to_pixel(self, latitude: float, longitude: float) -> tuple[float, float]:
        """Convert (latitude, longitude) to a pixel position.

        The result may lie outside the raster; see contains_pixel().

        Raises:
            ValueError: If the point cannot be projected.
        """
        x, y = self.projection.forward(latitude, longitude)
        return self.affine.invert(x, y)

    def contains_pixel(self, px: float, py: float) -> bool:
        return 0.0 <= px < self.width and 0.0 <= py < self.height

    def contains(self, latitude: float, longitude: float) -> bool:
        """Return True if a geodetic point falls on the raster."""
        try:
            x, y = self.projection.forward(latitude, longitude)
        except ValueError:
            return False
        return self.bounds.contains(x, y)

    def geodetic_bounds(self) -> list[tuple[float, float]]:
        """Raster corners as (latitude, longitude), clockwise from top-left."""
        return [self.to_geodetic(px, py) for px, py in self._corners()]

"""Chart georeferencing: projections, GeoTIFF tags and chart packages.

Typical usage:
    from vfrplan.chart import open_chart_package

    package = open_chart_package("Seattle.zip")
    lat, lon = package.georeference.to_geodetic(8000.0, 6000.0)
"""

from vfrplan.chart.georeference import AffineTransform, Bounds, ChartGeoreference, RasterGeoTags
from vfrplan.chart.geotiff import parse_world_file, read_geotiff_tags
from vfrplan.chart.package import ChartPackage, open_chart_package
from vfrplan.chart.projection import (
    Ellipsoid,
    Geographic,
    LambertConformalConic,
    Mercator,
    Projection,
    projection_from_spatial_ref,
)

__all__ = [
    "AffineTransform",
    "Bounds",
    "ChartGeoreference",
    "ChartPackage",
    "Ellipsoid",
    "Geographic",
    "LambertConformalConic",
    "Mercator",
    "Projection",
    "RasterGeoTags",
    "open_chart_package",
    "parse_world_file",
    "projection_from_spatial_ref",
    "read_geotiff_tags",
]

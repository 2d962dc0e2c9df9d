"""Open a chart package zip and georeference its raster.

FAA VFR chart downloads are zips holding a GeoTIFF and usually a ``.tfw``
world file beside it. Only tags and sidecars are read; the pixels are left
to whatever renders the chart.

Typical usage:
    from vfrplan.chart.package import open_chart_package

    package = open_chart_package("Seattle.zip")
    print(package.name, package.georeference.size)
"""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from vfrplan.archive.reader import ArchiveHandle, ArchiveKind, identify, open_archive
from vfrplan.chart.georeference import ChartGeoreference, RasterGeoTags
from vfrplan.chart.geotiff import parse_world_file, read_geotiff_tags
from vfrplan.core.errors import MemberNotFound, MissingGeoreference
from vfrplan.core.tasks import CancelToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartPackage:
    """A georeferenced chart.

    Attributes:
        name: Chart name (the raster member's stem, e.g. "Seattle SEC").
        source: Display name of the archive it came from.
        member: Raster member name inside the archive.
        geo_tags: Raster metadata after sidecar overrides.
        georeference: Pixel to geodetic mapping.
    """

    name: str
    source: str
    member: str
    geo_tags: RasterGeoTags
    georeference: ChartGeoreference


def _sidecar(handle: ArchiveHandle, member: str, suffix: str) -> str | None:
    """Find the member sharing a raster's stem with the given suffix, ignoring case."""
    wanted = f"{member.rsplit('.', 1)[0]}{suffix}".lower()
    for name in handle.list_members():
        if name.lower() == wanted:
            return name
    return None


def _read_text(handle: ArchiveHandle, member: str) -> str:
    return handle.read_member(member).decode("utf-8", errors="replace")


def read_chart_tags(handle: ArchiveHandle, member: str) -> RasterGeoTags:
    """Read a raster's tags, then apply ``.tfw`` and ``.prj`` sidecar overrides.

    Raises:
        MemberNotFound: If the member does not exist.
        CorruptArchive: If the member is not a readable TIFF.
        MissingGeoreference: If a world file is malformed.
        UnsupportedProjection: If the GeoKeys name an unsupported projection.
    """
    with handle.member_stream(member) as stream, handle.reading(member):
        tags = read_geotiff_tags(stream)

    world_file = _sidecar(handle, member, ".tfw")
    if world_file:
        logger.debug("Using world file %s", world_file)
        tags = RasterGeoTags(tags.width, tags.height, parse_world_file(_read_text(handle, world_file)), tags.spatial_ref)

    prj_file = _sidecar(handle, member, ".prj")
    if prj_file:
        logger.debug("Using projection file %s", prj_file)
        tags = RasterGeoTags(tags.width, tags.height, tags.geo_transform, _read_text(handle, prj_file).strip())

    return tags


def open_chart_package(
    source: str | Path | bytes | BinaryIO,
    member: str | None = None,
    cancel: CancelToken | None = None,
) -> ChartPackage:
    """Open a chart package and build its georeference.

    Args:
        source: Archive path, bytes, or binary stream.
        member: Raster member to use; the first GeoTIFF (preferring ones with
            a world file) when None.
        cancel: Optional cancellation token.

    Returns:
        The georeferenced chart. The archive is closed before returning.

    Raises:
        IoError: If the file cannot be read.
        CorruptArchive: If the archive or raster is damaged.
        MemberNotFound: If the named member does not exist.
        MissingGeoreference: If the archive holds no GeoTIFF or it lacks
            georeferencing.
        UnsupportedProjection: If the projection is not supported.
        OperationCancelled: If the cancel token fires.
    """
    with open_archive(source) as handle:
        if member is None:
            contents = identify(handle)
            if contents.kind is not ArchiveKind.CHART:
                raise MissingGeoreference(f"{handle.name} holds no GeoTIFF chart")
            member = contents.charts[0]
        elif not handle.has_member(member):
            raise MemberNotFound(f"{member} not found in {handle.name}")

        if cancel is not None:
            cancel.raise_if_cancelled()

        tags = read_chart_tags(handle, member)
        archive_name = handle.name

    if cancel is not None:
        cancel.raise_if_cancelled()

    georeference = ChartGeoreference.from_raster_metadata(tags)
    name = PurePosixPath(member).stem
    logger.info("Opened chart %s from %s (%dx%d)", name, archive_name, tags.width, tags.height)
    return ChartPackage(name, archive_name, member, tags, georeference)

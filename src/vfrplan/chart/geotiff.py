"""GeoTIFF georeferencing tags, world files and .prj sidecars.

Only the first image file directory is read, through Pillow's TIFF tag
directory, so no pixel data is decoded: FAA charts are far larger than
Pillow's decompression-bomb limit. The GeoKey directory is turned into
spatial reference text that pyproj understands.
"""

import logging
from typing import BinaryIO

from PIL import TiffImagePlugin

from vfrplan.chart.georeference import RasterGeoTags
from vfrplan.core.errors import CorruptArchive, MissingGeoreference, UnsupportedProjection

logger = logging.getLogger(__name__)

TAG_IMAGE_WIDTH = 256
TAG_IMAGE_LENGTH = 257
TAG_MODEL_PIXEL_SCALE = 33550
TAG_MODEL_TIEPOINT = 33922
TAG_MODEL_TRANSFORMATION = 34264
TAG_GEO_KEY_DIRECTORY = 34735
TAG_GEO_DOUBLE_PARAMS = 34736
TAG_GEO_ASCII_PARAMS = 34737

# GeoKey ids.
GT_MODEL_TYPE = 1024
GT_RASTER_TYPE = 1025
GEOGRAPHIC_TYPE = 2048
GEOG_SEMI_MAJOR_AXIS = 2057
GEOG_INV_FLATTENING = 2059
PROJECTED_CS_TYPE = 3072
PROJ_COORD_TRANS = 3075
PROJ_LINEAR_UNITS = 3076
PROJ_STD_PARALLEL_1 = 3078
PROJ_STD_PARALLEL_2 = 3079
PROJ_NAT_ORIGIN_LONG = 3080
PROJ_NAT_ORIGIN_LAT = 3081
PROJ_FALSE_EASTING = 3082
PROJ_FALSE_NORTHING = 3083
PROJ_FALSE_ORIGIN_LONG = 3084
PROJ_FALSE_ORIGIN_LAT = 3085
PROJ_FALSE_ORIGIN_EASTING = 3086
PROJ_FALSE_ORIGIN_NORTHING = 3087
PROJ_CENTER_LONG = 3088
PROJ_SCALE_AT_NAT_ORIGIN = 3092

MODEL_TYPE_PROJECTED = 1
MODEL_TYPE_GEOGRAPHIC = 2
RASTER_PIXEL_IS_POINT = 2
USER_DEFINED = 32767

CT_MERCATOR = 7
CT_LAMBERT_CONF_CONIC_2SP = 8
CT_LAMBERT_CONF_CONIC_1SP = 9

_DATUMS = {4269: "+datum=NAD83", 4326: "+datum=WGS84", 4267: "+datum=NAD27"}
_LINEAR_UNITS = {9001: "m", 9002: "ft", 9003: "us-ft"}

_TIFF_PREFIXES = (b"II*\x00", b"MM\x00*")
_BIGTIFF_PREFIXES = (b"II+\x00", b"MM\x00+")


def _as_tuple(value) -> tuple:
    """Pillow returns single-valued tags as scalars; normalise to a tuple."""
    if value is None:
        return ()
    if isinstance(value, tuple):
        return value
    if isinstance(value, (list, bytes)):
        return tuple(value)
    return (value,)


def read_tiff_directory(stream: BinaryIO) -> TiffImagePlugin.ImageFileDirectory_v2:
    """Load the first image file directory of a TIFF or BigTIFF stream.

    Raises:
        CorruptArchive: If the stream is not a TIFF file.
    """
    header = stream.read(8)
    if header[:4] in _BIGTIFF_PREFIXES:
        header += stream.read(8)
    elif header[:4] not in _TIFF_PREFIXES:
        raise CorruptArchive("not a TIFF image")

    try:
        ifd = TiffImagePlugin.ImageFileDirectory_v2(header)
        stream.seek(ifd.next)
        ifd.load(stream)
    except (SyntaxError, ValueError, OSError, EOFError) as e:
        raise CorruptArchive(f"unreadable TIFF directory: {e}") from e

    return ifd


def parse_geo_keys(ifd) -> dict[int, object]:
    """Decode the GeoKey directory into {key id: value}.

    Values are ints for inline keys, floats (or tuples) for double
    parameters, and strings for ASCII parameters.
    """
    directory = _as_tuple(ifd.get(TAG_GEO_KEY_DIRECTORY))
    if len(directory) < 4:
        return {}

    doubles = _as_tuple(ifd.get(TAG_GEO_DOUBLE_PARAMS))
    ascii_params = ifd.get(TAG_GEO_ASCII_PARAMS) or ""
    if isinstance(ascii_params, bytes):
        ascii_params = ascii_params.decode("latin-1")

    keys: dict[int, object] = {}
    count = directory[3]
    for idx in range(count):
        entry = directory[4 + idx * 4 : 8 + idx * 4]
        if len(entry) < 4:
            logger.warning("Truncated GeoKey directory (%d of %d keys)", idx, count)
            break

        key_id, location, value_count, value = entry
        if location == 0:
            keys[key_id] = value
        elif location == TAG_GEO_DOUBLE_PARAMS:
            values = doubles[value : value + value_count]
            keys[key_id] = values[0] if value_count == 1 and values else tuple(values)
        elif location == TAG_GEO_ASCII_PARAMS:
            keys[key_id] = ascii_params[value : value + value_count].rstrip("|\x00")
        else:
            logger.debug("Skipping GeoKey %d stored in tag %d", key_id, location)

    return keys


def _first(keys: dict, *ids: int, default: float = 0.0) -> float:
    for key_id in ids:
        if key_id in keys:
            return float(keys[key_id])
    return default


def _datum(keys: dict) -> str:
    code = keys.get(GEOGRAPHIC_TYPE)
    if code in _DATUMS:
        return _DATUMS[code]
    if GEOG_SEMI_MAJOR_AXIS in keys and GEOG_INV_FLATTENING in keys:
        return f"+a={float(keys[GEOG_SEMI_MAJOR_AXIS])!r} +rf={float(keys[GEOG_INV_FLATTENING])!r}"
    return "+ellps=GRS80"


def geo_keys_to_spatial_ref(keys: dict) -> str | None:
    """Convert GeoKeys into spatial reference text.

    Returns:
        "EPSG:n" for registered systems, a proj4 string for user-defined
        ones, or None when the raster carries no GeoKeys.

    Raises:
        UnsupportedProjection: If a user-defined projection uses a coordinate
            transformation other than Lambert conformal conic or Mercator.
    """
    if not keys:
        return None

    model = keys.get(GT_MODEL_TYPE)
    if model == MODEL_TYPE_GEOGRAPHIC:
        code = keys.get(GEOGRAPHIC_TYPE)
        if code and code != USER_DEFINED:
            return f"EPSG:{code}"
        return f"+proj=longlat {_datum(keys)} +no_defs"

    if model != MODEL_TYPE_PROJECTED:
        raise UnsupportedProjection(f"GeoTIFF model type {model} is not supported")

    code = keys.get(PROJECTED_CS_TYPE)
    if code and code != USER_DEFINED:
        return f"EPSG:{code}"

    units = _LINEAR_UNITS.get(keys.get(PROJ_LINEAR_UNITS, 9001), "m")
    tail = f"{_datum(keys)} +units={units} +no_defs"
    transform = keys.get(PROJ_COORD_TRANS)

    if transform == CT_LAMBERT_CONF_CONIC_2SP:
        lat_1 = _first(keys, PROJ_STD_PARALLEL_1)
        lat_2 = _first(keys, PROJ_STD_PARALLEL_2, default=lat_1)
        lat_0 = _first(keys, PROJ_FALSE_ORIGIN_LAT, PROJ_NAT_ORIGIN_LAT)
        lon_0 = _first(keys, PROJ_FALSE_ORIGIN_LONG, PROJ_NAT_ORIGIN_LONG, PROJ_CENTER_LONG)
        x_0 = _first(keys, PROJ_FALSE_ORIGIN_EASTING, PROJ_FALSE_EASTING)
        y_0 = _first(keys, PROJ_FALSE_ORIGIN_NORTHING, PROJ_FALSE_NORTHING)
        return (
            f"+proj=lcc +lat_1={lat_1!r} +lat_2={lat_2!r} +lat_0={lat_0!r} +lon_0={lon_0!r} "
            f"+x_0={x_0!r} +y_0={y_0!r} {tail}"
        )

    if transform == CT_LAMBERT_CONF_CONIC_1SP:
        lat_0 = _first(keys, PROJ_NAT_ORIGIN_LAT)
        lon_0 = _first(keys, PROJ_NAT_ORIGIN_LONG, PROJ_CENTER_LONG)
        k_0 = _first(keys, PROJ_SCALE_AT_NAT_ORIGIN, default=1.0)
        x_0 = _first(keys, PROJ_FALSE_EASTING)
        y_0 = _first(keys, PROJ_FALSE_NORTHING)
        return (
            f"+proj=lcc +lat_1={lat_0!r} +lat_0={lat_0!r} +lon_0={lon_0!r} +k_0={k_0!r} "
            f"+x_0={x_0!r} +y_0={y_0!r} {tail}"
        )

    if transform == CT_MERCATOR:
        lon_0 = _first(keys, PROJ_NAT_ORIGIN_LONG, PROJ_CENTER_LONG)
        x_0 = _first(keys, PROJ_FALSE_EASTING)
        y_0 = _first(keys, PROJ_FALSE_NORTHING)
        if PROJ_STD_PARALLEL_1 in keys:
            scale = f"+lat_ts={_first(keys, PROJ_STD_PARALLEL_1)!r}"
        else:
            scale = f"+k_0={_first(keys, PROJ_SCALE_AT_NAT_ORIGIN, default=1.0)!r}"
        return f"+proj=merc +lon_0={lon_0!r} {scale} +x_0={x_0!r} +y_0={y_0!r} {tail}"

    raise UnsupportedProjection(f"GeoTIFF coordinate transformation {transform} is not supported")


def tags_to_geo_transform(ifd, keys: dict) -> tuple[float, float, float, float, float, float] | None:
    """Build a GDAL-order geo transform from the model tags, if present."""
    matrix = _as_tuple(ifd.get(TAG_MODEL_TRANSFORMATION))
    if len(matrix) >= 8:
        a, b, _, d, e, f, _, h = (float(v) for v in matrix[:8])
        transform = (d, a, b, h, e, f)
    else:
        scale = _as_tuple(ifd.get(TAG_MODEL_PIXEL_SCALE))
        tiepoint = _as_tuple(ifd.get(TAG_MODEL_TIEPOINT))
        if len(scale) < 2 or len(tiepoint) < 6:
            return None
        sx, sy = float(scale[0]), float(scale[1])
        i, j, _, x, y, _ = (float(v) for v in tiepoint[:6])
        transform = (x - i * sx, sx, 0.0, y + j * sy, 0.0, -sy)

    if keys.get(GT_RASTER_TYPE) == RASTER_PIXEL_IS_POINT:
        # Shift from pixel-centre to pixel-corner convention.
        x0, dx, rx, y0, ry, dy = transform
        transform = (x0 - 0.5 * dx - 0.5 * rx, dx, rx, y0 - 0.5 * ry - 0.5 * dy, ry, dy)

    return transform


def read_geotiff_tags(stream: BinaryIO) -> RasterGeoTags:
    """Read raster size and georeferencing from a GeoTIFF stream.

    The transform or spatial reference may be None when the file lacks them;
    sidecar files can supply them before the georeference is built.

    Raises:
        CorruptArchive: If the stream is not a readable TIFF.
        UnsupportedProjection: If the GeoKeys describe an unsupported projection.
    """
    ifd = read_tiff_directory(stream)

    width = _as_tuple(ifd.get(TAG_IMAGE_WIDTH))
    height = _as_tuple(ifd.get(TAG_IMAGE_LENGTH))
    if not width or not height:
        raise CorruptArchive("TIFF directory has no image size")

    keys = parse_geo_keys(ifd)
    tags = RasterGeoTags(
        width=int(width[0]),
        height=int(height[0]),
        geo_transform=tags_to_geo_transform(ifd, keys),
        spatial_ref=geo_keys_to_spatial_ref(keys),
    )
    logger.debug("GeoTIFF tags: %s", tags)
    return tags


def parse_world_file(text: str) -> tuple[float, float, float, float, float, float]:
    """Parse a world file (.tfw) into a GDAL-order geo transform.

    World files give the centre of the top-left pixel; GDAL transforms use
    its corner.

    Raises:
        MissingGeoreference: If the file does not hold six numbers.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) < 6:
        raise MissingGeoreference(f"world file needs 6 values, found {len(lines)}")

    try:
        a, d, b, e, c, f = (float(value) for value in lines[:6])
    except ValueError as err:
        raise MissingGeoreference(f"world file has a non-numeric value: {err}") from err

    return (c - a / 2.0 - b / 2.0, a, b, f - d / 2.0 - e / 2.0, d, e)

"""Map projections the chart engine can invert analytically.

The set is closed: geographic (plate carree in degrees), ellipsoidal Lambert
conformal conic (one or two standard parallels) and ellipsoidal Mercator.
FAA sectional and terminal area charts use Lambert conformal conic on NAD83.
Anything else is rejected with UnsupportedProjection rather than
approximated.

Spatial reference text (proj4, WKT or "EPSG:n") is parsed with pyproj; the
transforms themselves are closed-form so the forward and inverse directions
agree to floating-point precision.

Typical usage:
    from vfrplan.chart.projection import projection_from_spatial_ref

    proj = projection_from_spatial_ref(
        "+proj=lcc +lat_1=38.66 +lat_2=33.33 +lat_0=34.17 +lon_0=-118.47 "
        "+x_0=0 +y_0=0 +datum=NAD83 +units=m +no_defs"
    )
    x, y = proj.forward(34.0, -118.0)
    lat, lon = proj.inverse(x, y)
"""

import logging
import math
import warnings
from dataclasses import dataclass

from pyproj import CRS
from pyproj.exceptions import CRSError

from vfrplan.core.errors import UnsupportedProjection

logger = logging.getLogger(__name__)

# Latitude iteration stops when successive estimates agree this closely (radians).
_PHI_TOLERANCE = 1e-12
_PHI_MAX_ITERATIONS = 32

# EPSG method code of "Popular Visualisation Pseudo Mercator" (EPSG:3857).
PSEUDO_MERCATOR_METHOD = "1024"


@dataclass(frozen=True)
class Ellipsoid:
    """Reference ellipsoid.

    Attributes:
        semi_major: Semi-major axis in metres.
        inverse_flattening: 1/f, or 0 for a sphere.
    """

    semi_major: float
    inverse_flattening: float = 0.0

    @property
    def flattening(self) -> float:
        if not self.inverse_flattening or math.isinf(self.inverse_flattening):
            return 0.0
        return 1.0 / self.inverse_flattening

    @property
    def eccentricity(self) -> float:
        f = self.flattening
        return math.sqrt(f * (2.0 - f))

    def proj4(self) -> str:
        if self.flattening == 0.0:
            return f"+R={self.semi_major!r}"
        return f"+a={self.semi_major!r} +rf={self.inverse_flattening!r}"


GRS80 = Ellipsoid(6378137.0, 298.257222101)


def _wrap_longitude(degrees: float) -> float:
    """Wrap a longitude difference into [-180, 180)."""
    return (degrees + 180.0) % 360.0 - 180.0


def _m(phi: float, e: float) -> float:
    sin_phi = math.sin(phi)
    return math.cos(phi) / math.sqrt(1.0 - e * e * sin_phi * sin_phi)


def _t(phi: float, e: float) -> float:
    sin_phi = math.sin(phi)
    return math.tan(math.pi / 4.0 - phi / 2.0) / ((1.0 - e * sin_phi) / (1.0 + e * sin_phi)) ** (e / 2.0)


def _phi_from_t(t: float, e: float) -> float:
    """Invert the isometric latitude function by fixed-point iteration."""
    phi = math.pi / 2.0 - 2.0 * math.atan(t)
    for _ in range(_PHI_MAX_ITERATIONS):
        sin_phi = e * math.sin(phi)
        next_phi = math.pi / 2.0 - 2.0 * math.atan(t * ((1.0 - sin_phi) / (1.0 + sin_phi)) ** (e / 2.0))
        if abs(next_phi - phi) < _PHI_TOLERANCE:
            return next_phi
        phi = next_phi
    return phi


def _check_finite(*values: float) -> None:
    if not all(math.isfinite(v) for v in values):
        raise ValueError(f"coordinates must be finite, got {values}")


class Projection:
    """Base class for the supported projection variants.

    forward() maps geodetic degrees to projected coordinates; inverse() maps
    back. Both raise ValueError for non-finite input or points the
    projection cannot represent.
    """

    def forward(self, latitude: float, longitude: float) -> tuple[float, float]:
        raise NotImplementedError

    def inverse(self, x: float, y: float) -> tuple[float, float]:
        raise NotImplementedError

    def proj4(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Geographic(Projection):
    """Unprojected longitude/latitude in degrees (x = longitude, y = latitude)."""

    ellipsoid: Ellipsoid = GRS80

    def forward(self, latitude: float, longitude: float) -> tuple[float, float]:
        _check_finite(latitude, longitude)
        return longitude, latitude

    def inverse(self, x: float, y: float) -> tuple[float, float]:
        _check_finite(x, y)
        return y, x

    def proj4(self) -> str:
        return f"+proj=longlat {self.ellipsoid.proj4()} +no_defs"


@dataclass(frozen=True)
class LambertConformalConic(Projection):
    """Ellipsoidal Lambert conformal conic.

    With lat_1 == lat_2 this is the one-standard-parallel form, scaled by k_0.

    Attributes:
        lat_1: First standard parallel (degrees).
        lat_2: Second standard parallel (degrees).
        lat_0: Latitude of origin (degrees).
        lon_0: Central meridian (degrees).
        x_0: False easting (metres).
        y_0: False northing (metres).
        k_0: Scale factor.
        ellipsoid: Reference ellipsoid.
    """

    lat_1: float
    lat_2: float
    lat_0: float
    lon_0: float
    x_0: float = 0.0
    y_0: float = 0.0
    k_0: float = 1.0
    ellipsoid: Ellipsoid = GRS80

    def __post_init__(self) -> None:
        if abs(self.lat_1 + self.lat_2) < 1e-10:
            raise UnsupportedProjection("Lambert conformal conic parallels are symmetric about the equator")

        e = self.ellipsoid.eccentricity
        phi_1 = math.radians(self.lat_1)
        phi_2 = math.radians(self.lat_2)
        m_1, t_1 = _m(phi_1, e), _t(phi_1, e)

        if abs(self.lat_1 - self.lat_2) < 1e-10:
            n = math.sin(phi_1)
        else:
            m_2, t_2 = _m(phi_2, e), _t(phi_2, e)
            n = (math.log(m_1) - math.log(m_2)) / (math.log(t_1) - math.log(t_2))

        big_f = m_1 / (n * t_1**n)
        scale = self.ellipsoid.semi_major * self.k_0 * big_f

        # Frozen dataclass: derived constants are set once here.
        object.__setattr__(self, "_e", e)
        object.__setattr__(self, "_n", n)
        object.__setattr__(self, "_scale", scale)
        object.__setattr__(self, "_rho_0", self._rho(math.radians(self.lat_0)))

    def _rho(self, phi: float) -> float:
        if abs(abs(phi) - math.pi / 2.0) < 1e-15:
            if phi * self._n <= 0.0:
                raise ValueError("latitude is at the pole opposite the cone apex")
            return 0.0
        return self._scale * _t(phi, self._e) ** self._n

    def forward(self, latitude: float, longitude: float) -> tuple[float, float]:
        _check_finite(latitude, longitude)
        if abs(latitude) > 90.0:
            raise ValueError(f"latitude out of range: {latitude}")

        rho = self._rho(math.radians(latitude))
        theta = self._n * math.radians(_wrap_longitude(longitude - self.lon_0))
        x = self.x_0 + rho * math.sin(theta)
        y = self.y_0 + self._rho_0 - rho * math.cos(theta)
        _check_finite(x, y)
        return x, y

    def inverse(self, x: float, y: float) -> tuple[float, float]:
        _check_finite(x, y)
        dx = x - self.x_0
        dy = self._rho_0 - (y - self.y_0)
        sign = 1.0 if self._n > 0.0 else -1.0

        rho = sign * math.hypot(dx, dy)
        theta = math.atan2(sign * dx, sign * dy)

        if rho == 0.0:
            phi = sign * math.pi / 2.0
        else:
            t = (rho / self._scale) ** (1.0 / self._n)
            phi = _phi_from_t(t, self._e)

        longitude = _wrap_longitude(math.degrees(theta / self._n) + self.lon_0)
        return math.degrees(phi), longitude

    def proj4(self) -> str:
        return (
            f"+proj=lcc +lat_1={self.lat_1!r} +lat_2={self.lat_2!r} +lat_0={self.lat_0!r} "
            f"+lon_0={self.lon_0!r} +k_0={self.k_0!r} +x_0={self.x_0!r} +y_0={self.y_0!r} "
            f"{self.ellipsoid.proj4()} +units=m +no_defs"
        )


@dataclass(frozen=True)
class Mercator(Projection):
    """Ellipsoidal normal Mercator.

    Attributes:
        lon_0: Central meridian (degrees).
        lat_ts: Latitude of true scale (degrees); ignored when k_0 is given.
        k_0: Scale factor at the equator, or None to derive it from lat_ts.
        x_0: False easting (metres).
        y_0: False northing (metres).
        ellipsoid: Reference ellipsoid.
    """

    lon_0: float = 0.0
    lat_ts: float = 0.0
    k_0: float | None = None
    x_0: float = 0.0
    y_0: float = 0.0
    ellipsoid: Ellipsoid = GRS80

    def __post_init__(self) -> None:
        e = self.ellipsoid.eccentricity
        k = self.k_0 if self.k_0 is not None else _m(math.radians(self.lat_ts), e)
        object.__setattr__(self, "_e", e)
        object.__setattr__(self, "_scale", self.ellipsoid.semi_major * k)

    def forward(self, latitude: float, longitude: float) -> tuple[float, float]:
        _check_finite(latitude, longitude)
        if abs(latitude) >= 90.0:
            raise ValueError(f"Mercator cannot represent latitude {latitude}")

        x = self.x_0 + self._scale * math.radians(_wrap_longitude(longitude - self.lon_0))
        y = self.y_0 - self._scale * math.log(_t(math.radians(latitude), self._e))
        return x, y

    def inverse(self, x: float, y: float) -> tuple[float, float]:
        _check_finite(x, y)
        t = math.exp(-(y - self.y_0) / self._scale)
        phi = _phi_from_t(t, self._e)
        longitude = _wrap_longitude(math.degrees((x - self.x_0) / self._scale) + self.lon_0)
        return math.degrees(phi), longitude

    def proj4(self) -> str:
        scale = f"+k_0={self.k_0!r}" if self.k_0 is not None else f"+lat_ts={self.lat_ts!r}"
        return (
            f"+proj=merc +lon_0={self.lon_0!r} {scale} +x_0={self.x_0!r} +y_0={self.y_0!r} "
            f"{self.ellipsoid.proj4()} +units=m +no_defs"
        )


def _param(params: dict, name: str, default: float = 0.0) -> float:
    value = params.get(name, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise UnsupportedProjection(f"invalid projection parameter {name}={value!r}") from e


def projection_from_crs(crs: CRS) -> Projection:
    """Map a pyproj CRS onto one of the supported projection variants.

    Raises:
        UnsupportedProjection: If the CRS uses another projection, non-metre
            units or a prime meridian other than Greenwich.
    """
    ellipsoid = crs.ellipsoid
    if ellipsoid is None:
        raise UnsupportedProjection(f"spatial reference has no ellipsoid: {crs.name}")
    ellps = Ellipsoid(ellipsoid.semi_major_metre, ellipsoid.inverse_flattening)

    prime_meridian = crs.prime_meridian
    if prime_meridian is not None and prime_meridian.longitude != 0.0:
        raise UnsupportedProjection(f"prime meridian {prime_meridian.name} is not Greenwich ({crs.name})")

    if crs.is_geographic:
        units = {axis.unit_name for axis in crs.axis_info}
        if units - {"degree"}:
            raise UnsupportedProjection(f"geographic units must be degrees, got {', '.join(sorted(units))}")
        return Geographic(ellps)

    if not crs.is_projected:
        raise UnsupportedProjection(f"spatial reference is neither geographic nor projected: {crs.name}")

    # to_dict() warns that a proj4 rendering can lose information; only the
    # projection parameters are read from it.
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        params = crs.to_dict()

    units = params.get("units")
    if units is None and params.get("to_meter") is None:
        units = "m"
    if units != "m":
        raise UnsupportedProjection(f"projected units must be metres, got {units or params.get('to_meter')!r}")

    operation = crs.coordinate_operation
    if operation is not None and operation.method_code == PSEUDO_MERCATOR_METHOD:
        raise UnsupportedProjection(f"pseudo-Mercator is not supported ({crs.name})")
    # Projection parameters on a different figure than the datum ellipsoid.
    if "b" in params and not math.isclose(float(params["b"]), ellipsoid.semi_minor_metre, rel_tol=1e-9):
        raise UnsupportedProjection(f"projection ellipsoid differs from the datum ellipsoid ({crs.name})")

    name = params.get("proj")
    if name == "lcc":
        lat_1 = _param(params, "lat_1")
        return LambertConformalConic(
            lat_1=lat_1,
            lat_2=_param(params, "lat_2", lat_1),
            lat_0=_param(params, "lat_0"),
            lon_0=_param(params, "lon_0"),
            x_0=_param(params, "x_0"),
            y_0=_param(params, "y_0"),
            k_0=_param(params, "k_0", _param(params, "k", 1.0)),
            ellipsoid=ellps,
        )

    if name == "merc":
        k_0 = params.get("k_0", params.get("k"))
        return Mercator(
            lon_0=_param(params, "lon_0"),
            lat_ts=_param(params, "lat_ts"),
            k_0=float(k_0) if k_0 is not None else None,
            x_0=_param(params, "x_0"),
            y_0=_param(params, "y_0"),
            ellipsoid=ellps,
        )

    raise UnsupportedProjection(f"projection {name!r} is not supported ({crs.name})")


def projection_from_spatial_ref(spatial_ref: str) -> Projection:
    """Parse spatial reference text (proj4, WKT, or "EPSG:n") into a projection.

    Raises:
        UnsupportedProjection: If the text cannot be parsed or names an
            unsupported projection.
    """
    try:
        crs = CRS.from_user_input(spatial_ref)
    except CRSError as e:
        raise UnsupportedProjection(f"unable to parse spatial reference: {e}") from e

    projection = projection_from_crs(crs)
    logger.debug("Spatial reference %s -> %s", crs.name, type(projection).__name__)
    return projection

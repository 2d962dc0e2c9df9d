"""Typed facility records decoded from a NASR subscription.

Records are immutable once built. Airports carry an attribute bag with their
runways, frequencies, remarks and class airspace.
"""

from dataclasses import dataclass
from enum import Enum

SURFACE_DESCRIPTIONS = {
    "ASPH": "ASPHALT OR BITUMINOUS CONCRETE",
    "CONC": "PORTLAND CEMENT CONCRETE",
    "DIRT": "NATURAL SOIL",
    "GRAVEL": "GRAVEL; CINDERS; CRUSHED ROCK; CORAL OR SHELLS; SLAG",
    "MATS": "PIERCED STEEL PLANKING (PSP); LANDING MATS; MEMBRANES",
    "PEM": "PARTIALLY CONCRETE, ASPHALT OR BITUMEN-BOUND MACADAM",
    "TREATED": "OILED; SOIL CEMENT OR LIME STABILIZED",
    "TURF": "GRASS; SOD",
}

LIGHTING_DESCRIPTIONS = {
    "MED": "MEDIUM",
    "NSTD": "NON-STANDARD",
    "PERI": "PERIPHERAL",
}


class FacilityKind(Enum):
    """Facility kind. Only airports are decoded today."""

    AIRPORT = "airport"
    NAVAID = "navaid"
    AIRSPACE = "airspace"
    WAYPOINT = "waypoint"


class SiteType(Enum):
    """Landing facility type (APT_BASE SITE_TYPE_CODE)."""

    AIRPORT = "A"
    BALLOONPORT = "B"
    SEAPLANE_BASE = "C"
    GLIDERPORT = "G"
    HELIPORT = "H"
    ULTRALIGHT = "U"

    @property
    def text(self) -> str:
        return self.name.replace("_", " ")

    @property
    def abbreviation(self) -> str:
        """Single-letter label used on compact listings (S for seaplane bases)."""
        return "S" if self is SiteType.SEAPLANE_BASE else self.value


class FacilityUse(Enum):
    """Public or private use (APT_BASE FACILITY_USE_CODE)."""

    PUBLIC = "PU"
    PRIVATE = "PR"

    @property
    def abbreviation(self) -> str:
        return "PUB" if self is FacilityUse.PUBLIC else "PVT"


class ElevationMethod(Enum):
    """How the field elevation was determined."""

    ESTIMATED = "E"
    SURVEYED = "S"

    @property
    def abbreviation(self) -> str:
        return "EST" if self is ElevationMethod.ESTIMATED else "SURV"


@dataclass(frozen=True)
class RunwayEnd:
    """One end of a runway (APT_RWY_END).

    Attributes:
        end_id: Runway end identifier (e.g. "16L").
        true_alignment: True bearing of the runway centreline in degrees.
        right_hand_traffic: Right-hand traffic pattern in use.
        elevation_ft: Runway end elevation in feet MSL.
        displaced_threshold_ft: Displaced threshold length in feet.
    """

    end_id: str
    true_alignment: int | None = None
    right_hand_traffic: bool = False
    elevation_ft: float | None = None
    displaced_threshold_ft: int | None = None


@dataclass(frozen=True)
class Runway:
    """Runway information (APT_RWY).

    Attributes:
        runway_id: Runway identifier (e.g. "16L/34R").
        length_ft: Physical length in feet.
        width_ft: Physical width in feet.
        surface_code: Surface type code as published (e.g. "ASPH-CONC").
        condition: Surface condition text.
        lighting_code: Edge lighting intensity code.
        ends: Runway ends in file order.
    """

    runway_id: str
    length_ft: int | None = None
    width_ft: int | None = None
    surface_code: str = ""
    condition: str = ""
    lighting_code: str = ""
    ends: tuple[RunwayEnd, ...] = ()

    @property
    def surface(self) -> str:
        """Surface description, with known codes expanded."""
        return SURFACE_DESCRIPTIONS.get(self.surface_code, self.surface_code)

    @property
    def lighting(self) -> str:
        """Lighting description, with known codes expanded."""
        return LIGHTING_DESCRIPTIONS.get(self.lighting_code, self.lighting_code)


@dataclass(frozen=True)
class Frequency:
    """Communication frequency serving an airport (FRQ).

    Attributes:
        frequency: Frequency text as published (e.g. "119.9").
        use: Frequency use (e.g. "LCL/P", "CTAF").
        facility_type: Type of facility providing the service.
        sectorization: Sector the frequency applies to.
        tower_call: Tower or communications radio call.
        approach_call: Primary approach radio call.
        remark: Free-text remark.
    """

    frequency: str
    use: str = ""
    facility_type: str = ""
    sectorization: str = ""
    tower_call: str = ""
    approach_call: str = ""
    remark: str = ""


@dataclass(frozen=True)
class Remark:
    """Airport remark (APT_RMK)."""

    element: str
    reference_column: str
    text: str


@dataclass(frozen=True)
class ClassAirspace:
    """Class airspace designation surrounding an airport (CLS_ARSP)."""

    class_b: bool = False
    class_c: bool = False
    class_d: bool = False
    class_e: bool = False
    hours: str = ""
    remark: str = ""

    @property
    def classes(self) -> str:
        """Designated classes as text, e.g. "C, E"."""
        flags = (("B", self.class_b), ("C", self.class_c), ("D", self.class_d), ("E", self.class_e))
        return ", ".join(name for name, present in flags if present)


@dataclass(frozen=True)
class AirportAttributes:
    """Airport-specific attributes.

    Attributes:
        site_type: Landing facility type, if published.
        facility_use: Public or private use, if published.
        icao_id: ICAO identifier (e.g. "KSEA" for "SEA").
        city: Associated city.
        state_code: Two-letter state code.
        fuel_types: Fuel types, comma-and-space separated.
        elevation_method: How the elevation was determined.
        pattern_altitude_ft: Traffic pattern altitude in feet.
        magnetic_variation: Magnetic variation text (e.g. "15E").
        effective_date: Effective date of the record.
        runways: Runways in file order.
        frequencies: Frequencies in file order.
        remarks: Remarks in file order.
        airspace: Class airspace designation, if any.
    """

    site_type: SiteType | None = None
    facility_use: FacilityUse | None = None
    icao_id: str | None = None
    city: str = ""
    state_code: str = ""
    fuel_types: str = ""
    elevation_method: ElevationMethod | None = None
    pattern_altitude_ft: int | None = None
    magnetic_variation: str = ""
    effective_date: str = ""
    runways: tuple[Runway, ...] = ()
    frequencies: tuple[Frequency, ...] = ()
    remarks: tuple[Remark, ...] = ()
    airspace: ClassAirspace | None = None

    @property
    def location(self) -> str:
        """City and state, e.g. "SEATTLE, WA"."""
        if not self.state_code:
            return self.city
        return f"{self.city}, {self.state_code}"

    @property
    def is_public(self) -> bool:
        return self.facility_use is FacilityUse.PUBLIC


@dataclass(frozen=True)
class FacilityRecord:
    """One parsed NASR facility.

    Attributes:
        identifier: Facility identifier (e.g. "SEA"), unique within its kind.
        name: Facility name.
        kind: Facility kind.
        latitude: Latitude in decimal degrees, north positive.
        longitude: Longitude in decimal degrees, east positive.
        elevation_ft: Elevation in feet MSL, if published.
        attributes: Kind-specific attributes (AirportAttributes for airports).
    """

    identifier: str
    name: str
    kind: FacilityKind
    latitude: float
    longitude: float
    elevation_ft: float | None = None
    attributes: AirportAttributes | None = None

    @property
    def key(self) -> tuple[FacilityKind, str]:
        """Uniqueness key: kind plus case-folded identifier."""
        return (self.kind, self.identifier.upper())

    @property
    def icao_id(self) -> str | None:
        return self.attributes.icao_id if self.attributes else None

    @property
    def is_non_public_heliport(self) -> bool:
        """True for heliports not open to public use."""
        attrs = self.attributes
        if attrs is None or attrs.site_type is not SiteType.HELIPORT:
            return False
        return not attrs.is_public

"""Column layouts of the NASR CSV files this package decodes.

Each layout names its member file and the columns a row must carry. Columns
not listed are ignored, so new columns added by later subscription cycles do
not break parsing.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Layout:
    """Expected columns of one NASR CSV member.

    Attributes:
        member: Member base name, e.g. "APT_BASE.csv".
        required: Columns without which the file cannot be decoded.
        optional: Columns read when present and defaulted otherwise.
    """

    member: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()

    def missing_columns(self, header: list[str]) -> list[str]:
        """Return required columns absent from a header row."""
        present = set(header)
        return [column for column in self.required if column not in present]


LAT_DMS_COLUMNS = ("LAT_DEG", "LAT_MIN", "LAT_SEC", "LAT_HEMIS")
LON_DMS_COLUMNS = ("LONG_DEG", "LONG_MIN", "LONG_SEC", "LONG_HEMIS")
DMS_COLUMNS = LAT_DMS_COLUMNS + LON_DMS_COLUMNS
DECIMAL_COLUMNS = ("LAT_DECIMAL", "LONG_DECIMAL")

# Position columns are checked separately: either the DMS set or the decimal
# pair must be present.
APT_BASE = Layout(
    member="APT_BASE.csv",
    required=("ARPT_ID", "ARPT_NAME"),
    optional=(
        "SITE_TYPE_CODE",
        "FACILITY_USE_CODE",
        "ICAO_ID",
        "CITY",
        "STATE_CODE",
        "ELEV",
        "ELEV_METHOD_CODE",
        "TPA",
        "MAG_VARN",
        "MAG_HEMIS",
        "FUEL_TYPES",
        "EFF_DATE",
    )
    + DMS_COLUMNS
    + DECIMAL_COLUMNS,
)

APT_RWY = Layout(
    member="APT_RWY.csv",
    required=("ARPT_ID", "RWY_ID"),
    optional=("RWY_LEN", "RWY_WIDTH", "SURFACE_TYPE_CODE", "COND", "RWY_LGT_CODE"),
)

APT_RWY_END = Layout(
    member="APT_RWY_END.csv",
    required=("ARPT_ID", "RWY_ID", "RWY_END_ID"),
    optional=("TRUE_ALIGNMENT", "RIGHT_HAND_TRAFFIC_PAT_FLAG", "RWY_END_ELEV", "DISPLACED_THR_LEN"),
)

FRQ = Layout(
    member="FRQ.csv",
    required=("SERVICED_FACILITY", "FREQ"),
    optional=(
        "FREQ_USE",
        "FACILITY_TYPE",
        "SECTORIZATION",
        "TOWER_OR_COMM_CALL",
        "PRIMARY_APPROACH_RADIO_CALL",
        "REMARK",
    ),
)

APT_RMK = Layout(
    member="APT_RMK.csv",
    required=("ARPT_ID", "REMARK"),
    optional=("ELEMENT", "REF_COL_NAME"),
)

CLS_ARSP = Layout(
    member="CLS_ARSP.csv",
    required=("ARPT_ID",),
    optional=(
        "CLASS_B_AIRSPACE",
        "CLASS_C_AIRSPACE",
        "CLASS_D_AIRSPACE",
        "CLASS_E_AIRSPACE",
        "AIRSPACE_HRS",
        "REMARK",
    ),
)

CHILD_LAYOUTS = (APT_RWY, APT_RWY_END, FRQ, APT_RMK, CLS_ARSP)

"""Pytest configuration and fixtures for all tests.

Archives are built in memory: a small Puget Sound NASR subscription and a
GeoTIFF chart package written with Pillow.
"""

import csv
import io
import zipfile

import pytest
from PIL import Image, TiffImagePlugin, TiffTags

APT_BASE_HEADER = [
    "EFF_DATE",
    "SITE_NO",
    "SITE_TYPE_CODE",
    "STATE_CODE",
    "ARPT_ID",
    "CITY",
    "ARPT_NAME",
    "LAT_DEG",
    "LAT_MIN",
    "LAT_SEC",
    "LAT_HEMIS",
    "LAT_DECIMAL",
    "LONG_DEG",
    "LONG_MIN",
    "LONG_SEC",
    "LONG_HEMIS",
    "LONG_DECIMAL",
    "ELEV",
    "ELEV_METHOD_CODE",
    "MAG_VARN",
    "MAG_HEMIS",
    "TPA",
    "FACILITY_USE_CODE",
    "FUEL_TYPES",
    "ICAO_ID",
]

# (id, name, city, site, use, icao, lat DMS, lon DMS, elev)
AIRPORTS = [
    ("SEA", "SEATTLE-TACOMA INTL", "SEATTLE", "A", "PU", "KSEA", ("47", "26", "58.2000", "N"), ("122", "18", "33.8000", "W"), "433"),
    ("BFI", "BOEING FIELD/KING COUNTY INTL", "SEATTLE", "A", "PU", "KBFI", ("47", "31", "48.0000", "N"), ("122", "18", "06.0000", "W"), "21"),
    ("RNT", "RENTON MUNI", "RENTON", "A", "PU", "KRNT", ("47", "29", "35.2000", "N"), ("122", "12", "56.9000", "W"), "32"),
    ("PAE", "SNOHOMISH COUNTY (PAINE FLD)", "EVERETT", "A", "PU", "KPAE", ("47", "54", "22.7000", "N"), ("122", "16", "53.8000", "W"), "608"),
    ("2WA1", "LAKE SEATTLE AIRPARK", "WOODINVILLE", "A", "PR", "", ("47", "42", "00.0000", "N"), ("122", "06", "00.0000", "W"), ""),
    ("WA12", "SEATTLE CHILDRENS HOSPITAL", "SEATTLE", "H", "PR", "", ("47", "39", "36.0000", "N"), ("122", "16", "48.0000", "W"), "300"),
    ("BAD", "BROKEN COORDINATE FIELD", "NOWHERE", "A", "PU", "", ("999", "99", "99", "N"), ("122", "00", "00.0000", "W"), "100"),
]

# Header is line 1, so the BAD row sits on line 8.
BAD_ROW_LINE = 8

APT_RWY_HEADER = ["ARPT_ID", "RWY_ID", "RWY_LEN", "RWY_WIDTH", "SURFACE_TYPE_CODE", "COND", "RWY_LGT_CODE"]
APT_RWY_ROWS = [
    ["SEA", "16L/34R", "11901", "150", "CONC", "GOOD", "HIGH"],
    ["SEA", "16C/34C", "9426", "150", "CONC", "GOOD", "HIGH"],
    ["RNT", "16/34", "5382", "200", "ASPH", "GOOD", "MED"],
    ["XXX", "01/19", "3000", "60", "TURF", "", ""],
]

APT_RWY_END_HEADER = ["ARPT_ID", "RWY_ID", "RWY_END_ID", "TRUE_ALIGNMENT", "RIGHT_HAND_TRAFFIC_PAT_FLAG", "RWY_END_ELEV", "DISPLACED_THR_LEN"]
APT_RWY_END_ROWS = [
    ["SEA", "16L/34R", "16L", "180", "N", "363.2", ""],
    ["SEA", "16L/34R", "34R", "360", "N", "347.0", "301"],
    ["RNT", "16/34", "16", "174", "N", "", ""],
    ["RNT", "16/34", "34", "354", "Y", "", ""],
]

FRQ_HEADER = ["FACILITY", "SERVICED_FACILITY", "FREQ", "FREQ_USE", "TOWER_OR_COMM_CALL"]
FRQ_ROWS = [
    ["SEA", "SEA", "119.9", "LCL/P", "SEATTLE"],
    ["SEA", "SEA", "121.7", "GND/P", "SEATTLE"],
    ["RNT", "RNT", "124.7", "LCL/P", "RENTON"],
]

APT_RMK_HEADER = ["ARPT_ID", "ELEMENT", "REF_COL_NAME", "REMARK"]
APT_RMK_ROWS = [
    ["SEA", "A110", "GENERAL_REMARK", "NOISE ABATEMENT PROCEDURES IN EFFECT."],
]

CLS_ARSP_HEADER = ["ARPT_ID", "CLASS_B_AIRSPACE", "CLASS_C_AIRSPACE", "CLASS_D_AIRSPACE", "CLASS_E_AIRSPACE", "AIRSPACE_HRS"]
CLS_ARSP_ROWS = [
    ["SEA", "Y", "", "", "", ""],
    ["RNT", "", "", "Y", "", "0700-2100"],
]

# Chart fixture: Lambert conformal conic on NAD83, 1 km pixels.
CHART_WIDTH = 200
CHART_HEIGHT = 100
CHART_PROJ4 = "+proj=lcc +lat_1=33.0 +lat_2=45.0 +lat_0=47.0 +lon_0=-121.0 +x_0=0.0 +y_0=0.0 +datum=NAD83 +units=m +no_defs"
CHART_GEO_TRANSFORM = (-200000.0, 1000.0, 0.0, 100000.0, 0.0, -1000.0)


def csv_text(header: list[str], rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def airport_rows(airports=AIRPORTS) -> list[list[str]]:
    rows = []
    for ident, name, city, site, use, icao, lat, lon, elev in airports:
        values = {
            "EFF_DATE": "2024/01/25",
            "SITE_NO": f"{ident}.1*A",
            "SITE_TYPE_CODE": site,
            "STATE_CODE": "WA",
            "ARPT_ID": ident,
            "CITY": city,
            "ARPT_NAME": name,
            "LAT_DEG": lat[0],
            "LAT_MIN": lat[1],
            "LAT_SEC": lat[2],
            "LAT_HEMIS": lat[3],
            "LONG_DEG": lon[0],
            "LONG_MIN": lon[1],
            "LONG_SEC": lon[2],
            "LONG_HEMIS": lon[3],
            "ELEV": elev,
            "ELEV_METHOD_CODE": "S",
            "MAG_VARN": "15",
            "MAG_HEMIS": "E",
            "TPA": "1000",
            "FACILITY_USE_CODE": use,
            "FUEL_TYPES": "A,100LL" if ident == "SEA" else "",
            "ICAO_ID": icao,
        }
        rows.append([values.get(column, "") for column in APT_BASE_HEADER])
    return rows


def nasr_members() -> dict[str, str]:
    """CSV members of the fixture subscription."""
    return {
        "APT_BASE.csv": csv_text(APT_BASE_HEADER, airport_rows()),
        "APT_RWY.csv": csv_text(APT_RWY_HEADER, APT_RWY_ROWS),
        "APT_RWY_END.csv": csv_text(APT_RWY_END_HEADER, APT_RWY_END_ROWS),
        "FRQ.csv": csv_text(FRQ_HEADER, FRQ_ROWS),
        "APT_RMK.csv": csv_text(APT_RMK_HEADER, APT_RMK_ROWS),
        "CLS_ARSP.csv": csv_text(CLS_ARSP_HEADER, CLS_ARSP_ROWS),
    }


def zip_bytes(members: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def geotiff_bytes(
    width: int = CHART_WIDTH,
    height: int = CHART_HEIGHT,
    geo_transform: tuple[float, ...] | None = CHART_GEO_TRANSFORM,
    geo_keys: tuple[int, ...] | None = None,
    geo_doubles: tuple[float, ...] | None = None,
    geo_ascii: str | None = None,
) -> bytes:
    """Write a small GeoTIFF with the given model tags and GeoKeys."""
    info = TiffImagePlugin.ImageFileDirectory_v2()
    if geo_transform is not None:
        x0, dx, _, y0, _, dy = geo_transform
        info.tagtype[33550] = TiffTags.DOUBLE
        info[33550] = (float(dx), float(-dy), 0.0)
        info.tagtype[33922] = TiffTags.DOUBLE
        info[33922] = (0.0, 0.0, 0.0, float(x0), float(y0), 0.0)
    if geo_keys is not None:
        info.tagtype[34735] = TiffTags.SHORT
        info[34735] = tuple(geo_keys)
    if geo_doubles is not None:
        info.tagtype[34736] = TiffTags.DOUBLE
        info[34736] = tuple(float(v) for v in geo_doubles)
    if geo_ascii is not None:
        info.tagtype[34737] = TiffTags.ASCII
        info[34737] = geo_ascii

    buffer = io.BytesIO()
    Image.new("L", (width, height)).save(buffer, format="TIFF", tiffinfo=info)
    return buffer.getvalue()


# GeoKey directory for CHART_PROJ4: user-defined LCC_2SP on NAD83, metres.
LCC_GEO_KEYS = (
    1, 1, 0, 11,
    1024, 0, 1, 1,          # projected model
    1025, 0, 1, 1,          # pixel is area
    2048, 0, 1, 4269,       # NAD83
    3072, 0, 1, 32767,      # user-defined projected CS
    3075, 0, 1, 8,          # LCC 2SP
    3076, 0, 1, 9001,       # metre
    3078, 34736, 1, 0,      # standard parallel 1
    3079, 34736, 1, 1,      # standard parallel 2
    3084, 34736, 1, 2,      # false origin longitude
    3085, 34736, 1, 3,      # false origin latitude
    3086, 34736, 1, 4,      # false origin easting
)
LCC_GEO_DOUBLES = (33.0, 45.0, -121.0, 47.0, 0.0)


@pytest.fixture
def nasr_zip() -> bytes:
    """Flat NASR subscription with every airport layout file."""
    return zip_bytes(nasr_members())


@pytest.fixture
def nested_nasr_zip() -> bytes:
    """Subscription laid out like the FAA download: CSVs in a nested zip."""
    inner = zip_bytes(nasr_members())
    return zip_bytes(
        {
            "Additional_Data/readme.txt": "NASR 28 day subscription",
            "CSV_Data/25_Jan_2024_CSV.zip": inner,
        }
    )


@pytest.fixture
def nasr_file(tmp_path, nasr_zip):
    path = tmp_path / "28DaySubscription_Effective_2024-01-25.zip"
    path.write_bytes(nasr_zip)
    return path


@pytest.fixture
def geotiff() -> bytes:
    return geotiff_bytes(geo_keys=LCC_GEO_KEYS, geo_doubles=LCC_GEO_DOUBLES, geo_ascii="NAD83 / Seattle test|")


@pytest.fixture
def chart_zip(geotiff) -> bytes:
    """Chart package with a GeoTIFF and its world file."""
    x0, dx, rx, y0, ry, dy = CHART_GEO_TRANSFORM
    world = "\n".join(str(v) for v in (dx, ry, rx, dy, x0 + dx / 2, y0 + dy / 2)) + "\n"
    return zip_bytes({"Seattle SEC.tif": geotiff, "Seattle SEC.tfw": world})


@pytest.fixture
def chart_file(tmp_path, chart_zip):
    path = tmp_path / "Seattle.zip"
    path.write_bytes(chart_zip)
    return path

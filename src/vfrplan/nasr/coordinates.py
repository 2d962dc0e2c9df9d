"""NASR degree-minute-second coordinate text.

NASR publishes positions as ``DD-MM-SS.SSSSH`` (latitude) and
``DDD-MM-SS.SSSSH`` (longitude). Parsing is strict: a value that does not
describe a real position is an error, never clamped.
"""

import math
import re

_DMS_PATTERN = re.compile(r"(\d{1,3})-(\d{1,2})-(\d{1,2}(?:\.\d*)?)([NSEW])")


def parse_dms(text: str, axis: str) -> float:
    """Convert NASR DMS text to signed decimal degrees.

    Args:
        text: Coordinate text, e.g. "47-26-56.0000N".
        axis: "lat" or "lon"; selects the valid hemispheres and range.

    Returns:
        Decimal degrees, south and west negative.

    Raises:
        ValueError: If the text is malformed or out of range.

    Examples:
        >>> parse_dms("47-26-56.0000N", "lat")
        47.44888888888889
        >>> parse_dms("122-18-32.0000W", "lon")
        -122.30888888888889
    """
    if axis not in ("lat", "lon"):
        raise ValueError(f"axis must be 'lat' or 'lon', got {axis!r}")

    match = _DMS_PATTERN.fullmatch(text.strip().upper())
    if not match:
        raise ValueError(f"malformed {axis} {text!r}")

    degrees = int(match.group(1))
    minutes = int(match.group(2))
    seconds = float(match.group(3))
    hemisphere = match.group(4)

    hemispheres, limit = ("NS", 90) if axis == "lat" else ("EW", 180)
    if hemisphere not in hemispheres:
        raise ValueError(f"invalid {axis} hemisphere in {text!r}")
    if minutes >= 60 or seconds >= 60.0:
        raise ValueError(f"minutes or seconds out of range in {text!r}")

    value = degrees + minutes / 60.0 + seconds / 3600.0
    if value > limit:
        raise ValueError(f"{axis} out of range in {text!r}")

    return -value if hemisphere in "SW" else value


def assemble_dms(degrees: str, minutes: str, seconds: str, hemisphere: str) -> str:
    """Join separate DMS columns into NASR DMS text."""
    return f"{degrees.strip()}-{minutes.strip()}-{seconds.strip()}{hemisphere.strip()}"


def parse_decimal(text: str, axis: str) -> float:
    """Parse a decimal-degree column, validating its range.

    Raises:
        ValueError: If the text is not a finite number within range.
    """
    value = float(text)
    limit = 90.0 if axis == "lat" else 180.0
    if not math.isfinite(value) or abs(value) > limit:
        raise ValueError(f"{axis} out of range: {text!r}")
    return value


def format_dms(value: float, axis: str) -> str:
    """Render decimal degrees for display.

    Args:
        value: Decimal degrees.
        axis: "lat" or "lon".

    Returns:
        Text such as ``34°05'06.90"N`` or ``117°08'47.00"W``.

    Raises:
        ValueError: If the value is out of range for the axis.
    """
    if axis == "lat":
        negative, positive, limit, width = "S", "N", 90.0, 2
    elif axis == "lon":
        negative, positive, limit, width = "W", "E", 180.0, 3
    else:
        raise ValueError(f"axis must be 'lat' or 'lon', got {axis!r}")

    if not math.isfinite(value) or abs(value) > limit:
        raise ValueError(f"{axis} out of range: {value}")

    hemisphere = negative if value < 0.0 else positive
    value = abs(value)
    degrees = math.trunc(value)
    decimal_minutes = (value - degrees) * 60.0
    minutes = math.trunc(decimal_minutes)
    seconds = (decimal_minutes - minutes) * 60.0

    # Carry rounding of 59.995+ seconds into the minutes.
    if round(seconds, 2) >= 60.0:
        seconds = 0.0
        minutes += 1
        if minutes == 60:
            minutes = 0
            degrees += 1

    return f"{degrees:0{width}d}°{minutes:02d}'{seconds:05.2f}\"{hemisphere}"

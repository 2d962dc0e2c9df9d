"""NASR subscription CSV parser.

Decodes the airport layout files of a NASR 28-day subscription into
FacilityRecord values. A malformed row never aborts the archive: it is
skipped and reported as a ParseWarning carrying its source line. Only
container- and schema-level problems raise.

Typical usage:
    from vfrplan.archive import open_archive
    from vfrplan.nasr.parser import NasrParser

    with open_archive("28DaySubscription.zip") as handle:
        result = NasrParser().parse(handle)

    print(f"{len(result.records)} airports, {len(result.warnings)} warnings")
"""

import csv
import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from vfrplan.archive.reader import ArchiveHandle
from vfrplan.core.errors import CorruptArchive, ParseWarning, UnsupportedSchema
from vfrplan.core.tasks import CancelToken
from vfrplan.nasr import layouts
from vfrplan.nasr.coordinates import assemble_dms, parse_decimal, parse_dms
from vfrplan.nasr.layouts import Layout
from vfrplan.nasr.records import (
    AirportAttributes,
    ClassAirspace,
    ElevationMethod,
    FacilityKind,
    FacilityRecord,
    FacilityUse,
    Frequency,
    Remark,
    Runway,
    RunwayEnd,
    SiteType,
)

logger = logging.getLogger(__name__)

# Rows between cancellation checks.
CANCEL_CHECK_INTERVAL = 500

_CSV_ZIP_PATTERN = r".*_CSV\.zip"


@dataclass
class ParseResult:
    """Records decoded from an archive plus the rows that were skipped."""

    records: list[FacilityRecord] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)


class _RowError(ValueError):
    """A row-level problem that becomes a ParseWarning."""


def _text(row: dict[str | None, str | None], column: str) -> str:
    value = row.get(column)
    return value.strip() if value else ""


def _optional_int(row: dict, column: str) -> int | None:
    value = _optional_float(row, column)
    return int(value) if value is not None else None


def _optional_float(row: dict, column: str) -> float | None:
    text = _text(row, column)
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        logger.debug("Ignoring non-numeric %s value %r", column, text)
        return None
    if not math.isfinite(value):
        logger.debug("Ignoring non-finite %s value %r", column, text)
        return None
    return value


def _flag(row: dict, column: str) -> bool:
    return _text(row, column).upper() == "Y"


def _require(row: dict, layout: Layout, header_size: int) -> None:
    """Fail the row if a required column is missing or blank."""
    if any(row.get(column) is None for column in layout.required):
        found = sum(1 for key, value in row.items() if key is not None and value is not None)
        raise _RowError(f"expected {header_size} columns, found {found}")

    for column in layout.required:
        if not _text(row, column):
            raise _RowError(f"missing {column}")


def normalize_fuel_types(text: str) -> str:
    """Normalise a fuel type list to comma-and-space separators ("A, 100LL")."""
    return ", ".join(part.strip() for part in text.split(",") if part.strip())


def _enum_or_none(enum_type, code: str):
    try:
        return enum_type(code.upper()) if code else None
    except ValueError:
        logger.debug("Unknown %s code %r", enum_type.__name__, code)
        return None


class NasrParser:
    """Parser for the airport files of a NASR CSV subscription.

    Examples:
        >>> parser = NasrParser(encoding="utf-8-sig")
        >>> with open_archive(path) as handle:
        ...     result = parser.parse(handle)
    """

    def __init__(self, encoding: str = "utf-8-sig", cancel: CancelToken | None = None) -> None:
        """Initialize the parser.

        Args:
            encoding: Text encoding of the CSV members.
            cancel: Optional token checked periodically while reading rows.
        """
        self._encoding = encoding
        self._cancel = cancel
        self._warnings: list[ParseWarning] = []

    def parse(self, handle: ArchiveHandle) -> ParseResult:
        """Decode every supported layout file in an archive.

        Args:
            handle: An open archive holding the CSV files directly or in a
                nested ``*_CSV.zip``.

        Returns:
            ParseResult with records in APT_BASE order and row warnings.

        Raises:
            UnsupportedSchema: If APT_BASE.csv or one of its required columns
                is missing.
            CorruptArchive: If a member fails to decompress or a header line
                cannot be read.
            OperationCancelled: If the cancel token fires.
        """
        self._warnings = []
        source = self._locate(handle)
        members = {
            layout.member: self._find(source, layout.member)
            for layout in (layouts.APT_BASE,) + layouts.CHILD_LAYOUTS
        }

        base_member = members[layouts.APT_BASE.member]

        logger.info("Parsing %s from %s", base_member, source.name)
        base = self._parse_base(source, base_member)
        logger.info("Parsed %d airports", len(base))

        runways: dict[str, list[Runway]] = {}
        ends: dict[tuple[str, str], list[RunwayEnd]] = {}
        frequencies: dict[str, list[Frequency]] = {}
        remarks: dict[str, list[Remark]] = {}
        airspace: dict[str, ClassAirspace] = {}

        for layout in layouts.CHILD_LAYOUTS:
            member = members[layout.member]
            if member is None:
                logger.info("%s not present; skipping", layout.member)
                continue

            count = 0
            for airport_id, row in self._child_rows(source, member, layout, base):
                if layout is layouts.APT_RWY:
                    runways.setdefault(airport_id, []).append(self._runway(row))
                elif layout is layouts.APT_RWY_END:
                    key = (airport_id, _text(row, "RWY_ID"))
                    ends.setdefault(key, []).append(self._runway_end(row))
                elif layout is layouts.FRQ:
                    frequencies.setdefault(airport_id, []).append(self._frequency(row))
                elif layout is layouts.APT_RMK:
                    remarks.setdefault(airport_id, []).append(self._remark(row))
                else:
                    airspace[airport_id] = self._class_airspace(row)
                count += 1
            logger.info("Parsed %d rows from %s", count, layout.member)

        records = []
        for key, record in base.items():
            attrs = record.attributes
            rwys = tuple(
                replace(runway, ends=tuple(ends.get((key, runway.runway_id), ())))
                for runway in runways.get(key, ())
            )
            attrs = replace(
                attrs,
                runways=rwys,
                frequencies=tuple(frequencies.get(key, ())),
                remarks=tuple(remarks.get(key, ())),
                airspace=airspace.get(key),
            )
            records.append(replace(record, attributes=attrs))

        if self._warnings:
            logger.warning("Skipped %d malformed NASR rows", len(self._warnings))

        return ParseResult(records, list(self._warnings))

    def _locate(self, handle: ArchiveHandle) -> ArchiveHandle:
        """Return the archive that holds the CSV files."""
        if self._find(handle, layouts.APT_BASE.member):
            return handle

        for nested in handle.find_members(_CSV_ZIP_PATTERN):
            logger.debug("Opening nested CSV archive %s", nested)
            inner = handle.open_nested(nested)
            if self._find(inner, layouts.APT_BASE.member):
                return inner

        raise UnsupportedSchema(f"NASR archive {handle.name} is missing {layouts.APT_BASE.member}")

    @staticmethod
    def _find(handle: ArchiveHandle, member: str) -> str | None:
        matches = handle.find_members(re.escape(member))
        return matches[0] if matches else None

    def _warn(self, member: str, line: int, message: str) -> None:
        warning = ParseWarning(member, line, message)
        logger.debug("Skipping row: %s", warning)
        self._warnings.append(warning)

    def _rows(self, handle: ArchiveHandle, member: str, layout: Layout) -> Iterator[tuple[int, dict, int]]:
        """Yield (line number, row, header size) for each data row.

        A line the CSV reader cannot tokenise becomes a warning; the reader
        resumes on the following line.

        Raises:
            UnsupportedSchema: If the header lacks a required column.
            CorruptArchive: If the header line cannot be read.
        """
        with handle.open_text(member, self._encoding) as text:
            reader = csv.DictReader(text)
            try:
                fieldnames = reader.fieldnames or []
            except csv.Error as e:
                raise CorruptArchive(f"{member}: unreadable header: {e}") from e
            header = [name.strip().upper() for name in fieldnames]
            missing = layout.missing_columns(header)
            if missing:
                raise UnsupportedSchema(f"{layout.member} is missing required columns: {', '.join(missing)}")
            if layout is layouts.APT_BASE:
                self._check_position_columns(header)
            reader.fieldnames = header

            count = 0
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    self._warn(layout.member, reader.reader.line_num, f"unreadable row: {e}")
                    continue
                count += 1
                if self._cancel is not None and count % CANCEL_CHECK_INTERVAL == 0:
                    self._cancel.raise_if_cancelled()
                yield reader.line_num, row, len(header)

        if self._cancel is not None:
            self._cancel.raise_if_cancelled()

    def _parse_base(self, handle: ArchiveHandle, member: str) -> dict[str, FacilityRecord]:
        layout = layouts.APT_BASE
        base: dict[str, FacilityRecord] = {}
        lines: dict[str, int] = {}

        for line, row, header_size in self._rows(handle, member, layout):
            try:
                _require(row, layout, header_size)
                record = self._airport(row)
            except _RowError as e:
                self._warn(layout.member, line, str(e))
                continue

            key = record.identifier.upper()
            if key in base:
                self._warn(
                    layout.member,
                    line,
                    f"duplicate identifier {record.identifier}; replaces line {lines[key]}",
                )
            base[key] = record
            lines[key] = line

        return base

    @staticmethod
    def _check_position_columns(header: list[str]) -> None:
        columns = set(header)
        if not (set(layouts.DMS_COLUMNS) <= columns or set(layouts.DECIMAL_COLUMNS) <= columns):
            raise UnsupportedSchema(
                f"{layouts.APT_BASE.member} has no position columns "
                f"({', '.join(layouts.DMS_COLUMNS)} or {', '.join(layouts.DECIMAL_COLUMNS)})"
            )

    @staticmethod
    def _position(row: dict) -> tuple[float, float]:
        """Read the DMS columns, falling back to decimal degrees when they are absent."""
        lat_parts = [_text(row, column) for column in layouts.LAT_DMS_COLUMNS]
        lon_parts = [_text(row, column) for column in layouts.LON_DMS_COLUMNS]
        try:
            if any(lat_parts) or any(lon_parts):
                lat_text = assemble_dms(*lat_parts)
                lon_text = assemble_dms(*lon_parts)
                return parse_dms(lat_text, "lat"), parse_dms(lon_text, "lon")

            lat_text = _text(row, "LAT_DECIMAL")
            lon_text = _text(row, "LONG_DECIMAL")
            if not lat_text or not lon_text:
                raise _RowError("missing position")
            return parse_decimal(lat_text, "lat"), parse_decimal(lon_text, "lon")
        except _RowError:
            raise
        except ValueError as e:
            raise _RowError(f"invalid coordinate: {e}") from e

    def _airport(self, row: dict) -> FacilityRecord:
        identifier = _text(row, "ARPT_ID")
        latitude, longitude = self._position(row)

        variation = _text(row, "MAG_VARN")
        if variation:
            variation = f"{variation}{_text(row, 'MAG_HEMIS')}"

        attrs = AirportAttributes(
            site_type=_enum_or_none(SiteType, _text(row, "SITE_TYPE_CODE")),
            facility_use=_enum_or_none(FacilityUse, _text(row, "FACILITY_USE_CODE")),
            icao_id=_text(row, "ICAO_ID") or None,
            city=_text(row, "CITY"),
            state_code=_text(row, "STATE_CODE"),
            fuel_types=normalize_fuel_types(_text(row, "FUEL_TYPES")),
            elevation_method=_enum_or_none(ElevationMethod, _text(row, "ELEV_METHOD_CODE")),
            pattern_altitude_ft=_optional_int(row, "TPA"),
            magnetic_variation=variation,
            effective_date=_text(row, "EFF_DATE"),
        )

        return FacilityRecord(
            identifier=identifier,
            name=_text(row, "ARPT_NAME"),
            kind=FacilityKind.AIRPORT,
            latitude=latitude,
            longitude=longitude,
            elevation_ft=_optional_float(row, "ELEV"),
            attributes=attrs,
        )

    def _child_rows(
        self, handle: ArchiveHandle, member: str, layout: Layout, base: dict[str, FacilityRecord]
    ) -> Iterator[tuple[str, dict]]:
        """Yield (airport key, row) for well-formed rows of a known airport."""
        id_column = layout.required[0]
        for line, row, header_size in self._rows(handle, member, layout):
            try:
                _require(row, layout, header_size)
            except _RowError as e:
                self._warn(layout.member, line, str(e))
                continue

            key = _text(row, id_column).upper()
            if key not in base:
                logger.debug("%s line %d references unknown airport %s", layout.member, line, key)
                continue

            yield key, row

    @staticmethod
    def _runway(row: dict) -> Runway:
        return Runway(
            runway_id=_text(row, "RWY_ID"),
            length_ft=_optional_int(row, "RWY_LEN"),
            width_ft=_optional_int(row, "RWY_WIDTH"),
            surface_code=_text(row, "SURFACE_TYPE_CODE"),
            condition=_text(row, "COND"),
            lighting_code=_text(row, "RWY_LGT_CODE"),
        )

    @staticmethod
    def _runway_end(row: dict) -> RunwayEnd:
        return RunwayEnd(
            end_id=_text(row, "RWY_END_ID"),
            true_alignment=_optional_int(row, "TRUE_ALIGNMENT"),
            right_hand_traffic=_flag(row, "RIGHT_HAND_TRAFFIC_PAT_FLAG"),
            elevation_ft=_optional_float(row, "RWY_END_ELEV"),
            displaced_threshold_ft=_optional_int(row, "DISPLACED_THR_LEN"),
        )

    @staticmethod
    def _frequency(row: dict) -> Frequency:
        return Frequency(
            frequency=_text(row, "FREQ"),
            use=_text(row, "FREQ_USE"),
            facility_type=_text(row, "FACILITY_TYPE"),
            sectorization=_text(row, "SECTORIZATION"),
            tower_call=_text(row, "TOWER_OR_COMM_CALL"),
            approach_call=_text(row, "PRIMARY_APPROACH_RADIO_CALL"),
            remark=_text(row, "REMARK"),
        )

    @staticmethod
    def _remark(row: dict) -> Remark:
        return Remark(
            element=_text(row, "ELEMENT"),
            reference_column=_text(row, "REF_COL_NAME"),
            text=_text(row, "REMARK"),
        )

    @staticmethod
    def _class_airspace(row: dict) -> ClassAirspace:
        return ClassAirspace(
            class_b=_flag(row, "CLASS_B_AIRSPACE"),
            class_c=_flag(row, "CLASS_C_AIRSPACE"),
            class_d=_flag(row, "CLASS_D_AIRSPACE"),
            class_e=_flag(row, "CLASS_E_AIRSPACE"),
            hours=_text(row, "AIRSPACE_HRS"),
            remark=_text(row, "REMARK"),
        )


def parse(
    handle: ArchiveHandle, encoding: str = "utf-8-sig", cancel: CancelToken | None = None
) -> tuple[list[FacilityRecord], list[ParseWarning]]:
    """Parse an open NASR archive into (records, warnings).

    Raises:
        UnsupportedSchema: If the archive lacks APT_BASE.csv or a required column.
        CorruptArchive: If a member fails to decompress.
        OperationCancelled: If the cancel token fires.
    """
    result = NasrParser(encoding=encoding, cancel=cancel).parse(handle)
    return result.records, result.warnings

"""Command-line front end for NASR lookups and chart inspection.

Typical usage:
    vfrplan find 28DaySubscription.zip KSEA
    vfrplan search 28DaySubscription.zip seattle --limit 5
    vfrplan near 28DaySubscription.zip 47.45 -122.30 --radius 5
    vfrplan chart-info Seattle.zip
"""

import argparse
import sys
from itertools import islice
from pathlib import Path

from vfrplan.core.config import ConfigError, EngineSettings
from vfrplan.core.errors import VFRPlanError
from vfrplan.core.logging_system import LoggingError, get_logger, initialize_logging
from vfrplan.engine import Engine
from vfrplan.nasr.coordinates import format_dms
from vfrplan.nasr.records import FacilityRecord

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


def _default_config(name: str) -> Path | None:
    path = CONFIG_DIR / name
    return path if path.exists() else None


def format_facility(record: FacilityRecord) -> str:
    """One-line summary of a facility."""
    parts = [f"{record.identifier:<5}", record.name]
    attrs = record.attributes
    if attrs is not None:
        tags = [value.abbreviation for value in (attrs.site_type, attrs.facility_use) if value is not None]
        if tags:
            parts.append(" ".join(tags))
        if attrs.location:
            parts.append(attrs.location)
        if attrs.icao_id:
            parts.append(f"({attrs.icao_id})")
    parts.append(f"{format_dms(record.latitude, 'lat')} {format_dms(record.longitude, 'lon')}")
    if record.elevation_ft is not None:
        elevation = f"elev {record.elevation_ft:g} ft"
        if attrs is not None and attrs.elevation_method is not None:
            elevation += f" ({attrs.elevation_method.abbreviation})"
        parts.append(elevation)
    return "  ".join(parts)


def _cmd_find(engine: Engine, args: argparse.Namespace) -> int:
    engine.load_nasr_archive(args.archive)
    record = engine.find_by_identifier(args.identifier)
    if record is None:
        print(f"{args.identifier}: not found")
        return 1

    print(format_facility(record))
    attrs = record.attributes
    if attrs is not None:
        for runway in attrs.runways:
            size = f"{runway.length_ft or '?'} x {runway.width_ft or '?'} ft"
            print(f"  RWY {runway.runway_id:<8} {size:<16} {runway.surface}")
        for frequency in attrs.frequencies:
            print(f"  {frequency.frequency:<10} {frequency.use}")
    return 0


def _cmd_search(engine: Engine, args: argparse.Namespace) -> int:
    engine.load_nasr_archive(args.archive)
    for record in islice(engine.search_by_name(args.query), args.limit):
        print(format_facility(record))
    return 0


def _cmd_near(engine: Engine, args: argparse.Namespace) -> int:
    engine.load_nasr_archive(args.archive)
    for hit in islice(engine.find_near(args.latitude, args.longitude, args.radius), args.limit):
        print(f"{hit.distance_nm:6.1f} nm  {format_facility(hit.record)}")
    return 0


def _cmd_chart_info(engine: Engine, args: argparse.Namespace) -> int:
    chart = engine.load_chart(args.archive, member=args.member)
    package = chart.package
    georef = package.georeference
    print(f"Chart:      {package.name} ({package.member})")
    print(f"Size:       {georef.width} x {georef.height} px")
    print(f"Projection: {georef.proj4}")
    for label, (lat, lon) in zip(("Top-left", "Top-right", "Bottom-right", "Bottom-left"), georef.geodetic_bounds()):
        print(f"{label + ':':<12}{format_dms(lat, 'lat')} {format_dms(lon, 'lon')}")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(prog="vfrplan", description="VFR NASR data and chart tools")
    parser.add_argument("--config", type=Path, help="Engine settings YAML file")
    parser.add_argument("--logging-config", type=Path, help="Logging configuration YAML file")

    commands = parser.add_subparsers(dest="command", required=True)

    find = commands.add_parser("find", help="Look up a facility by identifier or ICAO code")
    find.add_argument("archive", type=Path, help="NASR subscription zip")
    find.add_argument("identifier", help="Identifier, e.g. SEA or KSEA")
    find.set_defaults(handler=_cmd_find)

    search = commands.add_parser("search", help="Search facilities by name")
    search.add_argument("archive", type=Path, help="NASR subscription zip")
    search.add_argument("query", help="Name or identifier text")
    search.add_argument("--limit", type=int, default=20, help="Maximum results (default: 20)")
    search.set_defaults(handler=_cmd_search)

    near = commands.add_parser("near", help="List facilities near a position")
    near.add_argument("archive", type=Path, help="NASR subscription zip")
    near.add_argument("latitude", type=float, help="Latitude in decimal degrees")
    near.add_argument("longitude", type=float, help="Longitude in decimal degrees")
    near.add_argument("--radius", type=float, default=10.0, help="Radius in nautical miles (default: 10)")
    near.add_argument("--limit", type=int, default=20, help="Maximum results (default: 20)")
    near.set_defaults(handler=_cmd_near)

    chart_info = commands.add_parser("chart-info", help="Show a chart package's georeference")
    chart_info.add_argument("archive", type=Path, help="Chart package zip")
    chart_info.add_argument("--member", help="Raster member to use")
    chart_info.set_defaults(handler=_cmd_chart_info)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success).
    """
    args = parse_args(argv)

    try:
        initialize_logging(args.logging_config or _default_config("logging.yaml"), use_platform_dir=True)
        settings = EngineSettings.load(args.config or _default_config("engine.yaml"))
    except (ConfigError, LoggingError) as e:
        print(f"vfrplan: {e}", file=sys.stderr)
        return 2

    with Engine(settings) as engine:
        try:
            return args.handler(engine, args)
        except (VFRPlanError, ValueError) as e:
            logger.error("%s failed: %s", args.command, e)
            print(f"vfrplan: {e}", file=sys.stderr)
            return 1


if __name__ == "__main__":
    sys.exit(main())

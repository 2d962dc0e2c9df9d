"""NASR subscription decoding.

Typical usage:
    from vfrplan.nasr.dataset import load_nasr_archive

    dataset = load_nasr_archive("28DaySubscription_Effective_2024-01-25.zip")
    print(len(dataset.records), "airports")
    for warning in dataset.warnings:
        print(warning)
"""

from vfrplan.nasr.coordinates import format_dms, parse_dms
from vfrplan.nasr.parser import NasrParser, ParseResult, parse
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

__all__ = [
    "AirportAttributes",
    "ClassAirspace",
    "ElevationMethod",
    "FacilityKind",
    "FacilityRecord",
    "FacilityUse",
    "Frequency",
    "NasrParser",
    "ParseResult",
    "Remark",
    "Runway",
    "RunwayEnd",
    "SiteType",
    "format_dms",
    "parse",
    "parse_dms",
]

"""Read-only lookup structure over parsed facility records.

The index is built once from a complete record set and never patched; a new
archive means a new index. It supports exact identifier lookup (including
ICAO aliases), ranked name search, and radius and bounding-box queries.

Typical usage:
    from vfrplan.index import FacilityIndex

    index = FacilityIndex.build(records)
    sea = index.find_by_identifier("KSEA")
    for hit in index.find_near(47.45, -122.30, radius_nm=5):
        print(hit.record.identifier, round(hit.distance_nm, 1))
"""

import logging
import math
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

from vfrplan.core.config import EngineSettings
from vfrplan.index.spatial_index import SpatialIndex
from vfrplan.nasr.records import FacilityKind, FacilityRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Search ranks, best first.
RANK_EXACT = 0
RANK_PREFIX = 1
RANK_SUBSTRING = 2


@dataclass(frozen=True)
class NearbyFacility:
    """A proximity query hit.

    Attributes:
        record: The facility found.
        distance_nm: Great-circle distance from the query point in nautical miles.
    """

    record: FacilityRecord
    distance_nm: float


class LazyResults(Generic[T]):
    """A finite query result that is computed on iteration.

    Each iteration reruns the query, so the result can be walked any number
    of times.
    """

    def __init__(self, compute: Callable[[], Iterable[T]]) -> None:
        self._compute = compute

    def __iter__(self) -> Iterator[T]:
        return iter(self._compute())

    def first(self) -> T | None:
        """Return the best result, or None if there are none."""
        return next(iter(self), None)


class FacilityIndex:
    """Identifier, name, and spatial index over a facility record set.

    Examples:
        >>> index = FacilityIndex.build(records)
        >>> index.find_by_identifier("sea").name
        'SEATTLE-TACOMA INTL'
        >>> [r.identifier for r in index.search_by_name("seattle")]
        ['SEA', 'W36']
    """

    def __init__(
        self,
        records: Iterable[FacilityRecord],
        cell_size_deg: float = 0.1,
        include_private_heliports: bool = False,
        min_query_chars: int = 1,
    ) -> None:
        """Build the index.

        Args:
            records: Complete record set. Later records with the same kind
                and identifier replace earlier ones.
            cell_size_deg: Spatial grid cell size in degrees.
            include_private_heliports: Default for whether searches return
                non-public heliports.
            min_query_chars: Shortest name query that is searched.
        """
        self._include_private_heliports = include_private_heliports
        self._min_query_chars = min_query_chars

        self._by_key: dict[tuple[FacilityKind, str], FacilityRecord] = {}
        for record in records:
            self._by_key[record.key] = record

        self._aliases: dict[tuple[FacilityKind, str], FacilityRecord] = {}
        for record in self._by_key.values():
            icao = record.icao_id
            if icao:
                alias_key = (record.kind, icao.upper())
                if alias_key not in self._by_key:
                    self._aliases[alias_key] = record

        # Name order doubles as the search tie-break order.
        self._by_name = sorted(self._by_key.values(), key=lambda r: (r.name.casefold(), r.identifier))
        self._name_keys = [
            (record.name.casefold(), record.identifier.casefold(), (record.icao_id or "").casefold())
            for record in self._by_name
        ]

        self._spatial = SpatialIndex(cell_size_deg)
        for record in self._by_key.values():
            self._spatial.insert(record.latitude, record.longitude, record)

        logger.info(
            "Built facility index: %d records, %d aliases, %d spatial cells",
            len(self._by_key),
            len(self._aliases),
            self._spatial.get_cell_count(),
        )

    @classmethod
    def build(cls, records: Iterable[FacilityRecord], settings: EngineSettings | None = None) -> "FacilityIndex":
        """Build an index using engine settings (defaults when None)."""
        settings = settings or EngineSettings()
        return cls(
            records,
            cell_size_deg=settings.cell_size_deg,
            include_private_heliports=settings.include_private_heliports,
            min_query_chars=settings.min_query_chars,
        )

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self) -> Iterator[FacilityRecord]:
        """Iterate over records in identifier order."""
        return iter(sorted(self._by_key.values(), key=lambda r: (r.identifier.upper(), r.kind.value)))

    def find_by_identifier(self, identifier: str, kind: FacilityKind = FacilityKind.AIRPORT) -> FacilityRecord | None:
        """Look up a facility by identifier or ICAO alias, ignoring case.

        Args:
            identifier: Identifier such as "SEA" or alias such as "KSEA".
            kind: Facility kind to look in.

        Returns:
            The record, or None if there is no match.
        """
        key = (kind, identifier.strip().upper())
        return self._by_key.get(key) or self._aliases.get(key)

    def _visible(self, record: FacilityRecord, include_private_heliports: bool | None) -> bool:
        if include_private_heliports is None:
            include_private_heliports = self._include_private_heliports
        return include_private_heliports or not record.is_non_public_heliport

    def search_by_name(self, query: str, include_private_heliports: bool | None = None) -> LazyResults[FacilityRecord]:
        """Search names and identifiers, best matches first.

        Ranking: exact identifier or alias match, then name or identifier
        prefix, then name substring; ties by name, then identifier.

        Args:
            query: Search text; trimmed and matched without regard to case.
            include_private_heliports: Override the index default.

        Returns:
            Lazy, restartable sequence of matching records.
        """
        needle = query.strip().casefold()

        def compute() -> list[FacilityRecord]:
            if not needle or len(needle) < self._min_query_chars:
                return []

            ranked = []
            for position, (record, (name, ident, icao)) in enumerate(zip(self._by_name, self._name_keys)):
                if needle in (ident, icao):
                    rank = RANK_EXACT
                elif name.startswith(needle) or ident.startswith(needle) or (icao and icao.startswith(needle)):
                    rank = RANK_PREFIX
                elif needle in name:
                    rank = RANK_SUBSTRING
                else:
                    continue

                if self._visible(record, include_private_heliports):
                    ranked.append((rank, position, record))

            ranked.sort(key=lambda entry: entry[:2])
            return [record for _, _, record in ranked]

        return LazyResults(compute)

    def find_near(
        self,
        latitude: float,
        longitude: float,
        radius_nm: float,
        include_private_heliports: bool | None = None,
    ) -> LazyResults[NearbyFacility]:
        """Find facilities within a great-circle radius, nearest first.

        Args:
            latitude: Query latitude in degrees.
            longitude: Query longitude in degrees.
            radius_nm: Radius in nautical miles. Zero returns only facilities
                at exactly the query point.
            include_private_heliports: Override the index default.

        Returns:
            Lazy, restartable sequence of NearbyFacility, by distance then identifier.

        Raises:
            ValueError: If the radius is negative or not finite.
        """
        if not math.isfinite(radius_nm) or radius_nm < 0:
            raise ValueError(f"radius must be a non-negative number, got {radius_nm}")

        def compute() -> list[NearbyFacility]:
            hits = [
                NearbyFacility(record, distance)
                for record, distance in self._spatial.query_radius(latitude, longitude, radius_nm)
                if self._visible(record, include_private_heliports)
            ]
            hits.sort(key=lambda hit: (hit.distance_nm, hit.record.identifier))
            return hits

        return LazyResults(compute)

    def find_in_bounds(
        self,
        min_lat: float,
        min_lon: float,
        max_lat: float,
        max_lon: float,
        include_private_heliports: bool | None = None,
    ) -> list[FacilityRecord]:
        """Return facilities inside a latitude/longitude box, by identifier.

        A box with min_lon greater than max_lon crosses the antimeridian.

        Raises:
            ValueError: If min_lat exceeds max_lat.
        """
        if min_lat > max_lat:
            raise ValueError(f"min_lat ({min_lat}) exceeds max_lat ({max_lat})")

        found = [
            record
            for record in self._spatial.query_bounds(min_lat, min_lon, max_lat, max_lon)
            if self._visible(record, include_private_heliports)
        ]
        found.sort(key=lambda r: r.identifier)
        return found

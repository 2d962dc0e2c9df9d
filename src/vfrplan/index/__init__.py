"""Facility index: identifier lookup, name search and proximity queries.

Typical usage:
    from vfrplan.index import FacilityIndex

    index = FacilityIndex.build(records)
    airport = index.find_by_identifier("KSEA")
    nearby = list(index.find_near(47.45, -122.30, radius_nm=5))
"""

from vfrplan.index.facility_index import FacilityIndex, LazyResults, NearbyFacility
from vfrplan.index.spatial_index import SpatialIndex, haversine_nm

__all__ = [
    "FacilityIndex",
    "LazyResults",
    "NearbyFacility",
    "SpatialIndex",
    "haversine_nm",
]

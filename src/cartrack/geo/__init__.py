"""Geospatial helpers: distance, grid cache and address resolution."""

from cartrack.geo.distance import fcc_distance_m
from cartrack.geo.grid import GeoGridCache, cell_index
from cartrack.geo.resolver import AddressResolver, ResolveAddress

__all__ = [
    "AddressResolver",
    "GeoGridCache",
    "ResolveAddress",
    "cell_index",
    "fcc_distance_m",
]

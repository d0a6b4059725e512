"""Short-range distance on the ellipsoidal earth."""

from __future__ import annotations

import math


def _cos_deg(degrees: float) -> float:
    return math.cos(math.radians(degrees))


def fcc_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two points given in degrees.

    Uses the ellipsoidal-earth-projected-to-a-plane formula prescribed by
    the FCC in 47 CFR 73.208. Accurate for distances up to 475 km.
    """

    delta_lat = lat2 - lat1
    delta_lon = lon2 - lon1
    mean_lat = (lat1 + lat2) / 2.0

    # Kilometers per degree of latitude and longitude difference.
    k1 = 111.13209 - 0.56606 * _cos_deg(2 * mean_lat) + 0.00120 * _cos_deg(4 * mean_lat)
    k2 = 111.41513 * _cos_deg(mean_lat) - 0.09455 * _cos_deg(3 * mean_lat) + 0.00012 * _cos_deg(5 * mean_lat)

    return math.sqrt((k1 * delta_lat) ** 2 + (k2 * delta_lon) ** 2) * 1000.0

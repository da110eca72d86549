"""Great-circle helpers. Pure functions on decimal degrees."""

import math

EARTH_RADIUS_M = 6_371_000.0


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial forward azimuth from point 1 to point 2, in degrees [0, 360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(
        d_lambda
    )
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def angular_diff(a: float, b: float) -> float:
    """Absolute difference between two bearings along the shorter arc, in [0, 180]."""
    diff = abs(a - b) % 360
    if diff > 180:
        diff = 360 - diff
    return diff

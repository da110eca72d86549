"""Route risk sampling: distance-weighted exposure of a route to the risk directions."""

import math
from collections.abc import Sequence

from luckymap.geomath import angular_diff, bearing_between, haversine_meters
from luckymap.models import CandidateRoute

DIRECTION_ANGLES: dict[str, float] = {
    "N": 0.0,
    "NE": 45.0,
    "E": 90.0,
    "SE": 135.0,
    "S": 180.0,
    "SW": 225.0,
    "W": 270.0,
    "NW": 315.0,
}

MAX_SEGMENTS = 36
MAX_INFLUENCE_DEG = 60.0  # Risk falls linearly to zero at this offset
AMPLIFICATION = 1.5

NEUTRAL_LUCKY_POINT = 50.0


def round2(x: float) -> float:
    """Round half up to 2 decimals."""
    return math.floor(x * 100 + 0.5) / 100


def sample_geometry(
    coords: Sequence[tuple[float, float]], max_segments: int = MAX_SEGMENTS
) -> list[tuple[float, float]]:
    """Keep every step-th point so at most max_segments segments remain.

    The final point is always kept.
    """
    n = len(coords)
    if n < 2:
        return list(coords)
    step = max(1, math.ceil((n - 1) / max_segments))
    picked = list(coords[::step])
    if (n - 1) % step:
        picked.append(coords[-1])
    return picked


def risk_level_from_bearing(bearing: float, risk_directions: Sequence[str]) -> float:
    """Risk in [0, 1]: 1 when heading straight at a risk direction, 0 at 60° or more."""
    angles = [DIRECTION_ANGLES[d] for d in risk_directions if d in DIRECTION_ANGLES]
    if not angles:
        return 0.0

    min_diff = min(angular_diff(bearing, a) for a in angles)
    if min_diff >= MAX_INFLUENCE_DEG:
        return 0.0
    return 1 - min_diff / MAX_INFLUENCE_DEG


def _segment(p1, p2) -> tuple[float, float] | None:
    """(distance, bearing) of a (lon, lat) segment, or None when it has no length
    or an endpoint is unusable.
    """
    try:
        lon1, lat1 = float(p1[0]), float(p1[1])
        lon2, lat2 = float(p2[0]), float(p2[1])
    except (TypeError, ValueError, IndexError):
        return None
    if not all(math.isfinite(v) for v in (lon1, lat1, lon2, lat2)):
        return None

    dist = haversine_meters(lat1, lon1, lat2, lon2)
    if not math.isfinite(dist) or dist <= 0:
        return None
    return dist, bearing_between(lat1, lon1, lat2, lon2)


def score_route(
    route: CandidateRoute, risk_directions: Sequence[str]
) -> tuple[float, float]:
    """Score a route against the risk directions.

    Args:
        route: Candidate route with (lon, lat) geometry.
        risk_directions: Compass codes to avoid.

    Returns:
        (lucky_point, risk_ratio), both rounded to 2 decimals. lucky_point is
        in [0, 100]; risk_ratio in [0, 1]. Routes with fewer than 2 points
        score a neutral (50.0, 0.0).
    """
    coords = route.geometry
    if not coords or len(coords) < 2:
        return NEUTRAL_LUCKY_POINT, 0.0

    picked = sample_geometry(coords)

    weighted_risk = 0.0
    dist_sum = 0.0
    for p1, p2 in zip(picked, picked[1:]):
        seg = _segment(p1, p2)
        if seg is None:
            continue
        seg_dist, bearing = seg
        weighted_risk += risk_level_from_bearing(bearing, risk_directions) * seg_dist
        dist_sum += seg_dist

    reported = route.distance
    if reported and math.isfinite(reported) and reported > 0:
        total = reported
    else:
        total = dist_sum or 1.0
    risk_ratio = weighted_risk / total

    lucky_point = 100 - risk_ratio * 100 * AMPLIFICATION
    lucky_point = max(0.0, min(100.0, lucky_point))
    return round2(lucky_point), round2(max(0.0, min(1.0, risk_ratio)))

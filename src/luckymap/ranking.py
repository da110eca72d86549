"""Route ranking: score, sort, deduplicate, and remap the best routes into a display band."""

import math
from collections.abc import Iterable, Sequence

from luckymap.models import CandidateRoute, ScoredRoute
from luckymap.scoring import round2, score_route

MAX_ROUTES = 5

# (lower bound on the best raw score, points added to the best score)
_BOOST_BANDS: tuple[tuple[float, float], ...] = (
    (70.0, 15.0),
    (60.0, 25.0),
    (50.0, 35.0),
)
_IDENTITY_ABOVE = 80.0
_LOW_SCORE_OFFSET = 50.0


def _js_round(x: float) -> int:
    return math.floor(x + 0.5)


def score_candidates(
    candidates: Iterable[CandidateRoute], risk_directions: Sequence[str]
) -> list[ScoredRoute]:
    """Score every candidate route."""
    scored = []
    for route in candidates:
        lucky_point, risk_ratio = score_route(route, risk_directions)
        scored.append(
            ScoredRoute(route=route, lucky_point=lucky_point, risk_ratio=risk_ratio)
        )
    return scored


def dedup_key(route: CandidateRoute) -> tuple:
    """Identity of a route: rounded distance, point count, and endpoints to 5 decimals."""
    first, last = route.geometry[0], route.geometry[-1]
    distance = route.distance if route.distance and math.isfinite(route.distance) else 0.0
    return (
        _js_round(distance),
        len(route.geometry),
        f"{first[0]:.5f},{first[1]:.5f}",
        f"{last[0]:.5f},{last[1]:.5f}",
    )


def select_top(scored: Iterable[ScoredRoute], limit: int = MAX_ROUTES) -> list[ScoredRoute]:
    """Best-first unique routes, at most limit of them, with index assigned.

    Routes whose geometry has fewer than 2 points are not kept.
    """
    ranked = sorted(scored, key=lambda r: r.lucky_point or 0.0, reverse=True)

    seen: set[tuple] = set()
    kept: list[ScoredRoute] = []
    for r in ranked:
        if len(kept) >= limit:
            break
        if len(r.route.geometry) < 2:
            continue
        key = dedup_key(r.route)
        if key in seen:
            continue
        seen.add(key)
        kept.append(r)

    for i, r in enumerate(kept):
        r.index = i
    return kept


def remap_policy(max_raw: float) -> tuple[float, float]:
    """Return (factor, offset) chosen from the best raw score.

    Above 80 the scores are left alone. Between 50 and 80 a single factor
    lifts the best route by 15/25/35 points. Below 50 every score gets +50.
    """
    if max_raw > _IDENTITY_ABOVE:
        return 1.0, 0.0
    for lower, boost in _BOOST_BANDS:
        if max_raw >= lower:
            factor = (max_raw + boost) / max_raw if max_raw > 0 else 1.0
            return factor, 0.0
    return 1.0, _LOW_SCORE_OFFSET


def rescale(routes: Sequence[ScoredRoute]) -> None:
    """Apply the remap policy to the kept routes in place."""
    bases = [r.lucky_point if math.isfinite(r.lucky_point) else 0.0 for r in routes]
    max_raw = max(bases, default=0.0)
    factor, offset = remap_policy(max_raw)

    for r, base in zip(routes, bases):
        remapped = base + offset if offset else base * factor
        remapped = max(0.0, min(100.0, remapped))
        r.lucky_point_base = round2(base)
        r.lucky_point_raw = round2(remapped)
        r.lucky_point = round2(remapped)


def rank_routes(
    candidates: Iterable[CandidateRoute],
    risk_directions: Sequence[str],
    limit: int = MAX_ROUTES,
) -> list[ScoredRoute]:
    """Score, keep the best unique routes, and rescale them for display."""
    kept = select_top(score_candidates(candidates, risk_directions), limit)
    rescale(kept)
    return kept

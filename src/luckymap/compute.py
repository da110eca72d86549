"""Request pipeline: validation, UTC+7 time handling, concurrent route fetch, ranking, serialization."""

import asyncio
import logging
import math
from collections.abc import Mapping, Sequence
from datetime import datetime

import httpx
from pytz import timezone

from luckymap.astrology import LunarConverter, lunar_moment, read_astrology
from luckymap.models import (
    CandidateRoute,
    GeoPoint,
    LuckyRoutesResult,
    RouteQuery,
    ScoredRoute,
)
from luckymap.providers import HTTP_TIMEOUT, fetch_osrm_routes
from luckymap.ranking import MAX_ROUTES, rank_routes

logger = logging.getLogger(__name__)

VN_TZ = timezone("Asia/Ho_Chi_Minh")

WAYPOINT_DELTA_DEG = 0.004

_DATETIME_FORMATS = ("%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S")
_GENDERS = ("male", "female")


class InvalidQueryError(ValueError):
    """Request is missing required fields or carries unusable values."""


def now_local() -> datetime:
    """Current wall-clock time in Vietnam, as a naive datetime."""
    return datetime.now(VN_TZ).replace(tzinfo=None)


def parse_local_datetime(value: str | None) -> datetime | None:
    """Parse a datetime-local string ("YYYY-MM-DDTHH:MM") as UTC+7 civil time.

    Returns None when the value is missing or unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def _parse_point(raw, name: str) -> GeoPoint:
    if not isinstance(raw, Mapping):
        raise InvalidQueryError(f"Missing {name}")
    try:
        lat, lng = float(raw["lat"]), float(raw["lng"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidQueryError(f"Invalid coordinates for {name}") from e
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidQueryError(f"Invalid coordinates for {name}")
    return GeoPoint(lat=lat, lng=lng)


def parse_query(payload: Mapping, now: datetime | None = None) -> RouteQuery:
    """Validate a raw request payload.

    Args:
        payload: ``{origin: {lat, lng}, destination: {lat, lng}, birthYear,
            gender, vehicle, datetime}``.
        now: Fallback time when datetime is absent (defaults to now in UTC+7).

    Returns:
        RouteQuery ready for run().

    Raises:
        InvalidQueryError: On missing fields or unusable values.
    """
    missing = [
        k for k in ("origin", "destination", "birthYear", "gender") if not payload.get(k)
    ]
    if missing:
        raise InvalidQueryError(f"Missing params: {', '.join(missing)}")

    origin = _parse_point(payload["origin"], "origin")
    destination = _parse_point(payload["destination"], "destination")

    try:
        birth_year = int(payload["birthYear"])
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidQueryError("birthYear must be an integer") from e

    gender = str(payload["gender"]).strip().lower()
    if gender not in _GENDERS:
        raise InvalidQueryError("gender must be 'male' or 'female'")

    profile = "foot" if payload.get("vehicle") == "foot" else "driving"
    local_dt = parse_local_datetime(payload.get("datetime")) or now or now_local()

    return RouteQuery(
        origin=origin,
        destination=destination,
        birth_year=birth_year,
        gender=gender,
        profile=profile,
        local_dt=local_dt,
    )


def waypoint_variants(
    origin: GeoPoint, destination: GeoPoint, delta: float = WAYPOINT_DELTA_DEG
) -> list[tuple[GeoPoint, ...]]:
    """The direct pair plus four detours through a shifted midpoint (N, S, E, W)."""
    mid_lat = (origin.lat + destination.lat) / 2
    mid_lng = (origin.lng + destination.lng) / 2
    detours = [
        GeoPoint(mid_lat + delta, mid_lng),
        GeoPoint(mid_lat - delta, mid_lng),
        GeoPoint(mid_lat, mid_lng + delta),
        GeoPoint(mid_lat, mid_lng - delta),
    ]
    return [(origin, destination)] + [(origin, wp, destination) for wp in detours]


async def fetch_candidate_routes(
    profile: str,
    variants: Sequence[Sequence[GeoPoint]],
    client: httpx.AsyncClient | None = None,
) -> list[CandidateRoute]:
    """Fetch every variant concurrently and merge the alternatives into one list.

    A variant that fails contributes nothing; the others are unaffected.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as own_client:
            return await fetch_candidate_routes(profile, variants, own_client)

    results = await asyncio.gather(
        *(fetch_osrm_routes(client, profile, points) for points in variants),
        return_exceptions=True,
    )

    merged: list[CandidateRoute] = []
    for points, result in zip(variants, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Route variant through %d points failed",
                len(points),
                exc_info=result,
            )
            continue
        merged.extend(result)
    return merged


async def run_async(
    query: RouteQuery,
    client: httpx.AsyncClient | None = None,
    to_lunar: LunarConverter = lunar_moment,
    solstice_table: dict[int, dict] | None = None,
) -> LuckyRoutesResult:
    """Top-level entry point: reading, route fetch, and ranking for one query.

    Args:
        query: Validated request.
        client: Optional async HTTP client for the routing provider.
        to_lunar: Lunar converter override.
        solstice_table: Solstice table override.

    Returns:
        LuckyRoutesResult with up to 5 ranked routes (possibly none).
    """
    reading = read_astrology(
        query.birth_year,
        query.gender,
        query.local_dt,
        to_lunar=to_lunar,
        solstice_table=solstice_table,
    )
    candidates = await fetch_candidate_routes(
        query.profile, waypoint_variants(query.origin, query.destination), client
    )
    routes = rank_routes(candidates, reading.risk_directions, limit=MAX_ROUTES)
    logger.info(
        "Ranked %d of %d candidate routes (center=%d, nine_qi=%d, risk=%s)",
        len(routes),
        len(candidates),
        reading.center,
        reading.nine_qi,
        ",".join(reading.risk_directions) or "-",
    )
    return LuckyRoutesResult(query=query, reading=reading, routes=tuple(routes))


def run(query: RouteQuery, **kwargs) -> LuckyRoutesResult:
    """Synchronous wrapper around run_async."""
    return asyncio.run(run_async(query, **kwargs))


def _route_to_payload(r: ScoredRoute) -> dict:
    return {
        "luckyPoint": r.lucky_point,
        "riskRatio": r.risk_ratio,
        "distance": r.route.distance,
        "duration": r.route.duration,
        "geometry": {
            "type": "LineString",
            "coordinates": [list(p) for p in r.route.geometry],
        },
        "index": r.index,
        "luckyPointBase": r.lucky_point_base,
        "luckyPointRaw": r.lucky_point_raw,
    }


def result_to_payload(result: LuckyRoutesResult) -> dict:
    """Serialize a result into the JSON response shape."""
    reading = result.reading
    return {
        "birthYear": result.query.birth_year,
        "nineQi": reading.nine_qi,
        "center": reading.center,
        "riskDirections": list(reading.risk_directions),
        "half": reading.half,
        "lunar": {
            "dayBranch": reading.lunar.day_branch,
            "hourBranchIndex": reading.lunar.hour_branch_index,
        },
        "routes": [_route_to_payload(r) for r in result.routes],
    }

"""External collaborators: OSRM routing and Nominatim geocoding.

Both are best-effort: any failure is logged and degrades to an empty result.
"""

import logging
import os
import threading
from collections.abc import Sequence

import httpx
from cachetools import TTLCache

from luckymap.models import CandidateRoute, GeoPoint

logger = logging.getLogger(__name__)

OSRM_BASE_URL = os.environ.get("OSRM_BASE_URL", "https://router.project-osrm.org")
NOMINATIM_BASE_URL = os.environ.get(
    "NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org"
)
NOMINATIM_USER_AGENT = os.environ.get(
    "NOMINATIM_USER_AGENT", "LuckyMap/1.0 (https://github.com/luckymap/luckymap)"
)
HTTP_TIMEOUT = float(os.environ.get("LUCKYMAP_HTTP_TIMEOUT", "10"))

MIN_QUERY_LENGTH = 3

_GEO_CACHE: TTLCache = TTLCache(
    maxsize=int(os.environ.get("LUCKYMAP_GEO_CACHE_MAX", "1024")),
    ttl=float(os.environ.get("LUCKYMAP_GEO_CACHE_TTL", "30")),
)
_GEO_CACHE_LOCK = threading.Lock()


# --- Routing ---


def _parse_route(raw: dict) -> CandidateRoute:
    """Build a CandidateRoute from one OSRM route object. Raises on malformed input."""
    coords = raw["geometry"]["coordinates"]
    return CandidateRoute(
        geometry=tuple((float(p[0]), float(p[1])) for p in coords),
        distance=float(raw.get("distance") or 0.0),
        duration=float(raw.get("duration") or 0.0),
    )


async def fetch_osrm_routes(
    client: httpx.AsyncClient, profile: str, points: Sequence[GeoPoint]
) -> list[CandidateRoute]:
    """Fetch route alternatives through the given points.

    Args:
        client: Shared async HTTP client.
        profile: "driving" or "foot".
        points: Two or more points in travel order.

    Returns:
        Zero or more CandidateRoutes. Never raises for provider errors.
    """
    coord_str = ";".join(f"{p.lng},{p.lat}" for p in points)
    url = f"{OSRM_BASE_URL}/route/v1/{profile}/{coord_str}"
    params = {
        "overview": "simplified",
        "geometries": "geojson",
        "alternatives": "true",
    }
    try:
        resp = await client.get(url, params=params, timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("OSRM request failed for %s: %s", url, e)
        return []

    routes: list[CandidateRoute] = []
    raw_routes = data.get("routes") if isinstance(data, dict) else None
    for raw in raw_routes or []:
        try:
            routes.append(_parse_route(raw))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            logger.warning("Dropping malformed OSRM route from %s: %s", url, e)
    return routes


# --- Geocoding ---


def _nominatim_get(path: str, params: dict, client: httpx.Client | None = None):
    """Single Nominatim call. Raises httpx.HTTPError / ValueError on failure."""
    headers = {"Accept": "application/json", "User-Agent": NOMINATIM_USER_AGENT}
    url = f"{NOMINATIM_BASE_URL}/{path}"
    if client is None:
        resp = httpx.get(url, params=params, headers=headers, timeout=HTTP_TIMEOUT)
    else:
        resp = client.get(url, params=params, headers=headers, timeout=HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def _cache_get(key: str):
    with _GEO_CACHE_LOCK:
        return _GEO_CACHE.get(key)


def _cache_put(key: str, value) -> None:
    with _GEO_CACHE_LOCK:
        _GEO_CACHE[key] = value


def clear_geocode_cache() -> None:
    with _GEO_CACHE_LOCK:
        _GEO_CACHE.clear()


def search_places(query: str, client: httpx.Client | None = None) -> list[dict]:
    """Free-text place search for autocomplete.

    Args:
        query: Place name or address. Shorter than 3 characters returns [].
        client: Optional HTTP client (tests pass one with a mock transport).

    Returns:
        Nominatim jsonv2 results (dicts with "lat", "lon", "display_name", ...),
        or [] on any failure.
    """
    q = (query or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return []

    key = "s:" + q.lower()
    cached = _cache_get(key)
    if cached is not None:
        return cached

    params = {
        "format": "jsonv2",
        "q": q,
        "addressdetails": 1,
        "limit": 10,
        "accept-language": "vi",
    }
    try:
        data = _nominatim_get("search", params, client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Nominatim search failed for %r: %s", q, e)
        return []

    results = data if isinstance(data, list) else []
    _cache_put(key, results)
    return results


def reverse_geocode(lat: float, lng: float, client: httpx.Client | None = None) -> str | None:
    """Display name for a coordinate, or None on any failure."""
    key = f"r:{lat},{lng}"
    cached = _cache_get(key)
    if cached is not None:
        return cached or None

    params = {
        "format": "jsonv2",
        "lat": lat,
        "lon": lng,
        "zoom": 18,
        "addressdetails": 1,
        "accept-language": "vi",
    }
    try:
        data = _nominatim_get("reverse", params, client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Nominatim reverse failed for %s,%s: %s", lat, lng, e)
        return None

    name = data.get("display_name") if isinstance(data, dict) else None
    # "" marks a successful lookup that found nothing
    _cache_put(key, name or "")
    return name or None


def place_to_point(place: dict) -> GeoPoint | None:
    """GeoPoint from a Nominatim search result, or None if it has no usable coordinates."""
    try:
        return GeoPoint(lat=float(place["lat"]), lng=float(place["lon"]))
    except (KeyError, TypeError, ValueError):
        return None

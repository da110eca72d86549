"""External map links for a ranked route."""

from urllib.parse import urlencode

from luckymap.models import ScoredRoute
from luckymap.scoring import sample_geometry

GOOGLE_MAPS_DIR_URL = "https://www.google.com/maps/dir/"

# Google Maps accepts a limited number of waypoints in a directions URL
MAX_WAYPOINTS = 8

_TRAVEL_MODES = {"driving": "driving", "foot": "walking"}


def google_maps_url(r: ScoredRoute, profile: str = "driving") -> str | None:
    """Directions URL that follows the route through a few of its own points.

    Returns None when the route has fewer than 2 points.
    """
    coords = r.route.geometry
    if len(coords) < 2:
        return None

    def fmt(p: tuple[float, float]) -> str:
        return f"{p[1]:.6f},{p[0]:.6f}"

    inner = sample_geometry(coords, max_segments=MAX_WAYPOINTS + 1)[1:-1]
    params = {
        "api": 1,
        "origin": fmt(coords[0]),
        "destination": fmt(coords[-1]),
        "travelmode": _TRAVEL_MODES.get(profile, "driving"),
    }
    if inner:
        params["waypoints"] = "|".join(fmt(p) for p in inner)
    return GOOGLE_MAPS_DIR_URL + "?" + urlencode(params)

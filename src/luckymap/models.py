"""Data model definitions — explicit boundaries between input, astrology, scoring, and render layers."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GeoPoint:
    """A coordinate in decimal degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class RouteQuery:
    """Validated user input. Produced by compute.parse_query."""

    origin: GeoPoint
    destination: GeoPoint
    birth_year: int
    gender: str  # "male" | "female"
    profile: str  # OSRM travel profile: "driving" | "foot"
    local_dt: datetime  # Naive datetime in UTC+7 civil time


@dataclass(frozen=True)
class LunarMoment:
    """Lunar-calendar labels for a single moment. Read-only after conversion."""

    day_branch: str  # Earthly branch of the day ("子", "丑", ...)
    hour_branch_index: int  # 0 (子 hour, 23:00-01:00) .. 11 (亥 hour)


@dataclass(frozen=True)
class AstroReading:
    """Everything derived from birth data and the lunar moment."""

    lunar: LunarMoment
    half: str  # "first" | "last"
    center: int  # Day/hour center number 1..9
    nine_qi: int  # Personal number 1..9
    risk_directions: tuple[str, ...]  # Compass codes ("N", "NE", ...), at most 4


@dataclass(frozen=True)
class CandidateRoute:
    """A single route alternative returned by the routing provider."""

    geometry: tuple[tuple[float, float], ...]  # (lon, lat) pairs, GeoJSON order
    distance: float  # Meters
    duration: float  # Seconds


@dataclass
class ScoredRoute:
    """A candidate route with its scores.

    Mutable: ranking.rescale rewrites lucky_point and fills the base/raw
    fields and index in place.
    """

    route: CandidateRoute
    lucky_point: float  # 0..100, post-remap once rescaled
    risk_ratio: float  # 0..1
    lucky_point_base: float | None = None  # Score before remap
    lucky_point_raw: float | None = None  # Score after remap
    index: int | None = None  # Rank position among kept routes


@dataclass(frozen=True)
class LuckyRoutesResult:
    """The sole input to renderers and serialization."""

    query: RouteQuery
    reading: AstroReading
    routes: tuple[ScoredRoute, ...]  # At most 5, best first

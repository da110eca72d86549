import asyncio
from datetime import datetime

import httpx
import pytest

from luckymap.compute import (
    InvalidQueryError,
    fetch_candidate_routes,
    parse_local_datetime,
    parse_query,
    result_to_payload,
    run,
    run_async,
    waypoint_variants,
)
from luckymap.models import GeoPoint, LunarMoment

PAYLOAD = {
    "origin": {"lat": 21.0285, "lng": 105.8542},
    "destination": {"lat": 21.0245, "lng": 105.8412},
    "birthYear": 1990,
    "gender": "male",
    "vehicle": "driving",
    "datetime": "2024-06-15T08:30",
}

_TABLE = {
    2024: {"summer": {"month": 6, "day": 21}, "winter": {"month": 12, "day": 21}},
}


def _fixed_lunar(dt):
    return LunarMoment(day_branch="子", hour_branch_index=4)


def _osrm_handler(request: httpx.Request) -> httpx.Response:
    """Echo the requested points back as a polyline, plus one alternative."""
    coord_str = request.url.path.rsplit("/", 1)[-1]
    points = [[float(v) for v in pair.split(",")] for pair in coord_str.split(";")]
    first, last = points[0], points[-1]
    detour = [first, [first[0], last[1]], last]
    return httpx.Response(
        200,
        json={
            "routes": [
                {"geometry": {"coordinates": points}, "distance": 1500.0, "duration": 300.0},
                {"geometry": {"coordinates": detour}, "distance": 1900.0, "duration": 420.0},
            ]
        },
    )


def _run(handler, payload=PAYLOAD):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await run_async(
                parse_query(payload),
                client=client,
                to_lunar=_fixed_lunar,
                solstice_table=_TABLE,
            )

    return asyncio.run(_go())


def test_parse_query_valid():
    query = parse_query(PAYLOAD)
    assert query.origin == GeoPoint(21.0285, 105.8542)
    assert query.destination == GeoPoint(21.0245, 105.8412)
    assert query.birth_year == 1990
    assert query.gender == "male"
    assert query.profile == "driving"
    assert query.local_dt == datetime(2024, 6, 15, 8, 30)


def test_parse_query_coerces_strings_and_profile():
    payload = dict(
        PAYLOAD,
        origin={"lat": "21.0285", "lng": "105.8542"},
        birthYear="1990",
        gender="Female",
        vehicle="foot",
    )
    query = parse_query(payload)
    assert query.origin.lat == 21.0285
    assert query.birth_year == 1990
    assert query.gender == "female"
    assert query.profile == "foot"


def test_parse_query_unknown_vehicle_drives():
    assert parse_query(dict(PAYLOAD, vehicle="bike")).profile == "driving"


def test_parse_query_missing_datetime_uses_now():
    now = datetime(2025, 1, 2, 3, 4)
    payload = {k: v for k, v in PAYLOAD.items() if k != "datetime"}
    assert parse_query(payload, now=now).local_dt == now
    assert parse_query(dict(PAYLOAD, datetime="garbage"), now=now).local_dt == now


@pytest.mark.parametrize("field", ["origin", "destination", "birthYear", "gender"])
def test_parse_query_missing_field(field):
    payload = {k: v for k, v in PAYLOAD.items() if k != field}
    with pytest.raises(InvalidQueryError):
        parse_query(payload)


@pytest.mark.parametrize(
    "override",
    [
        {"origin": {"lat": "abc", "lng": 105.0}},
        {"origin": {"lat": float("nan"), "lng": 105.0}},
        {"destination": {"lat": 21.0, "lng": float("inf")}},
        {"destination": {"lat": 21.0}},
        {"origin": "Hanoi"},
        {"birthYear": "nineteen"},
        {"birthYear": float("inf")},
        {"gender": "other"},
    ],
)
def test_parse_query_rejects_bad_values(override):
    with pytest.raises(InvalidQueryError):
        parse_query(dict(PAYLOAD, **override))


def test_parse_local_datetime_formats():
    assert parse_local_datetime("2024-06-15T08:30") == datetime(2024, 6, 15, 8, 30)
    assert parse_local_datetime("2024-06-15T08:30:45") == datetime(2024, 6, 15, 8, 30, 45)
    assert parse_local_datetime("2024-06-15") is None
    assert parse_local_datetime(None) is None


def test_waypoint_variants():
    o, d = GeoPoint(21.0, 105.0), GeoPoint(21.01, 105.02)
    variants = waypoint_variants(o, d)
    assert len(variants) == 5
    assert variants[0] == (o, d)
    mids = [v[1] for v in variants[1:]]
    assert mids[0].lat == pytest.approx(21.009)
    assert mids[1].lat == pytest.approx(21.001)
    assert mids[2].lng == pytest.approx(105.014)
    assert mids[3].lng == pytest.approx(105.006)
    assert all(v[0] == o and v[-1] == d for v in variants)


def test_fetch_candidate_routes_isolates_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.count(";") == 1:
            return httpx.Response(500, text="boom")
        return _osrm_handler(request)

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            variants = waypoint_variants(GeoPoint(21.0, 105.0), GeoPoint(21.01, 105.02))
            return await fetch_candidate_routes("driving", variants, client)

    routes = asyncio.run(_go())
    # base variant failed, the four detours each return two alternatives
    assert len(routes) == 8


def test_fetch_candidate_routes_survives_unexpected_exception(monkeypatch):
    calls = []

    async def flaky(client, profile, points):
        calls.append(points)
        if len(calls) == 1:
            raise RuntimeError("unexpected")
        return []

    monkeypatch.setattr("luckymap.compute.fetch_osrm_routes", flaky)
    variants = waypoint_variants(GeoPoint(21.0, 105.0), GeoPoint(21.01, 105.02))

    async def _go():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200))
        ) as client:
            return await fetch_candidate_routes("driving", variants, client)

    assert asyncio.run(_go()) == []
    assert len(calls) == 5


def test_run_end_to_end():
    result = _run(_osrm_handler)
    payload = result_to_payload(result)

    assert payload["birthYear"] == 1990
    assert payload["nineQi"] == 1
    assert payload["center"] == 5
    assert payload["riskDirections"] == ["N", "S"]
    assert payload["half"] == "first"
    assert payload["lunar"] == {"dayBranch": "子", "hourBranchIndex": 4}

    routes = payload["routes"]
    assert 1 <= len(routes) <= 5
    assert [r["index"] for r in routes] == list(range(len(routes)))
    lucky = [r["luckyPoint"] for r in routes]
    assert lucky == sorted(lucky, reverse=True)
    for r in routes:
        assert 0 <= r["luckyPoint"] <= 100
        assert 0 <= r["riskRatio"] <= 1
        assert r["geometry"]["type"] == "LineString"
        assert len(r["geometry"]["coordinates"]) >= 2
        assert r["luckyPointRaw"] == r["luckyPoint"]
        assert r["luckyPointBase"] is not None


def test_run_dedups_identical_alternatives():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "routes": [
                    {
                        "geometry": {"coordinates": [[105.8542, 21.0285], [105.8412, 21.0245]]},
                        "distance": 1400.0,
                        "duration": 200.0,
                    }
                ]
            },
        )

    result = _run(handler)
    assert len(result.routes) == 1


def test_run_survives_infinite_coordinates_from_routing():
    body = (
        '{"routes": ['
        '{"geometry": {"coordinates": [[105.8542, 21.0285], [Infinity, 21.03], '
        '[105.8412, 21.0245]]}, "distance": 1600.0, "duration": 250.0},'
        '{"geometry": {"coordinates": [[105.8542, 21.0285], [105.8412, 21.0245]]}, '
        '"distance": 1400.0, "duration": 200.0}'
        "]}"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, text=body, headers={"Content-Type": "application/json"}
        )

    result = _run(handler)
    assert len(result.routes) == 2
    for r in result.routes:
        assert 0 <= r.lucky_point <= 100
        assert 0 <= r.risk_ratio <= 1


def test_run_with_routing_down_returns_reading_and_no_routes():
    result = _run(lambda request: httpx.Response(503))
    payload = result_to_payload(result)
    assert payload["routes"] == []
    assert payload["nineQi"] == 1


def test_run_sync_wrapper(monkeypatch):
    async def no_routes(profile, variants, client=None):
        return []

    monkeypatch.setattr("luckymap.compute.fetch_candidate_routes", no_routes)
    result = run(parse_query(PAYLOAD), to_lunar=_fixed_lunar, solstice_table=_TABLE)
    assert result.routes == ()
    assert result.reading.center == 5

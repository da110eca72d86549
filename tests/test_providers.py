import asyncio

import httpx

from luckymap.models import GeoPoint
from luckymap.providers import (
    fetch_osrm_routes,
    place_to_point,
    reverse_geocode,
    search_places,
)

ORIGIN = GeoPoint(21.0285, 105.8542)
DESTINATION = GeoPoint(21.0245, 105.8412)

OSRM_BODY = {
    "code": "Ok",
    "routes": [
        {
            "geometry": {
                "type": "LineString",
                "coordinates": [[105.8542, 21.0285], [105.85, 21.026], [105.8412, 21.0245]],
            },
            "distance": 1620.4,
            "duration": 240.2,
        },
        {"geometry": {"coordinates": "broken"}, "distance": 10, "duration": 1},
        {"distance": 10, "duration": 1},
    ],
}


def _fetch(handler, points=(ORIGIN, DESTINATION), profile="driving"):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_osrm_routes(client, profile, list(points))

    return asyncio.run(_go())


def test_osrm_request_shape_and_parsing():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        return httpx.Response(200, json=OSRM_BODY)

    routes = _fetch(handler, profile="foot")

    url = captured["url"]
    assert url.path == "/route/v1/foot/105.8542,21.0285;105.8412,21.0245"
    assert url.params["overview"] == "simplified"
    assert url.params["geometries"] == "geojson"
    assert url.params["alternatives"] == "true"

    assert len(routes) == 1
    route = routes[0]
    assert route.geometry[0] == (105.8542, 21.0285)
    assert route.geometry[-1] == (105.8412, 21.0245)
    assert route.distance == 1620.4
    assert route.duration == 240.2


def test_osrm_server_error_yields_empty_list():
    routes = _fetch(lambda request: httpx.Response(502, text="bad gateway"))
    assert routes == []


def test_osrm_invalid_json_yields_empty_list():
    routes = _fetch(lambda request: httpx.Response(200, text="<html>"))
    assert routes == []


def test_osrm_network_error_yields_empty_list():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert _fetch(handler) == []


def test_osrm_no_routes_key():
    assert _fetch(lambda request: httpx.Response(200, json={"code": "NoRoute"})) == []


def test_search_places_short_query_skips_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert search_places("  ab ", client=client) == []


def test_search_places_parses_and_caches():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200,
            json=[{"lat": "21.0285", "lon": "105.8542", "display_name": "Hoàn Kiếm, Hà Nội"}],
        )

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        first = search_places("Hoan Kiem", client=client)
        second = search_places("  hoan kiem ", client=client)

    assert first == second
    assert len(calls) == 1
    request = calls[0]
    assert request.url.path == "/search"
    assert request.url.params["q"] == "Hoan Kiem"
    assert request.url.params["format"] == "jsonv2"
    assert request.url.params["accept-language"] == "vi"
    assert "User-Agent" in request.headers
    assert place_to_point(first[0]) == GeoPoint(21.0285, 105.8542)


def test_search_places_failure_is_not_cached():
    responses = [
        httpx.Response(503, text="busy"),
        httpx.Response(200, json=[{"lat": "1", "lon": "2", "display_name": "x"}]),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert search_places("Ha Noi", client=client) == []
        assert len(search_places("Ha Noi", client=client)) == 1


def test_search_places_non_list_body():
    with httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"error": "x"}))
    ) as client:
        assert search_places("Ha Noi", client=client) == []


def test_reverse_geocode_success_and_cache():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"display_name": "Hồ Gươm"})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert reverse_geocode(21.0285, 105.8542, client=client) == "Hồ Gươm"
        assert reverse_geocode(21.0285, 105.8542, client=client) == "Hồ Gươm"

    assert len(calls) == 1
    assert calls[0].url.path == "/reverse"
    assert calls[0].url.params["zoom"] == "18"


def test_reverse_geocode_failure_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert reverse_geocode(1.0, 2.0, client=client) is None


def test_reverse_geocode_without_name():
    with httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"error": "none"}))
    ) as client:
        assert reverse_geocode(1.0, 2.0, client=client) is None


def test_place_to_point_rejects_bad_entries():
    assert place_to_point({"lat": "x", "lon": "1"}) is None
    assert place_to_point({}) is None

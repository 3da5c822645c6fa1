# tests/test_route_resolver.py
import asyncio

import httpx
import pytest

from conftest import LA_MARSA, TUNIS, directions_body, make_context, request_json
from ridemap.models.geo import GeoPoint
from ridemap.models.routing import RouteErrorCode, RouteMethod
from ridemap.services.route_resolver import RouteResolver
from ridemap.services.synthetic_route import generate_synthetic_route

ROUTE_COORDS = [[10.18, 36.80], [10.25, 36.84], [10.3247, 36.8782]]
OK_BODY = directions_body(ROUTE_COORDS)


class FakeProvider:
    """
    Mock routing/snapping provider. Each endpoint answers with either a status
    code (error), a dict (200 JSON body), or a callable(request).
    """

    def __init__(self, snap=500, standard=500, large=500, post=500):
        self.answers = {"snap": snap, "standard": standard, "large-radius": large, "post-negotiated": post}
        self.calls = []
        self.requests = {}

    def classify(self, request):
        path = request.url.path
        if path.endswith("/snap/driving-car/json"):
            return "snap"
        if request.method == "POST" and path.endswith("/directions/driving-car/geojson"):
            return "post-negotiated"
        if "radiuses" in request.url.params:
            return "large-radius"
        return "standard"

    async def __call__(self, request):
        name = self.classify(request)
        self.calls.append(name)
        self.requests[name] = request
        answer = self.answers[name]
        if callable(answer):
            answer = answer(request)
            if asyncio.iscoroutine(answer):
                answer = await answer
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, int):
            return httpx.Response(answer, text="provider error")
        return httpx.Response(200, json=answer)


class GeneratorSpy:
    def __init__(self):
        self.calls = []

    def __call__(self, origin, destination):
        self.calls.append((origin, destination))
        return generate_synthetic_route(origin, destination)


def _resolve(provider, origin=TUNIS, destination=LA_MARSA, generator=None, **overrides):
    context = make_context(provider, **overrides)
    kwargs = {"synthetic_generator": generator} if generator else {}
    resolver = RouteResolver(context, **kwargs)
    return asyncio.run(resolver.resolve(origin, destination))


def test_first_strategy_success_is_used():
    provider = FakeProvider(standard=OK_BODY)
    path = _resolve(provider)

    assert path.method == RouteMethod.STANDARD
    assert path.error is None
    assert [p.as_lonlat() for p in path.points] == ROUTE_COORDS
    assert provider.calls == ["snap", "standard"]


def test_second_strategy_wins_and_third_is_never_tried():
    provider = FakeProvider(standard=500, large=OK_BODY)
    path = _resolve(provider)

    assert path.method == RouteMethod.LARGE_RADIUS
    assert "post-negotiated" not in provider.calls
    assert provider.calls == ["snap", "standard", "large-radius"]
    params = provider.requests["large-radius"].url.params
    assert params["radiuses"] == "5000,5000"


def test_post_strategy_body():
    provider = FakeProvider(post=OK_BODY)
    path = _resolve(provider)

    assert path.method == RouteMethod.POST_NEGOTIATED
    body = request_json(provider.requests["post-negotiated"])
    assert body["coordinates"] == [[10.18, 36.80], [10.3247, 36.8782]]
    assert body["instructions"] is True
    assert body["geometry"] is True
    assert body["radiuses"] == [5000, 5000]
    assert provider.requests["post-negotiated"].headers["Authorization"] == "test-key"


def test_all_strategies_fail_falls_back_once_with_original_coordinates():
    spy = GeneratorSpy()
    provider = FakeProvider()
    path = _resolve(provider, generator=spy)

    assert path.method == RouteMethod.FALLBACK_SYNTHETIC
    assert path.error.code == RouteErrorCode.ALL_STRATEGIES_FAILED
    assert path.steps == []
    assert spy.calls == [(TUNIS, LA_MARSA)]
    assert provider.calls == ["snap", "standard", "large-radius", "post-negotiated"]


def test_out_of_region_skips_network_and_falls_back():
    origin = GeoPoint(latitude=38.6, longitude=10.0)
    provider = FakeProvider(standard=OK_BODY)
    path = _resolve(provider, origin=origin)

    assert provider.calls == []
    assert path.method == RouteMethod.FALLBACK_SYNTHETIC
    assert path.error.code == RouteErrorCode.OUT_OF_REGION
    assert abs(path.points[0].latitude - origin.latitude) < 1e-6
    assert abs(path.points[0].longitude - origin.longitude) < 1e-6
    assert abs(path.points[-1].latitude - LA_MARSA.latitude) < 1e-6
    assert abs(path.points[-1].longitude - LA_MARSA.longitude) < 1e-6


def test_snapped_coordinates_are_used_when_all_snapped():
    snapped = {"locations": [
        {"location": [10.1805, 36.8004], "snapped_distance": 40.0},
        {"location": [10.3240, 36.8779], "snapped_distance": 12.0},
    ]}
    provider = FakeProvider(snap=snapped, standard=OK_BODY)
    _resolve(provider)

    params = provider.requests["standard"].url.params
    assert params["start"] == "10.1805,36.8004"
    assert params["end"] == "10.324,36.8779"
    assert params["api_key"] == "test-key"


def test_partial_snap_keeps_original_coordinates():
    partial = {"locations": [{"location": [10.1805, 36.8004], "snapped_distance": 40.0}, None]}
    provider = FakeProvider(snap=partial, standard=OK_BODY)
    _resolve(provider)

    params = provider.requests["standard"].url.params
    assert params["start"] == "10.18,36.8"
    assert params["end"] == "10.3247,36.8782"


def test_empty_feature_collection_moves_to_next_strategy():
    provider = FakeProvider(standard={"type": "FeatureCollection", "features": []}, large=OK_BODY)
    path = _resolve(provider)

    assert path.method == RouteMethod.LARGE_RADIUS


def test_transport_error_moves_to_next_strategy():
    def unreachable(request):
        raise httpx.ConnectError("unreachable", request=request)

    provider = FakeProvider(standard=unreachable, large=unreachable, post=OK_BODY)
    path = _resolve(provider)

    assert path.method == RouteMethod.POST_NEGOTIATED


def test_slow_strategy_times_out_and_next_is_tried():
    async def slow(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json=OK_BODY)

    provider = FakeProvider(standard=slow, large=OK_BODY)
    path = _resolve(provider, ROUTE_STRATEGY_TIMEOUT_S=0.05)

    assert path.method == RouteMethod.LARGE_RADIUS


def test_steps_are_parsed():
    steps = [
        {"instruction": "Head north on Avenue Habib Bourguiba", "distance": 820.0,
         "duration": 95.0, "type": 11, "name": "Avenue Habib Bourguiba", "way_points": [0, 1]},
        {"instruction": "Turn right", "distance": 9100.0, "duration": 700.0,
         "type": 1, "name": "", "way_points": [1, 2]},
        {"instruction": "Arrive at your destination", "distance": 0.0, "duration": 0.0,
         "type": 10, "way_points": [2, 2]},
    ]
    provider = FakeProvider(standard=directions_body(ROUTE_COORDS, steps=steps, distance_m=9920.0))
    path = _resolve(provider)

    assert [s.index for s in path.steps] == [0, 1, 2]
    assert path.steps[0].road_name == "Avenue Habib Bourguiba"
    assert path.steps[1].road_name == "Unnamed road"
    assert path.steps[1].anchor == GeoPoint(latitude=36.84, longitude=10.25)
    assert path.steps[2].road_type == 10
    assert path.distance_km == pytest.approx(9.92)
    assert path.eta_minutes == 20


def test_missing_step_data_is_not_an_error():
    provider = FakeProvider(standard=OK_BODY)
    path = _resolve(provider)

    assert path.steps == []
    assert path.error is None


def test_no_api_key_sends_no_credentials():
    provider = FakeProvider(standard=OK_BODY)
    _resolve(provider, ORS_API_KEY=None)

    request = provider.requests["standard"]
    assert "api_key" not in request.url.params
    assert "Authorization" not in request.headers

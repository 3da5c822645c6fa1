# tests/test_geocoding.py
import asyncio

import httpx
import pytest

from conftest import TUNIS, make_context
from ridemap.core.errors import GeocodingError
from ridemap.services.geocoding import GeocodingClient

NOMINATIM_ITEMS = [
    {"place_id": 11, "display_name": "Sousse, Tunisia", "lat": "35.8256", "lon": "10.6370", "type": "city"},
    {"place_id": 12, "display_name": "Carthage, Tunisia", "lat": "36.8528", "lon": "10.3233",
     "type": "town", "address": {"country": "Tunisia"}},
    {"place_id": 13, "display_name": "Broken entry"},
]


def _search(handler, query, near=None):
    client = GeocodingClient(make_context(handler))
    return asyncio.run(client.search(query, near=near))


def test_short_query_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    assert _search(handler, "  ab ") == []
    assert calls == []


def test_results_sorted_by_proximity_with_viewbox():
    seen = {}

    def handler(request):
        seen["params"] = request.url.params
        seen["path"] = request.url.path
        return httpx.Response(200, json=NOMINATIM_ITEMS)

    results = _search(handler, "place", near=TUNIS)

    assert seen["path"] == "/search"
    assert seen["params"]["format"] == "json"
    assert seen["params"]["limit"] == "10"
    assert seen["params"]["bounded"] == "1"
    assert seen["params"]["viewbox"] == "9.68,37.3,10.68,36.3"
    assert [r.display_name for r in results] == ["Carthage, Tunisia", "Sousse, Tunisia"]
    assert results[0].distance_km < results[1].distance_km
    assert results[0].address == {"country": "Tunisia"}


def test_without_reference_point_keeps_provider_order():
    seen = {}

    def handler(request):
        seen["params"] = request.url.params
        return httpx.Response(200, json=NOMINATIM_ITEMS)

    results = _search(handler, "place")

    assert "viewbox" not in seen["params"]
    assert [r.place_id for r in results] == ["11", "12"]
    assert all(r.distance_km is None for r in results)


def test_provider_failure_raises():
    with pytest.raises(GeocodingError):
        _search(lambda request: httpx.Response(500), "Tunis")

# tests/conftest.py
import json
import os
import sys
from datetime import datetime, timedelta, timezone

import httpx
import pytest

# Add the project root directory to sys.path so that "import ridemap" works
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ridemap.core.config import Settings  # noqa: E402
from ridemap.models.geo import GeoPoint, PositionFix  # noqa: E402
from ridemap.models.realtime import PassengerProfile  # noqa: E402
from ridemap.services.session import SessionContext  # noqa: E402

# Rider in central Tunis and a destination ~10 km north-east
TUNIS = GeoPoint(latitude=36.80, longitude=10.18)
LA_MARSA = GeoPoint(latitude=36.8782, longitude=10.3247)

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = dict(
        ORS_BASE_URL="https://ors.test",
        ORS_API_KEY="test-key",
        NOMINATIM_URL="https://nominatim.test",
        API_URL="https://api.test",
        SOCKET_SERVER_URL="http://socket.test",
        SOCKET_RECONNECT_DELAY_S=0.0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_context(handler=None, passenger_id=None, **overrides) -> SessionContext:
    """
    SessionContext whose HTTP client is served by `handler` (httpx.MockTransport).
    """
    if handler is None:
        def handler(request):
            return httpx.Response(500)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    passenger = PassengerProfile(id=passenger_id, name="Test Rider") if passenger_id else None
    return SessionContext(make_settings(**overrides), passenger=passenger, http=http)


def make_fix(lat, lon, seconds=0.0, accuracy=10.0) -> PositionFix:
    return PositionFix(
        point=GeoPoint(latitude=lat, longitude=lon),
        accuracy_m=accuracy,
        timestamp=T0 + timedelta(seconds=seconds),
    )


def directions_body(coords, steps=None, distance_m=None) -> dict:
    """
    Minimal directions feature collection; coords are [lon, lat] pairs.
    """
    properties = {}
    if steps is not None:
        properties["segments"] = [{"steps": steps}]
    if distance_m is not None:
        properties["summary"] = {"distance": distance_m}
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": coords},
                "properties": properties,
            }
        ],
    }


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def settings():
    return make_settings()

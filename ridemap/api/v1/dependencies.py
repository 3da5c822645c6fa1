# ridemap/api/v1/dependencies.py
from fastapi import Request

from ridemap.core.config import settings
from ridemap.services.geocoding import GeocodingClient
from ridemap.services.route_resolver import RouteResolver
from ridemap.services.session import SessionContext


def get_session(request: Request) -> SessionContext:
    # Set by the lifespan handler; created lazily when the app runs without it
    session = getattr(request.app.state, "session", None)
    if session is None:
        session = SessionContext(settings)
        request.app.state.session = session
    return session


def get_route_resolver(request: Request) -> RouteResolver:
    return RouteResolver(get_session(request))


def get_geocoding_client(request: Request) -> GeocodingClient:
    return GeocodingClient(get_session(request))
